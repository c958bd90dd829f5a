"""Shared input helpers for services and blueprints.

require_uuid:      id shape check, raises InvalidInputError before any DB access
parse_date_input:  ISO / DD.MM.YYYY date parsing, raises InvalidInputError
clean_text:        trim + bound a free-text field
"""
import re
from datetime import date, datetime

from rcfa.core.exceptions import InvalidInputError
from rcfa.utils.errors import E

UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
)


def is_uuid(value) -> bool:
    """True for lowercase hyphenated UUID strings."""
    return isinstance(value, str) and bool(UUID_RE.match(value))


def require_uuid(value, label: str = "id") -> str:
    """Return *value* unchanged or raise InvalidInputError.

    Runs before storage is touched so malformed ids never reach a query.
    """
    if not is_uuid(value):
        raise InvalidInputError(f"Invalid {label}", code=E.INVALID_ID)
    return value


def parse_date_input(value, label: str = "date"):
    """Parse a date string, raising InvalidInputError on bad input.

    Supports: YYYY-MM-DD, YYYY-MM-DDTHH:MM:SS, DD.MM.YYYY, date objects.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except ValueError as exc:
        raise InvalidInputError(
            f"Invalid {label}. Use YYYY-MM-DD or DD.MM.YYYY."
        ) from exc


def clean_text(value, label: str, *, max_length: int, required: bool = True) -> str | None:
    """Trim *value* and enforce presence and a maximum length.

    Length is measured after trimming.
    """
    if value is None and not required:
        return None
    if not isinstance(value, str):
        raise InvalidInputError(f"{label} must be a string", code=E.VALIDATION_REQUIRED)
    text = value.strip()
    if not text:
        if required:
            raise InvalidInputError(f"{label} is required", code=E.VALIDATION_REQUIRED)
        return None
    if len(text) > max_length:
        raise InvalidInputError(
            f"{label} must be ≤ {max_length} characters",
            details={label: f"length {len(text)} exceeds {max_length}"},
        )
    return text
