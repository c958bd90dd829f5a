"""
Core exception hierarchy.

Every service raises one of these; blueprints register a single handler
against ``RcfaError`` and get a stable ``code`` plus HTTP status for free.
No error is ever signalled through a sentinel message string.

Usage:
    from rcfa.core.exceptions import ConflictError, NotFoundError

    raise NotFoundError("Rcfa", rcfa_id)
    raise ConflictError("ALREADY_PROMOTED", "This candidate has already been promoted")
"""

from rcfa.utils.errors import E


class RcfaError(Exception):
    """Base class for every error the core surfaces to its callers.

    Args:
        message: Human-readable explanation (safe to return to the caller).
        code: Machine-readable code (``E.*`` constant or a domain code such
              as ``ALREADY_PROMOTED``).
        details: Optional structured payload for API responses.
    """

    http_status = 500
    default_code = E.INTERNAL

    def __init__(self, message: str, code: str | None = None, details: dict | None = None) -> None:
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(message)


class InvalidInputError(RcfaError):
    """Malformed id, body or field length. Maps to HTTP 400."""

    http_status = 400
    default_code = E.VALIDATION_INVALID


class NotFoundError(RcfaError):
    """Raised when a requested resource does not exist or is hidden.

    Security note: used for genuinely missing records, tombstoned
    investigations, AND ownership mismatches on follow-up answers. A 403
    would confirm the investigation exists; a 404 does not.

    Args:
        resource: Human-readable entity name (e.g. "Rcfa", "FollowupQuestion").
        resource_id: The id that was looked up. Included in logs and message.
    """

    http_status = 404
    default_code = E.NOT_FOUND

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ForbiddenError(RcfaError):
    """Authenticated principal lacks rights for the operation. HTTP 403."""

    http_status = 403
    default_code = E.FORBIDDEN

    def __init__(self, operation: str, user_id: str | None = None) -> None:
        self.operation = operation
        self.user_id = user_id
        super().__init__(f"Not allowed to {operation.replace('_', ' ')}")


class ConflictError(RcfaError):
    """Wrong status for the action, or a duplicate promotion. HTTP 409.

    Args:
        code: Domain code, e.g. ``RCFA_NOT_IN_INVESTIGATION`` or
              ``ALREADY_PROMOTED``.
        message: Human-readable explanation.
    """

    http_status = 409
    default_code = E.CONFLICT_STATE

    def __init__(self, code: str, message: str, details: dict | None = None) -> None:
        super().__init__(message, code=code, details=details)


class InternalError(RcfaError):
    """Unexpected storage or infrastructure failure. HTTP 500, opaque body."""

    http_status = 500
    default_code = E.INTERNAL

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)
