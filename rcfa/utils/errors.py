"""Standardised API error responses.

Usage
-----
    from rcfa.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Rcfa not found")
    return api_error("ALREADY_PROMOTED", "This candidate has already been promoted", status=409)
"""

from __future__ import annotations

from flask import jsonify


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants.

    Convention:
     • ERR_  prefix for standard application errors
     • bare upper-case names for lifecycle/promotion conflicts
    """

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    INVALID_ID = "ERR_INVALID_ID"

    # Authentication – HTTP 401
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"

    # Permissions – HTTP 403
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict – HTTP 409
    CONFLICT_STATE = "ERR_CONFLICT_STATE"
    RCFA_NOT_IN_INVESTIGATION = "RCFA_NOT_IN_INVESTIGATION"
    RCFA_INVALID_TRANSITION = "RCFA_INVALID_TRANSITION"
    RCFA_NO_ROOT_CAUSES = "RCFA_NO_ROOT_CAUSES"
    RCFA_NO_ACTION_ITEMS = "RCFA_NO_ACTION_ITEMS"
    RCFA_INCOMPLETE_ACTIONS = "RCFA_INCOMPLETE_ACTIONS"
    RCFA_DRAFT_ITEMS_INCOMPLETE = "RCFA_DRAFT_ITEMS_INCOMPLETE"
    ALREADY_PROMOTED = "ALREADY_PROMOTED"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.INVALID_ID: 400,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_STATE: 409,
    E.RCFA_NOT_IN_INVESTIGATION: 409,
    E.RCFA_INVALID_TRANSITION: 409,
    E.RCFA_NO_ROOT_CAUSES: 409,
    E.RCFA_NO_ACTION_ITEMS: 409,
    E.RCFA_INCOMPLETE_ACTIONS: 409,
    E.RCFA_DRAFT_ITEMS_INCOMPLETE: 409,
    E.ALREADY_PROMOTED: 409,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload.

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status
