"""
JWT Auth Middleware — parses the bearer token into ``g.principal``.

The token is issued by the external auth layer. This hook only decodes it;
it never rejects a request. Views that need a caller are wrapped in
``rcfa_bp.principal_required``, which answers 401 when ``g.principal``
is unset.
"""

import logging

import jwt as pyjwt
from flask import g, request

from rcfa.core.principal import ROLES, Principal
from rcfa.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/static/",
)


def principal_from_claims(payload: dict) -> Principal | None:
    """Build a Principal from decoded claims, or None if they are unusable."""
    user_id = payload.get("sub")
    role = payload.get("role", "user")
    if not isinstance(user_id, str) or not user_id or role not in ROLES:
        return None
    return Principal(user_id=user_id, role=role)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.principal = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired access token", extra={"path": path})
            return
        except pyjwt.InvalidTokenError as exc:
            logger.info("Invalid access token: %s", exc, extra={"path": path})
            return

        g.principal = principal_from_claims(payload)
