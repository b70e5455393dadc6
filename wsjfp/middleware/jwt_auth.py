"""
JWT Auth Middleware — parses the bearer token and sets ``g.jwt_user_id``.

The hook never blocks: an absent, expired or malformed token simply leaves
``g.jwt_user_id`` unset. Endpoints that need an acting user are wrapped in
``require_auth``, which answers 401.

Chain order:
  jwt_auth.py  →  tenant_context.py  →  route handler
"""

import functools
import logging

import jwt as pyjwt
from flask import g, request

from wsjfp.services.jwt_service import user_id_from_token
from wsjfp.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/api/v1/tenants/register",
    "/static/",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        if path.startswith(JWT_SKIP_PREFIXES):
            return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        try:
            g.jwt_user_id = user_id_from_token(auth_header[7:])
        except pyjwt.ExpiredSignatureError:
            logger.debug("Expired access token on %s", path)
        except pyjwt.InvalidTokenError as exc:
            logger.warning("Rejected access token on %s: %s", path, exc)


def require_auth(f):
    """Decorator: 401 unless the request carries a valid token for a known user."""

    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if getattr(g, "current_user", None) is None:
            return api_error(E.UNAUTHORIZED, "Authentication required")
        return f(*args, **kwargs)

    return decorated
