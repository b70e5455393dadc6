"""
Tenant Context Middleware — resolves the acting user and their tenant.

For every API request with a valid token:
  1. g.jwt_user_id is already set by jwt_auth middleware
  2. the User row is loaded into g.current_user
  3. g.tenant_context = TenantContext(current_tenant_id or tenant_id, user.id)

Requests without a user get an unresolved context, so every scoped query
they reach returns nothing.
"""

import logging

from flask import g, request

from wsjfp.models import db
from wsjfp.models.auth import User
from wsjfp.tenancy import TenantContext

logger = logging.getLogger(__name__)


def current_tenant_context() -> TenantContext:
    """The acting TenantContext of the current request (unresolved if none)."""
    return getattr(g, "tenant_context", None) or TenantContext.none()


def current_user():
    return getattr(g, "current_user", None)


def init_tenant_context(app):
    """Register tenant context middleware as a before_request hook."""

    @app.before_request
    def _tenant_context():
        g.current_user = None
        g.tenant_context = TenantContext.none()

        if not request.path.startswith("/api/v1/"):
            return None

        user_id = getattr(g, "jwt_user_id", None)
        if user_id is None:
            return None

        user = db.session.get(User, user_id)
        if user is None:
            logger.warning("Token for unknown user id=%s", user_id)
            return None

        g.current_user = user
        g.tenant_context = TenantContext.for_user(user)
        if not g.tenant_context.is_resolved:
            logger.info("User id=%s has no tenant; scoped reads will be empty", user.id)
        return None

    logger.debug("Tenant context middleware installed")
