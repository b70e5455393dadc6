"""Standardised API error responses.

Usage
-----
    from wsjfp.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Feature not found")
    return api_error(E.INVALID_TRANSITION, "Status transition not allowed.",
                     details={"status": "Status transition not allowed."})
"""

from __future__ import annotations

from flask import jsonify


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 400 / 422
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    VALIDATION_CONSTRAINT = "ERR_VALIDATION_CONSTRAINT"
    INVALID_TRANSITION = "ERR_INVALID_TRANSITION"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict / duplicate – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"

    # Permissions – HTTP 401 / 403
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"
    TENANT_REQUIRED = "ERR_TENANT_REQUIRED"

    # Rate limiting – HTTP 429
    RATE_LIMITED = "ERR_RATE_LIMITED"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 422,
    E.VALIDATION_CONSTRAINT: 422,
    E.INVALID_TRANSITION: 422,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.TENANT_REQUIRED: 403,
    E.RATE_LIMITED: 429,
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
    """Return ``(jsonify(body), http_status)`` for a standard error body.

    ``status`` overrides the default mapping of ``code`` (fallback 400).
    ``details`` carries field-level errors, keyed by field name.
    """
    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


# ── App-wide exception mapping ────────────────────────────────────────
def register_error_handlers(app):
    """Translate service exceptions into ``api_error`` responses.

    Each handler rolls back the session so a half-applied change never
    leaks into a later commit of the same request.
    """
    import logging

    from wsjfp.core.exceptions import (
        ConflictError,
        InvalidTransition,
        NotFoundError,
        TenantRequiredError,
        UnknownStateValue,
        ValidationError,
    )
    from wsjfp.models import db
    from wsjfp.services.policies import PermissionDenied

    logger = logging.getLogger("wsjfp.errors")

    @app.errorhandler(InvalidTransition)
    def _invalid_transition(exc):
        db.session.rollback()
        logger.info("Rejected transition: %s", exc)
        return api_error(E.INVALID_TRANSITION, exc.message, details=exc.details)

    @app.errorhandler(UnknownStateValue)
    def _unknown_state(exc):
        db.session.rollback()
        return api_error(E.VALIDATION_INVALID, str(exc), details=exc.details)

    @app.errorhandler(ValidationError)
    def _validation(exc):
        db.session.rollback()
        return api_error(E.VALIDATION_INVALID, str(exc), details=exc.details)

    @app.errorhandler(NotFoundError)
    def _not_found(exc):
        db.session.rollback()
        logger.debug("Not found: %s", exc)
        # Never echo the id/tenant: a foreign record must look like a missing one
        return api_error(E.NOT_FOUND, f"{exc.resource} not found")

    @app.errorhandler(ConflictError)
    def _conflict(exc):
        db.session.rollback()
        return api_error(E.CONFLICT_DUPLICATE, str(exc), details={exc.field: "already exists"})

    @app.errorhandler(PermissionDenied)
    def _forbidden(exc):
        db.session.rollback()
        logger.warning("Permission denied: %s", exc)
        return api_error(E.FORBIDDEN, "Permission denied")

    @app.errorhandler(TenantRequiredError)
    def _tenant_required(exc):
        db.session.rollback()
        return api_error(E.TENANT_REQUIRED, "A tenant is required for this operation")

    @app.errorhandler(404)
    def _route_not_found(e):
        return api_error(E.NOT_FOUND, "Not found")

    @app.errorhandler(405)
    def _method_not_allowed(e):
        return api_error(E.VALIDATION_INVALID, "Method not allowed", status=405)

    @app.errorhandler(429)
    def _rate_limited(e):
        return api_error(E.RATE_LIMITED, "Too many requests", details={"retry_after": e.description})

    @app.errorhandler(500)
    def _server_error(e):
        db.session.rollback()
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")
