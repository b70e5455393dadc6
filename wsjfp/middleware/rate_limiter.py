"""
Rate limiting — per-blueprint limits with Flask-Limiter.

The Limiter instance is created in ``wsjfp/__init__.py`` with no default
limits; this module applies limits per route category, keyed by tenant
when one is resolved and by remote address otherwise.

Usage:
    from wsjfp.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)

WRITE_LIMIT = "60/minute"
READ_LIMIT = "300/minute"

WRITE_BLUEPRINTS = ("features", "projects", "plannings", "tenants")


def tenant_rate_limit_key():
    """Rate-limit bucket: the acting tenant if resolved, else the remote IP."""
    ctx = getattr(g, "tenant_context", None)
    if ctx is not None and ctx.tenant_id is not None:
        return f"tenant:{ctx.tenant_id}"
    return flask_request.remote_addr or "unknown"


def _is_read():
    return flask_request.method in ("GET", "HEAD", "OPTIONS")


def init_rate_limits(app, limiter):
    """Apply limits to the API blueprints. Disabled in testing mode."""
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in WRITE_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT, key_func=tenant_rate_limit_key, exempt_when=_is_read)(bp)
            limiter.limit(READ_LIMIT, key_func=tenant_rate_limit_key)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured — write: %s, read: %s", WRITE_LIMIT, READ_LIMIT)
