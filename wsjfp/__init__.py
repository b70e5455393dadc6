"""
WSJF Planner
Flask Application Factory.

Usage:
    from wsjfp import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from wsjfp.config import config
from wsjfp.middleware.jwt_auth import init_jwt_middleware
from wsjfp.middleware.logging_config import configure_logging
from wsjfp.middleware.rate_limiter import init_rate_limits
from wsjfp.middleware.tenant_context import init_tenant_context
from wsjfp.middleware.timing import init_request_timing
from wsjfp.models import db
from wsjfp.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # per-blueprint limits only; storage from RATELIMIT_STORAGE_URI
)

REPAIR_TYPES = ("feature", "project", "planning", "commitment", "all")


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: One of "development", "testing", "production".
                     Defaults to the APP_ENV env var, or "development".
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    cfg = config[config_name]
    app.config.from_object(cfg() if config_name == "production" else cfg)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request middleware (order matters: token → user → tenant) ────────
    init_request_timing(app)
    init_jwt_middleware(app)
    init_tenant_context(app)

    # ── Import all models so mappers and observers are registered ────────
    from wsjfp.models import auth as _auth_models              # noqa: F401
    from wsjfp.models import comment as _comment_models        # noqa: F401
    from wsjfp.models import estimation as _estimation_models  # noqa: F401
    from wsjfp.models import feature as _feature_models        # noqa: F401
    from wsjfp.models import history as _history_models        # noqa: F401
    from wsjfp.models import planning as _planning_models      # noqa: F401
    from wsjfp.models import project as _project_models        # noqa: F401
    from wsjfp import tenancy as _tenancy                      # noqa: F401

    with app.app_context():
        if config_name != "production":
            db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from wsjfp.blueprints.feature_bp import feature_bp
    from wsjfp.blueprints.health_bp import health_bp
    from wsjfp.blueprints.planning_bp import planning_bp
    from wsjfp.blueprints.project_bp import project_bp
    from wsjfp.blueprints.tenant_bp import tenant_bp

    app.register_blueprint(feature_bp)
    app.register_blueprint(project_bp)
    app.register_blueprint(planning_bp)
    app.register_blueprint(tenant_bp)
    app.register_blueprint(health_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    register_error_handlers(app)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("fix-states")
    @click.option("--type", "entity_type", default="all", type=click.Choice(REPAIR_TYPES),
                  help="Entity type to repair (default: all).")
    def fix_states_cmd(entity_type):
        """Reset missing or undeclared statuses to the type's default state."""
        from wsjfp.services import status_repair

        if entity_type == "all":
            results = status_repair.repair_all()
        else:
            results = {entity_type: status_repair.repair_statuses(entity_type)}
        for name, corrections in results.items():
            for c in corrections:
                click.echo(f"{name} #{c.entity_id} (tenant {c.tenant_id}): {c.old_status!r} -> {c.new_status}")
            click.echo(f"{name}: {len(corrections)} fixed")

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
