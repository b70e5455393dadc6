"""
Health check and status metadata.

Endpoints:
    GET /api/v1/health                   — readiness + database ping
    GET /api/v1/statuses/<entity_type>   — declared states (optionally those
                                           reachable from ?current=<status>)
"""

import logging
import time

from flask import Blueprint, jsonify, request

from wsjfp.models import db
from wsjfp.models.workflow import ENTITY_TYPES
from wsjfp.services import status_engine
from wsjfp.utils.errors import E, api_error

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1")


@health_bp.route("/health", methods=["GET"])
def health():
    checks = {}
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        checks["database"] = {"status": "ok", "latency_ms": round((time.perf_counter() - t0) * 1000, 1)}
    except Exception as exc:
        logger.error("Health check — database failed: %s", exc)
        return jsonify({"status": "error", "checks": {"database": {"status": "error"}}}), 503
    return jsonify({"status": "ok", "app": "WSJF Planner", "checks": checks}), 200


@health_bp.route("/statuses/<entity_type>", methods=["GET"])
def statuses(entity_type):
    if entity_type not in ENTITY_TYPES:
        return api_error(E.NOT_FOUND, f"Unknown entity type {entity_type!r}")
    current = request.args.get("current") or None
    return jsonify({
        "entity_type": entity_type,
        "default": status_engine.default_state(entity_type),
        "states": status_engine.state_options(entity_type, current),
    }), 200
