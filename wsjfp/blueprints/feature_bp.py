"""
Feature blueprint — features, lifecycle moves, dependencies, estimations.

Endpoint groups:
  Features            GET/POST /api/v1/features
                      GET  /api/v1/features/board
                      GET/PUT/DELETE /api/v1/features/<id>
  Lifecycle           POST /api/v1/features/<id>/transition
                      GET  /api/v1/features/<id>/transitions
                      GET  /api/v1/features/<id>/history
                      GET  /api/v1/features/status-timeline
  Dependencies        GET  /api/v1/features/<id>/lineage
                      POST /api/v1/features/<id>/dependencies
                      DELETE /api/v1/features/<id>/dependencies/<dep_id>
  Estimations         GET/POST /api/v1/features/<id>/components
                      POST /api/v1/features/components/<component_id>/estimations
                      PUT  /api/v1/features/estimations/<estimation_id>
                      GET  /api/v1/features/estimations/<estimation_id>/history
  Comments            GET/POST /api/v1/features/<id>/comments

Service layer owns all business logic and commits; exceptions are mapped
to HTTP by the app-level error handlers.
"""

import logging

from flask import Blueprint, jsonify, request

from wsjfp.middleware.jwt_auth import require_auth
from wsjfp.middleware.tenant_context import current_tenant_context
from wsjfp.models.workflow import FEATURE
from wsjfp.services import comment_service, estimation_service, feature_service, status_engine
from wsjfp.utils.errors import E, api_error
from wsjfp.utils.helpers import parse_date

logger = logging.getLogger(__name__)

feature_bp = Blueprint("features", __name__, url_prefix="/api/v1/features")


def _payload() -> dict:
    return request.get_json(silent=True) or {}


@feature_bp.route("", methods=["GET"])
@require_auth
def list_features():
    """Query params: status, project_id (both optional)."""
    ctx = current_tenant_context()
    features = feature_service.list_features(
        ctx,
        status=request.args.get("status") or None,
        project_id=request.args.get("project_id", type=int),
    )
    totals = feature_service.estimation_totals(ctx, [f.id for f in features])
    return jsonify([{**f.to_dict(), **totals[f.id]} for f in features]), 200


@feature_bp.route("/board", methods=["GET"])
@require_auth
def feature_board():
    """Status lanes. Query params: project_id, planning_id (both optional)."""
    return jsonify(feature_service.board(
        current_tenant_context(),
        project_id=request.args.get("project_id", type=int),
        planning_id=request.args.get("planning_id", type=int),
    )), 200


@feature_bp.route("", methods=["POST"])
@require_auth
def create_feature():
    feature = feature_service.create_feature(current_tenant_context(), _payload())
    return jsonify(feature.to_dict()), 201


@feature_bp.route("/<int:feature_id>", methods=["GET"])
@require_auth
def get_feature(feature_id):
    feature = feature_service.get_feature(current_tenant_context(), feature_id)
    result = feature.to_dict(include_dependencies=True)
    result["allowed_transitions"] = status_engine.state_options(FEATURE, feature.status)
    return jsonify(result), 200


@feature_bp.route("/<int:feature_id>", methods=["PUT"])
@require_auth
def update_feature(feature_id):
    feature = feature_service.update_feature(current_tenant_context(), feature_id, _payload())
    return jsonify(feature.to_dict()), 200


@feature_bp.route("/<int:feature_id>", methods=["DELETE"])
@require_auth
def delete_feature(feature_id):
    feature_service.delete_feature(current_tenant_context(), feature_id)
    return "", 204


# ── Lifecycle ────────────────────────────────────────────────────────────────


@feature_bp.route("/<int:feature_id>/transition", methods=["POST"])
@require_auth
def transition_feature(feature_id):
    """Body: {"status": "<target>"}. A no-op move answers 200 with changed=false."""
    target = _payload().get("status")
    if not target:
        return api_error(E.VALIDATION_REQUIRED, "status is required", details={"status": "required"})
    feature, changed = feature_service.update_status(current_tenant_context(), feature_id, target)
    return jsonify({"feature": feature.to_dict(), "changed": changed}), 200


@feature_bp.route("/<int:feature_id>/transitions", methods=["GET"])
@require_auth
def allowed_feature_transitions(feature_id):
    feature = feature_service.get_feature(current_tenant_context(), feature_id)
    return jsonify({
        "current": feature.status_details,
        "allowed": status_engine.state_options(FEATURE, feature.status),
    }), 200


@feature_bp.route("/<int:feature_id>/history", methods=["GET"])
@require_auth
def feature_history(feature_id):
    rows = feature_service.get_state_history(current_tenant_context(), feature_id)
    return jsonify([r.to_dict() for r in rows]), 200


@feature_bp.route("/status-timeline", methods=["GET"])
@require_auth
def status_timeline():
    """Query params: from, to (dates, optional; default last 90 days)."""
    timeline = feature_service.status_timeline(
        current_tenant_context(),
        start=parse_date(request.args.get("from")),
        end=parse_date(request.args.get("to")),
    )
    return jsonify({
        "statuses": status_engine.state_options(FEATURE),
        "timeline": timeline,
    }), 200


# ── Dependencies ─────────────────────────────────────────────────────────────


@feature_bp.route("/<int:feature_id>/lineage", methods=["GET"])
@require_auth
def feature_lineage(feature_id):
    return jsonify(feature_service.get_lineage(current_tenant_context(), feature_id)), 200


@feature_bp.route("/<int:feature_id>/dependencies", methods=["POST"])
@require_auth
def add_dependency(feature_id):
    """Body: {"related_feature_id": int, "type": "ermoeglicht|verhindert|bedingt|ersetzt"}"""
    data = _payload()
    related = data.get("related_feature_id")
    if not related:
        return api_error(
            E.VALIDATION_REQUIRED, "related_feature_id is required",
            details={"related_feature_id": "required"},
        )
    dependency = feature_service.add_dependency(
        current_tenant_context(), feature_id, related, data.get("type"),
    )
    return jsonify(dependency.to_dict()), 201


@feature_bp.route("/<int:feature_id>/dependencies/<int:dependency_id>", methods=["DELETE"])
@require_auth
def remove_dependency(feature_id, dependency_id):
    feature_service.remove_dependency(current_tenant_context(), feature_id, dependency_id)
    return "", 204


# ── Estimations ──────────────────────────────────────────────────────────────


@feature_bp.route("/<int:feature_id>/components", methods=["GET"])
@require_auth
def list_components(feature_id):
    components = estimation_service.list_components(current_tenant_context(), feature_id)
    return jsonify([c.to_dict() for c in components]), 200


@feature_bp.route("/<int:feature_id>/components", methods=["POST"])
@require_auth
def create_component(feature_id):
    component = estimation_service.create_component(current_tenant_context(), feature_id, _payload())
    return jsonify(component.to_dict()), 201


@feature_bp.route("/components/<int:component_id>/estimations", methods=["POST"])
@require_auth
def add_estimation(component_id):
    estimation = estimation_service.add_estimation(current_tenant_context(), component_id, _payload())
    return jsonify(estimation.to_dict()), 201


@feature_bp.route("/estimations/<int:estimation_id>", methods=["PUT"])
@require_auth
def update_estimation(estimation_id):
    estimation = estimation_service.update_estimation(current_tenant_context(), estimation_id, _payload())
    return jsonify(estimation.to_dict()), 200


@feature_bp.route("/estimations/<int:estimation_id>/history", methods=["GET"])
@require_auth
def estimation_history(estimation_id):
    rows = estimation_service.list_history(current_tenant_context(), estimation_id)
    return jsonify([r.to_dict() for r in rows]), 200


# ── Comments ─────────────────────────────────────────────────────────────────


@feature_bp.route("/<int:feature_id>/comments", methods=["GET"])
@require_auth
def list_comments(feature_id):
    comments = comment_service.list_comments(current_tenant_context(), FEATURE, feature_id)
    return jsonify([c.to_dict() for c in comments]), 200


@feature_bp.route("/<int:feature_id>/comments", methods=["POST"])
@require_auth
def add_comment(feature_id):
    comment = comment_service.add_comment(current_tenant_context(), FEATURE, feature_id, _payload().get("body"))
    return jsonify(comment.to_dict()), 201
