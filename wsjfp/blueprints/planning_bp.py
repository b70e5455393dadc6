"""
Planning blueprint — plannings, commitments and WSJF votes.

Endpoint groups:
  Plannings     GET/POST /api/v1/plannings
                GET/PUT/DELETE /api/v1/plannings/<id>
                POST /api/v1/plannings/<id>/transition
  Commitments   GET/POST /api/v1/plannings/<id>/commitments
                PUT/DELETE /api/v1/plannings/commitments/<commitment_id>
                POST /api/v1/plannings/commitments/<commitment_id>/transition
  Votes         GET/POST /api/v1/plannings/<id>/votes
                GET  /api/v1/plannings/<id>/votes/tally
                POST /api/v1/plannings/<id>/votes/creator-average
"""

from flask import Blueprint, jsonify, request

from wsjfp.middleware.jwt_auth import require_auth
from wsjfp.middleware.tenant_context import current_tenant_context
from wsjfp.models.workflow import COMMITMENT, PLANNING
from wsjfp.services import commitment_service, planning_service, status_engine, vote_service
from wsjfp.utils.errors import E, api_error

planning_bp = Blueprint("plannings", __name__, url_prefix="/api/v1/plannings")


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _target_status():
    target = _payload().get("status")
    if not target:
        return None, api_error(E.VALIDATION_REQUIRED, "status is required", details={"status": "required"})
    return target, None


# ── Plannings ────────────────────────────────────────────────────────────────


@planning_bp.route("", methods=["GET"])
@require_auth
def list_plannings():
    plannings = planning_service.list_plannings(
        current_tenant_context(), project_id=request.args.get("project_id", type=int),
    )
    return jsonify([p.to_dict() for p in plannings]), 200


@planning_bp.route("", methods=["POST"])
@require_auth
def create_planning():
    planning = planning_service.create_planning(current_tenant_context(), _payload())
    return jsonify(planning.to_dict()), 201


@planning_bp.route("/<int:planning_id>", methods=["GET"])
@require_auth
def get_planning(planning_id):
    planning = planning_service.get_planning(current_tenant_context(), planning_id)
    result = planning.to_dict(include_children=True)
    result["allowed_transitions"] = status_engine.state_options(PLANNING, planning.status)
    return jsonify(result), 200


@planning_bp.route("/<int:planning_id>", methods=["PUT"])
@require_auth
def update_planning(planning_id):
    planning = planning_service.update_planning(current_tenant_context(), planning_id, _payload())
    return jsonify(planning.to_dict()), 200


@planning_bp.route("/<int:planning_id>", methods=["DELETE"])
@require_auth
def delete_planning(planning_id):
    planning_service.delete_planning(current_tenant_context(), planning_id)
    return "", 204


@planning_bp.route("/<int:planning_id>/transition", methods=["POST"])
@require_auth
def transition_planning(planning_id):
    target, err = _target_status()
    if err:
        return err
    planning, changed = planning_service.transition_planning(current_tenant_context(), planning_id, target)
    return jsonify({"planning": planning.to_dict(), "changed": changed}), 200


# ── Commitments ──────────────────────────────────────────────────────────────


@planning_bp.route("/<int:planning_id>/commitments", methods=["GET"])
@require_auth
def list_commitments(planning_id):
    commitments = commitment_service.list_commitments_for_planning(current_tenant_context(), planning_id)
    return jsonify([c.to_dict() for c in commitments]), 200


@planning_bp.route("/<int:planning_id>/commitments", methods=["POST"])
@require_auth
def create_commitment(planning_id):
    data = {**_payload(), "planning_id": planning_id}
    commitment = commitment_service.create_commitment(current_tenant_context(), data)
    return jsonify(commitment.to_dict()), 201


@planning_bp.route("/commitments/<int:commitment_id>", methods=["PUT"])
@require_auth
def update_commitment(commitment_id):
    commitment = commitment_service.update_commitment(current_tenant_context(), commitment_id, _payload())
    return jsonify(commitment.to_dict()), 200


@planning_bp.route("/commitments/<int:commitment_id>", methods=["DELETE"])
@require_auth
def delete_commitment(commitment_id):
    commitment_service.delete_commitment(current_tenant_context(), commitment_id)
    return "", 204


@planning_bp.route("/commitments/<int:commitment_id>/transition", methods=["POST"])
@require_auth
def transition_commitment(commitment_id):
    target, err = _target_status()
    if err:
        return err
    commitment, changed = commitment_service.transition_commitment(
        current_tenant_context(), commitment_id, target,
    )
    result = commitment.to_dict()
    result["allowed_transitions"] = status_engine.state_options(COMMITMENT, commitment.status)
    return jsonify({"commitment": result, "changed": changed}), 200


# ── Votes ────────────────────────────────────────────────────────────────────


@planning_bp.route("/<int:planning_id>/votes", methods=["GET"])
@require_auth
def list_votes(planning_id):
    """Query param ``mine=1`` limits the list to the acting user's votes."""
    ctx = current_tenant_context()
    user_id = ctx.user_id if request.args.get("mine") else None
    votes = vote_service.list_votes(ctx, planning_id, user_id=user_id)
    return jsonify([v.to_dict() for v in votes]), 200


@planning_bp.route("/<int:planning_id>/votes", methods=["POST"])
@require_auth
def cast_vote(planning_id):
    """Body: {"feature_id": int, "type": "BusinessValue|TimeCriticality|RiskOpportunity", "value": number}"""
    vote = vote_service.cast_vote(current_tenant_context(), planning_id, _payload())
    return jsonify(vote.to_dict()), 201


@planning_bp.route("/<int:planning_id>/votes/tally", methods=["GET"])
@require_auth
def tally_votes(planning_id):
    return jsonify(vote_service.tally_votes(current_tenant_context(), planning_id)), 200


@planning_bp.route("/<int:planning_id>/votes/creator-average", methods=["POST"])
@require_auth
def creator_average(planning_id):
    votes = vote_service.calculate_average_votes_for_creator(current_tenant_context(), planning_id)
    return jsonify([v.to_dict() for v in votes]), 200
