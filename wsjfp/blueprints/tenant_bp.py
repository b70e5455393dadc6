"""
Tenant blueprint — registration, memberships, invitations, tenant switch.

Endpoints:
    POST /api/v1/tenants/register               (no token required)
    GET  /api/v1/tenants                        memberships + pending invitations
    POST /api/v1/tenants/<id>/invitations
    POST /api/v1/tenants/invitations/accept
    POST /api/v1/tenants/<id>/switch
"""

from flask import Blueprint, jsonify, request

from wsjfp.middleware.jwt_auth import require_auth
from wsjfp.middleware.tenant_context import current_user
from wsjfp.services import jwt_service, tenant_service
from wsjfp.utils.errors import E, api_error

tenant_bp = Blueprint("tenants", __name__, url_prefix="/api/v1/tenants")


@tenant_bp.route("/register", methods=["POST"])
def register():
    """Body: {"name": str, "email": str}. Returns the user and an access token."""
    data = request.get_json(silent=True) or {}
    user = tenant_service.register_user_with_tenant(data.get("name"), data.get("email"))
    return jsonify({
        "user": user.to_dict(),
        "access_token": jwt_service.generate_access_token(user.id),
        "token_type": "Bearer",
    }), 201


@tenant_bp.route("", methods=["GET"])
@require_auth
def list_tenants():
    user = current_user()
    return jsonify({
        "tenants": [t.to_dict() for t in tenant_service.list_tenants(user)],
        "current_tenant_id": user.current_tenant_id,
        "pending_invitations": [i.to_dict() for i in tenant_service.pending_invitations(user)],
    }), 200


@tenant_bp.route("/<int:tenant_id>/invitations", methods=["POST"])
@require_auth
def invite(tenant_id):
    data = request.get_json(silent=True) or {}
    invitation = tenant_service.invite(current_user(), tenant_id, data.get("email"))
    result = invitation.to_dict()
    result["token"] = invitation.token
    return jsonify(result), 201


@tenant_bp.route("/invitations/accept", methods=["POST"])
@require_auth
def accept_invitation():
    token = (request.get_json(silent=True) or {}).get("token")
    if not token:
        return api_error(E.VALIDATION_REQUIRED, "token is required", details={"token": "required"})
    tenant = tenant_service.accept_invitation(current_user(), token)
    return jsonify({"tenant": tenant.to_dict(), "current_tenant_id": current_user().current_tenant_id}), 200


@tenant_bp.route("/<int:tenant_id>/switch", methods=["POST"])
@require_auth
def switch_tenant(tenant_id):
    tenant = tenant_service.switch_tenant(current_user(), tenant_id)
    return jsonify({"tenant": tenant.to_dict(), "current_tenant_id": tenant.id}), 200
