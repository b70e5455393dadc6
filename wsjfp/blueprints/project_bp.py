"""
Project blueprint.

Endpoints:
    GET/POST        /api/v1/projects
    GET/PUT/DELETE  /api/v1/projects/<id>
    POST            /api/v1/projects/<id>/transition
    POST            /api/v1/projects/<id>/features/import   (CSV)
"""

import json

from flask import Blueprint, jsonify, request

from wsjfp.core.exceptions import ValidationError
from wsjfp.middleware.jwt_auth import require_auth
from wsjfp.middleware.tenant_context import current_tenant_context
from wsjfp.models.workflow import PROJECT
from wsjfp.services import feature_import_service, project_service, status_engine
from wsjfp.utils.errors import E, api_error

project_bp = Blueprint("projects", __name__, url_prefix="/api/v1/projects")


@project_bp.route("", methods=["GET"])
@require_auth
def list_projects():
    projects = project_service.list_projects(
        current_tenant_context(), status=request.args.get("status") or None,
    )
    return jsonify([p.to_dict() for p in projects]), 200


@project_bp.route("", methods=["POST"])
@require_auth
def create_project():
    project = project_service.create_project(current_tenant_context(), request.get_json(silent=True) or {})
    return jsonify(project.to_dict()), 201


@project_bp.route("/<int:project_id>", methods=["GET"])
@require_auth
def get_project(project_id):
    project = project_service.get_project(current_tenant_context(), project_id)
    result = project.to_dict()
    result["allowed_transitions"] = status_engine.state_options(PROJECT, project.status)
    return jsonify(result), 200


@project_bp.route("/<int:project_id>", methods=["PUT"])
@require_auth
def update_project(project_id):
    project = project_service.update_project(
        current_tenant_context(), project_id, request.get_json(silent=True) or {},
    )
    return jsonify(project.to_dict()), 200


@project_bp.route("/<int:project_id>", methods=["DELETE"])
@require_auth
def delete_project(project_id):
    project_service.delete_project(current_tenant_context(), project_id)
    return "", 204


@project_bp.route("/<int:project_id>/transition", methods=["POST"])
@require_auth
def transition_project(project_id):
    target = (request.get_json(silent=True) or {}).get("status")
    if not target:
        return api_error(E.VALIDATION_REQUIRED, "status is required", details={"status": "required"})
    project, changed = project_service.transition_project(current_tenant_context(), project_id, target)
    return jsonify({"project": project.to_dict(), "changed": changed}), 200


# ── Feature import ───────────────────────────────────────────────────────────


def _as_bool(value) -> bool:
    return str(value).strip().lower() not in ("0", "false", "no", "off", "")


def _import_request():
    """Return (csv content, has_header, mapping) from a multipart or JSON body."""
    upload = request.files.get("file")
    if upload:
        options = request.form
        content = upload.read()
        mapping = options.get("mapping")
        if mapping:
            try:
                mapping = json.loads(mapping)
            except ValueError:
                raise ValidationError(
                    "Invalid column mapping", details={"mapping": "mapping must be a JSON object"},
                ) from None
    else:
        options = request.get_json(silent=True) or {}
        content = options.get("csv_content")
        mapping = options.get("mapping")
    return content, _as_bool(options.get("has_header", True)), mapping


@project_bp.route("/<int:project_id>/features/import", methods=["POST"])
@require_auth
def import_features(project_id):
    """Upsert features from CSV: multipart ``file`` or JSON ``csv_content``.

    Options: ``has_header`` (default true), ``mapping`` {column index: target}.
    """
    content, has_header, mapping = _import_request()
    if not content:
        return api_error(E.VALIDATION_REQUIRED, "CSV file is required", details={"file": "required"})
    result = feature_import_service.import_features_csv(
        current_tenant_context(), project_id, content, has_header=has_header, mapping=mapping,
    )
    return jsonify(result), 200
