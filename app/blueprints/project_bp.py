"""Project blueprint — /api/v1/projects.

Every route checks the caller's role in the owning workspace first.
"""

import logging

from flask import Blueprint, jsonify, request

from app.blueprints import current_user, json_body, register_error_handlers
from app.core.exceptions import ValidationError
from app.services import attachment_service, permission_service, project_service

logger = logging.getLogger(__name__)

project_bp = Blueprint("project", __name__, url_prefix="/api/v1/projects")
register_error_handlers(project_bp)


@project_bp.route("", methods=["GET"])
def list_projects():
    """Query params: workspace_id (required)."""
    workspace_id = request.args.get("workspace_id")
    if not workspace_id:
        raise ValidationError("workspace_id is required", details={"workspace_id": "required"})
    user = current_user()
    permission_service.authorize(user.id, workspace_id, "read")
    projects = project_service.list_projects(workspace_id)
    return jsonify([p.to_dict(include_task_count=True) for p in projects]), 200


@project_bp.route("", methods=["POST"])
def create_project():
    """Body: { workspace_id, name, description?, status?, start_date?, target_date?, budget? }"""
    data = json_body()
    workspace_id = data.get("workspace_id")
    if not workspace_id:
        raise ValidationError("workspace_id is required", details={"workspace_id": "required"})
    user = current_user()
    permission_service.authorize(user.id, workspace_id, "create")
    project = project_service.create_project(workspace_id=workspace_id, data=data)
    return jsonify(project.to_dict()), 201


@project_bp.route("/<project_id>", methods=["GET"])
def get_project(project_id):
    user = current_user()
    project = project_service.get_project(project_id)
    permission_service.authorize(user.id, project.workspace_id, "read")
    return jsonify(project.to_dict(include_task_count=True)), 200


@project_bp.route("/<project_id>", methods=["PUT"])
def update_project(project_id):
    user = current_user()
    project = project_service.get_project(project_id)
    permission_service.authorize(user.id, project.workspace_id, "update_content")
    project = project_service.update_project(project.id, json_body())
    return jsonify(project.to_dict()), 200


@project_bp.route("/<project_id>", methods=["DELETE"])
def delete_project(project_id):
    user = current_user()
    project = project_service.get_project(project_id)
    permission_service.authorize(user.id, project.workspace_id, "update_content")
    locators = project_service.delete_project(project.id)
    attachment_service.discard_stored_files(locators, owner_id=user.external_id)
    return "", 204
