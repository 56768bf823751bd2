"""Workspace blueprint — workspaces and the caller's own profile.

Endpoints:
  GET    /api/v1/me
  GET    /api/v1/workspaces
  POST   /api/v1/workspaces
  GET    /api/v1/workspaces/<id>
  PUT    /api/v1/workspaces/<id>
  DELETE /api/v1/workspaces/<id>
"""

import logging

from flask import Blueprint, jsonify

from app.blueprints import current_user, json_body, register_error_handlers
from app.services import attachment_service, identity_service, permission_service, workspace_service

logger = logging.getLogger(__name__)

workspace_bp = Blueprint("workspace", __name__, url_prefix="/api/v1")
register_error_handlers(workspace_bp)


@workspace_bp.route("/me", methods=["GET"])
def me():
    """Resolved caller profile plus workspace memberships."""
    return jsonify(identity_service.get_profile(current_user())), 200


@workspace_bp.route("/workspaces", methods=["GET"])
def list_workspaces():
    user = current_user()
    return jsonify(workspace_service.list_workspaces_for_user(user.id)), 200


@workspace_bp.route("/workspaces", methods=["POST"])
def create_workspace():
    """Body: { name, slug?, description?, logo_url? } — caller becomes owner."""
    user = current_user()
    ws = workspace_service.create_workspace(owner_id=user.id, data=json_body())
    return jsonify(ws.to_dict()), 201


@workspace_bp.route("/workspaces/<workspace_id>", methods=["GET"])
def get_workspace(workspace_id):
    user = current_user()
    ws = workspace_service.get_workspace(workspace_id)
    role = permission_service.authorize(user.id, ws.id, "read")
    d = ws.to_dict()
    d["role"] = role
    return jsonify(d), 200


@workspace_bp.route("/workspaces/<workspace_id>", methods=["PUT"])
def update_workspace(workspace_id):
    user = current_user()
    ws = workspace_service.get_workspace(workspace_id)
    permission_service.authorize(user.id, ws.id, "manage_workspace")
    ws = workspace_service.update_workspace(ws.id, json_body())
    return jsonify(ws.to_dict()), 200


@workspace_bp.route("/workspaces/<workspace_id>", methods=["DELETE"])
def delete_workspace(workspace_id):
    user = current_user()
    ws = workspace_service.get_workspace(workspace_id)
    permission_service.authorize(user.id, ws.id, "delete_owner_protected")
    locators = workspace_service.delete_workspace(ws.id)
    attachment_service.discard_stored_files(locators, owner_id=user.external_id)
    return "", 204
