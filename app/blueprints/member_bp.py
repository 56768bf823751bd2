"""Member blueprint — workspace membership, user directory and workload.

  GET    /api/v1/members?workspace_id=
  POST   /api/v1/members                     { workspace_id, email, role?, display_name? }
  PUT    /api/v1/members/<user_id>/role      { workspace_id, role }
  DELETE /api/v1/members/<user_id>?workspace_id=
  GET    /api/v1/members/users[?search=&limit=&offset=]
  GET    /api/v1/members/workload?workspace_id=
"""

import logging

from flask import Blueprint, jsonify, request

from app.blueprints import current_user, json_body, paginate_query, register_error_handlers
from app.core.exceptions import ValidationError
from app.services import membership_service, permission_service, workload_service

logger = logging.getLogger(__name__)

member_bp = Blueprint("member", __name__, url_prefix="/api/v1/members")
register_error_handlers(member_bp)


def _workspace_id(data=None):
    workspace_id = request.args.get("workspace_id") or (data or {}).get("workspace_id")
    if not workspace_id:
        raise ValidationError("workspace_id is required", details={"workspace_id": "required"})
    return workspace_id


@member_bp.route("", methods=["GET"])
def list_members():
    workspace_id = _workspace_id()
    user = current_user()
    permission_service.authorize(user.id, workspace_id, "read")
    members = membership_service.list_members(workspace_id)
    return jsonify([m.to_dict() for m in members]), 200


@member_bp.route("", methods=["POST"])
def add_member():
    data = json_body()
    workspace_id = _workspace_id(data)
    user = current_user()
    requester_role = permission_service.authorize(user.id, workspace_id, "update_role")
    membership = membership_service.add_member(
        workspace_id,
        data.get("email"),
        role=data.get("role"),
        display_name=data.get("display_name"),
        requester_role=requester_role,
    )
    return jsonify(membership.to_dict()), 201


@member_bp.route("/<user_id>/role", methods=["PUT"])
def update_role(user_id):
    data = json_body()
    workspace_id = _workspace_id(data)
    user = current_user()
    requester_role = permission_service.authorize(user.id, workspace_id, "update_role")
    membership = membership_service.update_role(
        workspace_id, user_id, data.get("role"), requester_role=requester_role,
    )
    return jsonify(membership.to_dict()), 200


@member_bp.route("/<user_id>", methods=["DELETE"])
def remove_member(user_id):
    workspace_id = _workspace_id()
    user = current_user()
    permission_service.authorize(user.id, workspace_id, "remove_member")
    membership_service.remove_member(workspace_id, user_id)
    return "", 204


@member_bp.route("/users", methods=["GET"])
def list_users():
    """Directory of known users for assignee pickers."""
    current_user()
    query = membership_service.users_query(request.args.get("search"))
    users, total = paginate_query(query, default_limit=100, max_limit=500)
    return jsonify({"items": [u.to_summary() for u in users], "total": total}), 200


@member_bp.route("/workload", methods=["GET"])
def workload():
    workspace_id = _workspace_id()
    user = current_user()
    permission_service.authorize(user.id, workspace_id, "read")
    return jsonify(workload_service.get_workload(workspace_id)), 200
