"""Task blueprint — hierarchy, status, checklist, comments and sync.

Endpoint groups:
  Tasks        GET  /api/v1/tasks?project_id=[&view=flat&status=&assignee_id=]
               POST /api/v1/tasks
               GET/PUT/DELETE /api/v1/tasks/<id>
               PATCH /api/v1/tasks/<id>/status
               GET  /api/v1/tasks/<id>/ancestors
  Checklist    GET/POST /api/v1/tasks/<id>/checklist
               PATCH/DELETE /api/v1/tasks/<id>/checklist/<item_id>
  Comments     GET/POST /api/v1/tasks/<id>/comments
  Sync         POST /api/v1/tasks/<id>/sync-calendar
               POST /api/v1/tasks/<id>/sync-todo

Service layer owns all business logic and commits.
"""

import logging

from flask import Blueprint, jsonify, request

from app.blueprints import current_user, json_body, register_error_handlers
from app.core.exceptions import ValidationError
from app.services import (
    attachment_service,
    checklist_service,
    comment_service,
    permission_service,
    project_service,
    sync_service,
    task_service,
)

logger = logging.getLogger(__name__)

task_bp = Blueprint("task", __name__, url_prefix="/api/v1/tasks")
register_error_handlers(task_bp)


def _authorized_task(task_id, action):
    user = current_user()
    task = task_service.get_task(task_id)
    permission_service.authorize(user.id, task_service.workspace_id_for_task(task), action)
    return user, task


# ═════════════════════════════════════════════════════════════════════════
# Tasks
# ═════════════════════════════════════════════════════════════════════════


@task_bp.route("", methods=["GET"])
def list_tasks():
    """Task forest of a project, or a flat filtered list with view=flat."""
    project_id = request.args.get("project_id")
    if not project_id:
        raise ValidationError("project_id is required", details={"project_id": "required"})
    user = current_user()
    project = project_service.get_project(project_id)
    permission_service.authorize(user.id, project.workspace_id, "read")

    if request.args.get("view") == "flat":
        tasks = task_service.list_tasks_flat(
            project.id,
            status=request.args.get("status"),
            assignee_id=request.args.get("assignee_id"),
        )
    else:
        tasks = task_service.list_task_tree(project.id)
    return jsonify(tasks), 200


@task_bp.route("", methods=["POST"])
def create_task():
    """Body: { project_id, title, parent_id?, assignee_id?, status?, priority?, ... }"""
    data = json_body()
    project_id = data.get("project_id")
    if not project_id:
        raise ValidationError("project_id is required", details={"project_id": "required"})
    user = current_user()
    project = project_service.get_project(project_id)
    permission_service.authorize(user.id, project.workspace_id, "create")

    task = task_service.create_task(project.id, user.id, data)
    result = sync_service.push_todo_best_effort(task)
    if result is not None and not result.ok:
        logger.warning("To Do push for new task=%s failed: %s", task.id, result.error)
    return jsonify(task_service.task_detail(task)), 201


@task_bp.route("/<task_id>", methods=["GET"])
def get_task(task_id):
    _, task = _authorized_task(task_id, "read")
    return jsonify(task_service.task_detail(task)), 200


@task_bp.route("/<task_id>", methods=["PUT"])
def update_task(task_id):
    _, task = _authorized_task(task_id, "update_content")
    task = task_service.update_task(task.id, json_body())
    return jsonify(task_service.task_detail(task)), 200


@task_bp.route("/<task_id>/status", methods=["PATCH"])
def update_status(task_id):
    """Body: { status }"""
    _, task = _authorized_task(task_id, "update_content")
    task = task_service.update_status(task.id, json_body().get("status"))
    return jsonify(task.to_dict()), 200


@task_bp.route("/<task_id>", methods=["DELETE"])
def delete_task(task_id):
    """Deletes the task and its whole subtree."""
    user, task = _authorized_task(task_id, "update_content")
    locators = task_service.delete_task(task.id)
    attachment_service.discard_stored_files(locators, owner_id=user.external_id)
    return "", 204


@task_bp.route("/<task_id>/ancestors", methods=["GET"])
def list_ancestors(task_id):
    _, task = _authorized_task(task_id, "read")
    return jsonify({"task_id": task.id, "ancestor_ids": task_service.ancestor_ids(task.id)}), 200


# ═════════════════════════════════════════════════════════════════════════
# Checklist
# ═════════════════════════════════════════════════════════════════════════


@task_bp.route("/<task_id>/checklist", methods=["GET"])
def list_checklist(task_id):
    _, task = _authorized_task(task_id, "read")
    return jsonify([i.to_dict() for i in checklist_service.list_items(task.id)]), 200


@task_bp.route("/<task_id>/checklist", methods=["POST"])
def add_checklist_item(task_id):
    """Body: { title }"""
    _, task = _authorized_task(task_id, "update_content")
    item = checklist_service.add_item(task.id, json_body().get("title"))
    return jsonify(item.to_dict()), 201


@task_bp.route("/<task_id>/checklist/<item_id>", methods=["PATCH"])
def update_checklist_item(task_id, item_id):
    """Body: { title?, is_completed?, sort_order? }"""
    _, task = _authorized_task(task_id, "update_content")
    item = checklist_service.update_item(task.id, item_id, json_body())
    return jsonify(item.to_dict()), 200


@task_bp.route("/<task_id>/checklist/<item_id>", methods=["DELETE"])
def delete_checklist_item(task_id, item_id):
    _, task = _authorized_task(task_id, "update_content")
    checklist_service.delete_item(task.id, item_id)
    return "", 204


# ═════════════════════════════════════════════════════════════════════════
# Comments
# ═════════════════════════════════════════════════════════════════════════


@task_bp.route("/<task_id>/comments", methods=["GET"])
def list_comments(task_id):
    _, task = _authorized_task(task_id, "read")
    return jsonify([c.to_dict() for c in comment_service.list_comments(task.id)]), 200


@task_bp.route("/<task_id>/comments", methods=["POST"])
def add_comment(task_id):
    """Body: { content }"""
    user, task = _authorized_task(task_id, "update_content")
    comment = comment_service.add_comment(task.id, user.id, json_body().get("content"))
    return jsonify(comment.to_dict()), 201


# ═════════════════════════════════════════════════════════════════════════
# External sync
# ═════════════════════════════════════════════════════════════════════════


@task_bp.route("/<task_id>/sync-calendar", methods=["POST"])
def sync_calendar(task_id):
    """Returns: { ok, external_id, error } — 502 when the calendar call failed."""
    user, task = _authorized_task(task_id, "update_content")
    result = sync_service.sync_task_to_calendar(task.id, user.external_id)
    return jsonify(result.to_dict()), 200 if result.ok else 502


@task_bp.route("/<task_id>/sync-todo", methods=["POST"])
def sync_todo(task_id):
    """Returns: { ok, external_id, error } — 502 when the To Do call failed."""
    user, task = _authorized_task(task_id, "update_content")
    result = sync_service.sync_task_to_todo(task.id, user.external_id)
    return jsonify(result.to_dict()), 200 if result.ok else 502
