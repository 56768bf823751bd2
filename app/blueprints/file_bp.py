"""File blueprint — task attachments.

  GET    /api/v1/files?task_id=
  POST   /api/v1/files/upload          multipart: task_id, file
  GET    /api/v1/files/download/<id>
  DELETE /api/v1/files/<id>
"""

import io
import logging

from flask import Blueprint, jsonify, request, send_file

from app.blueprints import current_user, register_error_handlers
from app.core.exceptions import ValidationError
from app.services import attachment_service, permission_service, task_service

logger = logging.getLogger(__name__)

file_bp = Blueprint("file", __name__, url_prefix="/api/v1/files")
register_error_handlers(file_bp)


def _authorize_task(user, task_id, action):
    task = task_service.get_task(task_id)
    permission_service.authorize(user.id, task_service.workspace_id_for_task(task), action)
    return task


@file_bp.route("", methods=["GET"])
def list_files():
    task_id = request.args.get("task_id")
    if not task_id:
        raise ValidationError("task_id is required", details={"task_id": "required"})
    user = current_user()
    task = _authorize_task(user, task_id, "read")
    return jsonify([a.to_dict() for a in attachment_service.list_attachments(task.id)]), 200


@file_bp.route("/upload", methods=["POST"])
def upload_file():
    user = current_user()
    task_id = request.form.get("task_id")
    upload = request.files.get("file")
    if not task_id:
        raise ValidationError("task_id is required", details={"task_id": "required"})
    if upload is None:
        raise ValidationError("file is required", details={"file": "required"})
    task = _authorize_task(user, task_id, "update_content")

    attachment = attachment_service.upload(
        task.id,
        upload.filename,
        upload.read(),
        mime_type=upload.mimetype,
        owner_id=user.external_id,
        uploaded_by_id=user.id,
    )
    return jsonify(attachment.to_dict()), 201


@file_bp.route("/download/<attachment_id>", methods=["GET"])
def download_file(attachment_id):
    user = current_user()
    attachment = attachment_service.get_attachment(attachment_id)
    _authorize_task(user, attachment.task_id, "read")
    attachment, content = attachment_service.download(attachment.id, owner_id=user.external_id)
    return send_file(
        io.BytesIO(content),
        mimetype=attachment.mime_type or "application/octet-stream",
        as_attachment=True,
        download_name=attachment.file_name,
    )


@file_bp.route("/<attachment_id>", methods=["DELETE"])
def delete_file(attachment_id):
    user = current_user()
    attachment = attachment_service.get_attachment(attachment_id)
    _authorize_task(user, attachment.task_id, "update_content")
    attachment_service.delete(attachment.id, owner_id=user.external_id)
    return "", 204
