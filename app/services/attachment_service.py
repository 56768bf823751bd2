"""
Attachment Service — metadata rows for files attached to tasks.

Bytes go through the configured FileStorage; the row keeps only the
opaque locator. Ordering of side effects:

  upload   store bytes first; if that fails no row is written
  delete   try to delete bytes (failures logged), then always drop the row
"""

import logging
import mimetypes

from flask import current_app

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.project import Project
from app.models.task import Attachment, ProjectTask
from app.integrations.storage import StorageError, StoredFileNotFoundError, get_file_storage
from app.services.helpers.scoped_queries import get_or_raise

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 50 * 1024 * 1024  # 50 MB


def list_attachments(task_id: str) -> list[Attachment]:
    get_or_raise(ProjectTask, task_id, resource="Task")
    return (
        Attachment.query
        .filter_by(task_id=task_id)
        .order_by(Attachment.created_at.desc())
        .all()
    )


def get_attachment(attachment_id: str) -> Attachment:
    return get_or_raise(Attachment, attachment_id, resource="Attachment")


def upload(
    task_id: str,
    file_name: str,
    content: bytes,
    mime_type: str | None = None,
    owner_id: str | None = None,
    uploaded_by_id: str | None = None,
) -> Attachment:
    """Store *content* and record it against the task.

    Raises:
        NotFoundError: task missing.
        ValidationError: empty or oversized file, missing name.
        StorageError: the storage collaborator failed (no row is written).
    """
    task = get_or_raise(ProjectTask, task_id, resource="Task")
    file_name = (file_name or "").strip()
    if not file_name:
        raise ValidationError("file name is required", details={"file": "required"})
    if not content:
        raise ValidationError("file is empty", details={"file": "empty"})
    limit = current_app.config.get("MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES)
    if len(content) > limit:
        raise ValidationError(
            f"file exceeds the {limit // (1024 * 1024)} MB limit",
            details={"file": "too large"},
        )

    mime_type = mime_type or mimetypes.guess_type(file_name)[0] or "application/octet-stream"
    locator = get_file_storage().store(content, file_name, task.id, owner_id=owner_id, mime_type=mime_type)

    attachment = Attachment(
        task_id=task.id,
        file_name=file_name,
        file_url=locator,
        file_size=len(content),
        mime_type=mime_type,
        uploaded_by_id=uploaded_by_id,
    )
    db.session.add(attachment)
    db.session.commit()
    logger.info("Attachment stored id=%s task=%s size=%d", attachment.id, task.id, len(content))
    return attachment


def download(attachment_id: str, owner_id: str | None = None) -> tuple[Attachment, bytes]:
    """Return the attachment row with its bytes.

    Raises:
        NotFoundError: row missing, or the bytes are gone from storage.
    """
    attachment = get_attachment(attachment_id)
    try:
        content = get_file_storage().fetch(attachment.file_url, owner_id=owner_id)
    except StoredFileNotFoundError:
        logger.warning("Bytes missing for attachment=%s locator=%s", attachment.id, attachment.file_url)
        raise NotFoundError("File", attachment_id)
    return attachment, content


def delete(attachment_id: str, owner_id: str | None = None) -> None:
    """Remove an attachment; the row goes even if the bytes cannot be deleted."""
    attachment = get_attachment(attachment_id)
    discard_stored_files([attachment.file_url], owner_id=owner_id)
    db.session.delete(attachment)
    db.session.commit()


def discard_stored_files(locators, owner_id: str | None = None) -> int:
    """Best-effort removal of stored bytes. Returns how many deletes failed."""
    failures = 0
    storage = get_file_storage()
    for locator in locators:
        try:
            storage.delete(locator, owner_id=owner_id)
        except StorageError as exc:
            failures += 1
            logger.warning("Could not delete stored file %s: %s", locator, exc)
    return failures


def locators_for_project(project_id: str) -> list[str]:
    rows = (
        db.session.query(Attachment.file_url)
        .join(ProjectTask, ProjectTask.id == Attachment.task_id)
        .filter(ProjectTask.project_id == project_id)
        .all()
    )
    return [row.file_url for row in rows]


def locators_for_workspace(workspace_id: str) -> list[str]:
    rows = (
        db.session.query(Attachment.file_url)
        .join(ProjectTask, ProjectTask.id == Attachment.task_id)
        .join(Project, Project.id == ProjectTask.project_id)
        .filter(Project.workspace_id == workspace_id)
        .all()
    )
    return [row.file_url for row in rows]
