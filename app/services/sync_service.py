"""
Sync Service — push a task into the user's calendar or To Do list.

Every sync is best-effort: a Graph failure is logged and reported back in
a SyncResult, never raised, and leaves the task exactly as it was. On
success the external id is stored on the task so later views can link to it.
"""

import logging
from datetime import timedelta

import requests
from flask import current_app

from app.core.exceptions import ValidationError
from app.integrations.graph_gateway import GraphGatewayError, graph_gateway
from app.models import db
from app.models.base import as_utc
from app.models.task import ProjectTask
from app.services.helpers.scoped_queries import get_or_raise

logger = logging.getLogger(__name__)

EVENT_SUBJECT_PREFIX = "[Nexus]"
EVENT_DURATION = timedelta(hours=1)
EVENT_REMINDER_MINUTES = 60
TODO_LIST_NAME = "Nexus Project Hub"

_IMPORTANCE = {"urgent": "high", "high": "high", "medium": "normal"}


class SyncResult:
    """Outcome of one sync attempt."""

    def __init__(self, ok: bool, external_id: str | None = None, error: str | None = None) -> None:
        self.ok = ok
        self.external_id = external_id
        self.error = error

    def to_dict(self) -> dict:
        return {"ok": self.ok, "external_id": self.external_id, "error": self.error}


def todo_importance(priority: str) -> str:
    return _IMPORTANCE.get(priority, "low")


def _body_text(task: ProjectTask) -> str:
    lines = [task.description or "", f"Project: {task.project.name}"]
    return "\n\n".join(line for line in lines if line)


def sync_task_to_calendar(task_id: str, user_external_id: str) -> SyncResult:
    """Create a one-hour calendar event at the task's due date.

    Raises:
        NotFoundError: task missing.
        ValidationError: task has no due date, or caller has no identity.
    """
    task = get_or_raise(ProjectTask, task_id, resource="Task")
    if task.due_date is None:
        raise ValidationError("Task has no due date to schedule", details={"due_date": "required"})
    if not user_external_id:
        raise ValidationError("Calendar sync needs a signed-in user")

    start = as_utc(task.due_date)
    try:
        event_id = graph_gateway.create_calendar_event(
            user_external_id,
            subject=f"{EVENT_SUBJECT_PREFIX} {task.title}",
            body=_body_text(task),
            start=start,
            end=start + EVENT_DURATION,
            reminder_minutes=EVENT_REMINDER_MINUTES,
        )
    except (GraphGatewayError, requests.RequestException) as exc:
        logger.warning("Calendar sync failed task=%s: %s", task.id, exc)
        return SyncResult(ok=False, error=str(exc))

    task.calendar_event_id = event_id
    db.session.commit()
    logger.info("Task %s synced to calendar event=%s", task.id, event_id)
    return SyncResult(ok=True, external_id=event_id)


def sync_task_to_todo(task_id: str, user_external_id: str) -> SyncResult:
    """Create a To Do item for the task in the "Nexus Project Hub" list."""
    task = get_or_raise(ProjectTask, task_id, resource="Task")
    if not user_external_id:
        raise ValidationError("To Do sync needs a signed-in user")

    try:
        list_id = graph_gateway.find_or_create_todo_list(user_external_id, TODO_LIST_NAME)
        item_id = graph_gateway.create_todo_task(
            user_external_id,
            list_id,
            title=task.title,
            body=_body_text(task),
            due=as_utc(task.due_date),
            importance=todo_importance(task.priority),
        )
    except (GraphGatewayError, requests.RequestException) as exc:
        logger.warning("To Do sync failed task=%s: %s", task.id, exc)
        return SyncResult(ok=False, error=str(exc))

    task.todo_item_id = item_id
    db.session.commit()
    logger.info("Task %s synced to To Do item=%s", task.id, item_id)
    return SyncResult(ok=True, external_id=item_id)


def push_todo_best_effort(task: ProjectTask):
    """After a task is created with an assignee, mirror it into their To Do.

    Returns the SyncResult, or None when the push was not attempted.
    """
    if not current_app.config.get("SYNC_TODO_ON_ASSIGN"):
        return None
    assignee = task.assignee
    if assignee is None or not assignee.external_id:
        return None
    return sync_task_to_todo(task.id, assignee.external_id)
