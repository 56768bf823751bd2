"""Checklist items on a task.

New items go to the end: their sort_order is one past the highest value
ever issued for that task (tracked in ``ProjectTask.checklist_seq``), so
orders stay strictly increasing even after the last item was deleted.
"""

import logging

from app.core.exceptions import ValidationError
from app.models import db
from app.models.base import utcnow
from app.models.task import ChecklistItem, ProjectTask
from app.services.helpers.scoped_queries import get_or_raise
from app.utils.helpers import parse_bool

logger = logging.getLogger(__name__)


def _get_task(task_id: str) -> ProjectTask:
    return get_or_raise(ProjectTask, task_id, resource="Task")


def list_items(task_id: str) -> list[ChecklistItem]:
    _get_task(task_id)
    return (
        ChecklistItem.query
        .filter_by(task_id=task_id)
        .order_by(ChecklistItem.sort_order.asc())
        .all()
    )


def add_item(task_id: str, title) -> ChecklistItem:
    task = _get_task(task_id)
    title = str(title or "").strip()
    if not title:
        raise ValidationError("title is required", details={"title": "required"})

    current_max = (
        db.session.query(db.func.max(ChecklistItem.sort_order))
        .filter(ChecklistItem.task_id == task.id)
        .scalar()
    )
    next_order = max(current_max or 0, task.checklist_seq or 0) + 1

    item = ChecklistItem(task_id=task.id, title=title, sort_order=next_order)
    task.checklist_seq = next_order
    task.updated_at = utcnow()
    db.session.add(item)
    db.session.commit()
    return item


def _parse_item_fields(data: dict) -> dict:
    # all-or-nothing: parsed before the item is touched
    values = {}
    if "title" in data:
        title = str(data.get("title") or "").strip()
        if not title:
            raise ValidationError("title cannot be blank", details={"title": "required"})
        values["title"] = title
    if "is_completed" in data:
        try:
            values["is_completed"] = parse_bool(data["is_completed"])
        except ValueError:
            raise ValidationError("is_completed must be true or false", details={"is_completed": "invalid"})
    if "sort_order" in data:
        raw = data["sort_order"]
        try:
            if isinstance(raw, bool):
                raise ValueError(raw)
            values["sort_order"] = int(raw)
        except (TypeError, ValueError):
            raise ValidationError("sort_order must be an integer", details={"sort_order": "invalid"})
    return values


def update_item(task_id: str, item_id: str, data: dict) -> ChecklistItem:
    task = _get_task(task_id)
    item = get_or_raise(ChecklistItem, item_id, resource="ChecklistItem", task_id=task.id)
    values = _parse_item_fields(data)

    for field, value in values.items():
        setattr(item, field, value)
    if "sort_order" in values:
        task.checklist_seq = max(task.checklist_seq or 0, values["sort_order"])
    task.updated_at = utcnow()
    db.session.commit()
    return item


def delete_item(task_id: str, item_id: str) -> None:
    task = _get_task(task_id)
    item = get_or_raise(ChecklistItem, item_id, resource="ChecklistItem", task_id=task.id)
    db.session.delete(item)
    task.updated_at = utcnow()
    db.session.commit()
