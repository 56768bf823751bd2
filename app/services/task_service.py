"""
Task Service — the task hierarchy engine.

Tasks form a forest per project:
  - a task's parent, when present, lives in the same project
  - following parent links from any task terminates (no cycles)

Both rules are checked on create and on every re-parent, before anything
is written. Reads build the tree from one flat query grouped by parent_id,
so a project's whole hierarchy costs a single round-trip.

Status transitions are free: any status may follow any other.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from sqlalchemy import func
from sqlalchemy.orm import joinedload

from app.core.exceptions import ValidationError
from app.models import db
from app.models.auth import User
from app.models.base import new_id, utcnow
from app.models.project import Project
from app.models.task import (
    TASK_PRIORITIES,
    TASK_STATUSES,
    TASK_TYPES,
    Attachment,
    ProjectTask,
)
from app.services.helpers.scoped_queries import get_or_none, get_or_raise
from app.utils.helpers import parse_bool, parse_datetime, parse_enum, parse_number

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 500
# Upper bound on ancestor walks; a chain longer than this is treated as corrupt.
MAX_HIERARCHY_DEPTH = 100

_ENUM_FIELDS = (
    ("status", TASK_STATUSES, "todo"),
    ("priority", TASK_PRIORITIES, "medium"),
    ("type", TASK_TYPES, "task"),
)
_NULLABLE_TEXT_FIELDS = ("description",)
_HOUR_FIELDS = ("estimated_hours", "actual_hours")


# ── Lookups ──────────────────────────────────────────────────────────────────


def get_task(task_id: str) -> ProjectTask:
    return get_or_raise(ProjectTask, task_id, resource="Task")


def workspace_id_for_task(task: ProjectTask) -> str:
    return task.project.workspace_id


def _parent_map(project_id: str) -> dict[str, str | None]:
    rows = (
        db.session.query(ProjectTask.id, ProjectTask.parent_id)
        .filter(ProjectTask.project_id == project_id)
        .all()
    )
    return {row.id: row.parent_id for row in rows}


def _walk_up(start_id: str | None, parents: dict[str, str | None]):
    """Yield ids from *start_id* up to the root, guarding against loops."""
    visited = set()
    current = start_id
    while current is not None:
        if current in visited or len(visited) >= MAX_HIERARCHY_DEPTH:
            raise ValidationError(
                "Task hierarchy is too deep or cyclic",
                details={"parent_id": "hierarchy limit exceeded"},
            )
        visited.add(current)
        yield current
        current = parents.get(current)


def ancestor_ids(task_id: str) -> list[str]:
    """Parent chain of a task, nearest first (breadcrumbs)."""
    task = get_task(task_id)
    parents = _parent_map(task.project_id)
    return list(_walk_up(task.parent_id, parents))


# ── Validation ───────────────────────────────────────────────────────────────


def _resolve_parent(project_id: str, task_id: str, parent_id) -> str | None:
    """Validate a prospective parent for *task_id*; return the parent id.

    Raises:
        ValidationError: parent missing, in another project, the task
                         itself, or one of its descendants.
    """
    if parent_id in (None, ""):
        return None
    parent = get_or_none(ProjectTask, parent_id)
    if parent is None:
        raise ValidationError("Parent task not found", details={"parent_id": "not found"})
    if parent.project_id != project_id:
        raise ValidationError(
            "Parent task belongs to a different project",
            details={"parent_id": "must be in the same project"},
        )
    if parent.id == task_id:
        raise ValidationError("A task cannot be its own parent", details={"parent_id": "cycle"})

    parents = _parent_map(project_id)
    for ancestor in _walk_up(parent.id, parents):
        if ancestor == task_id:
            raise ValidationError(
                "Cannot move a task under one of its own subtasks",
                details={"parent_id": "cycle"},
            )
    return parent.id


def _validate_fields(data: dict, *, creating: bool) -> dict:
    """Validate the scalar fields present in *data*.

    Returns a dict of parsed values; nothing is applied here so a failure
    leaves the task untouched.
    """
    values = {}

    if creating or "title" in data:
        title = str(data.get("title") or "").strip()
        if not title:
            raise ValidationError("title is required", details={"title": "required"})
        if len(title) > TITLE_MAX_LENGTH:
            raise ValidationError(
                f"title must be at most {TITLE_MAX_LENGTH} characters",
                details={"title": "too long"},
            )
        values["title"] = title

    for field, allowed, default in _ENUM_FIELDS:
        raw = data.get(field)
        if field in data and not (creating and raw is None):
            parsed = parse_enum(raw, allowed)
            if parsed is None:
                raise ValidationError(
                    f"Invalid {field}: {raw!r}",
                    details={field: f"one of {', '.join(allowed)}"},
                )
            values[field] = parsed
        elif creating:
            values[field] = default

    for field in _NULLABLE_TEXT_FIELDS:
        if field in data:
            values[field] = data[field]

    if "due_date" in data:
        try:
            values["due_date"] = parse_datetime(data["due_date"])
        except (TypeError, ValueError):
            raise ValidationError("due_date must be an ISO date/time", details={"due_date": "invalid"})

    for field in _HOUR_FIELDS:
        if field in data:
            try:
                hours = parse_number(data[field])
            except (TypeError, ValueError):
                raise ValidationError(f"{field} must be a number", details={field: "invalid"})
            if hours is not None and hours < 0:
                raise ValidationError(f"{field} cannot be negative", details={field: "invalid"})
            values[field] = hours

    if "sort_order" in data and not (creating and data["sort_order"] is None):
        try:
            values["sort_order"] = int(data["sort_order"])
        except (TypeError, ValueError):
            raise ValidationError("sort_order must be an integer", details={"sort_order": "invalid"})

    if "is_milestone" in data:
        try:
            values["is_milestone"] = parse_bool(data["is_milestone"])
        except ValueError:
            raise ValidationError("is_milestone must be true or false", details={"is_milestone": "invalid"})

    if "assignee_id" in data:
        assignee_id = data["assignee_id"] or None
        if assignee_id is not None and get_or_none(User, assignee_id) is None:
            raise ValidationError("Assignee not found", details={"assignee_id": "not found"})
        values["assignee_id"] = assignee_id

    return values


def _next_sort_order(project_id: str, parent_id: str | None) -> int:
    query = db.session.query(func.max(ProjectTask.sort_order)).filter(
        ProjectTask.project_id == project_id
    )
    if parent_id is None:
        query = query.filter(ProjectTask.parent_id.is_(None))
    else:
        query = query.filter(ProjectTask.parent_id == parent_id)
    current = query.scalar()
    return 0 if current is None else current + 1


# ── Mutations ────────────────────────────────────────────────────────────────


def create_task(project_id: str, creator_id: str, data: dict) -> ProjectTask:
    """Create a task (root or subtask) in a project.

    Raises:
        NotFoundError: project missing.
        ValidationError: blank title, bad enum, unknown assignee, or a
                         parent that is missing or in another project.
    """
    project = get_or_raise(Project, project_id, resource="Project")
    values = _validate_fields(data, creating=True)

    task = ProjectTask(id=new_id(), project_id=project.id, creator_id=creator_id)
    parent_id = _resolve_parent(project.id, task.id, data.get("parent_id"))
    if "sort_order" not in values:
        values["sort_order"] = _next_sort_order(project.id, parent_id)

    for field, value in values.items():
        setattr(task, field, value)
    task.parent_id = parent_id
    now = utcnow()
    task.created_at = now
    task.updated_at = now

    db.session.add(task)
    db.session.commit()
    logger.info("Task created id=%s project=%s parent=%s", task.id, project.id, parent_id)
    return task


def update_task(task_id: str, data: dict) -> ProjectTask:
    """Field-level merge: keys absent from *data* keep their values.

    A present ``null`` clears nullable fields; ``parent_id: null`` moves
    the task to the root of its project.
    """
    task = get_task(task_id)
    values = _validate_fields(data, creating=False)
    if "parent_id" in data:
        values["parent_id"] = _resolve_parent(task.project_id, task.id, data["parent_id"])

    for field, value in values.items():
        setattr(task, field, value)
    task.updated_at = utcnow()
    db.session.commit()
    return task


def update_status(task_id: str, status) -> ProjectTask:
    """Set the status; updated_at advances even when the value is unchanged."""
    task = get_task(task_id)
    parsed = parse_enum(status, TASK_STATUSES)
    if parsed is None:
        raise ValidationError(
            f"Invalid status: {status!r}",
            details={"status": f"one of {', '.join(TASK_STATUSES)}"},
        )
    previous = task.status
    task.status = parsed
    task.updated_at = utcnow()
    db.session.commit()
    logger.debug("Task %s status %s -> %s", task.id, previous, parsed)
    return task


def subtree_ids(task: ProjectTask) -> list[str]:
    """The task and all of its descendants."""
    children = defaultdict(list)
    for child_id, parent_id in _parent_map(task.project_id).items():
        if parent_id is not None:
            children[parent_id].append(child_id)
    result, stack, seen = [], [task.id], set()
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        seen.add(current)
        result.append(current)
        stack.extend(children.get(current, ()))
    return result


def delete_task(task_id: str) -> list[str]:
    """Delete a task together with its whole subtree.

    Returns:
        Storage locators of every attachment removed with the subtree.
    """
    task = get_task(task_id)
    ids = subtree_ids(task)
    locators = [
        row.file_url
        for row in db.session.query(Attachment.file_url).filter(Attachment.task_id.in_(ids))
    ]
    db.session.delete(task)
    db.session.commit()
    logger.info("Task deleted id=%s (subtree=%d, attachments=%d)", task_id, len(ids), len(locators))
    return locators


# ── Reads ────────────────────────────────────────────────────────────────────


def _ordered_project_tasks(project_id: str):
    return (
        ProjectTask.query
        .options(joinedload(ProjectTask.assignee))
        .filter(ProjectTask.project_id == project_id)
        .order_by(ProjectTask.sort_order.asc(), ProjectTask.created_at.asc())
    )


def _task_with_assignee(task: ProjectTask) -> dict:
    d = task.to_dict()
    d["assignee"] = task.assignee.to_summary() if task.assignee else None
    return d


def list_task_tree(project_id: str) -> list[dict]:
    """Root tasks of a project, each with nested ``subtasks``."""
    get_or_raise(Project, project_id, resource="Project")
    tasks = _ordered_project_tasks(project_id).all()

    children = defaultdict(list)
    for task in tasks:
        children[task.parent_id].append(task)

    visited = set()

    def _build(task, depth):
        visited.add(task.id)
        node = _task_with_assignee(task)
        node["subtasks"] = [
            _build(child, depth + 1)
            for child in children.get(task.id, ())
            if child.id not in visited and depth < MAX_HIERARCHY_DEPTH
        ]
        return node

    return [_build(root, 0) for root in children.get(None, ())]


def list_tasks_flat(project_id: str, status=None, assignee_id: str | None = None) -> list[dict]:
    """All tasks of a project regardless of depth, optionally filtered."""
    get_or_raise(Project, project_id, resource="Project")
    query = _ordered_project_tasks(project_id)
    if status:
        parsed = parse_enum(status, TASK_STATUSES)
        if parsed is None:
            raise ValidationError(f"Invalid status filter: {status!r}", details={"status": "invalid"})
        query = query.filter(ProjectTask.status == parsed)
    if assignee_id:
        query = query.filter(ProjectTask.assignee_id == assignee_id)
    return [_task_with_assignee(t) for t in query.all()]


def task_detail(task: ProjectTask) -> dict:
    """Full view of one task: people, direct subtasks and owned rows."""
    d = _task_with_assignee(task)
    d["creator"] = task.creator.to_summary() if task.creator else None
    d["project_name"] = task.project.name
    d["subtasks"] = [_task_with_assignee(child) for child in task.subtasks]
    d["checklist"] = [item.to_dict() for item in task.checklist_items]
    d["comments"] = [c.to_dict() for c in task.comments]
    d["attachments"] = [
        a.to_dict()
        for a in sorted(task.attachments, key=lambda a: a.created_at, reverse=True)
    ]
    return d
