"""
Workload Service — per-member task counts for a workspace.

Only tasks of the workspace's own projects are counted. Buckets:
  total         every task assigned to the member
  todo          status todo
  in_progress   status in_progress
  done          status done
  overdue       due before now and not done (in_review and cancelled included)

``now`` is read once per call (UTC); nothing is cached.
"""

import logging
from datetime import datetime, timezone

from app.models import db
from app.models.auth import Workspace
from app.models.base import as_utc
from app.models.project import Project
from app.models.task import ProjectTask
from app.services.helpers.scoped_queries import get_or_raise
from app.services.membership_service import list_members

logger = logging.getLogger(__name__)

CLOSED_STATUS = "done"


def _empty_bucket(member) -> dict:
    return {
        "user_id": member.user_id,
        "display_name": member.user.display_name,
        "email": member.user.email,
        "avatar_url": member.user.avatar_url,
        "role": member.role,
        "total_tasks": 0,
        "todo_tasks": 0,
        "in_progress_tasks": 0,
        "done_tasks": 0,
        "overdue_tasks": 0,
    }


def get_workload(workspace_id: str, now: datetime | None = None) -> list[dict]:
    """Return one workload row per workspace member."""
    get_or_raise(Workspace, workspace_id, resource="Workspace")
    now = as_utc(now) if now else datetime.now(timezone.utc)

    members = list_members(workspace_id)
    buckets = {m.user_id: _empty_bucket(m) for m in members}
    if not buckets:
        return []

    rows = (
        db.session.query(ProjectTask.assignee_id, ProjectTask.status, ProjectTask.due_date)
        .join(Project, Project.id == ProjectTask.project_id)
        .filter(
            Project.workspace_id == workspace_id,
            ProjectTask.assignee_id.in_(list(buckets)),
        )
        .all()
    )

    for assignee_id, status, due_date in rows:
        bucket = buckets[assignee_id]
        bucket["total_tasks"] += 1
        if status == "todo":
            bucket["todo_tasks"] += 1
        elif status == "in_progress":
            bucket["in_progress_tasks"] += 1
        elif status == "done":
            bucket["done_tasks"] += 1
        if due_date is not None and status != CLOSED_STATUS and as_utc(due_date) < now:
            bucket["overdue_tasks"] += 1

    return list(buckets.values())
