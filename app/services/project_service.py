"""Project CRUD service, scoped to a workspace."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from app.core.exceptions import ValidationError
from app.models import db
from app.models.auth import Workspace
from app.models.base import utcnow
from app.models.project import PROJECT_STATUSES, Project
from app.services.helpers.scoped_queries import get_or_raise
from app.utils.helpers import parse_date, parse_enum

logger = logging.getLogger(__name__)


def list_projects(workspace_id: str) -> list[Project]:
    """Projects of a workspace, most recently updated first."""
    get_or_raise(Workspace, workspace_id, resource="Workspace")
    return (
        Project.query
        .filter(Project.workspace_id == workspace_id)
        .order_by(Project.updated_at.desc(), Project.created_at.desc())
        .all()
    )


def get_project(project_id: str) -> Project:
    return get_or_raise(Project, project_id, resource="Project")


def _parse_budget(value):
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("budget must be a number", details={"budget": "invalid"})


def _parse_status(value):
    status = parse_enum(value, PROJECT_STATUSES)
    if status is None:
        raise ValidationError(f"Invalid project status: {value!r}", details={"status": "invalid"})
    return status


def _parse_dates(data: dict) -> dict:
    parsed = {}
    for field in ("start_date", "target_date"):
        if field in data:
            raw = data[field]
            value = parse_date(raw)
            if raw not in (None, "") and value is None:
                raise ValidationError(f"{field} must be a date", details={field: "invalid"})
            parsed[field] = value
    return parsed


def create_project(*, workspace_id: str, data: dict) -> Project:
    """Create a project inside a workspace."""
    get_or_raise(Workspace, workspace_id, resource="Workspace")
    name = str(data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    status = _parse_status(data["status"]) if data.get("status") else "active"
    dates = _parse_dates(data)
    budget = _parse_budget(data.get("budget"))

    project = Project(
        workspace_id=workspace_id,
        name=name,
        description=data.get("description"),
        status=status,
        budget=budget,
        **dates,
    )
    db.session.add(project)
    db.session.commit()
    logger.info("Project created id=%s workspace=%s", project.id, workspace_id)
    return project


def update_project(project_id: str, data: dict) -> Project:
    """Sparse update; only keys present in *data* change."""
    project = get_project(project_id)

    if "name" in data:
        name = str(data.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be blank", details={"name": "required"})
        data = {**data, "name": name}
    if "status" in data:
        data = {**data, "status": _parse_status(data.get("status"))}
    if "budget" in data:
        data = {**data, "budget": _parse_budget(data.get("budget"))}
    data = {**data, **_parse_dates(data)}

    for field in ("name", "description", "status", "start_date", "target_date", "budget"):
        if field in data:
            setattr(project, field, data[field])
    project.updated_at = utcnow()
    db.session.commit()
    return project


def delete_project(project_id: str) -> list[str]:
    """Delete a project and its task forest.

    Returns:
        Storage locators of attachments removed with it.
    """
    from app.services.attachment_service import locators_for_project

    project = get_project(project_id)
    locators = locators_for_project(project.id)
    db.session.delete(project)
    db.session.commit()
    logger.info("Project deleted id=%s (attachments=%d)", project_id, len(locators))
    return locators
