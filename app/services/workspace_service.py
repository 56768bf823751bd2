"""Workspace CRUD. The creator of a workspace becomes its owner."""

from __future__ import annotations

import logging
import re

from app.core.exceptions import ConflictError, ValidationError
from app.models import db
from app.models.auth import Workspace, WorkspaceMember
from app.models.base import utcnow
from app.services.helpers.scoped_queries import get_or_raise

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = (
    "name",
    "description",
    "logo_url",
    "teams_team_id",
    "teams_channel_id",
    "sharepoint_site_id",
    "sharepoint_folder_id",
)


def normalize_slug(value) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", str(value or "").strip().lower())
    return slug.strip("-")


def list_workspaces_for_user(user_id: str) -> list[dict]:
    rows = (
        db.session.query(Workspace, WorkspaceMember.role)
        .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.id)
        .filter(WorkspaceMember.user_id == user_id)
        .order_by(Workspace.name.asc())
        .all()
    )
    result = []
    for ws, role in rows:
        d = ws.to_dict()
        d["role"] = role
        result.append(d)
    return result


def get_workspace(workspace_id: str) -> Workspace:
    return get_or_raise(Workspace, workspace_id, resource="Workspace")


def create_workspace(*, owner_id: str, data: dict) -> Workspace:
    """Create a workspace and make *owner_id* its owner."""
    name = str(data.get("name") or "").strip()
    slug = normalize_slug(data.get("slug") or name)
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    if not slug:
        raise ValidationError("slug is required", details={"slug": "required"})
    if Workspace.query.filter_by(slug=slug).first() is not None:
        raise ConflictError("Workspace", "slug", slug)

    ws = Workspace(name=name, slug=slug)
    for field in _UPDATABLE_FIELDS[1:]:
        if field in data:
            setattr(ws, field, data[field])
    db.session.add(ws)
    db.session.flush()
    db.session.add(WorkspaceMember(workspace_id=ws.id, user_id=owner_id, role="owner"))
    db.session.commit()
    logger.info("Workspace created id=%s slug=%s owner=%s", ws.id, slug, owner_id)
    return ws


def update_workspace(workspace_id: str, data: dict) -> Workspace:
    ws = get_workspace(workspace_id)
    if "name" in data and not str(data.get("name") or "").strip():
        raise ValidationError("name cannot be blank", details={"name": "required"})
    if "slug" in data:
        slug = normalize_slug(data.get("slug"))
        if not slug:
            raise ValidationError("slug cannot be blank", details={"slug": "required"})
        clash = Workspace.query.filter(Workspace.slug == slug, Workspace.id != ws.id).first()
        if clash is not None:
            raise ConflictError("Workspace", "slug", slug)
        ws.slug = slug
    for field in _UPDATABLE_FIELDS:
        if field in data:
            value = data[field]
            setattr(ws, field, str(value).strip() if field == "name" else value)
    ws.updated_at = utcnow()
    db.session.commit()
    return ws


def delete_workspace(workspace_id: str) -> list[str]:
    """Delete a workspace with its projects and tasks.

    Returns:
        Storage locators of the attachments that went with it; the caller
        discards those bytes after the commit.
    """
    from app.services.attachment_service import locators_for_workspace

    ws = get_workspace(workspace_id)
    locators = locators_for_workspace(ws.id)
    db.session.delete(ws)
    db.session.commit()
    logger.info("Workspace deleted id=%s (attachments=%d)", workspace_id, len(locators))
    return locators


def get_or_create_default_workspace(owner_id: str | None = None) -> Workspace:
    """Used by the seed CLI: the "default" workspace every install starts with."""
    ws = Workspace.query.filter_by(slug="default").first()
    if ws is not None:
        return ws
    ws = Workspace(name="Default Workspace", slug="default")
    db.session.add(ws)
    db.session.flush()
    if owner_id:
        db.session.add(WorkspaceMember(workspace_id=ws.id, user_id=owner_id, role="owner"))
    db.session.commit()
    return ws
