"""
Membership Service — who belongs to which workspace, with which role.

Adding a member by email creates the user opportunistically when the
address is unknown, so invitations work before the person ever signs in.
Owners can never be removed through this service.
"""

import logging

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.auth import User, Workspace, WorkspaceMember
from app.services import permission_service
from app.services.helpers.scoped_queries import get_or_raise

logger = logging.getLogger(__name__)


def list_members(workspace_id: str) -> list[WorkspaceMember]:
    get_or_raise(Workspace, workspace_id, resource="Workspace")
    return (
        WorkspaceMember.query
        .filter_by(workspace_id=workspace_id)
        .join(User, User.id == WorkspaceMember.user_id)
        .order_by(User.display_name.asc())
        .all()
    )


def users_query(search: str | None = None):
    """Users for assignee pickers, alphabetical, optionally filtered by name/email."""
    query = User.query
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            db.or_(db.func.lower(User.display_name).like(pattern), User.email.like(pattern))
        )
    return query.order_by(User.display_name.asc())


def list_users(limit: int = 100) -> list[User]:
    return users_query().limit(limit).all()


def get_membership(workspace_id: str, user_id: str) -> WorkspaceMember:
    membership = db.session.get(WorkspaceMember, (workspace_id, user_id))
    if membership is None:
        raise NotFoundError("WorkspaceMember", f"{workspace_id}/{user_id}")
    return membership


def add_member(
    workspace_id: str,
    email: str,
    role=None,
    display_name: str | None = None,
    external_id: str | None = None,
    requester_role: str | None = None,
) -> WorkspaceMember:
    """Add the user with *email* to the workspace.

    Unknown emails get a fresh user whose display name defaults to the
    local part of the address. An unparseable role falls back to member.

    Raises:
        NotFoundError: workspace missing.
        ValidationError: email missing.
        ConflictError: user already a member.
        PermissionDeniedError: requester tries to grant above their own role.
    """
    get_or_raise(Workspace, workspace_id, resource="Workspace")
    email = str(email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required", details={"email": "required"})

    parsed_role = permission_service.parse_role(role, default="member")
    if requester_role is not None:
        permission_service.check_grant(requester_role, parsed_role)

    user = User.query.filter_by(email=email).first()
    if user is None:
        user = User(
            email=email,
            display_name=(display_name or "").strip() or email.split("@")[0],
            external_id=external_id or None,
        )
        db.session.add(user)
        db.session.flush()
        logger.info("Created invited user=%s email=%s", user.id, email)
    elif db.session.get(WorkspaceMember, (workspace_id, user.id)) is not None:
        raise ConflictError("WorkspaceMember", "email", email)

    membership = WorkspaceMember(workspace_id=workspace_id, user_id=user.id, role=parsed_role)
    db.session.add(membership)
    db.session.commit()
    logger.info("Added user=%s to workspace=%s as %s", user.id, workspace_id, parsed_role)
    return membership


def update_role(workspace_id: str, user_id: str, role, requester_role: str | None = None) -> WorkspaceMember:
    """Change a member's role.

    Raises:
        NotFoundError: membership missing.
        ValidationError: unknown role, or demoting the last owner.
        PermissionDeniedError: escalation beyond the requester's own role.
    """
    membership = get_membership(workspace_id, user_id)
    new_role = permission_service.parse_role(role, default=None)
    if new_role is None:
        raise ValidationError(f"Invalid role: {role!r}", details={"role": "invalid"})

    if requester_role is not None:
        permission_service.check_role_change(requester_role, membership.role, new_role)
    if membership.role == "owner":
        permission_service.ensure_owner_remains(workspace_id, user_id, new_role)

    membership.role = new_role
    db.session.commit()
    logger.info("Role of user=%s in workspace=%s set to %s", user_id, workspace_id, new_role)
    return membership


def remove_member(workspace_id: str, user_id: str) -> None:
    """Remove a non-owner member.

    Raises:
        NotFoundError: membership missing.
        ValidationError: target is an owner.
    """
    membership = get_membership(workspace_id, user_id)
    if membership.role == "owner":
        raise ValidationError("Cannot remove workspace owner", details={"role": "owner"})
    db.session.delete(membership)
    db.session.commit()
    logger.info("Removed user=%s from workspace=%s", user_id, workspace_id)
