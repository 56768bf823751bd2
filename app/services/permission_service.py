"""
Permission Service — workspace-role authorization gate.

Every mutating operation is checked against the caller's role in the
workspace that owns the target, before the store is touched.

Roles are totally ordered:
  owner > admin > member > viewer

Actions:
  read                    every role
  create / update_content member and above
  update_role             admin and above (also used for adding members)
  remove_member           admin and above
  manage_workspace        admin and above (workspace settings)
  delete_owner_protected  owner only (deleting a workspace)

Evaluation is deny-by-default: unknown roles and unknown actions are
refused, and a caller without a membership row is refused outright.
"""

import logging

from app.core.exceptions import PermissionDeniedError, ValidationError
from app.models import db
from app.models.auth import WORKSPACE_ROLES, WorkspaceMember
from app.utils.helpers import parse_enum

logger = logging.getLogger(__name__)

ROLE_RANK = {"viewer": 0, "member": 1, "admin": 2, "owner": 3}

ACTIONS = (
    "read",
    "create",
    "update_content",
    "update_role",
    "remove_member",
    "manage_workspace",
    "delete_owner_protected",
)

# Minimum role needed per action.
_MIN_ROLE = {
    "read": "viewer",
    "create": "member",
    "update_content": "member",
    "update_role": "admin",
    "remove_member": "admin",
    "manage_workspace": "admin",
    "delete_owner_protected": "owner",
}


def parse_role(value, default: str | None = "member") -> str | None:
    """Parse a role name case-insensitively.

    Unknown or empty input falls back to *default*; pass ``default=None``
    to detect invalid input instead.
    """
    role = parse_enum(value, WORKSPACE_ROLES)
    if role is None:
        if value not in (None, ""):
            logger.info("Unknown role %r, falling back to %r", value, default)
        return default
    return role


def role_rank(role: str | None) -> int:
    return ROLE_RANK.get(role, -1)


def can_perform(role: str | None, action: str) -> bool:
    """Pure role predicate — no store access."""
    minimum = _MIN_ROLE.get(action)
    if minimum is None or role not in ROLE_RANK:
        return False
    return role_rank(role) >= role_rank(minimum)


def get_member_role(user_id: str, workspace_id: str) -> str | None:
    membership = db.session.get(WorkspaceMember, (workspace_id, user_id))
    return membership.role if membership else None


def authorize(user_id: str, workspace_id: str, action: str) -> str:
    """Check the caller may perform *action* in *workspace_id*.

    Returns:
        The caller's role, so callers can apply follow-up rules.

    Raises:
        PermissionDeniedError: not a member, or role too low.
    """
    role = get_member_role(user_id, workspace_id)
    if role is None:
        logger.info("Denied %s: user=%s is not a member of workspace=%s",
                    action, user_id, workspace_id)
        raise PermissionDeniedError(action, None, workspace_id)
    if not can_perform(role, action):
        logger.info("Denied %s: user=%s role=%s workspace=%s",
                    action, user_id, role, workspace_id)
        raise PermissionDeniedError(action, role, workspace_id)
    return role


def check_role_change(requester_role: str, current_role: str, new_role: str) -> None:
    """Reject role changes that would escalate beyond the requester.

    A requester may neither grant a role above their own nor touch a
    member who outranks them.
    """
    if role_rank(new_role) > role_rank(requester_role):
        raise PermissionDeniedError("update_role", requester_role)
    if role_rank(current_role) > role_rank(requester_role):
        raise PermissionDeniedError("update_role", requester_role)


def check_grant(requester_role: str, new_role: str) -> None:
    """Adding a member may not hand out a role above the requester's."""
    if role_rank(new_role) > role_rank(requester_role):
        raise PermissionDeniedError("update_role", requester_role)


def ensure_owner_remains(workspace_id: str, user_id: str, new_role: str) -> None:
    """Refuse to demote the last remaining owner of a workspace."""
    if new_role == "owner":
        return
    owners = (
        WorkspaceMember.query
        .filter_by(workspace_id=workspace_id, role="owner")
        .with_entities(WorkspaceMember.user_id)
        .all()
    )
    owner_ids = {row.user_id for row in owners}
    if owner_ids == {user_id}:
        raise ValidationError(
            "Cannot demote the last workspace owner",
            details={"role": "workspace must keep at least one owner"},
        )
