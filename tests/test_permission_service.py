"""Authorization gate: role predicate, store-backed authorize, escalation guards."""

import pytest

from app.core.exceptions import PermissionDeniedError, ValidationError
from app.models import db
from app.services import permission_service
from conftest import add_membership, make_user, make_workspace

pytestmark = pytest.mark.unit


@pytest.mark.parametrize("role,action,allowed", [
    ("viewer", "read", True),
    ("viewer", "create", False),
    ("viewer", "update_content", False),
    ("member", "create", True),
    ("member", "update_content", True),
    ("member", "update_role", False),
    ("member", "remove_member", False),
    ("admin", "update_role", True),
    ("admin", "remove_member", True),
    ("admin", "manage_workspace", True),
    ("admin", "delete_owner_protected", False),
    ("owner", "delete_owner_protected", True),
    ("owner", "read", True),
])
def test_can_perform_matrix(role, action, allowed):
    assert permission_service.can_perform(role, action) is allowed


def test_can_perform_is_monotonic_in_role():
    roles = sorted(permission_service.ROLE_RANK, key=permission_service.role_rank)
    for action in permission_service.ACTIONS:
        granted = [permission_service.can_perform(r, action) for r in roles]
        # once a role may act, every higher role may too
        assert granted == sorted(granted)


@pytest.mark.parametrize("role,action", [
    (None, "read"),
    ("guest", "read"),
    ("owner", "launch_rockets"),
])
def test_unknown_roles_and_actions_are_denied(role, action):
    assert permission_service.can_perform(role, action) is False


@pytest.mark.parametrize("raw,expected", [
    ("Admin", "admin"),
    ("OWNER", "owner"),
    (" viewer ", "viewer"),
    ("superuser", "member"),
    (None, "member"),
])
def test_parse_role_falls_back_to_member(raw, expected):
    assert permission_service.parse_role(raw) == expected


def test_parse_role_without_default_reports_invalid():
    assert permission_service.parse_role("superuser", default=None) is None


def test_authorize_returns_role_for_member():
    user = make_user("mia@example.com")
    ws = make_workspace("alpha")
    add_membership(ws, user, "member")
    db.session.commit()

    assert permission_service.authorize(user.id, ws.id, "create") == "member"


def test_authorize_rejects_non_member():
    user = make_user("stranger@example.com")
    ws = make_workspace("alpha")
    db.session.commit()

    with pytest.raises(PermissionDeniedError) as exc:
        permission_service.authorize(user.id, ws.id, "read")

    assert exc.value.role is None


def test_authorize_rejects_insufficient_role():
    user = make_user("vic@example.com")
    ws = make_workspace("alpha")
    add_membership(ws, user, "viewer")
    db.session.commit()

    with pytest.raises(PermissionDeniedError) as exc:
        permission_service.authorize(user.id, ws.id, "update_content")

    assert exc.value.role == "viewer"


def test_membership_in_one_workspace_grants_nothing_in_another():
    user = make_user("ana@example.com")
    home = make_workspace("home")
    away = make_workspace("away")
    add_membership(home, user, "owner")
    db.session.commit()

    with pytest.raises(PermissionDeniedError):
        permission_service.authorize(user.id, away.id, "read")


def test_role_change_cannot_escalate_beyond_requester():
    with pytest.raises(PermissionDeniedError):
        permission_service.check_role_change("admin", "member", "owner")
    with pytest.raises(PermissionDeniedError):
        permission_service.check_role_change("admin", "owner", "member")
    permission_service.check_role_change("admin", "viewer", "admin")
    permission_service.check_role_change("owner", "owner", "admin")


def test_check_grant():
    with pytest.raises(PermissionDeniedError):
        permission_service.check_grant("admin", "owner")
    permission_service.check_grant("owner", "owner")


def test_ensure_owner_remains():
    first = make_user("first@example.com")
    second = make_user("second@example.com")
    ws = make_workspace("alpha", owner=first)
    db.session.commit()

    with pytest.raises(ValidationError):
        permission_service.ensure_owner_remains(ws.id, first.id, "admin")

    add_membership(ws, second, "owner")
    db.session.commit()
    permission_service.ensure_owner_remains(ws.id, first.id, "admin")
