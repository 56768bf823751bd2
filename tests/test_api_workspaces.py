"""
Tests: HTTP surface for identity, workspaces, members and workload.

    1. Authentication — missing / bad / expired tokens, health stays open
    2. Workspaces — create (caller becomes owner), read, update, delete
    3. Members — invite, role changes, owner protection, directory
    4. Workload — per-member counts
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from app.models import db
from app.models.auth import User, Workspace

pytestmark = pytest.mark.integration


def _create_workspace(client, headers, name="Acme", **extra):
    res = client.post("/api/v1/workspaces", json={"name": name, **extra}, headers=headers)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


def _invite(client, headers, workspace_id, email, role="member"):
    res = client.post(
        "/api/v1/members",
        json={"workspace_id": workspace_id, "email": email, "role": role},
        headers=headers,
    )
    assert res.status_code == 201, res.get_json()
    return res.get_json()


# ── 1. Authentication ────────────────────────────────────────────────────────


def test_health_needs_no_token(client):
    res = client.get("/api/v1/health")

    assert res.status_code == 200
    assert res.get_json() == {"status": "ok", "app": "Nexus Project Hub"}


def test_liveness_reports_dependencies(client):
    res = client.get("/api/v1/health/live")

    assert res.status_code == 200
    checks = res.get_json()["checks"]
    assert checks["database"]["status"] == "ok"
    assert checks["storage"] == {"status": "ok", "provider": "local"}
    assert checks["graph"] == {"status": "not_configured"}


def test_missing_token_is_401(client):
    res = client.get("/api/v1/me")

    assert res.status_code == 401
    assert res.get_json()["error"] == "Missing bearer token"


def test_forged_token_is_401(client):
    token = jwt.encode({"oid": "x"}, "wrong-secret", algorithm="HS256")

    res = client.get("/api/v1/workspaces", headers={"Authorization": f"Bearer {token}"})

    assert res.status_code == 401
    assert res.get_json()["error"] == "Invalid token"


def test_expired_token_is_401(app, client):
    token = jwt.encode(
        {"oid": "x", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        app.config["IDENTITY_TOKEN_SECRET"],
        algorithm="HS256",
    )

    res = client.get("/api/v1/me", headers={"Authorization": f"Bearer {token}"})

    assert res.status_code == 401
    assert res.get_json()["error"] == "Token expired"


def test_me_resolves_user_on_first_call(client, auth_headers):
    res = client.get("/api/v1/me", headers=auth_headers())

    assert res.status_code == 200
    body = res.get_json()
    assert body["email"] == "owner@example.com"
    assert body["display_name"] == "Olivia Owner"
    assert body["workspaces"] == []
    assert User.query.filter_by(external_id="ext-owner").count() == 1


def test_response_carries_request_id(client):
    res = client.get("/api/v1/health/ready", headers={"X-Request-ID": "abc123"})

    assert res.headers["X-Request-ID"] == "abc123"
    assert "X-Request-Duration-Ms" in res.headers


# ── 2. Workspaces ────────────────────────────────────────────────────────────


def test_creator_becomes_owner(client, auth_headers):
    headers = auth_headers()
    ws = _create_workspace(client, headers, name="Acme Corp")

    assert ws["slug"] == "acme-corp"
    listed = client.get("/api/v1/workspaces", headers=headers).get_json()
    assert [(w["id"], w["role"]) for w in listed] == [(ws["id"], "owner")]
    detail = client.get(f"/api/v1/workspaces/{ws['id']}", headers=headers).get_json()
    assert detail["role"] == "owner"


def test_duplicate_slug_conflicts(client, auth_headers):
    headers = auth_headers()
    _create_workspace(client, headers, name="Acme")

    res = client.post("/api/v1/workspaces", json={"name": "ACME"}, headers=headers)

    assert res.status_code == 409


def test_workspace_requires_name(client, auth_headers):
    res = client.post("/api/v1/workspaces", json={}, headers=auth_headers())

    assert res.status_code == 400
    assert res.get_json()["details"] == {"name": "required"}


def test_non_member_cannot_read_workspace(client, auth_headers):
    ws = _create_workspace(client, auth_headers())

    res = client.get(f"/api/v1/workspaces/{ws['id']}", headers=auth_headers("ext-eve", "eve@example.com", "Eve"))

    assert res.status_code == 403


def test_admin_may_update_but_not_delete(client, auth_headers):
    owner_h = auth_headers()
    ws = _create_workspace(client, owner_h)
    _invite(client, owner_h, ws["id"], "ada@example.com", role="admin")
    admin_h = auth_headers("ext-ada", "ada@example.com", "Ada")

    res = client.put(f"/api/v1/workspaces/{ws['id']}", json={"description": "Ours"}, headers=admin_h)
    assert res.status_code == 200
    assert res.get_json()["description"] == "Ours"

    res = client.delete(f"/api/v1/workspaces/{ws['id']}", headers=admin_h)
    assert res.status_code == 403


def test_owner_deletes_workspace_with_everything_in_it(client, auth_headers):
    headers = auth_headers()
    ws = _create_workspace(client, headers)
    project = client.post(
        "/api/v1/projects", json={"workspace_id": ws["id"], "name": "P"}, headers=headers,
    ).get_json()
    client.post("/api/v1/tasks", json={"project_id": project["id"], "title": "T"}, headers=headers)

    res = client.delete(f"/api/v1/workspaces/{ws['id']}", headers=headers)

    assert res.status_code == 204
    assert db.session.get(Workspace, ws["id"]) is None
    assert client.get(f"/api/v1/projects/{project['id']}", headers=headers).status_code == 404


# ── 3. Members ───────────────────────────────────────────────────────────────


def test_invite_creates_user_and_lists_member(client, auth_headers):
    headers = auth_headers()
    ws = _create_workspace(client, headers)

    member = _invite(client, headers, ws["id"], "Newbie@Example.com", role="Viewer")

    assert member["role"] == "viewer"
    assert member["display_name"] == "newbie"
    members = client.get(f"/api/v1/members?workspace_id={ws['id']}", headers=headers).get_json()
    assert {m["email"] for m in members} == {"owner@example.com", "newbie@example.com"}


def test_invited_user_claims_account_on_sign_in(client, auth_headers):
    headers = auth_headers()
    ws = _create_workspace(client, headers)
    invited = _invite(client, headers, ws["id"], "nia@example.com")

    me = client.get("/api/v1/me", headers=auth_headers("ext-nia", "nia@example.com", "Nia Long")).get_json()

    assert me["id"] == invited["user_id"]
    assert me["display_name"] == "Nia Long"
    assert me["workspaces"][0]["role"] == "member"


def test_duplicate_invite_conflicts(client, auth_headers):
    headers = auth_headers()
    ws = _create_workspace(client, headers)
    _invite(client, headers, ws["id"], "dup@example.com")

    res = client.post(
        "/api/v1/members", json={"workspace_id": ws["id"], "email": "dup@example.com"}, headers=headers,
    )

    assert res.status_code == 409


def test_member_cannot_invite(client, auth_headers):
    headers = auth_headers()
    ws = _create_workspace(client, headers)
    _invite(client, headers, ws["id"], "m@example.com")

    res = client.post(
        "/api/v1/members",
        json={"workspace_id": ws["id"], "email": "x@example.com"},
        headers=auth_headers("ext-m", "m@example.com", "M"),
    )

    assert res.status_code == 403


def test_admin_cannot_grant_owner(client, auth_headers):
    headers = auth_headers()
    ws = _create_workspace(client, headers)
    _invite(client, headers, ws["id"], "ada@example.com", role="admin")

    res = client.post(
        "/api/v1/members",
        json={"workspace_id": ws["id"], "email": "x@example.com", "role": "owner"},
        headers=auth_headers("ext-ada", "ada@example.com", "Ada"),
    )

    assert res.status_code == 403


def test_role_change_and_removal(client, auth_headers):
    headers = auth_headers()
    ws = _create_workspace(client, headers)
    member = _invite(client, headers, ws["id"], "r@example.com", role="viewer")

    res = client.put(
        f"/api/v1/members/{member['user_id']}/role",
        json={"workspace_id": ws["id"], "role": "member"},
        headers=headers,
    )
    assert res.status_code == 200
    assert res.get_json()["role"] == "member"

    res = client.delete(f"/api/v1/members/{member['user_id']}?workspace_id={ws['id']}", headers=headers)
    assert res.status_code == 204
    members = client.get(f"/api/v1/members?workspace_id={ws['id']}", headers=headers).get_json()
    assert len(members) == 1


def test_owner_cannot_be_removed_or_last_owner_demoted(client, auth_headers):
    headers = auth_headers()
    ws = _create_workspace(client, headers)
    me = client.get("/api/v1/me", headers=headers).get_json()

    res = client.delete(f"/api/v1/members/{me['id']}?workspace_id={ws['id']}", headers=headers)
    assert res.status_code == 400

    res = client.put(
        f"/api/v1/members/{me['id']}/role",
        json={"workspace_id": ws["id"], "role": "admin"},
        headers=headers,
    )
    assert res.status_code == 400


def test_invalid_role_on_update_is_400(client, auth_headers):
    headers = auth_headers()
    ws = _create_workspace(client, headers)
    member = _invite(client, headers, ws["id"], "r@example.com")

    res = client.put(
        f"/api/v1/members/{member['user_id']}/role",
        json={"workspace_id": ws["id"], "role": "emperor"},
        headers=headers,
    )

    assert res.status_code == 400


def test_user_directory_is_paginated(client, auth_headers):
    headers = auth_headers()
    ws = _create_workspace(client, headers)
    for i in range(3):
        _invite(client, headers, ws["id"], f"user{i}@example.com")

    body = client.get("/api/v1/members/users?limit=2", headers=headers).get_json()

    assert body["total"] == 4
    assert len(body["items"]) == 2


def test_members_list_requires_workspace_id(client, auth_headers):
    res = client.get("/api/v1/members", headers=auth_headers())

    assert res.status_code == 400


# ── 4. Workload ──────────────────────────────────────────────────────────────


def test_workload_counts_assigned_tasks(client, auth_headers):
    headers = auth_headers()
    ws = _create_workspace(client, headers)
    member = _invite(client, headers, ws["id"], "w@example.com")
    project = client.post(
        "/api/v1/projects", json={"workspace_id": ws["id"], "name": "P"}, headers=headers,
    ).get_json()
    yesterday = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    for status in ("todo", "in_progress", "done"):
        client.post("/api/v1/tasks", json={
            "project_id": project["id"],
            "title": f"Task {status}",
            "status": status,
            "assignee_id": member["user_id"],
            "due_date": yesterday,
        }, headers=headers)

    rows = client.get(f"/api/v1/members/workload?workspace_id={ws['id']}", headers=headers).get_json()
    row = next(r for r in rows if r["user_id"] == member["user_id"])

    assert (row["total_tasks"], row["todo_tasks"], row["in_progress_tasks"], row["done_tasks"]) == (3, 1, 1, 1)
    assert row["overdue_tasks"] == 2
