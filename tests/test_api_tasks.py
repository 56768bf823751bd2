"""
Tests: HTTP surface for projects, tasks, checklist, comments, files and sync.

Each test builds its own workspace through the API as the owner identity
from the ``auth_headers`` fixture; other identities are invited as needed.
"""

import io

import pytest

from app.models.task import Attachment, ProjectTask

pytestmark = pytest.mark.integration


@pytest.fixture()
def headers(auth_headers):
    return auth_headers()


@pytest.fixture()
def ws(client, headers):
    res = client.post("/api/v1/workspaces", json={"name": "Acme"}, headers=headers)
    assert res.status_code == 201
    return res.get_json()


@pytest.fixture()
def proj(client, headers, ws):
    res = client.post(
        "/api/v1/projects",
        json={"workspace_id": ws["id"], "name": "Website relaunch", "start_date": "2026-01-05", "budget": "1200.50"},
        headers=headers,
    )
    assert res.status_code == 201, res.get_json()
    return res.get_json()


@pytest.fixture()
def upload_folder(app, tmp_path):
    previous = app.config["UPLOAD_FOLDER"]
    app.config["UPLOAD_FOLDER"] = str(tmp_path)
    app.extensions.pop("file_storage", None)
    yield tmp_path
    app.config["UPLOAD_FOLDER"] = previous


def _create_task(client, headers, project_id, title, **extra):
    res = client.post("/api/v1/tasks", json={"project_id": project_id, "title": title, **extra}, headers=headers)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


def _member_headers(client, headers, auth_headers, ws, role, who="vera"):
    res = client.post(
        "/api/v1/members",
        json={"workspace_id": ws["id"], "email": f"{who}@example.com", "role": role},
        headers=headers,
    )
    assert res.status_code == 201
    return auth_headers(f"ext-{who}", f"{who}@example.com", who.title())


# ── Projects ─────────────────────────────────────────────────────────────────


def test_project_crud(client, headers, ws, proj):
    assert proj["status"] == "active"
    assert proj["start_date"] == "2026-01-05"
    assert proj["budget"] == 1200.5

    listed = client.get(f"/api/v1/projects?workspace_id={ws['id']}", headers=headers).get_json()
    assert [(p["id"], p["task_count"]) for p in listed] == [(proj["id"], 0)]

    res = client.put(f"/api/v1/projects/{proj['id']}", json={"status": "OnHold"}, headers=headers)
    assert res.status_code == 200
    assert res.get_json()["status"] == "on_hold"
    assert res.get_json()["name"] == "Website relaunch"

    assert client.delete(f"/api/v1/projects/{proj['id']}", headers=headers).status_code == 204
    assert client.get(f"/api/v1/projects/{proj['id']}", headers=headers).status_code == 404


def test_project_list_requires_workspace_id(client, headers):
    assert client.get("/api/v1/projects", headers=headers).status_code == 400


def test_project_invalid_fields_are_400(client, headers, ws):
    for payload in ({"name": ""}, {"name": "X", "status": "someday"}, {"name": "X", "budget": "lots"}):
        res = client.post("/api/v1/projects", json={"workspace_id": ws["id"], **payload}, headers=headers)
        assert res.status_code == 400, payload


def test_viewer_cannot_create_project(client, headers, auth_headers, ws):
    viewer = _member_headers(client, headers, auth_headers, ws, "viewer")

    res = client.post("/api/v1/projects", json={"workspace_id": ws["id"], "name": "Nope"}, headers=viewer)

    assert res.status_code == 403


def test_outsider_cannot_list_projects(client, ws, proj, auth_headers):
    outsider = auth_headers("ext-out", "out@example.com", "Out")

    res = client.get(f"/api/v1/projects?workspace_id={ws['id']}", headers=outsider)

    assert res.status_code == 403


# ── Tasks ────────────────────────────────────────────────────────────────────


def test_task_tree_flow(client, headers, proj):
    phase = _create_task(client, headers, proj["id"], "Phase 1", type="roadmap_phase")
    build = _create_task(client, headers, proj["id"], "Build", parent_id=phase["id"])
    _create_task(client, headers, proj["id"], "Test", parent_id=build["id"], priority="High")

    tree = client.get(f"/api/v1/tasks?project_id={proj['id']}", headers=headers).get_json()

    assert [n["title"] for n in tree] == ["Phase 1"]
    assert tree[0]["subtasks"][0]["title"] == "Build"
    assert tree[0]["subtasks"][0]["subtasks"][0]["priority"] == "high"

    flat = client.get(f"/api/v1/tasks?project_id={proj['id']}&view=flat", headers=headers).get_json()
    assert len(flat) == 3


def test_create_task_returns_detail(client, headers, proj):
    task = _create_task(client, headers, proj["id"], "Kickoff")

    assert task["creator"]["email"] == "owner@example.com"
    assert task["project_name"] == "Website relaunch"
    assert task["status"] == "todo"
    assert task["checklist"] == [] and task["comments"] == [] and task["attachments"] == []


def test_create_task_validation_errors(client, headers, proj):
    res = client.post("/api/v1/tasks", json={"project_id": proj["id"], "title": ""}, headers=headers)
    assert res.status_code == 400
    assert res.get_json()["details"] == {"title": "required"}

    res = client.post("/api/v1/tasks", json={"title": "No project"}, headers=headers)
    assert res.status_code == 400

    res = client.post("/api/v1/tasks", json={"project_id": "missing", "title": "X"}, headers=headers)
    assert res.status_code == 404


def test_cycle_through_api_is_400(client, headers, proj):
    a = _create_task(client, headers, proj["id"], "A")
    b = _create_task(client, headers, proj["id"], "B", parent_id=a["id"])

    res = client.put(f"/api/v1/tasks/{a['id']}", json={"parent_id": b["id"]}, headers=headers)

    assert res.status_code == 400
    assert res.get_json()["details"] == {"parent_id": "cycle"}


def test_update_and_status_patch(client, headers, proj):
    task = _create_task(client, headers, proj["id"], "Draft", description="v1")

    res = client.put(f"/api/v1/tasks/{task['id']}", json={"title": "Final"}, headers=headers)
    assert res.status_code == 200
    assert res.get_json()["title"] == "Final"
    assert res.get_json()["description"] == "v1"

    res = client.patch(f"/api/v1/tasks/{task['id']}/status", json={"status": "Done"}, headers=headers)
    assert res.status_code == 200
    assert res.get_json()["status"] == "done"

    res = client.patch(f"/api/v1/tasks/{task['id']}/status", json={"status": "todo"}, headers=headers)
    assert res.get_json()["status"] == "todo"

    res = client.patch(f"/api/v1/tasks/{task['id']}/status", json={"status": "wip"}, headers=headers)
    assert res.status_code == 400


def test_viewer_reads_but_cannot_write_tasks(client, headers, auth_headers, ws, proj):
    task = _create_task(client, headers, proj["id"], "Read only")
    viewer = _member_headers(client, headers, auth_headers, ws, "viewer")

    assert client.get(f"/api/v1/tasks/{task['id']}", headers=viewer).status_code == 200
    assert client.patch(
        f"/api/v1/tasks/{task['id']}/status", json={"status": "done"}, headers=viewer,
    ).status_code == 403
    assert client.delete(f"/api/v1/tasks/{task['id']}", headers=viewer).status_code == 403


def test_member_can_edit_tasks(client, headers, auth_headers, ws, proj):
    task = _create_task(client, headers, proj["id"], "Shared")
    member = _member_headers(client, headers, auth_headers, ws, "member", who="milo")

    res = client.patch(f"/api/v1/tasks/{task['id']}/status", json={"status": "in_progress"}, headers=member)

    assert res.status_code == 200


def test_delete_task_removes_subtree(client, headers, proj):
    root = _create_task(client, headers, proj["id"], "Root")
    child = _create_task(client, headers, proj["id"], "Child", parent_id=root["id"])
    _create_task(client, headers, proj["id"], "Grandchild", parent_id=child["id"])
    keep = _create_task(client, headers, proj["id"], "Keep")

    assert client.delete(f"/api/v1/tasks/{root['id']}", headers=headers).status_code == 204

    assert [t.id for t in ProjectTask.query.all()] == [keep["id"]]
    assert client.get(f"/api/v1/tasks/{child['id']}", headers=headers).status_code == 404


def test_ancestors_endpoint(client, headers, proj):
    a = _create_task(client, headers, proj["id"], "A")
    b = _create_task(client, headers, proj["id"], "B", parent_id=a["id"])
    c = _create_task(client, headers, proj["id"], "C", parent_id=b["id"])

    body = client.get(f"/api/v1/tasks/{c['id']}/ancestors", headers=headers).get_json()

    assert body == {"task_id": c["id"], "ancestor_ids": [b["id"], a["id"]]}


def test_non_json_body_is_415(client, headers, proj):
    res = client.post("/api/v1/tasks", data="title=x", content_type="text/plain", headers=headers)

    assert res.status_code == 415


# ── Checklist & comments ─────────────────────────────────────────────────────


def test_checklist_endpoints(client, headers, proj):
    task = _create_task(client, headers, proj["id"], "With checklist")
    base = f"/api/v1/tasks/{task['id']}/checklist"

    first = client.post(base, json={"title": "One"}, headers=headers).get_json()
    second = client.post(base, json={"title": "Two"}, headers=headers).get_json()
    assert client.delete(f"{base}/{second['id']}", headers=headers).status_code == 204
    third = client.post(base, json={"title": "Three"}, headers=headers).get_json()

    assert (first["sort_order"], second["sort_order"], third["sort_order"]) == (1, 2, 3)
    res = client.patch(f"{base}/{first['id']}", json={"is_completed": True}, headers=headers)
    assert res.get_json()["is_completed"] is True
    items = client.get(base, headers=headers).get_json()
    assert [i["title"] for i in items] == ["One", "Three"]


def test_comments_endpoints(client, headers, proj):
    task = _create_task(client, headers, proj["id"], "Discussed")
    base = f"/api/v1/tasks/{task['id']}/comments"

    res = client.post(base, json={"content": "Ship it"}, headers=headers)
    assert res.status_code == 201
    assert res.get_json()["author"]["email"] == "owner@example.com"

    assert client.post(base, json={"content": " "}, headers=headers).status_code == 400
    assert [c["content"] for c in client.get(base, headers=headers).get_json()] == ["Ship it"]


# ── Files ────────────────────────────────────────────────────────────────────


def test_upload_download_delete(client, headers, proj, upload_folder):
    task = _create_task(client, headers, proj["id"], "Has files")

    res = client.post(
        "/api/v1/files/upload",
        data={"task_id": task["id"], "file": (io.BytesIO(b"meeting notes"), "notes.txt")},
        headers=headers,
        content_type="multipart/form-data",
    )
    assert res.status_code == 201, res.get_json()
    attachment = res.get_json()
    assert attachment["file_name"] == "notes.txt"
    assert attachment["file_size"] == 13

    listed = client.get(f"/api/v1/files?task_id={task['id']}", headers=headers).get_json()
    assert [a["id"] for a in listed] == [attachment["id"]]

    res = client.get(f"/api/v1/files/download/{attachment['id']}", headers=headers)
    assert res.status_code == 200
    assert res.data == b"meeting notes"
    assert "attachment" in res.headers["Content-Disposition"]

    assert client.delete(f"/api/v1/files/{attachment['id']}", headers=headers).status_code == 204
    assert Attachment.query.count() == 0


def test_upload_without_file_is_400(client, headers, proj):
    task = _create_task(client, headers, proj["id"], "No file")

    res = client.post(
        "/api/v1/files/upload", data={"task_id": task["id"]}, headers=headers,
        content_type="multipart/form-data",
    )

    assert res.status_code == 400


def test_storage_failure_is_500_and_writes_nothing(client, headers, proj, app):
    from unittest.mock import MagicMock, patch

    from app.integrations.storage import StorageError

    task = _create_task(client, headers, proj["id"], "Broken disk")
    storage = MagicMock()
    storage.store.side_effect = StorageError("disk full")

    with patch("app.services.attachment_service.get_file_storage", return_value=storage):
        res = client.post(
            "/api/v1/files/upload",
            data={"task_id": task["id"], "file": (io.BytesIO(b"x"), "x.txt")},
            headers=headers,
            content_type="multipart/form-data",
        )

    assert res.status_code == 500
    assert res.get_json() == {"error": "File storage failure"}
    assert Attachment.query.count() == 0


def test_deleting_task_discards_stored_files(client, headers, proj, upload_folder):
    task = _create_task(client, headers, proj["id"], "Doomed")
    client.post(
        "/api/v1/files/upload",
        data={"task_id": task["id"], "file": (io.BytesIO(b"bytes"), "d.txt")},
        headers=headers,
        content_type="multipart/form-data",
    )
    assert any(upload_folder.rglob("*.txt"))

    assert client.delete(f"/api/v1/tasks/{task['id']}", headers=headers).status_code == 204

    assert not any(upload_folder.rglob("*.txt"))


# ── Sync ─────────────────────────────────────────────────────────────────────


def test_calendar_sync_without_graph_is_502(client, headers, proj):
    task = _create_task(client, headers, proj["id"], "Dated", due_date="2026-09-01")

    res = client.post(f"/api/v1/tasks/{task['id']}/sync-calendar", headers=headers)

    assert res.status_code == 502
    assert res.get_json()["ok"] is False
    assert client.get(f"/api/v1/tasks/{task['id']}", headers=headers).get_json()["calendar_event_id"] is None


def test_calendar_sync_without_due_date_is_400(client, headers, proj):
    task = _create_task(client, headers, proj["id"], "Undated")

    assert client.post(f"/api/v1/tasks/{task['id']}/sync-calendar", headers=headers).status_code == 400


def test_todo_sync_success(client, headers, proj):
    from unittest.mock import patch

    task = _create_task(client, headers, proj["id"], "Remind me")

    with patch("app.services.sync_service.graph_gateway") as gateway:
        gateway.find_or_create_todo_list.return_value = "list-1"
        gateway.create_todo_task.return_value = "todo-1"
        res = client.post(f"/api/v1/tasks/{task['id']}/sync-todo", headers=headers)

    assert res.status_code == 200
    assert res.get_json() == {"ok": True, "external_id": "todo-1", "error": None}
    gateway.find_or_create_todo_list.assert_called_once_with("ext-owner", "Nexus Project Hub")
