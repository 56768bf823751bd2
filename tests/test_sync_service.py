"""Calendar / To Do sync — all Graph calls mocked on the module-level gateway."""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest
import requests

from app.core.exceptions import ValidationError
from app.integrations.graph_gateway import GraphGatewayError, GraphNotConfiguredError
from app.models import db
from app.services import sync_service, task_service
from conftest import make_user

pytestmark = pytest.mark.unit

GW = "app.services.sync_service.graph_gateway"


@pytest.fixture()
def dated_task(project, owner):
    return task_service.create_task(project.id, owner.id, {
        "title": "Go-live",
        "description": "Cut over to production",
        "due_date": "2026-06-30T09:00:00Z",
        "priority": "urgent",
    })


@pytest.mark.parametrize("priority,importance", [
    ("urgent", "high"),
    ("high", "high"),
    ("medium", "normal"),
    ("low", "low"),
])
def test_todo_importance(priority, importance):
    assert sync_service.todo_importance(priority) == importance


def test_calendar_sync_creates_one_hour_event(dated_task, project):
    with patch(GW) as gateway:
        gateway.create_calendar_event.return_value = "evt-1"
        result = sync_service.sync_task_to_calendar(dated_task.id, "oid-1")

    assert result.ok is True
    assert result.external_id == "evt-1"
    kwargs = gateway.create_calendar_event.call_args.kwargs
    assert gateway.create_calendar_event.call_args.args == ("oid-1",)
    assert kwargs["subject"] == "[Nexus] Go-live"
    assert kwargs["start"] == datetime(2026, 6, 30, 9, 0, tzinfo=timezone.utc)
    assert kwargs["end"] == datetime(2026, 6, 30, 10, 0, tzinfo=timezone.utc)
    assert kwargs["reminder_minutes"] == 60
    assert f"Project: {project.name}" in kwargs["body"]
    db.session.refresh(dated_task)
    assert dated_task.calendar_event_id == "evt-1"


def test_calendar_sync_requires_due_date(project, owner):
    task = task_service.create_task(project.id, owner.id, {"title": "Undated"})

    with patch(GW) as gateway:
        with pytest.raises(ValidationError):
            sync_service.sync_task_to_calendar(task.id, "oid-1")

    gateway.create_calendar_event.assert_not_called()


@pytest.mark.parametrize("error", [
    GraphGatewayError("Create calendar event failed: HTTP 403", 403),
    GraphNotConfiguredError("not configured"),
    requests.ConnectionError("dns"),
])
def test_calendar_sync_failure_is_reported_not_raised(dated_task, error):
    with patch(GW) as gateway:
        gateway.create_calendar_event.side_effect = error
        result = sync_service.sync_task_to_calendar(dated_task.id, "oid-1")

    assert result.ok is False
    assert result.error
    db.session.refresh(dated_task)
    assert dated_task.calendar_event_id is None


def test_todo_sync_uses_named_list(dated_task):
    with patch(GW) as gateway:
        gateway.find_or_create_todo_list.return_value = "list-9"
        gateway.create_todo_task.return_value = "todo-3"
        result = sync_service.sync_task_to_todo(dated_task.id, "oid-1")

    assert result.to_dict() == {"ok": True, "external_id": "todo-3", "error": None}
    gateway.find_or_create_todo_list.assert_called_once_with("oid-1", "Nexus Project Hub")
    args, kwargs = gateway.create_todo_task.call_args
    assert args == ("oid-1", "list-9")
    assert kwargs["importance"] == "high"
    assert kwargs["title"] == "Go-live"
    db.session.refresh(dated_task)
    assert dated_task.todo_item_id == "todo-3"


def test_push_todo_is_off_by_default(dated_task):
    with patch(GW) as gateway:
        assert sync_service.push_todo_best_effort(dated_task) is None

    gateway.find_or_create_todo_list.assert_not_called()


def test_push_todo_when_enabled_and_assignee_signed_in(app, project, owner):
    assignee = make_user("amy@example.com", external_id="oid-amy")
    task = task_service.create_task(project.id, owner.id, {"title": "Assigned", "assignee_id": assignee.id})
    app.config["SYNC_TODO_ON_ASSIGN"] = True
    try:
        with patch(GW) as gateway:
            gateway.find_or_create_todo_list.return_value = "list-1"
            gateway.create_todo_task.return_value = "todo-1"
            result = sync_service.push_todo_best_effort(task)
    finally:
        app.config["SYNC_TODO_ON_ASSIGN"] = False

    assert result.ok is True
    gateway.find_or_create_todo_list.assert_called_once_with("oid-amy", "Nexus Project Hub")


def test_push_todo_skips_invited_assignee(app, project, owner):
    invited = make_user("new@example.com")
    task = task_service.create_task(project.id, owner.id, {"title": "Invitee", "assignee_id": invited.id})
    app.config["SYNC_TODO_ON_ASSIGN"] = True
    try:
        with patch(GW) as gateway:
            assert sync_service.push_todo_best_effort(task) is None
    finally:
        app.config["SYNC_TODO_ON_ASSIGN"] = False

    gateway.create_todo_task.assert_not_called()
