from datetime import date
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from issue_tracker.dependencies import auth as auth_deps
from issue_tracker.dependencies import issues as issue_deps
from issue_tracker.issues.models import Actor, DelayChange, DelayChangeKind, WorkOrder
from issue_tracker.issues.state import IssuePriority, IssueStatus
from issue_tracker.issues.store import (
    DELAY_PRIORITY_MESSAGE,
    BackendError,
    IssueNotFoundError,
    IssueValidationError,
    UnauthenticatedError,
)
from issue_tracker.main import create_app
from tests.factories import DummyBackend, make_delay, make_issue, make_note


@pytest.fixture
def issue_client():
    app = create_app()
    store = AsyncMock()
    store.loading = False
    repository = AsyncMock()
    actor = Actor(id="user-1", email="ana@planta.example")

    async def override_store():
        return store

    app.dependency_overrides[issue_deps.get_issue_store] = override_store
    app.dependency_overrides[issue_deps.get_issue_repository] = lambda: repository
    app.dependency_overrides[auth_deps.get_current_actor] = lambda: actor

    client = TestClient(app)
    try:
        yield client, store, repository
    finally:
        app.dependency_overrides.clear()


def test_list_issues_returns_joined_issues(issue_client):
    client, store, _ = issue_client
    issue = make_issue(
        priority=IssuePriority.HIGH,
        issue_notes=[make_note()],
        delay=make_delay(end=date(2024, 1, 5)),
    )
    store.load = AsyncMock(return_value=[issue])

    response = client.get("/issues", params=[("work_order_id", "wo-1"), ("work_order_id", "wo-2")])

    assert response.status_code == 200
    body = response.json()
    assert body["loading"] is False
    assert body["issues"][0]["id"] == "issue-1"
    assert body["issues"][0]["issue_notes"][0]["user_email"] == "ana@planta.example"
    assert body["issues"][0]["delay"] == {"start_date": "2024-01-01", "end_date": "2024-01-05"}
    store.load.assert_awaited_once_with(["wo-1", "wo-2"])


def test_list_issues_without_work_orders_is_empty(issue_client):
    client, store, _ = issue_client
    store.load = AsyncMock(return_value=[])

    response = client.get("/issues")

    assert response.status_code == 200
    assert response.json()["issues"] == []
    store.load.assert_awaited_once_with([])


def test_create_issue_returns_created(issue_client):
    client, store, _ = issue_client
    store.create_issue = AsyncMock(return_value=make_issue())

    response = client.post(
        "/issues",
        json={"work_order_id": "wo-1", "title": "Fuga en bomba", "priority": "HIGH", "notes": "Revisar"},
    )

    assert response.status_code == 201
    assert response.json()["id"] == "issue-1"
    draft = store.create_issue.await_args.args[0]
    assert draft.priority == IssuePriority.HIGH
    assert draft.notes == "Revisar"
    assert store.create_issue.await_args.kwargs["actor"].id == "user-1"


def test_create_issue_without_actor_is_unauthorized(issue_client):
    client, store, _ = issue_client
    store.create_issue = AsyncMock(side_effect=UnauthenticatedError("No authenticated user"))

    response = client.post("/issues", json={"work_order_id": "wo-1", "title": "Fuga"})

    assert response.status_code == 401


def test_create_issue_rejects_unknown_priority(issue_client):
    client, store, _ = issue_client
    store.create_issue = AsyncMock()

    response = client.post("/issues", json={"work_order_id": "wo-1", "title": "Fuga", "priority": "URGENT"})

    assert response.status_code == 422
    store.create_issue.assert_not_awaited()


def test_update_issue_builds_command(issue_client):
    client, store, _ = issue_client
    store.update_issue = AsyncMock(return_value=make_issue(status=IssueStatus.RESOLVED))

    response = client.patch(
        "/issues/issue-1",
        json={"status": "RESOLVED", "stage": None, "delay": {"start_date": "2024-01-01"}, "notes": "Listo"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "RESOLVED"
    issue_id, command = store.update_issue.await_args.args
    assert issue_id == "issue-1"
    assert command.field_changes == {"status": IssueStatus.RESOLVED, "stage": None}
    assert command.delay_change == DelayChange.set(date(2024, 1, 1))
    assert command.note == "Listo"


def test_update_with_null_delay_removes_it(issue_client):
    client, store, _ = issue_client
    store.update_issue = AsyncMock(return_value=None)

    response = client.patch("/issues/issue-1", json={"delay": None})

    assert response.status_code == 204
    command = store.update_issue.await_args.args[1]
    assert command.delay_change.kind == DelayChangeKind.REMOVE
    assert command.field_changes == {}


def test_update_with_empty_body_is_rejected(issue_client):
    client, store, _ = issue_client
    store.update_issue = AsyncMock()

    response = client.patch("/issues/issue-1", json={})

    assert response.status_code == 400
    store.update_issue.assert_not_awaited()


def test_update_with_null_title_is_rejected(issue_client):
    client, store, _ = issue_client
    store.update_issue = AsyncMock()

    response = client.patch("/issues/issue-1", json={"title": None})

    assert response.status_code == 422
    store.update_issue.assert_not_awaited()


def test_update_with_inverted_delay_is_rejected(issue_client):
    client, store, _ = issue_client
    store.update_issue = AsyncMock()

    response = client.patch(
        "/issues/issue-1",
        json={"delay": {"start_date": "2024-01-05", "end_date": "2024-01-01"}},
    )

    assert response.status_code == 422
    store.update_issue.assert_not_awaited()


@pytest.mark.parametrize(
    ("error", "status_code"),
    [
        (IssueNotFoundError("Issue not found"), 404),
        (IssueValidationError(DELAY_PRIORITY_MESSAGE), 422),
        (BackendError("Error updating issue: boom"), 502),
        (UnauthenticatedError("No authenticated user"), 401),
    ],
)
def test_update_maps_store_errors(issue_client, error, status_code):
    client, store, _ = issue_client
    store.update_issue = AsyncMock(side_effect=error)

    response = client.patch("/issues/issue-1", json={"title": "Nuevo"})

    assert response.status_code == status_code
    assert response.json()["detail"] == str(error)


def test_add_issue_note_returns_created(issue_client):
    client, store, _ = issue_client
    store.add_issue_note = AsyncMock(return_value=make_note("note-9", content="Cambio de junta"))

    response = client.post("/issues/issue-1/notes", json={"content": "Cambio de junta"})

    assert response.status_code == 201
    assert response.json()["id"] == "note-9"
    store.add_issue_note.assert_awaited_once()
    assert store.add_issue_note.await_args.args == ("issue-1", "Cambio de junta")


def test_add_issue_note_rejects_empty_content(issue_client):
    client, store, _ = issue_client
    store.add_issue_note = AsyncMock()

    response = client.post("/issues/issue-1/notes", json={"content": ""})

    assert response.status_code == 422
    store.add_issue_note.assert_not_awaited()


def test_list_work_orders_by_location(issue_client):
    client, _, repository = issue_client
    repository.list_work_orders = AsyncMock(
        return_value=[WorkOrder(id="wo-1", ot="1001", client="ACME", location="INCO")]
    )

    response = client.get("/work-orders", params={"location": "INCO"})

    assert response.status_code == 200
    assert response.json() == [{"id": "wo-1", "ot": "1001", "client": "ACME", "location": "INCO"}]
    repository.list_work_orders.assert_awaited_once_with(location="INCO")


@pytest.fixture
def backed_client():
    app = create_app()
    backend = DummyBackend()
    app.state.issue_repository = backend
    actor = Actor(id="user-1", email="ana@planta.example")
    app.dependency_overrides[auth_deps.get_current_actor] = lambda: actor

    client = TestClient(app)
    try:
        yield client, backend
    finally:
        app.dependency_overrides.clear()


def test_delay_only_patch_reloads_issue_work_order(backed_client):
    client, backend = backed_client
    issue = make_issue(priority=IssuePriority.HIGH)
    backend.get_issue = AsyncMock(return_value=issue)
    backend.get_priority = AsyncMock(return_value=IssuePriority.HIGH)
    backend.list_issues = AsyncMock(return_value=[issue])

    response = client.patch("/issues/issue-1", json={"delay": {"start_date": "2024-01-01"}})

    assert response.status_code == 204
    backend.insert_delay.assert_awaited_once_with(
        issue_id="issue-1", start_date=date(2024, 1, 1), end_date=None, created_by="user-1"
    )
    backend.list_issues.assert_awaited_once_with(["wo-1"])
    backend.list_delays.assert_awaited_once_with(["issue-1"])


def test_note_on_missing_issue_is_not_found(backed_client):
    client, backend = backed_client

    response = client.post("/issues/missing/notes", json={"content": "Hola"})

    assert response.status_code == 404
    assert response.json()["detail"] == "Issue not found"
    backend.insert_note.assert_not_awaited()

def test_issue_routes_answer_503_without_backend():
    app = create_app()
    client = TestClient(app)

    response = client.get("/issues", params={"work_order_id": "wo-1"})

    assert response.status_code == 503


def test_ping():
    client = TestClient(create_app())

    response = client.get("/ping")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_ping_database_reports_unavailable_backend():
    app = create_app()
    app.state.postgres = AsyncMock()
    app.state.postgres.test_connection = AsyncMock(side_effect=OSError("connection refused"))
    client = TestClient(app)

    response = client.get("/ping/database")

    assert response.status_code == 503
    assert "connection refused" in response.json()["detail"]
