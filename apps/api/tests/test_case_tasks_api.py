from __future__ import annotations

import uuid
from collections.abc import Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from casework import audit
from casework.cases.models import Case
from casework.cases.status import CaseStatus
from casework.core.auth import issue_token
from casework.core.database import Base, get_db
from casework.main import app


SALES = ("gm-1", ["sales_general_manager"])
HEAD = ("head-1", ["site_engineer"])
ENGINEER = ("eng-1", ["site_engineer"])
SECOND_ENGINEER = ("eng-2", ["site_engineer"])
CLIENT = ("client-1", ["client"])


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clear_audit() -> Generator[None, None, None]:
    audit.audit_entries.clear()
    yield
    audit.audit_entries.clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _headers(actor: tuple[str, list[str]]) -> dict[str, str]:
    sub, roles = actor
    return {"authorization": f"Bearer {issue_token(sub, roles)}", "x-tenant-id": "tenant-a"}


def _create_case(client: TestClient, title: str = "Villa interiors") -> str:
    created = client.post(
        "/api/cases",
        json={"tenant_id": "tenant-a", "organization_id": "org-1", "title": title, "client_name": "R. Menon"},
        headers=_headers(SALES),
    )
    assert created.status_code == 201
    case_id = created.json()["id"]
    team = client.post(
        f"/api/cases/{case_id}/team",
        json={"project_head_id": "head-1", "client_id": "client-1"},
        headers=_headers(SALES),
    )
    assert team.status_code == 200
    return case_id


def _create_task(client: TestClient, case_id: str, assignee: str = "eng-1", task_type: str = "site_visit") -> dict:
    response = client.post(
        f"/api/cases/{case_id}/tasks",
        json={"task_type": task_type, "assigned_to": assignee, "notes": "Measure the kitchen"},
        headers=_headers(SALES),
    )
    assert response.status_code == 201
    return response.json()


def _set_status(client: TestClient, task_id: str, actor: tuple[str, list[str]], status: str, **extra: object):
    return client.post(f"/api/tasks/{task_id}/status", json={"status": status, **extra}, headers=_headers(actor))


def _notification_kinds(client: TestClient, actor: tuple[str, list[str]]) -> list[str]:
    response = client.get("/api/notifications", headers=_headers(actor))
    assert response.status_code == 200
    return [item["kind"] for item in response.json()]


def test_create_task_assigns_and_notifies(client: TestClient) -> None:
    case_id = _create_case(client)
    task = _create_task(client, case_id)

    assert task["status"] == "pending"
    assert task["task_type"] == "site_visit"
    assert task["assigned_to"] == "eng-1"
    assert task["assigned_by"] == "gm-1"
    assert task["started_at"] is None

    assert _notification_kinds(client, ENGINEER) == ["task.assigned"]

    activities = client.get(f"/api/cases/{case_id}/activities", headers=_headers(SALES)).json()
    created = next(item for item in activities if item["action"] == "tasks.created")
    assert created["details"] == {"task_id": task["id"], "assigned_to": "eng-1"}

    by_head = client.post(
        f"/api/cases/{case_id}/tasks",
        json={"task_type": "execution", "assigned_to": "eng-2"},
        headers=_headers(HEAD),
    )
    assert by_head.status_code == 201


def test_create_task_rejections(client: TestClient) -> None:
    case_id = _create_case(client)
    url = f"/api/cases/{case_id}/tasks"

    assert client.post(url, json={"task_type": "drawing", "assigned_to": "eng-2"}, headers=_headers(ENGINEER)).status_code == 403
    assert client.post(url, json={"task_type": "drawing", "assigned_to": "eng-2"}, headers=_headers(CLIENT)).status_code == 403
    assert client.post(url, json={"task_type": "painting", "assigned_to": "eng-2"}, headers=_headers(SALES)).status_code == 422
    assert client.post(url, json={"task_type": "drawing", "assigned_to": "   "}, headers=_headers(SALES)).status_code == 422

    missing_case = client.post(
        f"/api/cases/{uuid.uuid4()}/tasks",
        json={"task_type": "drawing", "assigned_to": "eng-2"},
        headers=_headers(SALES),
    )
    assert missing_case.status_code == 404


def test_status_flow_from_pending_to_acknowledged(client: TestClient) -> None:
    case_id = _create_case(client)
    task_id = _create_task(client, case_id)["id"]

    assert _set_status(client, task_id, SALES, "started").status_code == 403
    assert _set_status(client, task_id, ENGINEER, "acknowledged").status_code == 403
    assert _set_status(client, task_id, ENGINEER, "started", km_travelled="4").status_code == 422

    started = _set_status(client, task_id, ENGINEER, "started")
    assert started.status_code == 200
    assert started.json()["status"] == "started"
    assert started.json()["started_at"] is not None

    completed = _set_status(client, task_id, ENGINEER, "completed", km_travelled="12.5")
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"
    assert Decimal(completed.json()["km_travelled"]) == Decimal("12.5")
    assert completed.json()["completed_at"] is not None

    assert _set_status(client, task_id, ENGINEER, "started").status_code == 409
    assert "task.completed" in _notification_kinds(client, SALES)

    acknowledged = _set_status(client, task_id, SALES, "acknowledged")
    assert acknowledged.status_code == 200
    assert acknowledged.json()["acknowledged_at"] is not None
    assert _set_status(client, task_id, SALES, "acknowledged").status_code == 409

    activities = client.get(f"/api/cases/{case_id}/activities", headers=_headers(SALES)).json()
    moves = [item["details"]["to_status"] for item in activities if item["action"] == "tasks.status_changed"]
    assert sorted(moves) == ["acknowledged", "completed", "started"]


def test_pending_task_can_be_completed_directly(client: TestClient) -> None:
    case_id = _create_case(client)
    task_id = _create_task(client, case_id, task_type="boq")["id"]

    completed = _set_status(client, task_id, ENGINEER, "completed")
    assert completed.status_code == 200
    assert completed.json()["started_at"] is None
    assert completed.json()["completed_at"] is not None


def test_assigned_tasks_span_cases(client: TestClient) -> None:
    villa = _create_case(client, "Villa interiors")
    office = _create_case(client, "Office fit-out")
    first = _create_task(client, villa)
    _create_task(client, office, task_type="procurement")
    _create_task(client, office, assignee="eng-2")

    assigned = client.get("/api/tasks/assigned", headers=_headers(ENGINEER))
    assert assigned.status_code == 200
    assert {item["case_title"] for item in assigned.json()} == {"Villa interiors", "Office fit-out"}
    assert {item["client_name"] for item in assigned.json()} == {"R. Menon"}

    _set_status(client, first["id"], ENGINEER, "completed")
    open_tasks = client.get("/api/tasks/assigned", params={"open_only": "true"}, headers=_headers(ENGINEER)).json()
    assert [item["task_type"] for item in open_tasks] == ["procurement"]

    by_status = client.get(f"/api/cases/{villa}/tasks", params={"status": "completed"}, headers=_headers(CLIENT))
    assert by_status.status_code == 200
    assert [item["id"] for item in by_status.json()] == [first["id"]]

    by_type = client.get(f"/api/cases/{office}/tasks", params={"task_type": "site_visit"}, headers=_headers(SALES))
    assert [item["assigned_to"] for item in by_type.json()] == ["eng-2"]


def test_reassignment_moves_open_tasks_only(client: TestClient) -> None:
    case_id = _create_case(client)
    task_id = _create_task(client, case_id)["id"]
    _set_status(client, task_id, ENGINEER, "started")

    forbidden = client.put(f"/api/tasks/{task_id}/assignee", json={"assigned_to": "eng-2"}, headers=_headers(ENGINEER))
    assert forbidden.status_code == 403

    moved = client.put(f"/api/tasks/{task_id}/assignee", json={"assigned_to": "eng-2"}, headers=_headers(SALES))
    assert moved.status_code == 200
    assert moved.json()["assigned_to"] == "eng-2"
    assert moved.json()["status"] == "pending"
    assert _notification_kinds(client, SECOND_ENGINEER) == ["task.assigned"]

    assert _set_status(client, task_id, ENGINEER, "completed").status_code == 403
    assert _set_status(client, task_id, SECOND_ENGINEER, "completed").status_code == 200

    again = client.put(f"/api/tasks/{task_id}/assignee", json={"assigned_to": "eng-1"}, headers=_headers(SALES))
    assert again.status_code == 409
    assert client.put(f"/api/tasks/{uuid.uuid4()}/assignee", json={"assigned_to": "eng-1"}, headers=_headers(SALES)).status_code == 404


def test_completed_case_rejects_task_writes(client: TestClient, db_session: Session) -> None:
    case_id = _create_case(client)
    task_id = _create_task(client, case_id)["id"]

    case = db_session.get(Case, uuid.UUID(case_id))
    assert case is not None
    case.status = CaseStatus.COMPLETED.value
    db_session.commit()

    late = client.post(
        f"/api/cases/{case_id}/tasks",
        json={"task_type": "accounts", "assigned_to": "acc-1"},
        headers=_headers(SALES),
    )
    assert late.status_code == 409
    assert _set_status(client, task_id, ENGINEER, "started").status_code == 409
    assert client.put(f"/api/tasks/{task_id}/assignee", json={"assigned_to": "eng-2"}, headers=_headers(SALES)).status_code == 409

    listed = client.get(f"/api/cases/{case_id}/tasks", headers=_headers(SALES))
    assert listed.status_code == 200
    assert [item["status"] for item in listed.json()] == ["pending"]
