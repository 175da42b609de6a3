from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from casework import audit, events
from casework.core.auth import AuthUser, get_current_user as auth_get_current_user
from casework.core.config import get_settings
from casework.core.database import Base, get_db
from casework.main import app


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
def clear_stubs() -> Generator[None, None, None]:
    audit.audit_entries.clear()
    events.published_events.clear()
    get_settings.cache_clear()
    yield
    audit.audit_entries.clear()
    events.published_events.clear()
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_auth_user() -> AuthUser:
        return AuthUser(sub="head-1", roles=["super_admin", "execution_team"])

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[auth_get_current_user] = override_auth_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _create_case(client: TestClient, correlation_id: str) -> dict:
    response = client.post(
        "/api/cases",
        json={"tenant_id": "tenant-a", "organization_id": "org-1", "title": "Corr Case", "client_name": "C"},
        headers={"X-Correlation-Id": correlation_id},
    )
    assert response.status_code == 201
    return response.json()


def test_generated_correlation_id_returned_in_header(client: TestClient) -> None:
    response = client.get(f"/api/cases/{uuid.uuid4()}")
    assert response.status_code == 404
    assert response.headers.get("x-correlation-id")


def test_correlation_id_respected_when_provided(client: TestClient) -> None:
    response = client.get(f"/api/cases/{uuid.uuid4()}", headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 404
    assert response.headers.get("x-correlation-id") == "abc-123"


def test_audit_uses_request_correlation_id(client: TestClient) -> None:
    _create_case(client, "corr-audit-1")

    case_audits = [entry for entry in audit.audit_entries if entry.get("entity_type") == "cases.case"]
    assert case_audits
    assert case_audits[-1]["correlation_id"] == "corr-audit-1"


def test_case_event_envelope_includes_correlation_id(client: TestClient) -> None:
    case = _create_case(client, "corr-setup-1")
    case_id = case["id"]
    assert client.post(f"/api/cases/{case_id}/team", json={"project_head_id": "head-1"}).status_code == 200
    assert client.post(f"/api/cases/{case_id}/status", json={"status": "WAITING_FOR_PLANNING"}).status_code == 200

    today = date.today()
    response = client.put(
        f"/api/cases/{case_id}/execution/plan",
        json={
            "start_date": today.isoformat(),
            "end_date": (today + timedelta(days=1)).isoformat(),
            "days": [{"day_date": today.isoformat(), "work_description": "Demolition", "labor_count": 4}],
        },
        headers={"X-Correlation-Id": "corr-event-1"},
    )
    assert response.status_code == 200

    submitted = [item for item in events.published_events if item.get("event_type") == "case.plan_submitted"]
    assert submitted
    assert submitted[-1].get("correlation_id") == "corr-event-1"
    assert submitted[-1].get("actor_user_id") == "head-1"
