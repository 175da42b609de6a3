from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

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
def configure_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("METRICS_ENABLED", "true")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_auth_user() -> AuthUser:
        return AuthUser(sub="metrics-admin", roles=["super_admin", "system.metrics.read"])

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[auth_get_current_user] = override_auth_user

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def test_metrics_endpoint_exposes_http_and_case_metrics(client: TestClient) -> None:
    health = client.get("/health")
    assert health.status_code == 200

    case = client.post(
        "/api/cases",
        json={"tenant_id": "tenant-a", "organization_id": "org-1", "title": "Metrics Villa", "client_name": "M"},
    )
    assert case.status_code == 201
    case_id = case.json()["id"]

    assert client.post(f"/api/cases/{case_id}/team", json={"project_head_id": "head-1"}).status_code == 200
    advanced = client.post(f"/api/cases/{case_id}/status", json={"status": "WAITING_FOR_PLANNING"})
    assert advanced.status_code == 200

    denied = client.put(f"/api/cases/{case_id}/execution/plan", json={})
    assert denied.status_code == 403

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    body = metrics.text

    assert "http_requests_total" in body
    assert "http_request_duration_seconds" in body
    assert "case_transitions_total" in body
    assert "capability_denied_total" in body

    assert 'path="/health"' in body
    assert 'path="/api/cases/{id}/status"' in body
    assert 'to_status="WAITING_FOR_PLANNING"' in body
    assert 'capability="execution.plan.submit"' in body


def test_metrics_endpoint_requires_permission(client: TestClient) -> None:
    app.dependency_overrides[auth_get_current_user] = lambda: AuthUser(sub="viewer", roles=["site_engineer"])

    response = client.get("/metrics")
    assert response.status_code == 403


def test_metrics_endpoint_hidden_when_disabled(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "false")
    get_settings.cache_clear()

    assert client.get("/metrics").status_code == 404
