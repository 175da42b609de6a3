from __future__ import annotations

import os
from collections.abc import Generator
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("OTEL_ENABLED", "true")

from casework.core.auth import issue_token
from casework.core.config import get_settings
from casework.core.database import Base, get_db
from casework.main import app
from casework.otel import setup_inmemory_otel


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
def setup_env() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel("api")
    exporter.clear()
    return exporter


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _headers(sub: str, role: str, correlation_id: str | None = None) -> dict[str, str]:
    headers = {"authorization": f"Bearer {issue_token(sub, [role])}", "x-tenant-id": "tenant-a"}
    if correlation_id:
        headers["X-Correlation-Id"] = correlation_id
    return headers


def test_request_span_contains_correlation_id(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.post(
        "/api/cases",
        json={"tenant_id": "tenant-a", "organization_id": "org-1", "title": "Span Case", "client_name": "S"},
        headers=_headers("gm-1", "sales_general_manager", "otel-corr-1"),
    )
    assert response.status_code == 201

    spans = span_exporter.get_finished_spans()
    assert spans
    assert any(span.attributes.get("correlation_id") == "otel-corr-1" for span in spans)


def test_activation_span_recorded_for_client_approval(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    sales = _headers("gm-1", "sales_general_manager")
    created = client.post(
        "/api/cases",
        json={"tenant_id": "tenant-a", "organization_id": "org-1", "title": "Span Villa", "client_name": "S"},
        headers=sales,
    )
    case_id = created.json()["id"]
    client.post(f"/api/cases/{case_id}/team", json={"project_head_id": "head-1", "client_id": "client-1"}, headers=sales)
    client.post(f"/api/cases/{case_id}/status", json={"status": "WAITING_FOR_PLANNING"}, headers=sales)

    today = date.today()
    submitted = client.put(
        f"/api/cases/{case_id}/execution/plan",
        json={
            "start_date": today.isoformat(),
            "end_date": (today + timedelta(days=3)).isoformat(),
            "days": [{"day_date": today.isoformat(), "work_description": "Tiling", "labor_count": 2}],
        },
        headers=_headers("head-1", "execution_team"),
    )
    assert submitted.status_code == 200
    assert client.post(f"/api/cases/{case_id}/execution/plan/approve/admin", headers=_headers("root", "super_admin")).status_code == 200
    span_exporter.clear()

    approved = client.post(
        f"/api/cases/{case_id}/execution/plan/approve/client",
        headers=_headers("client-1", "client", "otel-activation-1"),
    )
    assert approved.status_code == 200
    assert approved.json()["activated"] is True

    activation_spans = [span for span in span_exporter.get_finished_spans() if span.name == "execution.activation_check"]
    assert len(activation_spans) == 1
    assert activation_spans[0].attributes.get("case_id") == case_id
    assert activation_spans[0].attributes.get("activated") is True
