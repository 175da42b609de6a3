from __future__ import annotations

from collections.abc import Generator
from pathlib import Path
from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from casework.cases.models import Case
from casework.cases.status import CaseStatus
from casework.core.auth import issue_token
from casework.core.database import Base, get_db
from casework.documents.models import CaseDocument, DocumentType
from casework.documents.service import document_service
from casework.main import app
from casework.platform.security.context import AuthContext
from casework.platform.storage import BlobStore


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
def blob_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setattr(document_service, "blob_store", lambda: BlobStore(tmp_path, "/api/documents"))
    return tmp_path


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _headers(sub: str, *roles: str) -> dict[str, str]:
    return {"authorization": f"Bearer {issue_token(sub, list(roles))}", "x-tenant-id": "tenant-a"}


@pytest.fixture()
def case(db_session: Session) -> Case:
    row = Case(
        tenant_id="tenant-a",
        organization_id="org-1",
        title="Duplex interiors",
        client_name="P. Nair",
        client_id="client-1",
        project_head_id="head-1",
        status=CaseStatus.EXECUTION_ACTIVE.value,
        created_by="gm-1",
    )
    db_session.add(row)
    db_session.commit()
    return row


def test_upload_list_and_download(client: TestClient, case: Case, blob_root: Path) -> None:
    uploaded = client.post(
        f"/api/cases/{case.id}/documents",
        files={"file": ("kitchen.pdf", b"%PDF-1.7 drawing", "application/pdf")},
        data={"document_type": "drawing", "notes": "Rev B"},
        headers=_headers("head-1"),
    )
    assert uploaded.status_code == 201
    document = uploaded.json()
    assert document["document_type"] == "drawing"
    assert document["file_name"] == "kitchen.pdf"
    assert document["size_bytes"] == len(b"%PDF-1.7 drawing")
    assert document["download_url"] == f"/api/documents/{document['id']}/download"
    assert document["uploaded_by"] == "head-1"
    assert any(path.suffix == ".pdf" for path in blob_root.rglob("*"))

    client.post(
        f"/api/cases/{case.id}/documents",
        files={"file": ("site.jpg", b"\xff\xd8jpeg", "image/jpeg")},
        data={"document_type": "site_photo"},
        headers=_headers("eng-1", "site_engineer"),
    )

    listed = client.get(f"/api/cases/{case.id}/documents", headers=_headers("client-1", "client"))
    assert listed.status_code == 200
    assert {item["document_type"] for item in listed.json()} == {"drawing", "site_photo"}

    drawings = client.get(
        f"/api/cases/{case.id}/documents",
        params={"document_type": "drawing"},
        headers=_headers("client-1", "client"),
    )
    assert [item["id"] for item in drawings.json()] == [document["id"]]

    downloaded = client.get(document["download_url"], headers=_headers("client-1", "client"))
    assert downloaded.status_code == 200
    assert downloaded.content == b"%PDF-1.7 drawing"
    assert downloaded.headers["content-type"].startswith("application/pdf")
    assert 'filename="kitchen.pdf"' in downloaded.headers["content-disposition"]


def test_upload_rejections(client: TestClient, case: Case) -> None:
    url = f"/api/cases/{case.id}/documents"

    empty = client.post(url, files={"file": ("empty.txt", b"", "text/plain")}, data={"document_type": "other"}, headers=_headers("head-1"))
    assert empty.status_code == 422

    bad_type = client.post(url, files={"file": ("a.txt", b"a", "text/plain")}, data={"document_type": "poster"}, headers=_headers("head-1"))
    assert bad_type.status_code == 422

    client_upload = client.post(
        url,
        files={"file": ("a.txt", b"a", "text/plain")},
        data={"document_type": "other"},
        headers=_headers("client-1", "client"),
    )
    assert client_upload.status_code == 403


def test_download_checks_case_access(client: TestClient, case: Case) -> None:
    uploaded = client.post(
        f"/api/cases/{case.id}/documents",
        files={"file": ("boq.xlsx", b"sheet", "application/octet-stream")},
        data={"document_type": "boq"},
        headers=_headers("head-1"),
    ).json()

    stranger = client.get(uploaded["download_url"], headers=_headers("client-2", "client"))
    assert stranger.status_code == 403

    missing = client.get(
        "/api/documents/00000000-0000-0000-0000-0000000000aa/download",
        headers=_headers("head-1"),
    )
    assert missing.status_code == 404


def test_completed_case_rejects_uploads_but_serves_downloads(client: TestClient, case: Case, db_session: Session) -> None:
    uploaded = client.post(
        f"/api/cases/{case.id}/documents",
        files={"file": ("jms.pdf", b"signed", "application/pdf")},
        data={"document_type": "jms"},
        headers=_headers("head-1"),
    ).json()

    case.status = CaseStatus.COMPLETED.value
    db_session.commit()

    late = client.post(
        f"/api/cases/{case.id}/documents",
        files={"file": ("late.pdf", b"late", "application/pdf")},
        data={"document_type": "other"},
        headers=_headers("head-1"),
    )
    assert late.status_code == 409
    assert client.get(uploaded["download_url"], headers=_headers("head-1")).status_code == 200


def test_download_of_non_latin_file_name(client: TestClient, case: Case) -> None:
    file_name = "रसोई—plan.pdf"
    uploaded = client.post(
        f"/api/cases/{case.id}/documents",
        files={"file": (file_name, b"%PDF-1.7 drawing", "application/pdf")},
        data={"document_type": "drawing"},
        headers=_headers("head-1"),
    )
    assert uploaded.status_code == 201
    assert uploaded.json()["file_name"] == file_name

    downloaded = client.get(uploaded.json()["download_url"], headers=_headers("head-1"))
    assert downloaded.status_code == 200
    assert downloaded.content == b"%PDF-1.7 drawing"
    disposition = downloaded.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="')
    assert f"filename*=UTF-8''{quote(file_name)}" in disposition
    fallback = disposition.split('filename="', 1)[1].split('"', 1)[0]
    assert fallback.isascii()
    assert fallback.endswith(".pdf")


def test_failed_commit_removes_stored_blob(
    db_session: Session,
    case: Case,
    blob_root: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def failing_commit() -> None:
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "commit", failing_commit)
    ctx = AuthContext(user_id="head-1", tenant_id="tenant-a")

    with pytest.raises(OperationalError):
        document_service.upload_document(
            db_session,
            ctx,
            case.id,
            content=b"%PDF-1.7 drawing",
            file_name="kitchen.pdf",
            content_type="application/pdf",
            document_type=DocumentType.DRAWING,
        )

    assert [path for path in blob_root.rglob("*") if path.is_file()] == []
    assert db_session.scalars(select(CaseDocument)).all() == []
