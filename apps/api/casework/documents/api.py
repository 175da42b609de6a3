from __future__ import annotations

import uuid
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from casework.core.database import get_db
from casework.documents.models import DocumentType
from casework.documents.schemas import CaseDocumentRead
from casework.documents.service import document_service
from casework.platform.security.context import AuthContext
from casework.platform.security.dependencies import get_auth_context


router = APIRouter(prefix="/api", tags=["documents"])


def _content_disposition(file_name: str) -> str:
    # Header values go out as latin-1; non-ASCII names travel in filename*.
    fallback = file_name.encode("ascii", "replace").decode("ascii").replace("\\", "_").replace('"', "_")
    value = f'attachment; filename="{fallback}"'
    if fallback != file_name:
        value += f"; filename*=UTF-8''{quote(file_name)}"
    return value


@router.post(
    "/cases/{case_id}/documents",
    response_model=CaseDocumentRead,
    status_code=status.HTTP_201_CREATED,
)
def upload_document(
    case_id: uuid.UUID,
    file: UploadFile = File(...),
    document_type: DocumentType = Form(...),
    notes: str | None = Form(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> CaseDocumentRead:
    content = file.file.read()
    return document_service.upload_document(
        db,
        ctx,
        case_id,
        content=content,
        file_name=file.filename or "file.bin",
        content_type=file.content_type,
        document_type=document_type,
        notes=notes,
    )


@router.get("/cases/{case_id}/documents", response_model=list[CaseDocumentRead])
def list_documents(
    case_id: uuid.UUID,
    document_type: DocumentType | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[CaseDocumentRead]:
    return document_service.list_documents(db, ctx, case_id, document_type=document_type)


@router.get("/documents/{document_id}/download", response_model=None)
def download_document(
    document_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Response:
    document, content = document_service.download_document(db, ctx, document_id)
    return Response(
        content=content,
        media_type=document.content_type,
        headers={"Content-Disposition": _content_disposition(document.file_name)},
    )
