from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from casework.cases.repository import CaseRepository
from casework.cases.service import ensure_not_completed
from casework.documents.models import CaseDocument, DocumentType
from casework.documents.schemas import CaseDocumentRead
from casework.platform.security.capabilities import Capability
from casework.platform.security.context import AuthContext
from casework.platform.security.dependencies import enforce
from casework.platform.storage import BlobStore, get_blob_store


@dataclass(slots=True)
class DocumentService:
    case_repository: CaseRepository = CaseRepository()
    blob_store: Callable[[], BlobStore] = get_blob_store

    def upload_document(
        self,
        session: Session,
        ctx: AuthContext,
        case_id: uuid.UUID,
        *,
        content: bytes,
        file_name: str,
        content_type: str | None,
        document_type: DocumentType,
        notes: str | None = None,
    ) -> CaseDocumentRead:
        case = self.case_repository.get_or_404(session, ctx, case_id)
        enforce(ctx, Capability.DOCUMENT_UPLOAD, case)
        ensure_not_completed(case)
        if not content:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="uploaded file is empty")

        store = self.blob_store()
        blob = store.store_bytes(content, prefix=f"cases/{case.id}/{document_type.value}", filename=file_name)
        document_id = uuid.uuid4()
        document = CaseDocument(
            id=document_id,
            case_id=case.id,
            organization_id=case.organization_id,
            document_type=document_type.value,
            file_name=file_name or "file.bin",
            content_type=content_type or "application/octet-stream",
            size_bytes=blob.size_bytes,
            storage_path=blob.storage_path,
            download_url=store.download_url(f"{document_id}/download"),
            uploaded_by=ctx.user_id,
            notes=notes,
        )
        try:
            session.add(document)
            self.case_repository.add_activity(
                session,
                case.id,
                action="documents.uploaded",
                message=f"{document_type.value} document uploaded: {document.file_name}",
                actor_id=ctx.user_id,
                details={"document_id": str(document_id)},
            )
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            store.delete(blob.storage_path)
            raise
        session.refresh(document)
        return CaseDocumentRead.model_validate(document)

    def list_documents(
        self,
        session: Session,
        ctx: AuthContext,
        case_id: uuid.UUID,
        *,
        document_type: DocumentType | None = None,
    ) -> list[CaseDocumentRead]:
        case = self.case_repository.get_or_404(session, ctx, case_id)
        enforce(ctx, Capability.CASE_READ, case)
        stmt = select(CaseDocument).where(CaseDocument.case_id == case.id)
        if document_type is not None:
            stmt = stmt.where(CaseDocument.document_type == document_type.value)
        rows = session.scalars(stmt.order_by(CaseDocument.created_at.desc())).all()
        return [CaseDocumentRead.model_validate(item) for item in rows]

    def download_document(
        self,
        session: Session,
        ctx: AuthContext,
        document_id: uuid.UUID,
    ) -> tuple[CaseDocument, bytes]:
        document = session.scalar(select(CaseDocument).where(CaseDocument.id == document_id))
        if document is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="document not found")
        case = self.case_repository.get_or_404(session, ctx, document.case_id)
        enforce(ctx, Capability.CASE_READ, case)
        try:
            content = self.blob_store().get_bytes(document.storage_path)
        except FileNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="document content missing")
        return document, content


document_service = DocumentService()
