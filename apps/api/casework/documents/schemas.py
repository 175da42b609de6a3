from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from casework.documents.models import DocumentType


class CaseDocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    case_id: UUID
    document_type: DocumentType
    file_name: str
    content_type: str
    size_bytes: int
    download_url: str
    uploaded_by: str
    notes: str | None
    created_at: datetime
