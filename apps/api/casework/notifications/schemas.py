from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: str
    recipient_user_id: str | None
    recipient_role: str | None
    kind: str
    title: str
    body: str
    case_id: UUID | None
    read_at: datetime | None
    created_at: datetime
