from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from casework.cases.status import CaseStatus


class CaseCreate(BaseModel):
    tenant_id: str = Field(min_length=1)
    organization_id: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=255)
    client_name: str = Field(min_length=1, max_length=255)
    client_phone: str | None = None
    client_email: str | None = None
    site_address: str | None = None
    client_id: str | None = None
    sales_owner_id: str | None = None


class CostCenterRead(BaseModel):
    total_budget: Decimal
    spent_amount: Decimal
    received_amount: Decimal
    remaining_amount: Decimal
    pending_expense_amount: Decimal = Decimal("0")
    pending_payment_amount: Decimal = Decimal("0")


class ClosureRead(BaseModel):
    jms_signed: bool
    jms_signed_at: datetime | None
    completed_at: datetime | None
    completed_by: str | None


class CaseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: str
    organization_id: str
    title: str
    client_name: str
    client_phone: str | None
    client_email: str | None
    site_address: str | None
    client_id: str | None
    sales_owner_id: str | None
    project_head_id: str | None
    status: CaseStatus
    cost_center: CostCenterRead
    closure: ClosureRead
    created_by: str
    created_at: datetime
    updated_at: datetime


class CaseStatusAdvanceRequest(BaseModel):
    status: CaseStatus
    note: str | None = None


class CaseTeamAssignRequest(BaseModel):
    project_head_id: str | None = None
    sales_owner_id: str | None = None
    client_id: str | None = None


class BudgetUpdateRequest(BaseModel):
    total_budget: Decimal = Field(ge=Decimal("0"))


class CaseActivityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    case_id: UUID
    action: str
    message: str
    actor_id: str
    details: dict[str, Any] | None
    occurred_at: datetime
