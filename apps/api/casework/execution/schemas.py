from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from casework.cases.schemas import CaseRead
from casework.cases.status import CaseStatus


class PlanMaterial(BaseModel):
    catalog_item_id: str = ""
    name: str | None = None
    quantity: Decimal = Decimal("0")
    unit: str | None = None
    required_on: date | None = None


class PlanDayInput(BaseModel):
    day_date: date | None = None
    work_description: str = ""
    labor_count: int = Field(default=0, ge=0)
    labor_type: str | None = None
    materials: list[PlanMaterial] = Field(default_factory=list)


class PlanSubmitRequest(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    days: list[PlanDayInput] = Field(default_factory=list)


class PlanDayRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    day_date: date
    work_description: str
    labor_count: int
    labor_type: str | None
    materials: list[PlanMaterial]


class ApprovalsRead(BaseModel):
    admin: bool
    client: bool
    admin_approved_by: str | None = None
    client_approved_by: str | None = None


class ExecutionPlanRead(BaseModel):
    id: UUID
    case_id: UUID
    start_date: date
    end_date: date
    days: list[PlanDayRead]
    approvals: ApprovalsRead
    approved_at: datetime | None
    execution_marked_complete: bool
    marked_complete_by: str | None
    marked_complete_at: datetime | None
    rejected_by: str | None
    rejected_at: datetime | None
    rejection_reason: str | None
    created_by: str
    submitted_at: datetime


class PlanRejectRequest(BaseModel):
    reason: str = ""


class ApprovalResult(BaseModel):
    plan: ExecutionPlanRead
    status: CaseStatus
    activated: bool


class DailyLogCreate(BaseModel):
    work_description: str = Field(min_length=1)
    manpower_count: int = Field(default=0, ge=0)
    photos: list[str] = Field(default_factory=list)
    notes: str | None = None


class DailyLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    case_id: UUID
    log_date: date
    work_description: str
    manpower_count: int
    photos: list[str]
    notes: str | None
    created_by: str
    created_at: datetime


class MaterialSummaryRead(BaseModel):
    catalog_item_id: str
    name: str | None
    unit: str | None
    total_quantity: Decimal
    first_required_on: date | None
    day_count: int


class JMSItem(BaseModel):
    description: str = Field(min_length=1)
    quantity: Decimal = Field(ge=Decimal("0"))
    unit: str | None = None
    remarks: str | None = None


class JMSLaunchRequest(BaseModel):
    items: list[JMSItem] = Field(default_factory=list)


class JMSSignRequest(BaseModel):
    signature: str = Field(min_length=1)


class JMSRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    case_id: UUID
    status: str
    items: list[JMSItem]
    launched_by: str
    launched_at: datetime
    signed_by: str | None
    signed_at: datetime | None
    client_signature: str | None


class SectionState(StrEnum):
    VISIBLE = "visible"
    HIDDEN = "hidden"
    EDITABLE = "editable"
    VIEW_ONLY = "view_only"
    ACTIVE = "active"
    READ_ONLY = "read_only"
    LOCKED = "locked"


class WorkspaceSection(BaseModel):
    number: int
    key: str
    title: str
    state: SectionState


class WorkspaceRead(BaseModel):
    case: CaseRead
    read_only: bool
    planning_locked: bool
    sections: list[WorkspaceSection]
    plan: ExecutionPlanRead | None
    jms: JMSRead | None
    missing_log_dates: list[date]
    capabilities: list[str]
