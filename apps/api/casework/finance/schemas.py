from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


PaymentMethod = Literal["CASH", "BANK_TRANSFER", "UPI", "CHEQUE", "CARD"]


class PaymentCreate(BaseModel):
    amount: Decimal = Field(gt=Decimal("0"), max_digits=18, decimal_places=2)
    method: PaymentMethod
    reference: str | None = Field(default=None, max_length=128)
    currency: str | None = Field(default=None, min_length=3, max_length=3)


class DecisionRejectRequest(BaseModel):
    reason: str = ""


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    case_id: UUID
    organization_id: str
    amount: Decimal
    currency: str
    method: str
    reference: str | None
    status: str
    recorded_by: str
    decided_by: str | None
    decided_at: datetime | None
    rejection_reason: str | None
    journal_entry_id: UUID | None
    created_at: datetime


class ExpenseCreate(BaseModel):
    amount: Decimal = Field(gt=Decimal("0"), max_digits=18, decimal_places=2)
    category: str = Field(min_length=1, max_length=64)
    description: str = Field(min_length=1)
    currency: str | None = Field(default=None, min_length=3, max_length=3)


class ExpenseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    case_id: UUID
    organization_id: str
    amount: Decimal
    currency: str
    category: str
    description: str
    status: str
    recorded_by: str
    decided_by: str | None
    decided_at: datetime | None
    rejection_reason: str | None
    journal_entry_id: UUID | None
    created_at: datetime


class SalaryEntryCreate(BaseModel):
    tenant_id: str = Field(min_length=1)
    organization_id: str = Field(min_length=1)
    staff_user_id: str = Field(min_length=1)
    period: str = Field(pattern=r"^\d{4}-(0[1-9]|1[0-2])$")
    base_amount: Decimal = Field(ge=Decimal("0"), max_digits=18, decimal_places=2)
    expense_reimbursement: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), max_digits=18, decimal_places=2)
    travel_reimbursement: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), max_digits=18, decimal_places=2)
    currency: str | None = Field(default=None, min_length=3, max_length=3)


class SalaryPaidRequest(BaseModel):
    paid_on: date | None = None


class SalaryEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: str
    organization_id: str
    staff_user_id: str
    period: str
    currency: str
    base_amount: Decimal
    expense_reimbursement: Decimal
    travel_reimbursement: Decimal
    total_payable: Decimal
    status: str
    generated_by: str
    paid_by: str | None
    paid_on: date | None
    journal_entry_id: UUID | None
    created_at: datetime
