from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


LedgerAccountType = Literal["ASSET", "LIABILITY", "EQUITY", "REVENUE", "EXPENSE"]
PostingStatus = Literal["POSTED", "REVERSED"]
LedgerSourceType = Literal["case_payment", "case_expense", "salary_entry", "invoice", "adjustment", "reversal"]

# Case money movements always carry the case they belong to.
CASE_SOURCE_TYPES: frozenset[str] = frozenset({"case_payment", "case_expense"})


class LedgerAccountCreate(BaseModel):
    tenant_id: str = Field(min_length=1)
    organization_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    code: str = Field(min_length=1)
    type: LedgerAccountType
    currency: str = Field(min_length=3, max_length=3)
    is_active: bool = True


class LedgerAccountRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: str
    organization_id: str
    name: str
    code: str
    type: str
    currency: str
    is_active: bool
    created_at: datetime


class JournalLineInput(BaseModel):
    account_id: UUID
    debit_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    credit_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    currency: str = Field(min_length=3, max_length=3)
    memo: str | None = None


class JournalEntryPostRequest(BaseModel):
    tenant_id: str = Field(min_length=1)
    organization_id: str = Field(min_length=1)
    case_id: UUID | None = None
    entry_date: date
    description: str = Field(min_length=1)
    source_module: str = Field(min_length=1)
    source_type: LedgerSourceType
    source_id: str = Field(min_length=1)
    lines: list[JournalLineInput] = Field(min_length=2)

    @model_validator(mode="after")
    def case_sources_need_case(self) -> JournalEntryPostRequest:
        if self.source_type in CASE_SOURCE_TYPES and self.case_id is None:
            raise ValueError(f"{self.source_type} entries require case_id")
        return self


class JournalLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    journal_entry_id: UUID
    account_id: UUID
    debit_amount: Decimal
    credit_amount: Decimal
    currency: str
    memo: str | None
    created_at: datetime


class JournalEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: str
    organization_id: str
    case_id: UUID | None
    entry_date: date
    description: str
    source_module: str
    source_type: LedgerSourceType
    source_id: str
    posting_status: PostingStatus
    created_by: str
    created_at: datetime
    lines: list[JournalLineRead] = Field(default_factory=list)


class JournalEntryReverseRequest(BaseModel):
    reason: str = Field(min_length=1)


class SeedChartAccountsRequest(BaseModel):
    tenant_id: str = Field(min_length=1)
    organization_id: str = Field(min_length=1)
    currency: str = Field(default="INR", min_length=3, max_length=3)
