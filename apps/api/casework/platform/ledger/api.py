from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from casework.core.database import get_db
from casework.platform.ledger.schemas import (
    JournalEntryPostRequest,
    JournalEntryRead,
    JournalEntryReverseRequest,
    LedgerAccountCreate,
    LedgerAccountRead,
    LedgerSourceType,
    SeedChartAccountsRequest,
)
from casework.platform.ledger.service import ledger_service
from casework.platform.security.context import AuthContext
from casework.platform.security.dependencies import get_auth_context


router = APIRouter(prefix="/api/ledger", tags=["ledger"])


@router.post("/accounts", response_model=LedgerAccountRead, status_code=status.HTTP_201_CREATED)
def create_account(
    payload: LedgerAccountCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> LedgerAccountRead:
    return ledger_service.create_account(db, ctx, payload)


@router.get("/accounts", response_model=list[LedgerAccountRead])
def list_accounts(
    tenant_id: str = Query(min_length=1),
    organization_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[LedgerAccountRead]:
    return ledger_service.list_accounts(db, ctx, tenant_id=tenant_id, organization_id=organization_id)


@router.post("/journal-entries", response_model=JournalEntryRead, status_code=status.HTTP_201_CREATED)
def post_journal_entry(
    payload: JournalEntryPostRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> JournalEntryRead:
    return ledger_service.post_entry(db, ctx, payload)


@router.post("/journal-entries/{entry_id}/reverse", response_model=JournalEntryRead)
def reverse_journal_entry(
    entry_id: uuid.UUID,
    payload: JournalEntryReverseRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> JournalEntryRead:
    return ledger_service.reverse_entry(db, ctx, entry_id, payload)


@router.get("/journal-entries/{entry_id}", response_model=JournalEntryRead)
def get_journal_entry(
    entry_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> JournalEntryRead:
    return ledger_service.get_entry(db, ctx, entry_id)


@router.get("/journal-entries", response_model=list[JournalEntryRead])
def list_journal_entries(
    tenant_id: str = Query(min_length=1),
    organization_id: str | None = Query(default=None),
    case_id: uuid.UUID | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    source_module: str | None = Query(default=None),
    source_type: LedgerSourceType | None = Query(default=None),
    source_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[JournalEntryRead]:
    return ledger_service.list_entries(
        db,
        ctx,
        tenant_id=tenant_id,
        organization_id=organization_id,
        case_id=case_id,
        start_date=start_date,
        end_date=end_date,
        source_module=source_module,
        source_type=source_type,
        source_id=source_id,
    )


@router.post("/seeds/chart-of-accounts", response_model=list[LedgerAccountRead])
def seed_chart_of_accounts(
    payload: SeedChartAccountsRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[LedgerAccountRead]:
    return ledger_service.seed_chart_of_accounts(
        db,
        ctx,
        tenant_id=payload.tenant_id,
        organization_id=payload.organization_id,
        currency=payload.currency,
    )
