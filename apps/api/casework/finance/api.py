from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from casework.core.database import get_db
from casework.finance.schemas import (
    DecisionRejectRequest,
    ExpenseCreate,
    ExpenseRead,
    PaymentCreate,
    PaymentRead,
    SalaryEntryCreate,
    SalaryEntryRead,
    SalaryPaidRequest,
)
from casework.finance.service import finance_service, salary_ledger_service
from casework.platform.security.context import AuthContext
from casework.platform.security.dependencies import get_auth_context


router = APIRouter(prefix="/api/finance", tags=["finance"])


@router.post("/cases/{case_id}/payments", response_model=PaymentRead, status_code=status.HTTP_201_CREATED)
def record_payment(
    case_id: uuid.UUID,
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> PaymentRead:
    return finance_service.record_payment(db, ctx, case_id, payload)


@router.get("/cases/{case_id}/payments", response_model=list[PaymentRead])
def list_payments(
    case_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[PaymentRead]:
    return finance_service.list_payments(db, ctx, case_id)


@router.post("/payments/{payment_id}/verify", response_model=PaymentRead)
def verify_payment(
    payment_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> PaymentRead:
    return finance_service.verify_payment(db, ctx, payment_id)


@router.post("/payments/{payment_id}/reject", response_model=PaymentRead)
def reject_payment(
    payment_id: uuid.UUID,
    payload: DecisionRejectRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> PaymentRead:
    return finance_service.reject_payment(db, ctx, payment_id, payload)


@router.post("/cases/{case_id}/expenses", response_model=ExpenseRead, status_code=status.HTTP_201_CREATED)
def record_expense(
    case_id: uuid.UUID,
    payload: ExpenseCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ExpenseRead:
    return finance_service.record_expense(db, ctx, case_id, payload)


@router.get("/cases/{case_id}/expenses", response_model=list[ExpenseRead])
def list_expenses(
    case_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[ExpenseRead]:
    return finance_service.list_expenses(db, ctx, case_id)


@router.post("/expenses/{expense_id}/approve", response_model=ExpenseRead)
def approve_expense(
    expense_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ExpenseRead:
    return finance_service.approve_expense(db, ctx, expense_id)


@router.post("/expenses/{expense_id}/reject", response_model=ExpenseRead)
def reject_expense(
    expense_id: uuid.UUID,
    payload: DecisionRejectRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ExpenseRead:
    return finance_service.reject_expense(db, ctx, expense_id, payload)


@router.post("/salary-entries", response_model=SalaryEntryRead, status_code=status.HTTP_201_CREATED)
def generate_salary_entry(
    payload: SalaryEntryCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> SalaryEntryRead:
    return salary_ledger_service.generate_salary_entry(db, ctx, payload)


@router.post("/salary-entries/{entry_id}/pay", response_model=SalaryEntryRead)
def mark_salary_paid(
    entry_id: uuid.UUID,
    payload: SalaryPaidRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> SalaryEntryRead:
    return salary_ledger_service.mark_salary_paid(db, ctx, entry_id, payload)


@router.get("/salary-entries", response_model=list[SalaryEntryRead])
def list_salary_entries(
    organization_id: str = Query(min_length=1),
    period: str | None = Query(default=None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$"),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[SalaryEntryRead]:
    return salary_ledger_service.list_salary_entries(db, ctx, organization_id=organization_id, period=period)
