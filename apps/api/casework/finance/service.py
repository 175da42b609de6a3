from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from casework import audit
from casework.cases.models import utcnow
from casework.cases.repository import CaseRepository
from casework.core.config import get_settings
from casework.finance.models import (
    CaseExpense,
    CasePayment,
    ExpenseStatus,
    PaymentStatus,
    SalaryLedgerEntry,
    SalaryStatus,
)
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
from casework.metrics import observe_ledger_entries_posted
from casework.platform.ledger.models import JournalEntry
from casework.platform.ledger.schemas import JournalEntryPostRequest, LedgerSourceType
from casework.platform.ledger.service import (
    CASH,
    CUSTOMER_ADVANCES,
    PROJECT_EXPENSE,
    SALARY_EXPENSE,
    LedgerService,
)
from casework.platform.security.capabilities import Capability
from casework.platform.security.context import AuthContext
from casework.platform.security.dependencies import enforce, forbidden
from casework.platform.security.errors import AuthorizationError
from casework.platform.security.repository import BaseRepository

logger = logging.getLogger("casework.finance")


class SalaryEntryRepository(BaseRepository):
    resource = "finance.salary_entry"


def _conflict(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)


def _require_reason(request: DecisionRejectRequest) -> str:
    reason = request.reason.strip()
    if not reason:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="a rejection reason is required")
    return reason


def resolve_currency(
    session: Session,
    ledger: LedgerService,
    *,
    tenant_id: str,
    organization_id: str,
    requested: str | None,
) -> str:
    """Finance records share the organization's ledger currency so they can always be posted."""

    ledger_currency = (
        ledger.organization_currency(session, tenant_id=tenant_id, organization_id=organization_id)
        or get_settings().default_currency
    )
    if requested is not None and requested.upper() != ledger_currency:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"currency must be {ledger_currency} for organization {organization_id}",
        )
    return ledger_currency


def post_two_line_entry(
    session: Session,
    ledger: LedgerService,
    *,
    tenant_id: str,
    organization_id: str,
    currency: str,
    amount: Decimal,
    debit_code: str,
    credit_code: str,
    description: str,
    source_type: LedgerSourceType,
    source_id: str,
    created_by: str,
    case_id: uuid.UUID | None = None,
) -> JournalEntry:
    """Stage a balanced debit/credit pair against the default chart of accounts."""

    accounts = ledger.accounts_by_code(session, tenant_id=tenant_id, organization_id=organization_id, currency=currency)
    request = JournalEntryPostRequest(
        tenant_id=tenant_id,
        organization_id=organization_id,
        case_id=case_id,
        entry_date=date.today(),
        description=description,
        source_module="finance",
        source_type=source_type,
        source_id=source_id,
        lines=[
            {"account_id": accounts[debit_code].id, "debit_amount": amount, "currency": currency},
            {"account_id": accounts[credit_code].id, "credit_amount": amount, "currency": currency},
        ],
    )
    return ledger.stage_entry(session, created_by, request)


@dataclass(slots=True)
class FinanceService:
    case_repository: CaseRepository = CaseRepository()
    ledger: LedgerService = field(default_factory=LedgerService)

    def record_payment(self, session: Session, ctx: AuthContext, case_id: uuid.UUID, request: PaymentCreate) -> PaymentRead:
        case = self.case_repository.get_or_404(session, ctx, case_id)
        enforce(ctx, Capability.PAYMENT_RECORD, case)

        payment = CasePayment(
            case_id=case.id,
            organization_id=case.organization_id,
            amount=request.amount,
            currency=resolve_currency(
                session,
                self.ledger,
                tenant_id=case.tenant_id,
                organization_id=case.organization_id,
                requested=request.currency,
            ),
            method=request.method,
            reference=request.reference,
            status=PaymentStatus.PENDING_VERIFICATION.value,
            recorded_by=ctx.user_id,
        )
        session.add(payment)
        self.case_repository.add_activity(
            session,
            case.id,
            action="finance.payment_recorded",
            message=f"Payment of {request.amount} recorded, pending verification",
            actor_id=ctx.user_id,
        )
        session.commit()
        session.refresh(payment)
        return PaymentRead.model_validate(payment)

    def verify_payment(self, session: Session, ctx: AuthContext, payment_id: uuid.UUID) -> PaymentRead:
        enforce(ctx, Capability.PAYMENT_DECIDE)
        payment = self._load_payment(session, payment_id)
        case = self.case_repository.get_or_404(session, ctx, payment.case_id, for_update=True)
        if payment.status != PaymentStatus.PENDING_VERIFICATION:
            raise _conflict(f"payment is already {payment.status}")

        payment.status = PaymentStatus.VERIFIED.value
        payment.decided_by = ctx.user_id
        payment.decided_at = utcnow()
        case.received_amount = Decimal(case.received_amount) + Decimal(payment.amount)

        entry = None
        if get_settings().ledger_post_finance_events:
            entry = post_two_line_entry(
                session,
                self.ledger,
                tenant_id=case.tenant_id,
                organization_id=case.organization_id,
                currency=payment.currency,
                amount=payment.amount,
                debit_code=CASH,
                credit_code=CUSTOMER_ADVANCES,
                description=f"Client payment for {case.title}",
                source_type="case_payment",
                source_id=str(payment.id),
                created_by=ctx.user_id,
                case_id=case.id,
            )
            payment.journal_entry_id = entry.id

        self.case_repository.add_activity(
            session,
            case.id,
            action="finance.payment_verified",
            message=f"Payment of {payment.amount} verified",
            actor_id=ctx.user_id,
        )
        session.commit()
        session.refresh(payment)
        if entry is not None:
            observe_ledger_entries_posted()

        audit.record(
            actor_user_id=ctx.user_id,
            entity_type="finance.payment",
            entity_id=str(payment.id),
            action="payment.verified",
            before={"status": PaymentStatus.PENDING_VERIFICATION.value},
            after={"status": payment.status, "journal_entry_id": str(payment.journal_entry_id)},
            correlation_id=ctx.correlation_id,
        )
        return PaymentRead.model_validate(payment)

    def reject_payment(
        self,
        session: Session,
        ctx: AuthContext,
        payment_id: uuid.UUID,
        request: DecisionRejectRequest,
    ) -> PaymentRead:
        enforce(ctx, Capability.PAYMENT_DECIDE)
        payment = self._load_payment(session, payment_id)
        case = self.case_repository.get_or_404(session, ctx, payment.case_id)
        if payment.status != PaymentStatus.PENDING_VERIFICATION:
            raise _conflict(f"payment is already {payment.status}")
        reason = _require_reason(request)

        payment.status = PaymentStatus.REJECTED.value
        payment.decided_by = ctx.user_id
        payment.decided_at = utcnow()
        payment.rejection_reason = reason
        self.case_repository.add_activity(
            session,
            case.id,
            action="finance.payment_rejected",
            message=f"Payment of {payment.amount} rejected: {reason}",
            actor_id=ctx.user_id,
        )
        session.commit()
        session.refresh(payment)
        return PaymentRead.model_validate(payment)

    def list_payments(self, session: Session, ctx: AuthContext, case_id: uuid.UUID) -> list[PaymentRead]:
        case = self.case_repository.get_or_404(session, ctx, case_id)
        enforce(ctx, Capability.CASE_READ, case)
        rows = session.scalars(
            select(CasePayment).where(CasePayment.case_id == case.id).order_by(CasePayment.created_at.desc())
        ).all()
        return [PaymentRead.model_validate(item) for item in rows]

    def record_expense(self, session: Session, ctx: AuthContext, case_id: uuid.UUID, request: ExpenseCreate) -> ExpenseRead:
        case = self.case_repository.get_or_404(session, ctx, case_id)
        enforce(ctx, Capability.EXPENSE_RECORD, case)

        expense = CaseExpense(
            case_id=case.id,
            organization_id=case.organization_id,
            amount=request.amount,
            currency=resolve_currency(
                session,
                self.ledger,
                tenant_id=case.tenant_id,
                organization_id=case.organization_id,
                requested=request.currency,
            ),
            category=request.category,
            description=request.description,
            status=ExpenseStatus.PENDING.value,
            recorded_by=ctx.user_id,
        )
        session.add(expense)
        self.case_repository.add_activity(
            session,
            case.id,
            action="finance.expense_recorded",
            message=f"Expense of {request.amount} ({request.category}) recorded, pending approval",
            actor_id=ctx.user_id,
        )
        session.commit()
        session.refresh(expense)
        return ExpenseRead.model_validate(expense)

    def approve_expense(self, session: Session, ctx: AuthContext, expense_id: uuid.UUID) -> ExpenseRead:
        enforce(ctx, Capability.EXPENSE_DECIDE)
        expense = self._load_expense(session, expense_id)
        case = self.case_repository.get_or_404(session, ctx, expense.case_id, for_update=True)
        if expense.status != ExpenseStatus.PENDING:
            raise _conflict(f"expense is already {expense.status}")

        expense.status = ExpenseStatus.APPROVED.value
        expense.decided_by = ctx.user_id
        expense.decided_at = utcnow()
        case.spent_amount = Decimal(case.spent_amount) + Decimal(expense.amount)

        entry = None
        if get_settings().ledger_post_finance_events:
            entry = post_two_line_entry(
                session,
                self.ledger,
                tenant_id=case.tenant_id,
                organization_id=case.organization_id,
                currency=expense.currency,
                amount=expense.amount,
                debit_code=PROJECT_EXPENSE,
                credit_code=CASH,
                description=f"{expense.category} expense for {case.title}",
                source_type="case_expense",
                source_id=str(expense.id),
                created_by=ctx.user_id,
                case_id=case.id,
            )
            expense.journal_entry_id = entry.id

        self.case_repository.add_activity(
            session,
            case.id,
            action="finance.expense_approved",
            message=f"Expense of {expense.amount} approved",
            actor_id=ctx.user_id,
        )
        session.commit()
        session.refresh(expense)
        if entry is not None:
            observe_ledger_entries_posted()
        return ExpenseRead.model_validate(expense)

    def reject_expense(
        self,
        session: Session,
        ctx: AuthContext,
        expense_id: uuid.UUID,
        request: DecisionRejectRequest,
    ) -> ExpenseRead:
        enforce(ctx, Capability.EXPENSE_DECIDE)
        expense = self._load_expense(session, expense_id)
        case = self.case_repository.get_or_404(session, ctx, expense.case_id)
        if expense.status != ExpenseStatus.PENDING:
            raise _conflict(f"expense is already {expense.status}")
        reason = _require_reason(request)

        expense.status = ExpenseStatus.REJECTED.value
        expense.decided_by = ctx.user_id
        expense.decided_at = utcnow()
        expense.rejection_reason = reason
        self.case_repository.add_activity(
            session,
            case.id,
            action="finance.expense_rejected",
            message=f"Expense of {expense.amount} rejected: {reason}",
            actor_id=ctx.user_id,
        )
        session.commit()
        session.refresh(expense)
        return ExpenseRead.model_validate(expense)

    def list_expenses(self, session: Session, ctx: AuthContext, case_id: uuid.UUID) -> list[ExpenseRead]:
        case = self.case_repository.get_or_404(session, ctx, case_id)
        enforce(ctx, Capability.CASE_READ, case)
        rows = session.scalars(
            select(CaseExpense).where(CaseExpense.case_id == case.id).order_by(CaseExpense.created_at.desc())
        ).all()
        return [ExpenseRead.model_validate(item) for item in rows]

    def _load_payment(self, session: Session, payment_id: uuid.UUID) -> CasePayment:
        payment = session.scalar(select(CasePayment).where(CasePayment.id == payment_id).with_for_update())
        if payment is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="payment not found")
        return payment

    def _load_expense(self, session: Session, expense_id: uuid.UUID) -> CaseExpense:
        expense = session.scalar(select(CaseExpense).where(CaseExpense.id == expense_id).with_for_update())
        if expense is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="expense not found")
        return expense


@dataclass(slots=True)
class SalaryLedgerService:
    repository: SalaryEntryRepository = SalaryEntryRepository()
    ledger: LedgerService = field(default_factory=LedgerService)

    def generate_salary_entry(self, session: Session, ctx: AuthContext, request: SalaryEntryCreate) -> SalaryEntryRead:
        enforce(ctx, Capability.SALARY_MANAGE)
        payload = request.model_dump(mode="python")
        try:
            self.repository.validate_write_security(payload, ctx, action="create")
        except AuthorizationError as exc:
            raise forbidden(exc)

        existing = session.scalar(
            select(SalaryLedgerEntry.id).where(
                SalaryLedgerEntry.organization_id == request.organization_id,
                SalaryLedgerEntry.staff_user_id == request.staff_user_id,
                SalaryLedgerEntry.period == request.period,
            )
        )
        if existing is not None:
            raise _conflict(f"salary entry for {request.staff_user_id} in {request.period} already exists")

        entry = SalaryLedgerEntry(
            tenant_id=request.tenant_id,
            organization_id=request.organization_id,
            staff_user_id=request.staff_user_id,
            period=request.period,
            currency=resolve_currency(
                session,
                self.ledger,
                tenant_id=request.tenant_id,
                organization_id=request.organization_id,
                requested=request.currency,
            ),
            base_amount=request.base_amount,
            expense_reimbursement=request.expense_reimbursement,
            travel_reimbursement=request.travel_reimbursement,
            total_payable=request.base_amount + request.expense_reimbursement + request.travel_reimbursement,
            status=SalaryStatus.GENERATED.value,
            generated_by=ctx.user_id,
        )
        session.add(entry)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise _conflict(f"salary entry for {request.staff_user_id} in {request.period} already exists")
        session.refresh(entry)
        return SalaryEntryRead.model_validate(entry)

    def mark_salary_paid(
        self,
        session: Session,
        ctx: AuthContext,
        entry_id: uuid.UUID,
        request: SalaryPaidRequest,
    ) -> SalaryEntryRead:
        enforce(ctx, Capability.SALARY_MANAGE)
        entry = session.scalar(
            self.repository.apply_scope_query(
                select(SalaryLedgerEntry).where(SalaryLedgerEntry.id == entry_id).with_for_update(),
                ctx,
            )
        )
        if entry is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="salary entry not found")
        if entry.status != SalaryStatus.GENERATED:
            raise _conflict(f"salary entry is already {entry.status}")

        entry.status = SalaryStatus.PAID.value
        entry.paid_by = ctx.user_id
        entry.paid_on = request.paid_on or date.today()

        posted = False
        if entry.total_payable > 0 and get_settings().ledger_post_finance_events:
            journal = post_two_line_entry(
                session,
                self.ledger,
                tenant_id=entry.tenant_id,
                organization_id=entry.organization_id,
                currency=entry.currency,
                amount=entry.total_payable,
                debit_code=SALARY_EXPENSE,
                credit_code=CASH,
                description=f"Salary {entry.period} for {entry.staff_user_id}",
                source_type="salary_entry",
                source_id=str(entry.id),
                created_by=ctx.user_id,
            )
            entry.journal_entry_id = journal.id
            posted = True

        session.commit()
        session.refresh(entry)
        if posted:
            observe_ledger_entries_posted()
        logger.info("finance.salary_paid", extra={"event_name": "salary.paid"})
        return SalaryEntryRead.model_validate(entry)

    def list_salary_entries(
        self,
        session: Session,
        ctx: AuthContext,
        *,
        organization_id: str,
        period: str | None = None,
    ) -> list[SalaryEntryRead]:
        enforce(ctx, Capability.SALARY_MANAGE)
        stmt = select(SalaryLedgerEntry).where(SalaryLedgerEntry.organization_id == organization_id)
        if period is not None:
            stmt = stmt.where(SalaryLedgerEntry.period == period)
        stmt = self.repository.apply_scope_query(stmt, ctx)
        rows = session.scalars(stmt.order_by(SalaryLedgerEntry.period.desc(), SalaryLedgerEntry.staff_user_id)).all()
        return [SalaryEntryRead.model_validate(item) for item in rows]


finance_service = FinanceService()
salary_ledger_service = SalaryLedgerService()
