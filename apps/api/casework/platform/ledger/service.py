from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from fastapi import HTTPException, status
from sqlalchemy import Select, and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from casework import audit
from casework.metrics import observe_ledger_entries_posted, observe_ledger_post_failure
from casework.platform.ledger.models import JournalEntry, JournalLine, LedgerAccount
from casework.platform.ledger.schemas import (
    JournalEntryPostRequest,
    JournalEntryRead,
    JournalEntryReverseRequest,
    LedgerAccountCreate,
    LedgerAccountRead,
)
from casework.platform.security.capabilities import Capability
from casework.platform.security.context import AuthContext
from casework.platform.security.dependencies import enforce, forbidden
from casework.platform.security.errors import AuthorizationError
from casework.platform.security.repository import BaseRepository


CASH = "1000"
ACCOUNTS_RECEIVABLE = "1100"
CUSTOMER_ADVANCES = "2100"
SALARIES_PAYABLE = "2400"
PROJECT_REVENUE = "4000"
PROJECT_EXPENSE = "5000"
SALARY_EXPENSE = "5100"

DEFAULT_CHART: tuple[tuple[str, str, str], ...] = (
    (CASH, "Cash", "ASSET"),
    (ACCOUNTS_RECEIVABLE, "Accounts Receivable", "ASSET"),
    (CUSTOMER_ADVANCES, "Customer Advances", "LIABILITY"),
    (SALARIES_PAYABLE, "Salaries Payable", "LIABILITY"),
    (PROJECT_REVENUE, "Project Revenue", "REVENUE"),
    (PROJECT_EXPENSE, "Project Expense", "EXPENSE"),
    (SALARY_EXPENSE, "Salary Expense", "EXPENSE"),
)

_CENT = Decimal("0.01")


class LedgerAccountRepository(BaseRepository):
    resource = "ledger.account"


class JournalEntryRepository(BaseRepository):
    resource = "ledger.journal_entry"


def _unprocessable(reason: str, detail: str) -> HTTPException:
    observe_ledger_post_failure(reason)
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


@dataclass(slots=True)
class LedgerService:
    account_repository: LedgerAccountRepository = LedgerAccountRepository()
    entry_repository: JournalEntryRepository = JournalEntryRepository()

    def create_account(self, session: Session, ctx: AuthContext, dto: LedgerAccountCreate) -> LedgerAccountRead:
        enforce(ctx, Capability.LEDGER_POST)
        payload = dto.model_dump(mode="python")
        try:
            self.account_repository.validate_write_security(payload, ctx, action="create")
        except AuthorizationError as exc:
            raise forbidden(exc)

        account = LedgerAccount(**payload)
        session.add(account)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="ledger account already exists")
        session.refresh(account)
        return LedgerAccountRead.model_validate(account)

    def list_accounts(
        self,
        session: Session,
        ctx: AuthContext,
        *,
        tenant_id: str,
        organization_id: str | None = None,
    ) -> list[LedgerAccountRead]:
        enforce(ctx, Capability.LEDGER_READ)
        stmt: Select[tuple[LedgerAccount]] = select(LedgerAccount).where(LedgerAccount.tenant_id == tenant_id)
        if organization_id is not None:
            stmt = stmt.where(LedgerAccount.organization_id == organization_id)
        stmt = self.account_repository.apply_scope_query(stmt, ctx)
        rows = session.scalars(stmt.order_by(LedgerAccount.code.asc())).all()
        return [LedgerAccountRead.model_validate(item) for item in rows]

    def accounts_by_code(
        self,
        session: Session,
        *,
        tenant_id: str,
        organization_id: str,
        currency: str,
    ) -> dict[str, LedgerAccount]:
        """Chart of accounts keyed by code, seeding the defaults into the session when missing."""

        self.stage_default_accounts(session, tenant_id=tenant_id, organization_id=organization_id, currency=currency)
        rows = session.scalars(
            select(LedgerAccount).where(
                and_(LedgerAccount.tenant_id == tenant_id, LedgerAccount.organization_id == organization_id)
            )
        ).all()
        return {item.code: item for item in rows}

    def organization_currency(self, session: Session, *, tenant_id: str, organization_id: str) -> str | None:
        """Currency of the organization's seeded chart, or None before the first posting."""

        return session.scalar(
            select(LedgerAccount.currency)
            .where(and_(LedgerAccount.tenant_id == tenant_id, LedgerAccount.organization_id == organization_id))
            .order_by(LedgerAccount.code.asc())
            .limit(1)
        )

    def stage_default_accounts(
        self,
        session: Session,
        *,
        tenant_id: str,
        organization_id: str,
        currency: str,
    ) -> list[LedgerAccount]:
        existing_codes = set(
            session.scalars(
                select(LedgerAccount.code).where(
                    and_(LedgerAccount.tenant_id == tenant_id, LedgerAccount.organization_id == organization_id)
                )
            ).all()
        )

        created: list[LedgerAccount] = []
        for code, name, account_type in DEFAULT_CHART:
            if code in existing_codes:
                continue
            account = LedgerAccount(
                tenant_id=tenant_id,
                organization_id=organization_id,
                name=name,
                code=code,
                type=account_type,
                currency=currency,
                is_active=True,
            )
            session.add(account)
            created.append(account)
        if created:
            session.flush()
        return created

    def stage_entry(self, session: Session, created_by: str, request: JournalEntryPostRequest) -> JournalEntry:
        """Validate and add an entry to the session without committing it."""

        account_ids = [line.account_id for line in request.lines]
        accounts = session.scalars(select(LedgerAccount).where(LedgerAccount.id.in_(account_ids))).all()
        account_map = {item.id: item for item in accounts}
        if len(account_map) != len(set(account_ids)):
            raise _unprocessable("account_not_found", "one or more accounts not found")

        for account in account_map.values():
            if (
                account.tenant_id != request.tenant_id
                or account.organization_id != request.organization_id
                or not account.is_active
            ):
                raise _unprocessable("account_scope_invalid", "invalid account scope")

        debit_total = Decimal("0")
        credit_total = Decimal("0")
        for line in request.lines:
            debit = Decimal(line.debit_amount)
            credit = Decimal(line.credit_amount)
            if (debit > 0 and credit > 0) or (debit == 0 and credit == 0):
                raise _unprocessable("invalid_line_side", "line must be single-sided")
            if line.currency != account_map[line.account_id].currency:
                raise _unprocessable("currency_mismatch", "line currency does not match account currency")
            debit_total += debit
            credit_total += credit

        if debit_total.quantize(_CENT) != credit_total.quantize(_CENT):
            raise _unprocessable("unbalanced_entry", "journal entry is not balanced")

        entry = JournalEntry(
            tenant_id=request.tenant_id,
            organization_id=request.organization_id,
            case_id=request.case_id,
            entry_date=request.entry_date,
            description=request.description,
            source_module=request.source_module,
            source_type=request.source_type,
            source_id=request.source_id,
            posting_status="POSTED",
            created_by=created_by,
        )
        for line in request.lines:
            entry.lines.append(
                JournalLine(
                    account_id=line.account_id,
                    debit_amount=line.debit_amount,
                    credit_amount=line.credit_amount,
                    currency=line.currency,
                    memo=line.memo,
                )
            )
        session.add(entry)
        session.flush()
        return entry

    def post_entry(self, session: Session, ctx: AuthContext, request: JournalEntryPostRequest) -> JournalEntryRead:
        enforce(ctx, Capability.LEDGER_POST)
        payload = request.model_dump(mode="python")
        try:
            self.entry_repository.validate_write_security(payload, ctx, action="create")
        except AuthorizationError as exc:
            observe_ledger_post_failure("authz")
            raise forbidden(exc)

        entry = self.stage_entry(session, ctx.user_id, request)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            observe_ledger_post_failure("db_error")
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="failed to persist journal entry")

        observe_ledger_entries_posted()
        self._audit_posted(ctx, entry)
        return self.get_entry(session, ctx, entry.id)

    def reverse_entry(
        self,
        session: Session,
        ctx: AuthContext,
        entry_id: uuid.UUID,
        request: JournalEntryReverseRequest,
    ) -> JournalEntryRead:
        enforce(ctx, Capability.LEDGER_POST)
        entry = self._load_entry(session, ctx, entry_id)
        if entry.posting_status == "REVERSED":
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="entry already reversed")

        reverse_request = JournalEntryPostRequest.model_validate(
            {
                "tenant_id": entry.tenant_id,
                "organization_id": entry.organization_id,
                "case_id": entry.case_id,
                "entry_date": date.today(),
                "description": f"Reversal: {request.reason}",
                "source_module": "ledger",
                "source_type": "reversal",
                "source_id": str(entry.id),
                "lines": [
                    {
                        "account_id": line.account_id,
                        "debit_amount": line.credit_amount,
                        "credit_amount": line.debit_amount,
                        "currency": line.currency,
                        "memo": line.memo,
                    }
                    for line in entry.lines
                ],
            }
        )
        reversal = self.stage_entry(session, ctx.user_id, reverse_request)
        entry.posting_status = "REVERSED"
        session.commit()

        observe_ledger_entries_posted()
        audit.record(
            actor_user_id=ctx.user_id,
            entity_type="ledger.journal_entry",
            entity_id=str(entry.id),
            action="ledger.reversed",
            before={"posting_status": "POSTED"},
            after={"posting_status": "REVERSED", "reversal_entry_id": str(reversal.id)},
            correlation_id=ctx.correlation_id,
        )
        return self.get_entry(session, ctx, reversal.id)

    def get_entry(self, session: Session, ctx: AuthContext, entry_id: uuid.UUID) -> JournalEntryRead:
        enforce(ctx, Capability.LEDGER_READ)
        return JournalEntryRead.model_validate(self._load_entry(session, ctx, entry_id))

    def list_entries(
        self,
        session: Session,
        ctx: AuthContext,
        *,
        tenant_id: str,
        organization_id: str | None = None,
        case_id: uuid.UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        source_module: str | None = None,
        source_type: str | None = None,
        source_id: str | None = None,
    ) -> list[JournalEntryRead]:
        enforce(ctx, Capability.LEDGER_READ)
        stmt: Select[tuple[JournalEntry]] = (
            select(JournalEntry)
            .where(JournalEntry.tenant_id == tenant_id)
            .options(selectinload(JournalEntry.lines))
        )
        if organization_id is not None:
            stmt = stmt.where(JournalEntry.organization_id == organization_id)
        if case_id is not None:
            stmt = stmt.where(JournalEntry.case_id == case_id)
        if start_date is not None:
            stmt = stmt.where(JournalEntry.entry_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(JournalEntry.entry_date <= end_date)
        if source_module is not None:
            stmt = stmt.where(JournalEntry.source_module == source_module)
        if source_type is not None:
            stmt = stmt.where(JournalEntry.source_type == source_type)
        if source_id is not None:
            stmt = stmt.where(JournalEntry.source_id == source_id)

        stmt = self.entry_repository.apply_scope_query(stmt, ctx)
        rows = session.scalars(stmt.order_by(JournalEntry.entry_date.desc(), JournalEntry.created_at.desc())).all()
        return [JournalEntryRead.model_validate(row) for row in rows]

    def seed_chart_of_accounts(
        self,
        session: Session,
        ctx: AuthContext,
        *,
        tenant_id: str,
        organization_id: str,
        currency: str,
    ) -> list[LedgerAccountRead]:
        enforce(ctx, Capability.LEDGER_POST)
        seed_payload = {"tenant_id": tenant_id, "organization_id": organization_id, "currency": currency}
        try:
            self.account_repository.validate_write_security(seed_payload, ctx, action="seed")
        except AuthorizationError as exc:
            raise forbidden(exc)

        created = self.stage_default_accounts(
            session,
            tenant_id=tenant_id,
            organization_id=organization_id,
            currency=currency,
        )
        session.commit()
        return [LedgerAccountRead.model_validate(item) for item in created]

    def _load_entry(self, session: Session, ctx: AuthContext, entry_id: uuid.UUID) -> JournalEntry:
        entry = session.scalar(
            self.entry_repository.apply_scope_query(
                select(JournalEntry)
                .where(JournalEntry.id == entry_id)
                .options(selectinload(JournalEntry.lines)),
                ctx,
            )
        )
        if entry is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="journal entry not found")
        return entry

    def _audit_posted(self, ctx: AuthContext, entry: JournalEntry) -> None:
        audit.record(
            actor_user_id=ctx.user_id,
            entity_type="ledger.journal_entry",
            entity_id=str(entry.id),
            action="ledger.posted",
            before=None,
            after={
                "organization_id": entry.organization_id,
                "source_module": entry.source_module,
                "source_type": entry.source_type,
                "source_id": entry.source_id,
                "line_count": len(entry.lines),
            },
            correlation_id=ctx.correlation_id,
        )


ledger_service = LedgerService()
