from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from casework.cases.models import utcnow
from casework.core.database import Base

LEDGER_SOURCE_TYPES = ("case_payment", "case_expense", "salary_entry", "invoice", "adjustment", "reversal")


class LedgerAccount(Base):
    __tablename__ = "ledger_account"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(128), nullable=False)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    lines: Mapped[list[JournalLine]] = relationship("JournalLine", back_populates="account")

    __table_args__ = (
        UniqueConstraint("tenant_id", "organization_id", "code", name="uq_ledger_account_code"),
        Index("ix_ledger_account_scope", "tenant_id", "organization_id"),
    )


class JournalEntry(Base):
    __tablename__ = "ledger_journal_entry"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(128), nullable=False)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False)
    case_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    entry_date: Mapped[date] = mapped_column(Date(), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    source_module: Mapped[str] = mapped_column(String(64), nullable=False)
    source_type: Mapped[str] = mapped_column(String(64), nullable=False)
    source_id: Mapped[str] = mapped_column(String(128), nullable=False)
    posting_status: Mapped[str] = mapped_column(String(32), nullable=False, default="POSTED", server_default="POSTED")
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    lines: Mapped[list[JournalLine]] = relationship(
        "JournalLine",
        back_populates="entry",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_ledger_entry_scope_date", "tenant_id", "organization_id", "entry_date"),
        Index("ix_ledger_entry_source", "source_module", "source_type", "source_id"),
        Index("ix_ledger_entry_case", "case_id"),
        CheckConstraint(
            "source_type IN (" + ", ".join(f"'{item}'" for item in LEDGER_SOURCE_TYPES) + ")",
            name="ck_ledger_entry_source_type",
        ),
        CheckConstraint(
            "source_type NOT IN ('case_payment', 'case_expense') OR case_id IS NOT NULL",
            name="ck_ledger_entry_case_source",
        ),
    )


class JournalLine(Base):
    __tablename__ = "ledger_journal_line"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    journal_entry_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("ledger_journal_entry.id", ondelete="CASCADE"),
        nullable=False,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("ledger_account.id", ondelete="RESTRICT"),
        nullable=False,
    )
    debit_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"), server_default="0")
    credit_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"), server_default="0")
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    memo: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    entry: Mapped[JournalEntry] = relationship("JournalEntry", back_populates="lines")
    account: Mapped[LedgerAccount] = relationship("LedgerAccount", back_populates="lines")

    __table_args__ = (
        CheckConstraint("debit_amount >= 0", name="ck_ledger_line_debit_nonnegative"),
        CheckConstraint("credit_amount >= 0", name="ck_ledger_line_credit_nonnegative"),
        CheckConstraint(
            "((debit_amount > 0 AND credit_amount = 0) OR (credit_amount > 0 AND debit_amount = 0))",
            name="ck_ledger_line_single_sided",
        ),
    )
