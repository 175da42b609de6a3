from __future__ import annotations

import uuid
from datetime import date, datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from casework.cases.models import utcnow
from casework.core.database import Base


class JMSStatus(StrEnum):
    PENDING = "PENDING"
    SIGNED = "SIGNED"


class ExecutionPlan(Base):
    __tablename__ = "execution_plan"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("cases_case.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    admin_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    client_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    admin_approved_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    client_approved_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    execution_marked_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    marked_complete_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    marked_complete_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    rejected_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    days: Mapped[list[ExecutionPlanDay]] = relationship(
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="ExecutionPlanDay.day_date",
    )

    @property
    def fully_approved(self) -> bool:
        return bool(self.admin_approved and self.client_approved)


class ExecutionPlanDay(Base):
    __tablename__ = "execution_plan_day"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    plan_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("execution_plan.id", ondelete="CASCADE"),
        nullable=False,
    )
    day_date: Mapped[date] = mapped_column(Date, nullable=False)
    work_description: Mapped[str] = mapped_column(Text, nullable=False)
    labor_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    labor_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    materials: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    plan: Mapped[ExecutionPlan] = relationship(back_populates="days")

    __table_args__ = (UniqueConstraint("plan_id", "day_date", name="uq_execution_plan_day_date"),)


class DailyLog(Base):
    __tablename__ = "execution_daily_log"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("cases_case.id", ondelete="CASCADE"),
        nullable=False,
    )
    log_date: Mapped[date] = mapped_column(Date, nullable=False)
    work_description: Mapped[str] = mapped_column(Text, nullable=False)
    manpower_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    photos: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("case_id", "log_date", name="uq_execution_daily_log_day"),
        Index("ix_execution_daily_log_case", "case_id", "log_date"),
    )


class JMSRecord(Base):
    __tablename__ = "execution_jms"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("cases_case.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=JMSStatus.PENDING.value)
    items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    launched_by: Mapped[str] = mapped_column(String(128), nullable=False)
    launched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    signed_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    signed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    client_signature: Mapped[str | None] = mapped_column(Text, nullable=True)
