from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import Date, DateTime, ForeignKey, Index, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from casework.cases.models import utcnow
from casework.core.database import Base


class TaskType(StrEnum):
    SITE_VISIT = "site_visit"
    DRAWING = "drawing"
    BOQ = "boq"
    QUOTATION = "quotation"
    PROCUREMENT = "procurement"
    EXECUTION = "execution"
    ACCOUNTS = "accounts"


class TaskStatus(StrEnum):
    PENDING = "pending"
    STARTED = "started"
    COMPLETED = "completed"
    ACKNOWLEDGED = "acknowledged"


# Allowed moves; acknowledgement is the assigner's sign-off on completed work.
TASK_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.STARTED, TaskStatus.COMPLETED}),
    TaskStatus.STARTED: frozenset({TaskStatus.COMPLETED}),
    TaskStatus.COMPLETED: frozenset({TaskStatus.ACKNOWLEDGED}),
    TaskStatus.ACKNOWLEDGED: frozenset(),
}

OPEN_TASK_STATUSES = (TaskStatus.PENDING, TaskStatus.STARTED)


class CaseTask(Base):
    __tablename__ = "tasks_case_task"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("cases_case.id", ondelete="CASCADE"),
        nullable=False,
    )
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False)
    task_type: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=TaskStatus.PENDING.value)
    assigned_to: Mapped[str] = mapped_column(String(128), nullable=False)
    assigned_by: Mapped[str] = mapped_column(String(128), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    deadline: Mapped[date | None] = mapped_column(Date, nullable=True)
    km_travelled: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_tasks_case", "case_id", "created_at"),
        Index("ix_tasks_assignee_status", "assigned_to", "status"),
    )
