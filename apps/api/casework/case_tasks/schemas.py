from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from casework.case_tasks.models import TaskStatus, TaskType


class TaskCreate(BaseModel):
    task_type: TaskType
    assigned_to: str = Field(min_length=1, max_length=128)
    notes: str | None = None
    deadline: date | None = None


class TaskAssignRequest(BaseModel):
    assigned_to: str = Field(min_length=1, max_length=128)


class TaskStatusUpdate(BaseModel):
    status: TaskStatus
    km_travelled: Decimal | None = Field(default=None, ge=Decimal("0"), max_digits=10, decimal_places=2)


class TaskRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    case_id: UUID
    task_type: TaskType
    status: TaskStatus
    assigned_to: str
    assigned_by: str
    notes: str | None
    deadline: date | None
    km_travelled: Decimal | None
    created_at: datetime
    started_at: datetime | None
    completed_at: datetime | None
    acknowledged_at: datetime | None


class AssignedTaskRead(TaskRead):
    case_title: str
    client_name: str
