from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from casework.case_tasks.models import TaskStatus, TaskType
from casework.case_tasks.schemas import AssignedTaskRead, TaskAssignRequest, TaskCreate, TaskRead, TaskStatusUpdate
from casework.case_tasks.service import case_task_service
from casework.core.database import get_db
from casework.platform.security.context import AuthContext
from casework.platform.security.dependencies import get_auth_context


router = APIRouter(prefix="/api", tags=["tasks"])


@router.post("/cases/{case_id}/tasks", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
def create_task(
    case_id: uuid.UUID,
    payload: TaskCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> TaskRead:
    return case_task_service.create_task(db, ctx, case_id, payload)


@router.get("/cases/{case_id}/tasks", response_model=list[TaskRead])
def list_case_tasks(
    case_id: uuid.UUID,
    task_status: TaskStatus | None = Query(default=None, alias="status"),
    task_type: TaskType | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[TaskRead]:
    return case_task_service.list_case_tasks(db, ctx, case_id, task_status=task_status, task_type=task_type)


@router.get("/tasks/assigned", response_model=list[AssignedTaskRead])
def list_assigned_tasks(
    open_only: bool = Query(default=False),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[AssignedTaskRead]:
    return case_task_service.list_assigned(db, ctx, open_only=open_only)


@router.put("/tasks/{task_id}/assignee", response_model=TaskRead)
def reassign_task(
    task_id: uuid.UUID,
    payload: TaskAssignRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> TaskRead:
    return case_task_service.reassign_task(db, ctx, task_id, payload)


@router.post("/tasks/{task_id}/status", response_model=TaskRead)
def update_task_status(
    task_id: uuid.UUID,
    payload: TaskStatusUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> TaskRead:
    return case_task_service.update_status(db, ctx, task_id, payload)
