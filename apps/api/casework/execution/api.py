from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from casework.core.database import get_db
from casework.execution.schemas import (
    ApprovalResult,
    DailyLogCreate,
    DailyLogRead,
    ExecutionPlanRead,
    JMSLaunchRequest,
    JMSRead,
    JMSSignRequest,
    MaterialSummaryRead,
    PlanRejectRequest,
    PlanSubmitRequest,
    WorkspaceRead,
)
from casework.execution.service import execution_service
from casework.execution.workspace import workspace_service
from casework.platform.security.context import AuthContext
from casework.platform.security.dependencies import get_auth_context


router = APIRouter(prefix="/api/cases/{case_id}/execution", tags=["execution"])


@router.get("", response_model=WorkspaceRead)
def get_workspace(
    case_id: uuid.UUID,
    today: date | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> WorkspaceRead:
    return workspace_service.get_workspace(db, ctx, case_id, today=today)


@router.get("/plan", response_model=ExecutionPlanRead)
def get_plan(
    case_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ExecutionPlanRead:
    return execution_service.read_plan(db, ctx, case_id)


@router.put("/plan", response_model=ExecutionPlanRead)
def submit_plan(
    case_id: uuid.UUID,
    payload: PlanSubmitRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ExecutionPlanRead:
    return execution_service.submit_plan(db, ctx, case_id, payload)


@router.post("/plan/approve/admin", response_model=ApprovalResult)
def approve_plan_as_admin(
    case_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ApprovalResult:
    return execution_service.approve_as_admin(db, ctx, case_id)


@router.post("/plan/approve/client", response_model=ApprovalResult)
def approve_plan_as_client(
    case_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ApprovalResult:
    return execution_service.approve_as_client(db, ctx, case_id)


@router.post("/plan/reject", response_model=ExecutionPlanRead)
def reject_plan(
    case_id: uuid.UUID,
    payload: PlanRejectRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ExecutionPlanRead:
    return execution_service.reject_plan(db, ctx, case_id, payload)


@router.get("/materials", response_model=list[MaterialSummaryRead])
def materials_summary(
    case_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[MaterialSummaryRead]:
    return execution_service.materials_summary(db, ctx, case_id)


@router.post("/daily-logs", response_model=DailyLogRead, status_code=status.HTTP_201_CREATED)
def add_daily_log(
    case_id: uuid.UUID,
    payload: DailyLogCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DailyLogRead:
    return execution_service.add_daily_log(db, ctx, case_id, payload)


@router.get("/daily-logs", response_model=list[DailyLogRead])
def list_daily_logs(
    case_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[DailyLogRead]:
    return execution_service.list_daily_logs(db, ctx, case_id)


@router.get("/daily-logs/missing", response_model=list[date])
def missing_log_dates(
    case_id: uuid.UUID,
    today: date | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[date]:
    return execution_service.missing_log_dates(db, ctx, case_id, today=today)


@router.post("/complete", response_model=ExecutionPlanRead)
def mark_execution_complete(
    case_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ExecutionPlanRead:
    return execution_service.mark_execution_complete(db, ctx, case_id)


@router.post("/jms", response_model=JMSRead, status_code=status.HTTP_201_CREATED)
def launch_jms(
    case_id: uuid.UUID,
    payload: JMSLaunchRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> JMSRead:
    return execution_service.launch_jms(db, ctx, case_id, payload)


@router.get("/jms", response_model=JMSRead)
def get_jms(
    case_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> JMSRead:
    return execution_service.get_jms_read(db, ctx, case_id)


@router.post("/jms/sign", response_model=JMSRead)
def sign_jms(
    case_id: uuid.UUID,
    payload: JMSSignRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> JMSRead:
    return execution_service.sign_jms(db, ctx, case_id, payload)
