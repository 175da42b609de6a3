from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from casework.cases.schemas import (
    BudgetUpdateRequest,
    CaseActivityRead,
    CaseCreate,
    CaseRead,
    CaseStatusAdvanceRequest,
    CaseTeamAssignRequest,
    CostCenterRead,
)
from casework.cases.service import case_service
from casework.cases.status import CaseStatus
from casework.core.database import get_db
from casework.platform.security.context import AuthContext
from casework.platform.security.dependencies import get_auth_context


router = APIRouter(prefix="/api/cases", tags=["cases"])


@router.post("", response_model=CaseRead, status_code=status.HTTP_201_CREATED)
def create_case(
    payload: CaseCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> CaseRead:
    return case_service.create_case(db, ctx, payload)


@router.get("", response_model=list[CaseRead])
def list_cases(
    tenant_id: str | None = Query(default=None),
    organization_id: str | None = Query(default=None),
    status_filter: list[CaseStatus] | None = Query(default=None, alias="status"),
    project_head_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[CaseRead]:
    return case_service.list_cases(
        db,
        ctx,
        tenant_id=tenant_id,
        organization_id=organization_id,
        statuses=status_filter,
        project_head_id=project_head_id,
    )


@router.get("/{case_id}", response_model=CaseRead)
def get_case(
    case_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> CaseRead:
    return case_service.get_case(db, ctx, case_id)


@router.post("/{case_id}/status", response_model=CaseRead)
def advance_status(
    case_id: uuid.UUID,
    payload: CaseStatusAdvanceRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> CaseRead:
    return case_service.advance_status(db, ctx, case_id, payload)


@router.post("/{case_id}/team", response_model=CaseRead)
def assign_team(
    case_id: uuid.UUID,
    payload: CaseTeamAssignRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> CaseRead:
    return case_service.assign_team(db, ctx, case_id, payload)


@router.put("/{case_id}/budget", response_model=CaseRead)
def set_budget(
    case_id: uuid.UUID,
    payload: BudgetUpdateRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> CaseRead:
    return case_service.set_budget(db, ctx, case_id, payload)


@router.get("/{case_id}/cost-center", response_model=CostCenterRead)
def get_cost_center(
    case_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> CostCenterRead:
    return case_service.get_cost_center(db, ctx, case_id)


@router.get("/{case_id}/activities", response_model=list[CaseActivityRead])
def list_activities(
    case_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[CaseActivityRead]:
    return case_service.list_activities(db, ctx, case_id)
