from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from casework import audit, events
from casework.cases.models import Case, utcnow
from casework.cases.repository import CaseRepository
from casework.cases.schemas import (
    BudgetUpdateRequest,
    CaseActivityRead,
    CaseCreate,
    CaseRead,
    CaseStatusAdvanceRequest,
    CaseTeamAssignRequest,
    ClosureRead,
    CostCenterRead,
)
from casework.cases.status import (
    STATUS_LABELS,
    CaseStatus,
    is_case_completed,
    is_forward_transition,
    is_sales_stage,
)
from casework.finance.models import CaseExpense, CasePayment, ExpenseStatus, PaymentStatus
from casework.metrics import observe_case_transition
from casework.platform.security.capabilities import Capability, has_capability
from casework.platform.security.context import AuthContext
from casework.platform.security.dependencies import enforce, forbidden
from casework.platform.security.errors import AuthorizationError

logger = logging.getLogger("casework.cases")


def apply_transition(
    session: Session,
    case: Case,
    target: CaseStatus,
    *,
    actor_id: str,
    action: str,
    message: str | None = None,
    details: dict[str, Any] | None = None,
) -> str:
    """Move `case` to `target` and append the matching activity. Returns the previous status.

    Nothing is committed; call `announce_transition` once the session commits.
    """

    from_status = case.status
    case.status = target.value
    CaseRepository().add_activity(
        session,
        case.id,
        action=action,
        message=message or f"Status changed to {STATUS_LABELS[target]}",
        actor_id=actor_id,
        details={"from_status": from_status, "to_status": target.value, **(details or {})},
    )
    return from_status


def announce_transition(case_id: uuid.UUID, from_status: str, to_status: str) -> None:
    observe_case_transition(to_status)
    logger.info(
        "case.transition",
        extra={"case_id": str(case_id), "from_status": from_status, "to_status": to_status},
    )


def publish_case_event(event_type: str, case: Case, *, actor_id: str, payload: dict[str, Any] | None = None) -> None:
    events.publish(
        {
            "event_id": str(uuid.uuid4()),
            "event_type": event_type,
            "occurred_at": utcnow().isoformat(),
            "actor_user_id": actor_id,
            "tenant_id": case.tenant_id,
            "organization_id": case.organization_id,
            "case_id": str(case.id),
            "case_title": case.title,
            "project_head_id": case.project_head_id,
            "client_id": case.client_id,
            "status": case.status,
            "payload": payload or {},
        }
    )


def ensure_not_completed(case: Case) -> None:
    if is_case_completed(case.status):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="case is completed and read-only")


def to_case_read(case: Case) -> CaseRead:
    return CaseRead.model_validate(
        {
            "id": case.id,
            "tenant_id": case.tenant_id,
            "organization_id": case.organization_id,
            "title": case.title,
            "client_name": case.client_name,
            "client_phone": case.client_phone,
            "client_email": case.client_email,
            "site_address": case.site_address,
            "client_id": case.client_id,
            "sales_owner_id": case.sales_owner_id,
            "project_head_id": case.project_head_id,
            "status": case.status,
            "cost_center": CostCenterRead(
                total_budget=case.total_budget,
                spent_amount=case.spent_amount,
                received_amount=case.received_amount,
                remaining_amount=case.remaining_amount,
            ),
            "closure": ClosureRead(
                jms_signed=case.jms_signed,
                jms_signed_at=case.jms_signed_at,
                completed_at=case.completed_at,
                completed_by=case.completed_by,
            ),
            "created_by": case.created_by,
            "created_at": case.created_at,
            "updated_at": case.updated_at,
        }
    )


@dataclass(slots=True)
class CaseService:
    repository: CaseRepository = CaseRepository()

    def create_case(self, session: Session, ctx: AuthContext, dto: CaseCreate) -> CaseRead:
        enforce(ctx, Capability.CASE_CREATE)
        payload = dto.model_dump(mode="python")
        try:
            self.repository.validate_write_security(payload, ctx, action="create")
        except AuthorizationError as exc:
            raise forbidden(exc)

        case = Case(**payload, status=CaseStatus.LEAD.value, created_by=ctx.user_id)
        session.add(case)
        session.flush()
        self.repository.add_activity(
            session,
            case.id,
            action="case.created",
            message=f"Case created for {case.client_name}",
            actor_id=ctx.user_id,
        )
        session.commit()
        session.refresh(case)

        audit.record(
            actor_user_id=ctx.user_id,
            entity_type="cases.case",
            entity_id=str(case.id),
            action="case.created",
            before=None,
            after={"organization_id": case.organization_id, "status": case.status},
            correlation_id=ctx.correlation_id,
        )
        return to_case_read(case)

    def list_cases(
        self,
        session: Session,
        ctx: AuthContext,
        *,
        tenant_id: str | None = None,
        organization_id: str | None = None,
        statuses: list[CaseStatus] | None = None,
        project_head_id: str | None = None,
    ) -> list[CaseRead]:
        status_values = [item.value for item in statuses] if statuses else None
        # Callers without a staff role only see the cases they are a party to.
        party_id = None if has_capability(ctx, Capability.CASE_READ) else ctx.user_id
        rows = self.repository.list(
            session,
            ctx,
            tenant_id=tenant_id,
            organization_id=organization_id,
            statuses=status_values,
            project_head_id=project_head_id,
            party_id=party_id,
        )
        return [to_case_read(item) for item in rows]

    def get_case(self, session: Session, ctx: AuthContext, case_id: uuid.UUID) -> CaseRead:
        case = self.repository.get_or_404(session, ctx, case_id)
        enforce(ctx, Capability.CASE_READ, case)
        return to_case_read(case)

    def advance_status(
        self,
        session: Session,
        ctx: AuthContext,
        case_id: uuid.UUID,
        request: CaseStatusAdvanceRequest,
    ) -> CaseRead:
        enforce(ctx, Capability.CASE_ADVANCE_STATUS)
        case = self.repository.get_or_404(session, ctx, case_id, for_update=True)
        ensure_not_completed(case)

        target = request.status
        if not is_forward_transition(case.status, target):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"cannot move case from {case.status} to {target.value}",
            )
        if not is_sales_stage(target):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="execution statuses are reached through execution operations",
            )
        if target == CaseStatus.WAITING_FOR_PLANNING and not case.project_head_id:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="assign a project head before handing the case to planning",
            )

        from_status = apply_transition(
            session,
            case,
            target,
            actor_id=ctx.user_id,
            action="case.status_advanced",
            details={"note": request.note} if request.note else None,
        )
        session.commit()
        session.refresh(case)
        announce_transition(case.id, from_status, case.status)
        return to_case_read(case)

    def assign_team(
        self,
        session: Session,
        ctx: AuthContext,
        case_id: uuid.UUID,
        request: CaseTeamAssignRequest,
    ) -> CaseRead:
        enforce(ctx, Capability.CASE_ASSIGN_TEAM)
        case = self.repository.get_or_404(session, ctx, case_id, for_update=True)
        ensure_not_completed(case)

        changes = request.model_dump(exclude_unset=True)
        if not changes:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="no team members given")

        before = {key: getattr(case, key) for key in changes}
        for key, value in changes.items():
            setattr(case, key, value)
        self.repository.add_activity(
            session,
            case.id,
            action="case.team_assigned",
            message="Case team updated",
            actor_id=ctx.user_id,
            details=changes,
        )
        session.commit()
        session.refresh(case)

        audit.record(
            actor_user_id=ctx.user_id,
            entity_type="cases.case",
            entity_id=str(case.id),
            action="case.team_assigned",
            before=before,
            after=changes,
            correlation_id=ctx.correlation_id,
        )
        return to_case_read(case)

    def set_budget(
        self,
        session: Session,
        ctx: AuthContext,
        case_id: uuid.UUID,
        request: BudgetUpdateRequest,
    ) -> CaseRead:
        enforce(ctx, Capability.BUDGET_MANAGE)
        case = self.repository.get_or_404(session, ctx, case_id, for_update=True)

        previous = case.total_budget
        case.total_budget = request.total_budget
        self.repository.add_activity(
            session,
            case.id,
            action="case.budget_set",
            message=f"Budget set to {request.total_budget}",
            actor_id=ctx.user_id,
            details={"previous": str(previous), "total_budget": str(request.total_budget)},
        )
        session.commit()
        session.refresh(case)
        return to_case_read(case)

    def get_cost_center(self, session: Session, ctx: AuthContext, case_id: uuid.UUID) -> CostCenterRead:
        case = self.repository.get_or_404(session, ctx, case_id)
        enforce(ctx, Capability.CASE_READ, case)

        pending_expenses = session.scalar(
            select(func.coalesce(func.sum(CaseExpense.amount), 0)).where(
                CaseExpense.case_id == case.id,
                CaseExpense.status == ExpenseStatus.PENDING.value,
            )
        )
        pending_payments = session.scalar(
            select(func.coalesce(func.sum(CasePayment.amount), 0)).where(
                CasePayment.case_id == case.id,
                CasePayment.status == PaymentStatus.PENDING_VERIFICATION.value,
            )
        )
        return CostCenterRead(
            total_budget=case.total_budget,
            spent_amount=case.spent_amount,
            received_amount=case.received_amount,
            remaining_amount=case.remaining_amount,
            pending_expense_amount=Decimal(pending_expenses or 0),
            pending_payment_amount=Decimal(pending_payments or 0),
        )

    def list_activities(self, session: Session, ctx: AuthContext, case_id: uuid.UUID) -> list[CaseActivityRead]:
        case = self.repository.get_or_404(session, ctx, case_id)
        enforce(ctx, Capability.CASE_READ, case)
        return [CaseActivityRead.model_validate(item) for item in self.repository.list_activities(session, case.id)]


case_service = CaseService()
