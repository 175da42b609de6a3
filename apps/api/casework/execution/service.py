from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from casework import audit
from casework.cases.models import Case, utcnow
from casework.cases.repository import CaseRepository
from casework.cases.service import (
    announce_transition,
    apply_transition,
    ensure_not_completed,
    publish_case_event,
)
from casework.cases.status import CaseStatus
from casework.execution.models import DailyLog, ExecutionPlan, ExecutionPlanDay, JMSRecord, JMSStatus
from casework.execution.schemas import (
    ApprovalResult,
    ApprovalsRead,
    DailyLogCreate,
    DailyLogRead,
    ExecutionPlanRead,
    JMSLaunchRequest,
    JMSRead,
    JMSSignRequest,
    MaterialSummaryRead,
    PlanDayInput,
    PlanDayRead,
    PlanMaterial,
    PlanRejectRequest,
    PlanSubmitRequest,
)
from casework.execution.status import check_and_transition_to_execution_active, is_planning_locked
from casework.notifications.service import NotificationService
from casework.platform.security.capabilities import Capability
from casework.platform.security.context import AuthContext
from casework.platform.security.dependencies import enforce

logger = logging.getLogger("casework.execution")


def _unprocessable(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


def _conflict(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)


def clean_materials(day: PlanDayInput, day_date: date) -> list[dict[str, Any]]:
    """Drop blank or non-positive material rows; unset `required_on` falls back to the day itself."""

    cleaned: list[dict[str, Any]] = []
    for material in day.materials:
        if not material.catalog_item_id.strip() or material.quantity <= 0:
            continue
        row = material.model_copy(
            update={
                "catalog_item_id": material.catalog_item_id.strip(),
                "required_on": material.required_on or day_date,
            }
        )
        cleaned.append(row.model_dump(mode="json"))
    return cleaned


def validate_plan(request: PlanSubmitRequest) -> list[tuple[date, PlanDayInput]]:
    if request.start_date is None or request.end_date is None:
        raise _unprocessable("start and end dates are required")
    if request.end_date < request.start_date:
        raise _unprocessable("end date must not be before start date")
    if not request.days:
        raise _unprocessable("plan needs at least one day")

    seen: set[date] = set()
    days: list[tuple[date, PlanDayInput]] = []
    for index, day in enumerate(request.days, start=1):
        if day.day_date is None:
            raise _unprocessable(f"day {index} has no date")
        if not request.start_date <= day.day_date <= request.end_date:
            raise _unprocessable(f"day {day.day_date.isoformat()} is outside the plan range")
        if day.day_date in seen:
            raise _unprocessable(f"day {day.day_date.isoformat()} is planned twice")
        seen.add(day.day_date)
        days.append((day.day_date, day))
    return sorted(days, key=lambda item: item[0])


def missing_dates(plan: ExecutionPlan | None, logged: set[date], today: date) -> list[date]:
    if plan is None:
        return []
    return [day.day_date for day in plan.days if day.day_date < today and day.day_date not in logged]


def to_plan_read(plan: ExecutionPlan) -> ExecutionPlanRead:
    return ExecutionPlanRead(
        id=plan.id,
        case_id=plan.case_id,
        start_date=plan.start_date,
        end_date=plan.end_date,
        days=[PlanDayRead.model_validate(day) for day in plan.days],
        approvals=ApprovalsRead(
            admin=plan.admin_approved,
            client=plan.client_approved,
            admin_approved_by=plan.admin_approved_by,
            client_approved_by=plan.client_approved_by,
        ),
        approved_at=plan.approved_at,
        execution_marked_complete=plan.execution_marked_complete,
        marked_complete_by=plan.marked_complete_by,
        marked_complete_at=plan.marked_complete_at,
        rejected_by=plan.rejected_by,
        rejected_at=plan.rejected_at,
        rejection_reason=plan.rejection_reason,
        created_by=plan.created_by,
        submitted_at=plan.submitted_at,
    )


@dataclass(slots=True)
class ExecutionService:
    case_repository: CaseRepository = CaseRepository()
    notification_service: NotificationService = field(default_factory=NotificationService)

    def get_plan(self, session: Session, case_id: uuid.UUID) -> ExecutionPlan | None:
        return session.scalar(
            select(ExecutionPlan)
            .where(ExecutionPlan.case_id == case_id)
            .options(selectinload(ExecutionPlan.days))
        )

    def get_jms(self, session: Session, case_id: uuid.UUID) -> JMSRecord | None:
        return session.scalar(select(JMSRecord).where(JMSRecord.case_id == case_id))

    def logged_dates(self, session: Session, case_id: uuid.UUID) -> set[date]:
        return set(session.scalars(select(DailyLog.log_date).where(DailyLog.case_id == case_id)).all())

    def _require_plan(self, session: Session, case_id: uuid.UUID) -> ExecutionPlan:
        plan = self.get_plan(session, case_id)
        if plan is None:
            raise _conflict("no execution plan has been submitted")
        return plan

    def read_plan(self, session: Session, ctx: AuthContext, case_id: uuid.UUID) -> ExecutionPlanRead:
        case = self.case_repository.get_or_404(session, ctx, case_id)
        enforce(ctx, Capability.CASE_READ, case)
        plan = self.get_plan(session, case.id)
        if plan is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="execution plan not found")
        return to_plan_read(plan)

    def submit_plan(
        self,
        session: Session,
        ctx: AuthContext,
        case_id: uuid.UUID,
        request: PlanSubmitRequest,
    ) -> ExecutionPlanRead:
        case = self.case_repository.get_or_404(session, ctx, case_id, for_update=True)
        enforce(ctx, Capability.PLAN_SUBMIT, case)
        ensure_not_completed(case)
        if is_planning_locked(case.status):
            raise _conflict(f"planning is locked while case is {case.status}")

        days = validate_plan(request)

        plan = self.get_plan(session, case.id)
        if plan is None:
            plan = ExecutionPlan(case_id=case.id, created_by=ctx.user_id, admin_approved=False, client_approved=False)
            session.add(plan)
        else:
            # Replace the day rows before inserting new ones so the per-day uniqueness holds.
            plan.days.clear()
            session.flush()

        plan.start_date = request.start_date
        plan.end_date = request.end_date
        plan.created_by = ctx.user_id
        plan.submitted_at = utcnow()
        for day_date, day in days:
            plan.days.append(
                ExecutionPlanDay(
                    day_date=day_date,
                    work_description=day.work_description.strip(),
                    labor_count=day.labor_count,
                    labor_type=day.labor_type,
                    materials=clean_materials(day, day_date),
                )
            )

        from_status = apply_transition(
            session,
            case,
            CaseStatus.PLANNING_SUBMITTED,
            actor_id=ctx.user_id,
            action="execution.plan_submitted",
            message=f"Execution plan submitted with {len(days)} day(s)",
            details={"start_date": request.start_date.isoformat(), "end_date": request.end_date.isoformat()},
        )
        session.commit()
        announce_transition(case.id, from_status, case.status)
        publish_case_event("case.plan_submitted", case, actor_id=ctx.user_id, payload={"day_count": len(days)})

        # Approvals carried over from an earlier submission may already be complete.
        check_and_transition_to_execution_active(session, case_id, actor_id=ctx.user_id)
        return to_plan_read(self._require_plan(session, case_id))

    def approve_as_admin(self, session: Session, ctx: AuthContext, case_id: uuid.UUID) -> ApprovalResult:
        return self._approve(session, ctx, case_id, Capability.PLAN_APPROVE_ADMIN, "admin")

    def approve_as_client(self, session: Session, ctx: AuthContext, case_id: uuid.UUID) -> ApprovalResult:
        return self._approve(session, ctx, case_id, Capability.PLAN_APPROVE_CLIENT, "client")

    def _approve(
        self,
        session: Session,
        ctx: AuthContext,
        case_id: uuid.UUID,
        capability: Capability,
        party: str,
    ) -> ApprovalResult:
        case = self.case_repository.get_or_404(session, ctx, case_id)
        enforce(ctx, capability, case)
        ensure_not_completed(case)
        if case.status != CaseStatus.PLANNING_SUBMITTED:
            raise _conflict(f"plan cannot be approved while case is {case.status}")
        plan = self._require_plan(session, case.id)

        flag = f"{party}_approved"
        if not getattr(plan, flag):
            setattr(plan, flag, True)
            setattr(plan, f"{flag}_by", ctx.user_id)
            self.case_repository.add_activity(
                session,
                case.id,
                action=f"execution.plan_approved_{party}",
                message=f"Plan approved by {party}",
                actor_id=ctx.user_id,
            )
            session.commit()
            audit.record(
                actor_user_id=ctx.user_id,
                entity_type="execution.plan",
                entity_id=str(plan.id),
                action=f"plan.approved.{party}",
                before={flag: False},
                after={flag: True},
                correlation_id=ctx.correlation_id,
            )

        activated = check_and_transition_to_execution_active(session, case_id, actor_id=ctx.user_id)
        session.refresh(case)
        return ApprovalResult(
            plan=to_plan_read(self._require_plan(session, case_id)),
            status=CaseStatus(case.status),
            activated=activated,
        )

    def reject_plan(
        self,
        session: Session,
        ctx: AuthContext,
        case_id: uuid.UUID,
        request: PlanRejectRequest,
    ) -> ExecutionPlanRead:
        case = self.case_repository.get_or_404(session, ctx, case_id, for_update=True)
        enforce(ctx, Capability.PLAN_REJECT, case)
        ensure_not_completed(case)
        if case.status != CaseStatus.PLANNING_SUBMITTED:
            raise _conflict(f"plan cannot be rejected while case is {case.status}")
        reason = request.reason.strip()
        if not reason:
            raise _unprocessable("a rejection reason is required")

        plan = self._require_plan(session, case.id)
        if plan.fully_approved:
            raise _conflict("plan is already fully approved")

        plan.admin_approved = False
        plan.client_approved = False
        plan.admin_approved_by = None
        plan.client_approved_by = None
        plan.rejected_by = ctx.user_id
        plan.rejected_at = utcnow()
        plan.rejection_reason = reason

        from_status = apply_transition(
            session,
            case,
            CaseStatus.WAITING_FOR_PLANNING,
            actor_id=ctx.user_id,
            action="execution.plan_rejected",
            message=f"Plan rejected: {reason}",
            details={"reason": reason},
        )
        session.commit()
        announce_transition(case.id, from_status, case.status)
        publish_case_event("case.plan_rejected", case, actor_id=ctx.user_id, payload={"reason": reason})
        return to_plan_read(self._require_plan(session, case_id))

    def add_daily_log(
        self,
        session: Session,
        ctx: AuthContext,
        case_id: uuid.UUID,
        request: DailyLogCreate,
        *,
        today: date | None = None,
    ) -> DailyLogRead:
        case = self.case_repository.get_or_404(session, ctx, case_id)
        enforce(ctx, Capability.DAILY_LOG_WRITE, case)
        ensure_not_completed(case)
        if case.status != CaseStatus.EXECUTION_ACTIVE:
            raise _conflict("daily logs can only be written while execution is active")

        log_date = today or date.today()
        existing = session.scalar(
            select(DailyLog.id).where(DailyLog.case_id == case.id, DailyLog.log_date == log_date)
        )
        if existing is not None:
            raise _conflict(f"a daily log for {log_date.isoformat()} already exists")

        log = DailyLog(
            case_id=case.id,
            log_date=log_date,
            work_description=request.work_description,
            manpower_count=request.manpower_count,
            photos=list(request.photos),
            notes=request.notes,
            created_by=ctx.user_id,
        )
        session.add(log)
        self.case_repository.add_activity(
            session,
            case.id,
            action="execution.daily_log_added",
            message=f"Daily log added for {log_date.isoformat()}",
            actor_id=ctx.user_id,
        )
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise _conflict(f"a daily log for {log_date.isoformat()} already exists")
        session.refresh(log)
        return DailyLogRead.model_validate(log)

    def list_daily_logs(self, session: Session, ctx: AuthContext, case_id: uuid.UUID) -> list[DailyLogRead]:
        case = self.case_repository.get_or_404(session, ctx, case_id)
        enforce(ctx, Capability.CASE_READ, case)
        rows = session.scalars(
            select(DailyLog).where(DailyLog.case_id == case.id).order_by(DailyLog.log_date.desc())
        ).all()
        return [DailyLogRead.model_validate(item) for item in rows]

    def missing_log_dates(
        self,
        session: Session,
        ctx: AuthContext,
        case_id: uuid.UUID,
        *,
        today: date | None = None,
    ) -> list[date]:
        case = self.case_repository.get_or_404(session, ctx, case_id)
        enforce(ctx, Capability.CASE_READ, case)
        return missing_dates(self.get_plan(session, case.id), self.logged_dates(session, case.id), today or date.today())

    def materials_summary(self, session: Session, ctx: AuthContext, case_id: uuid.UUID) -> list[MaterialSummaryRead]:
        case = self.case_repository.get_or_404(session, ctx, case_id)
        enforce(ctx, Capability.CASE_READ, case)
        plan = self.get_plan(session, case.id)
        if plan is None:
            return []

        summary: dict[str, dict[str, Any]] = {}
        for day in plan.days:
            for raw in day.materials:
                material = PlanMaterial.model_validate(raw)
                required_on = material.required_on or day.day_date
                entry = summary.setdefault(
                    material.catalog_item_id,
                    {
                        "catalog_item_id": material.catalog_item_id,
                        "name": material.name,
                        "unit": material.unit,
                        "total_quantity": Decimal("0"),
                        "first_required_on": required_on,
                        "days": set(),
                    },
                )
                entry["total_quantity"] += material.quantity
                entry["first_required_on"] = min(entry["first_required_on"], required_on)
                entry["days"].add(day.day_date)

        return [
            MaterialSummaryRead(
                catalog_item_id=item["catalog_item_id"],
                name=item["name"],
                unit=item["unit"],
                total_quantity=item["total_quantity"],
                first_required_on=item["first_required_on"],
                day_count=len(item["days"]),
            )
            for item in sorted(summary.values(), key=lambda row: (row["first_required_on"], row["catalog_item_id"]))
        ]

    def mark_execution_complete(self, session: Session, ctx: AuthContext, case_id: uuid.UUID) -> ExecutionPlanRead:
        case = self.case_repository.get_or_404(session, ctx, case_id, for_update=True)
        enforce(ctx, Capability.EXECUTION_MARK_COMPLETE, case)
        ensure_not_completed(case)
        if case.status != CaseStatus.EXECUTION_ACTIVE:
            raise _conflict("execution can only be marked complete while it is active")

        plan = self._require_plan(session, case.id)
        if not plan.execution_marked_complete:
            plan.execution_marked_complete = True
            plan.marked_complete_by = ctx.user_id
            plan.marked_complete_at = utcnow()
            self.case_repository.add_activity(
                session,
                case.id,
                action="execution.marked_complete",
                message="Execution marked complete; JMS can be launched",
                actor_id=ctx.user_id,
            )
            session.commit()
        return to_plan_read(self._require_plan(session, case_id))

    def launch_jms(
        self,
        session: Session,
        ctx: AuthContext,
        case_id: uuid.UUID,
        request: JMSLaunchRequest,
    ) -> JMSRead:
        case = self.case_repository.get_or_404(session, ctx, case_id, for_update=True)
        enforce(ctx, Capability.JMS_LAUNCH, case)
        ensure_not_completed(case)
        plan = self._require_plan(session, case.id)
        if not plan.execution_marked_complete:
            raise _conflict("execution must be marked complete before launching the JMS")
        if self.get_jms(session, case.id) is not None:
            raise _conflict("JMS already launched for this case")

        jms = JMSRecord(
            case_id=case.id,
            status=JMSStatus.PENDING.value,
            items=[item.model_dump(mode="json") for item in request.items],
            launched_by=ctx.user_id,
        )
        session.add(jms)
        self.case_repository.add_activity(
            session,
            case.id,
            action="execution.jms_launched",
            message="JMS launched for client signature",
            actor_id=ctx.user_id,
        )
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise _conflict("JMS already launched for this case")
        session.refresh(jms)
        publish_case_event("case.jms_launched", case, actor_id=ctx.user_id, payload={"jms_id": str(jms.id)})
        return JMSRead.model_validate(jms)

    def get_jms_read(self, session: Session, ctx: AuthContext, case_id: uuid.UUID) -> JMSRead:
        case = self.case_repository.get_or_404(session, ctx, case_id)
        enforce(ctx, Capability.CASE_READ, case)
        jms = self.get_jms(session, case.id)
        if jms is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="JMS not found")
        return JMSRead.model_validate(jms)

    def sign_jms(
        self,
        session: Session,
        ctx: AuthContext,
        case_id: uuid.UUID,
        request: JMSSignRequest,
    ) -> JMSRead:
        case = self.case_repository.get_or_404(session, ctx, case_id, for_update=True)
        enforce(ctx, Capability.JMS_SIGN, case)
        ensure_not_completed(case)
        jms = self.get_jms(session, case.id)
        if jms is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="JMS not found")
        if jms.status != JMSStatus.PENDING:
            raise _conflict("JMS is not awaiting signature")

        signed_at = utcnow()
        jms.status = JMSStatus.SIGNED.value
        jms.signed_by = ctx.user_id
        jms.signed_at = signed_at
        jms.client_signature = request.signature

        case.jms_signed = True
        case.jms_signed_at = signed_at
        case.completed_at = signed_at
        case.completed_by = ctx.user_id
        from_status = apply_transition(
            session,
            case,
            CaseStatus.COMPLETED,
            actor_id=ctx.user_id,
            action="execution.completed",
            message="JMS signed by client; project completed",
        )
        session.commit()
        session.refresh(jms)

        announce_transition(case.id, from_status, case.status)
        audit.record(
            actor_user_id=ctx.user_id,
            entity_type="execution.jms",
            entity_id=str(jms.id),
            action="jms.signed",
            before={"status": JMSStatus.PENDING.value},
            after={"status": JMSStatus.SIGNED.value, "case_status": case.status},
            correlation_id=ctx.correlation_id,
        )
        publish_case_event("case.completed", case, actor_id=ctx.user_id)
        return JMSRead.model_validate(jms)

    def remind_missing_daily_logs(self, session: Session, *, today: date | None = None) -> int:
        """Notify project heads of active cases with unlogged planned days. Returns notifications created."""

        today = today or date.today()
        cases = session.scalars(
            select(Case).where(Case.status == CaseStatus.EXECUTION_ACTIVE.value).order_by(Case.created_at)
        ).all()

        created = 0
        for case in cases:
            if not case.project_head_id:
                continue
            missing = missing_dates(self.get_plan(session, case.id), self.logged_dates(session, case.id), today)
            if not missing:
                continue
            notification = self.notification_service.notify(
                session,
                tenant_id=case.tenant_id,
                organization_id=case.organization_id,
                kind="daily_log.missing",
                title=f"Daily logs missing for {case.title}",
                body=f"{len(missing)} planned day(s) have no daily log, earliest {missing[0].isoformat()}",
                recipient_user_id=case.project_head_id,
                case_id=case.id,
                dedupe_key=f"daily_log.missing:{case.id}:{today.isoformat()}",
            )
            if notification is not None:
                created += 1
        session.commit()
        logger.info("execution.daily_log_reminders", extra={"notified": created})
        return created


execution_service = ExecutionService()
