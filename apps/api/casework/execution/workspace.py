"""Execution workspace view: which of the seven sections a viewer sees, and in which state."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.orm import Session

from casework.cases.models import Case
from casework.cases.service import to_case_read
from casework.cases.status import CaseStatus, is_case_completed, is_planning_locked
from casework.execution.models import ExecutionPlan
from casework.execution.schemas import JMSRead, SectionState, WorkspaceRead, WorkspaceSection
from casework.execution.service import ExecutionService, missing_dates, to_plan_read
from casework.platform.security.capabilities import Capability, Relation, capabilities_for, relations_of
from casework.platform.security.context import AuthContext
from casework.platform.security.dependencies import enforce

SECTION_TITLES: tuple[tuple[str, str], ...] = (
    ("summary", "Project Summary"),
    ("planning", "Execution Planning"),
    ("approvals", "Plan Approvals"),
    ("daily_log", "Daily Log"),
    ("materials", "Materials"),
    ("documents", "Documents"),
    ("closure", "Closure & JMS"),
)


def _planning_state(status: str, viewer_is_project_head: bool) -> SectionState:
    if is_planning_locked(status):
        return SectionState.LOCKED
    return SectionState.EDITABLE if viewer_is_project_head else SectionState.VIEW_ONLY


def _daily_log_state(status: str) -> SectionState:
    if status == CaseStatus.EXECUTION_ACTIVE:
        return SectionState.ACTIVE
    if is_case_completed(status):
        return SectionState.READ_ONLY
    return SectionState.LOCKED


def build_sections(
    status: str,
    plan: ExecutionPlan | None,
    *,
    viewer_is_project_head: bool,
) -> list[WorkspaceSection]:
    has_plan_days = plan is not None and len(plan.days) > 0
    states = {
        "summary": SectionState.VISIBLE,
        "planning": _planning_state(status, viewer_is_project_head),
        "approvals": SectionState.VISIBLE if has_plan_days else SectionState.HIDDEN,
        "daily_log": _daily_log_state(status),
        "materials": SectionState.VISIBLE if plan is not None else SectionState.HIDDEN,
        "documents": SectionState.VISIBLE,
        "closure": (
            SectionState.VISIBLE
            if status in (CaseStatus.EXECUTION_ACTIVE, CaseStatus.COMPLETED)
            else SectionState.HIDDEN
        ),
    }
    if is_case_completed(status):
        states = {key: state if state == SectionState.HIDDEN else SectionState.READ_ONLY for key, state in states.items()}

    return [
        WorkspaceSection(number=index, key=key, title=title, state=states[key])
        for index, (key, title) in enumerate(SECTION_TITLES, start=1)
    ]


@dataclass(slots=True)
class WorkspaceService:
    execution_service: ExecutionService = field(default_factory=ExecutionService)

    def get_workspace(
        self,
        session: Session,
        ctx: AuthContext,
        case_id: uuid.UUID,
        *,
        today: date | None = None,
    ) -> WorkspaceRead:
        case: Case = self.execution_service.case_repository.get_or_404(session, ctx, case_id)
        enforce(ctx, Capability.CASE_READ, case)

        plan = self.execution_service.get_plan(session, case.id)
        jms = self.execution_service.get_jms(session, case.id)
        daily_log_state = _daily_log_state(case.status)
        missing = (
            missing_dates(plan, self.execution_service.logged_dates(session, case.id), today or date.today())
            if daily_log_state != SectionState.LOCKED
            else []
        )

        return WorkspaceRead(
            case=to_case_read(case),
            read_only=is_case_completed(case.status),
            planning_locked=is_planning_locked(case.status),
            sections=build_sections(
                case.status,
                plan,
                viewer_is_project_head=Relation.PROJECT_HEAD in relations_of(ctx, case),
            ),
            plan=to_plan_read(plan) if plan is not None else None,
            jms=JMSRead.model_validate(jms) if jms is not None else None,
            missing_log_dates=missing,
            capabilities=sorted(item.value for item in capabilities_for(ctx, case)),
        )


workspace_service = WorkspaceService()
