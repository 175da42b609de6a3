"""Execution status service.

The pure predicates live in ``casework.cases.status`` and are re-exported here so
execution code has a single import point. The only stateful piece is the
activation transition, which must run under a row lock.
"""

from __future__ import annotations

import logging
import uuid

from opentelemetry.trace import Status, StatusCode
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from casework.cases.models import Case, utcnow
from casework.cases.service import announce_transition, apply_transition, publish_case_event
from casework.cases.status import CaseStatus, is_case_completed, is_planning_locked
from casework.execution.models import ExecutionPlan
from casework.metrics import observe_activation_check
from casework.otel import get_tracer, tag_case_span

logger = logging.getLogger("casework.execution")
tracer = get_tracer("casework.execution")

SYSTEM_ACTOR = "system"

__all__ = [
    "SYSTEM_ACTOR",
    "check_and_transition_to_execution_active",
    "is_case_completed",
    "is_planning_locked",
]


def check_and_transition_to_execution_active(
    session: Session,
    case_id: uuid.UUID,
    *,
    actor_id: str = SYSTEM_ACTOR,
) -> bool:
    """Activate execution once both plan approvals are in.

    Returns True only when this call moved the case from PLANNING_SUBMITTED to
    EXECUTION_ACTIVE. Database errors are logged and rolled back and the call
    reports False; callers never see them.
    """

    with tracer.start_as_current_span("execution.activation_check") as span:
        tag_case_span(span, case_id)
        try:
            case = session.scalar(select(Case).where(Case.id == case_id).with_for_update())
            if case is None or case.status != CaseStatus.PLANNING_SUBMITTED:
                session.rollback()
                observe_activation_check("not_applicable")
                return False

            plan = session.scalar(select(ExecutionPlan).where(ExecutionPlan.case_id == case_id))
            if plan is None or not plan.fully_approved:
                session.rollback()
                observe_activation_check("awaiting_approval")
                return False

            plan.approved_at = utcnow()
            from_status = apply_transition(
                session,
                case,
                CaseStatus.EXECUTION_ACTIVE,
                actor_id=actor_id,
                action="execution.activated",
                message="Plan approved by admin and client; execution started",
            )
            session.commit()
        except SQLAlchemyError as exc:
            logger.exception("execution.activation_failed", extra={"case_id": str(case_id), "error": str(exc)[:500]})
            session.rollback()
            span.set_status(Status(StatusCode.ERROR))
            observe_activation_check("error")
            return False

        span.set_attribute("activated", True)

    observe_activation_check("activated")
    announce_transition(case.id, from_status, case.status)
    publish_case_event("case.execution_activated", case, actor_id=actor_id)
    return True
