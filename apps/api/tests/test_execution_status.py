from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import date

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from casework import events
from casework.cases.models import Case, CaseActivity
from casework.cases.status import CaseStatus, is_case_completed, is_forward_transition, is_planning_locked, status_rank
from casework.core.database import Base
from casework.core.events import InProcessEventBus
from casework.execution.models import ExecutionPlan, ExecutionPlanDay
from casework.execution.schemas import SectionState
from casework.execution.status import check_and_transition_to_execution_active
from casework.execution.workspace import build_sections
from casework.otel import setup_inmemory_otel


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def isolated_events(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setattr(events, "event_bus", InProcessEventBus())
    events.published_events.clear()
    yield
    events.published_events.clear()


def _seed_case(
    session: Session,
    *,
    status: CaseStatus,
    admin_approved: bool | None = None,
    client_approved: bool | None = None,
) -> Case:
    case = Case(
        tenant_id="tenant-a",
        organization_id="org-1",
        title="Villa interiors",
        client_name="R. Mehta",
        client_id="client-1",
        project_head_id="head-1",
        status=status.value,
        created_by="sales-1",
    )
    session.add(case)
    session.flush()
    if admin_approved is not None:
        plan = ExecutionPlan(
            case_id=case.id,
            start_date=date(2026, 3, 1),
            end_date=date(2026, 3, 3),
            admin_approved=admin_approved,
            client_approved=bool(client_approved),
            created_by="head-1",
        )
        plan.days.append(ExecutionPlanDay(day_date=date(2026, 3, 1), work_description="False ceiling", materials=[]))
        session.add(plan)
    session.commit()
    return case


@pytest.mark.parametrize("status", list(CaseStatus))
def test_is_case_completed_only_for_completed(status: CaseStatus) -> None:
    assert is_case_completed(status) is (status == CaseStatus.COMPLETED)
    assert is_case_completed(status.value) is (status == CaseStatus.COMPLETED)


@pytest.mark.parametrize("status", list(CaseStatus))
def test_planning_locked_everywhere_but_waiting_for_planning(status: CaseStatus) -> None:
    assert is_planning_locked(status) is (status != CaseStatus.WAITING_FOR_PLANNING)


def test_predicates_are_total_for_unknown_values() -> None:
    assert is_case_completed(None) is False
    assert is_case_completed("ARCHIVED") is False
    assert is_planning_locked(None) is True
    assert is_planning_locked("ARCHIVED") is True


def test_status_ordering_follows_lifecycle() -> None:
    assert status_rank(CaseStatus.WAITING_FOR_PLANNING) < status_rank(CaseStatus.PLANNING_SUBMITTED)
    assert status_rank(CaseStatus.EXECUTION_ACTIVE) < status_rank(CaseStatus.COMPLETED)
    assert is_forward_transition("LEAD", "QUOTATION") is True
    assert is_forward_transition("QUOTATION", "LEAD") is False
    assert is_forward_transition("QUOTATION", "QUOTATION") is False
    with pytest.raises(ValueError):
        status_rank("ARCHIVED")


def test_transition_activates_when_both_approvals_present(db_session: Session) -> None:
    case = _seed_case(db_session, status=CaseStatus.PLANNING_SUBMITTED, admin_approved=True, client_approved=True)

    assert check_and_transition_to_execution_active(db_session, case.id) is True

    db_session.expire_all()
    stored = db_session.get(Case, case.id)
    plan = db_session.scalar(select(ExecutionPlan).where(ExecutionPlan.case_id == case.id))
    assert stored is not None and stored.status == CaseStatus.EXECUTION_ACTIVE
    assert plan is not None and plan.approved_at is not None

    activity = db_session.scalar(select(CaseActivity).where(CaseActivity.action == "execution.activated"))
    assert activity is not None
    assert activity.details == {"from_status": "PLANNING_SUBMITTED", "to_status": "EXECUTION_ACTIVE"}

    activated_events = [item for item in events.published_events if item["event_type"] == "case.execution_activated"]
    assert len(activated_events) == 1
    assert activated_events[0]["case_id"] == str(case.id)


def test_transition_is_idempotent(db_session: Session) -> None:
    case = _seed_case(db_session, status=CaseStatus.PLANNING_SUBMITTED, admin_approved=True, client_approved=True)

    assert check_and_transition_to_execution_active(db_session, case.id) is True
    assert check_and_transition_to_execution_active(db_session, case.id) is False

    activities = db_session.scalars(select(CaseActivity).where(CaseActivity.action == "execution.activated")).all()
    assert len(activities) == 1


@pytest.mark.parametrize(
    ("status", "admin_approved", "client_approved"),
    [
        (CaseStatus.PLANNING_SUBMITTED, True, False),
        (CaseStatus.PLANNING_SUBMITTED, False, True),
        (CaseStatus.PLANNING_SUBMITTED, False, False),
        (CaseStatus.PLANNING_SUBMITTED, None, None),
        (CaseStatus.WAITING_FOR_PLANNING, True, True),
        (CaseStatus.COMPLETED, True, True),
    ],
)
def test_transition_leaves_case_unchanged_otherwise(
    db_session: Session,
    status: CaseStatus,
    admin_approved: bool | None,
    client_approved: bool | None,
) -> None:
    case = _seed_case(db_session, status=status, admin_approved=admin_approved, client_approved=client_approved)

    assert check_and_transition_to_execution_active(db_session, case.id) is False

    db_session.expire_all()
    stored = db_session.get(Case, case.id)
    assert stored is not None and stored.status == status
    assert events.published_events == []


def test_transition_for_unknown_case_returns_false(db_session: Session) -> None:
    assert check_and_transition_to_execution_active(db_session, uuid.uuid4()) is False


def test_transition_swallows_database_errors(db_session: Session, monkeypatch: pytest.MonkeyPatch) -> None:
    case = _seed_case(db_session, status=CaseStatus.PLANNING_SUBMITTED, admin_approved=True, client_approved=True)

    def _failing_commit() -> None:
        raise OperationalError("UPDATE cases_case", {}, Exception("database is locked"))

    with monkeypatch.context() as patch:
        patch.setattr(db_session, "commit", _failing_commit)
        assert check_and_transition_to_execution_active(db_session, case.id) is False

    db_session.expire_all()
    stored = db_session.get(Case, case.id)
    assert stored is not None and stored.status == CaseStatus.PLANNING_SUBMITTED
    assert events.published_events == []


def test_transition_records_span(db_session: Session) -> None:
    exporter = setup_inmemory_otel("casework-api")
    exporter.clear()
    case = _seed_case(db_session, status=CaseStatus.PLANNING_SUBMITTED, admin_approved=True, client_approved=True)

    check_and_transition_to_execution_active(db_session, case.id)

    spans = [span for span in exporter.get_finished_spans() if span.name == "execution.activation_check"]
    assert spans
    assert spans[-1].attributes.get("case_id") == str(case.id)
    assert spans[-1].attributes.get("activated") is True


def _states(status: CaseStatus, plan: ExecutionPlan | None, *, head: bool = False) -> dict[str, SectionState]:
    return {section.key: section.state for section in build_sections(status, plan, viewer_is_project_head=head)}


def _plan_with_days(count: int) -> ExecutionPlan:
    plan = ExecutionPlan(start_date=date(2026, 3, 1), end_date=date(2026, 3, 9), created_by="head-1")
    for offset in range(count):
        plan.days.append(ExecutionPlanDay(day_date=date(2026, 3, 1 + offset), work_description="Work", materials=[]))
    return plan


def test_sections_before_plan_submission() -> None:
    assert _states(CaseStatus.WAITING_FOR_PLANNING, None, head=True) == {
        "summary": SectionState.VISIBLE,
        "planning": SectionState.EDITABLE,
        "approvals": SectionState.HIDDEN,
        "daily_log": SectionState.LOCKED,
        "materials": SectionState.HIDDEN,
        "documents": SectionState.VISIBLE,
        "closure": SectionState.HIDDEN,
    }
    assert _states(CaseStatus.WAITING_FOR_PLANNING, None)["planning"] == SectionState.VIEW_ONLY


def test_sections_after_submission_and_activation() -> None:
    plan = _plan_with_days(2)
    submitted = _states(CaseStatus.PLANNING_SUBMITTED, plan, head=True)
    assert submitted["planning"] == SectionState.LOCKED
    assert submitted["approvals"] == SectionState.VISIBLE
    assert submitted["materials"] == SectionState.VISIBLE
    assert submitted["closure"] == SectionState.HIDDEN

    active = _states(CaseStatus.EXECUTION_ACTIVE, plan, head=True)
    assert active["daily_log"] == SectionState.ACTIVE
    assert active["closure"] == SectionState.VISIBLE


def test_approvals_hidden_for_plan_without_days() -> None:
    assert _states(CaseStatus.PLANNING_SUBMITTED, _plan_with_days(0))["approvals"] == SectionState.HIDDEN


def test_completed_case_renders_every_visible_section_read_only() -> None:
    sections = build_sections(CaseStatus.COMPLETED, _plan_with_days(1), viewer_is_project_head=True)

    assert [section.number for section in sections] == [1, 2, 3, 4, 5, 6, 7]
    assert all(section.state == SectionState.READ_ONLY for section in sections)
