from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import date

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from casework import tasks
from casework.cases.models import Case
from casework.cases.status import CaseStatus
from casework.core.database import Base
from casework.execution.models import DailyLog, ExecutionPlan, ExecutionPlanDay
from casework.execution.service import execution_service
from casework.notifications.models import Notification
from casework.notifications.service import notification_service
from casework.platform.security.context import AuthContext


@pytest.fixture()
def session_factory() -> Generator[sessionmaker[Session], None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def _active_case(session: Session, *, head: str | None = "head-1", logged: list[date] | None = None) -> Case:
    case = Case(
        tenant_id="tenant-a",
        organization_id="org-1",
        title="Penthouse",
        client_name="V. Shah",
        client_id="client-1",
        project_head_id=head,
        status=CaseStatus.EXECUTION_ACTIVE.value,
        created_by="gm-1",
    )
    session.add(case)
    session.flush()
    plan = ExecutionPlan(
        case_id=case.id,
        start_date=date(2026, 3, 2),
        end_date=date(2026, 3, 6),
        admin_approved=True,
        client_approved=True,
        created_by="head-1",
    )
    for day in (2, 3, 4, 5):
        plan.days.append(ExecutionPlanDay(day_date=date(2026, 3, day), work_description=f"Day {day}", materials=[]))
    session.add(plan)
    for log_date in logged or []:
        session.add(DailyLog(case_id=case.id, log_date=log_date, work_description="Done", created_by="head-1"))
    session.commit()
    return case


def test_reminders_notify_project_head_once_per_day(db_session: Session) -> None:
    case = _active_case(db_session, logged=[date(2026, 3, 2)])

    assert execution_service.remind_missing_daily_logs(db_session, today=date(2026, 3, 5)) == 1
    assert execution_service.remind_missing_daily_logs(db_session, today=date(2026, 3, 5)) == 0

    notifications = db_session.scalars(select(Notification)).all()
    assert len(notifications) == 1
    reminder = notifications[0]
    assert reminder.recipient_user_id == "head-1"
    assert reminder.kind == "daily_log.missing"
    assert reminder.case_id == case.id
    assert reminder.body.startswith("2 planned day(s)")
    assert reminder.dedupe_key == f"daily_log.missing:{case.id}:2026-03-05"

    assert execution_service.remind_missing_daily_logs(db_session, today=date(2026, 3, 6)) == 1


def test_reminders_skip_cases_without_gaps_or_head(db_session: Session) -> None:
    _active_case(db_session, logged=[date(2026, 3, 2), date(2026, 3, 3)])
    _active_case(db_session, head=None)

    assert execution_service.remind_missing_daily_logs(db_session, today=date(2026, 3, 4)) == 0


def test_celery_task_uses_its_own_session(
    session_factory: sessionmaker[Session],
    db_session: Session,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _active_case(db_session)
    monkeypatch.setattr(tasks, "SessionLocal", session_factory)

    assert tasks.remind_missing_daily_logs_task("2026-03-04") == 1
    assert tasks.run_daily_log_reminders(date(2026, 3, 4)) == 0
    assert tasks.ping_task() == "pong"


def test_case_events_fan_out_to_parties(db_session: Session) -> None:
    envelope = {
        "event_id": str(uuid.uuid4()),
        "event_type": "case.completed",
        "tenant_id": "tenant-a",
        "organization_id": "org-1",
        "case_id": str(uuid.uuid4()),
        "case_title": "Penthouse",
        "project_head_id": "head-1",
        "client_id": "client-1",
        "payload": {},
    }

    assert notification_service.handle_case_event(db_session, envelope) == 2
    assert notification_service.handle_case_event(db_session, envelope) == 0

    recipients = {(row.recipient_user_id, row.recipient_role) for row in db_session.scalars(select(Notification)).all()}
    assert recipients == {("head-1", None), (None, "accounts_team")}

    assert notification_service.handle_case_event(db_session, {**envelope, "event_type": "case.unknown"}) == 0


def test_notifications_are_scoped_to_recipient(db_session: Session) -> None:
    notification = notification_service.notify(
        db_session,
        tenant_id="tenant-a",
        organization_id="org-1",
        kind="case.plan_submitted",
        title="Plan awaiting approval",
        body="Review it",
        recipient_role="super_admin",
    )
    db_session.commit()
    assert notification is not None

    admin = AuthContext(user_id="root", roles=["admin"])
    other_org_admin = AuthContext(user_id="root", roles=["admin"], organization_scope=["org-2"])
    accountant = AuthContext(user_id="acc-1", roles=["accounts_team"])

    assert [item.id for item in notification_service.list_for_user(db_session, admin)] == [notification.id]
    assert notification_service.list_for_user(db_session, other_org_admin) == []
    assert notification_service.list_for_user(db_session, accountant) == []

    marked = notification_service.mark_read(db_session, admin, notification.id)
    assert marked.read_at is not None
    assert notification_service.list_for_user(db_session, admin, unread_only=True) == []


def test_notify_requires_a_recipient(db_session: Session) -> None:
    with pytest.raises(ValueError):
        notification_service.notify(
            db_session,
            tenant_id="tenant-a",
            organization_id="org-1",
            kind="case.completed",
            title="Done",
            body="",
        )
