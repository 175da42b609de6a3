from __future__ import annotations

import logging
from datetime import date

from casework.core.celery_app import celery_app
from casework.core.database import SessionLocal
from casework.execution.service import execution_service

logger = logging.getLogger("casework.tasks")


def run_daily_log_reminders(today: date | None = None) -> int:
    session = SessionLocal()
    try:
        return execution_service.remind_missing_daily_logs(session, today=today)
    finally:
        session.close()


@celery_app.task(name="casework.tasks.remind_missing_daily_logs")
def remind_missing_daily_logs_task(today: str | None = None) -> int:
    notified = run_daily_log_reminders(date.fromisoformat(today) if today else None)
    logger.info("task.completed", extra={"task_name": "remind_missing_daily_logs", "notified": notified})
    return notified


@celery_app.task(name="casework.tasks.ping")
def ping_task() -> str:
    return "pong"
