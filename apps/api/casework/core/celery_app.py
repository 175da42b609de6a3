from celery import Celery
from celery.schedules import crontab

from casework.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "casework_api",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["casework.tasks"],
)
celery_app.conf.timezone = "Asia/Kolkata"
celery_app.conf.beat_schedule = {
    "remind-missing-daily-logs": {
        "task": "casework.tasks.remind_missing_daily_logs",
        "schedule": crontab(hour=settings.daily_log_reminder_hour, minute=0),
    },
}
