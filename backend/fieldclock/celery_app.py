from celery import Celery

from fieldclock.core.config import settings

celery_app = Celery(
    "fieldclock",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["fieldclock.tasks.attendance_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone=settings.BUSINESS_TIMEZONE,
    enable_utc=True,
    beat_schedule={
        "absence-scan": {
            "task": "run_absence_scan",
            "schedule": settings.ABSENCE_SCAN_INTERVAL_MINUTES * 60,
        },
    },
)
