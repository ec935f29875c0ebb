from celery import Celery

from app.config import settings

celery_app = Celery(
    "workspace_pm",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "app.tasks.events",
        "app.tasks.webhooks",
        "app.tasks.recurring",
        "app.tasks.reminders",
    ],
)

celery_app.conf.update(
    task_always_eager=settings.celery_task_always_eager,
    task_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    beat_schedule={
        "spawn-due-recurring-tasks": {
            "task": "app.tasks.recurring.spawn_due_recurring_tasks",
            "schedule": float(settings.recurring_check_interval_seconds),
        },
        "send-due-reminders": {
            "task": "app.tasks.reminders.send_due_reminders",
            "schedule": float(settings.reminder_check_interval_seconds),
        },
        "retry-failed-webhooks": {
            "task": "app.tasks.webhooks.retry_failed_webhooks",
            "schedule": 60.0,
        },
    },
)
