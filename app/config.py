import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _resolve_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    environment = os.getenv("ENVIRONMENT", "").strip().lower()
    if environment == "development":
        return "postgresql+psycopg://localhost:5434/workspace_pm"

    raise ValueError(
        "DATABASE_URL is not set. Set DATABASE_URL for non-development "
        "environments or set ENVIRONMENT=development for local defaults."
    )


@dataclass(frozen=True)
class Settings:
    database_url: str = _resolve_database_url()
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv(
        "LOG_FORMAT", "%(asctime)s %(levelname)s %(name)s %(message)s"
    )

    # Celery
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    celery_result_backend: str = os.getenv(
        "CELERY_RESULT_BACKEND", "redis://localhost:6379/1"
    )
    celery_task_always_eager: bool = (
        os.getenv("CELERY_TASK_ALWAYS_EAGER", "false").lower() == "true"
    )

    # Webhooks
    webhook_max_attempts: int = int(os.getenv("WEBHOOK_MAX_ATTEMPTS", "5"))
    webhook_timeout_seconds: float = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "30"))
    webhook_retry_base_seconds: int = int(os.getenv("WEBHOOK_RETRY_BASE_SECONDS", "60"))

    # Invitations & reminders
    invitation_ttl_days: int = int(os.getenv("INVITATION_TTL_DAYS", "7"))
    reminder_check_interval_seconds: int = int(
        os.getenv("REMINDER_CHECK_INTERVAL_SECONDS", "60")
    )

    # Recurring tasks
    recurring_check_interval_seconds: int = int(
        os.getenv("RECURRING_CHECK_INTERVAL_SECONDS", "300")
    )

    # Presentation
    recent_activity_hours: int = int(os.getenv("RECENT_ACTIVITY_HOURS", "24"))
    content_preview_length: int = int(os.getenv("CONTENT_PREVIEW_LENGTH", "200"))

    brand_name: str = os.getenv("BRAND_NAME", "Workspace PM")


settings = Settings()
