from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # App
    APP_NAME: str = "FieldClock Attendance"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Database
    DATABASE_URL: str = "postgresql://fieldclock_user:fieldclock_pass@db:5432/fieldclock_db"

    # Redis (Celery broker)
    REDIS_URL: str = "redis://redis:6379/0"

    # Security
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12  # 12 hours

    # All scheduling is local to this zone
    BUSINESS_TIMEZONE: str = "America/Mexico_City"

    # Geofence
    DEFAULT_RADIUS_METERS: float = 150.0

    # Punctuality
    EARLY_ENTRY_THRESHOLD_MINUTES: int = 30
    EARLY_EXIT_THRESHOLD_MINUTES: int = 60
    SEVERE_DELAY_THRESHOLD_MINUTES: int = 20
    COMMENT_REQUIRED_LATE_MINUTES: int = 0  # any late entry needs a note
    COMMENT_MIN_LENGTH: int = 10

    # Absence detection
    ABSENCE_SCAN_ENABLED: bool = True
    ABSENCE_SCAN_INTERVAL_MINUTES: int = 30
    ABSENCE_SCAN_USER_TIMEOUT_SECONDS: float = 10.0
    MISSING_ENTRY_GRACE_MINUTES: int = 60
    MISSING_LUNCH_GRACE_MINUTES: int = 30
    MISSING_EXIT_GRACE_MINUTES: int = 60

    # Photo validation: the external vision worker consumes this task
    PHOTO_VALIDATION_ENABLED: bool = True
    PHOTO_VALIDATION_TASK_NAME: str = "validate_check_in_photo"

    # Schedule lookups
    SCHEDULE_CACHE_TTL_SECONDS: int = 300

    # Slack incoming webhook for attendance alerts
    SLACK_WEBHOOK_URL: Optional[str] = None
    SLACK_USERNAME: str = "FieldClock Attendance"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
