"""
Application Configuration
"""

import math

from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import Optional

TRUTHY_VALUES = ("1", "true", "yes", "on")


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database
    database_url: Optional[str] = None

    # Environment
    environment: str = "development"

    # Notification Jobs
    # Unset means: enabled everywhere except the testing environment
    notification_jobs_enabled: Optional[bool] = None
    outbox_worker_interval_seconds: int = 30
    reminder_worker_interval_seconds: int = 600  # 10 minutes
    scheduler_timezone: str = "UTC"

    # Outbox Worker
    outbox_worker_batch_size: int = 20
    outbox_max_retries: int = 5
    outbox_retry_base_seconds: int = 30
    outbox_retry_cap_seconds: int = 3600  # Backoff never exceeds one hour

    # Outbox Transport (webhook). No URL = log delivery, no network I/O
    outbox_webhook_url: Optional[str] = None
    outbox_webhook_token: Optional[str] = None
    outbox_webhook_timeout_seconds: float = 10.0

    @field_validator(
        "outbox_worker_interval_seconds",
        "reminder_worker_interval_seconds",
        "outbox_worker_batch_size",
        "outbox_max_retries",
        "outbox_retry_base_seconds",
        "outbox_retry_cap_seconds",
        "outbox_webhook_timeout_seconds",
        mode="before",
    )
    @classmethod
    def _positive_or_default(cls, value, info):
        """Non-positive or unparsable numeric knobs fall back to the field default."""
        default = cls.model_fields[info.field_name].default
        if value is None or (isinstance(value, str) and not value.strip()):
            return default
        try:
            parsed = float(value)
        except (TypeError, ValueError):
            return default
        if not math.isfinite(parsed):
            return default
        if cls.model_fields[info.field_name].annotation is int:
            # Whole units only: "2.5" -> 2
            parsed = int(parsed)
        if parsed <= 0:
            return default
        return parsed

    @field_validator("notification_jobs_enabled", mode="before")
    @classmethod
    def _parse_flag(cls, value):
        """Blank means unset; 1/true/yes/on enable; any other value disables."""
        if value is None or isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if not text:
            return None
        return text in TRUTHY_VALUES

    @field_validator("outbox_webhook_url", "outbox_webhook_token", mode="before")
    @classmethod
    def _strip_blank(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @property
    def jobs_enabled(self) -> bool:
        if self.notification_jobs_enabled is None:
            return self.environment != "testing"
        return self.notification_jobs_enabled

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
