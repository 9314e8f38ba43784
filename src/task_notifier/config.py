"""Configuration for TaskNotifier."""

from dataclasses import dataclass
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass
class RetryPolicy:
    """Retry policy for webhook delivery."""

    max_attempts: int = 3
    base_delay_ms: int = 500  # Sleep base_delay_ms * attempt_number between attempts


class Config(BaseSettings):
    """Application configuration.

    Loaded once per process (see factory.get_config) and passed explicitly
    into each component. Every field can be set from the environment with the
    TASK_NOTIFIER_ prefix, e.g. TASK_NOTIFIER_WEBHOOK_URL or
    TASK_NOTIFIER_RETRY__MAX_ATTEMPTS.
    """

    model_config = SettingsConfigDict(
        env_prefix="TASK_NOTIFIER_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    webhook_url: str | None = Field(default=None)
    assignees: dict[str, str] = Field(default_factory=dict)
    directory_file: Path | None = Field(default=None)
    time_zone: str = Field(default="Asia/Tokyo")
    lock_timeout_ms: int = Field(default=10_000)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    reminder_pacing_ms: int = Field(default=500)
    reminder_interval_minutes: int = Field(default=0)

    table_path: Path = Field(default=Path("data/tasks.yaml"))
    archive_path: Path = Field(default=Path("data/archive.yaml"))
    audit_log_path: Path = Field(default=Path("data/audit_log.yaml"))
    table_url: str = Field(default="")
    watch_table: bool = Field(default=True)

    request_timeout_seconds: float = Field(default=10.0)
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)
    log_level: str = Field(default="INFO")

    def get_webhook_url(self) -> str | None:
        """Get the outbound webhook URL, or None if unset or blank."""
        if self.webhook_url is None or not self.webhook_url.strip():
            return None
        return self.webhook_url.strip()
