"""Configuration management for the task engine."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # SQLite Configuration
    sqlite_db_path: str = Field(default="data/tasks.db", description="Path to the SQLite database file")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="development", description="Deployment environment name")

    # Lifecycle Configuration
    completion_grace_period_minutes: int = Field(
        default=15, description="Minutes after completion during which a task may still be edited"
    )

    # Allocation Configuration
    auto_assign_on_create: bool = Field(
        default=True, description="Run the allocator when a task is created without an assignee"
    )
    stale_task_minutes: int = Field(
        default=5, description="Age in minutes after which an unassigned pending task is auto-assigned"
    )
    auto_assign_interval_minutes: int = Field(default=1, description="Interval of the stale task sweep job")
    enable_auto_assign_job: bool = Field(default=True, description="Enable/disable the stale task sweep job")
    completion_rate_window_days: int = Field(
        default=30, description="Look-back window for a staff member's recent completion rate"
    )
    default_completion_rate: float = Field(
        default=1.0, description="Completion rate assumed for staff with no recent assignments"
    )
    recommendation_limit: int = Field(default=3, description="Number of staff recommendations returned")

    # Scoring Configuration
    scoring_workload_base: float = Field(default=10.0, description="Open task count at which workload score is zero")
    scoring_workload_weight: float = Field(default=0.4, description="Weight of the workload term")
    scoring_completion_weight: float = Field(default=0.4, description="Weight of the completion rate term")
    scoring_skill_weight: float = Field(default=0.0, description="Weight of the skill match term")
    scoring_priority_boost: float = Field(default=2.0, description="Bonus added for high and urgent tasks")

    # Notification Configuration
    notifier_webhook_url: str | None = Field(
        default=None, description="Endpoint receiving task events (log-only notifier when unset)"
    )
    notifier_webhook_token: str | None = Field(default=None, description="Bearer token for the webhook notifier")
    notification_max_attempts: int = Field(default=3, description="Delivery attempts per notification")
    notification_retry_base_delay: float = Field(
        default=0.5, description="Base delay in seconds for notification retry backoff"
    )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants."""

    # API Configuration
    API_TIMEOUT_SECONDS: int = 30

    # Optimistic Concurrency
    MAX_WRITE_ATTEMPTS: int = 2  # First attempt plus exactly one re-read retry

    # Scoring
    SKILL_LEVEL_MIN: int = 1
    SKILL_LEVEL_MAX: int = 5

    # Workflow Chaining
    KITCHEN_FOLLOW_UP_DUE_MINUTES: int = 15
    KITCHEN_FOLLOW_UP_ESTIMATE_MINUTES: int = 10
    MAINTENANCE_FOLLOW_UP_DUE_MINUTES: int = 30
    MAINTENANCE_FOLLOW_UP_ESTIMATE_MINUTES: int = 20

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 100
    BULK_ASSIGN_LIMIT: int = 500

    # Job Tracker Configuration
    TRACKER_DEAD_LETTER_QUEUE_MAXLEN: int = 100
    TRACKER_CONSECUTIVE_FAILURE_THRESHOLD: int = 3


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
