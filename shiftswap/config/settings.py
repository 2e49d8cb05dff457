import os
from pathlib import Path

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_database_url() -> str:
    """Get database URL, using absolute path for SQLite to avoid path resolution issues.

    SQLite is meant for local development and tests only. Concurrent request
    workers in separate processes need a server database (PostgreSQL) so the
    optimistic version checks on master schedules are enforced across processes.
    """
    db_url = os.getenv("DATABASE_URL", "")
    if db_url:
        logger.info(f"Using DATABASE_URL from environment: {db_url}")
        return db_url

    db_path = Path(__file__).parent.parent.parent / "shiftswap.db"
    abs_path = db_path.resolve()
    db_url = f"sqlite:///{abs_path}"
    logger.warning(f"Using SQLite database (LOCAL DEV ONLY): {db_url}")
    return db_url


class Settings(BaseSettings):
    database_url: str = Field(
        default_factory=get_database_url,
        validation_alias="DATABASE_URL",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE", description="Optional rotating log file")
    log_json: bool = Field(default=False, validation_alias="LOG_JSON", description="Write the log file as JSON lines")
    persistence_timeout_seconds: float = Field(
        default=10.0,
        validation_alias="PERSISTENCE_TIMEOUT_SECONDS",
        description="Upper bound for a single database call (driver, statement and pool checkout)",
    )
    schedule_lock_timeout_seconds: float = Field(
        default=10.0,
        validation_alias="SCHEDULE_LOCK_TIMEOUT_SECONDS",
        description="How long a writer waits for the per-schedule lock",
    )
    trade_max_attempts: int = Field(
        default=3,
        validation_alias="TRADE_MAX_ATTEMPTS",
        description="Attempts for a schedule write when the optimistic version check fails",
    )
    allow_unindexed_trade_units: bool = Field(
        default=False,
        validation_alias="ALLOW_UNINDEXED_TRADE_UNITS",
        description="Accept trade unit ids that are not part of the schedule's ownership index",
    )
    notifications_enabled: bool = Field(
        default=True,
        validation_alias="NOTIFICATIONS_ENABLED",
        description="Dispatch trade events to registered sinks after commit",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(sorted(valid_levels))}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("persistence_timeout_seconds", "schedule_lock_timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError(f"Timeouts must be positive, got {value}")
        return value

    @field_validator("trade_max_attempts")
    @classmethod
    def validate_max_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError(f"TRADE_MAX_ATTEMPTS must be at least 1, got {value}")
        return value


settings = Settings()
