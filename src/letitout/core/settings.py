"""Application settings and configuration.

This module defines all configuration options for the Let It Out sync core.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Let It Out", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Local store
    database_url: str = Field(
        default="sqlite+aiosqlite:///./letitout.db",
        alias="DATABASE_URL",
    )
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Remote backend
    api_base_url: str | None = Field(default=None, alias="LETITOUT_API_BASE_URL")
    api_timeout_seconds: float = Field(default=8.0, alias="LETITOUT_API_TIMEOUT_SECONDS")
    circuit_failure_threshold: int = Field(
        default=5,
        alias="LETITOUT_CIRCUIT_FAILURE_THRESHOLD",
    )
    circuit_recovery_seconds: float = Field(
        default=30.0,
        alias="LETITOUT_CIRCUIT_RECOVERY_SECONDS",
    )

    # Feed and history windows
    feed_limit: int = Field(default=50, alias="LETITOUT_FEED_LIMIT")
    mood_history_days: int = Field(default=90, alias="LETITOUT_MOOD_HISTORY_DAYS")

    # First-run placeholder content
    seed_enabled: bool = Field(default=True, alias="LETITOUT_SEED_ENABLED")
    seed_vent_count: int = Field(default=12, alias="LETITOUT_SEED_VENT_COUNT")

    # Offline queue replay
    sync_interval_seconds: float = Field(default=15.0, alias="LETITOUT_SYNC_INTERVAL_SECONDS")
    sync_batch_size: int = Field(default=25, alias="LETITOUT_SYNC_BATCH_SIZE")

    # CORS configuration for the UI shell
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def remote_enabled(self) -> bool:
        """Return True when a backend base URL is configured."""
        return bool(self.api_base_url)

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts the aiosqlite URL to the plain sqlite driver for synchronous
        operations like Alembic migrations.
        """
        if self.database_url.startswith("sqlite+aiosqlite"):
            return self.database_url.replace("sqlite+aiosqlite", "sqlite", 1)
        return self.database_url


settings = Settings()
