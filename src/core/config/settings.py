# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

Settings are loaded from environment variables with sensible defaults.
The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from src.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.environment)
    'development'
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database configuration for the authoritative relational store.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        url_override: Full async URL; takes precedence over the components
            (used for SQLite in tests and local tooling).
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
        echo: Echo SQL statements.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
    )

    user: str = "league"
    password: SecretStr = SecretStr("league_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "league"
    url_override: str | None = Field(default=None, validation_alias="DATABASE_URL")
    pool_size: int = 10
    max_overflow: int = 20
    echo: bool = False

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        if self.url_override:
            return self.url_override
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"

    @property
    def sync_url(self) -> str:
        """Build the sync database URL for migrations."""
        pwd = self.password.get_secret_value()
        return f"postgresql://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured URL targets SQLite."""
        return self.url.startswith("sqlite")


class RedisSettings(BaseSettings):
    """Redis configuration for the background task broker.

    Attributes:
        host: Redis server host.
        port: Redis server port.
        password: Redis password.
        database: Redis database number.
    """

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        extra="ignore",
    )

    host: str = "localhost"
    port: int = 6379
    password: SecretStr = SecretStr("")
    database: int = 0

    @property
    def url(self) -> str:
        """Build the Redis connection URL."""
        pwd = self.password.get_secret_value()
        if pwd:
            return f"redis://:{pwd}@{self.host}:{self.port}/{self.database}"
        return f"redis://{self.host}:{self.port}/{self.database}"


class SMTPSettings(BaseSettings):
    """SMTP configuration for the email notification channel.

    The channel is disabled (sends are skipped) until host, username,
    password and sender address are all set.

    Attributes:
        host: SMTP server hostname.
        port: SMTP server port.
        username: SMTP authentication username.
        password: SMTP authentication password.
        use_tls: Use STARTTLS.
        from_email: Sender email address.
        from_name: Sender display name.
        timeout: Send timeout in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="SMTP_",
        extra="ignore",
    )

    host: str | None = None
    port: int = 587
    username: str | None = None
    password: SecretStr | None = None
    use_tls: bool = True
    from_email: str | None = None
    from_name: str = "League of Champions"
    timeout: float = 30.0

    @property
    def is_configured(self) -> bool:
        """Whether every required SMTP value is present."""
        return all([self.host, self.username, self.password, self.from_email])


class NotificationSettings(BaseSettings):
    """Recipients of scheduled digests and intervention escalation emails.

    Attributes:
        digest_recipients: Comma-separated addresses for the weekly digest.
        escalation_recipients: Comma-separated addresses notified when the
            monitoring sweep escalates or flags a case.
    """

    model_config = SettingsConfigDict(
        env_prefix="NOTIFY_",
        extra="ignore",
    )

    digest_recipients: str = ""
    escalation_recipients: str = ""

    @property
    def digest_recipients_list(self) -> list[str]:
        """Parse digest recipients into a list."""
        return [r.strip() for r in self.digest_recipients.split(",") if r.strip()]

    @property
    def escalation_recipients_list(self) -> list[str]:
        """Parse escalation recipients into a list."""
        return [r.strip() for r in self.escalation_recipients.split(",") if r.strip()]


class CORSSettings(BaseSettings):
    """CORS configuration for the portal front-ends.

    Attributes:
        origins: Comma-separated list of allowed origins.
        allow_credentials: Allow credentials in CORS requests.
    """

    model_config = SettingsConfigDict(
        env_prefix="CORS_",
        extra="ignore",
    )

    origins: str = "http://localhost:3000"
    allow_credentials: bool = True

    @property
    def origins_list(self) -> list[str]:
        """Parse origins string into list."""
        return [origin.strip() for origin in self.origins.split(",") if origin.strip()]


class APISettings(BaseSettings):
    """API server configuration.

    Attributes:
        host: Server bind host.
        port: Server bind port.
        cron_secret: Bearer token required by the cron endpoints when set.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 8000
    cron_secret: SecretStr | None = Field(default=None, validation_alias="CRON_SECRET")


class WorkerSettings(BaseSettings):
    """Background worker configuration.

    Attributes:
        processes: Number of dramatiq worker processes.
        threads: Threads per worker process.
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKER_",
        extra="ignore",
    )

    processes: int = 1
    threads: int = 4


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        app_url: Public portal URL used in email links.
        db: Database settings.
        redis: Redis settings.
        smtp: SMTP settings.
        notifications: Digest and escalation recipients.
        cors: CORS settings.
        api: API server settings.
        worker: Background worker settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "test", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"
    app_url: str = "http://localhost:3000"

    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    smtp: SMTPSettings = Field(default_factory=SMTPSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    api: APISettings = Field(default_factory=APISettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production without a cron secret.
        """
        if self.environment == "production" and self.api.cron_secret is None:
            raise ValueError(
                "CRON_SECRET must be set in production so cron endpoints "
                "cannot be triggered anonymously."
            )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
