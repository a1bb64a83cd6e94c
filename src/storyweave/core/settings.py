"""Application settings and configuration.

This module defines all configuration options for the StoryWeave voting engine.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    Durations are expressed in seconds so development and test environments
    can shorten the debounce and voting windows without code changes.
    """

    # Application metadata
    app_name: str = Field(default="StoryWeave", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Database configuration (reputation records and the story ledger)
    database_url: str = Field(default="sqlite:///./storyweave.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Key-value store for votes, sessions and pending submission queues
    kv_backend: str = Field(default="redis", alias="KV_BACKEND")
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")
    kv_key_prefix: str = Field(default="storyweave", alias="KV_KEY_PREFIX")

    # Submission intake
    submission_debounce_seconds: float = Field(
        default=5.0,
        alias="SUBMISSION_DEBOUNCE_SECONDS",
    )
    submission_poll_interval_seconds: float = Field(
        default=0.25,
        alias="SUBMISSION_POLL_INTERVAL_SECONDS",
    )
    submission_decision_grace_seconds: float = Field(
        default=2.0,
        alias="SUBMISSION_DECISION_GRACE_SECONDS",
    )
    max_submission_chars: int = Field(default=280, alias="MAX_SUBMISSION_CHARS")
    submission_word_limit: str | None = Field(default=None, alias="SUBMISSION_WORD_LIMIT")
    default_community_id: str = Field(default="global", alias="DEFAULT_COMMUNITY_ID")

    # Voting sessions
    voting_window_seconds: float = Field(default=24 * 60 * 60, alias="VOTING_WINDOW_SECONDS")
    expiry_sweep_enabled: bool = Field(default=False, alias="EXPIRY_SWEEP_ENABLED")
    expiry_sweep_interval_seconds: float = Field(
        default=60.0,
        alias="EXPIRY_SWEEP_INTERVAL_SECONDS",
    )

    # Notification dispatch
    notify_webhook_url: str | None = Field(default=None, alias="NOTIFY_WEBHOOK_URL")
    notify_http_timeout_seconds: float = Field(
        default=5.0,
        alias="NOTIFY_HTTP_TIMEOUT_SECONDS",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def word_limit_range(self) -> tuple[int, int] | None:
        """Return the configured ``min-max`` word limit as a tuple, if any.

        Returns:
            ``(min_words, max_words)`` or None when no word limit is configured
        """
        if not self.submission_word_limit:
            return None
        low, _, high = self.submission_word_limit.partition("-")
        return int(low), int(high or low)


settings = Settings()  # type: ignore[call-arg]
