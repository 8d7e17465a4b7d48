"""Application settings and configuration.

This module defines all configuration options for the UrbanFix report service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    Duplicate-detection radius and window are fleet-wide constants; no request
    may override them.
    """

    # Application metadata
    app_name: str = Field(default="UrbanFix", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database configuration
    database_url: str = Field(default="sqlite:///./urbanfix.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # JWT settings shared with the identity provider
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 30,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Duplicate detection
    duplicate_radius_meters: float = Field(default=50.0, gt=0, alias="DUPLICATE_RADIUS_METERS")
    duplicate_window_days: int = Field(default=7, ge=0, alias="DUPLICATE_WINDOW_DAYS")
    # Cells must be at least as tall as the radius so that a cell block covers it.
    geocell_size_degrees: float = Field(default=0.001, gt=0, alias="GEOCELL_SIZE_DEGREES")

    # Lifecycle and rate limiting
    crowd_verify_threshold: int = Field(default=2, ge=1, alias="CROWD_VERIFY_THRESHOLD")
    max_issues_per_day: int = Field(default=1, ge=1, alias="MAX_ISSUES_PER_DAY")
    vote_retry_attempts: int = Field(default=3, ge=1, alias="VOTE_RETRY_ATTEMPTS")

    # Report text limits
    title_min_length: int = Field(default=5, alias="TITLE_MIN_LENGTH")
    title_max_length: int = Field(default=100, alias="TITLE_MAX_LENGTH")
    description_max_length: int = Field(default=500, alias="DESCRIPTION_MAX_LENGTH")

    # Reverse geocoding collaborator (Nominatim-compatible)
    geocoding_enabled: bool = Field(default=False, alias="GEOCODING_ENABLED")
    geocoding_base_url: str = Field(
        default="https://nominatim.openstreetmap.org",
        alias="GEOCODING_BASE_URL",
    )
    geocoding_timeout_seconds: float = Field(default=5.0, alias="GEOCODING_TIMEOUT_SECONDS")
    geocoding_user_agent: str = Field(default="urbanfix/0.1", alias="GEOCODING_USER_AGENT")

    # Feed pagination
    feed_default_limit: int = Field(default=50, alias="FEED_DEFAULT_LIMIT")
    feed_max_limit: int = Field(default=100, alias="FEED_MAX_LIMIT")

    # CORS configuration for web and mobile clients
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
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
    def duplicate_policy(self) -> dict[str, float]:
        """Return the duplicate-matching constants as a convenience dictionary."""
        return {
            "radius_meters": self.duplicate_radius_meters,
            "window_days": float(self.duplicate_window_days),
        }


settings = Settings()  # type: ignore[call-arg]
