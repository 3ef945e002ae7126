# app/core/config.py
from functools import lru_cache

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global application configuration.

    Values are loaded from environment variables (or a local `.env` file)
    at runtime and cover:
    - BaseQL (GraphQL proxy over Airtable) connection
    - Internal API key for scheduler-triggered endpoints
    - Display timezone and session/recurrence limits
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "Mentorship Portal"
    APP_ENV: str = Field("local", description="Environment name: local/dev/stage/prod")
    LOG_LEVEL: str = Field("INFO", description="Root log level for the service.")

    BASEQL_API_URL: AnyHttpUrl | None = Field(
        default=None,
        description="GraphQL endpoint of the BaseQL proxy in front of Airtable.",
    )
    BASEQL_API_KEY: str | None = Field(
        default=None,
        description="API key sent as the Authorization header to BaseQL.",
    )
    BASEQL_TIMEOUT_SECONDS: float = Field(
        default=15.0,
        description="Per-request timeout for BaseQL calls.",
    )

    INTERNAL_API_KEY: str | None = Field(
        default=None,
        description="API key required for hitting /internal endpoints",
    )

    # --- Display / scheduling ---
    APP_TIMEZONE: str = Field(
        default="America/New_York",
        description="Civil timezone used for every user-facing date and time.",
    )
    TIMEZONE_ABBR: str = Field(
        default="ET",
        description="Abbreviation appended to formatted times (regardless of DST).",
    )
    STARTING_SOON_WINDOW_MINUTES: int = Field(
        default=60,
        description="How long before start a session is reported as 'starting-soon'.",
    )

    # --- Recurrence limits ---
    MAX_OCCURRENCES: int = Field(
        default=52,
        description="Maximum number of sessions a single recurring series may create.",
    )
    MAX_DAYS_AHEAD: int = Field(
        default=365,
        description="Maximum distance in days between series start and its end date.",
    )

    TASKS_PER_PAGE: int = Field(
        default=10,
        description="Page size used when disclosing long task lists incrementally.",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Using LRU cache ensures settings are read and validated only once,
    while still being easily importable across the app.
    """
    return Settings()
