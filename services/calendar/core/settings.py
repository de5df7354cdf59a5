from services.common.settings import (
    AliasChoices,
    BaseSettings,
    Field,
    SettingsConfigDict,
)


class Settings(BaseSettings):
    """Calendar provider settings and configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    SERVICE_NAME: str = Field(
        default="calendar-providers", description="Service name used in logs"
    )

    # Provider endpoints
    MICROSOFT_GRAPH_BASE_URL: str = Field(
        default="https://graph.microsoft.com/v1.0",
        description="Microsoft Graph API base URL",
    )
    GOOGLE_API_BASE_URL: str = Field(
        default="https://www.googleapis.com",
        description="Google APIs base URL",
    )
    USER_AGENT: str = Field(
        default="CalendarProviders/1.0",
        description="User-Agent sent to providers",
    )

    # Request behaviour
    HTTP_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        description="Timeout for a single provider request",
        validation_alias=AliasChoices("CALENDAR_HTTP_TIMEOUT", "HTTP_TIMEOUT_SECONDS"),
    )
    MAX_EVENTS_PER_CALENDAR: int = Field(
        default=250,
        description="Maximum number of events fetched per calendar and call",
    )

    # Logging configuration
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: str = Field(default="json", description="Log format (json or text)")


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance, creating it if necessary."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
