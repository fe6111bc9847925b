"""
Application configuration models and helpers.

Settings are read once from the environment (and an optional ``.env`` file)
and then validated into typed, fully populated per-integration configs. A
missing value marks that integration unavailable; it never enables an
insecure fallback.
"""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal, Optional, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from jobdash.core.errors import ConfigurationError

DEFAULT_ENV_FILE = ".env"

_SETTINGS_CONFIG = SettingsConfigDict(
    env_file=DEFAULT_ENV_FILE,
    env_file_encoding="utf-8",
    extra="ignore",
    populate_by_name=True,
)


class GoogleSettings(BaseSettings):
    """Credentials for the Google Calendar OAuth client."""

    model_config = _SETTINGS_CONFIG

    client_id: Optional[str] = Field(None, alias="GOOGLE_CLIENT_ID")
    client_secret: Optional[str] = Field(None, alias="GOOGLE_CLIENT_SECRET")
    redirect_uri: Optional[str] = Field(
        None,
        alias="GOOGLE_REDIRECT_URI",
        description="Defaults to APP_BASE_URL + /api/auth/google/callback.",
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = _SETTINGS_CONFIG

    encryption_secret: Optional[str] = Field(
        None,
        alias="ENCRYPTION_SECRET",
        description="Secret used to derive the AES-256-GCM key for stored tokens.",
    )
    session_jwt_secret: Optional[str] = Field(
        None,
        alias="SESSION_JWT_SECRET",
        description="HS256 secret of the auth backend that issues session tokens.",
    )
    session_jwt_audience: Optional[str] = Field(
        "authenticated", alias="SESSION_JWT_AUDIENCE"
    )
    session_cookie_name: str = Field("access_token", alias="SESSION_COOKIE_NAME")


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    model_config = _SETTINGS_CONFIG

    state_ttl_seconds: int = Field(900, alias="OAUTH_STATE_TTL")
    refresh_window_seconds: int = Field(300, alias="OAUTH_REFRESH_WINDOW")
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        ("https://www.googleapis.com/auth/calendar.events",),
        alias="OAUTH_SCOPES",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())


class TelegramSettings(BaseSettings):
    """Telegram bot credentials and channel verification limits."""

    model_config = _SETTINGS_CONFIG

    bot_token: Optional[str] = Field(None, alias="TELEGRAM_BOT_TOKEN")
    verify_max_attempts: int = Field(5, alias="TELEGRAM_VERIFY_MAX_ATTEMPTS")
    verify_window_seconds: int = Field(900, alias="TELEGRAM_VERIFY_WINDOW")
    rate_limit_backend: Literal["memory", "sqlite"] = Field(
        "memory",
        alias="RATE_LIMIT_BACKEND",
        description="Use 'sqlite' to share attempt counters between worker processes.",
    )


@dataclass(frozen=True)
class GoogleCalendarConfig:
    """Validated configuration required by the Google Calendar integration."""

    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: tuple[str, ...]
    encryption_secret: str
    state_ttl_seconds: int
    refresh_window_seconds: int


@dataclass(frozen=True)
class TelegramConfig:
    """Validated configuration required by the Telegram integration."""

    bot_token: str
    verify_max_attempts: int
    verify_window_seconds: int
    rate_limit_backend: str


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = _SETTINGS_CONFIG

    environment: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="APP_LOG_LEVEL")
    app_base_url: str = Field("http://localhost:8000", alias="APP_BASE_URL")
    integrations_return_path: str = Field("/", alias="INTEGRATIONS_RETURN_PATH")
    integrations_db_path: str = Field(
        "data/integrations.db", alias="INTEGRATIONS_DB_PATH"
    )
    require_integrations: bool = Field(
        False,
        alias="REQUIRE_INTEGRATIONS",
        description="Fail startup instead of disabling integrations with missing config.",
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    google: GoogleSettings = Field(default_factory=GoogleSettings)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)

    @property
    def integrations_return_url(self) -> str:
        """Fixed UI location every OAuth callback redirects back to."""
        path = self.integrations_return_path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.app_base_url.rstrip('/')}{path}"

    def google_calendar_config(self) -> GoogleCalendarConfig:
        """Return the Google Calendar config or raise naming what is missing."""
        required = {
            "GOOGLE_CLIENT_ID": self.google.client_id,
            "GOOGLE_CLIENT_SECRET": self.google.client_secret,
            "ENCRYPTION_SECRET": self.security.encryption_secret,
        }
        _ensure_present("Google Calendar", required)
        redirect_uri = (
            self.google.redirect_uri
            or f"{self.app_base_url.rstrip('/')}/api/auth/google/callback"
        )
        return GoogleCalendarConfig(
            client_id=self.google.client_id,  # type: ignore[arg-type]
            client_secret=self.google.client_secret,  # type: ignore[arg-type]
            redirect_uri=redirect_uri,
            scopes=self.oauth.scopes,
            encryption_secret=self.security.encryption_secret,  # type: ignore[arg-type]
            state_ttl_seconds=self.oauth.state_ttl_seconds,
            refresh_window_seconds=self.oauth.refresh_window_seconds,
        )

    def telegram_config(self) -> TelegramConfig:
        """Return the Telegram config or raise naming what is missing."""
        _ensure_present("Telegram", {"TELEGRAM_BOT_TOKEN": self.telegram.bot_token})
        return TelegramConfig(
            bot_token=self.telegram.bot_token,  # type: ignore[arg-type]
            verify_max_attempts=self.telegram.verify_max_attempts,
            verify_window_seconds=self.telegram.verify_window_seconds,
            rate_limit_backend=self.telegram.rate_limit_backend,
        )


@dataclass(frozen=True)
class IntegrationAvailability:
    """Outcome of the startup configuration check."""

    google_calendar: GoogleCalendarConfig | None
    telegram: TelegramConfig | None
    problems: dict[str, ConfigurationError]


def _ensure_present(feature: str, values: dict[str, Optional[str]]) -> None:
    missing = tuple(name for name, value in values.items() if not value)
    if missing:
        raise ConfigurationError(
            f"{feature} integration is not configured; missing {', '.join(missing)}.",
            missing=missing,
        )


def resolve_integrations(settings: AppSettings) -> IntegrationAvailability:
    """Validate every integration once, collecting problems instead of failing."""
    problems: dict[str, ConfigurationError] = {}
    google_config: GoogleCalendarConfig | None = None
    telegram_config: TelegramConfig | None = None
    try:
        google_config = settings.google_calendar_config()
    except ConfigurationError as exc:
        problems["google_calendar"] = exc
    try:
        telegram_config = settings.telegram_config()
    except ConfigurationError as exc:
        problems["telegram"] = exc
    return IntegrationAvailability(
        google_calendar=google_config,
        telegram=telegram_config,
        problems=problems,
    )


def load_settings(env_file: Union[str, Path, None] = DEFAULT_ENV_FILE) -> AppSettings:
    """Build settings with every group reading the same ``.env`` file.

    Process environment variables take precedence over values in the file.
    """
    return AppSettings(  # type: ignore[call-arg]
        _env_file=env_file,
        security=SecuritySettings(_env_file=env_file),  # type: ignore[call-arg]
        oauth=OAuthSettings(_env_file=env_file),  # type: ignore[call-arg]
        google=GoogleSettings(_env_file=env_file),  # type: ignore[call-arg]
        telegram=TelegramSettings(_env_file=env_file),  # type: ignore[call-arg]
    )


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return load_settings()


__all__ = [
    "AppSettings",
    "GoogleCalendarConfig",
    "GoogleSettings",
    "IntegrationAvailability",
    "OAuthSettings",
    "SecuritySettings",
    "TelegramConfig",
    "TelegramSettings",
    "get_settings",
    "load_settings",
    "resolve_integrations",
]
