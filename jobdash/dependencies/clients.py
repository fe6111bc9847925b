"""
Factory functions to provide shared clients and services as FastAPI dependencies.

Factories for an integration return ``None`` when that integration is not
configured; routes translate ``None`` into "integration not available".
"""

from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from jobdash.clients import (
    GoogleCalendarClient,
    GoogleOAuthClient,
    SQLiteIntegrationStore,
    TelegramBotClient,
)
from jobdash.dependencies.config import _settings_singleton, get_integration_availability
from jobdash.services import (
    CalendarSyncService,
    GoogleAuthorizationFlow,
    GoogleTokenService,
    InMemoryRateLimiter,
    OAuthStateService,
    RateLimiter,
    SecretCodec,
    SQLiteRateLimiter,
    TelegramChannelVerifier,
    TelegramNotificationService,
)


@lru_cache()
def get_integration_store() -> SQLiteIntegrationStore:
    """Provide the shared integration record store."""
    return SQLiteIntegrationStore(_settings_singleton().integrations_db_path)


@lru_cache()
def get_secret_codec() -> SecretCodec | None:
    """Provide the AES-GCM codec; never falls back to another secret."""
    config = get_integration_availability().google_calendar
    if config is None:
        return None
    return SecretCodec(secret=config.encryption_secret)


@lru_cache()
def get_oauth_state_service() -> OAuthStateService | None:
    config = get_integration_availability().google_calendar
    codec = get_secret_codec()
    if config is None or codec is None:
        return None
    return OAuthStateService(codec, ttl=timedelta(seconds=config.state_ttl_seconds))


@lru_cache()
def get_google_oauth_client() -> GoogleOAuthClient | None:
    """Create a singleton Google OAuth client."""
    config = get_integration_availability().google_calendar
    if config is None:
        return None
    return GoogleOAuthClient(config)


@lru_cache()
def get_google_authorization_flow() -> GoogleAuthorizationFlow | None:
    oauth_client = get_google_oauth_client()
    state_service = get_oauth_state_service()
    codec = get_secret_codec()
    if oauth_client is None or state_service is None or codec is None:
        return None
    return GoogleAuthorizationFlow(
        oauth_client=oauth_client,
        state_service=state_service,
        store=get_integration_store(),
        secret_codec=codec,
    )


@lru_cache()
def get_google_token_service() -> GoogleTokenService | None:
    """Provide helper for managing Google OAuth tokens."""
    config = get_integration_availability().google_calendar
    oauth_client = get_google_oauth_client()
    codec = get_secret_codec()
    if config is None or oauth_client is None or codec is None:
        return None
    return GoogleTokenService(
        store=get_integration_store(),
        oauth_client=oauth_client,
        secret_codec=codec,
        scopes=config.scopes,
        refresh_window=timedelta(seconds=config.refresh_window_seconds),
    )


@lru_cache()
def get_calendar_sync_service() -> CalendarSyncService | None:
    token_service = get_google_token_service()
    if token_service is None:
        return None
    return CalendarSyncService(
        GoogleCalendarClient(token_service), get_integration_store()
    )


@lru_cache()
def get_telegram_bot_client() -> TelegramBotClient | None:
    config = get_integration_availability().telegram
    if config is None:
        return None
    return TelegramBotClient(config.bot_token)


@lru_cache()
def get_rate_limiter() -> RateLimiter:
    """Verification attempt limiter; 'sqlite' shares counters across workers."""
    settings = _settings_singleton()
    window = timedelta(seconds=settings.telegram.verify_window_seconds)
    max_attempts = settings.telegram.verify_max_attempts
    if settings.telegram.rate_limit_backend == "sqlite":
        db_path = Path(settings.integrations_db_path)
        return SQLiteRateLimiter(
            db_path.with_name(f"{db_path.stem}-ratelimit.db"),
            max_attempts=max_attempts,
            window=window,
        )
    return InMemoryRateLimiter(max_attempts=max_attempts, window=window)


@lru_cache()
def get_telegram_channel_verifier() -> TelegramChannelVerifier | None:
    bot_client = get_telegram_bot_client()
    if bot_client is None:
        return None
    return TelegramChannelVerifier(
        bot_client=bot_client,
        store=get_integration_store(),
        rate_limiter=get_rate_limiter(),
    )


@lru_cache()
def get_telegram_notification_service() -> TelegramNotificationService | None:
    bot_client = get_telegram_bot_client()
    if bot_client is None:
        return None
    return TelegramNotificationService(bot_client, get_integration_store())


__all__ = [
    "get_calendar_sync_service",
    "get_google_authorization_flow",
    "get_google_oauth_client",
    "get_google_token_service",
    "get_integration_store",
    "get_oauth_state_service",
    "get_rate_limiter",
    "get_telegram_bot_client",
    "get_telegram_channel_verifier",
    "get_telegram_notification_service",
    "get_secret_codec",
]
