"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_calendar_sync_service,
    get_google_authorization_flow,
    get_google_oauth_client,
    get_google_token_service,
    get_integration_store,
    get_oauth_state_service,
    get_rate_limiter,
    get_telegram_bot_client,
    get_telegram_channel_verifier,
    get_telegram_notification_service,
    get_secret_codec,
)
from .config import SettingsDependency, get_app_settings, get_integration_availability
from .session import get_current_subject, require_subject

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_calendar_sync_service",
    "get_current_subject",
    "get_google_authorization_flow",
    "get_google_oauth_client",
    "get_google_token_service",
    "get_integration_availability",
    "get_integration_store",
    "get_oauth_state_service",
    "get_rate_limiter",
    "get_telegram_bot_client",
    "get_telegram_channel_verifier",
    "get_telegram_notification_service",
    "get_secret_codec",
    "require_subject",
]
