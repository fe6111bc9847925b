"""Expose constructed client wrappers."""

from .google_auth import GoogleOAuthClient, OAuthTokenExchangeError, OAuthTokenGrant
from .google_calendar import GoogleCalendarClient
from .integration_store import IntegrationStore, SQLiteIntegrationStore
from .telegram import TelegramAPIError, TelegramBotClient

__all__ = [
    "GoogleCalendarClient",
    "GoogleOAuthClient",
    "IntegrationStore",
    "OAuthTokenExchangeError",
    "OAuthTokenGrant",
    "SQLiteIntegrationStore",
    "TelegramAPIError",
    "TelegramBotClient",
]
