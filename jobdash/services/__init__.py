"""Service layer exports."""

from .calendar_sync import CalendarSyncService
from .google_oauth_flow import CallbackOutcome, GoogleAuthorizationFlow
from .google_tokens import GoogleTokenService
from .oauth_state import OAuthStateService, StateClaims
from .rate_limiter import InMemoryRateLimiter, RateLimiter, SQLiteRateLimiter
from .secret_codec import SecretCodec, generate_secure_token, hash_for_logging
from .telegram_channel import (
    ChannelVerification,
    TelegramChannelVerifier,
    VerificationFailure,
)
from .telegram_notifications import TelegramNotificationService

__all__ = [
    "CalendarSyncService",
    "CallbackOutcome",
    "ChannelVerification",
    "GoogleAuthorizationFlow",
    "GoogleTokenService",
    "InMemoryRateLimiter",
    "OAuthStateService",
    "RateLimiter",
    "SQLiteRateLimiter",
    "SecretCodec",
    "StateClaims",
    "TelegramChannelVerifier",
    "TelegramNotificationService",
    "VerificationFailure",
    "generate_secure_token",
    "hash_for_logging",
]
