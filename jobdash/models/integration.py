"""
Domain models for integration record persistence.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IntegrationProvider(str, Enum):
    """Third-party services a subject can connect."""

    GOOGLE_CALENDAR = "google_calendar"
    TELEGRAM = "telegram"


class GoogleCalendarSettings(BaseModel):
    """Calendar sync toggles."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    sync_interviews: bool = Field(True, alias="syncInterviews")
    sync_deadlines: bool = Field(True, alias="syncDeadlines")


class TelegramNotificationSettings(BaseModel):
    """Which events produce a Telegram message."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    interviews: bool = True
    deadlines: bool = True
    status_changes: bool = Field(True, alias="statusChanges")


class TelegramChannelSettings(BaseModel):
    """Verified chat binding plus notification toggles."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    chat_id: Optional[str] = Field(
        None,
        alias="chatId",
        description="Only ever set by a successful delivery-based verification.",
    )
    notifications: TelegramNotificationSettings = Field(
        default_factory=TelegramNotificationSettings
    )


SETTINGS_SCHEMAS: Dict[IntegrationProvider, type[BaseModel]] = {
    IntegrationProvider.GOOGLE_CALENDAR: GoogleCalendarSettings,
    IntegrationProvider.TELEGRAM: TelegramChannelSettings,
}


class IntegrationRecord(BaseModel):
    """One row per (user_id, provider).

    Token fields hold Secret Codec envelopes; plaintext tokens never reach
    this model.
    """

    user_id: str
    provider: IntegrationProvider
    connected: bool = False
    access_token_encrypted: Optional[str] = None
    refresh_token_encrypted: Optional[str] = None
    expires_at: Optional[datetime] = None
    settings: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def calendar_settings(self) -> GoogleCalendarSettings:
        return GoogleCalendarSettings.model_validate(self.settings)

    def telegram_settings(self) -> TelegramChannelSettings:
        return TelegramChannelSettings.model_validate(self.settings)

    def public_view(self) -> Dict[str, Any]:
        """Status safe to return to the owning user: no token material."""
        return {
            "provider": self.provider.value,
            "connected": self.connected,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "settings": self.settings,
            "updatedAt": self.updated_at.isoformat(),
        }


__all__ = [
    "GoogleCalendarSettings",
    "IntegrationProvider",
    "IntegrationRecord",
    "SETTINGS_SCHEMAS",
    "TelegramChannelSettings",
    "TelegramNotificationSettings",
]
