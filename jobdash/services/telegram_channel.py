"""
Telegram chat binding, verified by actual delivery.

A chat ID typed in by the user is only trusted once the bot has successfully
delivered a message to it. That is also the only path that writes
``settings.chatId``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from jobdash.clients.integration_store import IntegrationStore
from jobdash.clients.telegram import TelegramBotClient
from jobdash.core.errors import (
    ChannelBlockedError,
    ChannelNotFoundError,
    ChannelNotOwnedError,
    ProviderError,
)
from jobdash.models.integration import (
    IntegrationProvider,
    IntegrationRecord,
    TelegramChannelSettings,
)
from jobdash.services.rate_limiter import RateLimiter
from jobdash.services.secret_codec import hash_for_logging

logger = logging.getLogger(__name__)

_CHAT_ID_PATTERN = re.compile(r"^-?\d{1,20}$")
_MAX_CHAT_ID = 2**63 - 1
DEFAULT_BOT_USERNAME = "JobDashboardBot"

VERIFICATION_MESSAGE = """✅ *Job Dashboard Connected!*

Your Telegram notifications are now set up.

You'll receive notifications about:
• Interview reminders
• Application deadlines
• Status changes

Manage your notification preferences in the Job Dashboard settings."""


class VerificationFailure(str, Enum):
    RATE_LIMITED = "rate_limited"
    INVALID_FORMAT = "invalid_format"
    TARGET_NOT_FOUND = "target_not_found"
    BLOCKED = "blocked"
    SEND_FAILED = "send_failed"


@dataclass(frozen=True)
class ChannelVerification:
    success: bool
    failure: Optional[VerificationFailure] = None
    channel_metadata: dict[str, Any] = field(default_factory=dict)


def is_valid_chat_id(chat_id: str) -> bool:
    """Numeric Telegram chat id; negative values cover groups and channels."""
    if not _CHAT_ID_PATTERN.match(chat_id):
        return False
    return abs(int(chat_id)) <= _MAX_CHAT_ID and int(chat_id) != 0


class TelegramChannelVerifier:
    """Verify chat ownership by delivery and send to verified chats only."""

    def __init__(
        self,
        bot_client: TelegramBotClient,
        store: IntegrationStore,
        rate_limiter: RateLimiter,
    ) -> None:
        self._bot = bot_client
        self._store = store
        self._rate_limiter = rate_limiter

    async def verify_and_connect(
        self, subject_id: str, chat_id: str
    ) -> ChannelVerification:
        subject_hash = hash_for_logging(subject_id)

        if not self._rate_limiter.check(f"telegram-verify:{subject_id}"):
            logger.info("Telegram verification rate limited for subject %s", subject_hash)
            return ChannelVerification(False, VerificationFailure.RATE_LIMITED)

        chat_id = chat_id.strip()
        if not is_valid_chat_id(chat_id):
            return ChannelVerification(False, VerificationFailure.INVALID_FORMAT)

        try:
            await self._bot.send_message(chat_id, VERIFICATION_MESSAGE)
        except ChannelNotFoundError:
            return ChannelVerification(False, VerificationFailure.TARGET_NOT_FOUND)
        except ChannelBlockedError:
            return ChannelVerification(False, VerificationFailure.BLOCKED)
        except ProviderError as exc:
            logger.warning(
                "Telegram verification send failed for subject %s: %s", subject_hash, exc
            )
            return ChannelVerification(False, VerificationFailure.SEND_FAILED)

        existing = self._store.get(user_id=subject_id, provider=IntegrationProvider.TELEGRAM)
        channel_settings = (
            existing.telegram_settings() if existing else TelegramChannelSettings()
        )
        channel_settings.chat_id = chat_id
        record = IntegrationRecord(
            user_id=subject_id,
            provider=IntegrationProvider.TELEGRAM,
            connected=True,
            settings=channel_settings.model_dump(by_alias=True),
        )
        if existing:
            record.created_at = existing.created_at
        self._store.upsert(record)
        logger.info(
            "Telegram chat %s connected for subject %s",
            hash_for_logging(chat_id),
            subject_hash,
        )

        bot_username = await self._bot.get_bot_username() or DEFAULT_BOT_USERNAME
        return ChannelVerification(True, channel_metadata={"botUsername": bot_username})

    async def send_to_owned_channel(
        self,
        subject_id: str,
        chat_id: str,
        message: str,
        parse_mode: Optional[str] = "Markdown",
    ) -> int:
        """Send ``message`` only if ``chat_id`` is the subject's verified chat."""
        record = self._store.get(user_id=subject_id, provider=IntegrationProvider.TELEGRAM)
        bound_chat_id = record.telegram_settings().chat_id if record else None
        if not record or not record.connected or bound_chat_id != chat_id.strip():
            logger.warning(
                "Subject %s tried to message an unverified chat", hash_for_logging(subject_id)
            )
            raise ChannelNotOwnedError("Chat is not connected to this account.")
        return await self._bot.send_message(bound_chat_id, message, parse_mode=parse_mode)


__all__ = [
    "ChannelVerification",
    "DEFAULT_BOT_USERNAME",
    "TelegramChannelVerifier",
    "VERIFICATION_MESSAGE",
    "VerificationFailure",
    "is_valid_chat_id",
]
