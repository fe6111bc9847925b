"""Notification messages delivered to a subject's verified Telegram chat."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Optional

from jobdash.clients.integration_store import IntegrationStore
from jobdash.clients.telegram import TelegramBotClient
from jobdash.core.errors import ProviderError
from jobdash.models.integration import (
    IntegrationProvider,
    TelegramNotificationSettings,
)
from jobdash.schemas.integrations import DeadlineEvent, InterviewEvent, StatusChange
from jobdash.services.secret_codec import hash_for_logging

logger = logging.getLogger(__name__)

_STATUS_EMOJIS = {
    "new": "🆕",
    "submitted": "📤",
    "interviewing": "💼",
    "offer": "🎉",
    "accepted": "✅",
    "rejected": "❌",
}


def _format_day(value: date) -> str:
    return f"{value.strftime('%A, %B')} {value.day}, {value.year}"


def render_interview_reminder(interview: InterviewEvent) -> str:
    starts_at = interview.starts_at
    lines = [
        "📅 *Interview Reminder*",
        "",
        f"*{interview.company}* - {interview.role}",
        "",
        f"🕐 *When:* {_format_day(starts_at)} at {starts_at.strftime('%I:%M %p')}",
        f"📋 *Type:* {interview.interview_type.capitalize()}",
    ]
    if interview.interviewer_names:
        lines.append(f"👤 *Interviewer(s):* {', '.join(interview.interviewer_names)}")
    if interview.meeting_link:
        lines.append(f"🔗 *Meeting Link:* {interview.meeting_link}")
    if interview.notes:
        lines.extend(["", "📝 *Notes:*", interview.notes])
    lines.extend(["", "_Good luck!_ 🍀"])
    return "\n".join(lines)


def render_deadline_reminder(deadline: DeadlineEvent, days_remaining: int) -> str:
    if days_remaining <= 1:
        urgency = "🚨"
    elif days_remaining <= 3:
        urgency = "⚠️"
    else:
        urgency = "📋"

    if days_remaining == 0:
        due = "⏰ *Due TODAY!*"
    elif days_remaining == 1:
        due = "⏰ *Due TOMORROW!*"
    else:
        due = f"⏰ *{days_remaining} days remaining*"

    lines = [
        f"{urgency} *Application Deadline Reminder*",
        "",
        f"*{deadline.company}* - {deadline.role}",
        "",
        f"📅 *Deadline:* {_format_day(deadline.deadline)}",
        due,
    ]
    if deadline.notes:
        lines.extend(["", "📝 *Notes:*", deadline.notes])
    lines.extend(["", "_Don't forget to submit!_"])
    return "\n".join(lines)


def render_status_change(change: StatusChange) -> str:
    emoji = _STATUS_EMOJIS.get(change.new_status, "📋")
    return (
        f"{emoji} *Application Status Update*\n\n"
        f"*{change.company}* - {change.role}\n\n"
        f"Status changed: _{change.old_status}_ → *{change.new_status}*"
    )


class TelegramNotificationService:
    """Sends reminders to the verified chat when the matching toggle is on.

    Every method returns ``True`` only when Telegram accepted the message.
    """

    def __init__(self, bot_client: TelegramBotClient, store: IntegrationStore) -> None:
        self._bot = bot_client
        self._store = store

    async def send_interview_reminder(
        self, *, user_id: str, interview: InterviewEvent
    ) -> bool:
        return await self._deliver(
            user_id,
            lambda toggles: toggles.interviews,
            render_interview_reminder(interview),
        )

    async def send_deadline_reminder(
        self,
        *,
        user_id: str,
        deadline: DeadlineEvent,
        days_remaining: Optional[int] = None,
    ) -> bool:
        if days_remaining is None:
            days_remaining = max((deadline.deadline - datetime.now().date()).days, 0)
        return await self._deliver(
            user_id,
            lambda toggles: toggles.deadlines,
            render_deadline_reminder(deadline, days_remaining),
        )

    async def send_status_change(self, *, user_id: str, change: StatusChange) -> bool:
        return await self._deliver(
            user_id,
            lambda toggles: toggles.status_changes,
            render_status_change(change),
        )

    async def _deliver(
        self,
        user_id: str,
        enabled: Callable[[TelegramNotificationSettings], bool],
        text: str,
    ) -> bool:
        record = self._store.get(user_id=user_id, provider=IntegrationProvider.TELEGRAM)
        if record is None or not record.connected:
            return False
        channel = record.telegram_settings()
        if not channel.chat_id or not enabled(channel.notifications):
            return False

        try:
            await self._bot.send_message(channel.chat_id, text)
        except ProviderError as exc:
            logger.warning(
                "Telegram notification failed for subject %s: %s",
                hash_for_logging(user_id),
                exc,
            )
            return False
        return True


__all__ = [
    "TelegramNotificationService",
    "render_deadline_reminder",
    "render_interview_reminder",
    "render_status_change",
]
