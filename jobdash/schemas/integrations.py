"""Payloads for integration endpoints and notification/sync inputs."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _known_time_zone(value: str) -> str:
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"unknown time zone {value!r}") from exc
    return value


class TelegramVerifyRequest(BaseModel):
    """Chat ID the user wants to bind to their account."""

    model_config = ConfigDict(populate_by_name=True)

    chat_id: str = Field(..., alias="chatId", min_length=1, max_length=32)

    @field_validator("chat_id", mode="before")
    @classmethod
    def _coerce_numeric(cls, value: Union[str, int]) -> str:
        """Front-ends send chat IDs as numbers or strings."""
        if isinstance(value, bool):
            raise ValueError("chatId must be a string or integer")
        if isinstance(value, int):
            return str(value)
        return value


class TelegramSendRequest(TelegramVerifyRequest):
    """Message to deliver to the caller's own verified chat."""

    message: str = Field(..., min_length=1, max_length=4096)
    parse_mode: Optional[Literal["Markdown", "MarkdownV2", "HTML"]] = Field(
        "Markdown", alias="parseMode"
    )


class InterviewEvent(BaseModel):
    """Interview details used for calendar events and reminders."""

    company: str
    role: str
    interview_type: str = Field(..., description="e.g. phone, technical, onsite.")
    starts_at: datetime
    duration_minutes: int = Field(60, gt=0, le=24 * 60)
    location: Optional[str] = None
    interviewer_names: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    meeting_link: Optional[str] = None
    time_zone: str = Field("UTC", description="IANA zone used for naive times.")

    check_time_zone = field_validator("time_zone")(_known_time_zone)


class DeadlineEvent(BaseModel):
    """Application deadline used for calendar events and reminders."""

    company: str
    role: str
    deadline: date
    notes: Optional[str] = None
    time_zone: str = "UTC"

    check_time_zone = field_validator("time_zone")(_known_time_zone)


class StatusChange(BaseModel):
    """Application status transition."""

    company: str
    role: str
    old_status: str
    new_status: str


__all__ = [
    "DeadlineEvent",
    "InterviewEvent",
    "StatusChange",
    "TelegramSendRequest",
    "TelegramVerifyRequest",
]
