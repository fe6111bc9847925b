"""Public schema exports."""

from .auth import AuthorizationUrlResponse
from .integrations import (
    DeadlineEvent,
    InterviewEvent,
    StatusChange,
    TelegramSendRequest,
    TelegramVerifyRequest,
)

__all__ = [
    "AuthorizationUrlResponse",
    "DeadlineEvent",
    "InterviewEvent",
    "StatusChange",
    "TelegramSendRequest",
    "TelegramVerifyRequest",
]
