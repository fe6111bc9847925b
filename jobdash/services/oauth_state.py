"""
Encrypted OAuth ``state`` tokens.

A state token binds the redirect-back leg of an OAuth flow to the subject that
started it. Tokens are Secret Codec envelopes, so the subject identity can be
neither read nor forged without the server secret.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from jobdash.core.errors import IntegrationError
from jobdash.services.secret_codec import SecretCodec, generate_secure_token

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DEFAULT_STATE_TTL = timedelta(minutes=15)
_MAX_CLOCK_SKEW = timedelta(seconds=60)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StateClaims:
    """Verified contents of a state token."""

    subject_id: str
    issued_at: datetime


class OAuthStateService:
    """Issue and verify short-lived encrypted state tokens."""

    def __init__(
        self,
        codec: SecretCodec,
        *,
        ttl: timedelta = DEFAULT_STATE_TTL,
        clock: Clock = utc_now,
    ) -> None:
        self._codec = codec
        self._ttl = ttl
        self._clock = clock

    def issue(self, subject_id: str) -> str:
        payload = {
            "subject_id": subject_id,
            "issued_at": int(self._clock().timestamp() * 1000),
            "nonce": generate_secure_token(16),
        }
        return self._codec.encrypt(json.dumps(payload, separators=(",", ":")))

    def verify(self, token: str) -> StateClaims | None:
        """Return the claims of a valid token, or ``None`` for anything else.

        Callers must treat ``None`` uniformly as "reject the flow"; the reason
        is only logged.
        """
        try:
            payload = json.loads(self._codec.decrypt(token))
        except (IntegrationError, ValueError) as exc:
            logger.info("Rejected OAuth state: %s", type(exc).__name__)
            return None

        if not isinstance(payload, dict):
            logger.info("Rejected OAuth state: payload is not an object")
            return None

        subject_id = payload.get("subject_id")
        issued_at_ms = payload.get("issued_at")
        nonce = payload.get("nonce")
        if (
            not isinstance(subject_id, str)
            or not subject_id
            or not isinstance(issued_at_ms, int)
            or isinstance(issued_at_ms, bool)
            or not nonce
        ):
            logger.info("Rejected OAuth state: missing required fields")
            return None

        try:
            issued_at = datetime.fromtimestamp(issued_at_ms / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.info("Rejected OAuth state: issued_at out of range")
            return None
        age = self._clock() - issued_at
        if age > self._ttl:
            logger.info("Rejected OAuth state: expired")
            return None
        if age < -_MAX_CLOCK_SKEW:
            logger.info("Rejected OAuth state: issued in the future")
            return None

        return StateClaims(subject_id=subject_id, issued_at=issued_at)


__all__ = ["OAuthStateService", "StateClaims", "utc_now"]
