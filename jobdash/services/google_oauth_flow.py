"""
Google Calendar authorization-code flow.

``initiate`` hands out the consent URL carrying an encrypted state token;
``complete`` runs the callback checks in a fixed order and reduces every
failure to a coarse :class:`CallbackOutcome` that the HTTP layer turns into a
redirect flag.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from enum import Enum
from urllib.parse import urlencode

from jobdash.clients.google_auth import GoogleOAuthClient
from jobdash.clients.integration_store import IntegrationStore
from jobdash.core.errors import ProviderError
from jobdash.models.integration import (
    GoogleCalendarSettings,
    IntegrationProvider,
    IntegrationRecord,
)
from jobdash.services.oauth_state import Clock, OAuthStateService, utc_now
from jobdash.services.secret_codec import SecretCodec, hash_for_logging

logger = logging.getLogger(__name__)


class CallbackOutcome(str, Enum):
    """Enumerated results of an OAuth callback; the only detail users ever see."""

    CONNECTED = "connected"
    DENIED = "denied"
    INVALID = "invalid"
    EXPIRED = "expired"
    TOKEN = "token"
    SESSION = "session"
    SAVE = "save"
    FAILED = "failed"
    CONFIG = "config"

    def query_params(self) -> dict[str, str]:
        if self is CallbackOutcome.CONNECTED:
            return {"google_connected": "true"}
        return {"error": f"google_auth_{self.value}"}


def build_outcome_redirect(return_url: str, outcome: CallbackOutcome) -> str:
    """Append the outcome flag to the fixed UI return location."""
    separator = "&" if "?" in return_url else "?"
    return f"{return_url}{separator}{urlencode(outcome.query_params())}"


class GoogleAuthorizationFlow:
    """Orchestrates consent URL creation and the callback token exchange."""

    def __init__(
        self,
        oauth_client: GoogleOAuthClient,
        state_service: OAuthStateService,
        store: IntegrationStore,
        secret_codec: SecretCodec,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._oauth = oauth_client
        self._state = state_service
        self._store = store
        self._codec = secret_codec
        self._clock = clock

    def initiate(self, subject_id: str) -> str:
        """Return the provider consent URL for the authenticated subject."""
        state = self._state.issue(subject_id)
        logger.info(
            "Starting Google authorization for subject %s", hash_for_logging(subject_id)
        )
        return self._oauth.build_authorization_url(state=state)

    async def complete(
        self,
        *,
        session_subject_id: str | None,
        code: str | None,
        state: str | None,
        error: str | None = None,
    ) -> CallbackOutcome:
        if error:
            logger.info("Google authorization denied by provider: %s", error[:100])
            return CallbackOutcome.DENIED

        if not code or not state:
            return CallbackOutcome.INVALID

        claims = self._state.verify(state)
        if claims is None:
            return CallbackOutcome.EXPIRED

        subject_hash = hash_for_logging(claims.subject_id)
        try:
            grant = await self._oauth.exchange_authorization_code(code)
        except ProviderError as exc:
            logger.warning(
                "Google code exchange failed for subject %s (status=%s): %s",
                subject_hash,
                exc.status_code,
                exc.description or exc,
            )
            return CallbackOutcome.TOKEN

        if not session_subject_id or session_subject_id != claims.subject_id:
            logger.warning(
                "Session does not match OAuth state subject %s", subject_hash
            )
            return CallbackOutcome.SESSION

        now = self._clock()
        existing = self._store.get(
            user_id=claims.subject_id, provider=IntegrationProvider.GOOGLE_CALENDAR
        )
        refresh_token_encrypted = (
            self._codec.encrypt(grant.refresh_token)
            if grant.refresh_token
            else (existing.refresh_token_encrypted if existing else None)
        )
        settings = (
            existing.settings
            if existing and existing.settings
            else GoogleCalendarSettings().model_dump(by_alias=True)
        )
        record = IntegrationRecord(
            user_id=claims.subject_id,
            provider=IntegrationProvider.GOOGLE_CALENDAR,
            connected=True,
            access_token_encrypted=self._codec.encrypt(grant.access_token),
            refresh_token_encrypted=refresh_token_encrypted,
            expires_at=now + timedelta(seconds=grant.expires_in),
            settings=settings,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )

        try:
            self._store.upsert(record)
        except Exception:  # pylint: disable=broad-except
            logger.exception(
                "Failed to store Google integration for subject %s", subject_hash
            )
            return CallbackOutcome.SAVE

        logger.info("Google Calendar connected for subject %s", subject_hash)
        return CallbackOutcome.CONNECTED


__all__ = ["CallbackOutcome", "GoogleAuthorizationFlow", "build_outcome_redirect"]
