"""
Helpers for retrieving and refreshing Google OAuth tokens.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import datetime, timedelta, timezone

from google.oauth2.credentials import Credentials

from jobdash.clients.google_auth import GoogleOAuthClient
from jobdash.clients.integration_store import IntegrationStore
from jobdash.core.errors import IntegrationError, ProviderError
from jobdash.models.integration import IntegrationProvider, IntegrationRecord
from jobdash.services.oauth_state import Clock, utc_now
from jobdash.services.secret_codec import SecretCodec, hash_for_logging

logger = logging.getLogger(__name__)

_PROVIDER = IntegrationProvider.GOOGLE_CALENDAR


class GoogleTokenService:
    """Hands out usable access tokens, refreshing them transparently.

    ``None`` means "integration not connected or currently unusable"; callers
    degrade gracefully (skip the sync) instead of failing the request.
    """

    REFRESH_WINDOW = timedelta(minutes=5)

    def __init__(
        self,
        store: IntegrationStore,
        oauth_client: GoogleOAuthClient,
        secret_codec: SecretCodec,
        *,
        scopes: tuple[str, ...] = (),
        refresh_window: timedelta = REFRESH_WINDOW,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._codec = secret_codec
        self._scopes = scopes
        self._refresh_window = refresh_window
        self._clock = clock
        self._refresh_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    async def get_valid_access_token(self, subject_id: str) -> str | None:
        """Return a plaintext access token for the subject, or ``None``."""
        record = self._store.get(user_id=subject_id, provider=_PROVIDER)
        if not self._is_usable(record):
            return None

        if self._needs_refresh(record):
            return await self._refresh(subject_id)

        return self._decrypt(record.access_token_encrypted, subject_id)

    async def get_credentials(self, subject_id: str) -> Credentials | None:
        """Wrap a valid access token for the Google API client library."""
        access_token = await self.get_valid_access_token(subject_id)
        if access_token is None:
            return None
        # No refresh token on purpose: refreshes go through this service so the
        # stored record stays current.
        return Credentials(token=access_token, scopes=list(self._scopes) or None)

    @staticmethod
    def _is_usable(record: IntegrationRecord | None) -> bool:
        return bool(record and record.connected and record.access_token_encrypted)

    def _needs_refresh(self, record: IntegrationRecord) -> bool:
        expires_at = record.expires_at
        if expires_at is None:
            return True
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return self._clock() >= expires_at - self._refresh_window

    def _lock_for(self, subject_id: str) -> asyncio.Lock:
        lock = self._refresh_locks.get(subject_id)
        if lock is None:
            lock = asyncio.Lock()
            self._refresh_locks[subject_id] = lock
        return lock

    async def _refresh(self, subject_id: str) -> str | None:
        subject_hash = hash_for_logging(subject_id)
        lock = self._lock_for(subject_id)
        async with lock:
            # Another request may have refreshed while this one waited.
            record = self._store.get(user_id=subject_id, provider=_PROVIDER)
            if not self._is_usable(record):
                return None
            if not self._needs_refresh(record):
                return self._decrypt(record.access_token_encrypted, subject_id)

            if not record.refresh_token_encrypted:
                logger.warning("No refresh token stored for subject %s", subject_hash)
                return None
            refresh_token = self._decrypt(record.refresh_token_encrypted, subject_id)
            if refresh_token is None:
                return None

            refreshed_at = self._clock()
            try:
                grant = await self._oauth.refresh_access_token(refresh_token)
            except ProviderError as exc:
                logger.warning(
                    "Token refresh failed for subject %s (status=%s): %s",
                    subject_hash,
                    exc.status_code,
                    exc.description or exc,
                )
                return None

            expires_at = refreshed_at + timedelta(seconds=grant.expires_in)
            self._store.update_tokens(
                user_id=subject_id,
                provider=_PROVIDER,
                access_token_encrypted=self._codec.encrypt(grant.access_token),
                expires_at=expires_at,
                refresh_token_encrypted=(
                    self._codec.encrypt(grant.refresh_token)
                    if grant.refresh_token
                    else None
                ),
            )
            logger.info("Refreshed Google access token for subject %s", subject_hash)
            return grant.access_token

    def _decrypt(self, envelope: str | None, subject_id: str) -> str | None:
        if not envelope:
            return None
        try:
            return self._codec.decrypt(envelope)
        except IntegrationError as exc:
            logger.error(
                "Stored Google token for subject %s could not be decrypted: %s",
                hash_for_logging(subject_id),
                type(exc).__name__,
            )
            return None


__all__ = ["GoogleTokenService"]
