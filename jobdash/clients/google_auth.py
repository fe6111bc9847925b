"""
Google OAuth utilities.

These helpers build the consent URL and talk to Google's token endpoint for
the authorization-code and refresh-token grants.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx

from fastapi import status

from jobdash.core.config import GoogleCalendarConfig
from jobdash.core.errors import ProviderError

DEFAULT_EXPIRES_IN = 3600


class OAuthTokenExchangeError(ProviderError):
    """Raised when the token endpoint fails or returns an incomplete payload."""


@dataclass(frozen=True)
class OAuthTokenGrant:
    """Tokens returned by a successful grant. Holds plaintext; never persist as-is."""

    access_token: str
    refresh_token: Optional[str]
    expires_in: int


class GoogleOAuthClient:
    """Build Google authorization URLs and exchange authorization codes."""

    AUTH_BASE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"

    def __init__(
        self,
        config: GoogleCalendarConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._config = config
        self._transport = transport
        self._timeout = timeout

    def build_authorization_url(self, state: str) -> str:
        """Construct the Google OAuth consent URL."""
        params = {
            "client_id": self._config.client_id,
            "redirect_uri": self._config.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self._config.scopes),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{self.AUTH_BASE_URL}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> OAuthTokenGrant:
        """Exchange an authorization code for tokens."""
        payload = {
            "code": code,
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
            "redirect_uri": self._config.redirect_uri,
            "grant_type": "authorization_code",
        }
        token_payload = await self._post_token_request(payload)
        return self._to_grant(token_payload)

    async def refresh_access_token(self, refresh_token: str) -> OAuthTokenGrant:
        """Obtain a new access token using a stored refresh token."""
        payload = {
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        token_payload = await self._post_token_request(payload)
        return self._to_grant(token_payload)

    async def _post_token_request(self, payload: dict[str, str]) -> dict:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(self.TOKEN_URL, data=payload)
        except httpx.HTTPError as exc:
            raise OAuthTokenExchangeError(
                f"Token endpoint unreachable: {type(exc).__name__}"
            ) from exc

        if not status.HTTP_200_OK <= response.status_code < 300:
            raise OAuthTokenExchangeError(
                "Token endpoint returned an error.",
                status_code=response.status_code,
                description=response.text[:500],
            )

        try:
            token_payload = response.json()
        except ValueError as exc:
            raise OAuthTokenExchangeError(
                "Token endpoint returned a non-JSON body.",
                status_code=response.status_code,
            ) from exc
        if not isinstance(token_payload, dict):
            raise OAuthTokenExchangeError("Token endpoint returned an unexpected body.")
        return token_payload

    @staticmethod
    def _to_grant(token_payload: dict) -> OAuthTokenGrant:
        access_token = token_payload.get("access_token")
        if not access_token:
            raise OAuthTokenExchangeError("Token payload is missing access_token.")
        try:
            expires_in = int(token_payload.get("expires_in") or DEFAULT_EXPIRES_IN)
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN
        return OAuthTokenGrant(
            access_token=access_token,
            refresh_token=token_payload.get("refresh_token") or None,
            expires_in=expires_in,
        )


__all__ = [
    "GoogleOAuthClient",
    "OAuthTokenExchangeError",
    "OAuthTokenGrant",
]
