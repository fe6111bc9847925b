"""Telegram Bot API client."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from jobdash.core.errors import (
    ChannelBlockedError,
    ChannelNotFoundError,
    ProviderError,
)

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"


class TelegramAPIError(ProviderError):
    """Raised when the Bot API rejects a request or cannot be reached."""


class TelegramBotClient:
    """Minimal async wrapper over the Bot API methods the service needs.

    Request URLs embed the bot token, so errors raised here only ever carry
    the exception type and the API's own description.
    """

    def __init__(
        self,
        bot_token: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ) -> None:
        if not bot_token:
            raise ValueError("Telegram client requires a bot token.")
        self._api_url = f"{TELEGRAM_API_BASE}/bot{bot_token}"
        self._transport = transport
        self._timeout = timeout

    async def send_message(
        self,
        chat_id: str,
        text: str,
        *,
        parse_mode: Optional[str] = "Markdown",
        disable_web_page_preview: bool = False,
    ) -> int:
        """Send a message and return its Telegram message id."""
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        if disable_web_page_preview:
            payload["disable_web_page_preview"] = True

        result = await self._call("sendMessage", json=payload)
        return int(result.get("message_id", 0))

    async def get_bot_username(self) -> Optional[str]:
        """Return the bot's username, or ``None`` when getMe fails."""
        try:
            result = await self._call("getMe")
        except TelegramAPIError as exc:
            logger.warning("Telegram getMe failed: %s", exc)
            return None
        return result.get("username")

    async def _call(self, method: str, *, json: dict[str, Any] | None = None) -> dict:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                if json is None:
                    response = await client.get(f"{self._api_url}/{method}")
                else:
                    response = await client.post(f"{self._api_url}/{method}", json=json)
        except httpx.HTTPError as exc:
            raise TelegramAPIError(
                f"Telegram {method} request failed: {type(exc).__name__}"
            ) from None

        try:
            body = response.json()
        except ValueError:
            raise TelegramAPIError(
                f"Telegram {method} returned a non-JSON body.",
                status_code=response.status_code,
            ) from None

        if not isinstance(body, dict) or not body.get("ok"):
            raise _classify_error(method, response.status_code, body)

        result = body.get("result")
        return result if isinstance(result, dict) else {}


def _classify_error(method: str, status_code: int, body: Any) -> ProviderError:
    body = body if isinstance(body, dict) else {}
    error_code = body.get("error_code") or status_code
    description = str(body.get("description") or "")
    message = f"Telegram {method} failed ({error_code}): {description or 'no description'}"
    kwargs = {
        "status_code": status_code,
        "error_code": error_code,
        "description": description,
    }
    if error_code == 400 and "chat not found" in description.lower():
        return ChannelNotFoundError(message, **kwargs)
    if error_code == 403:
        return ChannelBlockedError(message, **kwargs)
    return TelegramAPIError(message, **kwargs)


__all__ = ["TELEGRAM_API_BASE", "TelegramAPIError", "TelegramBotClient"]
