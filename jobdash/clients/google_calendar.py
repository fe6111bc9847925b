"""Google Calendar client wrapper."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional, TYPE_CHECKING, TypeVar

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError


if TYPE_CHECKING:  # pragma: no cover - type hints only
    from google.oauth2.credentials import Credentials

    from jobdash.services.google_tokens import GoogleTokenService

logger = logging.getLogger(__name__)

T = TypeVar("T")

PRIMARY_CALENDAR = "primary"


class GoogleCalendarClient:
    """Event CRUD on the subject's primary calendar.

    Every method degrades to ``None`` / ``False`` / ``[]`` when the subject has
    no usable token or the API call fails, so calendar sync never breaks the
    calling feature.
    """

    def __init__(self, token_service: "GoogleTokenService") -> None:
        self._token_service = token_service

    async def create_event(self, *, user_id: str, event: dict) -> Optional[dict]:
        """Insert an event and return the created resource."""
        return await self._run(
            user_id,
            "create",
            lambda service: service.events()
            .insert(calendarId=PRIMARY_CALENDAR, body=event, conferenceDataVersion=1)
            .execute(),
        )

    async def update_event(
        self, *, user_id: str, event_id: str, event: dict
    ) -> Optional[dict]:
        """Patch an existing event with the given fields."""
        return await self._run(
            user_id,
            "update",
            lambda service: service.events()
            .patch(calendarId=PRIMARY_CALENDAR, eventId=event_id, body=event)
            .execute(),
        )

    async def get_event(self, *, user_id: str, event_id: str) -> Optional[dict]:
        return await self._run(
            user_id,
            "get",
            lambda service: service.events()
            .get(calendarId=PRIMARY_CALENDAR, eventId=event_id)
            .execute(),
        )

    async def delete_event(self, *, user_id: str, event_id: str) -> bool:
        """Delete an event; an event that is already gone counts as deleted."""
        credentials = await self._token_service.get_credentials(user_id)
        if credentials is None:
            return False

        def _execute_delete() -> bool:
            service = self._build_service(credentials)
            try:
                service.events().delete(
                    calendarId=PRIMARY_CALENDAR, eventId=event_id
                ).execute()
            except HttpError as exc:
                if exc.resp.status in (404, 410):
                    return True
                raise
            return True

        try:
            return await asyncio.to_thread(_execute_delete)
        except HttpError as exc:
            logger.warning(
                "Calendar delete failed: HTTP %s",
                exc.resp.status,
            )
            return False

    async def list_events(
        self, *, user_id: str, time_min: str, time_max: str
    ) -> list[dict]:
        """List single events between two RFC3339 timestamps, ordered by start."""
        response = await self._run(
            user_id,
            "list",
            lambda service: service.events()
            .list(
                calendarId=PRIMARY_CALENDAR,
                timeMin=time_min,
                timeMax=time_max,
                singleEvents=True,
                orderBy="startTime",
            )
            .execute(),
        )
        if not response:
            return []
        return list(response.get("items", []))

    @staticmethod
    def _build_service(credentials: "Credentials") -> Any:
        return build("calendar", "v3", credentials=credentials, cache_discovery=False)

    async def _run(
        self, user_id: str, action: str, call: Callable[[Any], T]
    ) -> Optional[T]:
        credentials = await self._token_service.get_credentials(user_id)
        if credentials is None:
            logger.info(
                "Skipping calendar %s: no valid Google token", action
            )
            return None

        def _execute() -> T:
            return call(self._build_service(credentials))

        try:
            return await asyncio.to_thread(_execute)
        except HttpError as exc:
            logger.warning(
                "Calendar %s failed: HTTP %s",
                action,
                exc.resp.status,
            )
            return None


__all__ = ["GoogleCalendarClient"]
