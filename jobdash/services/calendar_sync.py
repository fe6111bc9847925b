"""Mirror interviews and application deadlines into Google Calendar."""

from __future__ import annotations

from datetime import datetime, time, timedelta
from typing import Any, Optional
from zoneinfo import ZoneInfo

from jobdash.clients.google_calendar import GoogleCalendarClient
from jobdash.clients.integration_store import IntegrationStore
from jobdash.models.integration import IntegrationProvider
from jobdash.schemas.integrations import DeadlineEvent, InterviewEvent


def _localize(value: datetime, zone: ZoneInfo) -> datetime:
    return value.replace(tzinfo=zone) if value.tzinfo is None else value


def build_interview_event(interview: InterviewEvent) -> dict[str, Any]:
    zone = ZoneInfo(interview.time_zone)
    start = _localize(interview.starts_at, zone)
    end = start + timedelta(minutes=interview.duration_minutes)

    description = (
        f"Interview for {interview.role} at {interview.company}\n\n"
        f"Type: {interview.interview_type}"
    )
    if interview.interviewer_names:
        description += f"\nInterviewers: {', '.join(interview.interviewer_names)}"
    if interview.notes:
        description += f"\n\nNotes:\n{interview.notes}"
    if interview.meeting_link:
        description += f"\n\nMeeting Link: {interview.meeting_link}"

    event: dict[str, Any] = {
        "summary": f"{interview.interview_type.capitalize()} Interview - {interview.company}",
        "description": description,
        "start": {"dateTime": start.isoformat(), "timeZone": interview.time_zone},
        "end": {"dateTime": end.isoformat(), "timeZone": interview.time_zone},
        "reminders": {
            "useDefault": False,
            "overrides": [
                {"method": "popup", "minutes": 30},
                {"method": "email", "minutes": 1440},
            ],
        },
    }
    location = interview.meeting_link or interview.location
    if location:
        event["location"] = location
    return event


def build_deadline_event(deadline: DeadlineEvent) -> dict[str, Any]:
    """One-hour block closing at 23:59 on the deadline day."""
    zone = ZoneInfo(deadline.time_zone)
    start = datetime.combine(deadline.deadline, time(23, 0), tzinfo=zone)
    end = datetime.combine(deadline.deadline, time(23, 59), tzinfo=zone)

    description = f"Application deadline for {deadline.role} at {deadline.company}"
    if deadline.notes:
        description += f"\n\nNotes:\n{deadline.notes}"

    return {
        "summary": f"Deadline: {deadline.company} - {deadline.role}",
        "description": description,
        "start": {"dateTime": start.isoformat(), "timeZone": deadline.time_zone},
        "end": {"dateTime": end.isoformat(), "timeZone": deadline.time_zone},
        "reminders": {
            "useDefault": False,
            "overrides": [
                {"method": "popup", "minutes": 60},
                {"method": "email", "minutes": 1440},
            ],
        },
    }


class CalendarSyncService:
    """Creates calendar events when the subject enabled the matching toggle."""

    def __init__(self, calendar_client: GoogleCalendarClient, store: IntegrationStore) -> None:
        self._calendar = calendar_client
        self._store = store

    async def sync_interview(
        self, *, user_id: str, interview: InterviewEvent
    ) -> Optional[dict]:
        settings = self._calendar_settings(user_id)
        if settings is None or not settings.sync_interviews:
            return None
        return await self._calendar.create_event(
            user_id=user_id, event=build_interview_event(interview)
        )

    async def sync_deadline(
        self, *, user_id: str, deadline: DeadlineEvent
    ) -> Optional[dict]:
        settings = self._calendar_settings(user_id)
        if settings is None or not settings.sync_deadlines:
            return None
        return await self._calendar.create_event(
            user_id=user_id, event=build_deadline_event(deadline)
        )

    def _calendar_settings(self, user_id: str):
        record = self._store.get(
            user_id=user_id, provider=IntegrationProvider.GOOGLE_CALENDAR
        )
        if record is None or not record.connected:
            return None
        return record.calendar_settings()


__all__ = [
    "CalendarSyncService",
    "build_deadline_event",
    "build_interview_event",
]
