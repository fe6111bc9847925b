"""
FastAPI routes for the job dashboard integrations.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError

from jobdash.core.config import AppSettings, IntegrationAvailability
from jobdash.core.errors import (
    ChannelBlockedError,
    ChannelNotFoundError,
    ChannelNotOwnedError,
    ProviderError,
)
from jobdash.dependencies import (
    get_app_settings,
    get_calendar_sync_service,
    get_current_subject,
    get_google_authorization_flow,
    get_integration_availability,
    get_integration_store,
    get_telegram_channel_verifier,
    get_telegram_notification_service,
    require_subject,
)
from jobdash.models.integration import SETTINGS_SCHEMAS, IntegrationProvider
from jobdash.schemas import (
    AuthorizationUrlResponse,
    DeadlineEvent,
    InterviewEvent,
    StatusChange,
    TelegramSendRequest,
    TelegramVerifyRequest,
)
from jobdash.services.google_oauth_flow import CallbackOutcome, build_outcome_redirect
from jobdash.services.secret_codec import hash_for_logging
from jobdash.services.telegram_channel import VerificationFailure

router = APIRouter()
logger = logging.getLogger(__name__)


_VERIFY_FAILURES: dict[VerificationFailure, tuple[HTTPStatus, str]] = {
    VerificationFailure.RATE_LIMITED: (
        HTTPStatus.TOO_MANY_REQUESTS,
        "Too many verification attempts. Please try again later.",
    ),
    VerificationFailure.INVALID_FORMAT: (
        HTTPStatus.BAD_REQUEST,
        "Invalid chat ID format. Chat ID should be a number.",
    ),
    VerificationFailure.TARGET_NOT_FOUND: (
        HTTPStatus.BAD_REQUEST,
        "Chat not found. Please start a conversation with the bot first by "
        "sending /start, then try again.",
    ),
    VerificationFailure.BLOCKED: (
        HTTPStatus.FORBIDDEN,
        "The bot is blocked. Please unblock the bot and try again.",
    ),
    VerificationFailure.SEND_FAILED: (
        HTTPStatus.BAD_REQUEST,
        "Could not deliver a verification message to this chat.",
    ),
}


def _unavailable(feature: str) -> HTTPException:
    return HTTPException(
        status_code=HTTPStatus.SERVICE_UNAVAILABLE,
        detail=f"{feature} integration is not available.",
    )


def _parse_provider(provider: str) -> IntegrationProvider:
    try:
        return IntegrationProvider(provider)
    except ValueError as exc:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND, detail="Unknown integration provider."
        ) from exc


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get(
    "/auth/google",
    status_code=HTTPStatus.OK,
    response_model=AuthorizationUrlResponse,
)
async def start_google_authorization(
    subject_id: Annotated[str, Depends(require_subject)],
    flow: Annotated[Any, Depends(get_google_authorization_flow)],
) -> AuthorizationUrlResponse:
    """Return the Google consent URL carrying a fresh state token."""
    if flow is None:
        raise _unavailable("Google Calendar")
    return AuthorizationUrlResponse(url=flow.initiate(subject_id))


@router.get("/auth/google/callback")
async def handle_google_callback(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    session_subject_id: Annotated[Optional[str], Depends(get_current_subject)],
    flow: Annotated[Any, Depends(get_google_authorization_flow)],
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
) -> RedirectResponse:
    """Finish the authorization and bounce the browser back to the UI."""
    if flow is None:
        outcome = CallbackOutcome.CONFIG
    else:
        try:
            outcome = await flow.complete(
                session_subject_id=session_subject_id,
                code=code,
                state=state,
                error=error,
            )
        except Exception:  # pylint: disable=broad-except
            logger.exception("Unexpected failure handling Google callback")
            outcome = CallbackOutcome.FAILED

    return RedirectResponse(
        url=build_outcome_redirect(settings.integrations_return_url, outcome),
        status_code=HTTPStatus.TEMPORARY_REDIRECT,
    )


@router.post("/telegram/verify", status_code=HTTPStatus.OK)
async def verify_telegram_chat(
    payload: TelegramVerifyRequest,
    subject_id: Annotated[str, Depends(require_subject)],
    verifier: Annotated[Any, Depends(get_telegram_channel_verifier)],
) -> dict:
    """Bind a Telegram chat after the bot has delivered a message to it."""
    if verifier is None:
        raise _unavailable("Telegram")

    result = await verifier.verify_and_connect(subject_id, payload.chat_id)
    if not result.success:
        status_code, message = _VERIFY_FAILURES[result.failure]
        raise HTTPException(status_code=status_code, detail=message)
    return {"success": True, "channelMetadata": result.channel_metadata}


@router.post("/telegram/send", status_code=HTTPStatus.OK)
async def send_telegram_message(
    payload: TelegramSendRequest,
    subject_id: Annotated[str, Depends(require_subject)],
    verifier: Annotated[Any, Depends(get_telegram_channel_verifier)],
) -> dict:
    """Send a message to the caller's own verified chat."""
    if verifier is None:
        raise _unavailable("Telegram")

    try:
        message_id = await verifier.send_to_owned_channel(
            subject_id,
            payload.chat_id,
            payload.message,
            parse_mode=payload.parse_mode,
        )
    except ChannelNotOwnedError as exc:
        raise HTTPException(status_code=HTTPStatus.FORBIDDEN, detail=str(exc)) from exc
    except ChannelBlockedError as exc:
        raise HTTPException(
            status_code=HTTPStatus.FORBIDDEN,
            detail="The bot is blocked. Please unblock the bot and try again.",
        ) from exc
    except ChannelNotFoundError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Chat not found. Please start a conversation with the bot first.",
        ) from exc
    except ProviderError as exc:
        logger.warning(
            "Telegram send failed for subject %s: %s", hash_for_logging(subject_id), exc
        )
        status_code = (
            HTTPStatus.BAD_REQUEST
            if exc.status_code is not None
            else HTTPStatus.INTERNAL_SERVER_ERROR
        )
        raise HTTPException(
            status_code=status_code, detail="Failed to send message."
        ) from exc

    return {"success": True, "messageId": message_id}


@router.get("/integrations", status_code=HTTPStatus.OK)
async def list_integrations(
    subject_id: Annotated[str, Depends(require_subject)],
    store: Annotated[Any, Depends(get_integration_store)],
    availability: Annotated[
        IntegrationAvailability, Depends(get_integration_availability)
    ],
) -> dict:
    """Connection status per provider, without any token material."""
    records = {
        record.provider: record.public_view()
        for record in store.list_for_user(user_id=subject_id)
    }
    available = {
        IntegrationProvider.GOOGLE_CALENDAR: availability.google_calendar is not None,
        IntegrationProvider.TELEGRAM: availability.telegram is not None,
    }
    integrations = []
    for provider in IntegrationProvider:
        view = records.get(provider) or {
            "provider": provider.value,
            "connected": False,
            "expiresAt": None,
            "settings": SETTINGS_SCHEMAS[provider]().model_dump(by_alias=True),
            "updatedAt": None,
        }
        integrations.append({**view, "available": available[provider]})
    return {"integrations": integrations}


@router.patch("/integrations/{provider}/settings", status_code=HTTPStatus.OK)
async def update_integration_settings(
    provider: str,
    subject_id: Annotated[str, Depends(require_subject)],
    store: Annotated[Any, Depends(get_integration_store)],
    settings_payload: Annotated[dict[str, Any], Body()],
) -> dict:
    """Replace the provider settings after validating them against its schema."""
    integration = _parse_provider(provider)
    record = store.get(user_id=subject_id, provider=integration)
    if record is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND, detail="Integration is not connected."
        )

    schema = SETTINGS_SCHEMAS[integration]
    try:
        validated = schema.model_validate(settings_payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="Invalid integration settings."
        ) from exc

    new_settings = validated.model_dump(by_alias=True)
    if integration is IntegrationProvider.TELEGRAM:
        current_chat_id = record.telegram_settings().chat_id
        if "chatId" in settings_payload and settings_payload["chatId"] != current_chat_id:
            raise HTTPException(
                status_code=HTTPStatus.BAD_REQUEST,
                detail="Chat ID can only be changed through verification.",
            )
        new_settings["chatId"] = current_chat_id

    updated = store.update_settings(
        user_id=subject_id, provider=integration, settings=new_settings
    )
    return updated.public_view()


@router.delete("/integrations/{provider}", status_code=HTTPStatus.OK)
async def disconnect_integration(
    provider: str,
    subject_id: Annotated[str, Depends(require_subject)],
    store: Annotated[Any, Depends(get_integration_store)],
) -> dict:
    """Mark the integration disconnected and drop its credentials."""
    integration = _parse_provider(provider)
    record = store.disconnect(user_id=subject_id, provider=integration)
    if record is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND, detail="Integration is not connected."
        )
    logger.info(
        "Disconnected %s for subject %s", integration.value, hash_for_logging(subject_id)
    )
    return record.public_view()


@router.post("/calendar/interviews", status_code=HTTPStatus.OK)
async def sync_interview_to_calendar(
    interview: InterviewEvent,
    subject_id: Annotated[str, Depends(require_subject)],
    sync_service: Annotated[Any, Depends(get_calendar_sync_service)],
) -> dict:
    if sync_service is None:
        raise _unavailable("Google Calendar")
    event = await sync_service.sync_interview(user_id=subject_id, interview=interview)
    return _sync_result(event)


@router.post("/calendar/deadlines", status_code=HTTPStatus.OK)
async def sync_deadline_to_calendar(
    deadline: DeadlineEvent,
    subject_id: Annotated[str, Depends(require_subject)],
    sync_service: Annotated[Any, Depends(get_calendar_sync_service)],
) -> dict:
    if sync_service is None:
        raise _unavailable("Google Calendar")
    event = await sync_service.sync_deadline(user_id=subject_id, deadline=deadline)
    return _sync_result(event)


def _sync_result(event: Optional[dict]) -> dict:
    if not event:
        return {"synced": False, "eventId": None, "htmlLink": None}
    return {"synced": True, "eventId": event.get("id"), "htmlLink": event.get("htmlLink")}


@router.post("/notifications/interview", status_code=HTTPStatus.OK)
async def notify_interview(
    interview: InterviewEvent,
    subject_id: Annotated[str, Depends(require_subject)],
    notifier: Annotated[Any, Depends(get_telegram_notification_service)],
) -> dict:
    if notifier is None:
        raise _unavailable("Telegram")
    sent = await notifier.send_interview_reminder(user_id=subject_id, interview=interview)
    return {"sent": sent}


@router.post("/notifications/deadline", status_code=HTTPStatus.OK)
async def notify_deadline(
    deadline: DeadlineEvent,
    subject_id: Annotated[str, Depends(require_subject)],
    notifier: Annotated[Any, Depends(get_telegram_notification_service)],
    days_remaining: Optional[int] = Query(default=None, ge=0, alias="daysRemaining"),
) -> dict:
    if notifier is None:
        raise _unavailable("Telegram")
    sent = await notifier.send_deadline_reminder(
        user_id=subject_id, deadline=deadline, days_remaining=days_remaining
    )
    return {"sent": sent}


@router.post("/notifications/status", status_code=HTTPStatus.OK)
async def notify_status_change(
    change: StatusChange,
    subject_id: Annotated[str, Depends(require_subject)],
    notifier: Annotated[Any, Depends(get_telegram_notification_service)],
) -> dict:
    if notifier is None:
        raise _unavailable("Telegram")
    sent = await notifier.send_status_change(user_id=subject_id, change=change)
    return {"sent": sent}


def error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    """JSON error body shared by the exception handlers."""
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


__all__ = ["error_response", "router"]
