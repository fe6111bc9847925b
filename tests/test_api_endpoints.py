try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import httpx
import jwt
import pytest

from jobdash import dependencies
from jobdash.clients.google_auth import GoogleOAuthClient
from jobdash.clients.integration_store import SQLiteIntegrationStore
from jobdash.clients.telegram import TelegramBotClient
from jobdash.core.config import get_settings
from jobdash.main import app
from jobdash.models.integration import IntegrationProvider
from jobdash.services.google_oauth_flow import GoogleAuthorizationFlow
from jobdash.services.oauth_state import OAuthStateService
from jobdash.services.rate_limiter import InMemoryRateLimiter
from jobdash.services.secret_codec import SecretCodec
from jobdash.services.telegram_channel import TelegramChannelVerifier

pytestmark = pytest.mark.anyio("asyncio")

RETURN_URL = "https://app.example.com/settings/integrations"


def _session_token(subject: str, *, expires_in: timedelta = timedelta(hours=1)) -> str:
    settings = get_settings()
    return jwt.encode(
        {
            "sub": subject,
            "aud": settings.security.session_jwt_audience,
            "exp": datetime.now(timezone.utc) + expires_in,
        },
        settings.security.session_jwt_secret,
        algorithm="HS256",
    )


def _bearer(subject: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {_session_token(subject)}"}


class TokenEndpoint:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        return httpx.Response(
            200, json={"access_token": "AT1", "refresh_token": "RT1", "expires_in": 3600}
        )


class BotAPI:
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.blocked: set[str] = set()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/getMe"):
            return httpx.Response(200, json={"ok": True, "result": {"username": "JobBot"}})
        body = json.loads(request.content)
        if body["chat_id"] in self.blocked:
            return httpx.Response(
                403,
                json={"ok": False, "error_code": 403, "description": "Forbidden: bot was blocked"},
            )
        if body["chat_id"] == "404404":
            return httpx.Response(
                400,
                json={"ok": False, "error_code": 400, "description": "Bad Request: chat not found"},
            )
        self.sent.append(body)
        return httpx.Response(200, json={"ok": True, "result": {"message_id": 77}})


@pytest.fixture()
def services(tmp_path):
    availability = dependencies.get_integration_availability()
    cipher = SecretCodec(secret="api-test-secret")
    store = SQLiteIntegrationStore(str(tmp_path / "integrations.db"))
    token_endpoint = TokenEndpoint()
    bot_api = BotAPI()
    flow = GoogleAuthorizationFlow(
        oauth_client=GoogleOAuthClient(
            availability.google_calendar, transport=httpx.MockTransport(token_endpoint)
        ),
        state_service=OAuthStateService(cipher),
        store=store,
        secret_codec=cipher,
    )
    verifier = TelegramChannelVerifier(
        bot_client=TelegramBotClient("1:token", transport=httpx.MockTransport(bot_api)),
        store=store,
        rate_limiter=InMemoryRateLimiter(max_attempts=5),
    )

    app.dependency_overrides.update(
        {
            dependencies.get_integration_store: lambda: store,
            dependencies.get_google_authorization_flow: lambda: flow,
            dependencies.get_telegram_channel_verifier: lambda: verifier,
        }
    )

    yield {
        "cipher": cipher,
        "store": store,
        "flow": flow,
        "token_endpoint": token_endpoint,
        "bot_api": bot_api,
    }

    app.dependency_overrides.clear()


@pytest.fixture()
async def client():
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    ) as http_client:
        yield http_client


async def test_health(client):
    response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_authorize_requires_session(services, client):
    response = await client.get("/api/auth/google")

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


async def test_authorize_rejects_expired_or_forged_session(services, client):
    expired = _session_token("user-1", expires_in=timedelta(minutes=-1))
    forged = jwt.encode(
        {"sub": "user-1", "aud": "authenticated", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        "some-other-secret-0123456789abcdef",
        algorithm="HS256",
    )

    for token in (expired, forged):
        response = await client.get(
            "/api/auth/google", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401


async def test_authorize_returns_consent_url(services, client):
    response = await client.get("/api/auth/google", headers=_bearer("user-1"))

    assert response.status_code == 200
    url = response.json()["url"]
    assert url.startswith("https://accounts.google.com/o/oauth2/v2/auth?")
    assert parse_qs(urlparse(url).query)["state"]


async def test_authorize_unavailable_when_not_configured(services, client):
    app.dependency_overrides[dependencies.get_google_authorization_flow] = lambda: None

    response = await client.get("/api/auth/google", headers=_bearer("user-1"))

    assert response.status_code == 503
    assert "error" in response.json()


async def test_full_google_connection(services, client):
    start = await client.get("/api/auth/google", headers=_bearer("user-1"))
    state = parse_qs(urlparse(start.json()["url"]).query)["state"][0]

    response = await client.get(
        "/api/auth/google/callback",
        params={"code": "auth-code", "state": state},
        headers={"Cookie": f"access_token={_session_token('user-1')}"},
    )

    assert response.status_code == 307
    assert response.headers["location"] == f"{RETURN_URL}?google_connected=true"
    record = services["store"].get(
        user_id="user-1", provider=IntegrationProvider.GOOGLE_CALENDAR
    )
    assert record.connected is True
    assert services["cipher"].decrypt(record.access_token_encrypted) == "AT1"


async def test_callback_without_session_redirects_with_session_error(services, client):
    start = await client.get("/api/auth/google", headers=_bearer("user-1"))
    state = parse_qs(urlparse(start.json()["url"]).query)["state"][0]

    response = await client.get(
        "/api/auth/google/callback", params={"code": "auth-code", "state": state}
    )

    assert response.status_code == 307
    assert response.headers["location"] == f"{RETURN_URL}?error=google_auth_session"
    assert (
        services["store"].get(user_id="user-1", provider=IntegrationProvider.GOOGLE_CALENDAR)
        is None
    )


@pytest.mark.parametrize(
    ("params", "flag"),
    [
        ({"error": "access_denied"}, "google_auth_denied"),
        ({"code": "auth-code"}, "google_auth_invalid"),
        ({"code": "auth-code", "state": "tampered:state:value"}, "google_auth_expired"),
    ],
)
async def test_callback_failures_redirect_with_flag(services, client, params, flag):
    response = await client.get(
        "/api/auth/google/callback", params=params, headers=_bearer("user-1")
    )

    assert response.status_code == 307
    assert response.headers["location"] == f"{RETURN_URL}?error={flag}"
    assert services["token_endpoint"].calls == 0


async def test_callback_reports_missing_configuration(services, client):
    app.dependency_overrides[dependencies.get_google_authorization_flow] = lambda: None

    response = await client.get(
        "/api/auth/google/callback", params={"code": "c", "state": "s"}
    )

    assert response.status_code == 307
    assert response.headers["location"] == f"{RETURN_URL}?error=google_auth_config"


async def test_callback_unexpected_failure_redirects(services, client, monkeypatch):
    async def _explode(**kwargs):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(services["flow"], "complete", _explode)

    response = await client.get(
        "/api/auth/google/callback", params={"code": "c", "state": "s"}
    )

    assert response.status_code == 307
    assert response.headers["location"] == f"{RETURN_URL}?error=google_auth_failed"


async def test_telegram_verify_then_send_to_other_chat_is_forbidden(services, client):
    verify = await client.post(
        "/api/telegram/verify", json={"chatId": "123456789"}, headers=_bearer("user-1")
    )

    assert verify.status_code == 200
    assert verify.json() == {"success": True, "channelMetadata": {"botUsername": "JobBot"}}
    record = services["store"].get(user_id="user-1", provider=IntegrationProvider.TELEGRAM)
    assert record.connected is True
    assert record.settings["chatId"] == "123456789"

    send_own = await client.post(
        "/api/telegram/send",
        json={"chatId": "123456789", "message": "hello", "parseMode": "HTML"},
        headers=_bearer("user-1"),
    )
    assert send_own.status_code == 200
    assert send_own.json() == {"success": True, "messageId": 77}
    assert services["bot_api"].sent[-1]["parse_mode"] == "HTML"

    send_other = await client.post(
        "/api/telegram/send",
        json={"chatId": "999", "message": "hello"},
        headers=_bearer("user-1"),
    )
    assert send_other.status_code == 403
    assert "error" in send_other.json()
    assert [body["chat_id"] for body in services["bot_api"].sent] == [
        "123456789",
        "123456789",
    ]


async def test_telegram_verify_accepts_numeric_chat_id(services, client):
    response = await client.post(
        "/api/telegram/verify", json={"chatId": 123456789}, headers=_bearer("user-1")
    )

    assert response.status_code == 200


@pytest.mark.parametrize(
    ("chat_id", "status_code"),
    [
        ("abc", 400),
        ("404404", 400),
    ],
)
async def test_telegram_verify_failures(services, client, chat_id, status_code):
    response = await client.post(
        "/api/telegram/verify", json={"chatId": chat_id}, headers=_bearer("user-1")
    )

    assert response.status_code == status_code
    assert response.json()["error"]


async def test_telegram_verify_blocked_is_forbidden(services, client):
    services["bot_api"].blocked.add("555")

    response = await client.post(
        "/api/telegram/verify", json={"chatId": "555"}, headers=_bearer("user-1")
    )

    assert response.status_code == 403


async def test_telegram_verify_rate_limited(services, client):
    for _ in range(5):
        await client.post(
            "/api/telegram/verify", json={"chatId": "abc"}, headers=_bearer("user-1")
        )

    response = await client.post(
        "/api/telegram/verify", json={"chatId": "123456789"}, headers=_bearer("user-1")
    )

    assert response.status_code == 429
    assert response.json()["error"]


async def test_telegram_verify_requires_session(services, client):
    response = await client.post("/api/telegram/verify", json={"chatId": "123456789"})

    assert response.status_code == 401


async def test_telegram_verify_validation_error_does_not_echo_input(services, client):
    response = await client.post(
        "/api/telegram/verify", json={"chat": "secret-value"}, headers=_bearer("user-1")
    )

    assert response.status_code == 400
    body = response.json()
    assert body["fields"] == ["chatId"]
    assert "secret-value" not in response.text


async def test_telegram_unavailable(services, client):
    app.dependency_overrides[dependencies.get_telegram_channel_verifier] = lambda: None

    response = await client.post(
        "/api/telegram/verify", json={"chatId": "123456789"}, headers=_bearer("user-1")
    )

    assert response.status_code == 503


async def test_send_to_blocked_verified_chat(services, client):
    await client.post(
        "/api/telegram/verify", json={"chatId": "123456789"}, headers=_bearer("user-1")
    )
    services["bot_api"].blocked.add("123456789")

    response = await client.post(
        "/api/telegram/send",
        json={"chatId": "123456789", "message": "hello"},
        headers=_bearer("user-1"),
    )

    assert response.status_code == 403


async def test_list_update_and_disconnect_integrations(services, client):
    await client.post(
        "/api/telegram/verify", json={"chatId": "123456789"}, headers=_bearer("user-1")
    )

    listing = await client.get("/api/integrations", headers=_bearer("user-1"))
    assert listing.status_code == 200
    by_provider = {item["provider"]: item for item in listing.json()["integrations"]}
    assert by_provider["google_calendar"]["connected"] is False
    assert by_provider["telegram"]["connected"] is True
    assert by_provider["telegram"]["available"] is True

    update = await client.patch(
        "/api/integrations/telegram/settings",
        json={"notifications": {"interviews": False, "deadlines": True, "statusChanges": True}},
        headers=_bearer("user-1"),
    )
    assert update.status_code == 200
    assert update.json()["settings"]["chatId"] == "123456789"
    assert update.json()["settings"]["notifications"]["interviews"] is False

    hijack = await client.patch(
        "/api/integrations/telegram/settings",
        json={"chatId": "999"},
        headers=_bearer("user-1"),
    )
    assert hijack.status_code == 400

    unknown_key = await client.patch(
        "/api/integrations/telegram/settings",
        json={"webhook": "https://evil.example"},
        headers=_bearer("user-1"),
    )
    assert unknown_key.status_code == 400

    disconnect = await client.delete(
        "/api/integrations/telegram", headers=_bearer("user-1")
    )
    assert disconnect.status_code == 200
    assert disconnect.json()["connected"] is False

    send = await client.post(
        "/api/telegram/send",
        json={"chatId": "123456789", "message": "hello"},
        headers=_bearer("user-1"),
    )
    assert send.status_code == 403


async def test_settings_for_unknown_provider_or_missing_record(services, client):
    unknown = await client.patch(
        "/api/integrations/slack/settings", json={}, headers=_bearer("user-1")
    )
    missing = await client.patch(
        "/api/integrations/google_calendar/settings",
        json={"syncInterviews": False},
        headers=_bearer("user-1"),
    )

    assert unknown.status_code == 404
    assert missing.status_code == 404


INTERVIEW_BODY = {
    "company": "Acme",
    "role": "Backend Engineer",
    "interview_type": "technical",
    "starts_at": "2025-03-10T15:00:00",
}


class FailingCalendarSync:
    def __init__(self) -> None:
        self.calls = 0

    async def sync_interview(self, *, user_id, interview):
        self.calls += 1
        raise RuntimeError("calendar backend exploded")


async def test_unknown_time_zone_is_rejected_before_sync(services, client):
    sync = FailingCalendarSync()
    app.dependency_overrides[dependencies.get_calendar_sync_service] = lambda: sync

    response = await client.post(
        "/api/calendar/interviews",
        json={**INTERVIEW_BODY, "time_zone": "Not/AZone"},
        headers=_bearer("user-1"),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request payload."
    assert response.json()["fields"] == ["time_zone"]
    assert sync.calls == 0


async def test_deadline_with_unknown_time_zone_is_rejected(services, client):
    sync = FailingCalendarSync()
    app.dependency_overrides[dependencies.get_calendar_sync_service] = lambda: sync

    response = await client.post(
        "/api/calendar/deadlines",
        json={
            "company": "Acme",
            "role": "Backend Engineer",
            "deadline": "2025-03-31",
            "time_zone": "Mars/Olympus_Mons",
        },
        headers=_bearer("user-1"),
    )

    assert response.status_code == 400
    assert response.json()["fields"] == ["time_zone"]


async def test_unexpected_errors_return_json_error_body(services):
    sync = FailingCalendarSync()
    app.dependency_overrides[dependencies.get_calendar_sync_service] = lambda: sync

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://testserver",
    ) as http_client:
        response = await http_client.post(
            "/api/calendar/interviews",
            json={**INTERVIEW_BODY, "time_zone": "UTC"},
            headers=_bearer("user-1"),
        )

    assert sync.calls == 1
    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/json")
    assert response.json() == {"error": "Internal server error."}
