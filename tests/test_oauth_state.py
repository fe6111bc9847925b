try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest

from jobdash.services.oauth_state import OAuthStateService
from jobdash.services.secret_codec import SecretCodec

ISSUED_AT = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def codec() -> SecretCodec:
    return SecretCodec(secret="state-secret")


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(ISSUED_AT)


@pytest.fixture()
def state_service(codec: SecretCodec, clock: FakeClock) -> OAuthStateService:
    return OAuthStateService(codec, clock=clock)


def test_state_roundtrip(state_service: OAuthStateService) -> None:
    token = state_service.issue("user-1")

    claims = state_service.verify(token)

    assert claims is not None
    assert claims.subject_id == "user-1"
    assert claims.issued_at == ISSUED_AT


def test_state_does_not_expose_subject(state_service: OAuthStateService) -> None:
    token = state_service.issue("user-visible-id")

    assert "user-visible-id" not in token


@pytest.mark.parametrize(
    ("elapsed", "valid"),
    [
        (timedelta(minutes=14, seconds=59), True),
        (timedelta(minutes=15), True),
        (timedelta(minutes=15, seconds=1), False),
        (timedelta(minutes=20), False),
    ],
)
def test_state_expires_after_fifteen_minutes(
    state_service: OAuthStateService, clock: FakeClock, elapsed: timedelta, valid: bool
) -> None:
    token = state_service.issue("user-1")
    clock.now = ISSUED_AT + elapsed

    assert (state_service.verify(token) is not None) is valid


def test_state_issued_in_the_future_is_rejected(
    state_service: OAuthStateService, clock: FakeClock
) -> None:
    clock.now = ISSUED_AT + timedelta(minutes=5)
    token = state_service.issue("user-1")
    clock.now = ISSUED_AT

    assert state_service.verify(token) is None


def test_custom_ttl(codec: SecretCodec, clock: FakeClock) -> None:
    service = OAuthStateService(codec, ttl=timedelta(minutes=1), clock=clock)
    token = service.issue("user-1")
    clock.now = ISSUED_AT + timedelta(minutes=2)

    assert service.verify(token) is None


def test_forged_plain_payload_is_rejected(state_service: OAuthStateService) -> None:
    forged = base64.b64encode(
        json.dumps(
            {
                "subject_id": "victim",
                "issued_at": int(ISSUED_AT.timestamp() * 1000),
                "nonce": "00" * 16,
            }
        ).encode()
    ).decode()

    assert state_service.verify(forged) is None


def test_token_from_another_secret_is_rejected(clock: FakeClock) -> None:
    issuer = OAuthStateService(SecretCodec(secret="other-secret"), clock=clock)
    verifier = OAuthStateService(SecretCodec(secret="state-secret"), clock=clock)

    assert verifier.verify(issuer.issue("user-1")) is None


@pytest.mark.parametrize(
    "payload",
    [
        "not json",
        json.dumps(["list"]),
        json.dumps({"issued_at": 1, "nonce": "n"}),
        json.dumps({"subject_id": "u", "nonce": "n"}),
        json.dumps({"subject_id": "u", "issued_at": "yesterday", "nonce": "n"}),
        json.dumps({"subject_id": "u", "issued_at": True, "nonce": "n"}),
        json.dumps({"subject_id": "u", "issued_at": 10**20, "nonce": "n"}),
        json.dumps({"subject_id": "", "issued_at": 1, "nonce": "n"}),
    ],
)
def test_encrypted_but_malformed_payloads_are_rejected(
    codec: SecretCodec, state_service: OAuthStateService, payload: str
) -> None:
    assert state_service.verify(codec.encrypt(payload)) is None


def test_garbage_state_is_rejected(state_service: OAuthStateService) -> None:
    assert state_service.verify("") is None
    assert state_service.verify("a:b:c") is None
