"""Tests for the integration availability check script."""

from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json
from pathlib import Path

import pytest

from scripts import check_env

INTEGRATION_ENV_KEYS = [
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "GOOGLE_REDIRECT_URI",
    "ENCRYPTION_SECRET",
    "TELEGRAM_BOT_TOKEN",
    "OAUTH_STATE_TTL",
]

COMPLETE_ENV = {
    "GOOGLE_CLIENT_ID": "abc",
    "GOOGLE_CLIENT_SECRET": "secret",
    "GOOGLE_REDIRECT_URI": "https://example.com/api/auth/google/callback",
    "ENCRYPTION_SECRET": "encryption-secret",
    "TELEGRAM_BOT_TOKEN": "1:token",
}


def _write_env(env_path: Path, **values: str) -> None:
    contents = "\n".join(f"{key}={value}" for key, value in values.items())
    env_path.write_text(contents + "\n", encoding="utf-8")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Only the env file under test should provide integration values."""
    for key in INTEGRATION_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_missing_env_file_is_a_runtime_error(tmp_path: Path) -> None:
    exit_code = check_env.main(["--env-file", str(tmp_path / ".missing-env")])

    assert exit_code == check_env.EXIT_RUNTIME_ERROR


def test_fully_configured_env_reports_every_integration(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"
    _write_env(env_file, **COMPLETE_ENV)

    exit_code = check_env.main(["--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_OK
    out = capsys.readouterr().out
    assert "google_calendar: available" in out
    assert "telegram: available" in out


def test_disabled_integration_fails_and_names_missing_values(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"
    env = dict(COMPLETE_ENV)
    env.pop("ENCRYPTION_SECRET")
    _write_env(env_file, **env)

    exit_code = check_env.main(["--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_VALIDATION_ERROR
    captured = capsys.readouterr()
    assert "google_calendar: disabled (missing ENCRYPTION_SECRET)" in captured.out
    assert "telegram: available" in captured.out
    assert "google_calendar" in captured.err


def test_allow_partial_reports_json_and_succeeds(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"
    _write_env(env_file, GOOGLE_CLIENT_ID="abc")

    exit_code = check_env.main(
        ["--env-file", str(env_file), "--allow-partial", "--json"]
    )

    assert exit_code == check_env.EXIT_OK
    report = json.loads(capsys.readouterr().out)
    assert report["google_calendar"] == {
        "available": False,
        "missing": ["GOOGLE_CLIENT_SECRET", "ENCRYPTION_SECRET"],
    }
    assert report["telegram"] == {
        "available": False,
        "missing": ["TELEGRAM_BOT_TOKEN"],
    }


def test_malformed_value_is_a_validation_error(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    _write_env(env_file, **COMPLETE_ENV, OAUTH_STATE_TTL="fifteen")

    exit_code = check_env.main(["--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_VALIDATION_ERROR
