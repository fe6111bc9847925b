"""Report which integrations the service would start with.

Settings are loaded from an env file exactly as the service loads them, then
every integration is resolved once. Each integration prints as ``available``
or ``disabled`` with the variables it is missing. Any disabled integration is
an error unless ``--allow-partial`` is given, so deploy hooks can stop before
restarting a half-configured service.

Example usages::

    python -m scripts.check_env --env-file /opt/jobdash/.env

    # Machine-readable report; a missing Telegram token only warns.
    python -m scripts.check_env --env-file /opt/jobdash/.env --allow-partial --json
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from pydantic import ValidationError

from jobdash.core.config import IntegrationAvailability, load_settings, resolve_integrations

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_RUNTIME_ERROR = 5

INTEGRATIONS = ("google_calendar", "telegram")


def _build_report(availability: IntegrationAvailability) -> dict[str, dict]:
    report: dict[str, dict] = {}
    for name in INTEGRATIONS:
        problem = availability.problems.get(name)
        if problem is None:
            report[name] = {"available": True, "missing": []}
        else:
            report[name] = {"available": False, "missing": list(problem.missing)}
    return report


def _print_report(report: dict[str, dict], *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(report, indent=2, sort_keys=True))
        return
    for name, entry in report.items():
        if entry["available"]:
            print(f"{name}: available")
        else:
            print(f"{name}: disabled (missing {', '.join(entry['missing'])})")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Check which integrations the configured environment enables."
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        type=Path,
        help="Path to the environment file (default: .env in the repo root).",
    )
    parser.add_argument(
        "--allow-partial",
        action="store_true",
        help="Exit successfully even when an integration is disabled.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Print the report as JSON.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    if not env_file.exists():
        print(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    try:
        settings = load_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    report = _build_report(resolve_integrations(settings))
    _print_report(report, as_json=args.as_json)

    disabled = [name for name, entry in report.items() if not entry["available"]]
    if disabled and not args.allow_partial:
        print(
            f"Disabled integrations: {', '.join(disabled)}. "
            "Set the missing variables or pass --allow-partial.",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
