"""
Logging utilities for the integration service.

Provides a consistent logging format and keeps HTTP client request logs out of
the output, since request URLs for the Telegram Bot API embed the bot token.
"""

import logging
import sys

_QUIET_LOGGERS = ("httpx", "httpcore", "googleapiclient.discovery_cache")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["configure_logging"]
