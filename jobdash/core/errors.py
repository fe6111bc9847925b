"""
Error taxonomy for the integration credential lifecycle.

Cryptographic and state-verification failures are resolved to coarse outcome
codes before they reach the HTTP boundary; provider failures carry enough
detail for server-side logs but are surfaced to users generically.
"""

from __future__ import annotations


class IntegrationError(Exception):
    """Base class for every failure raised by the integration core."""


class ConfigurationError(IntegrationError):
    """Raised when a required secret or credential is not configured."""

    def __init__(self, message: str, *, missing: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.missing = missing


class AuthenticationError(IntegrationError):
    """Raised when an envelope fails authentication (tampering or wrong key)."""


class MalformedInputError(IntegrationError):
    """Raised when an envelope or token does not have the expected shape."""


class ProviderError(IntegrationError):
    """Raised when an upstream provider call fails or returns an unusable payload."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: int | None = None,
        description: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.description = description


class ChannelNotFoundError(ProviderError):
    """The messaging provider does not know the requested chat."""


class ChannelBlockedError(ProviderError):
    """The messaging provider refused delivery because the bot was blocked."""


class ChannelNotOwnedError(IntegrationError):
    """The caller tried to message a channel that is not bound to their account."""


__all__ = [
    "AuthenticationError",
    "ChannelBlockedError",
    "ChannelNotFoundError",
    "ChannelNotOwnedError",
    "ConfigurationError",
    "IntegrationError",
    "MalformedInputError",
    "ProviderError",
]
