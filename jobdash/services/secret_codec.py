"""Authenticated symmetric encryption for integration secrets."""

from __future__ import annotations

import base64
import binascii
import hashlib
import os
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from jobdash.core.errors import (
    AuthenticationError,
    ConfigurationError,
    MalformedInputError,
)

IV_LENGTH = 16
AUTH_TAG_LENGTH = 16
LOG_DIGEST_LENGTH = 12
_SEPARATOR = ":"


class SecretCodec:
    """Encrypt and decrypt short strings with AES-256-GCM.

    Envelopes have the form ``iv:authTag:ciphertext`` where every component is
    standard base64, so each part can be re-encoded independently.
    """

    def __init__(self, *, secret: str | None) -> None:
        if not secret:
            raise ConfigurationError(
                "Encryption secret must be provided.", missing=("ENCRYPTION_SECRET",)
            )
        key = hashlib.sha256(secret.encode("utf-8")).digest()
        self._aesgcm = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a plaintext string and return the envelope."""
        iv = os.urandom(IV_LENGTH)
        sealed = self._aesgcm.encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, auth_tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]
        return _SEPARATOR.join(
            base64.b64encode(part).decode("ascii") for part in (iv, auth_tag, ciphertext)
        )

    def decrypt(self, envelope: str) -> str:
        """Decrypt an envelope produced by :meth:`encrypt`."""
        parts = envelope.split(_SEPARATOR)
        if len(parts) != 3:
            raise MalformedInputError("Envelope must contain exactly three components.")

        try:
            iv, auth_tag, ciphertext = (
                base64.b64decode(part.encode("ascii"), validate=True) for part in parts
            )
        except (binascii.Error, UnicodeEncodeError) as exc:
            raise MalformedInputError("Envelope components are not valid base64.") from exc

        if len(iv) != IV_LENGTH or len(auth_tag) != AUTH_TAG_LENGTH:
            raise MalformedInputError("Envelope IV or authentication tag has the wrong size.")

        try:
            plaintext = self._aesgcm.decrypt(iv, ciphertext + auth_tag, None)
        except InvalidTag as exc:
            raise AuthenticationError("Envelope failed authentication.") from exc

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedInputError("Decrypted payload is not UTF-8 text.") from exc


def hash_for_logging(value: str) -> str:
    """Return a short, deterministic, one-way digest safe to put in log lines."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:LOG_DIGEST_LENGTH]


def generate_secure_token(length: int = 32) -> str:
    """Return ``length`` random bytes as hex."""
    return secrets.token_hex(length)


__all__ = ["SecretCodec", "generate_secure_token", "hash_for_logging"]
