"""Schemas related to OAuth flows."""

from __future__ import annotations

from pydantic import BaseModel, Field


class AuthorizationUrlResponse(BaseModel):
    """Consent URL returned when starting the Google authorization flow."""

    url: str = Field(..., description="Google consent URL carrying the encrypted state.")


__all__ = ["AuthorizationUrlResponse"]
