"""
FastAPI dependency utilities for injecting configuration.
"""

from functools import lru_cache

from fastapi import Depends

from jobdash.core.config import (
    AppSettings,
    IntegrationAvailability,
    get_settings,
    resolve_integrations,
)


@lru_cache()
def _settings_singleton() -> AppSettings:
    """Ensure configuration is created once per process."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings_singleton()


@lru_cache()
def get_integration_availability() -> IntegrationAvailability:
    """Validated per-integration configuration, computed once per process."""
    return resolve_integrations(_settings_singleton())


SettingsDependency = Depends(get_app_settings)

__all__ = ["SettingsDependency", "get_app_settings", "get_integration_availability"]
