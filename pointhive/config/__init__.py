"""Configuration package for runtime settings and startup validation."""

from .settings import (
    DEFAULT_ISSUER_ACCOUNT_ID,
    AppSettings,
    SettingsLoadError,
    config_load_database_url,
    config_load_settings,
)

__all__ = [
    "DEFAULT_ISSUER_ACCOUNT_ID",
    "AppSettings",
    "SettingsLoadError",
    "config_load_settings",
    "config_load_database_url",
]
