"""Configuration package."""

from paisegone.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
