"""Configuration package."""

from subtracker.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    NotificationDefaults,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "NotificationDefaults",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
