"""Configuration package."""

from tijarati.config.settings import (
    AppSettings,
    GeminiSettings,
    ReminderSettings,
    SecuritySettings,
    Settings,
    StoreSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GeminiSettings",
    "ReminderSettings",
    "SecuritySettings",
    "Settings",
    "StoreSettings",
    "get_settings",
    "validate_all_settings",
]
