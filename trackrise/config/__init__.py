"""Configuration package."""

from trackrise.config.settings import (
    GeminiSettings,
    GoogleSheetsSettings,
    MindeeSettings,
    RuntimeSettings,
    Settings,
    StorageSettings,
    SyncSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "GeminiSettings",
    "GoogleSheetsSettings",
    "MindeeSettings",
    "RuntimeSettings",
    "Settings",
    "StorageSettings",
    "SyncSettings",
    "get_settings",
    "validate_all_settings",
]
