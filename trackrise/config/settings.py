"""
Configuration Management for TrackRise

Uses pydantic-settings for type-safe configuration from environment
variables and an optional ``.env`` file.

This is deployment configuration (where the database lives, API keys,
sync cadence). The user-facing preferences such as default currency and
auto-sync are the AppSettings record owned by the ledger store.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Local ledger storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TRACKRISE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    database_url: str = Field(
        default="sqlite:///data/trackrise.db",
        description="SQLAlchemy URL of the on-device ledger database"
    )
    receipts_dir: Path = Field(
        default=Path("data/receipts"),
        description="Where prepared receipt images are kept"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets remote store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the spreadsheet acting as the remote store"
    )
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the worksheet holding synced transactions"
    )

    @field_validator("credentials_path")
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (it might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before syncing."
            )
        return v


class MindeeSettings(BaseSettings):
    """Mindee OCR service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MINDEE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Mindee API key"
    )


class GeminiSettings(BaseSettings):
    """Gemini configuration, used for voice transcription."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    transcription_prompt: str = Field(
        default=(
            "Transcribe this audio recording verbatim. "
            "Return only the spoken words as plain text, with numbers as digits."
        ),
    )


class SyncSettings(BaseSettings):
    """Background synchronization configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    interval_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Seconds between scheduled sync passes"
    )
    max_concurrent_pushes: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Upper bound on in-flight remote upserts during a pass"
    )
    probe_host: str = Field(
        default="1.1.1.1",
        description="Host used to check internet reachability"
    )
    probe_port: int = Field(default=53, ge=1, le=65535)
    probe_timeout_seconds: float = Field(default=3.0, gt=0)


class RuntimeSettings(BaseSettings):
    """
    Main runtime settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode (SQL echo, debug logging)"
    )
    log_level: str = Field(default="INFO")


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings. Sub-settings load lazily so that a
    partially configured installation (e.g. no remote store yet) still
    runs offline.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def mindee(self) -> MindeeSettings:
        return MindeeSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def sync(self) -> SyncSettings:
        return SyncSettings()

    @property
    def runtime(self) -> RuntimeSettings:
        return RuntimeSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, Optional[str]]:
    """
    Validate every settings group.

    Returns ``{group_name: None}`` for valid groups and
    ``{group_name: error_message}`` for invalid ones. Useful for startup
    checks and for deciding which adapters can be wired.
    """
    settings = get_settings()
    results: dict[str, Optional[str]] = {}

    for name in ("storage", "google_sheets", "mindee", "gemini", "sync", "runtime"):
        try:
            getattr(settings, name)
            results[name] = None
        except Exception as e:
            results[name] = str(e)

    return results
