"""
Configuration Management for Tijarati

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every tunable the host core relies on (database file, PIN rules,
reminder lead time, assistant model) can be read in one place and is
validated at startup.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """SQLite ledger store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TIJARATI_STORE_",
        extra="ignore"
    )

    db_path: str = Field(
        default="tijarati.db",
        description="Path to the SQLite database file (':memory:' for tests)"
    )
    busy_timeout_seconds: float = Field(
        default=5.0,
        ge=0.0,
        le=60.0,
        description="How long SQLite waits on a locked database before failing"
    )


class SecuritySettings(BaseSettings):
    """App lock and secret store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TIJARATI_SECURITY_",
        extra="ignore"
    )

    min_pin_length: int = Field(
        default=4,
        ge=4,
        le=12,
        description="Minimum number of digits in a PIN"
    )
    secrets_path: str = Field(
        default="tijarati_secrets.json",
        description="Path of the file-backed secret store"
    )

    # Secret store keys
    pin_hash_key: str = Field(
        default="tijarati_pin_hash",
        description="Secret store key holding the PIN digest"
    )
    biometric_flag_key: str = Field(
        default="tijarati_bio_enabled",
        description="Secret store key holding the biometric flag ('1' or '0')"
    )
    gemini_key_name: str = Field(
        default="tijarati_gemini_api_key",
        description="Secret store key holding a runtime Gemini API key"
    )


class ReminderSettings(BaseSettings):
    """Debt reminder scheduling configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TIJARATI_REMINDER_",
        extra="ignore"
    )

    min_lead_seconds: int = Field(
        default=5,
        ge=1,
        description="Reminders closer than this many seconds are rejected"
    )
    channel_id: str = Field(
        default="debts",
        description="Notification channel reminders are delivered on"
    )
    default_title: str = Field(
        default="Debt reminder",
        description="Title used when a request does not supply one"
    )


class GeminiSettings(BaseSettings):
    """Gemini assistant configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TIJARATI_GEMINI_",
        extra="ignore"
    )

    # Optional: the key can also be provided at runtime and kept in the secret store
    api_key: Optional[str] = Field(
        default=None,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Model temperature"
    )

    @field_validator('api_key')
    @classmethod
    def strip_blank_key(cls, v: Optional[str]) -> Optional[str]:
        """Treat a whitespace-only key as unset."""
        if v is None:
            return v
        return v.strip() or None

    @field_validator('model_name')
    @classmethod
    def default_blank_model(cls, v: str) -> str:
        """Fall back to the default model when the variable is set but empty."""
        return v.strip() or "gemini-2.5-flash"


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum log level for the structured log"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def store(self) -> StoreSettings:
        return StoreSettings()

    @property
    def security(self) -> SecuritySettings:
        return SecuritySettings()

    @property
    def reminders(self) -> ReminderSettings:
        return ReminderSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("store", "security", "reminders", "gemini", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
