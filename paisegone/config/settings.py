"""
Configuration Management for PaiseGone

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every setting has a working default so the ledger runs locally with
no environment at all; only the Google Sheets backend needs real values.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Key-value persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORAGE_",
        extra="ignore"
    )

    backend: Literal["memory", "file", "google_sheets"] = Field(
        default="file",
        description="Which key-value backend holds the ledger"
    )
    data_dir: str = Field(
        default=".paisegone",
        description="Directory for the file backend"
    )

    # Namespace keys
    members_key: str = Field(default="members", min_length=1)
    expenses_key: str = Field(default="expenses", min_length=1)
    settings_key: str = Field(default="settings", min_length=1)

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    store_sheet_name: str = Field(
        default="LedgerStore",
        description="Name of the sheet holding the ledger namespaces"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


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

    # Money tolerances
    settlement_epsilon: Decimal = Field(
        default=Decimal("0.01"),
        gt=0,
        description="Balances within this amount of zero count as settled"
    )
    contribution_tolerance: Decimal = Field(
        default=Decimal("0.001"),
        gt=0,
        description="Allowed gap between sum of contributions and expense cost"
    )

    # Notices
    app_signature: str = Field(
        default="Mess Manager (PaiseGone v2.2)",
        description="Sign-off line on settlement notices"
    )

    # Audit
    persist_audit_events: bool = Field(
        default=False,
        description="Also write audit events to the storage backend"
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

    # Sub-settings are loaded lazily so a missing Google Sheets
    # configuration does not break the file or memory backends.

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries describing failures.
    Google Sheets is only checked when it is the selected backend.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    try:
        storage = settings.storage
        results["storage"] = True
    except Exception as e:
        results["storage"] = False
        results["storage_error"] = str(e)
        return results

    if storage.backend == "google_sheets":
        try:
            _ = settings.google_sheets
            results["google_sheets"] = True
        except Exception as e:
            results["google_sheets"] = False
            results["google_sheets_error"] = str(e)

    return results
