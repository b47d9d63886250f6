"""
Configuration Management for SplitLedger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Ledger policy (tolerance, activity window, settlement bounding) lives next to
backend configuration so every tunable is visible in one place and validated
at startup.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Reconciliation engine policy."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    tolerance: Decimal = Field(
        default=Decimal("0.01"),
        gt=0,
        description="Allowance for rounding when comparing monetary sums"
    )
    activity_scan_window: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="How many of the most recent expenses the activity feed scans"
    )
    activity_limit: int = Field(
        default=20,
        ge=1,
        le=500,
        description="Maximum number of activity items returned"
    )
    enforce_group_settlement_bound: bool = Field(
        default=False,
        description=(
            "Bound grouped settlements by the outstanding group balance "
            "between the two parties (ungrouped settlements are always bounded)"
        )
    )
    trace_balances: bool = Field(
        default=False,
        description="Attach per-record adjustment traces to balance events"
    )
    default_category: str = Field(
        default="Other",
        min_length=1,
        description="Category stored when an expense has none"
    )
    unknown_name_placeholder: str = Field(
        default="Unknown",
        description="Display name used when a participant cannot be resolved"
    )
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Record store backend"
    )

    @field_validator('activity_limit')
    @classmethod
    def validate_activity_limit(cls, v: int, info) -> int:
        """The feed cannot return more than it scans."""
        window = info.data.get('activity_scan_window')
        if window is not None and v > window:
            raise ValueError("activity_limit cannot exceed activity_scan_window")
        return v


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
    expenses_sheet_name: str = Field(
        default="Expenses",
        description="Name of the sheet for expenses"
    )
    settlements_sheet_name: str = Field(
        default="Settlements",
        description="Name of the sheet for settlements"
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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()


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
    Useful for startup checks. The Google Sheets section is only
    required when it is the selected backend.
    """
    results = {}

    settings = get_settings()

    try:
        ledger = settings.ledger
        results["ledger"] = True
    except Exception as e:
        ledger = None
        results["ledger"] = False
        results["ledger_error"] = str(e)

    if ledger is not None and ledger.storage_backend == "google_sheets":
        try:
            _ = settings.google_sheets
            results["google_sheets"] = True
        except Exception as e:
            results["google_sheets"] = False
            results["google_sheets_error"] = str(e)

    return results
