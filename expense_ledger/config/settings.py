"""
Configuration Management for Expense Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The ledger itself never reads settings; the application factory reads
them once and passes plain values into the components it builds.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Bookkeeping behaviour at session start."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    create_default_account: bool = Field(
        default=True,
        description="Create a default account when none exist"
    )
    default_account_name: str = Field(
        default="Main Account",
        min_length=1,
        description="Display name of the default account"
    )
    default_account_code: str = Field(
        default="MAIN",
        min_length=1,
        max_length=20,
        description="Code of the default account"
    )
    process_recurring_on_start: bool = Field(
        default=True,
        description="Catch up recurring templates when a session starts"
    )

    @field_validator('default_account_code')
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()


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
    accounts_sheet_name: str = Field(default="Accounts")
    expenses_sheet_name: str = Field(default="Expenses")
    templates_sheet_name: str = Field(default="RecurringExpenses")
    budgets_sheet_name: str = Field(default="Budgets")

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

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(default=False)

    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )
    log_format: str = Field(
        default="json",
        pattern="^(json|console)$",
        description="Structured log renderer"
    )

    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Which record store backs the ledger"
    )

    @field_validator('log_level', mode='before')
    @classmethod
    def upper_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v


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

    # Loaded lazily so that a memory-backed session needs no Sheets credentials

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

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

    Returns a dict of {setting_name: is_valid}, plus "<name>_error"
    entries describing what went wrong. Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("ledger", "app", "google_sheets"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
