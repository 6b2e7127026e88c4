"""Configuration package."""

from expense_ledger.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    LedgerSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "LedgerSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
