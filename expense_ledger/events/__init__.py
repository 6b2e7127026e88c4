"""Ledger event logging package."""

from expense_ledger.events.logger import (
    LedgerEventLogger,
    configure_logging,
    create_correlation_id,
    get_logger,
)

__all__ = [
    "LedgerEventLogger",
    "configure_logging",
    "create_correlation_id",
    "get_logger",
]
