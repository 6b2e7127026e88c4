"""
Application Wiring for Expense Ledger

This module ties together all the components for one session:
storage, ledger, recurrence processor and budget service.

DESIGN DECISION: There is no process-wide store or ledger instance.
create_app_components() builds a LedgerContext and the caller owns it.
Two contexts never share state unless they are given the same storage.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel

from expense_ledger.budgets import BudgetService
from expense_ledger.config import Settings, get_settings
from expense_ledger.events import LedgerEventLogger, configure_logging
from expense_ledger.ledger import AccountLedger
from expense_ledger.models.ledger import Account
from expense_ledger.scheduling import RecurrenceProcessor, RecurrenceRunReport
from expense_ledger.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
)


class LedgerContext:
    """Everything one session needs, built once and passed around."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        event_logger: Optional[LedgerEventLogger] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.event_logger = event_logger or LedgerEventLogger()
        self.storage = storage
        self.ledger = AccountLedger(storage, self.event_logger)
        self.recurrence = RecurrenceProcessor(self.ledger, self.event_logger)
        self.budgets = BudgetService(storage)


class SessionStartResult(BaseModel):
    """What happened when a session started."""

    default_account: Optional[Account] = None
    recurrence_report: Optional[RecurrenceRunReport] = None


def create_storage(settings: Settings) -> LedgerStorageInterface:
    """Build the storage backend named by settings.app.storage_backend."""
    if settings.app.storage_backend == "google_sheets":
        return GoogleSheetsLedgerStorage(GoogleSheetsClient(settings.google_sheets))
    return InMemoryLedgerStorage()


def create_app_components(
    settings: Optional[Settings] = None,
    storage: Optional[LedgerStorageInterface] = None,
) -> LedgerContext:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use. Defaults to the cached environment settings.
        storage: Explicit storage. Overrides settings.app.storage_backend.

    Returns:
        A new LedgerContext
    """
    settings = settings or get_settings()
    configure_logging(
        level=settings.app.log_level,
        log_format=settings.app.log_format,
    )
    return LedgerContext(
        storage=storage or create_storage(settings),
        settings=settings,
    )


async def start_session(
    context: LedgerContext,
    now: Optional[date] = None,
) -> SessionStartResult:
    """
    Run the session-start routine.

    1. Create the default account if the store has no accounts
    2. Catch up every active recurring template
    """
    ledger_settings = context.settings.ledger
    result = SessionStartResult()

    if ledger_settings.create_default_account:
        result.default_account = await context.ledger.ensure_default_account(
            name=ledger_settings.default_account_name,
            code=ledger_settings.default_account_code,
        )

    if ledger_settings.process_recurring_on_start:
        result.recurrence_report = await context.recurrence.process(now)

    return result
