"""Shared fixtures. Every test gets fresh in-memory storage."""

import pytest

from expense_ledger.budgets import BudgetService
from expense_ledger.events import LedgerEventLogger
from expense_ledger.ledger import AccountLedger
from expense_ledger.models.events import LedgerEvent
from expense_ledger.scheduling import RecurrenceProcessor
from expense_ledger.services.storage import InMemoryLedgerStorage


class RecordingEventLogger(LedgerEventLogger):
    """Keeps emitted events in memory so tests can inspect them."""

    def __init__(self):
        super().__init__("tests")
        self.events: list[LedgerEvent] = []

    def log(self, event: LedgerEvent) -> None:
        self.events.append(event)
        super().log(event)

    def of_type(self, event_type) -> list[LedgerEvent]:
        return [e for e in self.events if e.event_type == event_type]


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def events():
    return RecordingEventLogger()


@pytest.fixture
def ledger(storage, events):
    return AccountLedger(storage, events)


@pytest.fixture
def processor(ledger, events):
    return RecurrenceProcessor(ledger, events)


@pytest.fixture
def budgets(storage):
    return BudgetService(storage)
