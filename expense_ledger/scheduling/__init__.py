"""Recurring expense scheduling package."""

from expense_ledger.scheduling.evaluator import (
    due_occurrences,
    is_due,
    next_occurrence,
)
from expense_ledger.scheduling.processor import (
    RecurrenceProcessor,
    RecurrenceRunReport,
    TemplateOutcome,
)

__all__ = [
    "RecurrenceProcessor",
    "RecurrenceRunReport",
    "TemplateOutcome",
    "due_occurrences",
    "is_due",
    "next_occurrence",
]
