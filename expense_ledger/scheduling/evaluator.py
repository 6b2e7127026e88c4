"""
Recurring Schedule Evaluator

DESIGN DECISION: Evaluation is a pure function of (template, now).
It never touches storage and never mutates the template, so calling it
twice with the same inputs yields the same dates.

Catch-up: a template that hasn't been processed for a while yields every
missed occurrence, oldest first, not just the most recent one.
"""

from datetime import date
from typing import Optional

from expense_ledger.models.recurring import RecurringExpenseTemplate


def next_occurrence(template: RecurringExpenseTemplate) -> date:
    """The next date that would be posted for this template."""
    if template.last_processed_date is None:
        return template.start_date
    return template.frequency.advance(template.last_processed_date)


def due_occurrences(
    template: RecurringExpenseTemplate,
    now: date,
) -> list[date]:
    """
    Every occurrence of `template` due on or before `now`, in order.

    A template that was never processed is due only at its start date,
    and only while it is active. Otherwise dates are generated by stepping
    one interval at a time from last_processed_date, stopping after `now`
    or the (inclusive) end date. Dates before the end date stay due after
    it has passed.
    """
    if template.last_processed_date is None:
        if template.is_active(now) and template.start_date <= now:
            return [template.start_date]
        return []

    limit = _horizon(now, template.end_date)
    occurrences = []
    current = template.frequency.advance(template.last_processed_date)
    while current <= limit:
        occurrences.append(current)
        current = template.frequency.advance(current)
    return occurrences


def is_due(template: RecurringExpenseTemplate, now: date) -> bool:
    return bool(due_occurrences(template, now))


def _horizon(now: date, end_date: Optional[date]) -> date:
    return min(now, end_date) if end_date else now
