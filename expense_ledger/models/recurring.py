"""
Recurring Expense Templates

A template describes a periodic expense. It never posts anything itself;
the RecurrenceProcessor materializes its occurrences through the ledger
and moves last_processed_date forward one occurrence at a time.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from expense_ledger.models.ledger import ExpenseCategory
from expense_ledger.models.primitives import (
    AmountInput,
    PositiveMoney,
    add_days,
    add_months,
    add_weeks,
    add_years,
)


class RecurringFrequency(str, Enum):
    """How often a template recurs. Every frequency has an interval of 1."""
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"

    @property
    def interval(self) -> int:
        return 1

    def advance(self, day: date) -> date:
        """Return the occurrence one interval after `day`."""
        if self is RecurringFrequency.DAILY:
            return add_days(day, self.interval)
        if self is RecurringFrequency.WEEKLY:
            return add_weeks(day, self.interval)
        if self is RecurringFrequency.MONTHLY:
            return add_months(day, self.interval)
        return add_years(day, self.interval)


class RecurringExpenseTemplate(BaseModel):
    """
    A periodic expense pattern bound to one account.

    last_processed_date is None until the first occurrence (start_date)
    has been posted. end_date is inclusive.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    account_id: UUID
    amount: PositiveMoney
    description: str = Field(default="", max_length=500)
    category: ExpenseCategory
    frequency: RecurringFrequency
    start_date: date
    end_date: Optional[date] = None
    last_processed_date: Optional[date] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode='after')
    def validate_dates(self) -> 'RecurringExpenseTemplate':
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self

    def is_active(self, now: date) -> bool:
        """A template is active until its (inclusive) end date passes."""
        return self.end_date is None or now <= self.end_date


class TemplateUpdate(BaseModel):
    """New values for a template. last_processed_date is not editable here."""
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Optional[AmountInput] = None
    description: Optional[str] = None
    category: Optional[Union[ExpenseCategory, str]] = None
    frequency: Optional[RecurringFrequency] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
