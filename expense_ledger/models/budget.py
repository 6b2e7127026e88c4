"""
Budget Models

DESIGN DECISION: Budget periods are fixed day counts (7/30/365), not
calendar months. A "monthly" budget starting Jan 1 covers Jan 1 to
Jan 31 inclusive, whatever the month length.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from expense_ledger.models.ledger import ExpenseCategory
from expense_ledger.models.primitives import (
    AmountInput,
    Money,
    PositiveMoney,
    add_days,
)


class BudgetPeriod(str, Enum):
    """Budget window length."""
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"

    @property
    def days(self) -> int:
        return _PERIOD_DAYS[self]


_PERIOD_DAYS = {
    BudgetPeriod.WEEKLY: 7,
    BudgetPeriod.MONTHLY: 30,
    BudgetPeriod.YEARLY: 365,
}


class Budget(BaseModel):
    """
    A spending limit over a rolling window.

    The window is [start_date, start_date + period.days], inclusive on
    both ends. category=None means the budget covers every category.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    amount: PositiveMoney
    period: BudgetPeriod
    category: Optional[ExpenseCategory] = None
    start_date: date = Field(default_factory=date.today)
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def daily_limit(self) -> Decimal:
        return self.amount / Decimal(self.period.days)

    @property
    def window_end(self) -> date:
        return add_days(self.start_date, self.period.days)

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.window_end


class BudgetUpdate(BaseModel):
    """New values for a budget. Only fields that are set are applied."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount: Optional[AmountInput] = None
    period: Optional[BudgetPeriod] = None
    category: Optional[Union[ExpenseCategory, str]] = None
    start_date: Optional[date] = None
    is_active: Optional[bool] = None


class BudgetProgress(BaseModel):
    """Result of evaluating a budget against a set of expenses."""

    budget_id: UUID
    window_start: date
    window_end: date
    spent: Money
    remaining: Money
    ratio: Decimal = Field(description="spent / amount; 1 means fully used")
    daily_limit: Decimal
    days_elapsed: int = Field(ge=0)
    days_remaining: int = Field(ge=0)
    expense_count: int = Field(ge=0)

    @property
    def is_over_budget(self) -> bool:
        return self.remaining < 0
