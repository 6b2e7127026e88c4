"""
Data Models Package

This package contains all Pydantic models used by the expense ledger.
Amounts are two-place Decimals everywhere.
"""

from expense_ledger.models.budget import (
    Budget,
    BudgetPeriod,
    BudgetProgress,
    BudgetUpdate,
)
from expense_ledger.models.events import (
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventSeverity,
    LedgerEventType,
)
from expense_ledger.models.ledger import (
    Account,
    Expense,
    ExpenseCategory,
    ExpenseRequest,
    ExpenseUpdate,
    PostingResult,
)
from expense_ledger.models.primitives import (
    Money,
    MoneyFormatError,
    PositiveMoney,
    add_days,
    add_months,
    add_weeks,
    add_years,
    to_money,
)
from expense_ledger.models.recurring import (
    RecurringExpenseTemplate,
    RecurringFrequency,
    TemplateUpdate,
)

__all__ = [
    # Primitives
    "Money",
    "MoneyFormatError",
    "PositiveMoney",
    "add_days",
    "add_months",
    "add_weeks",
    "add_years",
    "to_money",
    # Ledger models
    "Account",
    "Expense",
    "ExpenseCategory",
    "ExpenseRequest",
    "ExpenseUpdate",
    "PostingResult",
    # Recurring models
    "RecurringExpenseTemplate",
    "RecurringFrequency",
    "TemplateUpdate",
    # Budget models
    "Budget",
    "BudgetPeriod",
    "BudgetProgress",
    "BudgetUpdate",
    # Event models
    "LedgerEvent",
    "LedgerEventBuilder",
    "LedgerEventSeverity",
    "LedgerEventType",
]
