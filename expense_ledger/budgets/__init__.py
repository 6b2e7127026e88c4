"""Budget evaluation package."""

from expense_ledger.budgets.evaluator import (
    active_budgets,
    budget_progress,
    is_budget_active,
    matching_expenses,
)
from expense_ledger.budgets.service import BudgetService

__all__ = [
    "BudgetService",
    "active_budgets",
    "budget_progress",
    "is_budget_active",
    "matching_expenses",
]
