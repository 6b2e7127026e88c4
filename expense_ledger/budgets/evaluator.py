"""
Budget Evaluator

DESIGN DECISION: Budget evaluation is a pure, read-only computation over
an expense collection. It never calls the ledger's mutators.

Window rule: an expense counts when its date falls in
[start_date, start_date + period.days], both ends inclusive, and the
budget's category is either unset or equal to the expense category.
"""

from datetime import date
from typing import Iterable

from expense_ledger.models.budget import Budget, BudgetProgress
from expense_ledger.models.ledger import Expense
from expense_ledger.models.primitives import ZERO


def matching_expenses(budget: Budget, expenses: Iterable[Expense]) -> list[Expense]:
    """Expenses inside the budget window and category."""
    return [
        expense for expense in expenses
        if budget.covers(expense.expense_date)
        and (budget.category is None or budget.category == expense.category)
    ]


def budget_progress(
    budget: Budget,
    expenses: Iterable[Expense],
    now: date,
) -> BudgetProgress:
    """
    Compute spent, remaining and ratio for a budget.

    `now` only drives the elapsed/remaining day counts; which expenses
    count depends on the window alone.
    """
    counted = matching_expenses(budget, expenses)
    spent = sum((e.amount for e in counted), ZERO)
    days = budget.period.days

    return BudgetProgress(
        budget_id=budget.id,
        window_start=budget.start_date,
        window_end=budget.window_end,
        spent=spent,
        remaining=budget.amount - spent,
        ratio=spent / budget.amount,
        daily_limit=budget.daily_limit,
        days_elapsed=_clamp((now - budget.start_date).days, 0, days),
        days_remaining=_clamp((budget.window_end - now).days, 0, days),
        expense_count=len(counted),
    )


def is_budget_active(budget: Budget, now: date) -> bool:
    """The active flag alone isn't enough; the window must not have ended."""
    return budget.is_active and now <= budget.window_end


def active_budgets(budgets: Iterable[Budget], now: date) -> list[Budget]:
    return [budget for budget in budgets if is_budget_active(budget, now)]


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))
