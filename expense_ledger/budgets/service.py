"""
Budget Service

Stores budgets and evaluates them against the recorded expenses.

GUARANTEES:
- Zero or negative budget amounts are rejected at creation, so a
  progress ratio is always defined
- Evaluation only reads expenses; it never changes a balance
"""

from datetime import date
from typing import Optional, Union
from uuid import UUID

from expense_ledger.budgets.evaluator import active_budgets, budget_progress
from expense_ledger.ledger import validate_amount, validate_category
from expense_ledger.models.budget import (
    Budget,
    BudgetPeriod,
    BudgetProgress,
    BudgetUpdate,
)
from expense_ledger.models.ledger import ExpenseCategory
from expense_ledger.models.primitives import AmountInput
from expense_ledger.services.storage import LedgerStorageInterface, NotFoundError


class BudgetService:
    """Budget CRUD plus read-only progress queries."""

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage

    async def create_budget(
        self,
        name: str,
        amount: AmountInput,
        period: BudgetPeriod,
        category: Optional[Union[ExpenseCategory, str]] = None,
        start_date: Optional[date] = None,
    ) -> Budget:
        """
        Create an active budget.

        Raises:
            InvalidAmountError: If amount is not a positive two-place decimal
            InvalidCategoryError: If category names no known category
        """
        budget = Budget(
            name=name,
            amount=validate_amount(amount),
            period=period,
            category=validate_category(category) if category is not None else None,
            start_date=start_date or date.today(),
        )
        return await self._storage.create_budget(budget)

    async def get_budget(self, budget_id: UUID) -> Budget:
        budget = await self._storage.get_budget(budget_id)
        if budget is None:
            raise NotFoundError(f"Budget not found: {budget_id}")
        return budget

    async def list_budgets(self) -> list[Budget]:
        return await self._storage.list_budgets()

    async def list_active(self, now: Optional[date] = None) -> list[Budget]:
        """Budgets flagged active whose window hasn't ended yet."""
        return active_budgets(await self._storage.list_budgets(), now or date.today())

    async def update_budget(self, budget_id: UUID, update: BudgetUpdate) -> Budget:
        budget = await self.get_budget(budget_id)
        changes = update.model_dump(exclude_unset=True)
        if "amount" in changes:
            changes["amount"] = validate_amount(changes["amount"])
        if changes.get("category") is not None:
            changes["category"] = validate_category(changes["category"])
        for required in ("name", "period", "start_date", "is_active"):
            if required in changes and changes[required] is None:
                del changes[required]

        values = budget.model_dump()
        values.update(changes)
        return await self._storage.update_budget(Budget(**values))

    async def delete_budget(self, budget_id: UUID) -> None:
        if not await self._storage.delete_budget(budget_id):
            raise NotFoundError(f"Budget not found: {budget_id}")

    async def progress_for(
        self,
        budget_id: UUID,
        now: Optional[date] = None,
    ) -> BudgetProgress:
        budget = await self.get_budget(budget_id)
        return await self._evaluate(budget, now or date.today())

    async def progress_active(
        self,
        now: Optional[date] = None,
    ) -> list[BudgetProgress]:
        """Progress of every active, in-window budget."""
        now = now or date.today()
        return [
            await self._evaluate(budget, now)
            for budget in await self.list_active(now)
        ]

    async def _evaluate(self, budget: Budget, now: date) -> BudgetProgress:
        expenses = await self._storage.list_expenses(
            category=budget.category,
            date_from=budget.start_date,
            date_to=budget.window_end,
        )
        return budget_progress(budget, expenses, now)
