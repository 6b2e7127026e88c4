"""
In-Memory Storage Implementation

Used for tests and for sessions that don't need durability. It is the
reference transactional store: commit() applies a ChangeSet completely
or restores the previous state.

Records are copied on the way in and on the way out so callers can never
reach into the stored state.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from expense_ledger.models.budget import Budget
from expense_ledger.models.ledger import Account, Expense, ExpenseCategory
from expense_ledger.models.recurring import RecurringExpenseTemplate
from expense_ledger.services.storage.interface import (
    ChangeSet,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dictionary-backed ledger storage with atomic change sets."""

    supports_transactions = True

    def __init__(self):
        self._accounts: dict[UUID, Account] = {}
        self._expenses: dict[UUID, Expense] = {}
        self._templates: dict[UUID, RecurringExpenseTemplate] = {}
        self._budgets: dict[UUID, Budget] = {}

    @staticmethod
    def _copy(record):
        return record.model_copy(deep=True) if record is not None else None

    def _put_new(self, table: dict, record):
        if record.id in table:
            raise DuplicateError(f"{type(record).__name__} already exists: {record.id}")
        table[record.id] = self._copy(record)
        return self._copy(record)

    def _replace(self, table: dict, record):
        if record.id not in table:
            raise NotFoundError(f"{type(record).__name__} not found: {record.id}")
        table[record.id] = self._copy(record)
        return self._copy(record)

    def _code_taken(self, code: str, exclude: Optional[UUID] = None) -> bool:
        return any(
            account.code == code.upper() and account.id != exclude
            for account in self._accounts.values()
        )

    # Accounts

    async def create_account(self, account: Account) -> Account:
        if self._code_taken(account.code):
            raise DuplicateError(f"Account code already in use: {account.code}")
        return self._put_new(self._accounts, account)

    async def get_account(self, account_id: UUID) -> Optional[Account]:
        return self._copy(self._accounts.get(account_id))

    async def get_account_by_code(self, code: str) -> Optional[Account]:
        wanted = code.strip().upper()
        for account in self._accounts.values():
            if account.code == wanted:
                return self._copy(account)
        return None

    async def list_accounts(self) -> list[Account]:
        accounts = sorted(self._accounts.values(), key=lambda a: a.name.lower())
        return [self._copy(account) for account in accounts]

    async def update_account(self, account: Account) -> Account:
        if self._code_taken(account.code, exclude=account.id):
            raise DuplicateError(f"Account code already in use: {account.code}")
        return self._replace(self._accounts, account)

    async def delete_account(self, account_id: UUID) -> bool:
        return self._accounts.pop(account_id, None) is not None

    # Expenses

    async def create_expense(self, expense: Expense) -> Expense:
        return self._put_new(self._expenses, expense)

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        return self._copy(self._expenses.get(expense_id))

    async def list_expenses(
        self,
        account_id: Optional[UUID] = None,
        category: Optional[ExpenseCategory] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Expense]:
        expenses = []
        for expense in self._expenses.values():
            if account_id and expense.account_id != account_id:
                continue
            if category and expense.category != category:
                continue
            if date_from and expense.expense_date < date_from:
                continue
            if date_to and expense.expense_date > date_to:
                continue
            expenses.append(self._copy(expense))

        expenses.sort(key=lambda e: (e.expense_date, e.created_at))
        return expenses

    async def update_expense(self, expense: Expense) -> Expense:
        return self._replace(self._expenses, expense)

    async def delete_expense(self, expense_id: UUID) -> bool:
        return self._expenses.pop(expense_id, None) is not None

    async def count_expenses(self, account_id: UUID) -> int:
        return sum(1 for e in self._expenses.values() if e.account_id == account_id)

    # Recurring templates

    async def create_template(
        self, template: RecurringExpenseTemplate
    ) -> RecurringExpenseTemplate:
        return self._put_new(self._templates, template)

    async def get_template(
        self, template_id: UUID
    ) -> Optional[RecurringExpenseTemplate]:
        return self._copy(self._templates.get(template_id))

    async def list_templates(
        self, account_id: Optional[UUID] = None
    ) -> list[RecurringExpenseTemplate]:
        templates = [
            self._copy(t) for t in self._templates.values()
            if account_id is None or t.account_id == account_id
        ]
        templates.sort(key=lambda t: (t.start_date, t.created_at))
        return templates

    async def update_template(
        self, template: RecurringExpenseTemplate
    ) -> RecurringExpenseTemplate:
        return self._replace(self._templates, template)

    async def delete_template(self, template_id: UUID) -> bool:
        return self._templates.pop(template_id, None) is not None

    # Budgets

    async def create_budget(self, budget: Budget) -> Budget:
        return self._put_new(self._budgets, budget)

    async def get_budget(self, budget_id: UUID) -> Optional[Budget]:
        return self._copy(self._budgets.get(budget_id))

    async def list_budgets(self) -> list[Budget]:
        budgets = sorted(self._budgets.values(), key=lambda b: (b.start_date, b.name))
        return [self._copy(budget) for budget in budgets]

    async def update_budget(self, budget: Budget) -> Budget:
        return self._replace(self._budgets, budget)

    async def delete_budget(self, budget_id: UUID) -> bool:
        return self._budgets.pop(budget_id, None) is not None

    # Multi-record writes

    async def commit(self, changes: ChangeSet) -> None:
        """
        Apply a change set atomically.

        The tables are snapshotted first; any failure restores them and
        surfaces a StorageError. Nothing in here awaits a foreign task,
        so no other coroutine can observe the intermediate state.
        """
        snapshot = (
            dict(self._accounts),
            dict(self._expenses),
            dict(self._templates),
            dict(self._budgets),
        )
        try:
            for operation in changes.operations:
                await self.apply(operation)
        except Exception as e:
            (
                self._accounts,
                self._expenses,
                self._templates,
                self._budgets,
            ) = snapshot
            if isinstance(e, StorageError):
                raise
            raise StorageError(f"Commit failed: {e}") from e
