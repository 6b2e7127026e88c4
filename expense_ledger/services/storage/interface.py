"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep ledger rules decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Just create/read/update/delete by identifier for the four record kinds,
plus one multi-record commit for postings.

Every read returns a copy. Mutating a returned record never changes
what is stored until it is written back.
"""

from abc import ABC, abstractmethod
from datetime import date
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from expense_ledger.models.budget import Budget
from expense_ledger.models.ledger import Account, Expense, ExpenseCategory
from expense_ledger.models.recurring import RecurringExpenseTemplate


class RecordType(str, Enum):
    ACCOUNT = "account"
    EXPENSE = "expense"
    TEMPLATE = "template"
    BUDGET = "budget"


class OperationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class StorageOperation(BaseModel):
    """
    One write inside a ChangeSet.

    `previous` holds the record as it was before the write (None for a
    create), which is what makes the operation undoable.
    """

    kind: OperationKind
    record_type: RecordType
    record: Any = Field(..., description="Record written, or deleted")
    previous: Any = None

    @property
    def record_id(self) -> UUID:
        return self.record.id

    def describe(self) -> str:
        return f"{self.kind.value} {self.record_type.value} {self.record_id}"

    def inverse(self) -> "StorageOperation":
        """Return the operation that undoes this one."""
        if self.kind == OperationKind.CREATE:
            return StorageOperation(
                kind=OperationKind.DELETE,
                record_type=self.record_type,
                record=self.record,
            )
        if self.kind == OperationKind.DELETE:
            return StorageOperation(
                kind=OperationKind.CREATE,
                record_type=self.record_type,
                record=self.record,
            )
        return StorageOperation(
            kind=OperationKind.UPDATE,
            record_type=self.record_type,
            record=self.previous,
            previous=self.record,
        )


class ChangeSet(BaseModel):
    """An ordered group of writes that must land together."""

    operations: list[StorageOperation] = Field(default_factory=list)

    def create(self, record_type: RecordType, record: Any) -> "ChangeSet":
        self.operations.append(StorageOperation(
            kind=OperationKind.CREATE, record_type=record_type, record=record,
        ))
        return self

    def update(self, record_type: RecordType, record: Any, previous: Any) -> "ChangeSet":
        self.operations.append(StorageOperation(
            kind=OperationKind.UPDATE,
            record_type=record_type,
            record=record,
            previous=previous,
        ))
        return self

    def delete(self, record_type: RecordType, record: Any) -> "ChangeSet":
        self.operations.append(StorageOperation(
            kind=OperationKind.DELETE, record_type=record_type, record=record,
        ))
        return self


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (in-memory, Google Sheets, SQLite, etc.)
    must implement these methods.

    Implementations that can apply a ChangeSet atomically set
    supports_transactions = True and override commit(). For the others
    the AccountLedger applies the operations one by one and compensates
    on failure.
    """

    supports_transactions: bool = False

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_account(self, account: Account) -> Account:
        """
        Persist a new account.

        Raises:
            DuplicateError: If the id or the code is already taken
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get_account(self, account_id: UUID) -> Optional[Account]:
        """Return the account, or None if it doesn't exist."""
        pass

    @abstractmethod
    async def get_account_by_code(self, code: str) -> Optional[Account]:
        """Return the account with this code (case-insensitive), or None."""
        pass

    @abstractmethod
    async def list_accounts(self) -> list[Account]:
        """Return all accounts sorted by name."""
        pass

    @abstractmethod
    async def update_account(self, account: Account) -> Account:
        """
        Replace a stored account.

        Raises:
            NotFoundError: If the account doesn't exist
            DuplicateError: If the new code belongs to another account
        """
        pass

    @abstractmethod
    async def delete_account(self, account_id: UUID) -> bool:
        """Delete an account. Returns False if it didn't exist."""
        pass

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_expense(self, expense: Expense) -> Expense:
        pass

    @abstractmethod
    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        pass

    @abstractmethod
    async def list_expenses(
        self,
        account_id: Optional[UUID] = None,
        category: Optional[ExpenseCategory] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Expense]:
        """
        List expenses with optional filters.

        Args:
            account_id: Only expenses drawn from this account
            category: Only expenses in this category
            date_from: Expenses on or after this date
            date_to: Expenses on or before this date

        Returns:
            Matching expenses, oldest first
        """
        pass

    @abstractmethod
    async def update_expense(self, expense: Expense) -> Expense:
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: UUID) -> bool:
        pass

    async def count_expenses(self, account_id: UUID) -> int:
        """Number of expenses referencing an account."""
        return len(await self.list_expenses(account_id=account_id))

    # -------------------------------------------------------------------------
    # Recurring templates
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_template(
        self, template: RecurringExpenseTemplate
    ) -> RecurringExpenseTemplate:
        pass

    @abstractmethod
    async def get_template(
        self, template_id: UUID
    ) -> Optional[RecurringExpenseTemplate]:
        pass

    @abstractmethod
    async def list_templates(
        self, account_id: Optional[UUID] = None
    ) -> list[RecurringExpenseTemplate]:
        pass

    @abstractmethod
    async def update_template(
        self, template: RecurringExpenseTemplate
    ) -> RecurringExpenseTemplate:
        pass

    @abstractmethod
    async def delete_template(self, template_id: UUID) -> bool:
        pass

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_budget(self, budget: Budget) -> Budget:
        pass

    @abstractmethod
    async def get_budget(self, budget_id: UUID) -> Optional[Budget]:
        pass

    @abstractmethod
    async def list_budgets(self) -> list[Budget]:
        pass

    @abstractmethod
    async def update_budget(self, budget: Budget) -> Budget:
        pass

    @abstractmethod
    async def delete_budget(self, budget_id: UUID) -> bool:
        pass

    # -------------------------------------------------------------------------
    # Multi-record writes
    # -------------------------------------------------------------------------

    async def commit(self, changes: ChangeSet) -> None:
        """
        Apply every operation in the change set, or none of them.

        Only stores with supports_transactions = True implement this.
        """
        raise NotImplementedError(
            f"{type(self).__name__} cannot commit change sets atomically"
        )

    async def apply(self, operation: StorageOperation) -> None:
        """Apply a single operation through the CRUD methods."""
        handlers = {
            RecordType.ACCOUNT: (
                self.create_account, self.update_account, self.delete_account,
            ),
            RecordType.EXPENSE: (
                self.create_expense, self.update_expense, self.delete_expense,
            ),
            RecordType.TEMPLATE: (
                self.create_template, self.update_template, self.delete_template,
            ),
            RecordType.BUDGET: (
                self.create_budget, self.update_budget, self.delete_budget,
            ),
        }
        create, update, delete = handlers[operation.record_type]

        if operation.kind == OperationKind.CREATE:
            await create(operation.record)
        elif operation.kind == OperationKind.UPDATE:
            await update(operation.record)
        elif not await delete(operation.record_id):
            raise NotFoundError(f"Cannot delete missing record: {operation.describe()}")


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
