"""
Ledger Errors

Validation failures are raised to the immediate caller and never retried.
Storage failures keep their own hierarchy (see services.storage).
"""

from decimal import Decimal
from uuid import UUID


class LedgerError(Exception):
    """Base exception for ledger rule violations."""
    pass


class AccountNotFoundError(LedgerError):
    """The referenced account does not exist."""

    def __init__(self, account_id: UUID):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class InsufficientFundsError(LedgerError):
    """Posting would take the account below zero."""

    def __init__(self, account_id: UUID, balance: Decimal, amount: Decimal):
        self.account_id = account_id
        self.balance = balance
        self.amount = amount
        super().__init__(
            f"Insufficient funds in account {account_id}: "
            f"balance {balance}, requested {amount}"
        )


class AccountHasExpensesError(LedgerError):
    """Account cannot be deleted while expenses reference it."""

    def __init__(self, account_id: UUID, expense_count: int):
        self.account_id = account_id
        self.expense_count = expense_count
        super().__init__(
            f"Account {account_id} still has {expense_count} expenses"
        )


class InvalidAmountError(LedgerError):
    """Amount is not a positive two-place decimal."""
    pass


class InvalidCategoryError(LedgerError):
    """Category text does not name a known category."""
    pass
