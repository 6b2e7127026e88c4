"""Account ledger package."""

from expense_ledger.ledger.account_ledger import (
    AccountLedger,
    validate_amount,
    validate_category,
)
from expense_ledger.ledger.errors import (
    AccountHasExpensesError,
    AccountNotFoundError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidCategoryError,
    LedgerError,
)

__all__ = [
    "AccountLedger",
    "validate_amount",
    "validate_category",
    # Errors
    "AccountHasExpensesError",
    "AccountNotFoundError",
    "InsufficientFundsError",
    "InvalidAmountError",
    "InvalidCategoryError",
    "LedgerError",
]
