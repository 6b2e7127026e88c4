"""
Core Ledger Models

These models define the strict schemas for accounts and expenses.
They are designed to:
1. Keep money exact (two-place Decimal, never float)
2. Normalize user-facing values once, at construction
3. Be serializable for storage and logging

IMPORTANT: An Account's balance is data, not an API. Nothing outside
the AccountLedger should change it; storage hands out copies so that
an accidental assignment never reaches the persisted record.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from expense_ledger.models.primitives import AmountInput, Money, PositiveMoney, ZERO


# =============================================================================
# ENUMS
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Supported expense categories.

    The set is closed: free text coming from importers must be mapped
    onto one of these via parse() or from_description().
    """
    FOOD = "Food"
    TRANSPORTATION = "Transportation"
    UTILITIES = "Utilities"
    ENTERTAINMENT = "Entertainment"
    SHOPPING = "Shopping"
    HEALTHCARE = "Healthcare"
    OTHER = "Other"

    @classmethod
    def parse(cls, raw: Union[str, "ExpenseCategory"]) -> "ExpenseCategory":
        """
        Parse raw category text (value or name, any case).

        Raises:
            ValueError: If the text names no known category
        """
        if isinstance(raw, cls):
            return raw
        text = str(raw).strip().lower()
        for category in cls:
            if text in (category.value.lower(), category.name.lower()):
                return category
        raise ValueError(f"Unknown category: {raw!r}")

    @classmethod
    def from_description(cls, description: str) -> "ExpenseCategory":
        """Guess a category from a transaction description."""
        text = description.lower()
        for category, keywords in _CATEGORY_KEYWORDS:
            if any(keyword in text for keyword in keywords):
                return category
        return cls.OTHER


# Checked in order; first match wins
_CATEGORY_KEYWORDS = [
    (ExpenseCategory.FOOD, ("food", "restaurant", "grocery")),
    (ExpenseCategory.TRANSPORTATION, ("uber", "lyft", "transit")),
    (ExpenseCategory.UTILITIES, ("electric", "water", "gas")),
    (ExpenseCategory.ENTERTAINMENT, ("netflix", "spotify", "amazon")),
    (ExpenseCategory.SHOPPING, ("store", "shop")),
    (ExpenseCategory.HEALTHCARE, ("doctor", "pharmacy")),
]


# =============================================================================
# ACCOUNT
# =============================================================================

class Account(BaseModel):
    """
    A money account that expenses are drawn from.

    The code is the short user-facing handle ("MAIN", "SAV"). It is stored
    upper-cased so lookups are case-insensitive.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    code: str = Field(
        ...,
        min_length=1,
        max_length=20,
        description="User-facing identifier, unique across accounts"
    )
    balance: Money = Field(
        default=ZERO,
        description="Current balance"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator('code')
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.upper()


# =============================================================================
# EXPENSE
# =============================================================================

class Expense(BaseModel):
    """
    A posted expense.

    Only the AccountLedger creates these. Posting and the matching balance
    decrement are committed together.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    account_id: UUID
    amount: PositiveMoney
    description: str = Field(default="", max_length=500)
    category: ExpenseCategory
    expense_date: date
    is_recurring: bool = False
    receipt_url: Optional[str] = Field(
        default=None,
        description="Reference to a captured receipt image"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class ExpenseRequest(BaseModel):
    """
    A request to post an expense.

    Importers (CSV, forms) build these. Amount and category are validated
    by the ledger so callers get ledger errors, not schema errors.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    account_id: UUID
    amount: AmountInput
    description: str = ""
    category: Union[ExpenseCategory, str] = ExpenseCategory.OTHER
    expense_date: date = Field(default_factory=date.today)
    is_recurring: bool = False
    receipt_url: Optional[str] = None


class ExpenseUpdate(BaseModel):
    """
    New values for an existing expense. Unset fields keep their value.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    account_id: Optional[UUID] = None
    amount: Optional[AmountInput] = None
    description: Optional[str] = None
    category: Optional[Union[ExpenseCategory, str]] = None
    expense_date: Optional[date] = None
    is_recurring: Optional[bool] = None
    receipt_url: Optional[str] = None


class PostingResult(BaseModel):
    """Outcome of one request in a batch posting."""

    request: ExpenseRequest
    expense: Optional[Expense] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.expense is not None
