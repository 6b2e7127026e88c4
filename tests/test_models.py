"""
Tests for Expense Ledger models

Test strategy:
1. Unit tests for money and calendar primitives
2. Unit tests for schema normalization (codes, categories, dates)
3. No storage involved; everything here is synchronous
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError
from structlog.testing import capture_logs

from expense_ledger.events import LedgerEventLogger
from expense_ledger.models import (
    Account,
    Budget,
    BudgetPeriod,
    Expense,
    ExpenseCategory,
    LedgerEventBuilder,
    LedgerEventType,
    RecurringExpenseTemplate,
    RecurringFrequency,
)
from expense_ledger.models.primitives import (
    MoneyFormatError,
    add_months,
    add_years,
    to_money,
)


class TestMoney:
    """Tests for two-place Decimal conversion."""

    def test_string_amount(self):
        """Test that a string amount is read exactly."""
        assert to_money("12.50") == Decimal("12.50")

    def test_integer_amount_gets_two_places(self):
        """Test that integers are quantized to cents."""
        assert str(to_money(100)) == "100.00"

    def test_float_goes_through_its_repr(self):
        """Test that 0.1 becomes 0.10 and not a binary expansion."""
        assert to_money(0.1) == Decimal("0.10")

    def test_rejects_sub_cent_precision(self):
        """Test that amounts finer than a cent are refused."""
        with pytest.raises(MoneyFormatError):
            to_money("1.005")

    @pytest.mark.parametrize("raw", ["abc", "", "NaN", "Infinity", True, "1e30"])
    def test_rejects_non_amounts(self, raw):
        """Test that text, non-finite, out-of-range and boolean values are refused."""
        with pytest.raises(MoneyFormatError):
            to_money(raw)

    def test_expense_rejects_zero_amount(self):
        """Test that expenses must have a positive amount."""
        with pytest.raises(ValidationError):
            Expense(
                account_id=uuid4(),
                amount="0",
                category=ExpenseCategory.FOOD,
                expense_date=date(2024, 1, 1),
            )

    def test_account_balance_may_be_negative(self):
        """Test that a corrected balance below zero is representable."""
        account = Account(name="Main", code="main", balance="-5.00")
        assert account.balance == Decimal("-5.00")


class TestCalendar:
    """Tests for month-end clamping."""

    def test_month_end_clamps(self):
        """Test that Jan 31 + 1 month lands on the last day of February."""
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)

    def test_month_arithmetic_crosses_year(self):
        """Test that adding months rolls the year over."""
        assert add_months(date(2023, 11, 15), 3) == date(2024, 2, 15)

    def test_leap_day_plus_one_year(self):
        """Test that Feb 29 + 1 year becomes Feb 28."""
        assert add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)

    def test_frequency_advance(self):
        """Test one step of each frequency."""
        start = date(2024, 1, 31)
        assert RecurringFrequency.DAILY.advance(start) == date(2024, 2, 1)
        assert RecurringFrequency.WEEKLY.advance(start) == date(2024, 2, 7)
        assert RecurringFrequency.MONTHLY.advance(start) == date(2024, 2, 29)
        assert RecurringFrequency.YEARLY.advance(start) == date(2025, 1, 31)


class TestCategories:
    """Tests for category parsing and keyword classification."""

    def test_parse_accepts_value_and_name_in_any_case(self):
        """Test lenient parsing of category text."""
        assert ExpenseCategory.parse("food") == ExpenseCategory.FOOD
        assert ExpenseCategory.parse(" HEALTHCARE ") == ExpenseCategory.HEALTHCARE
        assert ExpenseCategory.parse(ExpenseCategory.OTHER) == ExpenseCategory.OTHER

    def test_parse_rejects_unknown(self):
        """Test that unknown category text raises."""
        with pytest.raises(ValueError):
            ExpenseCategory.parse("Travel")

    @pytest.mark.parametrize("description,expected", [
        ("Uber ride home", ExpenseCategory.TRANSPORTATION),
        ("Weekly grocery run", ExpenseCategory.FOOD),
        ("Netflix subscription", ExpenseCategory.ENTERTAINMENT),
        ("City pharmacy", ExpenseCategory.HEALTHCARE),
        ("Birthday present", ExpenseCategory.OTHER),
    ])
    def test_from_description(self, description, expected):
        """Test keyword-based classification."""
        assert ExpenseCategory.from_description(description) == expected


class TestAccountAndTemplateModels:
    """Tests for account and template schemas."""

    def test_account_code_is_upper_cased(self):
        """Test that codes are normalized for case-insensitive lookup."""
        account = Account(name="  Savings  ", code=" sav ")
        assert account.code == "SAV"
        assert account.name == "Savings"

    def test_template_end_before_start_rejected(self):
        """Test that a template cannot end before it starts."""
        with pytest.raises(ValidationError):
            RecurringExpenseTemplate(
                account_id=uuid4(),
                amount="10.00",
                category=ExpenseCategory.UTILITIES,
                frequency=RecurringFrequency.MONTHLY,
                start_date=date(2024, 5, 1),
                end_date=date(2024, 4, 1),
            )

    def test_template_active_through_end_date(self):
        """Test that the end date itself is still active."""
        template = RecurringExpenseTemplate(
            account_id=uuid4(),
            amount="10.00",
            category=ExpenseCategory.UTILITIES,
            frequency=RecurringFrequency.MONTHLY,
            start_date=date(2024, 1, 1),
            end_date=date(2024, 3, 1),
        )
        assert template.is_active(date(2024, 3, 1))
        assert not template.is_active(date(2024, 3, 2))


class TestBudgetModel:
    """Tests for budget window arithmetic."""

    def test_window_and_daily_limit(self):
        """Test that a monthly budget covers 30 days after its start."""
        budget = Budget(
            name="Groceries",
            amount="300.00",
            period=BudgetPeriod.MONTHLY,
            start_date=date(2024, 1, 1),
        )
        assert budget.window_end == date(2024, 1, 31)
        assert budget.daily_limit == Decimal("10")
        assert budget.covers(date(2024, 1, 31))
        assert not budget.covers(date(2024, 2, 1))


class TestLedgerEvents:
    """Tests for ledger event construction."""

    def test_expense_posted_event(self):
        """Test creating an expense posted event."""
        expense_id = uuid4()
        event = LedgerEventBuilder.expense_posted(
            expense_id=expense_id,
            account_id=uuid4(),
            amount=Decimal("12.50"),
            expense_date=date(2024, 1, 2),
            balance_after=Decimal("87.50"),
        )
        assert event.event_type == LedgerEventType.EXPENSE_POSTED
        assert event.entity_id == expense_id

    def test_event_to_log_dict(self):
        """Test conversion to a structured log dictionary."""
        correlation_id = uuid4()
        event = LedgerEventBuilder.recurrence_run_started(
            template_count=3,
            now=date(2024, 1, 4),
            correlation_id=correlation_id,
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "recurrence_run_started"
        assert log_dict["correlation_id"] == str(correlation_id)
        assert "timestamp" in log_dict

    def test_event_logger_writes_through_structlog(self):
        """Test that events reach structlog at their severity's level."""
        correlation_id = uuid4()
        event = LedgerEventBuilder.compensation_applied(
            step="create expense 1",
            entity_id=uuid4(),
            cause="quota exceeded",
            correlation_id=correlation_id,
        )

        with capture_logs() as captured:
            LedgerEventLogger("tests").log(event)

        assert captured[0]["log_level"] == "warning"
        assert captured[0]["event_type"] == "compensation_applied"
        assert captured[0]["correlation_id"] == str(correlation_id)
