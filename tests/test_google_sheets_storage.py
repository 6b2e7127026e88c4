"""
Tests for the Google Sheets storage

Test strategy:
1. No real API calls: worksheets are replaced by in-memory fakes
2. The ledger runs on top of the sheets store, so postings go through
   the step-by-step path with compensation
"""

import pytest
from datetime import date
from decimal import Decimal

import gspread

from expense_ledger.config import GoogleSheetsSettings
from expense_ledger.ledger import AccountLedger
from expense_ledger.models import (
    Budget,
    BudgetPeriod,
    ExpenseCategory,
    LedgerEventType,
    RecurringExpenseTemplate,
    RecurringFrequency,
)
from expense_ledger.services.storage import (
    DuplicateError,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    StorageError,
)
from expense_ledger.services.storage.google_sheets import ACCOUNT_COLUMNS


class FakeWorksheet:
    """Stands in for gspread.Worksheet, holding rows as lists of strings."""

    def __init__(self, title):
        self.title = title
        self.rows: list[list[str]] = []
        self.fail_updates = False

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, values, value_input_option=None):
        self.rows.append([str(v) for v in values])

    def update_cell(self, row, col, value):
        if self.fail_updates:
            raise RuntimeError("quota exceeded")
        self.rows[row - 1][col - 1] = str(value)

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSpreadsheet:
    """Stands in for gspread.Spreadsheet."""

    def __init__(self):
        self.sheets: dict[str, FakeWorksheet] = {}

    def worksheet(self, title):
        if title not in self.sheets:
            raise gspread.WorksheetNotFound(title)
        return self.sheets[title]

    def add_worksheet(self, title, rows, cols):
        self.sheets[title] = FakeWorksheet(title)
        return self.sheets[title]


class FakeClient(GoogleSheetsClient):
    """Client whose spreadsheet lives in memory."""

    def __init__(self, settings):
        super().__init__(settings)
        self.spreadsheet = FakeSpreadsheet()

    def get_spreadsheet(self):
        return self.spreadsheet


@pytest.fixture
def sheets_settings(tmp_path):
    credentials = tmp_path / "credentials.json"
    credentials.write_text("{}")
    return GoogleSheetsSettings(
        credentials_path=str(credentials),
        spreadsheet_id="test-spreadsheet",
    )


@pytest.fixture
def client(sheets_settings):
    return FakeClient(sheets_settings)


@pytest.fixture
def sheets_storage(client):
    return GoogleSheetsLedgerStorage(client)


class TestWorksheetSetup:
    """Tests for worksheet creation."""

    @pytest.mark.asyncio
    async def test_missing_worksheet_created_with_header(self, client, sheets_storage):
        """Test that the first access adds the sheet and its header row."""
        assert await sheets_storage.list_accounts() == []

        sheet = client.spreadsheet.sheets["Accounts"]
        assert sheet.rows == [ACCOUNT_COLUMNS]


class TestSheetsRecords:
    """Tests for storing each record kind as rows."""

    @pytest.mark.asyncio
    async def test_account_round_trip(self, sheets_storage):
        """Test that an account comes back with exact balance and code."""
        ledger = AccountLedger(sheets_storage)
        created = await ledger.create_account("Main", "main", "100.10")

        loaded = await sheets_storage.get_account_by_code("MAIN")
        assert loaded.id == created.id
        assert loaded.balance == Decimal("100.10")

    @pytest.mark.asyncio
    async def test_duplicate_code(self, sheets_storage):
        """Test that code uniqueness is enforced on the sheet too."""
        ledger = AccountLedger(sheets_storage)
        await ledger.create_account("Main", "MAIN")
        with pytest.raises(DuplicateError):
            await ledger.create_account("Again", "main")

    @pytest.mark.asyncio
    async def test_template_optional_dates(self, sheets_storage):
        """Test that empty end and processed dates read back as None."""
        ledger = AccountLedger(sheets_storage)
        account = await ledger.create_account("Main", "MAIN")
        template = RecurringExpenseTemplate(
            account_id=account.id,
            amount="9.99",
            category=ExpenseCategory.ENTERTAINMENT,
            frequency=RecurringFrequency.MONTHLY,
            start_date=date(2024, 1, 31),
        )
        await sheets_storage.create_template(template)

        loaded = await sheets_storage.get_template(template.id)
        assert loaded.end_date is None
        assert loaded.last_processed_date is None
        assert loaded.amount == Decimal("9.99")

    @pytest.mark.asyncio
    async def test_budget_without_category(self, sheets_storage):
        """Test that an all-category budget round-trips."""
        budget = Budget(
            name="Everything",
            amount="1000",
            period=BudgetPeriod.YEARLY,
            start_date=date(2024, 1, 1),
        )
        await sheets_storage.create_budget(budget)

        loaded = await sheets_storage.get_budget(budget.id)
        assert loaded.category is None
        assert loaded.is_active

    @pytest.mark.asyncio
    async def test_malformed_row_skipped(self, client, sheets_storage):
        """Test that a corrupt row doesn't hide the valid ones."""
        ledger = AccountLedger(sheets_storage)
        await ledger.create_account("Main", "MAIN", "10")
        client.spreadsheet.sheets["Accounts"].rows.append(
            ["not-a-uuid", "Broken", "BAD", "x", ""]
        )

        accounts = await sheets_storage.list_accounts()
        assert [a.code for a in accounts] == ["MAIN"]


class TestLedgerOnSheets:
    """Tests for ledger behaviour on a store without transactions."""

    @pytest.mark.asyncio
    async def test_post_and_reverse(self, sheets_storage):
        """Test a posting and its reversal against sheet rows."""
        ledger = AccountLedger(sheets_storage)
        account = await ledger.create_account("Main", "MAIN", "50")

        expense = await ledger.post_expense(
            account.id, "20", "Groceries", "Food", date(2024, 3, 1)
        )
        assert (await ledger.get_account(account.id)).balance == Decimal("30.00")
        assert (await ledger.get_expense(expense.id)).expense_date == date(2024, 3, 1)

        await ledger.reverse_expense(expense)
        assert (await ledger.get_account(account.id)).balance == Decimal("50.00")
        assert await sheets_storage.list_expenses() == []

    @pytest.mark.asyncio
    async def test_failed_debit_compensated(self, client, sheets_storage, events):
        """Test that the expense row is removed when the balance write fails."""
        ledger = AccountLedger(sheets_storage, events)
        account = await ledger.create_account("Main", "MAIN", "50")
        client.spreadsheet.sheets["Accounts"].fail_updates = True

        with pytest.raises(StorageError):
            await ledger.post_expense(account.id, "20")

        assert await sheets_storage.list_expenses() == []
        assert (await ledger.get_account(account.id)).balance == Decimal("50.00")
        assert events.of_type(LedgerEventType.COMPENSATION_APPLIED)
