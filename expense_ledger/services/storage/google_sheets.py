"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a durable backend because:
1. Users can view their accounts and expenses directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (fine for personal bookkeeping)
- No transactions: supports_transactions is False, so the AccountLedger
  applies postings step by step and compensates when a step fails
- Limited query capabilities (we filter in Python)

Reads and the initial connection are retried with backoff. Writes are
never retried here; a retried append could create a duplicate row.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from expense_ledger.config import GoogleSheetsSettings, get_settings
from expense_ledger.models.budget import Budget, BudgetPeriod
from expense_ledger.models.ledger import Account, Expense, ExpenseCategory
from expense_ledger.models.recurring import (
    RecurringExpenseTemplate,
    RecurringFrequency,
)
from expense_ledger.services.storage.interface import (
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)


ACCOUNT_COLUMNS = ["id", "name", "code", "balance", "created_at"]

EXPENSE_COLUMNS = [
    "id",
    "account_id",
    "amount",
    "description",
    "category",
    "expense_date",
    "is_recurring",
    "receipt_url",
    "created_at",
    "updated_at",
]

TEMPLATE_COLUMNS = [
    "id",
    "account_id",
    "amount",
    "description",
    "category",
    "frequency",
    "start_date",
    "end_date",
    "last_processed_date",
    "created_at",
]

BUDGET_COLUMNS = [
    "id",
    "name",
    "amount",
    "period",
    "category",
    "start_date",
    "is_active",
    "created_at",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


# =============================================================================
# ROW CONVERSION
# =============================================================================

def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _optional_date(value: str) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def account_to_row(account: Account) -> list:
    return [
        str(account.id),
        account.name,
        account.code,
        str(account.balance),
        account.created_at.isoformat(),
    ]


def row_to_account(row: list) -> Account:
    return Account(
        id=UUID(_safe_get(row, 0)),
        name=_safe_get(row, 1),
        code=_safe_get(row, 2),
        balance=Decimal(_safe_get(row, 3, "0")),
        created_at=datetime.fromisoformat(_safe_get(row, 4)),
    )


def expense_to_row(expense: Expense) -> list:
    return [
        str(expense.id),
        str(expense.account_id),
        str(expense.amount),
        expense.description,
        expense.category.value,
        expense.expense_date.isoformat(),
        str(expense.is_recurring),
        expense.receipt_url or "",
        expense.created_at.isoformat(),
        expense.updated_at.isoformat(),
    ]


def row_to_expense(row: list) -> Expense:
    return Expense(
        id=UUID(_safe_get(row, 0)),
        account_id=UUID(_safe_get(row, 1)),
        amount=Decimal(_safe_get(row, 2)),
        description=_safe_get(row, 3),
        category=ExpenseCategory(_safe_get(row, 4)),
        expense_date=date.fromisoformat(_safe_get(row, 5)),
        is_recurring=_safe_get(row, 6).lower() == "true",
        receipt_url=_safe_get(row, 7) or None,
        created_at=datetime.fromisoformat(_safe_get(row, 8)),
        updated_at=datetime.fromisoformat(_safe_get(row, 9)),
    )


def template_to_row(template: RecurringExpenseTemplate) -> list:
    return [
        str(template.id),
        str(template.account_id),
        str(template.amount),
        template.description,
        template.category.value,
        template.frequency.value,
        template.start_date.isoformat(),
        template.end_date.isoformat() if template.end_date else "",
        template.last_processed_date.isoformat() if template.last_processed_date else "",
        template.created_at.isoformat(),
    ]


def row_to_template(row: list) -> RecurringExpenseTemplate:
    return RecurringExpenseTemplate(
        id=UUID(_safe_get(row, 0)),
        account_id=UUID(_safe_get(row, 1)),
        amount=Decimal(_safe_get(row, 2)),
        description=_safe_get(row, 3),
        category=ExpenseCategory(_safe_get(row, 4)),
        frequency=RecurringFrequency(_safe_get(row, 5)),
        start_date=date.fromisoformat(_safe_get(row, 6)),
        end_date=_optional_date(_safe_get(row, 7)),
        last_processed_date=_optional_date(_safe_get(row, 8)),
        created_at=datetime.fromisoformat(_safe_get(row, 9)),
    )


def budget_to_row(budget: Budget) -> list:
    return [
        str(budget.id),
        budget.name,
        str(budget.amount),
        budget.period.value,
        budget.category.value if budget.category else "",
        budget.start_date.isoformat(),
        str(budget.is_active),
        budget.created_at.isoformat(),
    ]


def row_to_budget(row: list) -> Budget:
    category = _safe_get(row, 4)
    return Budget(
        id=UUID(_safe_get(row, 0)),
        name=_safe_get(row, 1),
        amount=Decimal(_safe_get(row, 2)),
        period=BudgetPeriod(_safe_get(row, 3)),
        category=ExpenseCategory(category) if category else None,
        start_date=date.fromisoformat(_safe_get(row, 5)),
        is_active=_safe_get(row, 6).lower() == "true",
        created_at=datetime.fromisoformat(_safe_get(row, 7)),
    )


class _SheetTable:
    """One worksheet holding one record kind, keyed by the id in column A."""

    def __init__(
        self,
        client: GoogleSheetsClient,
        title: str,
        columns: list[str],
        to_row: Callable,
        from_row: Callable,
    ):
        self._client = client
        self.title = title
        self.columns = columns
        self.to_row = to_row
        self.from_row = from_row

    def sheet(self) -> gspread.Worksheet:
        return self._client.worksheet(self.title, self.columns)

    @retry(
        retry=retry_if_exception_type(gspread.exceptions.APIError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def values(self) -> list[list]:
        """All data rows (header excluded)."""
        return self.sheet().get_all_values()[1:]

    def records(self) -> list:
        records = []
        for row in self.values():
            if not row or not row[0]:
                continue
            try:
                records.append(self.from_row(row))
            except Exception as e:
                logger.warning(
                    "malformed_row_skipped",
                    sheet=self.title,
                    record_id=row[0],
                    error=str(e),
                )
        return records

    def find(self, record_id: UUID):
        for row in self.values():
            if row and row[0] == str(record_id):
                return self.from_row(row)
        return None

    def _row_number(self, record_id: UUID) -> Optional[int]:
        # Row 1 is the header
        for idx, row in enumerate(self.values(), start=2):
            if row and row[0] == str(record_id):
                return idx
        return None

    def append(self, record) -> None:
        if self._row_number(record.id) is not None:
            raise DuplicateError(f"Record already exists in {self.title}: {record.id}")
        self.sheet().append_row(self.to_row(record), value_input_option="RAW")

    def replace(self, record) -> None:
        idx = self._row_number(record.id)
        if idx is None:
            raise NotFoundError(f"Record not found in {self.title}: {record.id}")
        sheet = self.sheet()
        for col_idx, value in enumerate(self.to_row(record), start=1):
            sheet.update_cell(idx, col_idx, value)

    def remove(self, record_id: UUID) -> bool:
        idx = self._row_number(record_id)
        if idx is None:
            return False
        self.sheet().delete_rows(idx)
        return True


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Each record kind lives in its own worksheet, one record per row.
    Backend exceptions are wrapped in StorageError.
    """

    supports_transactions = False

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        settings = self._client.settings
        self._accounts = _SheetTable(
            self._client, settings.accounts_sheet_name,
            ACCOUNT_COLUMNS, account_to_row, row_to_account,
        )
        self._expenses = _SheetTable(
            self._client, settings.expenses_sheet_name,
            EXPENSE_COLUMNS, expense_to_row, row_to_expense,
        )
        self._templates = _SheetTable(
            self._client, settings.templates_sheet_name,
            TEMPLATE_COLUMNS, template_to_row, row_to_template,
        )
        self._budgets = _SheetTable(
            self._client, settings.budgets_sheet_name,
            BUDGET_COLUMNS, budget_to_row, row_to_budget,
        )

    @staticmethod
    def _wrap(action: str, func, *args):
        try:
            return func(*args)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to {action}: {e}") from e

    # Accounts

    async def create_account(self, account: Account) -> Account:
        if await self.get_account_by_code(account.code):
            raise DuplicateError(f"Account code already in use: {account.code}")
        self._wrap("save account", self._accounts.append, account)
        return account

    async def get_account(self, account_id: UUID) -> Optional[Account]:
        return self._wrap("get account", self._accounts.find, account_id)

    async def get_account_by_code(self, code: str) -> Optional[Account]:
        wanted = code.strip().upper()
        for account in await self.list_accounts():
            if account.code == wanted:
                return account
        return None

    async def list_accounts(self) -> list[Account]:
        accounts = self._wrap("list accounts", self._accounts.records)
        return sorted(accounts, key=lambda a: a.name.lower())

    async def update_account(self, account: Account) -> Account:
        existing = await self.get_account_by_code(account.code)
        if existing and existing.id != account.id:
            raise DuplicateError(f"Account code already in use: {account.code}")
        self._wrap("update account", self._accounts.replace, account)
        return account

    async def delete_account(self, account_id: UUID) -> bool:
        return self._wrap("delete account", self._accounts.remove, account_id)

    # Expenses

    async def create_expense(self, expense: Expense) -> Expense:
        self._wrap("save expense", self._expenses.append, expense)
        return expense

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        return self._wrap("get expense", self._expenses.find, expense_id)

    async def list_expenses(
        self,
        account_id: Optional[UUID] = None,
        category: Optional[ExpenseCategory] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Expense]:
        expenses = []
        for expense in self._wrap("list expenses", self._expenses.records):
            if account_id and expense.account_id != account_id:
                continue
            if category and expense.category != category:
                continue
            if date_from and expense.expense_date < date_from:
                continue
            if date_to and expense.expense_date > date_to:
                continue
            expenses.append(expense)

        expenses.sort(key=lambda e: (e.expense_date, e.created_at))
        return expenses

    async def update_expense(self, expense: Expense) -> Expense:
        self._wrap("update expense", self._expenses.replace, expense)
        return expense

    async def delete_expense(self, expense_id: UUID) -> bool:
        return self._wrap("delete expense", self._expenses.remove, expense_id)

    # Recurring templates

    async def create_template(
        self, template: RecurringExpenseTemplate
    ) -> RecurringExpenseTemplate:
        self._wrap("save template", self._templates.append, template)
        return template

    async def get_template(
        self, template_id: UUID
    ) -> Optional[RecurringExpenseTemplate]:
        return self._wrap("get template", self._templates.find, template_id)

    async def list_templates(
        self, account_id: Optional[UUID] = None
    ) -> list[RecurringExpenseTemplate]:
        templates = [
            t for t in self._wrap("list templates", self._templates.records)
            if account_id is None or t.account_id == account_id
        ]
        templates.sort(key=lambda t: (t.start_date, t.created_at))
        return templates

    async def update_template(
        self, template: RecurringExpenseTemplate
    ) -> RecurringExpenseTemplate:
        self._wrap("update template", self._templates.replace, template)
        return template

    async def delete_template(self, template_id: UUID) -> bool:
        return self._wrap("delete template", self._templates.remove, template_id)

    # Budgets

    async def create_budget(self, budget: Budget) -> Budget:
        self._wrap("save budget", self._budgets.append, budget)
        return budget

    async def get_budget(self, budget_id: UUID) -> Optional[Budget]:
        return self._wrap("get budget", self._budgets.find, budget_id)

    async def list_budgets(self) -> list[Budget]:
        budgets = self._wrap("list budgets", self._budgets.records)
        return sorted(budgets, key=lambda b: (b.start_date, b.name))

    async def update_budget(self, budget: Budget) -> Budget:
        self._wrap("update budget", self._budgets.replace, budget)
        return budget

    async def delete_budget(self, budget_id: UUID) -> bool:
        return self._wrap("delete budget", self._budgets.remove, budget_id)
