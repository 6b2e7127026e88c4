"""
Tests for application wiring and configuration
"""

import pytest
from datetime import date
from decimal import Decimal

from expense_ledger.config import (
    AppSettings,
    LedgerSettings,
    Settings,
    get_settings,
    validate_all_settings,
)
from expense_ledger.models import RecurringFrequency
from expense_ledger.orchestrator import (
    LedgerContext,
    create_app_components,
    create_storage,
    start_session,
)
from expense_ledger.services.storage import (
    GoogleSheetsLedgerStorage,
    InMemoryLedgerStorage,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "LEDGER_CREATE_DEFAULT_ACCOUNT",
        "LEDGER_DEFAULT_ACCOUNT_CODE",
        "LEDGER_PROCESS_RECURRING_ON_START",
        "STORAGE_BACKEND",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    """Tests for environment-driven configuration."""

    def test_defaults(self):
        """Test defaults for a memory-backed session."""
        settings = Settings()
        assert settings.ledger.default_account_code == "MAIN"
        assert settings.ledger.create_default_account
        assert settings.app.storage_backend == "memory"

    def test_env_overrides(self, monkeypatch):
        """Test that prefixed environment variables are picked up."""
        monkeypatch.setenv("LEDGER_DEFAULT_ACCOUNT_CODE", "wallet")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        assert LedgerSettings().default_account_code == "WALLET"
        assert AppSettings().log_level == "DEBUG"

    def test_validate_all_settings_reports_missing_sheets(self, monkeypatch):
        """Test that missing Sheets config is reported, not raised."""
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        results = validate_all_settings()

        assert results["ledger"] is True
        assert results["app"] is True
        assert results["google_sheets"] is False
        assert "google_sheets_error" in results

    def test_create_storage_by_backend(self, monkeypatch, tmp_path):
        """Test that the backend setting picks the storage class."""
        assert isinstance(create_storage(Settings()), InMemoryLedgerStorage)

        credentials = tmp_path / "credentials.json"
        credentials.write_text("{}")
        monkeypatch.setenv("STORAGE_BACKEND", "google_sheets")
        monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(credentials))
        monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "test-spreadsheet")

        assert isinstance(create_storage(Settings()), GoogleSheetsLedgerStorage)


class TestSessionStart:
    """Tests for the session start routine."""

    @pytest.mark.asyncio
    async def test_creates_default_account_and_processes_templates(self):
        """Test that a fresh session gets MAIN and catches up templates."""
        context = create_app_components(storage=InMemoryLedgerStorage())

        first = await start_session(context, now=date(2024, 1, 1))
        assert first.default_account.code == "MAIN"
        assert first.recurrence_report.outcomes == []

        account = first.default_account
        await context.ledger.set_balance(account.id, "100")
        await context.recurrence.create_template(
            account.id, "10", RecurringFrequency.WEEKLY, date(2024, 1, 1)
        )

        second = await start_session(context, now=date(2024, 1, 15))

        assert second.default_account is None
        assert second.recurrence_report.posted_count == 3
        assert (await context.ledger.get_account(account.id)).balance == Decimal("70.00")

    @pytest.mark.asyncio
    async def test_start_steps_can_be_disabled(self, monkeypatch):
        """Test that session start honours the ledger settings."""
        monkeypatch.setenv("LEDGER_CREATE_DEFAULT_ACCOUNT", "false")
        monkeypatch.setenv("LEDGER_PROCESS_RECURRING_ON_START", "false")
        context = create_app_components(
            settings=Settings(), storage=InMemoryLedgerStorage()
        )

        result = await start_session(context)

        assert result.default_account is None
        assert result.recurrence_report is None
        assert await context.ledger.list_accounts() == []

    def test_contexts_do_not_share_state(self):
        """Test that two contexts built separately have separate stores."""
        first = create_app_components(storage=InMemoryLedgerStorage())
        second = create_app_components(storage=InMemoryLedgerStorage())

        assert isinstance(first, LedgerContext)
        assert first.storage is not second.storage
        assert first.ledger is not second.ledger
