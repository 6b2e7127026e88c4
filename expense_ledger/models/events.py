"""
Ledger Event Models

Every balance-changing action emits a structured event to the local log.
This provides:
1. Traceability while debugging a session
2. Correlation of all postings made by one recurrence run
3. A visible record of compensations on non-transactional stores

DESIGN DECISION: Events go to the structured log only. They are not a
persisted history of balance changes and nothing reads them back.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class LedgerEventType(str, Enum):
    """Types of events the ledger and scheduler emit."""
    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"
    BALANCE_SET = "balance_set"

    # Expenses
    EXPENSE_POSTED = "expense_posted"
    EXPENSE_REVERSED = "expense_reversed"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    POSTING_REJECTED = "posting_rejected"

    # Non-transactional storage
    COMPENSATION_APPLIED = "compensation_applied"
    COMPENSATION_FAILED = "compensation_failed"

    # Recurrence
    RECURRENCE_RUN_STARTED = "recurrence_run_started"
    RECURRENCE_RUN_FINISHED = "recurrence_run_finished"
    TEMPLATE_PROCESSED = "template_processed"
    TEMPLATE_FAILED = "template_failed"


class LedgerEventSeverity(str, Enum):
    """Severity level for ledger events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LedgerEvent(BaseModel):
    """A single ledger event."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    event_type: LedgerEventType
    severity: LedgerEventSeverity = LedgerEventSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'expense', 'template')"
    )
    entity_id: Optional[UUID] = None

    # Ties together all events from one recurrence run
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class LedgerEventBuilder:
    """
    Helper class to build ledger events with common patterns.

    Usage:
        event = LedgerEventBuilder.expense_posted(expense_id, account_id, amount, balance)
    """

    @staticmethod
    def account_created(
        account_id: UUID,
        code: str,
        balance: Decimal,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=account_id,
            description=f"Account created: {code}",
            details={"code": code, "balance": str(balance)},
        )

    @staticmethod
    def account_updated(account_id: UUID, code: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.ACCOUNT_UPDATED,
            entity_type="account",
            entity_id=account_id,
            description=f"Account updated: {code}",
            details={"code": code},
        )

    @staticmethod
    def account_deleted(account_id: UUID, code: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.ACCOUNT_DELETED,
            entity_type="account",
            entity_id=account_id,
            description=f"Account deleted: {code}",
            details={"code": code},
        )

    @staticmethod
    def balance_set(
        account_id: UUID,
        old_balance: Decimal,
        new_balance: Decimal,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.BALANCE_SET,
            entity_type="account",
            entity_id=account_id,
            description="Balance corrected by hand",
            details={
                "old_balance": str(old_balance),
                "new_balance": str(new_balance),
            },
        )

    @staticmethod
    def expense_posted(
        expense_id: UUID,
        account_id: UUID,
        amount: Decimal,
        expense_date: date,
        balance_after: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.EXPENSE_POSTED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense posted: {amount}",
            details={
                "account_id": str(account_id),
                "amount": str(amount),
                "expense_date": expense_date.isoformat(),
                "balance_after": str(balance_after),
            },
        )

    @staticmethod
    def expense_reversed(
        expense_id: UUID,
        account_id: UUID,
        amount: Decimal,
        balance_after: Decimal,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.EXPENSE_REVERSED,
            entity_type="expense",
            entity_id=expense_id,
            description=f"Expense reversed: {amount}",
            details={
                "account_id": str(account_id),
                "amount": str(amount),
                "balance_after": str(balance_after),
            },
        )

    @staticmethod
    def expense_updated(
        expense_id: UUID,
        old_account_id: UUID,
        new_account_id: UUID,
        old_amount: Decimal,
        new_amount: Decimal,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.EXPENSE_UPDATED,
            entity_type="expense",
            entity_id=expense_id,
            description="Expense updated",
            details={
                "old_account_id": str(old_account_id),
                "new_account_id": str(new_account_id),
                "old_amount": str(old_amount),
                "new_amount": str(new_amount),
            },
        )

    @staticmethod
    def expense_deleted(
        expense_id: UUID,
        account_id: UUID,
        amount: Decimal,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            description=f"Expense deleted: {amount}",
            details={"account_id": str(account_id), "amount": str(amount)},
        )

    @staticmethod
    def posting_rejected(
        account_id: UUID,
        amount: Decimal,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.POSTING_REJECTED,
            severity=LedgerEventSeverity.WARNING,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Posting rejected: {reason}",
            details={"amount": str(amount), "reason": reason},
        )

    @staticmethod
    def compensation_applied(
        step: str,
        entity_id: UUID,
        cause: str,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.COMPENSATION_APPLIED,
            severity=LedgerEventSeverity.WARNING,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Undid step after storage failure: {step}",
            details={"step": step},
            error_message=cause,
        )

    @staticmethod
    def compensation_failed(
        step: str,
        entity_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.COMPENSATION_FAILED,
            severity=LedgerEventSeverity.ERROR,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Could not undo step: {step}",
            details={"step": step},
            error_message=error_message,
        )

    @staticmethod
    def recurrence_run_started(
        template_count: int,
        now: date,
        correlation_id: UUID,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.RECURRENCE_RUN_STARTED,
            correlation_id=correlation_id,
            description=f"Processing {template_count} active templates",
            details={"template_count": template_count, "now": now.isoformat()},
        )

    @staticmethod
    def recurrence_run_finished(
        posted_count: int,
        failed_templates: int,
        correlation_id: UUID,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.RECURRENCE_RUN_FINISHED,
            severity=(
                LedgerEventSeverity.WARNING
                if failed_templates
                else LedgerEventSeverity.INFO
            ),
            correlation_id=correlation_id,
            description=f"Posted {posted_count} recurring expenses",
            details={
                "posted_count": posted_count,
                "failed_templates": failed_templates,
            },
        )

    @staticmethod
    def template_processed(
        template_id: UUID,
        posted_count: int,
        last_processed_date: Optional[date],
        correlation_id: UUID,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TEMPLATE_PROCESSED,
            entity_type="template",
            entity_id=template_id,
            correlation_id=correlation_id,
            description=f"Template caught up: {posted_count} occurrences",
            details={
                "posted_count": posted_count,
                "last_processed_date": (
                    last_processed_date.isoformat() if last_processed_date else None
                ),
            },
        )

    @staticmethod
    def template_failed(
        template_id: UUID,
        occurrence: date,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TEMPLATE_FAILED,
            severity=LedgerEventSeverity.WARNING,
            entity_type="template",
            entity_id=template_id,
            correlation_id=correlation_id,
            description=f"Template halted at {occurrence.isoformat()}: {error_type}",
            details={"occurrence": occurrence.isoformat(), "error_type": error_type},
            error_message=error_message,
        )
