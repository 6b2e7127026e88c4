"""
Recurrence Processor

Materializes due occurrences of recurring templates through the ledger.

GUARANTEES:
- Occurrences of one template are posted strictly oldest first
- Each posting moves the template's last_processed_date in the same
  commit, so a crash between templates leaves nothing half-done
- A failed occurrence halts that template only; the marker stays on the
  last occurrence that succeeded and later dates are not attempted
- Templates on different accounts run concurrently; templates on the
  same account run one after another

Failures are collected into the run report. They never abort the run.
"""

import asyncio
from datetime import date
from typing import Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from expense_ledger.events import LedgerEventLogger, create_correlation_id
from expense_ledger.ledger import (
    AccountLedger,
    LedgerError,
    validate_amount,
    validate_category,
)
from expense_ledger.models.events import LedgerEventBuilder
from expense_ledger.models.ledger import ExpenseCategory
from expense_ledger.models.primitives import AmountInput
from expense_ledger.models.recurring import (
    RecurringExpenseTemplate,
    RecurringFrequency,
    TemplateUpdate,
)
from expense_ledger.scheduling.evaluator import due_occurrences
from expense_ledger.services.storage import NotFoundError, StorageError


class TemplateOutcome(BaseModel):
    """What one run did for one template."""

    template_id: UUID
    account_id: UUID
    posted_expense_ids: list[UUID] = Field(default_factory=list)
    posted_dates: list[date] = Field(default_factory=list)
    last_processed_date: Optional[date] = None

    # Set when the catch-up halted
    failed_occurrence: Optional[date] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error_type is None


class RecurrenceRunReport(BaseModel):
    """Result of one processing run across all active templates."""

    correlation_id: UUID
    run_date: date
    outcomes: list[TemplateOutcome] = Field(default_factory=list)

    @property
    def posted_count(self) -> int:
        return sum(len(o.posted_expense_ids) for o in self.outcomes)

    @property
    def failures(self) -> list[TemplateOutcome]:
        return [o for o in self.outcomes if not o.succeeded]


class RecurrenceProcessor:
    """
    Manages recurring templates and catches them up against the ledger.

    Typically run once when a session starts, and on demand afterwards.
    """

    def __init__(
        self,
        ledger: AccountLedger,
        event_logger: Optional[LedgerEventLogger] = None,
    ):
        self._ledger = ledger
        self._storage = ledger.storage
        self._events = event_logger or LedgerEventLogger()

    # -------------------------------------------------------------------------
    # Template management
    # -------------------------------------------------------------------------

    async def create_template(
        self,
        account_id: UUID,
        amount: AmountInput,
        frequency: RecurringFrequency,
        start_date: date,
        description: str = "",
        category: Union[ExpenseCategory, str] = ExpenseCategory.OTHER,
        end_date: Optional[date] = None,
    ) -> RecurringExpenseTemplate:
        """
        Register a new recurring expense.

        Raises:
            InvalidAmountError: If amount is not a positive two-place decimal
            InvalidCategoryError: If category names no known category
            AccountNotFoundError: If the account doesn't exist
        """
        value = validate_amount(amount)
        template_category = validate_category(category)
        await self._ledger.get_account(account_id)

        template = RecurringExpenseTemplate(
            account_id=account_id,
            amount=value,
            description=description,
            category=template_category,
            frequency=frequency,
            start_date=start_date,
            end_date=end_date,
        )
        return await self._storage.create_template(template)

    async def get_template(self, template_id: UUID) -> RecurringExpenseTemplate:
        template = await self._storage.get_template(template_id)
        if template is None:
            raise NotFoundError(f"Recurring template not found: {template_id}")
        return template

    async def list_templates(
        self, account_id: Optional[UUID] = None
    ) -> list[RecurringExpenseTemplate]:
        return await self._storage.list_templates(account_id=account_id)

    async def update_template(
        self,
        template_id: UUID,
        update: TemplateUpdate,
    ) -> RecurringExpenseTemplate:
        """Apply the fields set on `update`. last_processed_date is kept."""
        template = await self.get_template(template_id)
        values = template.model_dump()
        changes = update.model_dump(exclude_unset=True)
        if changes.get("amount") is not None:
            changes["amount"] = validate_amount(changes["amount"])
        if changes.get("category") is not None:
            changes["category"] = validate_category(changes["category"])
        values.update(changes)
        for required in ("amount", "description", "category", "frequency", "start_date"):
            if values.get(required) is None:
                values[required] = getattr(template, required)
        return await self._storage.update_template(
            RecurringExpenseTemplate(**values)
        )

    async def delete_template(self, template_id: UUID) -> None:
        if not await self._storage.delete_template(template_id):
            raise NotFoundError(f"Recurring template not found: {template_id}")

    # -------------------------------------------------------------------------
    # Processing
    # -------------------------------------------------------------------------

    async def process(self, now: Optional[date] = None) -> RecurrenceRunReport:
        """
        Catch up every active template.

        Args:
            now: Evaluation date. Defaults to today.

        Returns:
            One outcome per active template, in storage order
        """
        now = now or date.today()
        correlation_id = create_correlation_id()

        templates = [
            t for t in await self._storage.list_templates() if t.is_active(now)
        ]
        self._events.log(LedgerEventBuilder.recurrence_run_started(
            template_count=len(templates),
            now=now,
            correlation_id=correlation_id,
        ))

        by_account: dict[UUID, list[RecurringExpenseTemplate]] = {}
        for template in templates:
            by_account.setdefault(template.account_id, []).append(template)

        group_results = await asyncio.gather(*(
            self._process_group(group, now, correlation_id)
            for group in by_account.values()
        ))

        outcomes_by_id = {
            outcome.template_id: outcome
            for outcomes in group_results
            for outcome in outcomes
        }
        report = RecurrenceRunReport(
            correlation_id=correlation_id,
            run_date=now,
            outcomes=[outcomes_by_id[t.id] for t in templates],
        )

        self._events.log(LedgerEventBuilder.recurrence_run_finished(
            posted_count=report.posted_count,
            failed_templates=len(report.failures),
            correlation_id=correlation_id,
        ))
        return report

    async def _process_group(
        self,
        templates: list[RecurringExpenseTemplate],
        now: date,
        correlation_id: UUID,
    ) -> list[TemplateOutcome]:
        outcomes = []
        for template in templates:
            outcomes.append(
                await self.process_template(template, now, correlation_id)
            )
        return outcomes

    async def process_template(
        self,
        template: RecurringExpenseTemplate,
        now: date,
        correlation_id: Optional[UUID] = None,
    ) -> TemplateOutcome:
        """
        Post every due occurrence of one template, oldest first.

        A never-processed template first posts its start date; the loop
        then re-evaluates so the rest of the backlog lands in the same run.
        """
        correlation_id = correlation_id or create_correlation_id()
        outcome = TemplateOutcome(
            template_id=template.id,
            account_id=template.account_id,
            last_processed_date=template.last_processed_date,
        )

        current = template
        due = due_occurrences(current, now)
        while due:
            for occurrence in due:
                try:
                    expense = await self._ledger.post_expense(
                        account_id=current.account_id,
                        amount=current.amount,
                        description=current.description,
                        category=current.category,
                        expense_date=occurrence,
                        is_recurring=True,
                        correlation_id=correlation_id,
                        template=current,
                    )
                except (LedgerError, StorageError) as e:
                    outcome.failed_occurrence = occurrence
                    outcome.error_type = type(e).__name__
                    outcome.error_message = str(e)
                    self._events.log(LedgerEventBuilder.template_failed(
                        template_id=template.id,
                        occurrence=occurrence,
                        error_type=outcome.error_type,
                        error_message=outcome.error_message,
                        correlation_id=correlation_id,
                    ))
                    return outcome

                current = current.model_copy(
                    update={"last_processed_date": occurrence}
                )
                outcome.posted_expense_ids.append(expense.id)
                outcome.posted_dates.append(occurrence)
                outcome.last_processed_date = occurrence
            due = due_occurrences(current, now)

        if outcome.posted_expense_ids:
            self._events.log(LedgerEventBuilder.template_processed(
                template_id=template.id,
                posted_count=len(outcome.posted_expense_ids),
                last_processed_date=outcome.last_processed_date,
                correlation_id=correlation_id,
            ))
        return outcome
