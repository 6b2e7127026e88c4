"""
Account Ledger

The AccountLedger is the only component that changes account balances.

GUARANTEES:
- A posting never takes an account below zero
- An expense and its balance change are committed together
- An update is validated against the post-reversal balance before
  anything is written, so a rejected update leaves no trace
- Operations on one account are serialized; different accounts proceed
  independently

On stores without transactions the ledger applies a change set step by
step and undoes the applied steps if a later one fails. The undo is
best-effort and logged; the caller always sees a StorageError.
"""

import asyncio
from collections import defaultdict
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional, Union
from uuid import UUID

from expense_ledger.events import LedgerEventLogger
from expense_ledger.ledger.errors import (
    AccountHasExpensesError,
    AccountNotFoundError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidCategoryError,
    LedgerError,
)
from expense_ledger.models.events import LedgerEventBuilder
from expense_ledger.models.ledger import (
    Account,
    Expense,
    ExpenseCategory,
    ExpenseRequest,
    ExpenseUpdate,
    PostingResult,
)
from expense_ledger.models.recurring import RecurringExpenseTemplate
from expense_ledger.models.primitives import (
    ZERO,
    AmountInput,
    MoneyFormatError,
    to_money,
)
from expense_ledger.services.storage import (
    ChangeSet,
    LedgerStorageInterface,
    NotFoundError,
    RecordType,
    StorageError,
)


def validate_amount(value: AmountInput) -> Decimal:
    """Return value as a positive two-place Decimal or raise InvalidAmountError."""
    try:
        amount = to_money(value)
    except MoneyFormatError as e:
        raise InvalidAmountError(str(e))
    if amount <= 0:
        raise InvalidAmountError(f"Amount must be greater than zero: {amount}")
    return amount


def validate_category(value: Union[ExpenseCategory, str]) -> ExpenseCategory:
    try:
        return ExpenseCategory.parse(value)
    except ValueError as e:
        raise InvalidCategoryError(str(e))


class AccountLedger:
    """
    Owns account balances and the rules for changing them.

    One instance is built per session by the application factory and
    shared by every component that posts expenses.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        event_logger: Optional[LedgerEventLogger] = None,
    ):
        self._storage = storage
        self._events = event_logger or LedgerEventLogger()
        self._locks: dict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def storage(self) -> LedgerStorageInterface:
        return self._storage

    @asynccontextmanager
    async def _locked(self, *account_ids: UUID):
        """Hold the locks of every given account, always taken in id order."""
        async with AsyncExitStack() as stack:
            for account_id in sorted(set(account_ids), key=str):
                await stack.enter_async_context(self._locks[account_id])
            yield

    @asynccontextmanager
    async def _locked_expense(self, expense_id: UUID, *other_account_ids: UUID):
        """
        Lock the account that owns an expense and yield the expense as
        read under that lock.

        The owner is looked up before locking, so it is checked again once
        the lock is held; if the expense moved meanwhile, start over.
        """
        while True:
            seen = await self._storage.get_expense(expense_id)
            if seen is None:
                raise NotFoundError(f"Expense not found: {expense_id}")

            async with self._locked(seen.account_id, *other_account_ids):
                current = await self._storage.get_expense(expense_id)
                if current is None:
                    raise NotFoundError(f"Expense not found: {expense_id}")
                if current.account_id == seen.account_id:
                    yield current
                    return

    async def _require_account(self, account_id: UUID) -> Account:
        account = await self._storage.get_account(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    async def _commit(
        self,
        changes: ChangeSet,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        if self._storage.supports_transactions:
            await self._storage.commit(changes)
        else:
            await self._apply_with_compensation(changes, correlation_id)

    async def _apply_with_compensation(
        self,
        changes: ChangeSet,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        applied = []
        for operation in changes.operations:
            try:
                await self._storage.apply(operation)
            except Exception as e:
                await self._compensate(applied, cause=e, correlation_id=correlation_id)
                if isinstance(e, StorageError):
                    raise
                raise StorageError(f"Failed to {operation.describe()}: {e}") from e
            applied.append(operation)

    async def _compensate(
        self,
        applied: list,
        cause: Exception,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        for operation in reversed(applied):
            undo = operation.inverse()
            try:
                await self._storage.apply(undo)
            except Exception as e:
                self._events.log(LedgerEventBuilder.compensation_failed(
                    step=operation.describe(),
                    entity_id=operation.record_id,
                    error_message=str(e),
                    correlation_id=correlation_id,
                ))
            else:
                self._events.log(LedgerEventBuilder.compensation_applied(
                    step=operation.describe(),
                    entity_id=operation.record_id,
                    cause=str(cause),
                    correlation_id=correlation_id,
                ))

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def create_account(
        self,
        name: str,
        code: str,
        balance: AmountInput = ZERO,
    ) -> Account:
        """
        Open a new account.

        Raises:
            InvalidAmountError: If the opening balance isn't a valid amount
            DuplicateError: If the code is already used by another account
        """
        try:
            opening = to_money(balance)
        except MoneyFormatError as e:
            raise InvalidAmountError(str(e))

        account = await self._storage.create_account(
            Account(name=name, code=code, balance=opening)
        )
        self._events.log(LedgerEventBuilder.account_created(
            account_id=account.id, code=account.code, balance=account.balance,
        ))
        return account

    async def get_account(self, account_id: UUID) -> Account:
        return await self._require_account(account_id)

    async def get_account_by_code(self, code: str) -> Optional[Account]:
        return await self._storage.get_account_by_code(code)

    async def list_accounts(self) -> list[Account]:
        return await self._storage.list_accounts()

    async def update_account(
        self,
        account_id: UUID,
        name: Optional[str] = None,
        code: Optional[str] = None,
    ) -> Account:
        """Rename an account or change its code. The balance is untouched."""
        async with self._locked(account_id):
            account = await self._require_account(account_id)
            values = account.model_dump()
            if name is not None:
                values["name"] = name
            if code is not None:
                values["code"] = code
            updated = await self._storage.update_account(Account(**values))

        self._events.log(LedgerEventBuilder.account_updated(updated.id, updated.code))
        return updated

    async def set_balance(self, account_id: UUID, new_balance: AmountInput) -> Account:
        """
        Replace an account's balance by hand.

        This is a calibration, not a transaction: there is no funds check
        and the new balance may be zero or negative.
        """
        try:
            balance = to_money(new_balance)
        except MoneyFormatError as e:
            raise InvalidAmountError(str(e))

        async with self._locked(account_id):
            account = await self._require_account(account_id)
            old_balance = account.balance
            account.balance = balance
            updated = await self._storage.update_account(account)

        self._events.log(LedgerEventBuilder.balance_set(
            account_id=account_id, old_balance=old_balance, new_balance=balance,
        ))
        return updated

    async def delete_account(self, account_id: UUID) -> None:
        """
        Delete an account that has no expenses.

        Raises:
            AccountNotFoundError: If the account doesn't exist
            AccountHasExpensesError: If any expense still references it
        """
        async with self._locked(account_id):
            account = await self._require_account(account_id)
            expense_count = await self._storage.count_expenses(account_id)
            if expense_count:
                raise AccountHasExpensesError(account_id, expense_count)
            await self._storage.delete_account(account_id)

        self._events.log(LedgerEventBuilder.account_deleted(account.id, account.code))

    async def ensure_default_account(self, name: str, code: str) -> Optional[Account]:
        """Create the default account when the store holds none."""
        if await self._storage.list_accounts():
            return None
        return await self.create_account(name=name, code=code)

    # -------------------------------------------------------------------------
    # Postings
    # -------------------------------------------------------------------------

    async def post_expense(
        self,
        account_id: UUID,
        amount: AmountInput,
        description: str = "",
        category: Union[ExpenseCategory, str] = ExpenseCategory.OTHER,
        expense_date: Optional[date] = None,
        is_recurring: bool = False,
        receipt_url: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
        template: Optional[RecurringExpenseTemplate] = None,
    ) -> Expense:
        """
        Record an expense and draw its amount from the account.

        When `template` is given, its last_processed_date is moved to the
        expense date in the same commit, so an occurrence is never posted
        without its marker advancing (or the other way round).

        Raises:
            InvalidAmountError: If amount is not a positive two-place decimal
            InvalidCategoryError: If category names no known category
            AccountNotFoundError: If the account doesn't exist
            InsufficientFundsError: If amount exceeds the account balance
            StorageError: If the store fails; nothing is left half-written
        """
        value = validate_amount(amount)
        expense_category = validate_category(category)

        async with self._locked(account_id):
            account = await self._require_account(account_id)
            if value > account.balance:
                self._events.log(LedgerEventBuilder.posting_rejected(
                    account_id=account_id,
                    amount=value,
                    reason="insufficient_funds",
                    correlation_id=correlation_id,
                ))
                raise InsufficientFundsError(account_id, account.balance, value)

            expense = Expense(
                account_id=account_id,
                amount=value,
                description=description,
                category=expense_category,
                expense_date=expense_date or date.today(),
                is_recurring=is_recurring,
                receipt_url=receipt_url,
            )
            debited = account.model_copy(update={"balance": account.balance - value})

            change_set = (
                ChangeSet()
                .create(RecordType.EXPENSE, expense)
                .update(RecordType.ACCOUNT, debited, previous=account)
            )
            if template is not None:
                change_set.update(
                    RecordType.TEMPLATE,
                    template.model_copy(
                        update={"last_processed_date": expense.expense_date}
                    ),
                    previous=template,
                )
            await self._commit(change_set, correlation_id)

        self._events.log(LedgerEventBuilder.expense_posted(
            expense_id=expense.id,
            account_id=account_id,
            amount=value,
            expense_date=expense.expense_date,
            balance_after=debited.balance,
            correlation_id=correlation_id,
        ))
        return expense

    async def post_request(self, request: ExpenseRequest) -> Expense:
        return await self.post_expense(
            account_id=request.account_id,
            amount=request.amount,
            description=request.description,
            category=request.category,
            expense_date=request.expense_date,
            is_recurring=request.is_recurring,
            receipt_url=request.receipt_url,
        )

    async def post_expenses(
        self, requests: Iterable[ExpenseRequest]
    ) -> list[PostingResult]:
        """
        Post a batch of requests in order (e.g., rows from a CSV import).

        A rejected request is reported and the batch continues.
        """
        results = []
        for request in requests:
            try:
                expense = await self.post_request(request)
            except (LedgerError, StorageError) as e:
                results.append(PostingResult(
                    request=request,
                    error=str(e),
                    error_type=type(e).__name__,
                ))
            else:
                results.append(PostingResult(request=request, expense=expense))
        return results

    async def reverse_expense(self, expense: Expense) -> Account:
        """
        Undo a posting: give the amount back and drop the expense.

        Returns the owning account with its restored balance.
        """
        async with self._locked_expense(expense.id) as stored:
            account = await self._require_account(stored.account_id)
            credited = account.model_copy(
                update={"balance": account.balance + stored.amount}
            )

            await self._commit(
                ChangeSet()
                .update(RecordType.ACCOUNT, credited, previous=account)
                .delete(RecordType.EXPENSE, stored)
            )

        self._events.log(LedgerEventBuilder.expense_reversed(
            expense_id=stored.id,
            account_id=stored.account_id,
            amount=stored.amount,
            balance_after=credited.balance,
        ))
        return credited

    async def delete_expense(self, expense_id: UUID) -> Account:
        """Delete an expense and restore its amount to the account."""
        expense = await self._storage.get_expense(expense_id)
        if expense is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        account = await self.reverse_expense(expense)
        self._events.log(LedgerEventBuilder.expense_deleted(
            expense_id=expense.id,
            account_id=expense.account_id,
            amount=expense.amount,
        ))
        return account

    async def update_expense(self, expense_id: UUID, update: ExpenseUpdate) -> Expense:
        """
        Change an expense, re-posting it if its amount or account changes.

        The new amount is checked against the target balance as it would be
        after the old posting is reversed. Both sides are then written in
        one change set, so a rejected update changes nothing.

        Raises:
            NotFoundError: If the expense doesn't exist
            AccountNotFoundError: If the target account doesn't exist
            InsufficientFundsError: If the target can't cover the new amount
            ValidationError: If the edited expense breaks a field constraint
        """
        changes = update.model_dump(exclude_unset=True)

        if changes.get("amount") is not None:
            changes["amount"] = validate_amount(changes["amount"])
        else:
            changes.pop("amount", None)
        if changes.get("category") is not None:
            changes["category"] = validate_category(changes["category"])
        else:
            changes.pop("category", None)
        for required in ("account_id", "expense_date", "is_recurring", "description"):
            if changes.get(required) is None:
                changes.pop(required, None)
        moving_to = [changes["account_id"]] if "account_id" in changes else []

        async with self._locked_expense(expense_id, *moving_to) as current:
            new_expense = Expense(**{
                **current.model_dump(),
                **changes,
                "updated_at": datetime.utcnow(),
            })
            change_set = ChangeSet()

            if new_expense.account_id == current.account_id:
                if new_expense.amount != current.amount:
                    account = await self._require_account(current.account_id)
                    available = account.balance + current.amount
                    if new_expense.amount > available:
                        raise InsufficientFundsError(
                            account.id, available, new_expense.amount
                        )
                    change_set.update(
                        RecordType.ACCOUNT,
                        account.model_copy(
                            update={"balance": available - new_expense.amount}
                        ),
                        previous=account,
                    )
            else:
                source = await self._require_account(current.account_id)
                target = await self._require_account(new_expense.account_id)
                if new_expense.amount > target.balance:
                    raise InsufficientFundsError(
                        target.id, target.balance, new_expense.amount
                    )
                change_set.update(
                    RecordType.ACCOUNT,
                    source.model_copy(
                        update={"balance": source.balance + current.amount}
                    ),
                    previous=source,
                )
                change_set.update(
                    RecordType.ACCOUNT,
                    target.model_copy(
                        update={"balance": target.balance - new_expense.amount}
                    ),
                    previous=target,
                )

            change_set.update(RecordType.EXPENSE, new_expense, previous=current)
            await self._commit(change_set)

        self._events.log(LedgerEventBuilder.expense_updated(
            expense_id=expense_id,
            old_account_id=current.account_id,
            new_account_id=new_expense.account_id,
            old_amount=current.amount,
            new_amount=new_expense.amount,
        ))
        return new_expense

    # -------------------------------------------------------------------------
    # Read-only queries
    # -------------------------------------------------------------------------

    async def get_expense(self, expense_id: UUID) -> Expense:
        expense = await self._storage.get_expense(expense_id)
        if expense is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        return expense

    async def list_expenses(
        self,
        account_id: Optional[UUID] = None,
        category: Optional[ExpenseCategory] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Expense]:
        return await self._storage.list_expenses(
            account_id=account_id,
            category=category,
            date_from=date_from,
            date_to=date_to,
        )

    async def total_for_account(self, account_id: UUID) -> Decimal:
        expenses = await self._storage.list_expenses(account_id=account_id)
        return sum((e.amount for e in expenses), ZERO)

    async def total_all_accounts(self) -> Decimal:
        expenses = await self._storage.list_expenses()
        return sum((e.amount for e in expenses), ZERO)

    async def totals_by_category(
        self, account_id: Optional[UUID] = None
    ) -> dict[ExpenseCategory, Decimal]:
        """Sum of expenses per category, for one account or all of them."""
        totals: dict[ExpenseCategory, Decimal] = {}
        for expense in await self._storage.list_expenses(account_id=account_id):
            totals[expense.category] = totals.get(expense.category, ZERO) + expense.amount
        return totals
