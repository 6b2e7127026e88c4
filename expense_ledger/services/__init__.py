"""Services package."""

from expense_ledger.services.storage import (
    ChangeSet,
    ConnectionError,
    DuplicateError,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)

__all__ = [
    "ChangeSet",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "NotFoundError",
    "StorageError",
]
