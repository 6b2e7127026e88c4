"""
Storage Services Package

Provides the abstract ledger storage interface and two implementations:
an in-memory transactional store and a Google Sheets store.
"""

from expense_ledger.services.storage.interface import (
    ChangeSet,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    OperationKind,
    RecordType,
    StorageError,
    StorageOperation,
)
from expense_ledger.services.storage.memory import InMemoryLedgerStorage
from expense_ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interface
    "ChangeSet",
    "LedgerStorageInterface",
    "OperationKind",
    "RecordType",
    "StorageOperation",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "InMemoryLedgerStorage",
]
