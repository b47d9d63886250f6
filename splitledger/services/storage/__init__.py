"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the record store.
The in-memory backend is the reference; Google Sheets is the durable option.
"""

from splitledger.services.storage.interface import (
    ConnectionError,
    DirectoryInterface,
    DuplicateError,
    LedgerStorageInterface,
    RecordNotFoundError,
    StorageError,
)
from splitledger.services.storage.memory import (
    InMemoryDirectory,
    InMemoryLedgerStorage,
    LedgerState,
)
from splitledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interfaces
    "DirectoryInterface",
    "LedgerStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "RecordNotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryDirectory",
    "InMemoryLedgerStorage",
    "LedgerState",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
