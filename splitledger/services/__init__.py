"""Services package."""

from splitledger.services.storage import (
    ConnectionError,
    DirectoryInterface,
    DuplicateError,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryDirectory,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    RecordNotFoundError,
    StorageError,
)

__all__ = [
    # Storage services
    "ConnectionError",
    "DirectoryInterface",
    "DuplicateError",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "InMemoryDirectory",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "RecordNotFoundError",
    "StorageError",
]
