"""
Storage Services Package

Provides the on-device ledger (SQLite through SQLAlchemy) and the remote
store the sync reconciler pushes to (Google Sheets). Business logic only
sees the abstract interfaces.
"""

from trackrise.services.storage.interface import (
    LedgerStoreInterface,
    RemoteConnectionError,
    RemoteError,
    RemoteStoreInterface,
    StorageError,
)
from trackrise.services.storage.sqlite_ledger import SQLiteLedgerStore
from trackrise.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
)

__all__ = [
    # Interfaces
    "LedgerStoreInterface",
    "RemoteStoreInterface",
    # Exceptions
    "RemoteConnectionError",
    "RemoteError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
    "SQLiteLedgerStore",
]
