"""
Abstract Storage Interfaces

Two storage boundaries exist:

1. LedgerStoreInterface - the on-device ledger, single source of truth
   for transactions, categories and the settings singleton.
2. RemoteStoreInterface - the cloud copy the sync reconciler pushes to
   and pulls from. Treated as a black box with idempotent upserts.

Business logic depends only on these interfaces, so tests run against
fakes and the concrete backends can be swapped.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Optional

from trackrise.models.transaction import (
    AppSettings,
    Category,
    LedgerSummary,
    RemoteTransactionRecord,
    Transaction,
    TransactionFilter,
    TransactionType,
)


class LedgerStoreInterface(ABC):
    """
    Abstract interface for the local transaction ledger.

    Every mutating call is durable before it returns.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create the schema and seed reference data. Safe to call repeatedly."""
        pass

    @abstractmethod
    async def insert(self, transaction: Transaction) -> Transaction:
        """
        Insert a transaction.

        Inserting an id that already exists is a successful no-op that
        returns the stored row.

        Raises:
            ValidationError: amount, description, currency or category invalid
            StorageError: the database write failed
        """
        pass

    @abstractmethod
    async def get(self, transaction_id: str) -> Optional[Transaction]:
        """Fetch a single transaction by id."""
        pass

    @abstractmethod
    async def query(
        self,
        limit: int = 50,
        offset: int = 0,
        filters: Optional[TransactionFilter] = None,
    ) -> list[Transaction]:
        """
        Page through transactions, newest business date first.

        Ties on ``date`` are broken by ``created_at`` (newest first), so
        consecutive pages never overlap or skip rows.
        """
        pass

    @abstractmethod
    async def list_unsynced(self) -> list[Transaction]:
        """All committed transactions not yet accepted by the remote store."""
        pass

    @abstractmethod
    async def mark_synced(self, transaction_id: str) -> bool:
        """
        Mark a transaction as synced.

        Idempotent. Returns True only if the row changed state.
        """
        pass

    @abstractmethod
    async def summary(self, start_date: date, end_date: date) -> LedgerSummary:
        """Income and expense totals over the inclusive day range."""
        pass

    @abstractmethod
    async def get_settings(self) -> AppSettings:
        pass

    @abstractmethod
    async def put_settings(self, settings: AppSettings) -> AppSettings:
        """Replace the settings record as a whole."""
        pass

    @abstractmethod
    async def list_categories(
        self,
        transaction_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        """Categories ordered by name, optionally only those of one type."""
        pass

    @abstractmethod
    async def get_category(self, category_id: str) -> Optional[Category]:
        pass


class RemoteStoreInterface(ABC):
    """
    Abstract interface for the remote (cloud) transaction store.

    REQUIRED PROPERTY: ``upsert`` is idempotent on ``record.id``. Pushing
    the same record twice overwrites, it never duplicates.
    """

    @abstractmethod
    async def upsert(self, record: RemoteTransactionRecord) -> None:
        """
        Insert or overwrite a record keyed by its id.

        Raises:
            RemoteError: the remote store did not accept the record
        """
        pass

    @abstractmethod
    async def fetch_delta(
        self,
        since: Optional[datetime] = None,
    ) -> list[RemoteTransactionRecord]:
        """
        Records the remote accepted after ``since`` (all records when None).

        Raises:
            RemoteError: the remote store could not be read
        """
        pass


class StorageError(Exception):
    """Base exception for local storage operations."""
    pass


class RemoteError(Exception):
    """Base exception for remote store operations."""
    pass


class RemoteConnectionError(RemoteError):
    """Could not connect to the remote store."""
    pass
