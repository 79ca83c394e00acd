"""
SQLite Ledger Store

The on-device implementation of LedgerStoreInterface, built on the
SQLAlchemy ORM.

CONCURRENCY:
- Writes (insert, mark_synced, put_settings, initialize) are serialized
  by a single store-level lock.
- Reads take no lock. SQLite's WAL journal lets them observe only
  committed rows, so a sync pass never sees an insert that is still in
  flight.
- All database work runs in worker threads so the event loop (capture
  flow, sync pushes) never blocks on disk I/O.
"""

import asyncio
import threading
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Callable, Optional, TypeVar

import structlog
from sqlalchemy import Engine, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from trackrise.config import get_settings
from trackrise.models.transaction import (
    DEFAULT_CATEGORIES,
    AppSettings,
    Category,
    LedgerSummary,
    SyncStatus,
    Transaction,
    TransactionFilter,
    TransactionType,
)
from trackrise.services.storage.database import create_ledger_engine, create_session_factory
from trackrise.services.storage.interface import LedgerStoreInterface, StorageError
from trackrise.services.storage.tables import (
    SETTINGS_ROW_ID,
    Base,
    CategoryRow,
    SettingsRow,
    TransactionRow,
)
from trackrise.validation import TransactionValidator

T = TypeVar("T")

logger = structlog.get_logger(__name__)


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min)


def _day_after(day: date) -> datetime:
    return datetime.combine(day + timedelta(days=1), time.min)


class SQLiteLedgerStore(LedgerStoreInterface):
    """
    Ledger store backed by a SQLite database file.

    Call ``initialize()`` once before use.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        engine: Optional[Engine] = None,
        validator: Optional[TransactionValidator] = None,
    ):
        if engine is None:
            settings = get_settings()
            engine = create_ledger_engine(
                database_url or settings.storage.database_url,
                echo=settings.runtime.debug_mode,
            )
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        self._validator = validator or TransactionValidator()
        self._write_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    async def _run(self, fn: Callable[..., T], *args) -> T:
        return await asyncio.to_thread(fn, *args)

    def _read(self, fn: Callable[[Session], T]) -> T:
        try:
            with self._session_factory() as session:
                return fn(session)
        except SQLAlchemyError as e:
            raise StorageError(f"Ledger read failed: {e}") from e

    def _write(self, fn: Callable[[Session], T]) -> T:
        with self._write_lock:
            try:
                with self._session_factory() as session:
                    result = fn(session)
                    session.commit()
                    return result
            except IntegrityError:
                raise
            except SQLAlchemyError as e:
                raise StorageError(f"Ledger write failed: {e}") from e

    @staticmethod
    def _to_transaction(row: TransactionRow) -> Transaction:
        return Transaction(
            id=row.id,
            amount=Decimal(row.amount).quantize(Decimal("0.01")),
            currency_code=row.currency_code,
            type=row.type,
            category=row.category,
            description=row.description,
            date=row.date,
            created_at=row.created_at,
            updated_at=row.updated_at,
            entry_method=row.entry_method,
            image_path=row.image_path,
            sync_status=row.sync_status,
        )

    @staticmethod
    def _to_category(row: CategoryRow) -> Category:
        return Category(
            id=row.id,
            name=row.name,
            icon=row.icon,
            type=row.type,
            color=row.color,
        )

    # -------------------------------------------------------------------------
    # Schema
    # -------------------------------------------------------------------------

    def _initialize(self) -> None:
        Base.metadata.create_all(bind=self._engine)

        def seed(session: Session) -> int:
            existing = set(session.scalars(select(CategoryRow.id)))
            added = 0
            for category in DEFAULT_CATEGORIES:
                if category.id not in existing:
                    session.add(CategoryRow(**category.model_dump()))
                    added += 1

            if session.get(SettingsRow, SETTINGS_ROW_ID) is None:
                session.add(SettingsRow(id=SETTINGS_ROW_ID, **AppSettings().model_dump()))
            return added

        added = self._write(seed)
        logger.info("ledger_initialized", seeded_categories=added)

    async def initialize(self) -> None:
        await self._run(self._initialize)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def _insert(self, transaction: Transaction) -> Transaction:
        def do_insert(session: Session) -> Transaction:
            existing = session.get(TransactionRow, transaction.id)
            if existing is not None:
                logger.debug("duplicate_insert_ignored", transaction_id=transaction.id)
                return self._to_transaction(existing)

            category_row = session.get(CategoryRow, transaction.category)
            category = self._to_category(category_row) if category_row else None
            self._validator.ensure_valid(transaction, category)

            session.add(TransactionRow(**transaction.model_dump()))
            return transaction

        try:
            return self._write(do_insert)
        except IntegrityError:
            # Another connection committed the same id first
            stored = self._get(transaction.id)
            if stored is None:
                raise StorageError(f"Could not insert transaction {transaction.id}")
            return stored

    async def insert(self, transaction: Transaction) -> Transaction:
        return await self._run(self._insert, transaction)

    def _get(self, transaction_id: str) -> Optional[Transaction]:
        def do_get(session: Session) -> Optional[Transaction]:
            row = session.get(TransactionRow, transaction_id)
            return self._to_transaction(row) if row else None

        return self._read(do_get)

    async def get(self, transaction_id: str) -> Optional[Transaction]:
        return await self._run(self._get, transaction_id)

    def _query(
        self,
        limit: int,
        offset: int,
        filters: Optional[TransactionFilter],
    ) -> list[Transaction]:
        if offset < 0:
            raise ValueError("offset must not be negative")
        if limit <= 0:
            return []

        stmt = select(TransactionRow)
        if filters is not None:
            if filters.type is not None:
                stmt = stmt.where(TransactionRow.type == filters.type)
            if filters.date_from is not None:
                stmt = stmt.where(TransactionRow.date >= _day_start(filters.date_from))
            if filters.date_to is not None:
                stmt = stmt.where(TransactionRow.date < _day_after(filters.date_to))

        stmt = (
            stmt.order_by(
                TransactionRow.date.desc(),
                TransactionRow.created_at.desc(),
                TransactionRow.id.desc(),
            )
            .limit(limit)
            .offset(offset)
        )

        return self._read(
            lambda session: [self._to_transaction(row) for row in session.scalars(stmt)]
        )

    async def query(
        self,
        limit: int = 50,
        offset: int = 0,
        filters: Optional[TransactionFilter] = None,
    ) -> list[Transaction]:
        return await self._run(self._query, limit, offset, filters)

    def _list_unsynced(self) -> list[Transaction]:
        stmt = (
            select(TransactionRow)
            .where(TransactionRow.sync_status == SyncStatus.PENDING)
            .order_by(TransactionRow.created_at)
        )
        return self._read(
            lambda session: [self._to_transaction(row) for row in session.scalars(stmt)]
        )

    async def list_unsynced(self) -> list[Transaction]:
        return await self._run(self._list_unsynced)

    def _mark_synced(self, transaction_id: str) -> bool:
        def do_mark(session: Session) -> bool:
            row = session.get(TransactionRow, transaction_id)
            if row is None or row.sync_status == SyncStatus.SYNCED:
                return False
            row.sync_status = SyncStatus.SYNCED
            return True

        return self._write(do_mark)

    async def mark_synced(self, transaction_id: str) -> bool:
        return await self._run(self._mark_synced, transaction_id)

    def _summary(self, start_date: date, end_date: date) -> LedgerSummary:
        stmt = (
            select(TransactionRow.type, func.sum(TransactionRow.amount))
            .where(TransactionRow.date >= _day_start(start_date))
            .where(TransactionRow.date < _day_after(end_date))
            .group_by(TransactionRow.type)
        )

        totals = {
            TransactionType.INCOME: Decimal("0"),
            TransactionType.EXPENSE: Decimal("0"),
        }
        if end_date >= start_date:
            for transaction_type, total in self._read(lambda session: session.execute(stmt).all()):
                if total is not None:
                    totals[transaction_type] = Decimal(str(total)).quantize(Decimal("0.01"))

        return LedgerSummary(
            total_income=totals[TransactionType.INCOME],
            total_expenses=totals[TransactionType.EXPENSE],
        )

    async def summary(self, start_date: date, end_date: date) -> LedgerSummary:
        return await self._run(self._summary, start_date, end_date)

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def _get_settings(self) -> AppSettings:
        def do_get(session: Session) -> AppSettings:
            row = session.get(SettingsRow, SETTINGS_ROW_ID)
            if row is None:
                return AppSettings()
            return AppSettings(
                default_currency=row.default_currency,
                language=row.language,
                theme=row.theme,
                notifications=row.notifications,
                auto_sync=row.auto_sync,
                sync_only_on_wifi=row.sync_only_on_wifi,
            )

        return self._read(do_get)

    async def get_settings(self) -> AppSettings:
        return await self._run(self._get_settings)

    def _put_settings(self, settings: AppSettings) -> AppSettings:
        def do_put(session: Session) -> AppSettings:
            session.merge(SettingsRow(id=SETTINGS_ROW_ID, **settings.model_dump()))
            return settings

        return self._write(do_put)

    async def put_settings(self, settings: AppSettings) -> AppSettings:
        return await self._run(self._put_settings, settings)

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    def _list_categories(self, transaction_type: Optional[TransactionType]) -> list[Category]:
        stmt = select(CategoryRow).order_by(CategoryRow.name)
        if transaction_type is not None:
            stmt = stmt.where(CategoryRow.type == transaction_type)
        return self._read(
            lambda session: [self._to_category(row) for row in session.scalars(stmt)]
        )

    async def list_categories(
        self,
        transaction_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        return await self._run(self._list_categories, transaction_type)

    def _get_category(self, category_id: str) -> Optional[Category]:
        def do_get(session: Session) -> Optional[Category]:
            row = session.get(CategoryRow, category_id)
            return self._to_category(row) if row else None

        return self._read(do_get)

    async def get_category(self, category_id: str) -> Optional[Category]:
        return await self._run(self._get_category, category_id)

    def dispose(self) -> None:
        """Close pooled connections."""
        self._engine.dispose()
