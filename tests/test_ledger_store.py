"""Tests for the SQLite ledger store."""

import asyncio
import pytest
from datetime import date, datetime
from decimal import Decimal

from trackrise.models.transaction import (
    AppSettings,
    EntryMethod,
    SyncStatus,
    Theme,
    TransactionFilter,
    TransactionType,
)
from trackrise.services.storage import SQLiteLedgerStore
from trackrise.services.storage.database import create_ledger_engine
from trackrise.validation import ValidationError

from tests.conftest import make_transaction


class TestInitialization:

    def test_seeds_categories(self, ledger):
        categories = asyncio.run(ledger.list_categories())
        assert len(categories) == 10
        assert [c.name for c in categories] == sorted(c.name for c in categories)

    def test_filter_categories_by_type(self, ledger):
        income = asyncio.run(ledger.list_categories(TransactionType.INCOME))
        assert {c.id for c in income} == {"sales", "services", "loans", "other_income"}

    def test_initialize_is_idempotent(self, ledger):
        asyncio.run(ledger.initialize())
        assert len(asyncio.run(ledger.list_categories())) == 10

    def test_get_category(self, ledger):
        category = asyncio.run(ledger.get_category("utilities"))
        assert category.name == "Utilities"
        assert category.color == "#FF0000"
        assert asyncio.run(ledger.get_category("nope")) is None

    def test_in_memory_database(self):
        store = SQLiteLedgerStore(engine=create_ledger_engine("sqlite://"))

        async def run():
            await store.initialize()
            await store.insert(make_transaction())
            return await store.query()

        assert len(asyncio.run(run())) == 1
        store.dispose()


class TestInsert:

    def test_insert_and_get(self, ledger):
        transaction = make_transaction()
        saved = asyncio.run(ledger.insert(transaction))
        fetched = asyncio.run(ledger.get(transaction.id))

        assert saved.id == transaction.id
        assert fetched.amount == Decimal("500.00")
        assert fetched.type == TransactionType.EXPENSE
        assert fetched.entry_method == EntryMethod.MANUAL
        assert fetched.sync_status == SyncStatus.PENDING
        assert fetched.date == transaction.date

    def test_duplicate_id_is_a_noop(self, ledger):
        """Test idempotent insert: the stored row wins and no second row appears."""
        original = make_transaction(description="First")
        asyncio.run(ledger.insert(original))

        retry = original.model_copy(update={"description": "Second"})
        stored = asyncio.run(ledger.insert(retry))

        assert stored.description == "First"
        assert len(asyncio.run(ledger.query())) == 1

    @pytest.mark.parametrize("overrides, field", [
        ({"amount": Decimal("0.00")}, "amount"),
        ({"description": " "}, "description"),
        ({"category": "gifts"}, "category"),
        ({"type": TransactionType.INCOME, "category": "rent"}, "category"),
        ({"currency_code": "XYZ"}, "currency_code"),
        ({"image_path": "/tmp/r.jpg"}, "image_path"),
    ])
    def test_invalid_rows_rejected(self, ledger, overrides, field):
        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(ledger.insert(make_transaction(**overrides)))

        assert field in [issue.field for issue in exc_info.value.issues]
        assert asyncio.run(ledger.query()) == []

    def test_photo_entry_keeps_image_path(self, ledger):
        transaction = make_transaction(
            entry_method=EntryMethod.PHOTO,
            image_path="/data/receipts/receipt_1.jpg",
        )
        asyncio.run(ledger.insert(transaction))
        assert asyncio.run(ledger.get(transaction.id)).image_path == "/data/receipts/receipt_1.jpg"

    def test_concurrent_inserts(self, ledger):
        transactions = [make_transaction(description=f"Entry {i}") for i in range(20)]

        async def run():
            await asyncio.gather(*[ledger.insert(t) for t in transactions])

        asyncio.run(run())
        assert len(asyncio.run(ledger.query(limit=100))) == 20


class TestQuery:

    def _seed(self, ledger):
        rows = [
            make_transaction(description="a", date=datetime(2024, 3, 1, 8, 0)),
            make_transaction(
                description="b",
                date=datetime(2024, 3, 2, 8, 0),
                created_at=datetime(2024, 3, 2, 8, 5),
                updated_at=datetime(2024, 3, 2, 8, 5),
            ),
            make_transaction(
                description="c",
                date=datetime(2024, 3, 2, 8, 0),
                created_at=datetime(2024, 3, 2, 9, 30),
                updated_at=datetime(2024, 3, 2, 9, 30),
            ),
            make_transaction(
                description="d",
                date=datetime(2024, 3, 3, 23, 59),
                type=TransactionType.INCOME,
                category="sales",
            ),
            make_transaction(description="e", date=datetime(2024, 3, 5, 0, 0)),
        ]
        for row in rows:
            asyncio.run(ledger.insert(row))
        return rows

    def test_newest_first(self, ledger):
        self._seed(ledger)
        results = asyncio.run(ledger.query())
        dates = [t.date for t in results]
        assert dates == sorted(dates, reverse=True)

    def test_same_date_ordered_by_created_at(self, ledger):
        """Test the tie-break on equal business dates: newest recorded first."""
        self._seed(ledger)
        results = asyncio.run(ledger.query())
        same_day = [t.description for t in results if t.date == datetime(2024, 3, 2, 8, 0)]
        assert same_day == ["c", "b"]

    def test_pages_do_not_overlap(self, ledger):
        """Test pagination stability: concatenated pages equal the full listing."""
        self._seed(ledger)
        full = asyncio.run(ledger.query(limit=10))
        pages = []
        for offset in range(0, 5, 2):
            pages.extend(asyncio.run(ledger.query(limit=2, offset=offset)))

        assert [t.id for t in pages] == [t.id for t in full]

    def test_short_page_only_when_exhausted(self, ledger):
        self._seed(ledger)
        assert len(asyncio.run(ledger.query(limit=3, offset=0))) == 3
        assert len(asyncio.run(ledger.query(limit=3, offset=3))) == 2
        assert asyncio.run(ledger.query(limit=3, offset=6)) == []

    def test_non_positive_limit_returns_nothing(self, ledger):
        self._seed(ledger)
        assert asyncio.run(ledger.query(limit=0)) == []

    def test_negative_offset_rejected(self, ledger):
        with pytest.raises(ValueError):
            asyncio.run(ledger.query(offset=-1))

    def test_filter_by_type(self, ledger):
        self._seed(ledger)
        results = asyncio.run(ledger.query(filters=TransactionFilter(type=TransactionType.INCOME)))
        assert [t.description for t in results] == ["d"]

    def test_date_filter_is_inclusive_of_whole_days(self, ledger):
        self._seed(ledger)
        results = asyncio.run(ledger.query(filters=TransactionFilter(
            date_from=date(2024, 3, 2),
            date_to=date(2024, 3, 3),
        )))
        assert sorted(t.description for t in results) == ["b", "c", "d"]


class TestSyncFlags:

    def test_list_unsynced_and_mark(self, ledger):
        first = make_transaction()
        second = make_transaction()
        asyncio.run(ledger.insert(first))
        asyncio.run(ledger.insert(second))

        assert {t.id for t in asyncio.run(ledger.list_unsynced())} == {first.id, second.id}

        assert asyncio.run(ledger.mark_synced(first.id)) is True
        assert [t.id for t in asyncio.run(ledger.list_unsynced())] == [second.id]
        assert asyncio.run(ledger.get(first.id)).synced is True

    def test_mark_synced_is_idempotent(self, ledger):
        transaction = make_transaction()
        asyncio.run(ledger.insert(transaction))

        assert asyncio.run(ledger.mark_synced(transaction.id)) is True
        assert asyncio.run(ledger.mark_synced(transaction.id)) is False

    def test_mark_synced_unknown_id(self, ledger):
        assert asyncio.run(ledger.mark_synced("txn_missing")) is False


class TestSummary:

    def test_totals_by_type_over_inclusive_range(self, ledger):
        asyncio.run(ledger.insert(make_transaction(
            amount=Decimal("1000.00"), type=TransactionType.INCOME, category="sales",
            date=datetime(2024, 3, 1, 0, 0),
        )))
        asyncio.run(ledger.insert(make_transaction(
            amount=Decimal("250.50"), date=datetime(2024, 3, 7, 23, 59, 59),
        )))
        asyncio.run(ledger.insert(make_transaction(
            amount=Decimal("99.00"), date=datetime(2024, 3, 8, 0, 0),
        )))

        summary = asyncio.run(ledger.summary(date(2024, 3, 1), date(2024, 3, 7)))
        assert summary.total_income == Decimal("1000.00")
        assert summary.total_expenses == Decimal("250.50")

    def test_empty_range_is_zero(self, ledger):
        summary = asyncio.run(ledger.summary(date(2024, 1, 1), date(2024, 1, 31)))
        assert summary.total_income == Decimal("0")
        assert summary.total_expenses == Decimal("0")

    def test_inverted_range_is_zero(self, ledger):
        asyncio.run(ledger.insert(make_transaction(date=datetime(2024, 3, 5))))
        summary = asyncio.run(ledger.summary(date(2024, 3, 10), date(2024, 3, 1)))
        assert summary.total_expenses == Decimal("0")


class TestSettings:

    def test_defaults_after_initialize(self, ledger):
        assert asyncio.run(ledger.get_settings()) == AppSettings()

    def test_read_your_write(self, ledger):
        updated = AppSettings(default_currency="UGX", theme=Theme.DARK, sync_only_on_wifi=False)
        asyncio.run(ledger.put_settings(updated))
        assert asyncio.run(ledger.get_settings()) == updated

    def test_last_writer_wins(self, ledger):
        asyncio.run(ledger.put_settings(AppSettings(language="sw")))
        asyncio.run(ledger.put_settings(AppSettings(language="fr")))
        assert asyncio.run(ledger.get_settings()).language == "fr"
