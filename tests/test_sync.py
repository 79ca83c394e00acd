"""Tests for the sync reconciler and scheduler."""

import asyncio
import pytest
from datetime import datetime, timedelta

from trackrise.config import SyncSettings
from trackrise.models.audit import AuditEventType
from trackrise.models.transaction import AppSettings, RemoteTransactionRecord, SyncStatus
from trackrise.services.connectivity import ConnectionKind
from trackrise.services.storage import RemoteError, StorageError
from trackrise.sync import SyncPassStatus, SyncReconciler, SyncScheduler

from tests.conftest import FakeProbe, FakeRemoteStore, make_transaction

ONLINE = AppSettings(auto_sync=True, sync_only_on_wifi=True)


def make_reconciler(ledger, remote, probe=None, audit_logger=None, max_concurrent_pushes=4):
    return SyncReconciler(
        ledger=ledger,
        remote=remote,
        probe=probe or FakeProbe(),
        settings=SyncSettings(max_concurrent_pushes=max_concurrent_pushes),
        audit_logger=audit_logger,
    )


def seed(ledger, count):
    transactions = [make_transaction(description=f"Entry {i}") for i in range(count)]
    for transaction in transactions:
        asyncio.run(ledger.insert(transaction))
    return transactions


class TestPolicyGate:

    @pytest.mark.parametrize("app_settings, probe, expected", [
        (AppSettings(auto_sync=False), FakeProbe(), SyncPassStatus.BLOCKED_AUTO_SYNC_DISABLED),
        (ONLINE, FakeProbe(connected=False), SyncPassStatus.BLOCKED_OFFLINE),
        (ONLINE, FakeProbe(kind=ConnectionKind.CELLULAR), SyncPassStatus.BLOCKED_WIFI_ONLY),
        (ONLINE, FakeProbe(kind=ConnectionKind.UNKNOWN), SyncPassStatus.BLOCKED_WIFI_ONLY),
        (AppSettings(sync_only_on_wifi=False), FakeProbe(kind=ConnectionKind.CELLULAR), SyncPassStatus.COMPLETED),
        (ONLINE, FakeProbe(), SyncPassStatus.COMPLETED),
    ])
    def test_check_policy(self, ledger, app_settings, probe, expected):
        reconciler = make_reconciler(ledger, FakeRemoteStore(), probe)
        assert asyncio.run(reconciler.check_policy(app_settings)) == expected

    def test_blocked_pass_pushes_nothing(self, ledger, audit_logger):
        seed(ledger, 3)
        remote = FakeRemoteStore()
        reconciler = make_reconciler(ledger, remote, FakeProbe(connected=False), audit_logger)

        report = asyncio.run(reconciler.sync(ONLINE))

        assert report.status == SyncPassStatus.BLOCKED_OFFLINE
        assert not report.completed
        assert report.message == "No internet connection"
        assert remote.upsert_calls == []
        assert len(asyncio.run(ledger.list_unsynced())) == 3
        assert audit_logger.recent_events(1)[0].event_type == AuditEventType.SYNC_BLOCKED


class TestPush:

    def test_pushes_all_pending(self, ledger, audit_logger):
        transactions = seed(ledger, 3)
        remote = FakeRemoteStore()
        reconciler = make_reconciler(ledger, remote, audit_logger=audit_logger)

        report = asyncio.run(reconciler.sync(ONLINE))

        assert report.completed
        assert report.attempted == 3
        assert report.pushed == 3
        assert report.failed_ids == []
        assert report.message == "Synced 3 of 3 transactions"
        assert set(remote.records) == {t.id for t in transactions}
        assert asyncio.run(ledger.list_unsynced()) == []
        assert audit_logger.recent_events(1)[0].event_type == AuditEventType.SYNC_COMPLETED

    def test_remote_record_has_no_image_path(self, ledger):
        seed(ledger, 1)
        remote = FakeRemoteStore()
        asyncio.run(make_reconciler(ledger, remote).sync(ONLINE))

        record = next(iter(remote.records.values()))
        assert isinstance(record, RemoteTransactionRecord)
        assert record.has_image is False

    def test_failed_row_stays_pending(self, ledger, audit_logger):
        """Test that one rejected row neither blocks nor marks the others."""
        first, second, third = seed(ledger, 3)
        remote = FakeRemoteStore(fail_ids={second.id})
        reconciler = make_reconciler(ledger, remote, audit_logger=audit_logger)

        report = asyncio.run(reconciler.sync(ONLINE))

        assert report.pushed == 2
        assert report.failed_ids == [second.id]
        assert [t.id for t in asyncio.run(ledger.list_unsynced())] == [second.id]
        assert asyncio.run(ledger.get(first.id)).sync_status == SyncStatus.SYNCED
        assert AuditEventType.SYNC_ROW_FAILED in [e.event_type for e in audit_logger.recent_events()]

        remote.fail_ids.clear()
        retry = asyncio.run(reconciler.sync(ONLINE))
        assert retry.attempted == 1
        assert retry.pushed == 1

    def test_repeat_pass_is_a_noop(self, ledger):
        seed(ledger, 2)
        remote = FakeRemoteStore()
        reconciler = make_reconciler(ledger, remote)

        asyncio.run(reconciler.sync(ONLINE))
        second = asyncio.run(reconciler.sync(ONLINE))

        assert second.attempted == 0
        assert second.message == "Everything is up to date"
        assert len(remote.upsert_calls) == 2

    def test_concurrency_bound(self, ledger):
        seed(ledger, 10)
        remote = FakeRemoteStore()
        reconciler = make_reconciler(ledger, remote, max_concurrent_pushes=2)

        report = asyncio.run(reconciler.sync(ONLINE))

        assert report.pushed == 10
        assert remote.max_in_flight == 2

    def test_overlapping_passes_do_not_double_push(self, ledger):
        seed(ledger, 4)
        remote = FakeRemoteStore()
        reconciler = make_reconciler(ledger, remote)

        async def run():
            return await asyncio.gather(reconciler.sync(ONLINE), reconciler.sync(ONLINE))

        first, second = asyncio.run(run())

        assert first.pushed + second.pushed == 4
        assert len(remote.upsert_calls) == 4

    def test_run_sync_pass_returns_count(self, ledger):
        seed(ledger, 2)
        reconciler = make_reconciler(ledger, FakeRemoteStore())
        assert asyncio.run(reconciler.run_sync_pass(ONLINE)) == 2

    def test_run_sync_pass_blocked(self, ledger):
        seed(ledger, 2)
        reconciler = make_reconciler(ledger, FakeRemoteStore())
        assert asyncio.run(reconciler.run_sync_pass(AppSettings(auto_sync=False))) == 0


class TestPull:

    def _remote_record(self, pushed_at, updated_at=None, **overrides):
        transaction = make_transaction(
            created_at=datetime(2024, 3, 1, 8, 0),
            updated_at=updated_at or pushed_at - timedelta(minutes=5),
            **overrides,
        )
        return RemoteTransactionRecord.from_transaction(transaction).model_copy(
            update={"pushed_at": pushed_at},
        )

    def test_inserts_remote_records_as_synced(self, ledger, audit_logger):
        remote = FakeRemoteStore()
        older = self._remote_record(datetime(2024, 3, 2, 10, 0))
        newer = self._remote_record(datetime(2024, 3, 3, 10, 0))
        remote.records = {older.id: older, newer.id: newer}
        reconciler = make_reconciler(ledger, remote, audit_logger=audit_logger)

        inserted = asyncio.run(reconciler.fetch_remote_deltas())

        assert inserted == 2
        assert reconciler.remote_cursor == datetime(2024, 3, 3, 10, 0)
        assert asyncio.run(ledger.get(newer.id)).sync_status == SyncStatus.SYNCED
        assert asyncio.run(ledger.list_unsynced()) == []
        assert audit_logger.recent_events(1)[0].event_type == AuditEventType.REMOTE_DELTAS_FETCHED

    def test_cursor_limits_next_fetch(self, ledger):
        remote = FakeRemoteStore()
        first = self._remote_record(datetime(2024, 3, 2, 10, 0))
        remote.records = {first.id: first}
        reconciler = make_reconciler(ledger, remote)

        asyncio.run(reconciler.fetch_remote_deltas())
        later = self._remote_record(datetime(2024, 3, 5, 10, 0))
        remote.records[later.id] = later
        inserted = asyncio.run(reconciler.fetch_remote_deltas())

        assert inserted == 1
        assert remote.fetch_calls == [None, datetime(2024, 3, 2, 10, 0)]

    def test_cursor_ignores_device_clock(self, ledger):
        """Test that a record edited on a fast clock does not hide later pushes."""
        remote = FakeRemoteStore()
        fast_clock = self._remote_record(
            datetime(2024, 3, 2, 10, 0), updated_at=datetime(2024, 3, 9, 10, 0),
        )
        remote.records = {fast_clock.id: fast_clock}
        reconciler = make_reconciler(ledger, remote)

        asyncio.run(reconciler.fetch_remote_deltas())
        assert reconciler.remote_cursor == datetime(2024, 3, 2, 10, 0)

        pushed_later = self._remote_record(datetime(2024, 3, 3, 10, 0))
        remote.records[pushed_later.id] = pushed_later

        assert asyncio.run(reconciler.fetch_remote_deltas()) == 1
        assert asyncio.run(ledger.get(pushed_later.id)) is not None

    def test_unstamped_records_leave_cursor(self, ledger):
        remote = FakeRemoteStore()
        unstamped = RemoteTransactionRecord.from_transaction(make_transaction())
        remote.records = {unstamped.id: unstamped}
        reconciler = make_reconciler(ledger, remote)

        assert asyncio.run(reconciler.fetch_remote_deltas()) == 1
        assert reconciler.remote_cursor is None

    def test_failed_local_write_is_fetched_again(self, ledger, monkeypatch):
        remote = FakeRemoteStore()
        record = self._remote_record(datetime(2024, 3, 2, 10, 0))
        remote.records = {record.id: record}
        reconciler = make_reconciler(ledger, remote)

        real_insert = ledger.insert
        failures = [StorageError("database is locked")]

        async def insert_once_locked(transaction):
            if failures:
                raise failures.pop()
            return await real_insert(transaction)

        monkeypatch.setattr(ledger, "insert", insert_once_locked)

        with pytest.raises(StorageError):
            asyncio.run(reconciler.fetch_remote_deltas())
        assert reconciler.remote_cursor is None
        assert asyncio.run(ledger.get(record.id)) is None

        assert asyncio.run(reconciler.fetch_remote_deltas()) == 1
        assert asyncio.run(ledger.get(record.id)).sync_status == SyncStatus.SYNCED
        assert reconciler.remote_cursor == datetime(2024, 3, 2, 10, 0)

    def test_own_pushes_are_not_duplicated(self, ledger):
        seed(ledger, 2)
        remote = FakeRemoteStore()
        reconciler = make_reconciler(ledger, remote)

        asyncio.run(reconciler.sync(ONLINE))
        assert asyncio.run(reconciler.fetch_remote_deltas()) == 0
        assert len(asyncio.run(ledger.query())) == 2

    def test_invalid_remote_record_skipped(self, ledger):
        remote = FakeRemoteStore()
        bad = self._remote_record(datetime(2024, 3, 2, 10, 0), category="gifts")
        good = self._remote_record(datetime(2024, 3, 2, 11, 0))
        remote.records = {bad.id: bad, good.id: good}
        reconciler = make_reconciler(ledger, remote)

        inserted = asyncio.run(reconciler.fetch_remote_deltas())

        assert inserted == 1
        assert asyncio.run(ledger.get(bad.id)) is None
        assert reconciler.remote_cursor == datetime(2024, 3, 2, 11, 0)


class FailingPullRemote(FakeRemoteStore):
    async def fetch_delta(self, since=None):
        raise RemoteError("sheet unavailable")


class TestScheduler:

    def test_trigger_pushes_then_pulls(self, ledger):
        seed(ledger, 1)
        remote = FakeRemoteStore()
        scheduler = SyncScheduler(make_reconciler(ledger, remote), ledger, interval_seconds=60)

        report = asyncio.run(scheduler.trigger())

        assert report.pushed == 1
        assert remote.fetch_calls == [None]
        assert scheduler.last_report is report

    def test_trigger_reads_current_settings(self, ledger):
        seed(ledger, 1)
        asyncio.run(ledger.put_settings(AppSettings(auto_sync=False)))
        remote = FakeRemoteStore()
        scheduler = SyncScheduler(make_reconciler(ledger, remote), ledger, interval_seconds=60)

        report = asyncio.run(scheduler.trigger())

        assert report.status == SyncPassStatus.BLOCKED_AUTO_SYNC_DISABLED
        assert remote.fetch_calls == []

    def test_pull_failure_does_not_fail_trigger(self, ledger, audit_logger):
        seed(ledger, 1)
        scheduler = SyncScheduler(
            make_reconciler(ledger, FailingPullRemote()), ledger, interval_seconds=60,
            audit_logger=audit_logger,
        )

        report = asyncio.run(scheduler.trigger())

        assert report.pushed == 1
        assert scheduler.last_report is report
        event = audit_logger.recent_events(1)[0]
        assert event.event_type == AuditEventType.EXTERNAL_SERVICE_ERROR
        assert event.details == {"service": "remote_store"}
        assert event.error_message == "sheet unavailable"
        assert event.correlation_id == report.correlation_id

    def test_local_write_failure_during_pull_does_not_fail_trigger(self, ledger, audit_logger, monkeypatch):
        seed(ledger, 1)
        reconciler = make_reconciler(ledger, FakeRemoteStore())

        async def disk_full(correlation_id=None):
            raise StorageError("disk full")

        monkeypatch.setattr(reconciler, "fetch_remote_deltas", disk_full)
        scheduler = SyncScheduler(reconciler, ledger, interval_seconds=60, audit_logger=audit_logger)

        report = asyncio.run(scheduler.trigger())

        assert report.pushed == 1
        assert scheduler.last_report is report
        assert asyncio.run(ledger.list_unsynced()) == []
        event = audit_logger.recent_events(1)[0]
        assert event.event_type == AuditEventType.SYSTEM_ERROR
        assert event.error_message == "disk full"

    def test_start_and_stop(self, ledger):
        seed(ledger, 1)
        remote = FakeRemoteStore()
        scheduler = SyncScheduler(make_reconciler(ledger, remote), ledger, interval_seconds=0.01)

        async def run():
            scheduler.start()
            assert scheduler.running
            while scheduler.last_report is None:
                await asyncio.sleep(0.01)
            await scheduler.stop()

        asyncio.run(run())

        assert not scheduler.running
        assert scheduler.last_report.completed
        assert asyncio.run(ledger.list_unsynced()) == []
