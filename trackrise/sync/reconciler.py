"""
Sync Reconciler

Pushes locally recorded transactions to the remote store and pulls back
records other devices pushed.

POLICY GATE: a pass only runs when auto-sync is enabled, the device is
online, and (if the user asked for Wi-Fi only) the connection is Wi-Fi.
A blocked pass is not an error; the report says why it was skipped.

CRITICAL INVARIANTS:
- A row is marked synced only after the remote store accepted it
- A failed push leaves the row pending for the next pass and never stops
  the other rows
- Pushes are idempotent on the transaction id, so a crash between the
  remote upsert and ``mark_synced`` only causes a harmless re-push
"""

import asyncio
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from trackrise.audit import AuditLogger, create_correlation_id, get_audit_logger
from trackrise.config import SyncSettings, get_settings
from trackrise.models.audit import AuditEventBuilder
from trackrise.models.transaction import (
    AppSettings,
    RemoteTransactionRecord,
    Transaction,
    utcnow,
)
from trackrise.services.connectivity import ConnectionKind, ConnectivityProbe
from trackrise.services.storage.interface import (
    LedgerStoreInterface,
    RemoteError,
    RemoteStoreInterface,
    StorageError,
)
from trackrise.validation import ValidationError

logger = structlog.get_logger(__name__)


class SyncPassStatus(str, Enum):
    COMPLETED = "completed"
    BLOCKED_AUTO_SYNC_DISABLED = "blocked_auto_sync_disabled"
    BLOCKED_OFFLINE = "blocked_offline"
    BLOCKED_WIFI_ONLY = "blocked_wifi_only"


BLOCKED_MESSAGES = {
    SyncPassStatus.BLOCKED_AUTO_SYNC_DISABLED: "Auto-sync is turned off",
    SyncPassStatus.BLOCKED_OFFLINE: "No internet connection",
    SyncPassStatus.BLOCKED_WIFI_ONLY: "Waiting for Wi-Fi",
}


class SyncReport(BaseModel):
    """Summary of one sync pass."""

    status: SyncPassStatus
    correlation_id: UUID
    attempted: int = 0
    pushed: int = 0
    failed_ids: list[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    @property
    def completed(self) -> bool:
        return self.status == SyncPassStatus.COMPLETED

    @property
    def message(self) -> str:
        if not self.completed:
            return BLOCKED_MESSAGES[self.status]
        if self.attempted == 0:
            return "Everything is up to date"
        return f"Synced {self.pushed} of {self.attempted} transactions"


class SyncReconciler:
    """
    Reconciles the local ledger with the remote store.

    Passes never overlap: a pass requested while another is running waits
    for it to finish.
    """

    def __init__(
        self,
        ledger: LedgerStoreInterface,
        remote: RemoteStoreInterface,
        probe: ConnectivityProbe,
        settings: Optional[SyncSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledger = ledger
        self._remote = remote
        self._probe = probe
        self._settings = settings or get_settings().sync
        self._audit = audit_logger or get_audit_logger()
        self._pass_lock = asyncio.Lock()
        self._remote_cursor: Optional[datetime] = None

    @property
    def remote_cursor(self) -> Optional[datetime]:
        """Newest remote ``pushed_at`` pulled so far in this process."""
        return self._remote_cursor

    async def check_policy(self, app_settings: AppSettings) -> SyncPassStatus:
        """Decide whether a pass may run right now."""
        if not app_settings.auto_sync:
            return SyncPassStatus.BLOCKED_AUTO_SYNC_DISABLED
        if not await self._probe.is_connected():
            return SyncPassStatus.BLOCKED_OFFLINE
        if app_settings.sync_only_on_wifi:
            if await self._probe.connection_kind() != ConnectionKind.WIFI:
                return SyncPassStatus.BLOCKED_WIFI_ONLY
        return SyncPassStatus.COMPLETED

    # -------------------------------------------------------------------------
    # Push
    # -------------------------------------------------------------------------

    async def _push_one(
        self,
        transaction: Transaction,
        semaphore: asyncio.Semaphore,
        correlation_id: UUID,
    ) -> Optional[bool]:
        """True when newly marked synced, False when it already was, None on failure."""
        async with semaphore:
            try:
                await self._remote.upsert(RemoteTransactionRecord.from_transaction(transaction))
            except RemoteError as e:
                self._audit.log(AuditEventBuilder.sync_row_failed(
                    transaction.id, str(e), correlation_id,
                ))
                return None

        try:
            return await self._ledger.mark_synced(transaction.id)
        except StorageError as e:
            # Remote has it; the next pass re-pushes and marks it again
            self._audit.log(AuditEventBuilder.sync_row_failed(
                transaction.id, f"Accepted remotely but not marked synced: {e}", correlation_id,
            ))
            return None

    async def sync(
        self,
        app_settings: AppSettings,
        correlation_id: Optional[UUID] = None,
    ) -> SyncReport:
        """
        Run one push pass, subject to the policy gate.

        Returns:
            SyncReport with the pass status and per-row results
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._pass_lock:
            status = await self.check_policy(app_settings)
            if status != SyncPassStatus.COMPLETED:
                self._audit.log(AuditEventBuilder.sync_blocked(status.value, correlation_id))
                return SyncReport(status=status, correlation_id=correlation_id, finished_at=utcnow())

            report = SyncReport(status=status, correlation_id=correlation_id)
            pending = await self._ledger.list_unsynced()
            report.attempted = len(pending)

            semaphore = asyncio.Semaphore(self._settings.max_concurrent_pushes)
            results = await asyncio.gather(*[
                self._push_one(transaction, semaphore, correlation_id)
                for transaction in pending
            ])

            for transaction, accepted in zip(pending, results):
                if accepted is None:
                    report.failed_ids.append(transaction.id)
                elif accepted:
                    report.pushed += 1
            report.finished_at = utcnow()

        self._audit.log(AuditEventBuilder.sync_completed(
            report.pushed, report.attempted, correlation_id,
        ))
        return report

    async def run_sync_pass(self, app_settings: AppSettings) -> int:
        """Run one pass; returns the number of rows newly marked synced."""
        report = await self.sync(app_settings)
        return report.pushed

    # -------------------------------------------------------------------------
    # Pull
    # -------------------------------------------------------------------------

    async def fetch_remote_deltas(self, correlation_id: Optional[UUID] = None) -> int:
        """
        Pull remote records newer than the cursor into the local ledger.

        New records are inserted already marked synced. Records that fail
        validation are logged and skipped.

        The cursor follows the remote store's ``pushed_at`` stamps and only
        moves once every fetched record has been handled, so a local write
        failure leaves the batch to be fetched again on the next pull.

        Returns:
            Number of records inserted locally

        Raises:
            RemoteError: the remote store could not be read
            StorageError: a record could not be written locally
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._pass_lock:
            records = await self._remote.fetch_delta(self._remote_cursor)
            cursor = self._remote_cursor
            inserted = 0

            for record in records:
                if await self._ledger.get(record.id) is None:
                    try:
                        await self._ledger.insert(record.to_transaction())
                        inserted += 1
                    except (ValidationError, PydanticValidationError) as e:
                        logger.warning("remote_record_skipped", transaction_id=record.id, error=str(e))

                # Unstamped rows are returned on every fetch and never move the cursor
                if record.pushed_at is not None and (cursor is None or record.pushed_at > cursor):
                    cursor = record.pushed_at

            self._remote_cursor = cursor

        self._audit.log(AuditEventBuilder.remote_deltas_fetched(
            len(records), inserted, correlation_id,
        ))
        return inserted


class SyncScheduler:
    """
    Runs sync passes in the background every ``interval_seconds``.

    Each tick reads the current AppSettings from the ledger, so changes
    to auto-sync or Wi-Fi-only take effect on the next tick. After a
    completed push the scheduler also pulls remote deltas.
    """

    def __init__(
        self,
        reconciler: SyncReconciler,
        ledger: LedgerStoreInterface,
        interval_seconds: Optional[float] = None,
        pull_remote: bool = True,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._reconciler = reconciler
        self._ledger = ledger
        self._audit = audit_logger or get_audit_logger()
        self._interval = interval_seconds or get_settings().sync.interval_seconds
        self._pull_remote = pull_remote
        self._task: Optional[asyncio.Task] = None
        self.last_report: Optional[SyncReport] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def trigger(self) -> SyncReport:
        """Run a pass now ("sync now")."""
        app_settings = await self._ledger.get_settings()
        report = await self._reconciler.sync(app_settings)
        self.last_report = report

        if report.completed and self._pull_remote:
            try:
                await self._reconciler.fetch_remote_deltas(report.correlation_id)
            except RemoteError as e:
                logger.warning("remote_pull_failed", error=str(e))
                self._audit.log(AuditEventBuilder.external_service_error(
                    "remote_store", str(e), report.correlation_id,
                ))
            except StorageError as e:
                logger.error("remote_pull_not_stored", error=str(e))
                self._audit.log(AuditEventBuilder.system_error(
                    type(e).__name__, str(e), {"stage": "remote_pull"}, report.correlation_id,
                ))

        return report

    async def _loop(self) -> None:
        while True:
            try:
                await self.trigger()
            except Exception as e:
                logger.error("scheduled_sync_failed", error=str(e), exc_info=True)
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        """Start the background loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("sync_scheduler_started", interval_seconds=self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("sync_scheduler_stopped")
