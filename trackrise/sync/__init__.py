"""Synchronization package: local ledger to remote store."""

from trackrise.sync.reconciler import (
    SyncPassStatus,
    SyncReconciler,
    SyncReport,
    SyncScheduler,
)

__all__ = [
    "SyncPassStatus",
    "SyncReconciler",
    "SyncReport",
    "SyncScheduler",
]
