"""
Data Models Package

All data flowing through the ledger, capture pipeline and sync
reconciler conforms to these schemas.
"""

from trackrise.models.currency import (
    SUPPORTED_CURRENCIES,
    Currency,
    format_currency,
    get_currency,
    is_supported_currency,
)
from trackrise.models.transaction import (
    DEFAULT_CATEGORIES,
    FALLBACK_CATEGORY,
    AppSettings,
    Category,
    DashboardSummary,
    EntryMethod,
    LedgerSummary,
    RemoteTransactionRecord,
    SyncStatus,
    Theme,
    Transaction,
    TransactionDraft,
    TransactionFilter,
    TransactionType,
    new_transaction_id,
    utcnow,
)
from trackrise.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Currency reference data
    "SUPPORTED_CURRENCIES",
    "Currency",
    "format_currency",
    "get_currency",
    "is_supported_currency",
    # Ledger models
    "DEFAULT_CATEGORIES",
    "FALLBACK_CATEGORY",
    "AppSettings",
    "Category",
    "DashboardSummary",
    "EntryMethod",
    "LedgerSummary",
    "RemoteTransactionRecord",
    "SyncStatus",
    "Theme",
    "Transaction",
    "TransactionDraft",
    "TransactionFilter",
    "TransactionType",
    "new_transaction_id",
    "utcnow",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
