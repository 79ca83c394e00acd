"""
Audit Models for the TrackRise ledger

Every significant step of capture, confirmation and synchronization is
recorded as an AuditEvent. Events are append-only and correlated by a
correlation id that spans one user action (one capture, one sync pass).
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from trackrise.models.transaction import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Capture pipeline
    CAPTURE_STARTED = "capture_started"
    CAPTURE_CANCELLED = "capture_cancelled"
    CAPTURE_DEVICE_FAILED = "capture_device_failed"
    TEXT_OBTAINED = "text_obtained"
    EXTRACTION_FAILED = "extraction_failed"
    DRAFT_READY = "draft_ready"

    # Human confirmation
    DRAFT_CONFIRMED = "draft_confirmed"
    DRAFT_REJECTED = "draft_rejected"

    # Persistence
    TRANSACTION_SAVED = "transaction_saved"
    VALIDATION_FAILED = "validation_failed"
    SETTINGS_UPDATED = "settings_updated"

    # Synchronization
    SYNC_BLOCKED = "sync_blocked"
    SYNC_ROW_FAILED = "sync_row_failed"
    SYNC_COMPLETED = "sync_completed"
    REMOTE_DELTAS_FETCHED = "remote_deltas_fetched"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """A single audit event."""

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'capture', 'sync_pass')"
    )
    entity_id: Optional[str] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one capture)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.capture_started(capture_id, "voice", correlation_id)
        event = AuditEventBuilder.transaction_saved(txn_id, "KSh 500", correlation_id)
    """

    @staticmethod
    def capture_started(
        capture_id: UUID,
        entry_method: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_STARTED,
            entity_type="capture",
            entity_id=str(capture_id),
            correlation_id=correlation_id,
            description=f"Capture started ({entry_method})",
            details={"entry_method": entry_method},
            is_user_action=True,
        )

    @staticmethod
    def capture_cancelled(
        capture_id: UUID,
        state: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_CANCELLED,
            entity_type="capture",
            entity_id=str(capture_id),
            correlation_id=correlation_id,
            description=f"Capture cancelled while {state}",
            details={"state": state},
            is_user_action=True,
        )

    @staticmethod
    def capture_device_failed(
        capture_id: UUID,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_DEVICE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="capture",
            entity_id=str(capture_id),
            correlation_id=correlation_id,
            description=f"{service} failed during capture",
            error_message=error_message,
            details={"service": service},
        )

    @staticmethod
    def text_obtained(
        capture_id: UUID,
        source: str,
        length: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TEXT_OBTAINED,
            entity_type="capture",
            entity_id=str(capture_id),
            correlation_id=correlation_id,
            description=f"Obtained {length} characters of {source} text",
            details={"source": source, "length": length},
        )

    @staticmethod
    def extraction_failed(
        capture_id: UUID,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="capture",
            entity_id=str(capture_id),
            correlation_id=correlation_id,
            description=f"No draft could be extracted: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def draft_ready(
        capture_id: UUID,
        transaction_type: str,
        category: str,
        amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRAFT_READY,
            entity_type="capture",
            entity_id=str(capture_id),
            correlation_id=correlation_id,
            description=f"Draft ready: {transaction_type} {amount} ({category})",
            details={
                "type": transaction_type,
                "category": category,
                "amount": amount,
            },
        )

    @staticmethod
    def draft_confirmed(
        transaction_id: str,
        entry_method: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRAFT_CONFIRMED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="User confirmed draft",
            details={"entry_method": entry_method},
            is_user_action=True,
        )

    @staticmethod
    def draft_rejected(
        reason: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRAFT_REJECTED,
            entity_type="draft",
            correlation_id=correlation_id,
            description="User rejected draft",
            details={"reason": reason or "No reason provided"},
            is_user_action=True,
        )

    @staticmethod
    def transaction_saved(
        transaction_id: str,
        amount: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction saved: {amount}",
            details={"amount": amount},
        )

    @staticmethod
    def validation_failed(
        issues: list[dict],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def settings_updated(changed: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_UPDATED,
            entity_type="settings",
            description="Settings updated",
            details={"changed": changed},
            is_user_action=True,
        )

    @staticmethod
    def sync_blocked(
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_BLOCKED,
            entity_type="sync_pass",
            correlation_id=correlation_id,
            description=f"Sync pass skipped: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def sync_row_failed(
        transaction_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_ROW_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Remote upsert failed; row left pending",
            error_message=error_message,
        )

    @staticmethod
    def sync_completed(
        pushed: int,
        attempted: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_COMPLETED,
            entity_type="sync_pass",
            correlation_id=correlation_id,
            description=f"Synced {pushed} of {attempted} transactions",
            details={"pushed": pushed, "attempted": attempted},
        )

    @staticmethod
    def remote_deltas_fetched(
        fetched: int,
        inserted: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_DELTAS_FETCHED,
            entity_type="sync_pass",
            correlation_id=correlation_id,
            description=f"Fetched {fetched} remote records, {inserted} new locally",
            details={"fetched": fetched, "inserted": inserted},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
