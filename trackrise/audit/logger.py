"""
Audit Logger

Every significant action in the system is logged as a structured event:
capture steps, confirmations, saves, sync passes and failures.

The audit logger:
- Never raises into the main flow if logging fails
- Supports correlation IDs to trace related events
- Keeps a bounded in-memory window of recent events for status screens
"""

import logging
import sys
from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from trackrise.models.audit import AuditEvent, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route stdlib logging (and therefore structlog) to stderr at ``level``."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Central audit logging service.

    Events are written to the structured local log and kept in a bounded
    in-memory window.
    """

    def __init__(self, max_recent: int = 500):
        self._logger = structlog.get_logger("trackrise.audit")
        self._recent: deque[AuditEvent] = deque(maxlen=max_recent)

    def log(self, event: AuditEvent) -> None:
        """Log an audit event. Failures are reported, never raised."""
        try:
            self._recent.append(event)
            log_dict = event.to_log_dict()

            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            print(f"WARNING: Failed to write audit event: {e}", file=sys.stderr)

    def recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Most recent events, newest first."""
        return list(reversed(self._recent))[:limit]

    def events_for_correlation(self, correlation_id: UUID) -> list[AuditEvent]:
        """Events sharing a correlation id, in chronological order."""
        return [e for e in self._recent if e.correlation_id == correlation_id]


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (a capture, a sync pass)
    and pass it through all subsequent operations.
    """
    return uuid4()


_default_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Process-wide audit logger used when none is injected."""
    global _default_logger
    if _default_logger is None:
        _default_logger = AuditLogger()
    return _default_logger
