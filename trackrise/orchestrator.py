"""
Main Orchestrator for TrackRise

This module ties the components together and defines the end-to-end
flows for:
1. Capture (voice/photo -> text -> draft -> review -> confirm -> save)
2. Manual entry (form -> validate -> save)
3. Settings changes
4. Background sync

DESIGN DECISION: The orchestrator enforces the boundaries:
- No transaction persists without human confirmation
- Validation runs before every insert
- Every step is audited

UI layers (screens, CLI) only talk to the objects built by
``create_app_components``.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import structlog

from trackrise.audit import AuditLogger, configure_logging, create_correlation_id, get_audit_logger
from trackrise.capture import CaptureCoordinator, CaptureOutcome
from trackrise.config import get_settings
from trackrise.models.audit import AuditEventBuilder
from trackrise.models.transaction import (
    AppSettings,
    EntryMethod,
    Transaction,
    TransactionDraft,
    TransactionType,
    utcnow,
)
from trackrise.queries import DashboardAggregator
from trackrise.services.connectivity import SystemConnectivityProbe
from trackrise.services.image import ReceiptImageProcessor
from trackrise.services.ocr import MindeeOCRService
from trackrise.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
    LedgerStoreInterface,
    SQLiteLedgerStore,
)
from trackrise.services.transcription import GeminiTranscriptionService
from trackrise.sync import SyncReconciler, SyncScheduler
from trackrise.validation import TransactionValidator, ValidationError, ValidationResult

logger = structlog.get_logger(__name__)


class CaptureFlow:
    """
    Orchestrates getting transactions into the ledger.

    Flow:
    1. Capture -> coordinator turns a recording or photo into a draft
    2. Review -> draft validated, warnings shown to the user
    3. Confirm -> user explicitly approves (possibly edited) draft
    4. Save -> ledger insert

    Human confirmation (step 3) is MANDATORY.
    The system NEVER auto-saves a captured draft.
    """

    def __init__(
        self,
        ledger: LedgerStoreInterface,
        coordinator: Optional[CaptureCoordinator] = None,
        image_processor: Optional[ReceiptImageProcessor] = None,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledger = ledger
        self._audit = audit_logger or get_audit_logger()
        self._image_processor = image_processor
        self._coordinator = coordinator or CaptureCoordinator(
            image_processor=image_processor,
            audit_logger=self._audit,
        )
        self._validator = validator or TransactionValidator()

    @property
    def coordinator(self) -> CaptureCoordinator:
        return self._coordinator

    async def run_capture(
        self,
        entry_method: EntryMethod,
        handle: Any,
        correlation_id: Optional[UUID] = None,
    ) -> CaptureOutcome:
        """
        Capture a recording or photo into a draft for review.

        Uses the user's default currency. Nothing is saved.
        """
        app_settings = await self._ledger.get_settings()
        return await self._coordinator.run_capture(
            entry_method,
            handle,
            app_settings.default_currency,
            correlation_id=correlation_id,
        )

    async def review_draft(self, draft: TransactionDraft) -> ValidationResult:
        """Validate a draft (as edited by the user) without saving it."""
        category = await self._ledger.get_category(draft.category)
        return self._validator.validate(draft, category)

    async def confirm_draft(
        self,
        draft: TransactionDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Save a draft the user approved.

        CRITICAL: This is called ONLY after explicit user confirmation.

        Raises:
            ValidationError: the draft still has blocking issues
        """
        correlation_id = correlation_id or create_correlation_id()
        transaction = Transaction.from_draft(draft)

        self._audit.log(AuditEventBuilder.draft_confirmed(
            transaction.id, transaction.entry_method.value, correlation_id,
        ))

        try:
            saved = await self._ledger.insert(transaction)
        except ValidationError as e:
            self._audit.log(AuditEventBuilder.validation_failed(
                [issue.model_dump() for issue in e.issues], correlation_id,
            ))
            raise

        self._audit.log(AuditEventBuilder.transaction_saved(
            saved.id, f"{saved.currency_code} {saved.amount}", correlation_id,
        ))
        return saved

    async def reject_draft(
        self,
        draft: TransactionDraft,
        reason: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Record that the user discarded a draft.

        A receipt image prepared for the draft is deleted with it.
        """
        correlation_id = correlation_id or create_correlation_id()

        if draft.image_path and self._image_processor is not None:
            self._image_processor.discard(draft.image_path)

        self._audit.log(AuditEventBuilder.draft_rejected(reason, correlation_id))

    async def record_manual_transaction(
        self,
        amount: Decimal,
        transaction_type: TransactionType,
        category: str,
        description: str,
        date: Optional[datetime] = None,
        currency_code: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Save a transaction typed into the entry form.

        Raises:
            ValidationError: the entry has blocking issues
        """
        if currency_code is None:
            currency_code = (await self._ledger.get_settings()).default_currency

        draft = TransactionDraft(
            amount=amount,
            currency_code=currency_code,
            type=transaction_type,
            category=category,
            description=description,
            date=date or utcnow(),
            entry_method=EntryMethod.MANUAL,
        )
        return await self.confirm_draft(draft, correlation_id)

    async def update_settings(self, **changes: Any) -> AppSettings:
        """
        Change user preferences.

        Unknown keys and invalid values raise ``pydantic.ValidationError``;
        nothing is written in that case.
        """
        current = await self._ledger.get_settings()
        updated = AppSettings.model_validate({**current.model_dump(), **changes})
        saved = await self._ledger.put_settings(updated)

        changed = [key for key in changes if getattr(current, key) != getattr(saved, key)]
        self._audit.log(AuditEventBuilder.settings_updated(changed))
        return saved


@dataclass
class AppComponents:
    """Everything a UI layer needs, wired together."""

    ledger: SQLiteLedgerStore
    capture_flow: CaptureFlow
    dashboard: DashboardAggregator
    audit_logger: AuditLogger
    reconciler: Optional[SyncReconciler] = None
    scheduler: Optional[SyncScheduler] = None

    async def start(self) -> None:
        """Create/seed the ledger and start background sync."""
        await self.ledger.initialize()
        if self.scheduler is not None:
            self.scheduler.start()

    async def stop(self) -> None:
        if self.scheduler is not None:
            await self.scheduler.stop()
        self.ledger.dispose()


def create_app_components(
    use_remote: bool = True,
    use_capture_services: bool = True,
    database_url: Optional[str] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_remote: Whether to set up Google Sheets sync.
                    Set to False to run fully offline.
        use_capture_services: Whether to set up Gemini transcription and
                    Mindee OCR. Without them only manual entry works.
        database_url: Override the configured ledger location.

    Returns:
        AppComponents; call ``await components.start()`` before use
    """
    settings = get_settings()
    configure_logging(settings.runtime.log_level)
    audit_logger = get_audit_logger()

    ledger = SQLiteLedgerStore(database_url=database_url)
    image_processor = ReceiptImageProcessor()

    transcriber = None
    ocr = None
    if use_capture_services:
        try:
            transcriber = GeminiTranscriptionService()
        except Exception as e:
            # Gemini not configured - voice capture unavailable
            logger.warning("transcription_not_configured", error=str(e))
        try:
            ocr = MindeeOCRService()
        except Exception as e:
            # Mindee not configured - receipt capture unavailable
            logger.warning("ocr_not_configured", error=str(e))

    coordinator = CaptureCoordinator(
        transcriber=transcriber,
        ocr=ocr,
        image_processor=image_processor,
        audit_logger=audit_logger,
    )
    capture_flow = CaptureFlow(
        ledger=ledger,
        coordinator=coordinator,
        image_processor=image_processor,
        audit_logger=audit_logger,
    )

    reconciler = None
    scheduler = None
    if use_remote:
        try:
            remote = GoogleSheetsRemoteStore(GoogleSheetsClient())
            reconciler = SyncReconciler(
                ledger=ledger,
                remote=remote,
                probe=SystemConnectivityProbe(),
                audit_logger=audit_logger,
            )
            scheduler = SyncScheduler(reconciler, ledger, audit_logger=audit_logger)
        except Exception as e:
            # Remote store not configured - continue offline
            logger.warning("remote_store_not_configured", error=str(e))

    return AppComponents(
        ledger=ledger,
        capture_flow=capture_flow,
        dashboard=DashboardAggregator(ledger),
        audit_logger=audit_logger,
        reconciler=reconciler,
        scheduler=scheduler,
    )
