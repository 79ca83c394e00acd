"""
Capture Coordinator

Drives one capture at a time through:

    IDLE -> CAPTURING -> PROCESSING -> DRAFT_READY | FAILED -> IDLE

CAPTURING is the window while the UI records audio or takes a photo.
PROCESSING awaits the transcription capability (voice) or image
preparation plus OCR (photo), then runs the extraction engine.

CRITICAL: The coordinator never writes to the ledger. A draft only
becomes a transaction when the user confirms it, so cancelling or
failing a capture leaves no trace beyond the audit log.

IMPORTANT: The capability call runs as its own task so ``cancel()`` can
stop it from another task while ``process()`` is waiting on it.
"""

import asyncio
from enum import Enum
from pathlib import Path
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog
from pydantic import BaseModel

from trackrise.audit import AuditLogger, create_correlation_id, get_audit_logger
from trackrise.extraction import TextSource, extract
from trackrise.models.audit import AuditEventBuilder
from trackrise.models.transaction import EntryMethod, TransactionDraft
from trackrise.services.errors import CaptureDeviceError
from trackrise.services.image import ReceiptImageProcessor
from trackrise.services.ocr import OCRService
from trackrise.services.transcription import TranscriptionService

logger = structlog.get_logger(__name__)


class CaptureState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    PROCESSING = "processing"
    DRAFT_READY = "draft_ready"
    FAILED = "failed"


class CaptureFailureReason(str, Enum):
    NO_AMOUNT = "no_amount"
    DEVICE_ERROR = "device_error"
    CANCELLED = "cancelled"


class CaptureOutcome(BaseModel):
    """Result of processing one capture."""

    capture_id: UUID
    correlation_id: UUID
    state: CaptureState
    entry_method: EntryMethod
    draft: Optional[TransactionDraft] = None
    raw_text: Optional[str] = None
    failure_reason: Optional[CaptureFailureReason] = None
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.draft is not None


class CaptureInProgressError(Exception):
    """A capture was started while another one is still in flight."""

    def __init__(self, state: CaptureState):
        self.state = state
        super().__init__(f"A capture is already in progress (state: {state.value})")


class CaptureStateError(Exception):
    """The requested transition is not allowed from the current state."""

    def __init__(self, operation: str, state: CaptureState):
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot {operation} while capture is {state.value}")


CANCELLABLE_STATES = (CaptureState.CAPTURING, CaptureState.PROCESSING, CaptureState.FAILED)


class CaptureCoordinator:
    """
    Single-flight capture state machine for one user session.

    Capabilities are injected; any of them may be None, in which case
    captures needing it fail with DEVICE_ERROR.
    """

    def __init__(
        self,
        transcriber: Optional[TranscriptionService] = None,
        ocr: Optional[OCRService] = None,
        image_processor: Optional[ReceiptImageProcessor] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._transcriber = transcriber
        self._ocr = ocr
        self._image_processor = image_processor
        self._audit = audit_logger or get_audit_logger()

        self._state = CaptureState.IDLE
        self._capture_id: Optional[UUID] = None
        self._correlation_id: Optional[UUID] = None
        self._entry_method: Optional[EntryMethod] = None
        self._task: Optional[asyncio.Task] = None
        self._prepared_path: Optional[Path] = None

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def entry_method(self) -> Optional[EntryMethod]:
        return self._entry_method

    @property
    def correlation_id(self) -> Optional[UUID]:
        return self._correlation_id

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def begin(
        self,
        entry_method: EntryMethod,
        correlation_id: Optional[UUID] = None,
    ) -> UUID:
        """
        IDLE -> CAPTURING.

        Returns:
            The new capture's id

        Raises:
            CaptureInProgressError: another capture has not been reset
            ValueError: ``entry_method`` is not VOICE or PHOTO
        """
        if self._state != CaptureState.IDLE:
            raise CaptureInProgressError(self._state)
        if entry_method not in (EntryMethod.VOICE, EntryMethod.PHOTO):
            raise ValueError(f"Captures are voice or photo, not {entry_method.value}")

        self._capture_id = uuid4()
        self._correlation_id = correlation_id or create_correlation_id()
        self._entry_method = entry_method
        self._prepared_path = None
        self._state = CaptureState.CAPTURING

        self._audit.log(AuditEventBuilder.capture_started(
            self._capture_id, entry_method.value, self._correlation_id,
        ))
        return self._capture_id

    async def process(self, handle: Any, default_currency: str) -> CaptureOutcome:
        """
        CAPTURING -> PROCESSING -> DRAFT_READY | FAILED.

        ``handle`` is the recording (voice) or photo (photo) produced while
        CAPTURING. If ``cancel()`` is called meanwhile, the outcome carries
        failure reason CANCELLED and the coordinator is already IDLE.

        Raises:
            CaptureStateError: not in CAPTURING
        """
        if self._state != CaptureState.CAPTURING:
            raise CaptureStateError("process", self._state)

        capture_id = self._capture_id
        correlation_id = self._correlation_id
        entry_method = self._entry_method

        def outcome(state: CaptureState, **fields) -> CaptureOutcome:
            return CaptureOutcome(
                capture_id=capture_id,
                correlation_id=correlation_id,
                state=state,
                entry_method=entry_method,
                **fields,
            )

        cancelled = outcome(CaptureState.IDLE, failure_reason=CaptureFailureReason.CANCELLED)

        self._state = CaptureState.PROCESSING
        task = asyncio.create_task(self._obtain_text(entry_method, handle))
        self._task = task

        try:
            raw_text = await task
        except asyncio.CancelledError:
            if self._capture_id != capture_id:
                return cancelled
            # The caller itself was cancelled
            logger.info("capture_abandoned", capture_id=str(capture_id))
            task.cancel()
            self._discard_prepared_image()
            self._clear()
            raise
        except CaptureDeviceError as e:
            if self._capture_id != capture_id:
                return cancelled
            self._discard_prepared_image()
            self._audit.log(AuditEventBuilder.capture_device_failed(
                capture_id, e.service, str(e), correlation_id,
            ))
            self._state = CaptureState.FAILED
            return outcome(
                CaptureState.FAILED,
                failure_reason=CaptureFailureReason.DEVICE_ERROR,
                error_message=str(e),
            )
        except Exception as e:
            self._audit.log(AuditEventBuilder.system_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"capture_id": str(capture_id)},
                correlation_id=correlation_id,
            ))
            if self._capture_id == capture_id:
                self._discard_prepared_image()
                self._clear()
            raise
        finally:
            if self._task is task:
                self._task = None

        # cancel() ran after the capability finished but before we resumed
        if self._capture_id != capture_id:
            return cancelled

        source = TextSource.RECEIPT if entry_method == EntryMethod.PHOTO else TextSource.FREE_TEXT
        self._audit.log(AuditEventBuilder.text_obtained(
            capture_id, source.value, len(raw_text), correlation_id,
        ))

        draft = extract(raw_text, default_currency, source)
        if draft is None:
            self._audit.log(AuditEventBuilder.extraction_failed(
                capture_id, CaptureFailureReason.NO_AMOUNT.value, correlation_id,
            ))
            self._state = CaptureState.FAILED
            return outcome(
                CaptureState.FAILED,
                failure_reason=CaptureFailureReason.NO_AMOUNT,
                raw_text=raw_text,
            )

        draft.entry_method = entry_method
        if self._prepared_path is not None:
            draft.image_path = str(self._prepared_path)

        self._audit.log(AuditEventBuilder.draft_ready(
            capture_id,
            draft.type.value,
            draft.category,
            str(draft.amount),
            correlation_id,
        ))
        self._state = CaptureState.DRAFT_READY
        return outcome(CaptureState.DRAFT_READY, draft=draft, raw_text=raw_text)

    def cancel(self) -> bool:
        """
        Abandon the current capture and return to IDLE.

        Stops an in-flight capability call and deletes any prepared receipt
        image. Returns False when there was nothing to cancel.

        Raises:
            CaptureStateError: a draft is ready (use ``reset()`` instead)
        """
        if self._state == CaptureState.IDLE:
            return False
        if self._state not in CANCELLABLE_STATES:
            raise CaptureStateError("cancel", self._state)

        cancelled_state = self._state
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._discard_prepared_image()

        self._audit.log(AuditEventBuilder.capture_cancelled(
            self._capture_id, cancelled_state.value, self._correlation_id,
        ))
        self._clear()
        return True

    def reset(self) -> None:
        """
        DRAFT_READY | FAILED -> IDLE, once the caller has taken the outcome.

        The prepared image of a ready draft is kept: it belongs to the
        draft now.

        Raises:
            CaptureStateError: capture still capturing or processing
        """
        if self._state == CaptureState.IDLE:
            return
        if self._state not in (CaptureState.DRAFT_READY, CaptureState.FAILED):
            raise CaptureStateError("reset", self._state)
        self._clear()

    async def run_capture(
        self,
        entry_method: EntryMethod,
        handle: Any,
        default_currency: str,
        correlation_id: Optional[UUID] = None,
    ) -> CaptureOutcome:
        """begin + process + reset for callers that already hold the input."""
        self.begin(entry_method, correlation_id)
        outcome = await self.process(handle, default_currency)
        self.reset()
        return outcome

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _obtain_text(self, entry_method: EntryMethod, handle: Any) -> str:
        if entry_method == EntryMethod.VOICE:
            if self._transcriber is None:
                raise CaptureDeviceError("No transcription service configured", service="transcription")
            return await self._transcriber.transcribe(handle)

        if self._ocr is None or self._image_processor is None:
            raise CaptureDeviceError("No OCR service configured", service="ocr")

        self._prepared_path = await self._prepare_image(handle)
        return await self._ocr.extract_text(self._prepared_path)

    async def _prepare_image(self, handle: Any) -> Path:
        future = asyncio.ensure_future(asyncio.to_thread(self._image_processor.prepare, handle))
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            # The worker thread cannot be interrupted; delete its output when it lands
            future.add_done_callback(self._discard_late_image)
            raise

    def _discard_late_image(self, future: asyncio.Future) -> None:
        if not future.cancelled() and future.exception() is None:
            self._image_processor.discard(future.result())

    def _discard_prepared_image(self) -> None:
        if self._prepared_path is not None and self._image_processor is not None:
            self._image_processor.discard(self._prepared_path)
        self._prepared_path = None

    def _clear(self) -> None:
        self._state = CaptureState.IDLE
        self._capture_id = None
        self._correlation_id = None
        self._entry_method = None
        self._prepared_path = None
