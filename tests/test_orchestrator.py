"""
Integration tests for the capture flow and component wiring.

These run the real coordinator, validator and SQLite ledger with fake
transcription/OCR capabilities.
"""

import asyncio
import pytest
from datetime import datetime
from decimal import Decimal

from pydantic import ValidationError as PydanticValidationError

from trackrise.capture import CaptureCoordinator
from trackrise.models.audit import AuditEventType
from trackrise.models.transaction import (
    AppSettings,
    EntryMethod,
    SyncStatus,
    Theme,
    TransactionDraft,
    TransactionType,
)
from trackrise.orchestrator import CaptureFlow, create_app_components
from trackrise.services.image import ReceiptImageProcessor
from trackrise.validation import ValidationError

from tests.conftest import FakeOCR, FakeTranscriber


@pytest.fixture
def image_processor(tmp_path):
    return ReceiptImageProcessor(tmp_path / "receipts")


def make_flow(ledger, audit_logger, image_processor, transcript="", receipt_text=""):
    coordinator = CaptureCoordinator(
        transcriber=FakeTranscriber(text=transcript),
        ocr=FakeOCR(text=receipt_text),
        image_processor=image_processor,
        audit_logger=audit_logger,
    )
    return CaptureFlow(
        ledger=ledger,
        coordinator=coordinator,
        image_processor=image_processor,
        audit_logger=audit_logger,
    )


def event_types(audit_logger):
    return [event.event_type for event in reversed(audit_logger.recent_events())]


class TestCaptureToLedger:

    def test_voice_capture_confirm_and_save(self, ledger, audit_logger, image_processor):
        flow = make_flow(ledger, audit_logger, image_processor, transcript="Sold tomatoes 5000")

        outcome = asyncio.run(flow.run_capture(EntryMethod.VOICE, "audio.m4a"))
        assert asyncio.run(ledger.query()) == []

        saved = asyncio.run(flow.confirm_draft(outcome.draft, outcome.correlation_id))

        stored = asyncio.run(ledger.get(saved.id))
        assert stored.amount == Decimal("5000.00")
        assert stored.type == TransactionType.INCOME
        assert stored.entry_method == EntryMethod.VOICE
        assert stored.sync_status == SyncStatus.PENDING

        assert event_types(audit_logger)[-2:] == [
            AuditEventType.DRAFT_CONFIRMED,
            AuditEventType.TRANSACTION_SAVED,
        ]
        assert len(audit_logger.events_for_correlation(outcome.correlation_id)) == 5

    def test_capture_uses_default_currency(self, ledger, audit_logger, image_processor):
        asyncio.run(ledger.put_settings(AppSettings(default_currency="UGX")))
        flow = make_flow(ledger, audit_logger, image_processor, transcript="Paid rent 15000")

        outcome = asyncio.run(flow.run_capture(EntryMethod.VOICE, "audio.m4a"))

        assert outcome.draft.currency_code == "UGX"

    def test_receipt_without_total_needs_correction(self, ledger, audit_logger, image_processor, receipt_photo):
        """Test that a zero-amount receipt draft is rejected until the user fixes it."""
        flow = make_flow(ledger, audit_logger, image_processor, receipt_text="KIOSK\nBread 60")
        outcome = asyncio.run(flow.run_capture(EntryMethod.PHOTO, receipt_photo))

        with pytest.raises(ValidationError):
            asyncio.run(flow.confirm_draft(outcome.draft))
        assert asyncio.run(ledger.query()) == []
        assert event_types(audit_logger)[-1] == AuditEventType.VALIDATION_FAILED

        edited = outcome.draft.model_copy(update={"amount": Decimal("60.00")})
        saved = asyncio.run(flow.confirm_draft(edited))

        assert saved.image_path == outcome.draft.image_path
        assert saved.entry_method == EntryMethod.PHOTO

    def test_reject_discards_receipt_image(self, ledger, audit_logger, image_processor, receipt_photo):
        flow = make_flow(ledger, audit_logger, image_processor, receipt_text="SUPERMARKET\nTOTAL 1,150.00")
        outcome = asyncio.run(flow.run_capture(EntryMethod.PHOTO, receipt_photo))
        assert list(image_processor.receipts_dir.glob("*.jpg"))

        asyncio.run(flow.reject_draft(outcome.draft, reason="wrong receipt"))

        assert list(image_processor.receipts_dir.glob("*.jpg")) == []
        assert asyncio.run(ledger.query()) == []
        assert event_types(audit_logger)[-1] == AuditEventType.DRAFT_REJECTED

    def test_review_draft_reports_warnings(self, ledger, audit_logger, image_processor):
        flow = make_flow(ledger, audit_logger, image_processor)
        draft = TransactionDraft(
            amount=Decimal("25000000.00"),
            currency_code="KES",
            type=TransactionType.EXPENSE,
            category="inventory",
            description="Bulk stock",
        )

        result = asyncio.run(flow.review_draft(draft))

        assert result.is_valid
        assert [issue.issue_type for issue in result.warnings] == ["suspicious_value"]


class TestManualEntry:

    def test_record_manual_transaction(self, ledger, audit_logger, image_processor):
        flow = make_flow(ledger, audit_logger, image_processor)

        saved = asyncio.run(flow.record_manual_transaction(
            amount=Decimal("1200.00"),
            transaction_type=TransactionType.EXPENSE,
            category="transport",
            description="Fuel",
            date=datetime(2024, 3, 10, 8, 0),
        ))

        stored = asyncio.run(ledger.get(saved.id))
        assert stored.currency_code == "KES"
        assert stored.entry_method == EntryMethod.MANUAL
        assert stored.date == datetime(2024, 3, 10, 8, 0)

    def test_manual_entry_validated(self, ledger, audit_logger, image_processor):
        flow = make_flow(ledger, audit_logger, image_processor)

        with pytest.raises(ValidationError):
            asyncio.run(flow.record_manual_transaction(
                amount=Decimal("100.00"),
                transaction_type=TransactionType.INCOME,
                category="rent",
                description="Mismatched category",
            ))


class TestSettingsUpdates:

    def test_update_settings(self, ledger, audit_logger, image_processor):
        flow = make_flow(ledger, audit_logger, image_processor)

        updated = asyncio.run(flow.update_settings(theme=Theme.DARK, sync_only_on_wifi=False))

        assert updated.theme == Theme.DARK
        assert asyncio.run(ledger.get_settings()) == updated
        event = audit_logger.recent_events(1)[0]
        assert event.event_type == AuditEventType.SETTINGS_UPDATED

    @pytest.mark.parametrize("changes", [
        {"default_currency": "XYZ"},
        {"dark_mode": True},
    ])
    def test_invalid_update_writes_nothing(self, ledger, audit_logger, image_processor, changes):
        flow = make_flow(ledger, audit_logger, image_processor)

        with pytest.raises(PydanticValidationError):
            asyncio.run(flow.update_settings(**changes))

        assert asyncio.run(ledger.get_settings()) == AppSettings()


class TestAppComponents:

    def test_offline_wiring(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        components = create_app_components(
            use_remote=False,
            use_capture_services=False,
            database_url=f"sqlite:///{tmp_path / 'app.db'}",
        )

        async def run():
            await components.start()
            saved = await components.capture_flow.record_manual_transaction(
                amount=Decimal("300.00"),
                transaction_type=TransactionType.EXPENSE,
                category="other_expense",
                description="Tea",
            )
            recent = await components.dashboard.recent_transactions()
            await components.stop()
            return saved, recent

        saved, recent = asyncio.run(run())

        assert components.reconciler is None
        assert components.scheduler is None
        assert [t.id for t in recent] == [saved.id]

    def test_voice_capture_without_service_fails_cleanly(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        components = create_app_components(
            use_remote=False,
            use_capture_services=False,
            database_url=f"sqlite:///{tmp_path / 'app.db'}",
        )

        async def run():
            await components.start()
            outcome = await components.capture_flow.run_capture(EntryMethod.VOICE, "audio.m4a")
            await components.stop()
            return outcome

        outcome = asyncio.run(run())
        assert not outcome.succeeded
