"""
Shared fixtures and in-memory fakes.

No test touches the network: the remote store, connectivity probe,
transcription and OCR capabilities are replaced by the fakes below.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Optional

import pytest

from trackrise.audit import AuditLogger
from trackrise.models.transaction import (
    EntryMethod,
    RemoteTransactionRecord,
    Transaction,
    TransactionType,
    utcnow,
)
from trackrise.services.connectivity import ConnectionKind, ConnectivityProbe
from trackrise.services.ocr import OCRError, OCRService
from trackrise.services.storage import RemoteError, RemoteStoreInterface, SQLiteLedgerStore
from trackrise.services.storage.database import create_ledger_engine
from trackrise.services.transcription import TranscriptionError, TranscriptionService


# =============================================================================
# FAKES
# =============================================================================

class FakeRemoteStore(RemoteStoreInterface):
    """Dict-backed remote store that can reject chosen ids."""

    def __init__(self, fail_ids=()):
        self.records: dict[str, RemoteTransactionRecord] = {}
        self.fail_ids = set(fail_ids)
        self.upsert_calls: list[str] = []
        self.fetch_calls: list[Optional[datetime]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def upsert(self, record: RemoteTransactionRecord) -> None:
        self.upsert_calls.append(record.id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            if record.id in self.fail_ids:
                raise RemoteError(f"rejected {record.id}")
            self.records[record.id] = record.model_copy(update={"pushed_at": utcnow()})
        finally:
            self.in_flight -= 1

    async def fetch_delta(self, since: Optional[datetime] = None) -> list[RemoteTransactionRecord]:
        self.fetch_calls.append(since)
        return [
            record for record in self.records.values()
            if since is None or record.pushed_at is None or record.pushed_at > since
        ]


class FakeProbe(ConnectivityProbe):
    def __init__(self, connected: bool = True, kind: ConnectionKind = ConnectionKind.WIFI):
        self.connected = connected
        self.kind = kind

    async def is_connected(self) -> bool:
        return self.connected

    async def connection_kind(self) -> ConnectionKind:
        return self.kind if self.connected else ConnectionKind.NONE


class FakeTranscriber(TranscriptionService):
    """Returns fixed text, raises, or blocks until released."""

    def __init__(self, text: str = "", error: Optional[str] = None, block: bool = False):
        self.text = text
        self.error = error
        self.block = block
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.calls: list = []

    async def transcribe(self, audio_handle) -> str:
        self.calls.append(audio_handle)
        self.started.set()
        if self.block:
            await self.release.wait()
        if self.error:
            raise TranscriptionError(self.error, service="fake")
        return self.text


class FakeOCR(OCRService):
    def __init__(self, text: str = "", error: Optional[str] = None, block: bool = False):
        self.text = text
        self.error = error
        self.block = block
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.calls: list = []

    async def extract_text(self, image_handle) -> str:
        self.calls.append(image_handle)
        self.started.set()
        if self.block:
            await self.release.wait()
        if self.error:
            raise OCRError(self.error, service="fake")
        return self.text


# =============================================================================
# HELPERS
# =============================================================================

def make_transaction(**overrides) -> Transaction:
    fields = dict(
        amount=Decimal("500.00"),
        currency_code="KES",
        type=TransactionType.EXPENSE,
        category="transport",
        description="Matatu fare to market",
        date=datetime(2024, 3, 10, 9, 0),
        entry_method=EntryMethod.MANUAL,
    )
    fields.update(overrides)
    return Transaction(**fields)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def ledger(tmp_path):
    """Initialized SQLite ledger in a temporary directory."""
    engine = create_ledger_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    store = SQLiteLedgerStore(engine=engine)
    asyncio.run(store.initialize())
    yield store
    store.dispose()


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def receipt_photo(tmp_path):
    """A small JPEG standing in for a camera photo."""
    from PIL import Image

    path = tmp_path / "photo.jpg"
    Image.new("RGB", (400, 600), color=(200, 200, 200)).save(path, format="JPEG")
    return path
