"""Services package."""

from trackrise.services.connectivity import (
    ConnectionKind,
    ConnectivityProbe,
    SystemConnectivityProbe,
)
from trackrise.services.errors import CaptureDeviceError
from trackrise.services.image import ImagePreparationError, ReceiptImageProcessor
from trackrise.services.ocr import (
    MindeeOCRService,
    OCRError,
    OCRService,
    OCRServiceUnavailableError,
)
from trackrise.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
    LedgerStoreInterface,
    RemoteConnectionError,
    RemoteError,
    RemoteStoreInterface,
    SQLiteLedgerStore,
    StorageError,
)
from trackrise.services.transcription import (
    GeminiTranscriptionService,
    TranscriptionError,
    TranscriptionService,
    TranscriptionServiceUnavailableError,
)

__all__ = [
    "CaptureDeviceError",
    # Connectivity
    "ConnectionKind",
    "ConnectivityProbe",
    "SystemConnectivityProbe",
    # Image services
    "ImagePreparationError",
    "ReceiptImageProcessor",
    # OCR services
    "MindeeOCRService",
    "OCRError",
    "OCRService",
    "OCRServiceUnavailableError",
    # Storage services
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
    "LedgerStoreInterface",
    "RemoteConnectionError",
    "RemoteError",
    "RemoteStoreInterface",
    "SQLiteLedgerStore",
    "StorageError",
    # Transcription services
    "GeminiTranscriptionService",
    "TranscriptionError",
    "TranscriptionService",
    "TranscriptionServiceUnavailableError",
]
