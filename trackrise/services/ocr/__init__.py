"""OCR services package."""

from trackrise.services.ocr.interface import OCRError, OCRService
from trackrise.services.ocr.mindee_service import (
    MindeeOCRService,
    OCRServiceUnavailableError,
)

__all__ = [
    "MindeeOCRService",
    "OCRError",
    "OCRService",
    "OCRServiceUnavailableError",
]
