"""
OCR Service using Mindee

We only need the receipt's printed text: amount, description and category
are pulled out of it by the extraction engine, so Mindee's structured
fields are ignored and the full-text OCR layer is returned instead.

CRITICAL: An empty OCR result is an error. A blank string would reach the
extraction engine and produce a zero-amount draft from nothing.
"""

import asyncio
from pathlib import Path
from typing import Optional, Union

import structlog
from mindee import Client
from mindee.product import ReceiptV5
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from trackrise.config import MindeeSettings, get_settings
from trackrise.services.ocr.interface import OCRError, OCRService

logger = structlog.get_logger(__name__)


class OCRServiceUnavailableError(OCRError):
    """Mindee could not be reached or rejected the request."""
    pass


class MindeeOCRService(OCRService):
    """OCR service backed by the Mindee receipt API."""

    def __init__(self, settings: Optional[MindeeSettings] = None):
        self._settings = settings or get_settings().mindee
        self._client: Optional[Client] = None

    def _get_client(self) -> Client:
        """Get or create Mindee client."""
        if self._client is None:
            self._client = Client(api_key=self._settings.api_key)
        return self._client

    def _extract_text(self, image_path: str) -> str:
        if not Path(image_path).is_file():
            raise OCRError(f"Receipt image not found: {image_path}", service="mindee")

        client = self._get_client()
        try:
            input_source = client.source_from_path(image_path)
            result = client.parse(ReceiptV5, input_source, include_words=True)
        except Exception as e:
            raise OCRServiceUnavailableError(f"Mindee request failed: {e}", service="mindee")

        ocr_layer = getattr(result.document, "ocr", None)
        text = str(ocr_layer).strip() if ocr_layer is not None else ""
        if not text:
            raise OCRError("No text found on the receipt", service="mindee")

        logger.debug("ocr_text_extracted", path=image_path, length=len(text))
        return text

    @retry(
        retry=retry_if_exception_type(OCRServiceUnavailableError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def extract_text(self, image_handle: Union[str, Path]) -> str:
        return await asyncio.to_thread(self._extract_text, str(image_handle))
