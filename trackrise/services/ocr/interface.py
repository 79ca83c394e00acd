"""Abstract OCR capability."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union

from trackrise.services.errors import CaptureDeviceError


class OCRError(CaptureDeviceError):
    """The OCR service could not read text from the image."""

    def __init__(self, message: str, service: str = "ocr"):
        super().__init__(message, service=service)


class OCRService(ABC):
    """Turns a receipt image into its full printed text."""

    @abstractmethod
    async def extract_text(self, image_handle: Union[str, Path]) -> str:
        """
        Read all text from the image, one printed line per text line.

        Raises:
            OCRError: the image could not be read
        """
        pass
