"""
Receipt Image Preparation

Photos come off the camera large and often dim. Before OCR each one is
normalized: scaled to a fixed width, brightened and contrast-boosted a
little, and re-encoded as JPEG into the receipts directory. The saved
file is what gets OCR'd and what the transaction's ``image_path`` points
at.

CRITICAL: The original photo is never modified.
"""

from io import BytesIO
from pathlib import Path
from typing import Optional, Union

import structlog
from PIL import Image, ImageEnhance, UnidentifiedImageError

from trackrise.config import get_settings
from trackrise.models.transaction import utcnow
from trackrise.services.errors import CaptureDeviceError

logger = structlog.get_logger(__name__)

TARGET_WIDTH = 1000
BRIGHTNESS_FACTOR = 1.1
CONTRAST_FACTOR = 1.1
JPEG_QUALITY = 80


class ImagePreparationError(CaptureDeviceError):
    """The photo could not be read or the prepared copy not written."""

    def __init__(self, message: str, service: str = "image"):
        super().__init__(message, service=service)


class ReceiptImageProcessor:
    """Prepares receipt photos for OCR using Pillow."""

    def __init__(self, receipts_dir: Optional[Union[str, Path]] = None):
        self._receipts_dir = Path(receipts_dir or get_settings().storage.receipts_dir)

    @property
    def receipts_dir(self) -> Path:
        return self._receipts_dir

    def _enhance(self, img: Image.Image) -> Image.Image:
        if img.mode != "RGB":
            img = img.convert("RGB")

        width, height = img.size
        if width != TARGET_WIDTH:
            new_height = max(1, round(height * TARGET_WIDTH / width))
            img = img.resize((TARGET_WIDTH, new_height), Image.LANCZOS)

        img = ImageEnhance.Brightness(img).enhance(BRIGHTNESS_FACTOR)
        img = ImageEnhance.Contrast(img).enhance(CONTRAST_FACTOR)
        return img

    def _target_path(self) -> Path:
        stamp = utcnow().strftime("%Y%m%d%H%M%S%f")
        return self._receipts_dir / f"receipt_{stamp}.jpg"

    def prepare(self, image_handle: Union[str, Path, bytes]) -> Path:
        """
        Produce the OCR-ready copy of a receipt photo.

        Args:
            image_handle: path to the photo, or its raw bytes

        Returns:
            Path of the saved JPEG

        Raises:
            ImagePreparationError: unreadable photo or unwritable directory
        """
        try:
            source = BytesIO(image_handle) if isinstance(image_handle, bytes) else image_handle
            with Image.open(source) as img:
                prepared = self._enhance(img)
        except (FileNotFoundError, UnidentifiedImageError, OSError) as e:
            raise ImagePreparationError(f"Could not read receipt photo: {e}")

        target = self._target_path()
        try:
            self._receipts_dir.mkdir(parents=True, exist_ok=True)
            prepared.save(target, format="JPEG", quality=JPEG_QUALITY)
        except OSError as e:
            raise ImagePreparationError(f"Could not save prepared receipt: {e}")

        logger.debug("receipt_image_prepared", path=str(target), size=prepared.size)
        return target

    def discard(self, prepared_path: Union[str, Path]) -> None:
        """Delete a prepared image that will not be kept (cancelled capture)."""
        try:
            Path(prepared_path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("receipt_image_not_deleted", path=str(prepared_path), error=str(e))
