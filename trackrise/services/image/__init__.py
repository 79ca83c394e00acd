"""Image processing services package."""

from trackrise.services.image.receipt_image import (
    ImagePreparationError,
    ReceiptImageProcessor,
)

__all__ = [
    "ImagePreparationError",
    "ReceiptImageProcessor",
]
