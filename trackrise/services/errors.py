"""Errors shared by the capture capabilities (transcription, OCR, image)."""


class CaptureDeviceError(Exception):
    """
    A capture capability failed to turn the user's input into text.

    The capture coordinator treats every subclass the same way: the
    capture ends in FAILED and nothing is persisted.
    """

    def __init__(self, message: str, service: str = "unknown"):
        self.service = service
        super().__init__(message)
