"""Speech-to-text services package."""

from trackrise.services.transcription.interface import (
    TranscriptionError,
    TranscriptionService,
)
from trackrise.services.transcription.gemini_service import (
    GeminiTranscriptionService,
    TranscriptionServiceUnavailableError,
)

__all__ = [
    "GeminiTranscriptionService",
    "TranscriptionError",
    "TranscriptionService",
    "TranscriptionServiceUnavailableError",
]
