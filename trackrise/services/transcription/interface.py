"""Abstract speech-to-text capability."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union

from trackrise.services.errors import CaptureDeviceError


class TranscriptionError(CaptureDeviceError):
    """The recording could not be transcribed."""

    def __init__(self, message: str, service: str = "transcription"):
        super().__init__(message, service=service)


class TranscriptionService(ABC):
    """Turns a voice recording into plain text."""

    @abstractmethod
    async def transcribe(self, audio_handle: Union[str, Path]) -> str:
        """
        Transcribe the recording at ``audio_handle``.

        Raises:
            TranscriptionError: nothing usable could be transcribed
        """
        pass
