"""
Voice transcription using Gemini

The recording is uploaded through the Gemini Files API and the model is
asked for a verbatim transcript. Only the text comes back; working out
amounts and categories is the extraction engine's job, not the model's.

BOUNDARIES:
- NEVER interprets the transcript
- ALWAYS deletes the uploaded recording afterwards
"""

import asyncio
from pathlib import Path
from typing import Optional, Union

import google.generativeai as genai
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from trackrise.config import GeminiSettings, get_settings
from trackrise.services.transcription.interface import TranscriptionError, TranscriptionService

logger = structlog.get_logger(__name__)


class TranscriptionServiceUnavailableError(TranscriptionError):
    """Gemini could not be reached or failed the request."""
    pass


class GeminiTranscriptionService(TranscriptionService):
    """Transcription backed by a Gemini multimodal model."""

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": 0.0,
                "max_output_tokens": 1024,
            }
        )

    @retry(
        retry=retry_if_exception_type(TranscriptionServiceUnavailableError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def transcribe(self, audio_handle: Union[str, Path]) -> str:
        path = Path(audio_handle)
        if not path.is_file():
            raise TranscriptionError(f"Recording not found: {path}", service="gemini")

        try:
            audio = await asyncio.to_thread(genai.upload_file, path=str(path))
        except Exception as e:
            raise TranscriptionServiceUnavailableError(
                f"Failed to upload recording: {e}", service="gemini"
            )

        try:
            response = await self._model.generate_content_async(
                [self._settings.transcription_prompt, audio]
            )
            text = (response.text or "").strip()
        except ValueError as e:
            # response.text raises ValueError when the candidate was blocked
            raise TranscriptionError(f"No transcript returned: {e}", service="gemini")
        except Exception as e:
            raise TranscriptionServiceUnavailableError(
                f"Transcription request failed: {e}", service="gemini"
            )
        finally:
            try:
                await asyncio.to_thread(genai.delete_file, audio.name)
            except Exception as e:
                logger.warning("uploaded_recording_not_deleted", name=audio.name, error=str(e))

        if not text:
            raise TranscriptionError("Recording contained no speech", service="gemini")

        logger.debug("recording_transcribed", path=str(path), length=len(text))
        return text
