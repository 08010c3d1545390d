"""Speech-to-text for voice search."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

import requests

from .backoff import call_with_backoff
from .config import Settings
from .errors import TranscriptionError

logger = logging.getLogger(__name__)

WHISPER_URL = "https://api.openai.com/v1/audio/transcriptions"


class Transcriber(ABC):
    name = "base"

    @abstractmethod
    def transcribe(self, audio: bytes, filename: str, content_type: Optional[str] = None) -> str:
        """Return the spoken text. Raises TranscriptionError."""


class WhisperTranscriber(Transcriber):
    name = "whisper"

    def __init__(self, api_key: str, model: str = "whisper-1", timeout: float = 60, max_retries: int = 2,
                 sleep: Callable[[float], None] = time.sleep):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries
        self._sleep = sleep

    def _post(self, audio: bytes, filename: str, content_type: Optional[str]) -> requests.Response:
        return requests.post(
            WHISPER_URL,
            headers={"Authorization": f"Bearer {self.api_key}"},
            data={"model": self.model},
            files={"file": (filename or "audio.webm", audio, content_type or "audio/webm")},
            timeout=self.timeout,
        )

    def transcribe(self, audio: bytes, filename: str, content_type: Optional[str] = None) -> str:
        try:
            # only dropped connections are worth a second attempt
            r = call_with_backoff(
                lambda: self._post(audio, filename, content_type),
                max_retries=self.max_retries,
                base_delay=0.5,
                retry_on=(requests.ConnectionError,),
                sleep=self._sleep,
                label="whisper transcription",
            )
        except requests.RequestException as e:
            raise TranscriptionError(f"Whisper request failed: {e}") from e
        if r.status_code != 200:
            raise TranscriptionError(f"Whisper {r.status_code}: {r.text}")
        try:
            text = (r.json().get("text") or "").strip()
        except (ValueError, AttributeError) as e:
            raise TranscriptionError(f"unexpected Whisper response: {e}") from e
        if not text:
            raise TranscriptionError("empty transcription")
        logger.info("Transcribed %d bytes of audio into %d chars", len(audio), len(text))
        return text


def build_transcriber(settings: Settings) -> Optional[Transcriber]:
    if not settings.openai_api_key:
        return None
    return WhisperTranscriber(api_key=settings.openai_api_key, timeout=settings.embed_timeout)
