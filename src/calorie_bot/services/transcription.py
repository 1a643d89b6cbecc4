"""Speech-to-text gateway with a primary and a secondary provider."""

import logging
from dataclasses import dataclass
from typing import Protocol

from calorie_bot.errors import TranscriptionFailure

_logger = logging.getLogger(__name__)


class TranscriptionClient(Protocol):
    """Interface for a single speech-to-text provider."""

    name: str

    async def transcribe(self, audio: bytes, file_name: str) -> str:
        """Return the transcribed text for an audio payload."""


@dataclass(frozen=True)
class Transcript:
    """Successful transcription."""

    text: str
    provider: str


@dataclass
class TranscriptionGateway:
    """Fallback chain over transcription providers."""

    primary: TranscriptionClient
    secondary: TranscriptionClient

    async def transcribe(
        self, audio: bytes, file_name: str
    ) -> Transcript | TranscriptionFailure:
        """Try the primary provider, then the secondary one."""
        last_error = "no provider attempted"
        for client in (self.primary, self.secondary):
            try:
                text = await client.transcribe(audio, file_name)
            except Exception as exc:
                last_error = f"{client.name}: {type(exc).__name__}: {exc}"
                _logger.warning("Transcription via %s failed: %s", client.name, exc)
                continue
            if text and text.strip():
                return Transcript(text=text.strip(), provider=client.name)
            last_error = f"{client.name}: empty transcription"
            _logger.warning("Transcription via %s returned no text", client.name)
        return TranscriptionFailure(detail=last_error)
