"""HTTP speech-to-text providers."""

from dataclasses import dataclass

import httpx

from calorie_bot.services.transcription import TranscriptionClient


@dataclass
class HttpxWhisperTranscriptionClient(TranscriptionClient):
    """OpenAI-compatible /audio/transcriptions endpoint with a language hint."""

    api_key: str
    url: str
    model: str
    language: str | None
    http_client: httpx.AsyncClient
    timeout_seconds: float = 30.0
    name: str = "whisper"

    async def transcribe(self, audio: bytes, file_name: str) -> str:
        """Upload the audio as multipart form data and return the text."""
        data = {"model": self.model}
        if self.language:
            data["language"] = self.language
        response = await self.http_client.post(
            self.url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            data=data,
            files={"file": (file_name, audio)},
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        return str(response.json().get("text") or "")


@dataclass
class HttpxDirectTranscriptionClient(TranscriptionClient):
    """Direct audio endpoint taking an explicitly typed OGG upload."""

    api_key: str
    url: str
    http_client: httpx.AsyncClient
    content_type: str = "audio/ogg"
    timeout_seconds: float = 45.0
    name: str = "direct"

    async def transcribe(self, audio: bytes, file_name: str) -> str:
        """Upload the audio without a language hint and return the text."""
        response = await self.http_client.post(
            self.url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            files={"file": (file_name, audio, self.content_type)},
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        payload = response.json()
        text = (
            payload.get("text") or payload.get("transcription") or payload.get("result")
        )
        return str(text or "").strip()
