"""Telegram file download client."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from calorie_bot.errors import InfrastructureError


class TelegramFileClient(Protocol):
    """Interface for downloading Telegram files."""

    async def download_file_bytes(self, file_id: str) -> bytes:
        """Download a Telegram file and return its bytes."""


@dataclass
class HttpxTelegramFileClient(TelegramFileClient):
    """Telegram file client using httpx; failures raise InfrastructureError."""

    bot_token: str
    http_client: httpx.AsyncClient
    timeout_seconds: float = 20.0

    @classmethod
    def create(
        cls, bot_token: str, timeout_seconds: float = 20.0
    ) -> "HttpxTelegramFileClient":
        """Create a Telegram file client with a managed httpx session."""
        return cls(
            bot_token=bot_token,
            http_client=httpx.AsyncClient(),
            timeout_seconds=timeout_seconds,
        )

    async def download_file_bytes(self, file_id: str) -> bytes:
        """Resolve the file path via getFile and download the content."""
        try:
            file_path = await self._resolve_file_path(file_id)
            response = await self.http_client.get(
                f"https://api.telegram.org/file/bot{self.bot_token}/{file_path}",
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise InfrastructureError(f"Telegram file download failed: {exc}") from exc
        return response.content

    async def _resolve_file_path(self, file_id: str) -> str:
        response = await self.http_client.get(
            f"https://api.telegram.org/bot{self.bot_token}/getFile",
            params={"file_id": file_id},
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as exc:
            raise InfrastructureError("Telegram getFile returned invalid JSON") from exc
        if not isinstance(payload, dict) or not payload.get("ok"):
            raise InfrastructureError("Telegram getFile returned no file path")
        result = payload.get("result")
        file_path = result.get("file_path") if isinstance(result, dict) else None
        if not isinstance(file_path, str):
            raise InfrastructureError("Telegram getFile returned no file path")
        return file_path

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
