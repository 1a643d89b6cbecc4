"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    telegram_bot_token: str
    supabase_url: str
    supabase_service_key: str
    admin_token: str
    openai_api_key: str
    openai_model: str = "gpt-4o-mini"
    openai_timeout_seconds: float = 25.0
    transcription_api_key: str
    transcription_primary_url: str = (
        "https://api.fireworks.ai/inference/v1/audio/transcriptions"
    )
    transcription_secondary_url: str = (
        "https://audio-prod.us-virginia-1.direct.fireworks.ai/v1/audio/transcriptions"
    )
    transcription_model: str = "whisper-v3"
    transcription_language: str | None = "ru"
    telegram_timeout_seconds: float = 10.0
    telegram_file_timeout_seconds: float = 20.0
    transcription_primary_timeout_seconds: float = 30.0
    transcription_secondary_timeout_seconds: float = 45.0
    service_timezone: str = "UTC"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
