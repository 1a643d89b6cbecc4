"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx
from supabase import create_client

from calorie_bot.adapters.openai_reasoning_client import OpenAIReasoningClient
from calorie_bot.adapters.supabase_food_entry_repository import (
    SupabaseFoodEntryRepository,
)
from calorie_bot.adapters.supabase_quota_repository import SupabaseQuotaRepository
from calorie_bot.adapters.supabase_user_repository import SupabaseUserRepository
from calorie_bot.adapters.telegram_client import (
    HttpxTelegramClient,
    TelegramClient,
)
from calorie_bot.adapters.telegram_file_client import (
    HttpxTelegramFileClient,
    TelegramFileClient,
)
from calorie_bot.adapters.transcription_clients import (
    HttpxDirectTranscriptionClient,
    HttpxWhisperTranscriptionClient,
)
from calorie_bot.config import Settings
from calorie_bot.services.analysis import AnalysisOrchestrator
from calorie_bot.services.commands import StartCommandHandler
from calorie_bot.services.entries import FoodLogService
from calorie_bot.services.heuristic import HeuristicEstimator
from calorie_bot.services.purchases import PurchaseService
from calorie_bot.services.quota import QuotaLedger
from calorie_bot.services.reasoning import ReasoningGateway
from calorie_bot.services.transcription import TranscriptionGateway
from calorie_bot.services.users import UserService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    telegram_client: TelegramClient
    telegram_file_client: TelegramFileClient
    user_service: UserService
    start_command_handler: StartCommandHandler
    ledger: QuotaLedger
    food_log_service: FoodLogService
    analysis_orchestrator: AnalysisOrchestrator
    purchase_service: PurchaseService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    user_service = UserService(SupabaseUserRepository(supabase_client))
    ledger = QuotaLedger(
        SupabaseQuotaRepository(supabase_client),
        timezone_name=resolved_settings.service_timezone,
    )
    food_log_service = FoodLogService(SupabaseFoodEntryRepository(supabase_client))

    telegram_client = HttpxTelegramClient.create(
        resolved_settings.telegram_bot_token,
        timeout_seconds=resolved_settings.telegram_timeout_seconds,
    )
    telegram_file_client = HttpxTelegramFileClient.create(
        resolved_settings.telegram_bot_token,
        timeout_seconds=resolved_settings.telegram_file_timeout_seconds,
    )
    reasoning_client = OpenAIReasoningClient.create(
        resolved_settings.openai_api_key,
        timeout_seconds=resolved_settings.openai_timeout_seconds,
    )
    transcription_http = httpx.AsyncClient()
    primary = HttpxWhisperTranscriptionClient(
        api_key=resolved_settings.transcription_api_key,
        url=resolved_settings.transcription_primary_url,
        model=resolved_settings.transcription_model,
        language=resolved_settings.transcription_language,
        http_client=transcription_http,
        timeout_seconds=resolved_settings.transcription_primary_timeout_seconds,
    )
    secondary = HttpxDirectTranscriptionClient(
        api_key=resolved_settings.transcription_api_key,
        url=resolved_settings.transcription_secondary_url,
        http_client=transcription_http,
        timeout_seconds=resolved_settings.transcription_secondary_timeout_seconds,
    )

    analysis_orchestrator = AnalysisOrchestrator(
        user_service=user_service,
        ledger=ledger,
        reasoning_gateway=ReasoningGateway(
            client=reasoning_client, model=resolved_settings.openai_model
        ),
        heuristic=HeuristicEstimator(),
        transcription_gateway=TranscriptionGateway(primary, secondary),
        food_log_service=food_log_service,
        file_client=telegram_file_client,
    )
    start_handler = StartCommandHandler(user_service, telegram_client)

    async def close_resources() -> None:
        await telegram_client.close()
        await telegram_file_client.close()
        await transcription_http.aclose()
        await reasoning_client.close()

    return AppContainer(
        settings=resolved_settings,
        telegram_client=telegram_client,
        telegram_file_client=telegram_file_client,
        user_service=user_service,
        start_command_handler=start_handler,
        ledger=ledger,
        food_log_service=food_log_service,
        analysis_orchestrator=analysis_orchestrator,
        purchase_service=PurchaseService(user_service, ledger),
        close_resources=close_resources,
    )
