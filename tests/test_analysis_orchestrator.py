"""Tests for the analysis use case."""

import asyncio
from datetime import timedelta

import httpx

from calorie_bot.domain.analysis import AnalysisMethod, FoodDetected, NoFoodDetected
from calorie_bot.domain.quota import ChargeSource
from calorie_bot.domain.responses import InputSource, ResponseKind
from calorie_bot.errors import InfrastructureError, RejectionReason
from calorie_bot.services.analysis import (
    MAX_PHOTO_BYTES,
    MAX_TEXT_LENGTH,
    PHOTO_DESCRIPTION,
    AnalysisOrchestrator,
)
from calorie_bot.services.reasoning import PHOTO_CONFIDENCE
from tests.conftest import (
    NOT_FOOD_REPLY,
    TODAY,
    FakeReasoningClient,
    FakeTelegramFileClient,
    FakeTranscriptionClient,
    InMemoryFoodEntryRepository,
    InMemoryQuotaRepository,
    InMemoryUserRepository,
)


def test_text_meal_is_estimated_charged_and_logged(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    quota_repository: InMemoryQuotaRepository,
    food_entry_repository: InMemoryFoodEntryRepository,
) -> None:
    user = user_repository.add_confirmed_user()

    response = asyncio.run(orchestrator.analyze_text(user.telegram_user_id, "борщ"))

    assert response.kind is ResponseKind.FOOD_DETECTED
    assert isinstance(response.result, FoodDetected)
    assert response.result.total_calories == 120
    assert response.method is AnalysisMethod.REASONING_SERVICE
    assert response.charge is not None
    assert response.charge.source is ChargeSource.FREE
    assert quota_repository.usage[(user.id, TODAY)] == 1
    assert response.allowance is not None
    assert response.allowance.free_remaining == 2
    [entry] = food_entry_repository.entries
    assert entry.description == "борщ"
    assert entry.calories == 120
    assert entry.entry_date == TODAY
    assert response.entry == entry


def test_reasoning_outage_falls_back_to_heuristic(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    reasoning_client: FakeReasoningClient,
    food_entry_repository: InMemoryFoodEntryRepository,
) -> None:
    user = user_repository.add_confirmed_user()
    reasoning_client.reply = httpx.ReadTimeout("timeout")

    response = asyncio.run(
        orchestrator.analyze_text(user.telegram_user_id, "тарелка борща")
    )

    assert response.kind is ResponseKind.FOOD_DETECTED
    assert response.method is AnalysisMethod.HEURISTIC
    assert isinstance(response.result, FoodDetected)
    assert response.result.total_calories == 120
    assert response.charged
    assert food_entry_repository.entries[0].analysis_method is AnalysisMethod.HEURISTIC


def test_unparseable_reply_falls_back_to_heuristic(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    reasoning_client: FakeReasoningClient,
    quota_repository: InMemoryQuotaRepository,
    food_entry_repository: InMemoryFoodEntryRepository,
) -> None:
    user = user_repository.add_confirmed_user()
    reasoning_client.reply = "roughly three hundred calories"

    response = asyncio.run(
        orchestrator.analyze_text(user.telegram_user_id, "тарелка борща")
    )

    assert response.method is AnalysisMethod.HEURISTIC
    assert isinstance(response.result, FoodDetected)
    assert response.result.total_calories == 120
    assert len(food_entry_repository.entries) == 1
    assert quota_repository.usage[(user.id, TODAY)] == 1


def test_not_food_is_charged_but_not_logged(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    reasoning_client: FakeReasoningClient,
    quota_repository: InMemoryQuotaRepository,
    food_entry_repository: InMemoryFoodEntryRepository,
) -> None:
    user = user_repository.add_confirmed_user()
    reasoning_client.reply = NOT_FOOD_REPLY

    response = asyncio.run(
        orchestrator.analyze_text(user.telegram_user_id, "какая погода?")
    )

    assert response.kind is ResponseKind.NOT_FOOD
    assert isinstance(response.result, NoFoodDetected)
    assert response.charged
    assert quota_repository.usage[(user.id, TODAY)] == 1
    assert food_entry_repository.entries == []


def test_blocked_user_is_not_analyzed(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    reasoning_client: FakeReasoningClient,
    quota_repository: InMemoryQuotaRepository,
) -> None:
    user = user_repository.add_confirmed_user()
    quota_repository.usage[(user.id, TODAY)] = 3

    response = asyncio.run(orchestrator.analyze_text(user.telegram_user_id, "борщ"))

    assert response.kind is ResponseKind.BLOCKED
    assert response.allowance is not None
    assert not response.allowance.allowed
    assert not response.charged
    assert reasoning_client.calls == []
    assert quota_repository.usage[(user.id, TODAY)] == 3


def test_expired_unlimited_with_exhausted_quota_is_blocked(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    quota_repository: InMemoryQuotaRepository,
) -> None:
    user = user_repository.add_confirmed_user(
        unlimited_until=TODAY - timedelta(days=1)
    )
    quota_repository.usage[(user.id, TODAY)] = 3

    response = asyncio.run(orchestrator.analyze_text(user.telegram_user_id, "борщ"))

    assert response.kind is ResponseKind.BLOCKED


def test_purchased_credit_is_spent_after_free_quota(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    quota_repository: InMemoryQuotaRepository,
) -> None:
    user = user_repository.add_confirmed_user(purchased_credits=1)
    quota_repository.usage[(user.id, TODAY)] = 3

    response = asyncio.run(orchestrator.analyze_text(user.telegram_user_id, "борщ"))

    assert response.kind is ResponseKind.FOOD_DETECTED
    assert response.charge is not None
    assert response.charge.source is ChargeSource.PURCHASED
    assert user_repository.by_id(user.id).purchased_credits == 0
    assert response.allowance is not None
    assert not response.allowance.allowed


def test_concurrent_attempts_cannot_overspend_last_unit(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    quota_repository: InMemoryQuotaRepository,
) -> None:
    user = user_repository.add_confirmed_user()
    quota_repository.usage[(user.id, TODAY)] = 2

    async def scenario():
        return await asyncio.gather(
            orchestrator.analyze_text(user.telegram_user_id, "борщ"),
            orchestrator.analyze_text(user.telegram_user_id, "суп"),
        )

    kinds = sorted(response.kind.value for response in asyncio.run(scenario()))

    assert kinds == ["blocked", "food_detected"]
    assert quota_repository.usage[(user.id, TODAY)] == 3


def test_user_without_goal_is_rejected(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    reasoning_client: FakeReasoningClient,
) -> None:
    user_repository.upsert_user(7, "Ivan")

    response = asyncio.run(orchestrator.analyze_text(7, "борщ"))
    unknown = asyncio.run(orchestrator.analyze_text(8, "борщ"))

    assert response.kind is ResponseKind.REJECTED
    assert response.rejection is RejectionReason.GOAL_NOT_SET
    assert unknown.rejection is RejectionReason.GOAL_NOT_SET
    assert reasoning_client.calls == []


def test_invalid_text_is_rejected_without_charge(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    quota_repository: InMemoryQuotaRepository,
) -> None:
    user = user_repository.add_confirmed_user()

    empty = asyncio.run(orchestrator.analyze_text(user.telegram_user_id, "   "))
    too_long = asyncio.run(
        orchestrator.analyze_text(user.telegram_user_id, "а" * (MAX_TEXT_LENGTH + 1))
    )

    assert empty.rejection is RejectionReason.EMPTY_TEXT
    assert too_long.rejection is RejectionReason.TEXT_TOO_LONG
    assert quota_repository.usage == {}


def test_quota_storage_failure_is_infra_error_without_charge(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    quota_repository: InMemoryQuotaRepository,
    reasoning_client: FakeReasoningClient,
) -> None:
    user = user_repository.add_confirmed_user()
    quota_repository.fail = True

    response = asyncio.run(orchestrator.analyze_text(user.telegram_user_id, "борщ"))

    assert response.kind is ResponseKind.INFRA_ERROR
    assert not response.charged
    assert reasoning_client.calls == []


def test_log_write_failure_keeps_charge(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    food_entry_repository: InMemoryFoodEntryRepository,
) -> None:
    user = user_repository.add_confirmed_user()
    food_entry_repository.fail_insert = True

    response = asyncio.run(orchestrator.analyze_text(user.telegram_user_id, "борщ"))

    assert response.kind is ResponseKind.INFRA_ERROR
    assert response.charge is not None
    assert response.charge.source is ChargeSource.FREE


def test_voice_note_is_transcribed_and_analyzed(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    reasoning_client: FakeReasoningClient,
    file_client: FakeTelegramFileClient,
    food_entry_repository: InMemoryFoodEntryRepository,
) -> None:
    user = user_repository.add_confirmed_user()

    response = asyncio.run(
        orchestrator.analyze_voice(user.telegram_user_id, "voice-file", 12)
    )

    assert response.kind is ResponseKind.FOOD_DETECTED
    assert response.source is InputSource.VOICE
    assert response.transcript == "борщ и хлеб"
    assert file_client.requested == ["voice-file"]
    assert str(reasoning_client.calls[0]["prompt"]).endswith("борщ и хлеб")
    assert food_entry_repository.entries[0].description == "борщ и хлеб"


def test_voice_uses_secondary_provider_when_primary_fails(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    primary_stt: FakeTranscriptionClient,
) -> None:
    user = user_repository.add_confirmed_user()
    primary_stt.error = httpx.ConnectError("refused")

    response = asyncio.run(orchestrator.analyze_voice(user.telegram_user_id, "f", 5))

    assert response.kind is ResponseKind.FOOD_DETECTED
    assert response.transcript == "борщ"


def test_failed_transcription_is_not_charged(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    primary_stt: FakeTranscriptionClient,
    secondary_stt: FakeTranscriptionClient,
    quota_repository: InMemoryQuotaRepository,
) -> None:
    user = user_repository.add_confirmed_user()
    primary_stt.error = RuntimeError("down")
    secondary_stt.error = RuntimeError("down too")

    response = asyncio.run(orchestrator.analyze_voice(user.telegram_user_id, "f", 5))

    assert response.kind is ResponseKind.TRANSCRIPTION_FAILED
    assert not response.charged
    assert quota_repository.usage == {}


def test_too_short_transcript_is_a_transcription_failure(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    primary_stt: FakeTranscriptionClient,
) -> None:
    user = user_repository.add_confirmed_user()
    primary_stt.text = "а"

    response = asyncio.run(orchestrator.analyze_voice(user.telegram_user_id, "f", 5))

    assert response.kind is ResponseKind.TRANSCRIPTION_FAILED
    assert response.transcript == "а"


def test_long_voice_note_is_rejected_before_download(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    file_client: FakeTelegramFileClient,
) -> None:
    user = user_repository.add_confirmed_user()

    response = asyncio.run(orchestrator.analyze_voice(user.telegram_user_id, "f", 61))

    assert response.rejection is RejectionReason.VOICE_TOO_LONG
    assert file_client.requested == []


def test_voice_download_failure_is_infra_error(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    file_client: FakeTelegramFileClient,
) -> None:
    user = user_repository.add_confirmed_user()
    file_client.error = InfrastructureError("telegram down")

    response = asyncio.run(orchestrator.analyze_voice(user.telegram_user_id, "f", 5))

    assert response.kind is ResponseKind.INFRA_ERROR
    assert not response.charged


def test_photo_is_analyzed_as_approximate_estimate(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    reasoning_client: FakeReasoningClient,
    food_entry_repository: InMemoryFoodEntryRepository,
) -> None:
    user = user_repository.add_confirmed_user()

    response = asyncio.run(
        orchestrator.analyze_image(user.telegram_user_id, "photo-file", 1024)
    )

    assert response.kind is ResponseKind.FOOD_DETECTED
    assert isinstance(response.result, FoodDetected)
    assert response.result.confidence == PHOTO_CONFIDENCE
    assert str(reasoning_client.calls[0]["image_data_url"]).startswith(
        "data:image/jpeg;base64,"
    )
    assert food_entry_repository.entries[0].description == PHOTO_DESCRIPTION


def test_photo_reasoning_failure_is_infra_error_without_charge(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    reasoning_client: FakeReasoningClient,
    quota_repository: InMemoryQuotaRepository,
) -> None:
    user = user_repository.add_confirmed_user()
    reasoning_client.reply = RuntimeError("model overloaded")

    response = asyncio.run(orchestrator.analyze_image(user.telegram_user_id, "p", 10))

    assert response.kind is ResponseKind.INFRA_ERROR
    assert not response.charged
    assert quota_repository.usage == {}


def test_oversized_photo_is_rejected(
    orchestrator: AnalysisOrchestrator,
    user_repository: InMemoryUserRepository,
    file_client: FakeTelegramFileClient,
) -> None:
    user = user_repository.add_confirmed_user()

    response = asyncio.run(
        orchestrator.analyze_image(user.telegram_user_id, "p", MAX_PHOTO_BYTES + 1)
    )

    assert response.rejection is RejectionReason.PHOTO_TOO_LARGE
    assert file_client.requested == []
