"""Shared test fixtures."""

from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from uuid import UUID, uuid4

import pytest

from calorie_bot.adapters.telegram_client import TelegramClient
from calorie_bot.config import Settings
from calorie_bot.containers import AppContainer
from calorie_bot.domain.analysis import AnalysisMethod
from calorie_bot.domain.entries import FoodEntry
from calorie_bot.domain.models import UserRecord
from calorie_bot.domain.quota import Entitlements
from calorie_bot.errors import InfrastructureError
from calorie_bot.services.analysis import AnalysisOrchestrator
from calorie_bot.services.commands import StartCommandHandler
from calorie_bot.services.entries import FoodEntryRepository, FoodLogService
from calorie_bot.services.heuristic import HeuristicEstimator
from calorie_bot.services.purchases import PurchaseService
from calorie_bot.services.quota import QuotaLedger, QuotaRepository
from calorie_bot.services.reasoning import ReasoningClient, ReasoningGateway
from calorie_bot.services.transcription import TranscriptionGateway
from calorie_bot.services.users import UserRepository, UserService

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)
TODAY = NOW.date()

BORSCHT_REPLY = (
    '{"no_food_detected": false, "items": [{"name": "борщ", '
    '"portion": "1 тарелка", "calories": 120}], "total_calories": 120, '
    '"confidence": "high", "reasoning": "standard bowl"}'
)
NOT_FOOD_REPLY = '{"no_food_detected": true, "message": "this is not food"}'


@dataclass
class InMemoryUserRepository(UserRepository):
    """In-memory user repository for tests."""

    users: dict[int, UserRecord] = field(default_factory=dict)

    def get_by_telegram_id(self, telegram_user_id: int) -> UserRecord | None:
        return self.users.get(telegram_user_id)

    def upsert_user(self, telegram_user_id: int, first_name: str | None) -> UserRecord:
        user = self.users.get(telegram_user_id)
        if user is None:
            user = UserRecord(
                id=uuid4(), telegram_user_id=telegram_user_id, first_name=first_name
            )
        elif first_name is not None:
            user = replace(user, first_name=first_name)
        self.users[telegram_user_id] = user
        return user

    def set_daily_goal(self, user_id: UUID, goal: int) -> None:
        user = self.by_id(user_id)
        self.users[user.telegram_user_id] = replace(
            user, daily_goal_calories=goal, goal_confirmed=True
        )

    def by_id(self, user_id: UUID) -> UserRecord:
        for user in self.users.values():
            if user.id == user_id:
                return user
        raise KeyError(user_id)

    def add_confirmed_user(
        self,
        telegram_user_id: int = 42,
        first_name: str | None = "Anna",
        purchased_credits: int = 0,
        unlimited_until: date | None = None,
    ) -> UserRecord:
        user = UserRecord(
            id=uuid4(),
            telegram_user_id=telegram_user_id,
            first_name=first_name,
            goal_confirmed=True,
            purchased_credits=purchased_credits,
            unlimited_until=unlimited_until,
        )
        self.users[telegram_user_id] = user
        return user


@dataclass
class InMemoryQuotaRepository(QuotaRepository):
    """Quota repository storing entitlements on the in-memory user records."""

    user_repository: InMemoryUserRepository
    usage: dict[tuple[UUID, date], int] = field(default_factory=dict)
    fail: bool = False

    def get_entitlements(self, user_id: UUID) -> Entitlements | None:
        self._maybe_fail()
        try:
            user = self.user_repository.by_id(user_id)
        except KeyError:
            return None
        return Entitlements(
            purchased_credits=user.purchased_credits,
            unlimited_until=user.unlimited_until,
        )

    def get_free_usage(self, user_id: UUID, usage_date: date) -> int:
        self._maybe_fail()
        return self.usage.get((user_id, usage_date), 0)

    def increment_free_usage(
        self, user_id: UUID, usage_date: date, limit: int
    ) -> bool:
        used = self.usage.get((user_id, usage_date), 0)
        if used >= limit:
            return False
        self.usage[(user_id, usage_date)] = used + 1
        return True

    def decrement_purchased_credits(self, user_id: UUID) -> None:
        user = self.user_repository.by_id(user_id)
        self._store(replace(user, purchased_credits=max(0, user.purchased_credits - 1)))

    def add_purchased_credits(self, user_id: UUID, count: int) -> int:
        user = self.user_repository.by_id(user_id)
        balance = user.purchased_credits + count
        self._store(replace(user, purchased_credits=balance))
        return balance

    def set_unlimited_until(self, user_id: UUID, until: date) -> None:
        user = self.user_repository.by_id(user_id)
        self._store(replace(user, unlimited_until=until))

    def _store(self, user: UserRecord) -> None:
        self.user_repository.users[user.telegram_user_id] = user

    def _maybe_fail(self) -> None:
        if self.fail:
            raise InfrastructureError("quota storage unavailable")


@dataclass
class InMemoryFoodEntryRepository(FoodEntryRepository):
    """In-memory food log for tests."""

    entries: list[FoodEntry] = field(default_factory=list)
    fail_insert: bool = False

    def insert_food_entry(
        self,
        user_id: UUID,
        entry_date: date,
        description: str,
        calories: int,
        method: AnalysisMethod,
    ) -> FoodEntry:
        if self.fail_insert:
            raise InfrastructureError("insert failed")
        entry = FoodEntry(
            id=uuid4(),
            user_id=user_id,
            entry_date=entry_date,
            description=description,
            calories=calories,
            analysis_method=method,
            created_at=NOW,
        )
        self.entries.append(entry)
        return entry

    def list_entries_for_date(self, user_id: UUID, entry_date: date) -> list[FoodEntry]:
        return [
            entry
            for entry in self.entries
            if entry.user_id == user_id and entry.entry_date == entry_date
        ]


@dataclass
class FakeTelegramClient(TelegramClient):
    """Fake Telegram client that records messages."""

    messages: list[tuple[int, str]] = field(default_factory=list)
    markups: list[dict | None] = field(default_factory=list)
    callbacks: list[tuple[str, str | None]] = field(default_factory=list)
    commands: list[dict[str, str]] | None = None

    async def send_message(
        self, chat_id: int, text: str, reply_markup: dict | None = None
    ) -> None:
        self.messages.append((chat_id, text))
        self.markups.append(reply_markup)

    async def answer_callback_query(
        self, callback_query_id: str, text: str | None = None
    ) -> None:
        self.callbacks.append((callback_query_id, text))

    async def set_my_commands(self, commands: list[dict[str, str]]) -> None:
        self.commands = commands


@dataclass
class FakeTelegramFileClient:
    """Fake Telegram file client that returns static bytes."""

    content: bytes = b"\xff\xd8\xff\xe0fake-jpeg-bytes"
    error: Exception | None = None
    requested: list[str] = field(default_factory=list)

    async def download_file_bytes(self, file_id: str) -> bytes:
        self.requested.append(file_id)
        if self.error is not None:
            raise self.error
        return self.content


@dataclass
class FakeReasoningClient(ReasoningClient):
    """Fake reasoning client replaying canned replies or errors."""

    reply: str | Exception = BORSCHT_REPLY
    calls: list[dict[str, object]] = field(default_factory=list)

    async def complete(
        self, *, model: str, prompt: str, image_data_url: str | None = None
    ) -> str:
        self.calls.append(
            {"model": model, "prompt": prompt, "image_data_url": image_data_url}
        )
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


@dataclass
class FakeTranscriptionClient:
    """Fake speech-to-text provider."""

    name: str
    text: str = ""
    error: Exception | None = None
    calls: int = 0

    async def transcribe(self, audio: bytes, file_name: str) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.text


def fixed_clock(now: datetime = NOW):
    """Return a clock callable pinned to an instant."""
    return lambda: now


@pytest.fixture
def settings() -> Settings:
    return Settings(
        telegram_bot_token="test-token",
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        admin_token="admin-token",
        openai_api_key="openai-key",
        transcription_api_key="stt-key",
        environment="test",
    )


@pytest.fixture
def user_repository() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def quota_repository(
    user_repository: InMemoryUserRepository,
) -> InMemoryQuotaRepository:
    return InMemoryQuotaRepository(user_repository)


@pytest.fixture
def food_entry_repository() -> InMemoryFoodEntryRepository:
    return InMemoryFoodEntryRepository()


@pytest.fixture
def ledger(quota_repository: InMemoryQuotaRepository) -> QuotaLedger:
    return QuotaLedger(quota_repository, clock=fixed_clock())


@pytest.fixture
def telegram_client() -> FakeTelegramClient:
    return FakeTelegramClient()


@pytest.fixture
def file_client() -> FakeTelegramFileClient:
    return FakeTelegramFileClient()


@pytest.fixture
def reasoning_client() -> FakeReasoningClient:
    return FakeReasoningClient()


@pytest.fixture
def primary_stt() -> FakeTranscriptionClient:
    return FakeTranscriptionClient(name="primary", text="борщ и хлеб")


@pytest.fixture
def secondary_stt() -> FakeTranscriptionClient:
    return FakeTranscriptionClient(name="secondary", text="борщ")


@pytest.fixture
def orchestrator(  # noqa: PLR0913
    user_repository: InMemoryUserRepository,
    ledger: QuotaLedger,
    food_entry_repository: InMemoryFoodEntryRepository,
    reasoning_client: FakeReasoningClient,
    primary_stt: FakeTranscriptionClient,
    secondary_stt: FakeTranscriptionClient,
    file_client: FakeTelegramFileClient,
) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(
        user_service=UserService(user_repository),
        ledger=ledger,
        reasoning_gateway=ReasoningGateway(client=reasoning_client, model="test-model"),
        heuristic=HeuristicEstimator(),
        transcription_gateway=TranscriptionGateway(primary_stt, secondary_stt),
        food_log_service=FoodLogService(food_entry_repository),
        file_client=file_client,
    )


@pytest.fixture
def container(
    settings: Settings,
    user_repository: InMemoryUserRepository,
    ledger: QuotaLedger,
    orchestrator: AnalysisOrchestrator,
    telegram_client: FakeTelegramClient,
    file_client: FakeTelegramFileClient,
) -> AppContainer:
    user_service = orchestrator.user_service

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        telegram_client=telegram_client,
        telegram_file_client=file_client,
        user_service=user_service,
        start_command_handler=StartCommandHandler(user_service, telegram_client),
        ledger=ledger,
        food_log_service=orchestrator.food_log_service,
        analysis_orchestrator=orchestrator,
        purchase_service=PurchaseService(user_service, ledger),
        close_resources=close_resources,
    )
