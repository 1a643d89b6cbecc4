"""User-related business logic."""

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from calorie_bot.domain.models import UserRecord

GOAL_CHOICES: tuple[int, ...] = (1700, 1800, 1900, 2000, 2100, 2200)
MIN_GOAL = 800
MAX_GOAL = 6000


class UserRepository(Protocol):
    """Persistence interface for user data."""

    def get_by_telegram_id(self, telegram_user_id: int) -> UserRecord | None:
        """Return the user for a Telegram user id, if present."""

    def upsert_user(self, telegram_user_id: int, first_name: str | None) -> UserRecord:
        """Create the user if missing, refresh the name, and return it."""

    def set_daily_goal(self, user_id: UUID, goal: int) -> None:
        """Store the daily goal and mark it as confirmed."""


@dataclass
class UserService:
    """Application service for user lifecycle actions."""

    repository: UserRepository

    def ensure_user(
        self, telegram_user_id: int, first_name: str | None = None
    ) -> UserRecord:
        """Ensure a user exists for the Telegram id and return it."""
        return self.repository.upsert_user(telegram_user_id, first_name)

    def get_user(self, telegram_user_id: int) -> UserRecord | None:
        """Return the stored user, if any."""
        return self.repository.get_by_telegram_id(telegram_user_id)

    def set_daily_goal(
        self, telegram_user_id: int, goal: int, first_name: str | None = None
    ) -> UserRecord:
        """Confirm a daily calorie goal, unlocking analysis features."""
        if not MIN_GOAL <= goal <= MAX_GOAL:
            raise ValueError(f"Daily goal must be between {MIN_GOAL} and {MAX_GOAL}")
        user = self.ensure_user(telegram_user_id, first_name)
        self.repository.set_daily_goal(user.id, goal)
        return UserRecord(
            id=user.id,
            telegram_user_id=user.telegram_user_id,
            first_name=user.first_name,
            daily_goal_calories=goal,
            goal_confirmed=True,
            purchased_credits=user.purchased_credits,
            unlimited_until=user.unlimited_until,
        )
