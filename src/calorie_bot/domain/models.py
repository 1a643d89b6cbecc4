"""Domain models for the calorie bot."""

from dataclasses import dataclass
from datetime import date
from uuid import UUID

DEFAULT_DAILY_GOAL = 2000


@dataclass(frozen=True)
class UserRecord:
    """Represents a user stored in the database."""

    id: UUID
    telegram_user_id: int
    first_name: str | None = None
    daily_goal_calories: int = DEFAULT_DAILY_GOAL
    goal_confirmed: bool = False
    purchased_credits: int = 0
    unlimited_until: date | None = None
