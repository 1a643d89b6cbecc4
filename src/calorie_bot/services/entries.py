"""Food log persistence and daily summaries."""

from dataclasses import dataclass
from datetime import date
from typing import Protocol
from uuid import UUID

from calorie_bot.domain.analysis import AnalysisMethod
from calorie_bot.domain.entries import DailySummary, FoodEntry
from calorie_bot.domain.models import UserRecord


class FoodEntryRepository(Protocol):
    """Persistence interface for food entries."""

    def insert_food_entry(
        self,
        user_id: UUID,
        entry_date: date,
        description: str,
        calories: int,
        method: AnalysisMethod,
    ) -> FoodEntry:
        """Insert an immutable food entry and return it."""

    def list_entries_for_date(self, user_id: UUID, entry_date: date) -> list[FoodEntry]:
        """Return the user's entries for a date in insertion order."""


@dataclass
class FoodLogService:
    """Service for writing and summarizing the food log."""

    repository: FoodEntryRepository

    def record(
        self,
        user_id: UUID,
        entry_date: date,
        description: str,
        calories: int,
        method: AnalysisMethod,
    ) -> FoodEntry:
        """Persist one analysed meal."""
        return self.repository.insert_food_entry(
            user_id=user_id,
            entry_date=entry_date,
            description=description,
            calories=calories,
            method=method,
        )

    def daily_summary(self, user: UserRecord, day: date) -> DailySummary:
        """Return the day's entries and totals against the user's goal."""
        entries = self.repository.list_entries_for_date(user.id, day)
        return DailySummary(
            day=day,
            entries=entries,
            total_calories=sum(entry.calories for entry in entries),
            goal=user.daily_goal_calories,
        )
