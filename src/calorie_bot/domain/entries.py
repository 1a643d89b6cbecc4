"""Domain models for the food log."""

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from calorie_bot.domain.analysis import AnalysisMethod


@dataclass(frozen=True)
class FoodEntry:
    """Immutable food log row."""

    id: UUID
    user_id: UUID
    entry_date: date
    description: str
    calories: int
    analysis_method: AnalysisMethod
    created_at: datetime | None = None


@dataclass(frozen=True)
class DailySummary:
    """Totals for one calendar day against the user's goal."""

    day: date
    entries: list[FoodEntry]
    total_calories: int
    goal: int

    @property
    def remaining(self) -> int:
        return self.goal - self.total_calories

    @property
    def progress_percent(self) -> int:
        if self.goal <= 0:
            return 0
        return round(self.total_calories * 100 / self.goal)
