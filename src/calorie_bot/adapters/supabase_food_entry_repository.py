"""Supabase-backed food log repository."""

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from supabase import Client

from calorie_bot.adapters.supabase_common import run_query
from calorie_bot.domain.analysis import AnalysisMethod
from calorie_bot.domain.entries import FoodEntry
from calorie_bot.errors import InfrastructureError
from calorie_bot.services.entries import FoodEntryRepository

_ENTRY_COLUMNS = (
    "id, user_id, entry_date, description, calories, analysis_method, created_at"
)


@dataclass
class SupabaseFoodEntryRepository(FoodEntryRepository):
    """Supabase implementation for food entries."""

    client: Client

    def insert_food_entry(
        self,
        user_id: UUID,
        entry_date: date,
        description: str,
        calories: int,
        method: AnalysisMethod,
    ) -> FoodEntry:
        """Insert an immutable food entry and return it."""
        response = run_query(
            self.client.table("food_entries").insert(
                {
                    "user_id": str(user_id),
                    "entry_date": entry_date.isoformat(),
                    "description": description,
                    "calories": calories,
                    "analysis_method": method.value,
                }
            ),
            "food entry insert",
        )
        if not response.data:
            raise InfrastructureError("Failed to insert food entry in Supabase")
        return _parse_entry(response.data[0])

    def list_entries_for_date(self, user_id: UUID, entry_date: date) -> list[FoodEntry]:
        """Return the user's entries for a date in insertion order."""
        response = run_query(
            self.client.table("food_entries")
            .select(_ENTRY_COLUMNS)
            .eq("user_id", str(user_id))
            .eq("entry_date", entry_date.isoformat())
            .order("created_at"),
            "food entry list",
        )
        return [_parse_entry(row) for row in response.data or []]


def _parse_entry(row: dict) -> FoodEntry:
    created_at = row.get("created_at")
    return FoodEntry(
        id=UUID(row["id"]),
        user_id=UUID(row["user_id"]),
        entry_date=date.fromisoformat(row["entry_date"]),
        description=row["description"],
        calories=int(row["calories"]),
        analysis_method=AnalysisMethod(row["analysis_method"]),
        created_at=datetime.fromisoformat(created_at) if created_at else None,
    )
