"""Supabase-backed user repository."""

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from supabase import Client

from calorie_bot.adapters.supabase_common import run_query
from calorie_bot.domain.models import DEFAULT_DAILY_GOAL, UserRecord
from calorie_bot.errors import InfrastructureError
from calorie_bot.services.users import UserRepository

_USER_COLUMNS = (
    "id, telegram_user_id, first_name, daily_goal_calories, goal_confirmed, "
    "purchased_credits, unlimited_until"
)


@dataclass
class SupabaseUserRepository(UserRepository):
    """Supabase implementation for user persistence."""

    client: Client

    def get_by_telegram_id(self, telegram_user_id: int) -> UserRecord | None:
        """Return the user for a Telegram user id, if present."""
        response = run_query(
            self.client.table("users")
            .select(_USER_COLUMNS)
            .eq("telegram_user_id", telegram_user_id)
            .limit(1),
            "user lookup",
        )
        if response.data:
            return parse_user(response.data[0])
        return None

    def upsert_user(self, telegram_user_id: int, first_name: str | None) -> UserRecord:
        """Create the user if missing, refresh the name, and return it."""
        payload: dict[str, object] = {"telegram_user_id": telegram_user_id}
        if first_name is not None:
            payload["first_name"] = first_name
        response = run_query(
            self.client.table("users").upsert(
                payload, on_conflict="telegram_user_id"
            ),
            "user upsert",
        )
        if not response.data:
            raise InfrastructureError("Failed to upsert user in Supabase")
        return parse_user(response.data[0])

    def set_daily_goal(self, user_id: UUID, goal: int) -> None:
        """Store the daily goal and mark it as confirmed."""
        run_query(
            self.client.table("users")
            .update({"daily_goal_calories": goal, "goal_confirmed": True})
            .eq("id", str(user_id)),
            "goal update",
        )


def parse_user(row: dict) -> UserRecord:
    """Convert a users row into a UserRecord."""
    unlimited_until = row.get("unlimited_until")
    return UserRecord(
        id=UUID(row["id"]),
        telegram_user_id=int(row["telegram_user_id"]),
        first_name=row.get("first_name"),
        daily_goal_calories=int(row.get("daily_goal_calories") or DEFAULT_DAILY_GOAL),
        goal_confirmed=bool(row.get("goal_confirmed")),
        purchased_credits=int(row.get("purchased_credits") or 0),
        unlimited_until=(
            date.fromisoformat(unlimited_until) if unlimited_until else None
        ),
    )
