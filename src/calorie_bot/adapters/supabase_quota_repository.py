"""Supabase-backed entitlement storage."""

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from supabase import Client

from calorie_bot.adapters.supabase_common import run_query
from calorie_bot.domain.quota import Entitlements
from calorie_bot.services.quota import QuotaRepository


@dataclass
class SupabaseQuotaRepository(QuotaRepository):
    """Quota persistence over the users and daily_usage tables.

    Counter mutations go through SQL functions so each one is a single
    atomic statement on the database side.
    """

    client: Client

    def get_entitlements(self, user_id: UUID) -> Entitlements | None:
        """Return purchased credits and unlimited expiry for a user."""
        response = run_query(
            self.client.table("users")
            .select("purchased_credits, unlimited_until")
            .eq("id", str(user_id))
            .limit(1),
            "entitlement lookup",
        )
        if not response.data:
            return None
        row = response.data[0]
        unlimited_until = row.get("unlimited_until")
        return Entitlements(
            purchased_credits=int(row.get("purchased_credits") or 0),
            unlimited_until=(
                date.fromisoformat(unlimited_until) if unlimited_until else None
            ),
        )

    def get_free_usage(self, user_id: UUID, usage_date: date) -> int:
        """Return free analyses used on a date, 0 when no counter exists."""
        response = run_query(
            self.client.table("daily_usage")
            .select("free_requests_used")
            .eq("user_id", str(user_id))
            .eq("usage_date", usage_date.isoformat())
            .limit(1),
            "usage lookup",
        )
        if not response.data:
            return 0
        return int(response.data[0].get("free_requests_used") or 0)

    def increment_free_usage(
        self, user_id: UUID, usage_date: date, limit: int
    ) -> bool:
        """Atomically take one free slot; False when the limit is reached."""
        response = run_query(
            self.client.rpc(
                "increment_free_usage",
                {
                    "p_user_id": str(user_id),
                    "p_usage_date": usage_date.isoformat(),
                    "p_limit": limit,
                },
            ),
            "free usage increment",
        )
        return bool(response.data)

    def decrement_purchased_credits(self, user_id: UUID) -> None:
        """Atomically remove one purchased credit, never going below zero."""
        run_query(
            self.client.rpc(
                "decrement_purchased_credits", {"p_user_id": str(user_id)}
            ),
            "credit decrement",
        )

    def add_purchased_credits(self, user_id: UUID, count: int) -> int:
        """Add purchased credits and return the new balance."""
        response = run_query(
            self.client.rpc(
                "add_purchased_credits",
                {"p_user_id": str(user_id), "p_count": count},
            ),
            "credit grant",
        )
        return int(response.data or 0)

    def set_unlimited_until(self, user_id: UUID, until: date) -> None:
        """Persist the unlimited subscription expiry date."""
        run_query(
            self.client.table("users")
            .update({"unlimited_until": until.isoformat()})
            .eq("id", str(user_id)),
            "unlimited update",
        )
