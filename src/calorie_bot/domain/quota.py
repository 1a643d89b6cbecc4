"""Domain models for quota accounting."""

from dataclasses import dataclass
from datetime import date
from enum import Enum

FREE_DAILY_LIMIT = 3
UNBOUNDED = 999_999


class ChargeSource(Enum):
    """Entitlement source consumed by a charge."""

    FREE = "free"
    PURCHASED = "purchased"
    UNLIMITED = "unlimited"


@dataclass(frozen=True)
class Entitlements:
    """Persisted entitlement state for a user."""

    purchased_credits: int
    unlimited_until: date | None


@dataclass(frozen=True)
class Allowance:
    """Answer to "may this user run an analysis right now"."""

    allowed: bool
    free_remaining: int
    purchased_remaining: int
    is_unlimited: bool

    @property
    def remaining(self) -> int:
        """Total analyses left across free and purchased sources."""
        if self.is_unlimited:
            return UNBOUNDED
        return self.free_remaining + self.purchased_remaining


@dataclass(frozen=True)
class ChargeReceipt:
    """Outcome of charging one analysis."""

    source: ChargeSource
