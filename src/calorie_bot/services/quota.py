"""Quota ledger over free, purchased and unlimited entitlements."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Protocol
from uuid import UUID
from weakref import WeakValueDictionary
from zoneinfo import ZoneInfo

from calorie_bot.domain.quota import (
    FREE_DAILY_LIMIT,
    UNBOUNDED,
    Allowance,
    ChargeReceipt,
    ChargeSource,
    Entitlements,
)
from calorie_bot.errors import InfrastructureError

_logger = logging.getLogger(__name__)


class QuotaRepository(Protocol):
    """Persistence interface for entitlement state."""

    def get_entitlements(self, user_id: UUID) -> Entitlements | None:
        """Return purchased credits and unlimited expiry for a user."""

    def get_free_usage(self, user_id: UUID, usage_date: date) -> int:
        """Return free analyses used on a date, 0 when no counter exists."""

    def increment_free_usage(
        self, user_id: UUID, usage_date: date, limit: int
    ) -> bool:
        """Atomically take one free slot; False when the limit is reached."""

    def decrement_purchased_credits(self, user_id: UUID) -> None:
        """Atomically remove one purchased credit, never going below zero."""

    def add_purchased_credits(self, user_id: UUID, count: int) -> int:
        """Add purchased credits and return the new balance."""

    def set_unlimited_until(self, user_id: UUID, until: date) -> None:
        """Persist the unlimited subscription expiry date."""


@dataclass
class QuotaLedger:
    """Answers allowance questions and charges analyses from persisted state."""

    repository: QuotaRepository
    timezone_name: str = "UTC"
    free_daily_limit: int = FREE_DAILY_LIMIT
    clock: Callable[[], datetime] | None = None

    def now(self) -> datetime:
        """Return the current instant in the service time zone."""
        tz = ZoneInfo(self.timezone_name)
        if self.clock is None:
            return datetime.now(tz=tz)
        return self.clock().astimezone(tz)

    def today(self) -> date:
        """Return the current calendar date in the service time zone."""
        return self.now().date()

    def check_allowance(self, user_id: UUID) -> Allowance:
        """Return whether the user may run an analysis right now."""
        now = self.now()
        entitlements = self._entitlements(user_id)
        if _unlimited_active(entitlements.unlimited_until, now):
            return Allowance(
                allowed=True,
                free_remaining=UNBOUNDED,
                purchased_remaining=UNBOUNDED,
                is_unlimited=True,
            )
        used = self.repository.get_free_usage(user_id, now.date())
        free_remaining = max(0, self.free_daily_limit - used)
        purchased = max(0, entitlements.purchased_credits)
        return Allowance(
            allowed=free_remaining + purchased > 0,
            free_remaining=free_remaining,
            purchased_remaining=purchased,
            is_unlimited=False,
        )

    def charge(self, user_id: UUID) -> ChargeReceipt:
        """Consume one analysis from the highest-priority entitlement.

        An active unlimited subscription consumes nothing. Otherwise a free
        slot is taken while any remain today, then a purchased credit. A zero
        credit balance stays at zero.
        """
        now = self.now()
        entitlements = self._entitlements(user_id)
        if _unlimited_active(entitlements.unlimited_until, now):
            _logger.info("Charged user_id=%s source=unlimited", user_id)
            return ChargeReceipt(source=ChargeSource.UNLIMITED)

        day = now.date()
        used = self.repository.get_free_usage(user_id, day)
        if used < self.free_daily_limit and self.repository.increment_free_usage(
            user_id, day, self.free_daily_limit
        ):
            _logger.info("Charged user_id=%s source=free used=%s", user_id, used + 1)
            return ChargeReceipt(source=ChargeSource.FREE)

        # Free slot lost to a concurrent charge or exhausted: fall through.
        self.repository.decrement_purchased_credits(user_id)
        _logger.info("Charged user_id=%s source=purchased", user_id)
        return ChargeReceipt(source=ChargeSource.PURCHASED)

    def grant_credits(self, user_id: UUID, count: int) -> int:
        """Add purchased credits and return the new balance."""
        if count <= 0:
            raise ValueError("Credit grants must be positive")
        self._entitlements(user_id)
        balance = self.repository.add_purchased_credits(user_id, count)
        _logger.info("Granted %s credits to user_id=%s", count, user_id)
        return balance

    def grant_unlimited_until(self, user_id: UUID, until: date) -> date:
        """Extend the unlimited subscription; an active one is never shortened."""
        entitlements = self._entitlements(user_id)
        current = entitlements.unlimited_until
        if current is not None and current >= until:
            return current
        self.repository.set_unlimited_until(user_id, until)
        _logger.info("Granted unlimited until %s to user_id=%s", until, user_id)
        return until

    def _entitlements(self, user_id: UUID) -> Entitlements:
        entitlements = self.repository.get_entitlements(user_id)
        if entitlements is None:
            raise InfrastructureError(f"No entitlement record for user {user_id}")
        return entitlements


def _unlimited_active(until: date | None, now: datetime) -> bool:
    if until is None:
        return False
    return datetime.combine(until, time.min, tzinfo=now.tzinfo) > now


@dataclass
class UserLocks:
    """Per-user serialization point for check-then-charge sequences."""

    _locks: WeakValueDictionary[UUID, asyncio.Lock] = field(
        default_factory=WeakValueDictionary
    )

    def for_user(self, user_id: UUID) -> asyncio.Lock:
        """Return the lock guarding a user's quota, creating it on demand."""
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock
