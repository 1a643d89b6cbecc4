"""Completed-payment handling that grants entitlements."""

import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta

from calorie_bot.services.quota import QuotaLedger
from calorie_bot.services.users import UserService

_CREDITS_PAYLOAD = re.compile(r"analyses_(\d+)(?:_\d+)?")
_UNLIMITED_PAYLOAD = re.compile(r"unlimited_(\d+)(?:_\d+)?")

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PurchasePackage:
    """Purchasable bundle offered by the front-end."""

    key: str
    title: str
    stars: int
    credits: int = 0
    unlimited_days: int = 0


PACKAGES: dict[str, PurchasePackage] = {
    package.key: package
    for package in (
        PurchasePackage("buy_10", "+10 analyses", stars=50, credits=10),
        PurchasePackage("buy_25", "+25 analyses", stars=100, credits=25),
        PurchasePackage("buy_50", "+50 analyses", stars=150, credits=50),
        PurchasePackage(
            "buy_unlimited", "Unlimited for a month", stars=200, unlimited_days=30
        ),
    )
}


def invoice_payload(package: PurchasePackage, telegram_user_id: int) -> str:
    """Return the invoice payload echoed back by a successful payment."""
    if package.unlimited_days:
        return f"unlimited_{package.unlimited_days}_{telegram_user_id}"
    return f"analyses_{package.credits}_{telegram_user_id}"


@dataclass(frozen=True)
class PurchaseGrant:
    """Entitlement change applied for a payment."""

    credits_added: int = 0
    balance: int | None = None
    unlimited_until: date | None = None


@dataclass
class PurchaseService:
    """Maps completed payments onto ledger grants."""

    user_service: UserService
    ledger: QuotaLedger

    def apply_payment(self, telegram_user_id: int, payload: str) -> PurchaseGrant:
        """Grant credits or an unlimited period for a completed payment."""
        user = self.user_service.ensure_user(telegram_user_id)
        unlimited = _UNLIMITED_PAYLOAD.fullmatch(payload)
        if unlimited:
            days = int(unlimited.group(1))
            until = self.ledger.grant_unlimited_until(
                user.id, self.ledger.today() + timedelta(days=days)
            )
            return PurchaseGrant(unlimited_until=until)

        credits = _CREDITS_PAYLOAD.fullmatch(payload)
        if credits:
            count = int(credits.group(1))
            balance = self.ledger.grant_credits(user.id, count)
            return PurchaseGrant(credits_added=count, balance=balance)

        _logger.error("Unknown invoice payload: %s", payload)
        raise ValueError(f"Unknown invoice payload: {payload}")
