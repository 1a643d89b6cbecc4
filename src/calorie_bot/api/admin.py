"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from datetime import date  # noqa: TC003
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from calorie_bot.containers import AppContainer
    from calorie_bot.domain.models import UserRecord

router = APIRouter(prefix="/admin", tags=["admin"])


class CreditGrantRequest(BaseModel):
    """Body for a manual purchased-credit grant."""

    count: int = Field(gt=0)


class UnlimitedGrantRequest(BaseModel):
    """Body for a manual unlimited-plan grant."""

    until: date


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


def _require_user(container: AppContainer, telegram_user_id: int) -> UserRecord:
    user = container.user_service.get_user(telegram_user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return user


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.get(
    "/users/{telegram_user_id}/allowance", dependencies=[Depends(require_admin)]
)
async def user_allowance(telegram_user_id: int, request: Request) -> dict[str, object]:
    """Return the user's current allowance."""
    container: AppContainer = request.app.state.container
    user = _require_user(container, telegram_user_id)
    allowance = container.ledger.check_allowance(user.id)
    return {
        "telegram_user_id": telegram_user_id,
        "allowed": allowance.allowed,
        "free_remaining": allowance.free_remaining,
        "purchased_remaining": allowance.purchased_remaining,
        "is_unlimited": allowance.is_unlimited,
    }


@router.post(
    "/users/{telegram_user_id}/credits", dependencies=[Depends(require_admin)]
)
async def grant_credits(
    telegram_user_id: int, body: CreditGrantRequest, request: Request
) -> dict[str, object]:
    """Add purchased credits to a user."""
    container: AppContainer = request.app.state.container
    user = _require_user(container, telegram_user_id)
    balance = container.ledger.grant_credits(user.id, body.count)
    return {"telegram_user_id": telegram_user_id, "purchased_credits": balance}


@router.post(
    "/users/{telegram_user_id}/unlimited", dependencies=[Depends(require_admin)]
)
async def grant_unlimited(
    telegram_user_id: int, body: UnlimitedGrantRequest, request: Request
) -> dict[str, object]:
    """Extend a user's unlimited plan; an active plan is never shortened."""
    container: AppContainer = request.app.state.container
    user = _require_user(container, telegram_user_id)
    until = container.ledger.grant_unlimited_until(user.id, body.until)
    return {"telegram_user_id": telegram_user_id, "unlimited_until": until.isoformat()}
