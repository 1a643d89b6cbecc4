"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from html import escape

from fastapi import FastAPI, Request

from calorie_bot.api.admin import router as admin_router
from calorie_bot.api.messages import (
    HELP_TEXT,
    UNSUPPORTED_MEDIA_TEXT,
    format_balance,
    format_daily_summary,
    render_analysis,
)
from calorie_bot.api.telegram_models import (
    TelegramCallbackQuery,
    TelegramMessage,
    TelegramPhotoSize,
    TelegramUpdate,
)
from calorie_bot.app_logging import configure_logging
from calorie_bot.containers import AppContainer
from calorie_bot.domain.responses import AnalysisResponse
from calorie_bot.services.commands import goal_keyboard
from calorie_bot.telegram_commands import BotCommand, telegram_commands

_logger = logging.getLogger(__name__)

_DEFAULT_NAME = "friend"


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            await app.state.container.telegram_client.set_my_commands(
                telegram_commands()
            )
        except Exception:
            _logger.exception("Failed to sync Telegram bot commands")
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/telegram/webhook")
    async def telegram_webhook(
        update: TelegramUpdate, request: Request
    ) -> dict[str, str]:
        """Handle Telegram webhook updates; always acknowledges the update."""
        state_container: AppContainer = request.app.state.container
        try:
            if update.callback_query:
                await _handle_callback(state_container, update.callback_query)
            elif update.message:
                await _handle_message(state_container, update.message)
        except Exception:
            _logger.exception(
                "Failed to handle Telegram update",
                extra={"update_id": update.update_id},
            )
        return {"status": "ok"}

    return app


async def _handle_callback(
    container: AppContainer, callback: TelegramCallbackQuery
) -> None:
    await container.telegram_client.answer_callback_query(callback.id)
    if not callback.data or callback.message is None:
        return
    chat_id = callback.message.chat.id
    telegram_user_id = callback.from_user.id
    first_name = callback.from_user.first_name

    goal = _parse_goal_callback(callback.data)
    if goal is not None:
        user = container.user_service.set_daily_goal(
            telegram_user_id, goal, first_name
        )
        await container.telegram_client.send_message(
            chat_id=chat_id,
            text=(
                f"Goal set: {user.daily_goal_calories} kcal a day.\n\n{HELP_TEXT}"
            ),
        )
    elif callback.data == "show_today":
        await _send_today(container, chat_id, telegram_user_id, first_name)
    elif callback.data == "show_balance":
        await _send_balance(container, chat_id, telegram_user_id, first_name)


async def _handle_message(  # noqa: PLR0911
    container: AppContainer, message: TelegramMessage
) -> None:
    chat_id = message.chat.id
    telegram_user_id = message.from_user.id
    first_name = message.from_user.first_name

    if message.successful_payment:
        grant = container.purchase_service.apply_payment(
            telegram_user_id, message.successful_payment.invoice_payload
        )
        if grant.unlimited_until is not None:
            text = f"💎 Unlimited plan active until {grant.unlimited_until}."
        else:
            text = (
                f"Added {grant.credits_added} analyses. "
                f"Purchased balance: {grant.balance}."
            )
        await container.telegram_client.send_message(chat_id=chat_id, text=text)
        return

    command = BotCommand.parse(message.text or "")
    if command is BotCommand.START:
        await container.start_command_handler.handle(
            telegram_user_id=telegram_user_id,
            chat_id=chat_id,
            first_name=first_name,
        )
        return
    if command is BotCommand.GOAL:
        await container.telegram_client.send_message(
            chat_id=chat_id,
            text="Pick your daily calorie goal:",
            reply_markup=goal_keyboard(),
        )
        return
    if command is BotCommand.TODAY:
        await _send_today(container, chat_id, telegram_user_id, first_name)
        return
    if command is BotCommand.BALANCE:
        await _send_balance(container, chat_id, telegram_user_id, first_name)
        return
    if command is BotCommand.HELP or (message.text or "").startswith("/"):
        await container.telegram_client.send_message(chat_id=chat_id, text=HELP_TEXT)
        return
    if message.audio or message.document:
        await container.telegram_client.send_message(
            chat_id=chat_id, text=UNSUPPORTED_MEDIA_TEXT
        )
        return

    orchestrator = container.analysis_orchestrator
    response: AnalysisResponse
    if message.voice:
        response = await orchestrator.analyze_voice(
            telegram_user_id, message.voice.file_id, message.voice.duration
        )
    elif message.photo:
        photo = _select_largest_photo(message.photo)
        response = await orchestrator.analyze_image(
            telegram_user_id, photo.file_id, photo.file_size
        )
    elif message.text is not None:
        response = await orchestrator.analyze_text(telegram_user_id, message.text)
    else:
        return

    text, reply_markup = render_analysis(
        response,
        first_name or _DEFAULT_NAME,
        debug=container.settings.environment == "local",
    )
    await container.telegram_client.send_message(
        chat_id=chat_id, text=text, reply_markup=reply_markup
    )


async def _send_today(
    container: AppContainer,
    chat_id: int,
    telegram_user_id: int,
    first_name: str | None,
) -> None:
    user = container.user_service.ensure_user(telegram_user_id, first_name)
    summary = container.food_log_service.daily_summary(
        user, container.ledger.today()
    )
    await container.telegram_client.send_message(
        chat_id=chat_id,
        text=format_daily_summary(summary, user.first_name or _DEFAULT_NAME),
    )


async def _send_balance(
    container: AppContainer,
    chat_id: int,
    telegram_user_id: int,
    first_name: str | None,
) -> None:
    user = container.user_service.ensure_user(telegram_user_id, first_name)
    allowance = container.ledger.check_allowance(user.id)
    name = escape(user.first_name or _DEFAULT_NAME)
    await container.telegram_client.send_message(
        chat_id=chat_id,
        text=(
            f"{name}, your balance:\n\n"
            + format_balance(
                allowance, user.unlimited_until, container.ledger.today()
            )
        ),
    )


def _select_largest_photo(photos: list[TelegramPhotoSize]) -> TelegramPhotoSize:
    """Select the largest photo size from the Telegram payload."""
    return max(
        photos,
        key=lambda photo: (photo.width or 0) * (photo.height or 0)
        or (photo.file_size or 0),
    )


def _parse_goal_callback(data: str) -> int | None:
    """Parse callback data in the format goal_<calories>."""
    if not data.startswith("goal_"):
        return None
    raw = data.removeprefix("goal_")
    return int(raw) if raw.isdigit() else None
