"""Command handlers for Telegram updates."""

from dataclasses import dataclass
from html import escape

from calorie_bot.adapters.telegram_client import TelegramClient
from calorie_bot.services.users import GOAL_CHOICES, UserService


def goal_keyboard() -> dict:
    """Inline keyboard offering the preset daily goals, two per row."""
    buttons = [
        {"text": f"{goal} kcal", "callback_data": f"goal_{goal}"}
        for goal in GOAL_CHOICES
    ]
    return {"inline_keyboard": [buttons[i : i + 2] for i in range(0, len(buttons), 2)]}


@dataclass
class StartCommandHandler:
    """Handle the /start Telegram command."""

    user_service: UserService
    telegram_client: TelegramClient

    async def handle(
        self, telegram_user_id: int, chat_id: int, first_name: str | None = None
    ) -> None:
        """Upsert the user and ask for a daily goal unless one is confirmed."""
        user = self.user_service.ensure_user(telegram_user_id, first_name)
        name = escape(user.first_name or "friend")
        if user.goal_confirmed:
            await self.telegram_client.send_message(
                chat_id=chat_id,
                text=(
                    f"Welcome back, {name}! Your daily goal is "
                    f"{user.daily_goal_calories} kcal.\n"
                    "Describe a meal, send a voice note or a photo."
                ),
            )
            return
        await self.telegram_client.send_message(
            chat_id=chat_id,
            text=(
                f"Hi, {name}! I count calories from text, voice notes and photos.\n"
                "You get 3 free analyses every day.\n\n"
                "First, pick your daily calorie goal:"
            ),
            reply_markup=goal_keyboard(),
        )
