"""Telegram bot command configuration."""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class TelegramCommand:
    """Declarative bot command definition."""

    command: str
    description: str


class BotCommand(Enum):
    """Enum of bot commands (single source of truth)."""

    START = TelegramCommand("start", "Start and pick a daily calorie goal")
    TODAY = TelegramCommand("today", "Today's meals and progress")
    GOAL = TelegramCommand("goal", "Change the daily calorie goal")
    BALANCE = TelegramCommand("balance", "Remaining analyses")
    HELP = TelegramCommand("help", "How to log a meal")

    @classmethod
    def parse(cls, text: str) -> "BotCommand | None":
        """Return the command a message invokes, ignoring @botname suffixes."""
        if not text.startswith("/"):
            return None
        name = text[1:].split(maxsplit=1)[0].split("@", 1)[0].lower()
        for entry in cls:
            if entry.value.command == name:
                return entry
        return None


def telegram_commands() -> list[dict[str, str]]:
    """Return commands formatted for Telegram API."""
    return [
        {"command": entry.value.command, "description": entry.value.description}
        for entry in BotCommand
    ]
