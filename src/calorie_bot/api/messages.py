"""Rendering of bot replies for Telegram (HTML parse mode)."""

from datetime import date
from html import escape

from calorie_bot.domain.analysis import AnalysisMethod, FoodDetected, NoFoodDetected
from calorie_bot.domain.entries import DailySummary
from calorie_bot.domain.quota import FREE_DAILY_LIMIT, Allowance
from calorie_bot.domain.responses import AnalysisResponse, ResponseKind
from calorie_bot.errors import RejectionReason
from calorie_bot.services.analysis import (
    MAX_PHOTO_BYTES,
    MAX_TEXT_LENGTH,
    MAX_VOICE_SECONDS,
)
from calorie_bot.services.commands import goal_keyboard

HELP_TEXT = (
    "Describe what you ate, send a voice note (up to 60 s) or a photo of the meal.\n"
    "/today shows today's log, /balance your remaining analyses, "
    "/goal changes the daily goal."
)

UNSUPPORTED_MEDIA_TEXT = (
    "I can only read voice notes and photos. Record a voice message or send the "
    "meal as a photo instead of a file."
)

_REJECTION_TEXT = {
    RejectionReason.GOAL_NOT_SET: "Pick your daily calorie goal first:",
    RejectionReason.EMPTY_TEXT: "Tell me what you ate.",
    RejectionReason.TEXT_TOO_LONG: (
        f"That's too long. Keep it under {MAX_TEXT_LENGTH} characters."
    ),
    RejectionReason.VOICE_TOO_LONG: (
        f"Voice notes up to {MAX_VOICE_SECONDS} seconds, please."
    ),
    RejectionReason.PHOTO_TOO_LARGE: (
        f"Photo is too large. The limit is {MAX_PHOTO_BYTES // (1024 * 1024)} MB."
    ),
    RejectionReason.PHOTO_TOO_DETAILED: "Photo is too detailed to analyze.",
}

_METHOD_MARK = {
    AnalysisMethod.REASONING_SERVICE: "🤖",
    AnalysisMethod.HEURISTIC: "⚡",
}


def stats_keyboard() -> dict:
    return {
        "inline_keyboard": [
            [{"text": "📊 Today's stats", "callback_data": "show_today"}],
            [{"text": "💎 Balance", "callback_data": "show_balance"}],
        ]
    }


def render_analysis(
    response: AnalysisResponse, name: str, debug: bool = False
) -> tuple[str, dict | None]:
    """Return message text and optional keyboard for an analysis outcome."""
    name = escape(name)
    if response.kind is ResponseKind.REJECTED:
        reason = response.rejection or RejectionReason.EMPTY_TEXT
        keyboard = goal_keyboard() if reason is RejectionReason.GOAL_NOT_SET else None
        return _REJECTION_TEXT[reason], keyboard

    if response.kind is ResponseKind.BLOCKED:
        return (
            f"{name}, your analyses for today are used up.\n"
            f"{FREE_DAILY_LIMIT} new free analyses arrive at 00:00.",
            stats_keyboard(),
        )

    if response.kind is ResponseKind.TRANSCRIPTION_FAILED:
        return (
            "I couldn't make out that voice note. "
            "Try again or type what you ate.",
            None,
        )

    if response.kind is ResponseKind.INFRA_ERROR:
        text = "Something went wrong while analyzing. Please try again."
        if response.charged:
            text += "\nThe analysis was counted but not saved to your log."
        if debug and response.detail:
            text += f" (debug: {escape(response.detail)})"
        return text, None

    lines: list[str] = []
    if response.transcript:
        lines.append(f"🎤 <i>{escape(response.transcript)}</i>\n")

    result = response.result
    if isinstance(result, NoFoodDetected):
        lines.append(f"{name}, {escape(result.message)}")
        lines.append("That still used one analysis.")
    elif isinstance(result, FoodDetected):
        lines.extend(_food_lines(result, name, response.method))

    text, keyboard = _with_allowance("\n".join(lines), response.allowance)
    return text, keyboard


def _food_lines(
    result: FoodDetected, name: str, method: AnalysisMethod | None
) -> list[str]:
    lines: list[str] = []
    if result.comment:
        lines.append(f"💬 <b>{escape(result.comment)}</b>\n")
    for item in result.items:
        lines.append(
            f"• {escape(item.name)} ({escape(item.portion)}) - {item.calories} kcal"
        )
    mark = f" {_METHOD_MARK[method]}" if method is not None else ""
    lines.append(f"\n{name}, total: <b>{result.total_calories} kcal</b>{mark}")
    lines.append(f"Confidence: {escape(result.confidence)}")
    if result.reasoning:
        lines.append(f"<i>{escape(result.reasoning)}</i>")
    return lines


def _with_allowance(text: str, allowance: Allowance | None) -> tuple[str, dict | None]:
    if allowance is None:
        return text, None
    if allowance.is_unlimited:
        return f"{text}\n\n💎 Unlimited plan active", None
    if allowance.remaining > 0:
        return f"{text}\n\nAnalyses left: {allowance.remaining}", None
    return f"{text}\n\nThat was your last analysis for today.", stats_keyboard()


def format_daily_summary(summary: DailySummary, name: str) -> str:
    """Format the /today report."""
    name = escape(name)
    if not summary.entries:
        return f"{name}, nothing logged today yet. Just tell me what you ate!"
    status = "✅" if summary.remaining > 0 else "❌"
    lines = [
        f"📊 {name}, today so far:\n",
        f"🔥 Eaten: <b>{summary.total_calories} kcal</b>",
        f"🎯 Goal: {summary.goal} kcal",
        f"📈 Progress: {summary.progress_percent}%",
        f"{status} Left: {summary.remaining} kcal\n",
        "<b>Entries:</b>",
    ]
    for index, entry in enumerate(summary.entries, start=1):
        lines.append(
            f"{index}. {escape(entry.description)} - {entry.calories} kcal "
            f"{_METHOD_MARK[entry.analysis_method]}"
        )
    return "\n".join(lines)


def format_balance(
    allowance: Allowance, unlimited_until: date | None, today: date
) -> str:
    """Format the /balance report."""
    if allowance.is_unlimited and unlimited_until is not None:
        days_left = (unlimited_until - today).days
        return f"💎 Unlimited plan active\n⏰ Days left: {days_left}"
    lines = [
        f"📊 Free analyses today: {allowance.free_remaining}/{FREE_DAILY_LIMIT}",
        f"💎 Purchased analyses: {allowance.purchased_remaining}",
    ]
    if not allowance.allowed:
        lines.append("\nNew free analyses arrive at 00:00.")
    return "\n".join(lines)
