"""Calorie value normalization."""

import logging
import math
import re

from calorie_bot.domain.analysis import (
    AnalysisResult,
    FoodDetected,
    FoodItem,
    NoFoodDetected,
    RawAnalysis,
)

DEFAULT_CALORIES = 200
DEFAULT_PORTION = "standard portion"
DEFAULT_NO_FOOD_MESSAGE = "No food or drink found in the message."

_NOISE = re.compile(r"[^\d.,\-—–]")
_THOUSANDS = re.compile(r"\d{1,3}(?:,\d{3})+(?:\.\d+)?")
_RANGE = re.compile(r"(\d+(?:\.\d+)?)[-—–]+(\d+(?:\.\d+)?)")
_LEADING_NUMBER = re.compile(r"\d+(?:\.\d+)?")

_logger = logging.getLogger(__name__)


def normalize_calories(value: object) -> int:
    """Coerce a raw calorie value into a non-negative integer.

    Numbers are rounded half up. Strings are stripped down to digits and
    separators; an ``A-B`` range (hyphen or dash) becomes the rounded mean,
    otherwise the leading number is used. Anything else falls back to
    ``DEFAULT_CALORIES``. Never raises.
    """
    if isinstance(value, bool):
        return _fallback(value)
    if isinstance(value, int | float):
        try:
            number = float(value)
        except OverflowError:
            return _fallback(value)
        return _round_number(number, original=value)
    if isinstance(value, str):
        return _parse_text(value)
    return _fallback(value)


def normalize_analysis(raw: RawAnalysis) -> AnalysisResult:
    """Convert a structurally valid reply into a normalized result."""
    if raw.no_food_detected:
        return NoFoodDetected(message=raw.message or DEFAULT_NO_FOOD_MESSAGE)

    items = [
        FoodItem(
            name=item.name.strip() or "meal",
            portion=(item.portion or "").strip() or DEFAULT_PORTION,
            calories=normalize_calories(item.calories),
        )
        for item in raw.items or []
    ]
    if raw.total_calories is not None:
        total = normalize_calories(raw.total_calories)
    elif items:
        total = sum(item.calories for item in items)
    else:
        total = DEFAULT_CALORIES
    return FoodDetected(
        items=items,
        total_calories=total,
        confidence=raw.confidence or "unknown",
        reasoning=raw.reasoning or "",
        comment=raw.comment.strip() if raw.comment and raw.comment.strip() else None,
    )


def _parse_text(value: str) -> int:
    cleaned = _NOISE.sub("", value)
    if _THOUSANDS.fullmatch(cleaned):
        cleaned = cleaned.replace(",", "")
    else:
        cleaned = cleaned.replace(",", ".")

    range_match = _RANGE.fullmatch(cleaned)
    if range_match:
        low = float(range_match.group(1))
        high = float(range_match.group(2))
        return _round_number((low + high) / 2, original=value)

    single_match = _LEADING_NUMBER.match(cleaned)
    if single_match:
        return _round_number(float(single_match.group(0)), original=value)
    return _fallback(value)


def _round_number(number: float, *, original: object) -> int:
    if not math.isfinite(number):
        return _fallback(original)
    return max(0, math.floor(number + 0.5))


def _fallback(value: object) -> int:
    _logger.warning(
        "Could not parse calorie value %r, using %s", value, DEFAULT_CALORIES
    )
    return DEFAULT_CALORIES
