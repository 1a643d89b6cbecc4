"""Models for analysis results."""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict


class AnalysisMethod(Enum):
    """How an estimate was produced."""

    REASONING_SERVICE = "reasoning-service"
    HEURISTIC = "heuristic"


class RawFoodItem(BaseModel):
    """Line item as returned upstream, calories not yet normalized."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    name: str = ""
    portion: str | None = None
    calories: int | float | str | None = None


class RawAnalysis(BaseModel):
    """Structurally valid reply from the reasoning service or heuristic."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    no_food_detected: bool = False
    message: str | None = None
    items: list[RawFoodItem] | None = None
    total_calories: int | float | str | None = None
    confidence: str | None = None
    reasoning: str | None = None
    comment: str | None = None


@dataclass(frozen=True)
class FoodItem:
    """Normalized line item."""

    name: str
    portion: str
    calories: int


@dataclass(frozen=True)
class FoodDetected:
    """Normalized estimate for a food-like input."""

    items: list[FoodItem]
    total_calories: int
    confidence: str
    reasoning: str
    comment: str | None = None


@dataclass(frozen=True)
class NoFoodDetected:
    """Verdict that the input does not describe food or drink."""

    message: str


AnalysisResult = FoodDetected | NoFoodDetected
