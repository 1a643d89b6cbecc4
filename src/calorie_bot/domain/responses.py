"""Structured responses returned to the chat front-end."""

from dataclasses import dataclass
from enum import Enum

from calorie_bot.domain.analysis import AnalysisMethod, AnalysisResult
from calorie_bot.domain.entries import FoodEntry
from calorie_bot.domain.quota import Allowance, ChargeReceipt
from calorie_bot.errors import RejectionReason


class ResponseKind(Enum):
    """Outcome of one analysis attempt."""

    BLOCKED = "blocked"
    NOT_FOOD = "not_food"
    FOOD_DETECTED = "food_detected"
    TRANSCRIPTION_FAILED = "transcription_failed"
    INFRA_ERROR = "infra_error"
    REJECTED = "rejected"


class InputSource(Enum):
    """Kind of user input that started the attempt."""

    TEXT = "text"
    VOICE = "voice"
    PHOTO = "photo"


@dataclass(frozen=True)
class AnalysisResponse:
    """Discriminated result of an attempt; rendering is the front-end's job."""

    kind: ResponseKind
    source: InputSource
    allowance: Allowance | None = None
    result: AnalysisResult | None = None
    method: AnalysisMethod | None = None
    charge: ChargeReceipt | None = None
    entry: FoodEntry | None = None
    transcript: str | None = None
    rejection: RejectionReason | None = None
    detail: str | None = None

    @property
    def charged(self) -> bool:
        return self.charge is not None
