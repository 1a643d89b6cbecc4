"""Error taxonomy for the analysis pipeline."""

from dataclasses import dataclass
from enum import Enum


class InfrastructureError(RuntimeError):
    """Store or network collaborator is unavailable."""


class ReasoningFailure(RuntimeError):
    """Base class for reasoning-service failures recovered by the caller."""


class ParseFailure(ReasoningFailure):
    """No usable structured object found in the reasoning reply."""


class ReasoningUnavailable(ReasoningFailure):
    """Transport-level failure talking to the reasoning service."""


class RejectionReason(Enum):
    """Reasons an input is rejected before any gateway call."""

    GOAL_NOT_SET = "goal_not_set"
    EMPTY_TEXT = "empty_text"
    TEXT_TOO_LONG = "text_too_long"
    VOICE_TOO_LONG = "voice_too_long"
    PHOTO_TOO_LARGE = "photo_too_large"
    PHOTO_TOO_DETAILED = "photo_too_detailed"


class InputValidationError(ValueError):
    """Input rejected before reaching a gateway; never charged."""

    def __init__(self, reason: RejectionReason, detail: str | None = None) -> None:
        super().__init__(detail or reason.value)
        self.reason = reason
        self.detail = detail


@dataclass(frozen=True)
class TranscriptionFailure:
    """Both transcription providers failed."""

    detail: str
