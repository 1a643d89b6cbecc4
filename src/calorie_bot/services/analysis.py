"""Analysis use case: quota checks, gateways, normalization and logging."""

import base64
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from calorie_bot.adapters.telegram_file_client import TelegramFileClient
from calorie_bot.domain.analysis import AnalysisMethod, NoFoodDetected, RawAnalysis
from calorie_bot.domain.models import UserRecord
from calorie_bot.domain.quota import Allowance, ChargeReceipt
from calorie_bot.domain.responses import AnalysisResponse, InputSource, ResponseKind
from calorie_bot.errors import (
    InfrastructureError,
    InputValidationError,
    ReasoningFailure,
    RejectionReason,
    TranscriptionFailure,
)
from calorie_bot.services.calories import normalize_analysis
from calorie_bot.services.entries import FoodLogService
from calorie_bot.services.heuristic import HeuristicEstimator
from calorie_bot.services.quota import QuotaLedger, UserLocks
from calorie_bot.services.reasoning import ReasoningGateway
from calorie_bot.services.transcription import TranscriptionGateway
from calorie_bot.services.users import UserService

MAX_TEXT_LENGTH = 500
MAX_VOICE_SECONDS = 60
MAX_PHOTO_BYTES = 5 * 1024 * 1024
MAX_IMAGE_BASE64_CHARS = 20 * 1024 * 1024
MIN_TRANSCRIPT_LENGTH = 2
VOICE_FILE_NAME = "voice.ogg"
PHOTO_DESCRIPTION = "Photo"

_logger = logging.getLogger(__name__)

Reasoner = Callable[[], Awaitable[tuple[RawAnalysis, AnalysisMethod]]]


@dataclass
class AnalysisOrchestrator:
    """Runs one analysis attempt and charges it at most once.

    Per attempt: CheckingQuota -> Blocked | Analyzing -> Normalizing ->
    Charged (food or not food) -> Persisted. Voice input is transcribed
    before the quota check; a failed transcription never reaches charging.
    CheckAllowance and Charge run under a per-user lock so concurrent
    attempts from one user in this process cannot both spend the last unit.
    """

    user_service: UserService
    ledger: QuotaLedger
    reasoning_gateway: ReasoningGateway
    heuristic: HeuristicEstimator
    transcription_gateway: TranscriptionGateway
    food_log_service: FoodLogService
    file_client: TelegramFileClient
    locks: UserLocks = field(default_factory=UserLocks)

    async def analyze_text(self, telegram_user_id: int, text: str) -> AnalysisResponse:
        """Analyze a typed meal description."""
        source = InputSource.TEXT
        try:
            user = self._require_user(telegram_user_id)
            description = _validate_text(text)
        except InputValidationError as exc:
            return _rejected(source, exc)
        except InfrastructureError as exc:
            return _infra_error(source, exc)
        return await self._run(
            user, source, description, lambda: self._reason_text(description)
        )

    async def analyze_voice(
        self, telegram_user_id: int, file_id: str, duration_seconds: int
    ) -> AnalysisResponse:
        """Transcribe a voice note, then analyze it as text."""
        source = InputSource.VOICE
        try:
            user = self._require_user(telegram_user_id)
            if duration_seconds > MAX_VOICE_SECONDS:
                raise InputValidationError(
                    RejectionReason.VOICE_TOO_LONG,
                    f"{duration_seconds}s exceeds {MAX_VOICE_SECONDS}s",
                )
            audio = await self.file_client.download_file_bytes(file_id)
        except InputValidationError as exc:
            return _rejected(source, exc)
        except InfrastructureError as exc:
            return _infra_error(source, exc)

        transcription = await self.transcription_gateway.transcribe(
            audio, VOICE_FILE_NAME
        )
        if isinstance(transcription, TranscriptionFailure):
            _logger.warning(
                "Transcription failed",
                extra={"telegram_user_id": telegram_user_id},
            )
            return AnalysisResponse(
                kind=ResponseKind.TRANSCRIPTION_FAILED,
                source=source,
                detail=transcription.detail,
            )
        transcript = transcription.text
        if len(transcript) < MIN_TRANSCRIPT_LENGTH:
            return AnalysisResponse(
                kind=ResponseKind.TRANSCRIPTION_FAILED,
                source=source,
                transcript=transcript,
                detail="Transcription is too short",
            )
        return await self._run(
            user,
            source,
            transcript,
            lambda: self._reason_text(transcript),
            transcript=transcript,
        )

    async def analyze_image(
        self, telegram_user_id: int, file_id: str, size_bytes: int | None
    ) -> AnalysisResponse:
        """Analyze a meal photo; estimates are approximate."""
        source = InputSource.PHOTO
        try:
            user = self._require_user(telegram_user_id)
            if size_bytes is not None and size_bytes > MAX_PHOTO_BYTES:
                raise InputValidationError(
                    RejectionReason.PHOTO_TOO_LARGE,
                    f"{size_bytes} bytes exceeds {MAX_PHOTO_BYTES} bytes",
                )
            image = await self.file_client.download_file_bytes(file_id)
            image_base64 = base64.b64encode(image).decode("utf-8")
            if len(image_base64) > MAX_IMAGE_BASE64_CHARS:
                raise InputValidationError(RejectionReason.PHOTO_TOO_DETAILED)
        except InputValidationError as exc:
            return _rejected(source, exc)
        except InfrastructureError as exc:
            return _infra_error(source, exc)
        return await self._run(
            user, source, PHOTO_DESCRIPTION, lambda: self._reason_image(image_base64)
        )

    async def _run(  # noqa: PLR0911
        self,
        user: UserRecord,
        source: InputSource,
        description: str,
        reason: Reasoner,
        transcript: str | None = None,
    ) -> AnalysisResponse:
        async with self.locks.for_user(user.id):
            try:
                allowance = self.ledger.check_allowance(user.id)
            except InfrastructureError as exc:
                return _infra_error(source, exc, transcript=transcript)
            if not allowance.allowed:
                _logger.info("Analysis blocked", extra={"user_id": str(user.id)})
                return AnalysisResponse(
                    kind=ResponseKind.BLOCKED,
                    source=source,
                    allowance=allowance,
                    transcript=transcript,
                )

            try:
                raw, method = await reason()
            except ReasoningFailure as exc:
                _logger.warning(
                    "Reasoning failed for %s input: %s", source.value, exc
                )
                return _infra_error(source, exc, transcript=transcript)
            result = normalize_analysis(raw)

            try:
                charge = self.ledger.charge(user.id)
            except InfrastructureError as exc:
                return _infra_error(source, exc, transcript=transcript)

        if isinstance(result, NoFoodDetected):
            return AnalysisResponse(
                kind=ResponseKind.NOT_FOOD,
                source=source,
                allowance=self._allowance_after(user),
                result=result,
                method=method,
                charge=charge,
                transcript=transcript,
            )

        try:
            entry = self.food_log_service.record(
                user_id=user.id,
                entry_date=self.ledger.today(),
                description=description,
                calories=result.total_calories,
                method=method,
            )
        except InfrastructureError as exc:
            _logger.exception(
                "Failed to save food entry", extra={"user_id": str(user.id)}
            )
            return _infra_error(source, exc, transcript=transcript, charge=charge)

        return AnalysisResponse(
            kind=ResponseKind.FOOD_DETECTED,
            source=source,
            allowance=self._allowance_after(user),
            result=result,
            method=method,
            charge=charge,
            entry=entry,
            transcript=transcript,
        )

    async def _reason_text(
        self, description: str
    ) -> tuple[RawAnalysis, AnalysisMethod]:
        try:
            raw = await self.reasoning_gateway.analyze_text(description)
        except ReasoningFailure as exc:
            _logger.warning("Reasoning service failed, using heuristic: %s", exc)
            return self.heuristic.estimate(description), AnalysisMethod.HEURISTIC
        return raw, AnalysisMethod.REASONING_SERVICE

    async def _reason_image(
        self, image_base64: str
    ) -> tuple[RawAnalysis, AnalysisMethod]:
        raw = await self.reasoning_gateway.analyze_image(image_base64)
        return raw, AnalysisMethod.REASONING_SERVICE

    def _require_user(self, telegram_user_id: int) -> UserRecord:
        user = self.user_service.get_user(telegram_user_id)
        if user is None or not user.goal_confirmed:
            raise InputValidationError(RejectionReason.GOAL_NOT_SET)
        return user

    def _allowance_after(self, user: UserRecord) -> Allowance | None:
        try:
            return self.ledger.check_allowance(user.id)
        except InfrastructureError:
            _logger.exception(
                "Failed to reload allowance", extra={"user_id": str(user.id)}
            )
            return None


def _validate_text(text: str) -> str:
    cleaned = (text or "").strip()
    if not cleaned:
        raise InputValidationError(RejectionReason.EMPTY_TEXT)
    if len(cleaned) > MAX_TEXT_LENGTH:
        raise InputValidationError(
            RejectionReason.TEXT_TOO_LONG,
            f"{len(cleaned)} characters exceeds {MAX_TEXT_LENGTH}",
        )
    return cleaned


def _rejected(source: InputSource, exc: InputValidationError) -> AnalysisResponse:
    return AnalysisResponse(
        kind=ResponseKind.REJECTED,
        source=source,
        rejection=exc.reason,
        detail=exc.detail,
    )


def _infra_error(
    source: InputSource,
    exc: Exception,
    transcript: str | None = None,
    charge: ChargeReceipt | None = None,
) -> AnalysisResponse:
    _logger.error("Analysis failed: %s: %s", type(exc).__name__, exc)
    return AnalysisResponse(
        kind=ResponseKind.INFRA_ERROR,
        source=source,
        charge=charge,
        transcript=transcript,
        detail=f"{type(exc).__name__}: {exc}",
    )
