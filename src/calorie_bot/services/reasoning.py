"""Reasoning-service gateway that turns food descriptions into estimates."""

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError

from calorie_bot.domain.analysis import RawAnalysis
from calorie_bot.errors import ParseFailure, ReasoningUnavailable

PHOTO_CONFIDENCE = "low - photo estimate"
PHOTO_REASONING = (
    "Approximate estimate from a photo. Describe the meal in text for a more "
    "precise count."
)

_RESULT_SHAPE = """{
  "items": [{"name": "dish", "portion": "350 g", "calories": 630}],
  "total_calories": 630,
  "confidence": "high",
  "reasoning": "short explanation",
  "comment": "optional light remark"
}"""

_NO_FOOD_SHAPE = """{"no_food_detected": true, "message": "short explanation"}"""

TEXT_PROMPT = """You are an experienced dietitian with a dry sense of humour.
Step 1: decide whether the user message below mentions any food, drink or meal.
If it does not, reply with exactly this JSON and nothing else:
{no_food}
Step 2 (only for food): estimate calories. Use ONE concrete integer per item
and for the total, never a range or words like "about". Always give a portion
with a concrete weight or volume, using a standard portion when unknown.
Reply with JSON of this shape, written in the language of the message:
{shape}

User message:
{description}"""

IMAGE_PROMPT = """You are an experienced dietitian looking at a photo.
Step 1: decide whether the photo shows any food or drink.
If it does not, reply with exactly this JSON and nothing else:
{no_food}
Step 2 (only for food): calories from a photo can only be approximated. Use ONE
concrete integer per item and for the total, never a range. Say in "reasoning"
that the estimate is approximate. Reply with JSON of this shape:
{shape}"""

_logger = logging.getLogger(__name__)


class ReasoningClient(Protocol):
    """Interface for the external reasoning service."""

    async def complete(
        self, *, model: str, prompt: str, image_data_url: str | None = None
    ) -> str:
        """Return the free-form reply text for a prompt."""


@dataclass
class ReasoningGateway:
    """Builds analysis requests and parses the structured part of replies."""

    client: ReasoningClient
    model: str

    async def analyze_text(self, description: str) -> RawAnalysis:
        """Classify and estimate a free-text meal description."""
        prompt = TEXT_PROMPT.format(
            no_food=_NO_FOOD_SHAPE, shape=_RESULT_SHAPE, description=description
        )
        reply = await self._call(prompt)
        return parse_reply(reply)

    async def analyze_image(self, image_base64: str) -> RawAnalysis:
        """Classify and estimate a base64-encoded meal photo."""
        prompt = IMAGE_PROMPT.format(no_food=_NO_FOOD_SHAPE, shape=_RESULT_SHAPE)
        reply = await self._call(prompt, image_data_url=_to_data_url(image_base64))
        analysis = parse_reply(reply)
        if analysis.no_food_detected:
            return analysis
        return analysis.model_copy(
            update={
                "confidence": PHOTO_CONFIDENCE,
                "reasoning": _photo_reasoning(analysis),
            }
        )

    async def _call(self, prompt: str, image_data_url: str | None = None) -> str:
        try:
            return await self.client.complete(
                model=self.model, prompt=prompt, image_data_url=image_data_url
            )
        except Exception as exc:
            raise ReasoningUnavailable(f"{type(exc).__name__}: {exc}") from exc


def parse_reply(reply: str) -> RawAnalysis:
    """Validate the first JSON object embedded in a reply."""
    payload = extract_json_object(reply)
    try:
        return RawAnalysis.model_validate(payload)
    except ValidationError as exc:
        raise ParseFailure(f"Reply object has an unexpected shape: {exc}") from exc


def extract_json_object(text: str) -> dict[str, object]:
    """Return the first well-formed JSON object found in free-form text."""
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            candidate, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(candidate, dict):
            return candidate
        start = text.find("{", start + 1)
    _logger.warning("No JSON object in reasoning reply: %.200s", text)
    raise ParseFailure("No JSON object found in the reasoning reply")


def _photo_reasoning(analysis: RawAnalysis) -> str:
    reasoning = (analysis.reasoning or "").strip()
    if not reasoning:
        return PHOTO_REASONING
    return f"{PHOTO_REASONING} {reasoning}"


def _to_data_url(image_base64: str) -> str:
    """Wrap base64 image data into a data URL."""
    prefix = image_base64[:16]
    try:
        head = base64.b64decode(prefix + "=" * (-len(prefix) % 4))
    except binascii.Error:
        head = b""
    return f"data:{_detect_mime_type(head)};base64,{image_base64}"


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
