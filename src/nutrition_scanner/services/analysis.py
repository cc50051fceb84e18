"""Two-stage menu analysis using a vision-capable language model."""

import base64
import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol, TypeVar

from pydantic import TypeAdapter, ValidationError

from nutrition_scanner.domain.scans import (
    MenuItemDetection,
    NutritionAnalysis,
    Scan,
)
from nutrition_scanner.errors import AnalysisFailure, RateLimitFailure
from nutrition_scanner.services.nutrition import reconcile_summary

_logger = logging.getLogger(__name__)

_T = TypeVar("_T")

TOO_MANY_REQUESTS = 429

DETECTION_PROMPT = """You are a food detection expert. Analyze this meal photo and \
identify visible food items with estimated portion sizes.

Task: Identify all visible food items and estimate their weight in grams.

For every item return:
- nama_menu: food name in Indonesian
- estimasi_gram: estimated weight in grams
- deskripsi: detailed description of the item, at most 100 words
- proses_pengolahan: how the food appears to be prepared, at most 100 words

Important:
- Be accurate with portion size estimates
- Include all visible food items
- Return only JSON, no other text
- All text values must be in Bahasa Indonesia"""

NUTRITION_PROMPT = """You are a professional nutritionist assistant. Analyze the \
nutritional content of food items and evaluate meal balance.

Input: {menu_items}

Task:
1. Calculate detailed nutritional information for each food item, in input order.
2. Provide a nutrition summary: calories, protein, fat, carbs, sodium and fiber.
3. Evaluate whether the meal is "Layak" (nutritionally balanced) or "Tidak Layak" \
(unbalanced, excessive or deficient).
4. Give a short reason (max 50 words in Bahasa Indonesia) for the evaluation.
5. If "Tidak Layak", give practical recommendations (max 50 words in Bahasa \
Indonesia), otherwise null.

Evaluation criteria:
- Layak: protein 15-20% of calories, healthy fat ratio, adequate fiber, \
sodium < 2300mg, calories within a reasonable range.
- Tidak Layak: excessive calories, high sodium, low protein, imbalanced macros \
or insufficient fiber.

Important:
- Use accurate nutritional data based on standard food databases.
- The summary must be the sum of all individual items.
- All keys in English, all text values in Bahasa Indonesia.
- Return only JSON, no other text."""

_NUMBER = {"type": "number", "minimum": 0}
_NUTRIENTS = {
    "calories_kcal": _NUMBER,
    "protein_g": _NUMBER,
    "fat_g": _NUMBER,
    "carbs_g": _NUMBER,
    "sodium_mg": _NUMBER,
    "fiber_g": _NUMBER,
}

DETECTION_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "items": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "nama_menu": {"type": "string"},
                    "estimasi_gram": _NUMBER,
                    "deskripsi": {"type": "string"},
                    "proses_pengolahan": {"type": "string"},
                },
                "required": [
                    "nama_menu",
                    "estimasi_gram",
                    "deskripsi",
                    "proses_pengolahan",
                ],
                "additionalProperties": False,
            },
        }
    },
    "required": ["items"],
    "additionalProperties": False,
}

NUTRITION_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "nutrition_summary": {
            "type": "object",
            "properties": _NUTRIENTS,
            "required": list(_NUTRIENTS),
            "additionalProperties": False,
        },
        "items": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "grams": _NUMBER,
                    **_NUTRIENTS,
                },
                "required": ["name", "grams", *_NUTRIENTS],
                "additionalProperties": False,
            },
        },
        "summary_evaluation": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "enum": ["Layak", "Tidak Layak"]},
                "reason": {"type": "string"},
                "recommendation": {"anyOf": [{"type": "string"}, {"type": "null"}]},
            },
            "required": ["status", "reason", "recommendation"],
            "additionalProperties": False,
        },
    },
    "required": ["nutrition_summary", "items", "summary_evaluation"],
    "additionalProperties": False,
}

_MENU_ITEMS = TypeAdapter(list[MenuItemDetection])
_NUTRITION = TypeAdapter(NutritionAnalysis)


@dataclass(frozen=True)
class FetchedImage:
    """Raw image bytes with the content type reported by the host."""

    content: bytes
    content_type: str | None = None


class ImageFetcher(Protocol):
    """Interface for downloading an uploaded image."""

    async def fetch(self, image_url: str) -> FetchedImage:
        """Download the image behind a URL."""


class LanguageModelClient(Protocol):
    """Interface for text generation with optional image input."""

    async def generate(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        prompt: str,
        image_data_url: str | None = None,
        schema: dict[str, object] | None = None,
        schema_name: str | None = None,
    ) -> str:
        """Return the raw text produced by the model."""


@dataclass
class AnalysisService:
    """Detects menu items on a photo, then computes their nutrition facts."""

    client: LanguageModelClient
    image_fetcher: ImageFetcher
    model: str
    reasoning_effort: str | None
    store: bool

    async def analyze(self, image_url: str) -> Scan:
        """Run both stages and return an unsaved scan."""
        menu_items = await self.detect_menu_items(image_url)
        nutrition = await self.analyze_nutrition(menu_items)
        _pair_item_ids(menu_items, nutrition)
        return Scan(
            image_url=image_url,
            scan_date=datetime.now(tz=UTC),
            menu_items=menu_items,
            nutrition_facts=nutrition,
        )

    async def detect_menu_items(self, image_url: str) -> list[MenuItemDetection]:
        """Identify food items and portion estimates on the photo."""
        try:
            image = await self.image_fetcher.fetch(image_url)
        except Exception as exc:
            _logger.exception("Image fetch failed", extra={"image_url": image_url})
            raise AnalysisFailure from exc
        text = await self._generate(
            stage="detection",
            prompt=DETECTION_PROMPT,
            image_data_url=_to_data_url(image.content, image.content_type),
            schema=DETECTION_SCHEMA,
            schema_name="menu_detection",
        )
        menu_items = _decode(text, "[", _MENU_ITEMS, stage="detection")
        if not menu_items:
            _logger.warning("Detection returned no food items")
            raise AnalysisFailure
        return menu_items

    async def analyze_nutrition(
        self, menu_items: list[MenuItemDetection]
    ) -> NutritionAnalysis:
        """Compute per-item nutrients, their summary and an evaluation."""
        payload = json.dumps(
            [item.model_dump(exclude={"item_id"}) for item in menu_items],
            ensure_ascii=False,
        )
        text = await self._generate(
            stage="nutrition",
            prompt=NUTRITION_PROMPT.format(menu_items=payload),
            schema=NUTRITION_SCHEMA,
            schema_name="nutrition_analysis",
        )
        analysis = _decode(text, "{", _NUTRITION, stage="nutrition")
        reconciled = reconcile_summary(analysis)
        if reconciled is not analysis:
            _logger.info("Replaced model nutrition summary with the item totals")
        return reconciled

    async def _generate(
        self,
        *,
        stage: str,
        prompt: str,
        schema: dict[str, object],
        schema_name: str,
        image_data_url: str | None = None,
    ) -> str:
        try:
            return await self.client.generate(
                model=self.model,
                reasoning_effort=self.reasoning_effort,
                store=self.store,
                prompt=prompt,
                image_data_url=image_data_url,
                schema=schema,
                schema_name=schema_name,
            )
        except Exception as exc:
            _logger.exception("Model call failed", extra={"stage": stage})
            if is_rate_limited(exc):
                raise RateLimitFailure from exc
            raise AnalysisFailure from exc


def extract_json_block(text: str, opening: str) -> str | None:
    """Return the first balanced JSON array or object starting with `opening`."""
    closing = {"[": "]", "{": "}"}[opening]
    start = text.find(opening)
    if start < 0:
        return None
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == opening:
            depth += 1
        elif char == closing:
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def is_rate_limited(exc: Exception) -> bool:
    """Return true when a provider error signals too many requests."""
    status_code = getattr(exc, "status_code", None)
    if status_code is None:
        response = getattr(exc, "response", None)
        status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return status_code == TOO_MANY_REQUESTS
    return str(TOO_MANY_REQUESTS) in str(exc)


def _decode(text: str, opening: str, adapter: TypeAdapter[_T], *, stage: str) -> _T:
    block = extract_json_block(text, opening)
    if block is None:
        _logger.error("No JSON found in %s response", stage)
        raise AnalysisFailure
    try:
        return adapter.validate_json(block)
    except ValidationError as exc:
        _logger.exception("Invalid %s response", stage)
        raise AnalysisFailure from exc


def _pair_item_ids(
    menu_items: list[MenuItemDetection], nutrition: NutritionAnalysis
) -> None:
    """Give each nutrition item the id of the detection at the same position."""
    for menu_item, nutrition_item in zip(menu_items, nutrition.items, strict=False):
        nutrition_item.item_id = menu_item.item_id


def _to_data_url(image_bytes: bytes, content_type: str | None = None) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = content_type or _detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
