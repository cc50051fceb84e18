"""Tests for the two-stage menu analysis."""

import asyncio
import json

import pytest

from nutrition_scanner.domain.scans import EvaluationStatus
from nutrition_scanner.errors import AnalysisFailure, RateLimitFailure
from nutrition_scanner.services.analysis import (
    DETECTION_SCHEMA,
    NUTRITION_SCHEMA,
    AnalysisService,
    _to_data_url,
    extract_json_block,
    is_rate_limited,
)
from tests.conftest import (
    DETECTION_RESPONSE,
    NUTRITION_RESPONSE,
    FakeImageFetcher,
    FakeLanguageModelClient,
)


class _ProviderError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"Error code: {status_code}")
        self.status_code = status_code


def _service(
    responses: list[str | Exception], fetcher: FakeImageFetcher | None = None
) -> tuple[AnalysisService, FakeLanguageModelClient]:
    client = FakeLanguageModelClient(responses=list(responses))
    service = AnalysisService(
        client=client,
        image_fetcher=fetcher or FakeImageFetcher(),
        model="gpt-5.2",
        reasoning_effort="low",
        store=False,
    )
    return service, client


def test_analyze_runs_both_stages() -> None:
    service, client = _service([DETECTION_RESPONSE, NUTRITION_RESPONSE])

    scan = asyncio.run(service.analyze("https://storage.example.com/menu.png"))

    assert [item.nama_menu for item in scan.menu_items] == [
        "Nasi putih",
        "Ayam goreng",
    ]
    assert scan.image_url == "https://storage.example.com/menu.png"
    assert scan.id is None
    assert scan.school_category is None
    assert scan.nutrition_facts.nutrition_summary.calories_kcal == 440
    assert scan.evaluation_status is EvaluationStatus.BALANCED
    assert scan.scan_date.tzinfo is not None

    detection_call, nutrition_call = client.calls
    assert detection_call["schema"] is DETECTION_SCHEMA
    assert str(detection_call["image_data_url"]).startswith("data:image/png;base64,")
    assert nutrition_call["schema"] is NUTRITION_SCHEMA
    assert nutrition_call["image_data_url"] is None
    assert "Nasi putih" in str(nutrition_call["prompt"])
    assert "item_id" not in str(nutrition_call["prompt"])


def test_analyze_pairs_nutrition_items_with_detections() -> None:
    service, _ = _service([DETECTION_RESPONSE, NUTRITION_RESPONSE])

    scan = asyncio.run(service.analyze("https://storage.example.com/menu.png"))

    for menu_item, nutrition_item in zip(
        scan.menu_items, scan.nutrition_facts.items, strict=True
    ):
        assert nutrition_item.item_id == menu_item.item_id
        assert scan.nutrition_item_for(menu_item.item_id) is nutrition_item


def test_detection_tolerates_prose_around_json() -> None:
    wrapped = f"Berikut hasilnya:\n```json\n{DETECTION_RESPONSE}\n```\nSelesai."
    service, _ = _service([wrapped])

    items = asyncio.run(service.detect_menu_items("https://example.com/a.png"))

    assert len(items) == 2


def test_detection_without_json_fails() -> None:
    service, _ = _service(["Maaf, saya tidak dapat mengenali makanan."])

    with pytest.raises(AnalysisFailure):
        asyncio.run(service.detect_menu_items("https://example.com/a.png"))


def test_detection_schema_mismatch_fails() -> None:
    service, _ = _service([json.dumps({"items": [{"nama_menu": "Nasi"}]})])

    with pytest.raises(AnalysisFailure):
        asyncio.run(service.detect_menu_items("https://example.com/a.png"))


def test_detection_with_no_items_fails() -> None:
    service, _ = _service([json.dumps({"items": []})])

    with pytest.raises(AnalysisFailure):
        asyncio.run(service.detect_menu_items("https://example.com/a.png"))


def test_nutrition_stage_failure_fails_whole_analysis() -> None:
    service, _ = _service([DETECTION_RESPONSE, "not json at all"])

    with pytest.raises(AnalysisFailure):
        asyncio.run(service.analyze("https://example.com/a.png"))


def test_rate_limit_is_reported_separately() -> None:
    service, _ = _service([_ProviderError(429)])

    with pytest.raises(RateLimitFailure):
        asyncio.run(service.analyze("https://example.com/a.png"))


def test_other_provider_errors_are_analysis_failures() -> None:
    service, _ = _service([_ProviderError(500)])

    with pytest.raises(AnalysisFailure):
        asyncio.run(service.analyze("https://example.com/a.png"))


def test_image_fetch_failure_skips_model_call() -> None:
    fetcher = FakeImageFetcher(error=RuntimeError("404"))
    service, client = _service([DETECTION_RESPONSE], fetcher=fetcher)

    with pytest.raises(AnalysisFailure):
        asyncio.run(service.analyze("https://example.com/missing.png"))

    assert client.calls == []


def test_legacy_status_label_is_normalized() -> None:
    payload = json.loads(NUTRITION_RESPONSE)
    payload["summary_evaluation"]["status"] = "Kurang sesuai"
    payload["summary_evaluation"]["recommendation"] = "Tambahkan sayur."
    service, _ = _service([DETECTION_RESPONSE, json.dumps(payload)])

    scan = asyncio.run(service.analyze("https://example.com/a.png"))

    assert scan.evaluation_status is EvaluationStatus.UNBALANCED


def test_extract_json_block_ignores_brackets_in_strings() -> None:
    text = 'noise {"a": "x]}", "b": [1, {"c": "\\"}"}]} trailing }'

    block = extract_json_block(text, "{")

    assert block == '{"a": "x]}", "b": [1, {"c": "\\"}"}]}'
    assert json.loads(block)["a"] == "x]}"


def test_extract_json_block_returns_none_when_absent_or_unbalanced() -> None:
    assert extract_json_block("no json here", "[") is None
    assert extract_json_block('[{"a": 1}', "[") is None


def test_is_rate_limited_checks_status_and_message() -> None:
    assert is_rate_limited(_ProviderError(429))
    assert not is_rate_limited(_ProviderError(503))
    assert is_rate_limited(RuntimeError("HTTP 429 Too Many Requests"))
    assert not is_rate_limited(RuntimeError("boom"))


def test_to_data_url_prefers_reported_content_type() -> None:
    url = _to_data_url(b"\x89PNG\r\n\x1a\nrest", "image/webp")

    assert url.startswith("data:image/webp;base64,")


def test_to_data_url_uses_png_header() -> None:
    url = _to_data_url(b"\x89PNG\r\n\x1a\n" + b"rest")

    assert url.startswith("data:image/png;base64,")


def test_to_data_url_defaults_to_jpeg() -> None:
    url = _to_data_url(b"unknown")

    assert url.startswith("data:image/jpeg;base64,")


def test_nutrition_summary_is_rebuilt_from_items() -> None:
    payload = json.loads(NUTRITION_RESPONSE)
    payload["nutrition_summary"]["calories_kcal"] = 9999
    payload["nutrition_summary"]["sodium_mg"] = 0
    service, _ = _service([DETECTION_RESPONSE, json.dumps(payload)])

    scan = asyncio.run(service.analyze("https://example.com/a.png"))

    summary = scan.nutrition_facts.nutrition_summary
    assert summary.calories_kcal == 440
    assert summary.sodium_mg == 400
