"""Tests for the Poe model catalog fetcher and normalizer."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import pytest

from poebridge.core.fetchers.poe import (
    REASONING_RULES,
    get_poe_models,
    is_media_output_model,
    normalize_poe_model,
    reasoning_flags,
)


def _record(model_id: str, **overrides: Any) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "id": model_id,
        "description": f"{model_id} description",
        "max_output_tokens": 4096,
        "context_window": 128000,
        "supports_caching": False,
        "supports_vision": True,
        "supports_computer_use": False,
        "supports_reasoning": False,
        "architecture": {"input_modalities": ["text", "image"], "output_modalities": ["text"]},
        "pricing": {"prompt": "2.00", "completion": "8.00"},
    }
    record.update(overrides)
    return record


CLAUDE = _record(
    "claude-4.5-sonnet",
    description="Claude Sonnet 4.5 represents a major leap forward in AI capability and alignment.",
    max_output_tokens=8192,
    context_window=200000,
    supports_caching=True,
    supports_computer_use=True,
    supports_reasoning=True,
    pricing={
        "prompt": "2.50",
        "completion": "12.75",
        "cache_creation": "3.75",
        "cache_read": "0.30",
    },
)
OPENAI = _record(
    "openai/gpt-4o",
    supports_reasoning=True,
    pricing={"prompt": "5.00", "completion": "15.00"},
)
GEMINI_CODING = _record(
    "coding/gemini-2.5-pro",
    supports_caching=True,
    supports_reasoning=True,
    pricing={
        "prompt": "1.25",
        "completion": "5.00",
        "prompt_cache_write": "2.50",
        "prompt_cache_read": "0.3125",
    },
)


def _install_client(
    monkeypatch,
    *,
    payload: Any = None,
    status_code: int = 200,
    error: Optional[Exception] = None,
) -> List[Dict[str, Any]]:
    calls: List[Dict[str, Any]] = []

    class _FakeAsyncClient:
        def __init__(self, timeout: Any = None) -> None:
            calls.append({"timeout": timeout})

        async def __aenter__(self) -> "_FakeAsyncClient":
            return self

        async def __aexit__(self, exc_type, exc, tb) -> bool:  # noqa: ANN001
            return False

        async def get(self, url: str, *, headers: Dict[str, str]) -> httpx.Response:
            calls.append({"url": url, "headers": headers})
            if error is not None:
                raise error
            return httpx.Response(
                status_code=status_code,
                request=httpx.Request("GET", url),
                json=payload,
            )

    monkeypatch.setattr("poebridge.core.fetchers.poe.httpx.AsyncClient", _FakeAsyncClient)
    return calls


@pytest.fixture
def fetcher_logger(monkeypatch, recording_logger):
    monkeypatch.setattr("poebridge.core.fetchers.poe.logger", recording_logger)
    return recording_logger


@pytest.mark.asyncio
async def test_fetches_without_api_key(monkeypatch) -> None:
    calls = _install_client(monkeypatch, payload={"data": [CLAUDE, OPENAI, GEMINI_CODING]})

    models = await get_poe_models()

    assert calls[1] == {"url": "https://api.poe.com/v1/models", "headers": {}}
    assert sorted(models) == ["claude-4.5-sonnet", "coding/gemini-2.5-pro", "openai/gpt-4o"]


@pytest.mark.asyncio
async def test_fetches_with_api_key_and_custom_base_url(monkeypatch) -> None:
    calls = _install_client(monkeypatch, payload={"data": [CLAUDE]})

    models = await get_poe_models("test-api-key", "https://custom.poe.com/v1")

    assert calls[1] == {
        "url": "https://custom.poe.com/v1/models",
        "headers": {"Authorization": "Bearer test-api-key"},
    }
    assert list(models) == ["claude-4.5-sonnet"]


@pytest.mark.asyncio
async def test_fetch_imposes_no_timeout(monkeypatch) -> None:
    calls = _install_client(monkeypatch, payload={"data": []})

    await get_poe_models()

    assert calls[0] == {"timeout": None}


@pytest.mark.asyncio
async def test_parses_model_info_with_all_features(monkeypatch) -> None:
    _install_client(monkeypatch, payload={"data": [CLAUDE]})

    models = await get_poe_models()

    assert models["claude-4.5-sonnet"].to_dict() == {
        "max_tokens": 8192,
        "context_window": 200000,
        "supports_prompt_cache": True,
        "supports_images": True,
        "supports_computer_use": True,
        "supports_reasoning_budget": True,
        "supports_reasoning_effort": False,
        "input_price": 2500000,
        "output_price": 12750000,
        "description": "Claude Sonnet 4.5 represents a major leap forward in AI capability and alignment.",
        "cache_writes_price": 3750000,
        "cache_reads_price": 300000,
    }


@pytest.mark.asyncio
async def test_reasoning_flags_follow_model_family(monkeypatch) -> None:
    vertex = _record("vertex/gemini-2.5-flash", supports_reasoning=True)
    google = _record("google/gemini-2.5-pro", supports_reasoning=True)
    _install_client(monkeypatch, payload={"data": [CLAUDE, OPENAI, GEMINI_CODING, vertex, google]})

    models = await get_poe_models()

    assert models["claude-4.5-sonnet"].supports_reasoning_budget is True
    assert models["coding/gemini-2.5-pro"].supports_reasoning_budget is True
    assert models["vertex/gemini-2.5-flash"].supports_reasoning_budget is True
    assert models["openai/gpt-4o"].supports_reasoning_effort is True
    assert models["openai/gpt-4o"].supports_reasoning_budget is False
    assert models["google/gemini-2.5-pro"].supports_reasoning_effort is True
    assert models["google/gemini-2.5-pro"].supports_reasoning_budget is False


def test_reasoning_flags_require_supports_reasoning() -> None:
    assert reasoning_flags("claude-4.5-sonnet", False) == {
        "supports_reasoning_budget": False,
        "supports_reasoning_effort": False,
    }
    assert reasoning_flags("openai/gpt-5", None)["supports_reasoning_effort"] is False


def test_reasoning_rules_are_ordered_pattern_flag_pairs() -> None:
    assert [(rule.pattern, rule.flag) for rule in REASONING_RULES] == [
        ("claude", "supports_reasoning_budget"),
        ("coding/gemini-2.5", "supports_reasoning_budget"),
        ("vertex/gemini-2.5", "supports_reasoning_budget"),
        ("openai", "supports_reasoning_effort"),
        ("google/gemini-2.5", "supports_reasoning_effort"),
    ]


@pytest.mark.asyncio
async def test_alternate_cache_price_fields_are_used(monkeypatch) -> None:
    _install_client(monkeypatch, payload={"data": [GEMINI_CODING]})

    models = await get_poe_models()

    info = models["coding/gemini-2.5-pro"]
    assert info.cache_writes_price == 2500000
    assert info.cache_reads_price == 312500


@pytest.mark.asyncio
async def test_models_without_cache_pricing_omit_cache_prices(monkeypatch) -> None:
    _install_client(monkeypatch, payload={"data": [OPENAI]})

    models = await get_poe_models()

    info = models["openai/gpt-4o"]
    assert info.supports_prompt_cache is False
    assert info.cache_writes_price is None
    assert info.cache_reads_price is None
    assert "cache_writes_price" not in info.to_dict()
    assert "cache_reads_price" not in info.to_dict()


def test_unparseable_prices_are_absent_not_zero() -> None:
    info = normalize_poe_model(
        _record("odd-model", pricing={"prompt": "n/a", "completion": None, "cache_read": ""})
    )

    assert info is not None
    assert info.input_price is None
    assert info.output_price is None
    assert info.cache_reads_price is None


def test_numeric_price_values_are_scaled() -> None:
    info = normalize_poe_model(_record("numeric", pricing={"prompt": 0.000003, "completion": 0}))

    assert info is not None
    assert info.input_price == pytest.approx(3.0)
    assert info.output_price == 0


@pytest.mark.asyncio
async def test_non_text_output_models_are_excluded(monkeypatch) -> None:
    image_only = _record(
        "flux-pro",
        architecture={"input_modalities": ["text"], "output_modalities": ["image"]},
    )
    _install_client(monkeypatch, payload={"data": [CLAUDE, image_only]})

    models = await get_poe_models()

    assert list(models) == ["claude-4.5-sonnet"]
    assert is_media_output_model(image_only) is True


def test_images_support_defaults_to_false_without_modalities() -> None:
    record = _record("text-only", architecture={"output_modalities": ["text"]})

    info = normalize_poe_model(record)

    assert info is not None
    assert info.supports_images is False


@pytest.mark.asyncio
async def test_network_error_returns_empty_catalog(monkeypatch, fetcher_logger) -> None:
    _install_client(monkeypatch, error=httpx.ConnectError("Network error"))

    models = await get_poe_models()

    assert models == {}
    errors = fetcher_logger.messages("error")
    assert len(errors) == 1
    assert "Error fetching Poe models" in errors[0]


@pytest.mark.asyncio
async def test_error_status_returns_empty_catalog(monkeypatch, fetcher_logger) -> None:
    _install_client(monkeypatch, payload={"error": "unauthorized"}, status_code=401)

    assert await get_poe_models("bad-key") == {}
    assert fetcher_logger.messages("error")


@pytest.mark.asyncio
async def test_empty_response_returns_empty_catalog(monkeypatch) -> None:
    _install_client(monkeypatch, payload={"data": []})

    assert await get_poe_models() == {}


@pytest.mark.asyncio
async def test_malformed_response_returns_empty_catalog(monkeypatch, fetcher_logger) -> None:
    _install_client(monkeypatch, payload={"invalid": "response"})

    assert await get_poe_models() == {}
    assert fetcher_logger.messages("error")


@pytest.mark.asyncio
async def test_non_json_response_returns_empty_catalog(monkeypatch, fetcher_logger) -> None:
    _install_client(monkeypatch, payload=None)

    assert await get_poe_models() == {}
    assert fetcher_logger.messages("error")


@pytest.mark.asyncio
async def test_continues_processing_with_partially_valid_data(monkeypatch) -> None:
    valid = _record("valid-model")
    _install_client(
        monkeypatch,
        payload={
            "data": [
                {"id": "invalid-model"},
                {},
                "not-a-record",
                _record("bad-limits", max_output_tokens="lots", pricing=["wrong"]),
                valid,
            ]
        },
    )

    models = await get_poe_models()

    assert "valid-model" in models
    assert models["valid-model"].input_price == 2000000
    assert "invalid-model" not in models
    assert models["bad-limits"].max_tokens is None
    assert models["bad-limits"].input_price is None


@pytest.mark.asyncio
@pytest.mark.parametrize("base_url", ["https://é..com/v1/", "https://a⒈.com/"])
async def test_unencodable_host_falls_back_to_default_base(
    monkeypatch, recording_logger, base_url
) -> None:
    monkeypatch.setattr("poebridge.core.service_url.logger", recording_logger)
    calls = _install_client(monkeypatch, payload={"data": [CLAUDE]})

    models = await get_poe_models("k", base_url)

    assert calls[1]["url"] == "https://api.poe.com/v1/models"
    assert list(models) == ["claude-4.5-sonnet"]
    assert len(recording_logger.messages("warning")) == 1


@pytest.mark.asyncio
async def test_control_characters_in_base_path_are_percent_encoded(monkeypatch) -> None:
    calls = _install_client(monkeypatch, payload={"data": []})

    await get_poe_models("k", "https://api.poe.com/v1/\x01")

    assert calls[1]["url"] == "https://api.poe.com/v1/%01/models"


@pytest.mark.asyncio
async def test_invalid_url_error_returns_empty_catalog(monkeypatch, fetcher_logger) -> None:
    _install_client(monkeypatch, error=httpx.InvalidURL("Invalid IDNA hostname"))

    assert await get_poe_models("k") == {}
    errors = fetcher_logger.messages("error")
    assert len(errors) == 1
    assert "InvalidURL" in errors[0]


@pytest.mark.asyncio
async def test_unusable_urls_never_escape_with_real_client(fetcher_logger) -> None:
    # Non-special schemes pass through resolution untouched; httpx rejects them.
    assert await get_poe_models("k", "foo:\x01bar") == {}
    assert fetcher_logger.messages("error")
