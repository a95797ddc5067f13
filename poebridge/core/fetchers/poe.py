"""Fetch the Poe model catalog and normalize it into :class:`ModelInfo` entries."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

import httpx

from poebridge.core.cost import parse_api_price
from poebridge.core.errors import PoeCatalogError, PoeModelRecordError
from poebridge.core.model_info import ModelCatalog, ModelInfo
from poebridge.core.service_url import poe_models_url
from poebridge.utils.coerce import parse_optional_int
from poebridge.utils.log import get_logger

logger = get_logger()

ReasoningFlag = Literal["supports_reasoning_budget", "supports_reasoning_effort"]


@dataclass(frozen=True)
class ReasoningRule:
    """Model-id substring that marks a reasoning-capable model family."""

    pattern: str
    flag: ReasoningFlag


# Matched against the raw model id; only consulted when supports_reasoning is set.
REASONING_RULES: Tuple[ReasoningRule, ...] = (
    ReasoningRule("claude", "supports_reasoning_budget"),
    ReasoningRule("coding/gemini-2.5", "supports_reasoning_budget"),
    ReasoningRule("vertex/gemini-2.5", "supports_reasoning_budget"),
    ReasoningRule("openai", "supports_reasoning_effort"),
    ReasoningRule("google/gemini-2.5", "supports_reasoning_effort"),
)

MEDIA_OUTPUT_MODALITIES = ("image", "video")
# Image/video generators are recognized but not offered to the chat host yet.
INCLUDE_MEDIA_OUTPUT_MODELS = False


def reasoning_flags(model_id: str, supports_reasoning: object) -> Dict[ReasoningFlag, bool]:
    """Evaluate :data:`REASONING_RULES` for a model id."""
    flags: Dict[ReasoningFlag, bool] = {rule.flag: False for rule in REASONING_RULES}
    if not supports_reasoning:
        return flags
    for rule in REASONING_RULES:
        if rule.pattern in model_id:
            flags[rule.flag] = True
    return flags


def _modalities(raw_model: Mapping[str, Any], key: str) -> List[str]:
    architecture = raw_model.get("architecture")
    if not isinstance(architecture, Mapping):
        return []
    values = architecture.get(key)
    if not isinstance(values, list):
        return []
    return [value for value in values if isinstance(value, str)]


def is_media_output_model(raw_model: Mapping[str, Any]) -> bool:
    outputs = _modalities(raw_model, "output_modalities")
    return any(modality in outputs for modality in MEDIA_OUTPUT_MODALITIES)


def is_chat_model(raw_model: Mapping[str, Any]) -> bool:
    """Return True when the record should appear in the chat catalog."""
    if "text" in _modalities(raw_model, "output_modalities"):
        return True
    return INCLUDE_MEDIA_OUTPUT_MODELS and is_media_output_model(raw_model)


def _optional_bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def _first_present(pricing: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = pricing.get(key)
        if value:
            return value
    return None


def model_id_of(raw_model: Any) -> str:
    if not isinstance(raw_model, Mapping):
        raise PoeModelRecordError(f"Model record is not an object: {type(raw_model).__name__}")
    model_id = raw_model.get("id")
    if not isinstance(model_id, str) or not model_id:
        raise PoeModelRecordError("Model record has no id")
    return model_id


def normalize_poe_model(raw_model: Mapping[str, Any]) -> Optional[ModelInfo]:
    """Map one catalog record to :class:`ModelInfo`, or None if it is filtered out."""
    model_id = model_id_of(raw_model)
    if not is_chat_model(raw_model):
        return None

    pricing = raw_model.get("pricing")
    if not isinstance(pricing, Mapping):
        pricing = {}
    description = raw_model.get("description")
    flags = reasoning_flags(model_id, raw_model.get("supports_reasoning"))

    return ModelInfo(
        max_tokens=parse_optional_int(raw_model.get("max_output_tokens")),
        context_window=parse_optional_int(raw_model.get("context_window")),
        supports_prompt_cache=_optional_bool(raw_model.get("supports_caching")),
        supports_images="image" in _modalities(raw_model, "input_modalities"),
        supports_computer_use=_optional_bool(raw_model.get("supports_computer_use")),
        supports_reasoning_budget=flags["supports_reasoning_budget"],
        supports_reasoning_effort=flags["supports_reasoning_effort"],
        input_price=parse_api_price(pricing.get("prompt")),
        output_price=parse_api_price(pricing.get("completion")),
        cache_writes_price=parse_api_price(
            _first_present(pricing, "cache_creation", "prompt_cache_write")
        ),
        cache_reads_price=parse_api_price(
            _first_present(pricing, "cache_read", "prompt_cache_read")
        ),
        description=description if isinstance(description, str) else None,
    )


def _extract_raw_models(payload: Any) -> List[Any]:
    if not isinstance(payload, Mapping):
        raise PoeCatalogError(f"Expected a JSON object, got {type(payload).__name__}")
    raw_models = payload.get("data")
    if not isinstance(raw_models, list):
        raise PoeCatalogError("Response is missing the 'data' model list")
    return raw_models


def normalize_catalog(raw_models: List[Any]) -> ModelCatalog:
    """Normalize every record, skipping the ones that cannot be parsed."""
    models: ModelCatalog = {}
    for index, raw_model in enumerate(raw_models):
        try:
            model_id = model_id_of(raw_model)
            info = normalize_poe_model(raw_model)
        except (PoeModelRecordError, ValueError, TypeError) as exc:
            logger.debug(
                "[poe] Skipping malformed model record: %s: %s",
                type(exc).__name__,
                exc,
                extra={"index": index},
            )
            continue
        if info is None:
            continue
        models[model_id] = info
    return models


async def get_poe_models(
    api_key: Optional[str] = None, base_url: Optional[str] = None
) -> ModelCatalog:
    """Fetch ``{base}/models`` and return the normalized catalog keyed by model id.

    Never raises: transport errors, error statuses and unexpected payloads are
    logged and produce an empty catalog.
    """
    headers: Dict[str, str] = {}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    models_url = poe_models_url(base_url)

    try:
        async with httpx.AsyncClient(timeout=None) as client:
            response = await client.get(models_url, headers=headers)
            response.raise_for_status()
            payload = response.json()
        raw_models = _extract_raw_models(payload)
    except asyncio.CancelledError:
        raise
    except (
        httpx.HTTPError,
        httpx.InvalidURL,
        PoeCatalogError,
        ValueError,
        TypeError,
        OSError,
    ) as exc:
        logger.error(
            "[poe] Error fetching Poe models: %s: %s",
            type(exc).__name__,
            exc,
            extra={"url": models_url},
        )
        return {}

    models = normalize_catalog(raw_models)
    logger.debug(
        "[poe] Loaded model catalog",
        extra={"url": models_url, "records": len(raw_models), "models": len(models)},
    )
    return models


__all__ = [
    "REASONING_RULES",
    "ReasoningRule",
    "get_poe_models",
    "is_chat_model",
    "is_media_output_model",
    "normalize_catalog",
    "normalize_poe_model",
    "reasoning_flags",
]
