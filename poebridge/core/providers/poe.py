"""Poe chat handler on top of the OpenAI-compatible endpoint."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Literal, Mapping, Optional, Tuple, Union

from openai import AsyncOpenAI

from poebridge.core.config import PoeSettings
from poebridge.core.cost import calculate_api_cost_openai
from poebridge.core.fetchers.poe import get_poe_models
from poebridge.core.model_info import (
    POE_DEFAULT_MODEL_ID,
    POE_DEFAULT_MODEL_INFO,
    ModelCatalog,
    ModelInfo,
)
from poebridge.core.service_url import to_poe_service_url
from poebridge.utils.log import get_logger
from poebridge.utils.messages import convert_to_openai_messages
from poebridge.utils.session_usage import record_usage
from poebridge.utils.user_agent import build_default_headers

logger = get_logger()

DEFAULT_TEMPERATURE = 0.0
# The OpenAI client refuses to start without a key; Poe rejects the request instead.
_MISSING_API_KEY = "not-provided"


@dataclass(frozen=True)
class ApiStreamTextChunk:
    text: str
    type: Literal["text"] = "text"


@dataclass(frozen=True)
class ApiStreamReasoningChunk:
    text: str
    type: Literal["reasoning"] = "reasoning"


@dataclass(frozen=True)
class ApiStreamUsageChunk:
    input_tokens: int
    output_tokens: int
    cache_write_tokens: int = 0
    cache_read_tokens: int = 0
    total_cost: float = 0.0
    type: Literal["usage"] = "usage"


ApiStreamChunk = Union[ApiStreamTextChunk, ApiStreamReasoningChunk, ApiStreamUsageChunk]


def _get_field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _usage_int(obj: Any, name: str) -> int:
    value = _get_field(obj, name)
    try:
        return int(value) if value is not None else 0
    except (TypeError, ValueError):
        return 0


def usage_chunk_from(usage: Any, info: ModelInfo) -> ApiStreamUsageChunk:
    """Build the terminal usage event, pricing it with ``info``."""
    details = _get_field(usage, "prompt_tokens_details")
    input_tokens = _usage_int(usage, "prompt_tokens")
    output_tokens = _usage_int(usage, "completion_tokens")
    cache_write_tokens = _usage_int(details, "caching_tokens")
    cache_read_tokens = _usage_int(details, "cached_tokens")
    return ApiStreamUsageChunk(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cache_write_tokens=cache_write_tokens,
        cache_read_tokens=cache_read_tokens,
        total_cost=calculate_api_cost_openai(
            info, input_tokens, output_tokens, cache_write_tokens, cache_read_tokens
        ),
    )


def chunk_events(chunk: Any, info: ModelInfo) -> List[ApiStreamChunk]:
    """Translate one streamed completion chunk into host stream events."""
    events: List[ApiStreamChunk] = []
    choices = _get_field(chunk, "choices") or []
    delta = _get_field(choices[0], "delta") if choices else None
    if delta is not None:
        reasoning = _get_field(delta, "reasoning_content") or _get_field(delta, "reasoning")
        if isinstance(reasoning, str) and reasoning:
            events.append(ApiStreamReasoningChunk(text=reasoning))
        content = _get_field(delta, "content")
        if isinstance(content, str) and content:
            events.append(ApiStreamTextChunk(text=content))
    usage = _get_field(chunk, "usage")
    if usage:
        events.append(usage_chunk_from(usage, info))
    return events


def poe_extra_body(metadata: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """Poe-specific request extension carrying the task trace id."""
    if not metadata or not metadata.get("task_id"):
        return None
    extra = {key: value for key, value in metadata.items() if key != "task_id"}
    return {"poe": {"trace_id": metadata["task_id"], "extra": extra}}


class PoeHandler:
    """Streams chat completions from Poe and completes single prompts."""

    def __init__(self, options: PoeSettings) -> None:
        self.options = options
        self.base_url = to_poe_service_url(options.poe_base_url)
        client_kwargs: Dict[str, Any] = {
            "base_url": self.base_url,
            "api_key": options.poe_api_key or _MISSING_API_KEY,
            "default_headers": build_default_headers(),
        }
        if options.request_timeout is not None:
            client_kwargs["timeout"] = options.request_timeout
        self.client = AsyncOpenAI(**client_kwargs)
        self._models: ModelCatalog = {}

    def get_model(self) -> Tuple[str, ModelInfo]:
        """Configured model id and its info from the last fetched catalog."""
        model_id = self.options.poe_model_id or POE_DEFAULT_MODEL_ID
        return model_id, self._models.get(model_id) or POE_DEFAULT_MODEL_INFO

    async def fetch_model(self) -> Tuple[str, ModelInfo]:
        self._models = await get_poe_models(self.options.poe_api_key, self.options.poe_base_url)
        return self.get_model()

    def _temperature(self) -> float:
        if self.options.model_temperature is None:
            return DEFAULT_TEMPERATURE
        return self.options.model_temperature

    def _base_request(self, model_id: str, info: ModelInfo) -> Dict[str, Any]:
        request: Dict[str, Any] = {"model": model_id}
        if info.max_tokens:
            request["max_tokens"] = info.max_tokens
        request["temperature"] = self._temperature()
        return request

    async def create_message(
        self,
        system_prompt: str,
        messages: List[Mapping[str, Any]],
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> AsyncIterator[ApiStreamChunk]:
        """Stream text, reasoning and usage events for one conversation turn."""
        model_id, info = await self.fetch_model()
        request = self._base_request(model_id, info)
        request["messages"] = [
            {"role": "system", "content": system_prompt},
            *convert_to_openai_messages(messages),
        ]
        request["stream"] = True
        request["stream_options"] = {"include_usage": True}
        extra_body = poe_extra_body(metadata)
        if extra_body:
            request["extra_body"] = extra_body

        logger.debug(
            "[poe] Initiating stream request",
            extra={
                "model": model_id,
                "num_messages": len(request["messages"]),
                "extra_body": json.dumps(extra_body, ensure_ascii=False, default=str),
            },
        )

        try:
            stream = await self.client.chat.completions.create(**request)
            async for chunk in stream:
                for event in chunk_events(chunk, info):
                    if isinstance(event, ApiStreamUsageChunk):
                        record_usage(
                            model_id,
                            input_tokens=event.input_tokens,
                            output_tokens=event.output_tokens,
                            cache_read_tokens=event.cache_read_tokens,
                            cache_write_tokens=event.cache_write_tokens,
                            cost_usd=event.total_cost,
                        )
                    yield event
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error(
                "[poe] Streaming request failed",
                extra={
                    "model": model_id,
                    "exception_type": type(exc).__name__,
                    "exception_str": str(exc),
                },
            )
            raise

    async def complete_prompt(self, prompt: str) -> str:
        """Single blocking completion; returns the first choice's text."""
        model_id, info = await self.fetch_model()
        request = self._base_request(model_id, info)
        request["messages"] = [{"role": "system", "content": prompt}]

        try:
            response = await self.client.chat.completions.create(**request)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error(
                "[poe] Completion request failed",
                extra={
                    "model": model_id,
                    "exception_type": type(exc).__name__,
                    "exception_str": str(exc),
                },
            )
            raise

        choices = _get_field(response, "choices") or []
        if not choices:
            logger.warning("[poe] No choices returned from completion", extra={"model": model_id})
            return ""
        message = _get_field(choices[0], "message")
        return _get_field(message, "content") or ""


__all__ = [
    "ApiStreamChunk",
    "ApiStreamReasoningChunk",
    "ApiStreamTextChunk",
    "ApiStreamUsageChunk",
    "PoeHandler",
    "chunk_events",
    "poe_extra_body",
]
