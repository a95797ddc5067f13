"""Host-facing model description and the built-in Poe default model."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class ModelInfo(BaseModel):
    """Normalized model metadata consumed by the host's model picker and cost tracker.

    Prices are USD per million tokens. A price of ``None`` means "unknown" and is
    distinct from ``0.0`` ("free").
    """

    model_config = ConfigDict(frozen=True)

    max_tokens: Optional[int] = None
    context_window: Optional[int] = None
    supports_images: bool = False
    supports_computer_use: Optional[bool] = None
    supports_prompt_cache: Optional[bool] = None
    supports_reasoning_budget: bool = False
    supports_reasoning_effort: bool = False
    input_price: Optional[float] = None
    output_price: Optional[float] = None
    cache_writes_price: Optional[float] = None
    cache_reads_price: Optional[float] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialized form with absent fields dropped rather than zeroed."""
        return self.model_dump(exclude_none=True)


ModelCatalog = Dict[str, ModelInfo]

POE_DEFAULT_MODEL_ID = "Claude-Sonnet-4.5"

POE_DEFAULT_MODEL_INFO = ModelInfo(
    max_tokens=8192,
    context_window=200_000,
    supports_images=True,
    supports_computer_use=True,
    supports_prompt_cache=True,
    input_price=2.5,
    output_price=12.75,
    cache_writes_price=3.75,
    cache_reads_price=0.3,
    description=(
        "Claude Sonnet 4.5 represents a major leap forward in AI capability and alignment. "
        "It is the most advanced model released by Anthropic to date, distinguished by "
        "dramatic improvements in reasoning, mathematics, and real-world coding. "
        "Supports 200k tokens of context."
    ),
)

POE_API_KEY_URL = "https://poe.com/api_key"

__all__ = [
    "ModelCatalog",
    "ModelInfo",
    "POE_API_KEY_URL",
    "POE_DEFAULT_MODEL_ID",
    "POE_DEFAULT_MODEL_INFO",
]
