"""Price parsing and request cost calculation."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from poebridge.core.model_info import ModelInfo
from poebridge.utils.coerce import parse_optional_decimal

TOKENS_PER_PRICE_UNIT = Decimal(1_000_000)


def parse_api_price(value: object) -> Optional[float]:
    """Convert a per-token catalog price into USD per million tokens.

    Missing, empty or non-numeric values return ``None`` so callers can tell an
    unknown price from a free one.
    """
    parsed = parse_optional_decimal(value)
    if parsed is None:
        return None
    return float(parsed * TOKENS_PER_PRICE_UNIT)


def _token_cost(price_per_million: Optional[float], tokens: int) -> float:
    return ((price_per_million or 0.0) / 1_000_000) * tokens


def calculate_api_cost_openai(
    info: ModelInfo,
    input_tokens: int,
    output_tokens: int,
    cache_write_tokens: int = 0,
    cache_read_tokens: int = 0,
) -> float:
    """Cost in USD for an OpenAI-style usage report.

    OpenAI-compatible APIs count cached prompt tokens inside ``input_tokens``, so
    only the uncached remainder is billed at the regular input price.
    """
    uncached_input = max(0, input_tokens - cache_write_tokens - cache_read_tokens)
    return (
        _token_cost(info.cache_writes_price, cache_write_tokens)
        + _token_cost(info.cache_reads_price, cache_read_tokens)
        + _token_cost(info.input_price, uncached_input)
        + _token_cost(info.output_price, output_tokens)
    )
