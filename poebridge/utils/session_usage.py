"""Session-level usage tracking for Poe model calls."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class ModelUsage:
    """Aggregate token and cost stats for a single model."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0
    requests: int = 0
    cost_usd: float = 0.0


@dataclass
class SessionUsage:
    """In-memory snapshot of usage for the current session."""

    models: Dict[str, ModelUsage] = field(default_factory=dict)

    @property
    def total_input_tokens(self) -> int:
        return sum(usage.input_tokens for usage in self.models.values())

    @property
    def total_output_tokens(self) -> int:
        return sum(usage.output_tokens for usage in self.models.values())

    @property
    def total_requests(self) -> int:
        return sum(usage.requests for usage in self.models.values())

    @property
    def total_cost_usd(self) -> float:
        return sum(usage.cost_usd for usage in self.models.values())


_SESSION_USAGE = SessionUsage()


def _as_int(value: Any) -> int:
    try:
        if value is None:
            return 0
        return int(value)
    except (TypeError, ValueError):
        return 0


def record_usage(
    model: str,
    *,
    input_tokens: int = 0,
    output_tokens: int = 0,
    cache_read_tokens: int = 0,
    cache_write_tokens: int = 0,
    cost_usd: float = 0.0,
) -> None:
    """Record a single model invocation."""
    usage = _SESSION_USAGE.models.setdefault(model or "unknown", ModelUsage())

    usage.input_tokens += _as_int(input_tokens)
    usage.output_tokens += _as_int(output_tokens)
    usage.cache_read_tokens += _as_int(cache_read_tokens)
    usage.cache_write_tokens += _as_int(cache_write_tokens)
    usage.requests += 1
    usage.cost_usd += float(cost_usd) if cost_usd and cost_usd > 0 else 0.0


def get_session_usage() -> SessionUsage:
    """Return a copy of the current session usage."""
    return deepcopy(_SESSION_USAGE)


def reset_session_usage() -> None:
    """Clear all recorded usage (primarily for tests)."""
    global _SESSION_USAGE
    _SESSION_USAGE = SessionUsage()


__all__ = [
    "ModelUsage",
    "SessionUsage",
    "get_session_usage",
    "record_usage",
    "reset_session_usage",
]
