"""Chat handlers for the Poe provider."""

from poebridge.core.providers.poe import (
    ApiStreamChunk,
    ApiStreamReasoningChunk,
    ApiStreamTextChunk,
    ApiStreamUsageChunk,
    PoeHandler,
)

__all__ = [
    "ApiStreamChunk",
    "ApiStreamReasoningChunk",
    "ApiStreamTextChunk",
    "ApiStreamUsageChunk",
    "PoeHandler",
]
