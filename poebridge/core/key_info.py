"""API key balance lookup for the settings panel.

Poe does not publish a key-info endpoint yet, so every failure to reach it is
treated as "no information" rather than as an error.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Dict, Optional, Tuple

import httpx
from pydantic import BaseModel, ValidationError

from poebridge.utils.log import get_logger

logger = get_logger()

POE_KEY_INFO_BASE_URL = "https://api.poe.com/v1"
KEY_INFO_STALE_SECONDS = 30.0


class PoeKeyInfo(BaseModel):
    label: Optional[str] = None
    usage: float
    limit: Optional[float] = None


class _PoeKeyInfoResponse(BaseModel):
    data: PoeKeyInfo


async def get_poe_key_info(
    api_key: Optional[str] = None, base_url: Optional[str] = None
) -> Optional[PoeKeyInfo]:
    """Return usage/limit for ``api_key``, or None when unavailable."""
    if not api_key:
        return None

    key_endpoint = f"{(base_url or POE_KEY_INFO_BASE_URL).rstrip('/')}/key"
    try:
        async with httpx.AsyncClient(timeout=None) as client:
            response = await client.get(
                key_endpoint, headers={"Authorization": f"Bearer {api_key}"}
            )
            response.raise_for_status()
            payload = response.json()
    except asyncio.CancelledError:
        raise
    except (httpx.HTTPError, httpx.InvalidURL, ValueError, OSError) as exc:
        logger.debug(
            "[poe] Key info unavailable: %s: %s",
            type(exc).__name__,
            exc,
            extra={"url": key_endpoint},
        )
        return None

    try:
        return _PoeKeyInfoResponse.model_validate(payload).data
    except ValidationError as exc:
        logger.error(
            "[poe] Poe API key info validation failed: %s",
            exc,
            extra={"url": key_endpoint},
        )
        return None


def format_balance(info: Optional[PoeKeyInfo]) -> Optional[str]:
    """Remaining balance as ``$12.34``; None when there is no limit to measure against."""
    if info is None or not info.limit:
        return None
    return f"${info.limit - info.usage:.2f}"


class KeyInfoCache:
    """Memoizes key-info lookups per (api_key, base_url) for a short stale window.

    Stale entries are dropped on every lookup, so keys typed and abandoned in the
    settings form do not accumulate.
    """

    def __init__(
        self,
        stale_seconds: float = KEY_INFO_STALE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._stale_seconds = stale_seconds
        self._clock = clock
        self._entries: Dict[Tuple[str, Optional[str]], Tuple[float, Optional[PoeKeyInfo]]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _prune(self, now: float) -> None:
        stale = [
            key
            for key, (fetched_at, _) in self._entries.items()
            if now - fetched_at >= self._stale_seconds
        ]
        for key in stale:
            del self._entries[key]

    async def get(
        self, api_key: Optional[str], base_url: Optional[str] = None
    ) -> Optional[PoeKeyInfo]:
        if not api_key:
            return None
        now = self._clock()
        self._prune(now)
        cache_key = (api_key, base_url)
        if cache_key in self._entries:
            return self._entries[cache_key][1]
        info = await get_poe_key_info(api_key, base_url)
        self._entries[cache_key] = (now, info)
        return info
