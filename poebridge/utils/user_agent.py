"""User-Agent and attribution headers for PoeBridge API requests.

Format: poebridge/{version} (external, {source})

Examples:
- CLI: poebridge/0.3.1 (external, cli)
- Embedded in a host: poebridge/0.3.1 (external, host)
"""

from __future__ import annotations

import os
from typing import Dict, Literal

from poebridge import __version__

UserAgentSource = Literal["cli", "host"]

POEBRIDGE_CLIENT_SOURCE_ENV = "POEBRIDGE_CLIENT_SOURCE"

DEFAULT_SOURCE: UserAgentSource = "cli"

APP_REFERER = "https://github.com/poebridge/poebridge"
APP_TITLE = "PoeBridge"


def get_client_source() -> UserAgentSource:
    """Get the client source type from environment or default."""
    source = os.environ.get(POEBRIDGE_CLIENT_SOURCE_ENV, "").lower()
    if source in {"cli", "host"}:
        return source  # type: ignore[return-value]
    return DEFAULT_SOURCE


def build_user_agent(source: UserAgentSource | None = None) -> str:
    """Build the User-Agent header value."""
    if source is None:
        source = get_client_source()
    return f"poebridge/{__version__} (external, {source})"


def build_default_headers() -> Dict[str, str]:
    """Headers attached to every chat request sent through the OpenAI client."""
    return {
        "HTTP-Referer": APP_REFERER,
        "X-Title": APP_TITLE,
        "X-PoeBridge-Version": __version__,
        "User-Agent": build_user_agent(),
    }
