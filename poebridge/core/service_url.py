"""Poe base-URL resolution.

User-supplied overrides are parsed as absolute URLs following the WHATWG URL
rules for special schemes and re-serialized in canonical form; anything
unusable falls back to :data:`POE_BASE_URL`.
"""

from __future__ import annotations

import ipaddress
import re
from typing import FrozenSet, List, Optional, Tuple
from urllib.parse import unquote, urlsplit, urlunsplit

import httpx

from poebridge.utils.log import get_logger

logger = get_logger()

POE_BASE_URL = "https://api.poe.com/v1/"
DEFAULT_SCHEME = "https"

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")
_SPECIAL_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}
_FORBIDDEN_HOST_CHARS = frozenset(" #%/:<>?@[\\]^|\x7f")
_TAB_OR_NEWLINE = str.maketrans("", "", "\t\n\r")

# Percent-encode sets, each applied on top of C0 controls and non-ASCII.
_FRAGMENT_SET = frozenset(' "<>`')
_QUERY_SET = frozenset(" \"#<>'")
_PATH_SET = _FRAGMENT_SET | frozenset("#?{}")
_USERINFO_SET = _PATH_SET | frozenset("/:;=@[\\]^|")

_SINGLE_DOTS = {".", "%2e"}
_DOUBLE_DOTS = {"..", ".%2e", "%2e.", "%2e%2e"}


def _percent_encode(text: str, encode_set: FrozenSet[str]) -> str:
    encoded: List[str] = []
    for ch in text:
        if ch in encode_set or ord(ch) < 0x20 or ord(ch) > 0x7E:
            encoded.append("".join(f"%{byte:02X}" for byte in ch.encode("utf-8")))
        else:
            encoded.append(ch)
    return "".join(encoded)


def _canonical_path(path: str) -> str:
    """Encode path segments and resolve ``.``/``..`` (also spelled with ``%2e``)."""
    segments = path.split("/")[1:] if path else [""]
    output: List[str] = []
    for index, segment in enumerate(segments):
        is_last = index == len(segments) - 1
        lowered = segment.lower()
        if lowered in _DOUBLE_DOTS:
            if output:
                output.pop()
            if is_last:
                output.append("")
        elif lowered in _SINGLE_DOTS:
            if is_last:
                output.append("")
        else:
            output.append(_percent_encode(segment, _PATH_SET))
    return "/" + "/".join(output)


def _parse_port(raw_port: str, raw: str) -> Optional[int]:
    if not raw_port:
        return None
    if not raw_port.isdigit() or int(raw_port) > 65535:
        raise ValueError(f"URL has an invalid port: {raw!r}")
    return int(raw_port)


def _canonical_domain(host: str, raw: str) -> str:
    host = unquote(host)
    if not host:
        raise ValueError(f"URL has no host: {raw!r}")
    if any(ch in _FORBIDDEN_HOST_CHARS or ord(ch) <= 0x20 for ch in host):
        raise ValueError(f"URL host contains forbidden characters: {raw!r}")
    if host.isascii():
        return host.lower()
    try:
        return httpx.URL(f"http://{host}/").raw_host.decode("ascii")
    except httpx.InvalidURL as exc:
        raise ValueError(f"URL host is not a valid domain name: {raw!r}") from exc


def _split_host_port(host_port: str, raw: str) -> Tuple[str, Optional[int]]:
    if host_port.startswith("["):
        host, bracket, after = host_port[1:].partition("]")
        if not bracket or (after and not after.startswith(":")):
            raise ValueError(f"URL has an invalid IPv6 host: {raw!r}")
        try:
            address = ipaddress.IPv6Address(host)
        except ValueError as exc:
            raise ValueError(f"URL has an invalid IPv6 host: {raw!r}") from exc
        return f"[{address.compressed}]", _parse_port(after[1:], raw)
    host, _, raw_port = host_port.partition(":")
    return _canonical_domain(host, raw), _parse_port(raw_port, raw)


def _canonical_userinfo(userinfo: str) -> str:
    username, has_password, password = userinfo.partition(":")
    serialized = _percent_encode(username, _USERINFO_SET)
    if has_password and password:
        serialized += ":" + _percent_encode(password, _USERINFO_SET)
    return serialized


def canonicalize_url(raw: str) -> str:
    """Parse ``raw`` as an absolute URL and return its canonical serialization.

    Raises:
        ValueError: if ``raw`` is not an absolute URL.
    """
    candidate = raw.translate(_TAB_OR_NEWLINE)
    if candidate.startswith("//"):
        candidate = f"{DEFAULT_SCHEME}:{candidate}"
    match = _SCHEME_RE.match(candidate)
    if not match:
        raise ValueError(f"URL has no scheme: {raw!r}")

    scheme = match.group(0)[:-1].lower()
    remainder = candidate[match.end() :]
    default_port = _SPECIAL_DEFAULT_PORTS.get(scheme)
    if default_port is None:
        # Non-special schemes carry opaque data after the colon.
        return f"{scheme}:{remainder}"

    before_fragment, has_fragment, fragment = remainder.partition("#")
    head, has_query, query = before_fragment.partition("?")
    # Special schemes treat backslashes as slashes and skip any run of them.
    head = head.replace("\\", "/").lstrip("/")
    authority, slash, path = head.partition("/")

    userinfo, at, host_port = authority.rpartition("@")
    if at and not host_port:
        raise ValueError(f"URL has credentials but no host: {raw!r}")
    host, port = _split_host_port(host_port, raw)

    netloc = host if port is None or port == default_port else f"{host}:{port}"
    if at and userinfo:
        credentials = _canonical_userinfo(userinfo)
        if credentials:
            netloc = f"{credentials}@{netloc}"

    serialized = f"{scheme}://{netloc}{_canonical_path(slash + path)}"
    if has_query:
        serialized += "?" + _percent_encode(query, _QUERY_SET)
    if has_fragment:
        serialized += "#" + _percent_encode(fragment, _FRAGMENT_SET)

    try:
        httpx.URL(serialized)
    except httpx.InvalidURL as exc:
        raise ValueError(f"URL is not usable for requests: {raw!r}") from exc
    return serialized


def to_poe_service_url(base_url: Optional[object] = None) -> str:
    """Return a valid Poe API base URL, falling back to the default when unusable."""
    if not isinstance(base_url, str) or not base_url.strip():
        return POE_BASE_URL

    try:
        return canonicalize_url(base_url.strip())
    except ValueError as exc:
        logger.warning(
            f'[poe] Invalid base URL "{base_url}", falling back to default',
            extra={"reason": str(exc), "default": POE_BASE_URL},
        )
        return POE_BASE_URL


def poe_endpoint_url(endpoint: str, base_url: Optional[object] = None) -> str:
    """Join ``endpoint`` onto the resolved base path, keeping any query string."""
    parts = urlsplit(to_poe_service_url(base_url))
    path = f"{parts.path.rstrip('/')}/{endpoint.lstrip('/')}"
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))


def poe_models_url(base_url: Optional[object] = None) -> str:
    return poe_endpoint_url("models", base_url)


__all__ = [
    "POE_BASE_URL",
    "canonicalize_url",
    "poe_endpoint_url",
    "poe_models_url",
    "to_poe_service_url",
]
