"""
URL sanitization and endpoint matching for recorded network calls.

Recorded URLs must never carry tokens, so query strings, fragments and
credentials are removed before anything is stored.
"""

from collections.abc import Mapping
from typing import Any, Iterable, Optional
from urllib.parse import urljoin, urlsplit

from . import config


def resolve_url(target: Any) -> str:
    """
    Extract a URL string from the shapes an HTTP call can be made with.

    Accepts a plain string, an ``httpx.URL``, an ``httpx.Request`` (or any
    object with a ``url`` attribute), or a mapping with a ``"url"`` key.

    Args:
        target: The request target

    Returns:
        The URL as a string, or "" if none can be found
    """
    if target is None:
        return ""
    if isinstance(target, str):
        return target
    if isinstance(target, Mapping):
        return resolve_url(target.get("url"))
    url = getattr(target, "url", None)
    if url is not None and url is not target:
        return resolve_url(url)
    try:
        return str(target)
    except Exception:
        return ""


def sanitize_url(url: Any, base_url: Optional[str] = None) -> str:
    """
    Strip the query string, fragment and credentials from a URL.

    Absolute URLs keep only ``scheme://host[:port]/path``. Relative URLs are
    resolved against ``base_url`` (defaults to ``config.BASE_URL``) when one
    is configured. If the URL cannot be parsed, everything from the first
    ``?`` is dropped.

    Args:
        url: URL string (or any shape accepted by ``resolve_url``)
        base_url: Origin used to resolve relative URLs

    Returns:
        Sanitized URL string

    Examples:
        >>> sanitize_url("https://api.example.com/getLiveKitRoomStatus?token=secret123")
        'https://api.example.com/getLiveKitRoomStatus'
        >>> sanitize_url("/functions/scanReadiness?x=1")
        '/functions/scanReadiness'
    """
    raw = resolve_url(url)
    base = config.BASE_URL if base_url is None else base_url

    try:
        if base and not urlsplit(raw).scheme:
            raw = urljoin(base, raw)
        parts = urlsplit(raw)
        host = parts.hostname
        if not parts.scheme or not host:
            return _truncate_query(raw)
        if ":" in host:
            host = f"[{host}]"  # IPv6 literal
        origin = f"{parts.scheme}://{host}"
        if parts.port is not None:
            origin = f"{origin}:{parts.port}"
        return f"{origin}{parts.path}"
    except ValueError:
        return _truncate_query(raw)


def _truncate_query(raw: str) -> str:
    return raw.split("?", 1)[0]


def is_comms_endpoint(url: str, endpoints: Optional[Iterable[str]] = None) -> bool:
    """
    Check whether a sanitized URL hits one of the operationally critical endpoints.

    Args:
        url: Sanitized URL
        endpoints: Endpoint fragments to match (defaults to ``config.COMMS_ENDPOINTS``)

    Returns:
        True if any fragment occurs in the URL
    """
    if not url:
        return False
    fragments = config.COMMS_ENDPOINTS if endpoints is None else endpoints
    return any(fragment and fragment in url for fragment in fragments)
