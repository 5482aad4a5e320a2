"""In-process upstream transports keyed by host.

The relay normally talks to the upstream over the network. Tests (and local
simulations) can route a host to an ASGI app or a mock transport instead.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlparse

import httpx

logger = logging.getLogger("thinkrelay")

_TRANSPORTS: dict[str, httpx.AsyncBaseTransport] = {}


def _host_key(host_or_url: str) -> str:
    if "://" in host_or_url:
        host_or_url = urlparse(host_or_url).netloc
    return host_or_url.strip().lower()


def register_upstream_transport(host_or_url: str, transport: httpx.AsyncBaseTransport) -> None:
    """Route requests for a host ('upstream.local:8000' or a full URL) to ``transport``."""
    key = _host_key(host_or_url or "")
    if not key:
        raise ValueError("host is required")
    _TRANSPORTS[key] = transport
    logger.debug("Registered upstream transport for host '%s'", key)


def clear_upstream_transports() -> None:
    _TRANSPORTS.clear()


def get_upstream_transport(url: str) -> Optional[httpx.AsyncBaseTransport]:
    """Return the registered transport for the URL's host, if any."""
    if not url:
        return None
    key = _host_key(url)
    return _TRANSPORTS.get(key) if key else None
