"""Runs the relay app in-process for simulation tests."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from ..core.registry import get_router, set_router
from ..main import create_app
from ..settings import RelaySettings


class ProxyHarness:
    """The full relay app (routes, handlers, CORS) built from ``settings``.

    ``create_app`` installs a new router in the process-wide registry; the
    harness puts the previous one back on close.

    Usage:
        with ProxyHarness(settings) as proxy:
            async with proxy.make_async_client() as client:
                response = await client.post("/v1/chat/completions", json={...})
    """

    def __init__(self, settings: RelaySettings) -> None:
        try:
            self._previous_router: Optional[Any] = get_router()
        except RuntimeError:
            self._previous_router = None
        self.settings = settings
        self.app = create_app(settings)
        self.router = get_router()

    def close(self) -> None:
        set_router(self._previous_router)

    def __enter__(self) -> "ProxyHarness":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def make_async_client(self, base_url: str = "http://proxy.local") -> httpx.AsyncClient:
        """An httpx client whose requests go straight into the relay app."""
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=self.app), base_url=base_url)

    async def stream_chat(
        self, json: dict[str, Any], *, path: str = "/v1/chat/completions"
    ) -> tuple[httpx.Response, bytes]:
        """POST a chat request and read the full response body as raw bytes."""
        async with self.make_async_client() as client:
            async with client.stream("POST", path, json=json) as response:
                body = b"".join([piece async for piece in response.aiter_bytes()])
        return response, body
