"""Pytest configuration and fixtures for testing."""

from __future__ import annotations

from typing import Any, Generator

import httpx
import pytest

from thinkrelay.core.upstream_transport import (
    clear_upstream_transports,
    register_upstream_transport,
)
from thinkrelay.settings import RelaySettings

UPSTREAM_BASE = "http://upstream.local/v1"


def build_settings(**overrides: Any) -> RelaySettings:
    """Settings pointing at the fake upstream host.

    Args:
        **overrides: Field values replacing the test defaults

    Returns:
        RelaySettings for the relay under test
    """
    values: dict[str, Any] = {
        "api_base": UPSTREAM_BASE,
        "api_key": "test-key",
        "default_model": "deepseek-r1",
        "model_routes": {"gpt-4o": "deepseek-r1", "gpt-4o-mini": "deepseek-v3"},
        "request_timeout": 5.0,
    }
    values.update(overrides)
    return RelaySettings(**values)


@pytest.fixture
def settings() -> RelaySettings:
    return build_settings()


# =============================================================================
# Transport Registry Fixtures
# =============================================================================


@pytest.fixture
def clear_transport_registry() -> Generator[None, None, None]:
    """Clear upstream transport registry after test.

    Use this fixture in tests that register fake transports.
    """
    yield
    clear_upstream_transports()


@pytest.fixture
def fake_upstream(clear_transport_registry: None):
    """A FakeUpstream registered for upstream.local."""
    from thinkrelay.testing import FakeUpstream

    upstream = FakeUpstream()
    register_upstream_transport("upstream.local", httpx.ASGITransport(app=upstream.app))
    return upstream


# =============================================================================
# Harness Fixtures
# =============================================================================


@pytest.fixture
def chat_harness(fake_upstream) -> Generator[tuple[Any, Any], None, None]:
    """Create a harness for chat completions endpoint testing.

    Returns:
        Tuple of (FakeUpstream, ProxyHarness)

    Usage:
        async def test_chat(chat_harness):
            upstream, harness = chat_harness
            upstream.enqueue_chat_response("Hello")
            # ... test code ...
    """
    from thinkrelay.testing import ProxyHarness

    harness = ProxyHarness(build_settings())
    try:
        yield fake_upstream, harness
    finally:
        harness.close()


@pytest.fixture
def make_harness(fake_upstream) -> Generator[Any, None, None]:
    """Factory for harnesses with custom settings.

    Usage:
        async def test_x(make_harness):
            upstream, harness = make_harness(force_stream=True)
    """
    from thinkrelay.testing import ProxyHarness

    created: list[ProxyHarness] = []

    def factory(**overrides: Any):
        harness = ProxyHarness(build_settings(**overrides))
        created.append(harness)
        return fake_upstream, harness

    try:
        yield factory
    finally:
        for harness in reversed(created):
            harness.close()


# =============================================================================
# Helper Functions for Tests
# =============================================================================


class ListStream:
    """In-memory byte stream yielding preset fragments.

    Optionally raises ``error`` after the fragments are exhausted.
    """

    def __init__(self, fragments: list[bytes], error: Exception | None = None) -> None:
        self.fragments = list(fragments)
        self.error = error
        self.yielded = 0
        self.closed = False

    async def iter_bytes(self):
        for fragment in self.fragments:
            self.yielded += 1
            yield fragment
        if self.error is not None:
            raise self.error

    async def aclose(self) -> None:
        self.closed = True


def sse(payload: Any) -> bytes:
    """Encode one SSE data frame."""
    import json

    data = payload if isinstance(payload, str) else json.dumps(payload)
    return f"data: {data}\n\n".encode("utf-8")


def parse_sse_body(body: bytes) -> list[Any]:
    """Decode an outbound event stream into payloads; '[DONE]' stays a string."""
    import json

    items: list[Any] = []
    for block in body.decode("utf-8").split("\n\n"):
        block = block.strip()
        if not block:
            continue
        assert block.startswith("data: "), block
        data = block[len("data: ") :]
        items.append(data if data == "[DONE]" else json.loads(data))
    return items
