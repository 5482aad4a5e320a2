"""In-process simulation helpers: a scripted upstream and a relay harness."""

from .fake_upstream import (
    FakeUpstream,
    UpstreamResponse,
    build_completion,
    build_stream_chunks,
    split_bytes,
)
from .proxy_harness import ProxyHarness

__all__ = [
    "FakeUpstream",
    "ProxyHarness",
    "UpstreamResponse",
    "build_completion",
    "build_stream_chunks",
    "split_bytes",
]
