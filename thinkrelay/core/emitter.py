"""Outbound emitter: writes relay results to the client connection."""

import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, AsyncIterator, Mapping, Optional

from fastapi.responses import JSONResponse, StreamingResponse
from starlette.types import Receive, Scope, Send

from ..types.chat import ChatCompletionChunk
from .exceptions import ProxyError
from .sse import DONE_FRAME, SSEEvent

if TYPE_CHECKING:
    from .demux import ByteStream

logger = logging.getLogger("thinkrelay")

STREAM_MEDIA_TYPE = "text/event-stream"
STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    # Force connection close after streaming to prevent connection reuse issues
    "Connection": "close",
}


@dataclass(frozen=True)
class OutboundEvent:
    """One client-facing stream event: a chunk payload or the terminal sentinel."""

    payload: Optional[ChatCompletionChunk] = None
    is_terminal: bool = False

    def encode(self) -> bytes:
        if self.is_terminal:
            return DONE_FRAME
        return SSEEvent(data=json.dumps(self.payload, ensure_ascii=False)).encode()


STREAM_END = OutboundEvent(is_terminal=True)


def new_completion_id() -> str:
    return f"chatcmpl-{uuid.uuid4().hex}"


def now() -> int:
    return int(time.time())


def build_error_chunk(
    error: ProxyError,
    *,
    completion_id: str,
    created: int,
    model: str,
) -> ChatCompletionChunk:
    """Synthetic chunk reporting a failure inside an already started stream."""
    return {
        "id": completion_id,
        "object": "chat.completion.chunk",
        "created": created,
        "model": model,
        "choices": [{"index": 0, "delta": {}, "finish_reason": "error"}],
        "error": {
            "message": error.message,
            "type": error.error_type,
            "code": error.code,
        },
    }


def build_json_response(document: Mapping[str, Any], status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=dict(document), status_code=status_code)


def build_error_response(error: ProxyError) -> JSONResponse:
    return JSONResponse(content=error.to_error_body(), status_code=error.status_code)


async def _encode_events(events: AsyncIterator[OutboundEvent]) -> AsyncIterator[bytes]:
    frames = 0
    async for event in events:
        frames += 1
        yield event.encode()
    logger.debug("Emitted %d frames to client", frames)


class RelayStreamingResponse(StreamingResponse):
    """StreamingResponse that owns the upstream stream it relays.

    The upstream is closed when the response finishes, including when the
    client is gone before the first byte and the body iterator never starts.
    """

    def __init__(
        self,
        content: Any,
        upstream: Optional["ByteStream"] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(content, **kwargs)
        self.upstream = upstream

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            if self.upstream is not None:
                await self.upstream.aclose()


def build_stream_response(
    events: AsyncIterator[OutboundEvent],
    upstream: Optional["ByteStream"] = None,
) -> StreamingResponse:
    """Stream events as SSE frames, one write per event."""
    return RelayStreamingResponse(
        _encode_events(events),
        upstream=upstream,
        status_code=200,
        headers=dict(STREAM_HEADERS),
        media_type=STREAM_MEDIA_TYPE,
    )
