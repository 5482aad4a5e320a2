"""Core module initialization."""

from .assembler import ResponseAssembler
from .demux import StreamDemultiplexer, StreamState, step
from .emitter import (
    STREAM_END,
    OutboundEvent,
    build_error_chunk,
    build_error_response,
    build_json_response,
    build_stream_response,
)
from .exceptions import (
    ConfigurationError,
    InvalidRequestError,
    MalformedUpstreamBody,
    ProxyError,
    UpstreamError,
    UpstreamTimeout,
    UpstreamUnreachable,
)
from .frames import FrameChoice, FrameDecodeError, UpstreamFrame, decode_frame
from .normalizer import ChatMessage, CompletionRequest, RequestNormalizer
from .reasoning import ReasoningDisplay, ReasoningPhase
from .registry import get_router, set_router
from .router import RelayRouter
from .sse import SSEDecoder, SSEEvent
from .transport import UpstreamReply, UpstreamStream, UpstreamTransport

__all__ = [
    "ChatMessage",
    "CompletionRequest",
    "ConfigurationError",
    "FrameChoice",
    "FrameDecodeError",
    "InvalidRequestError",
    "MalformedUpstreamBody",
    "OutboundEvent",
    "ProxyError",
    "ReasoningDisplay",
    "ReasoningPhase",
    "RelayRouter",
    "RequestNormalizer",
    "ResponseAssembler",
    "SSEDecoder",
    "SSEEvent",
    "STREAM_END",
    "StreamDemultiplexer",
    "StreamState",
    "UpstreamError",
    "UpstreamFrame",
    "UpstreamReply",
    "UpstreamStream",
    "UpstreamTimeout",
    "UpstreamTransport",
    "UpstreamUnreachable",
    "build_error_chunk",
    "build_error_response",
    "build_json_response",
    "build_stream_response",
    "decode_frame",
    "get_router",
    "set_router",
    "step",
]
