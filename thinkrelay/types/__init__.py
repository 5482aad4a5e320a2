"""Type definitions for the relay."""

from .chat import (
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatCompletionResponse,
    CompletionChoice,
    ContentPart,
    Delta,
    ErrorBody,
    ErrorDetail,
    InboundMessage,
    ResponseMessage,
    StreamChoice,
    Usage,
)
from .upstream import (
    UpstreamChoice,
    UpstreamChunk,
    UpstreamCompletion,
    UpstreamDelta,
    UpstreamMessage,
    UpstreamStreamChoice,
)

__all__ = [
    "ChatCompletionChunk",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    "CompletionChoice",
    "ContentPart",
    "Delta",
    "ErrorBody",
    "ErrorDetail",
    "InboundMessage",
    "ResponseMessage",
    "StreamChoice",
    "Usage",
    "UpstreamChoice",
    "UpstreamChunk",
    "UpstreamCompletion",
    "UpstreamDelta",
    "UpstreamMessage",
    "UpstreamStreamChoice",
]
