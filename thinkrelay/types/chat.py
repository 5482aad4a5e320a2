"""Types for the client-facing chat-completion contract.

Inbound request bodies are validated with pydantic models; the outbound
shapes the relay writes are plain dicts described by TypedDicts.
"""

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field
from typing_extensions import TypedDict


# =============================================================================
# Inbound (validated)
# =============================================================================


class ContentPart(BaseModel):
    """A content part for array-style message content.

    Only ``text`` parts carry conversation text; other part types are
    ignored when the content is flattened.
    """

    type: str
    text: Optional[str] = None


class InboundMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: Union[str, list[ContentPart]]

    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return "".join(part.text or "" for part in self.content if part.type == "text")


class ChatCompletionRequest(BaseModel):
    """Body of ``POST /v1/chat/completions``.

    Unknown fields are accepted and ignored; only the fields below are
    forwarded upstream.
    """

    model: Optional[str] = None
    messages: list[InboundMessage] = Field(min_length=1)
    temperature: Optional[float] = Field(default=None, ge=0)
    max_tokens: Optional[int] = None
    stream: Optional[bool] = False


# =============================================================================
# Outbound (written by the relay)
# =============================================================================


class Delta(TypedDict, total=False):
    """A streamed delta of a choice.

    Attributes:
        role: Role indicator, "assistant" on the first chunk.
        content: Incremental text. With reasoning display enabled it also
            carries the delimited reasoning text.
    """
    role: str
    content: str


class ErrorDetail(TypedDict):
    message: str
    type: str
    code: str


class ErrorBody(TypedDict):
    error: ErrorDetail


class ResponseMessage(TypedDict):
    role: str
    content: str


class StreamChoice(TypedDict):
    index: int
    delta: Delta
    finish_reason: Optional[str]


class CompletionChoice(TypedDict):
    index: int
    message: ResponseMessage
    finish_reason: Optional[str]


class Usage(TypedDict, total=False):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class ChatCompletionChunk(TypedDict, total=False):
    """A streamed chunk of a chat completion (``chat.completion.chunk``).

    Attributes:
        id: Identifier shared by every chunk of one stream.
        object: Always "chat.completion.chunk".
        created: Unix timestamp of the stream.
        model: The model name the client asked for.
        choices: Per-choice deltas.
        usage: Token usage, usually on the final chunk only.
        error: Present only on the synthetic chunk that reports a failure.
    """
    id: str
    object: str
    created: int
    model: str
    choices: list[StreamChoice]
    usage: dict[str, Any]
    error: ErrorDetail


class ChatCompletionResponse(TypedDict):
    """A complete (non-streaming) chat completion (``chat.completion``)."""
    id: str
    object: str
    created: int
    model: str
    choices: list[CompletionChoice]
    usage: dict[str, Any]
