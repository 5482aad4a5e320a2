"""Schemas for upstream chat-completion payloads.

The upstream speaks an OpenAI-like dialect that may add a reasoning channel
next to the answer text (``reasoning_content``, or ``reasoning`` on some
providers). Every upstream document is parsed through these models before
the relay reads it; unknown fields are ignored.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class _UpstreamModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class UpstreamDelta(_UpstreamModel):
    role: Optional[str] = None
    content: Optional[str] = None
    reasoning_content: Optional[str] = None
    reasoning: Optional[str] = None

    @property
    def reasoning_text(self) -> Optional[str]:
        return self.reasoning_content or self.reasoning


class UpstreamStreamChoice(_UpstreamModel):
    index: int = 0
    delta: UpstreamDelta = Field(default_factory=UpstreamDelta)
    finish_reason: Optional[str] = None


class UpstreamChunk(_UpstreamModel):
    """One ``chat.completion.chunk`` event; ``choices`` is required."""

    id: Optional[str] = None
    created: Optional[int] = None
    model: Optional[str] = None
    choices: list[UpstreamStreamChoice]
    usage: Optional[dict[str, Any]] = None


class UpstreamMessage(_UpstreamModel):
    role: str = "assistant"
    content: Optional[str] = None
    reasoning_content: Optional[str] = None
    reasoning: Optional[str] = None

    @property
    def reasoning_text(self) -> Optional[str]:
        return self.reasoning_content or self.reasoning


class UpstreamChoice(_UpstreamModel):
    index: int = 0
    message: UpstreamMessage
    finish_reason: Optional[str] = None


class UpstreamCompletion(_UpstreamModel):
    """A buffered ``chat.completion`` document; ``choices`` and each
    ``message`` are required."""

    id: Optional[str] = None
    created: Optional[int] = None
    model: Optional[str] = None
    choices: list[UpstreamChoice]
    usage: Optional[dict[str, Any]] = None
