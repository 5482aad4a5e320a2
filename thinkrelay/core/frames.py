"""Decoding of upstream SSE events into frames."""

import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from ..types.upstream import UpstreamChunk
from .exceptions import MalformedUpstreamBody, UpstreamError
from .sse import SSEEvent


class FrameDecodeError(MalformedUpstreamBody):
    """A single stream event could not be decoded into a frame."""

    code = "malformed_upstream_frame"


@dataclass(frozen=True)
class FrameChoice:
    index: int = 0
    role: Optional[str] = None
    content: Optional[str] = None
    reasoning: Optional[str] = None
    finish_reason: Optional[str] = None


@dataclass(frozen=True)
class UpstreamFrame:
    """One decoded upstream event."""

    choices: tuple[FrameChoice, ...] = ()
    id: Optional[str] = None
    created: Optional[int] = None
    usage: Optional[Mapping[str, Any]] = None
    is_terminal: bool = False


TERMINAL_FRAME = UpstreamFrame(is_terminal=True)


def stream_error_from_payload(payload: Mapping[str, Any]) -> Optional[UpstreamError]:
    """Return an UpstreamError if a decoded event is an error report.

    Detects patterns like:
    - MiniMax: {"type":"error","error":{...}}
    - Generic: {"error":{...}}
    """
    if payload.get("type") == "error":
        error_obj = payload.get("error") or {}
        if not isinstance(error_obj, Mapping):
            return UpstreamError(f"Upstream stream error: {error_obj}")
        message = error_obj.get("message") or str(error_obj) or "unknown error"
        return UpstreamError(
            f"Upstream stream error: {message}", status=_int_or_none(error_obj.get("http_code"))
        )

    error_obj = payload.get("error")
    if isinstance(error_obj, Mapping):
        message = error_obj.get("message") or str(error_obj)
        return UpstreamError(
            f"Upstream stream error: {message}", status=_int_or_none(error_obj.get("code"))
        )
    if isinstance(error_obj, str) and error_obj:
        return UpstreamError(f"Upstream stream error: {error_obj}")
    return None


def _int_or_none(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def decode_frame(event: SSEEvent) -> Optional[UpstreamFrame]:
    """Decode one SSE event.

    Returns None for events without data (comments, keep-alives). Raises
    UpstreamError for in-stream error reports and FrameDecodeError when the
    data is not a chat-completion chunk.
    """
    if event.data is None:
        return None
    if event.is_done:
        return TERMINAL_FRAME

    try:
        payload = json.loads(event.data)
    except json.JSONDecodeError as exc:
        raise FrameDecodeError(f"invalid JSON in stream event: {exc}") from exc
    if not isinstance(payload, dict):
        raise FrameDecodeError(
            f"stream event must be a JSON object, got {type(payload).__name__}"
        )

    stream_error = stream_error_from_payload(payload)
    if stream_error is not None:
        raise stream_error

    try:
        chunk = UpstreamChunk.model_validate(payload)
    except ValidationError as exc:
        raise FrameDecodeError(
            f"stream event does not match the chunk schema: {exc.error_count()} error(s)"
        ) from exc

    return UpstreamFrame(
        choices=tuple(
            FrameChoice(
                index=choice.index,
                role=choice.delta.role,
                content=choice.delta.content,
                reasoning=choice.delta.reasoning_text,
                finish_reason=choice.finish_reason,
            )
            for choice in chunk.choices
        ),
        id=chunk.id,
        created=chunk.created,
        usage=chunk.usage,
    )
