"""Response assembler: one upstream result -> one chat.completion document."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from ..types.chat import ChatCompletionResponse, CompletionChoice
from ..types.upstream import UpstreamCompletion
from .demux import ByteStream
from .emitter import new_completion_id, now
from .exceptions import MalformedUpstreamBody
from .frames import FrameDecodeError, decode_frame
from .reasoning import ReasoningDisplay
from .sse import DEFAULT_MAX_FRAME_BYTES, SSEDecoder

logger = logging.getLogger("thinkrelay")

EMPTY_USAGE = {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}


@dataclass
class _ChoiceAccumulator:
    index: int
    role: str = "assistant"
    content: list[str] = field(default_factory=list)
    reasoning: list[str] = field(default_factory=list)
    finish_reason: Optional[str] = None


class ResponseAssembler:
    """Builds the non-streaming response for one request."""

    def __init__(
        self,
        model: str,
        display: ReasoningDisplay,
        *,
        max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES,
    ) -> None:
        self.model = model
        self.display = display
        self.max_frame_bytes = max_frame_bytes

    def assemble(self, body: bytes) -> ChatCompletionResponse:
        """Parse a buffered upstream JSON document. Raises MalformedUpstreamBody."""
        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise MalformedUpstreamBody(f"Upstream body is not valid JSON: {exc}") from exc
        try:
            completion = UpstreamCompletion.model_validate(payload)
        except ValidationError as exc:
            raise MalformedUpstreamBody(
                f"Upstream body does not match the chat.completion schema: "
                f"{exc.error_count()} error(s)"
            ) from exc

        choices: list[CompletionChoice] = [
            {
                "index": choice.index,
                "message": {
                    "role": choice.message.role or "assistant",
                    "content": self.display.wrap(
                        choice.message.reasoning_text, choice.message.content
                    ),
                },
                "finish_reason": choice.finish_reason,
            }
            for choice in completion.choices
        ]
        return self._document(completion.id, completion.created, choices, completion.usage)

    async def assemble_stream(self, stream: ByteStream) -> ChatCompletionResponse:
        """Fold an upstream event stream into one document.

        Uses the streaming drop policy for undecodable frames; an in-stream
        error report raises UpstreamError. The stream is always closed.
        """
        decoder = SSEDecoder(max_frame_bytes=self.max_frame_bytes)
        accumulators: dict[int, _ChoiceAccumulator] = {}
        completion_id: Optional[str] = None
        created: Optional[int] = None
        usage: Optional[Mapping[str, Any]] = None
        done = False

        def consume(events) -> bool:
            nonlocal completion_id, created, usage
            for event in events:
                try:
                    frame = decode_frame(event)
                except FrameDecodeError as exc:
                    logger.warning(f"Dropping undecodable stream frame: {exc.message}")
                    continue
                if frame is None:
                    continue
                if frame.is_terminal:
                    return True
                completion_id = completion_id or frame.id
                created = created or frame.created
                if frame.usage is not None:
                    usage = frame.usage
                for choice in frame.choices:
                    acc = accumulators.setdefault(choice.index, _ChoiceAccumulator(choice.index))
                    if choice.role:
                        acc.role = choice.role
                    if choice.content:
                        acc.content.append(choice.content)
                    if choice.reasoning:
                        acc.reasoning.append(choice.reasoning)
                    if choice.finish_reason:
                        acc.finish_reason = choice.finish_reason
            return False

        try:
            async for fragment in stream.iter_bytes():
                if consume(decoder.feed(fragment)):
                    done = True
                    break
            if not done:
                consume(decoder.flush())
        finally:
            await stream.aclose()

        if not accumulators:
            raise MalformedUpstreamBody("Upstream stream ended without any choices")

        choices: list[CompletionChoice] = [
            {
                "index": acc.index,
                "message": {
                    "role": acc.role,
                    "content": self.display.wrap("".join(acc.reasoning), "".join(acc.content)),
                },
                "finish_reason": acc.finish_reason,
            }
            for acc in sorted(accumulators.values(), key=lambda item: item.index)
        ]
        return self._document(completion_id, created, choices, usage)

    def _document(
        self,
        completion_id: Optional[str],
        created: Optional[int],
        choices: list[CompletionChoice],
        usage: Optional[Mapping[str, Any]],
    ) -> ChatCompletionResponse:
        return {
            "id": completion_id or new_completion_id(),
            "object": "chat.completion",
            "created": created or now(),
            "model": self.model,
            "choices": choices,
            "usage": dict(usage) if usage else dict(EMPTY_USAGE),
        }
