"""Stream demultiplexer: upstream SSE bytes -> outbound chat-completion chunks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import AsyncIterator, Awaitable, Callable, Mapping, Optional, Protocol

from ..types.chat import ChatCompletionChunk, Delta, StreamChoice
from .emitter import STREAM_END, OutboundEvent, build_error_chunk, new_completion_id, now
from .exceptions import ProxyError, UpstreamError
from .frames import FrameDecodeError, UpstreamFrame, decode_frame
from .reasoning import ReasoningDisplay, ReasoningPhase
from .sse import DEFAULT_MAX_FRAME_BYTES, SSEDecoder, SSEEvent

logger = logging.getLogger("thinkrelay")

DisconnectChecker = Callable[[], Awaitable[bool]]


class ByteStream(Protocol):
    def iter_bytes(self) -> AsyncIterator[bytes]: ...

    async def aclose(self) -> None: ...


@dataclass(frozen=True)
class StreamState:
    """Everything one stream remembers between frames."""

    completion_id: str
    created: int
    model: str
    phases: Mapping[int, ReasoningPhase] = field(default_factory=lambda: MappingProxyType({}))
    terminated: bool = False
    frames: int = 0


def step(
    state: StreamState, frame: UpstreamFrame, display: ReasoningDisplay
) -> tuple[StreamState, list[OutboundEvent]]:
    """Transform one upstream frame. Pure: the next state is returned."""
    if state.terminated:
        return state, []
    if frame.is_terminal:
        return replace(state, terminated=True), [STREAM_END]

    phases = dict(state.phases)
    choices: list[StreamChoice] = []
    for choice in frame.choices:
        phase = phases.get(choice.index, ReasoningPhase.NO_REASONING_YET)
        phase, text = display.step(
            phase,
            choice.reasoning,
            choice.content,
            finishing=choice.finish_reason is not None,
        )
        phases[choice.index] = phase

        delta: Delta = {}
        if choice.role:
            delta["role"] = choice.role
        if text is not None:
            delta["content"] = text
        choices.append(
            {"index": choice.index, "delta": delta, "finish_reason": choice.finish_reason}
        )

    chunk: ChatCompletionChunk = {
        "id": state.completion_id,
        "object": "chat.completion.chunk",
        "created": state.created,
        "model": state.model,
        "choices": choices,
    }
    if frame.usage is not None:
        chunk["usage"] = dict(frame.usage)

    next_state = replace(state, phases=MappingProxyType(phases), frames=state.frames + 1)
    return next_state, [OutboundEvent(payload=chunk)]


class StreamDemultiplexer:
    """Incrementally decode one upstream stream and re-emit it for the client.

    Frames are emitted in arrival order, one outbound chunk per upstream
    frame, and the terminal sentinel exactly once. Bytes received after the
    sentinel are ignored. Undecodable frames are dropped with a warning.
    """

    def __init__(
        self,
        model: str,
        display: ReasoningDisplay,
        *,
        completion_id: Optional[str] = None,
        created: Optional[int] = None,
        max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES,
    ) -> None:
        self.display = display
        self.decoder = SSEDecoder(max_frame_bytes=max_frame_bytes)
        self.state = StreamState(
            completion_id=completion_id or new_completion_id(),
            created=created if created is not None else now(),
            model=model,
        )
        self.dropped_frames = 0

    @property
    def terminated(self) -> bool:
        return self.state.terminated

    def feed(self, fragment: bytes) -> list[OutboundEvent]:
        """Consume one byte fragment and return the events it completes."""
        if self.terminated:
            return []
        try:
            events = self.decoder.feed(fragment)
        except ProxyError as exc:
            return self.fail(exc)
        return self._process(events)

    def finish(self) -> list[OutboundEvent]:
        """Upstream EOF: decode any undelimited tail and close the stream."""
        if self.terminated:
            return []
        output = self._process(self.decoder.flush())
        if not self.terminated:
            logger.debug("Upstream stream ended without [DONE]; closing it")
            self.state = replace(self.state, terminated=True)
            output.append(STREAM_END)
        return output

    def fail(self, error: ProxyError) -> list[OutboundEvent]:
        """Report ``error`` in-band and terminate the stream."""
        if self.terminated:
            return []
        self.state = replace(self.state, terminated=True)
        chunk = build_error_chunk(
            error,
            completion_id=self.state.completion_id,
            created=self.state.created,
            model=self.state.model,
        )
        return [OutboundEvent(payload=chunk), STREAM_END]

    def _process(self, events: list[SSEEvent]) -> list[OutboundEvent]:
        output: list[OutboundEvent] = []
        for event in events:
            try:
                frame = decode_frame(event)
            except FrameDecodeError as exc:
                self.dropped_frames += 1
                logger.warning(f"Dropping undecodable stream frame: {exc.message}")
                continue
            except UpstreamError as exc:
                logger.error(f"Upstream reported an error mid-stream: {exc.message}")
                output.extend(self.fail(exc))
                break
            if frame is None:
                continue
            self.state, emitted = step(self.state, frame, self.display)
            output.extend(emitted)
            if self.terminated:
                break
        return output

    async def relay(
        self,
        stream: ByteStream,
        disconnect_checker: Optional[DisconnectChecker] = None,
    ) -> AsyncIterator[OutboundEvent]:
        """Drive ``stream`` to completion, yielding events as they complete.

        The upstream stream is closed on every exit path: end of stream,
        sentinel, error, client disconnect or cancellation.
        """
        fragments = 0
        try:
            try:
                async for fragment in stream.iter_bytes():
                    if disconnect_checker is not None and await disconnect_checker():
                        logger.info("Client disconnected; aborting upstream stream")
                        return
                    fragments += 1
                    for event in self.feed(fragment):
                        yield event
                    if self.terminated:
                        break
                for event in self.finish():
                    yield event
            except ProxyError as exc:
                logger.error(f"Error during upstream stream: {exc.message}")
                for event in self.fail(exc):
                    yield event
            except Exception as exc:
                logger.exception("Unexpected error while relaying stream")
                for event in self.fail(ProxyError(f"Internal stream error: {exc}")):
                    yield event
        finally:
            logger.debug(
                "Stream relay finished after %d fragments (%d frames, %d dropped)",
                fragments,
                self.state.frames,
                self.dropped_frames,
            )
            await stream.aclose()
