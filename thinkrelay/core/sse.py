"""SSE (Server-Sent Events) framing: incremental decoding and encoding."""

import re
from dataclasses import dataclass, field
from typing import Optional

from .exceptions import MalformedUpstreamBody

DONE_SENTINEL = "[DONE]"
DONE_FRAME = b"data: [DONE]\n\n"

# A frame ends at a line terminator followed by an empty line. CR, LF and
# CRLF may be mixed; a CR never pairs with the LF right after it.
FRAME_DELIMITER = re.compile(rb"(?:\r\n|\r(?!\n)|\n)(?:\r\n|\r(?!\n)|\n)")
LINE_SPLIT = re.compile(r"\r\n|\r|\n")

# Upper bound for one not-yet-delimited frame held in the cursor
DEFAULT_MAX_FRAME_BYTES = 1024 * 1024


@dataclass
class SSEEvent:
    data: Optional[str]
    other_lines: list[str] = field(default_factory=list)

    @property
    def is_done(self) -> bool:
        return self.data is not None and self.data.strip() == DONE_SENTINEL

    def encode(self) -> bytes:
        lines: list[str] = []
        lines.extend(self.other_lines)
        if self.data is not None:
            for item in self.data.split("\n"):
                if item:
                    lines.append(f"data: {item}")
                else:
                    lines.append("data:")
        text = "\n".join(lines) + "\n\n"
        return text.encode("utf-8")


class SSEDecoder:
    """Split an arbitrarily fragmented byte stream into SSE events.

    Bytes are buffered until a frame delimiter arrives, so multi-byte UTF-8
    sequences and line terminators split across fragments are reassembled
    before anything is decoded. After every ``feed`` the buffer holds at most
    one incomplete frame.
    """

    def __init__(self, max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES) -> None:
        self._buffer = bytearray()
        self.max_frame_bytes = max_frame_bytes

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet part of a complete frame."""
        return len(self._buffer)

    def feed(self, chunk: bytes) -> list[SSEEvent]:
        if not chunk:
            return []
        self._buffer.extend(chunk)
        events: list[SSEEvent] = []

        while True:
            match = FRAME_DELIMITER.search(self._buffer)
            if match is None:
                break
            if match.end() == len(self._buffer) and self._buffer.endswith(b"\r"):
                # The next fragment may start with the LF of a CRLF
                break
            raw_event = bytes(self._buffer[:match.start()])
            del self._buffer[:match.end()]
            event = self._parse_event(raw_event)
            if event is not None:
                events.append(event)

        if len(self._buffer) > self.max_frame_bytes:
            size = len(self._buffer)
            self._buffer.clear()
            raise MalformedUpstreamBody(
                f"SSE frame exceeds {self.max_frame_bytes} bytes without a delimiter ({size} buffered)"
            )
        return events

    def flush(self) -> list[SSEEvent]:
        """Decode whatever is left in the buffer as a final, undelimited frame."""
        if not self._buffer:
            return []
        raw_event = bytes(self._buffer)
        self._buffer.clear()
        event = self._parse_event(raw_event)
        return [event] if event is not None else []

    @staticmethod
    def _parse_event(raw: bytes) -> Optional[SSEEvent]:
        text = raw.decode("utf-8", errors="replace")
        if not text.strip():
            return None
        data_lines: list[str] = []
        other_lines: list[str] = []
        for line in LINE_SPLIT.split(text):
            if line.startswith("data:"):
                value = line[5:]
                if value.startswith(" "):
                    value = value[1:]
                data_lines.append(value)
            elif line:
                other_lines.append(line)
        data = "\n".join(data_lines) if data_lines else None
        return SSEEvent(data=data, other_lines=other_lines)
