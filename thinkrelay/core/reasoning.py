"""Reasoning-display policy: how upstream reasoning text reaches the client."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ReasoningPhase(str, Enum):
    NO_REASONING_YET = "no_reasoning_yet"
    IN_REASONING = "in_reasoning"
    DONE = "done"


@dataclass(frozen=True)
class ReasoningDisplay:
    """Render reasoning as delimited text inside ``content``, or drop it.

    With ``enabled`` the reasoning channel is wrapped in ``<tag>`` ...
    ``</tag>`` so clients can tell it apart from the answer. Disabled, the
    reasoning channel is stripped.
    """

    enabled: bool = True
    tag: str = "think"

    @property
    def open_marker(self) -> str:
        return f"<{self.tag}>\n"

    @property
    def close_marker(self) -> str:
        return f"\n</{self.tag}>\n\n"

    def step(
        self,
        phase: ReasoningPhase,
        reasoning: Optional[str],
        content: Optional[str],
        finishing: bool = False,
    ) -> tuple[ReasoningPhase, Optional[str]]:
        """Advance one choice of one stream by a single delta.

        Returns the next phase and the text to send as ``content`` (None when
        the delta carries nothing to show).
        """
        if not self.enabled:
            return phase, content

        parts: list[str] = []
        if reasoning:
            if phase is not ReasoningPhase.IN_REASONING:
                parts.append(self.open_marker)
                phase = ReasoningPhase.IN_REASONING
            parts.append(reasoning)

        if content:
            if phase is ReasoningPhase.IN_REASONING:
                parts.append(self.close_marker)
            parts.append(content)
            phase = ReasoningPhase.DONE
        elif finishing and phase is ReasoningPhase.IN_REASONING:
            parts.append(self.close_marker)
            phase = ReasoningPhase.DONE

        if not parts:
            # "" on role-only deltas passes through unchanged
            return phase, content
        return phase, "".join(parts)

    def wrap(self, reasoning: Optional[str], content: Optional[str]) -> str:
        """One-shot rendering of a complete message."""
        content = content or ""
        if not self.enabled or not reasoning:
            return content
        return f"{self.open_marker}{reasoning}{self.close_marker}{content}"
