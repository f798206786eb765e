"""Bounded conversation window for the decision service."""

from __future__ import annotations

import base64
from collections import deque
from dataclasses import dataclass
from typing import Any

SCREEN_PROMPT = "Current screen state. Analyze and respond with your next actions:"


def build_image_message(image: bytes, text: str = SCREEN_PROMPT) -> dict[str, Any]:
    """OpenAI-format user message carrying a PNG frame."""
    encoded = base64.b64encode(image).decode("ascii")
    return {
        "role": "user",
        "content": [
            {"type": "text", "text": text},
            {
                "type": "image_url",
                "image_url": {"url": f"data:image/png;base64,{encoded}", "detail": "high"},
            },
        ],
    }


@dataclass(frozen=True)
class Turn:
    """One (frame, decision) exchange."""

    image: bytes
    decision: str


class ConversationWindow:
    """Instruction turn plus the most recent ``capacity`` exchanges.

    The instruction is pinned and never evicted; once the window is full,
    appending a turn drops the oldest exchange.
    """

    def __init__(self, instruction: str, capacity: int = 10):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.instruction = instruction
        self.capacity = capacity
        self._turns: deque[Turn] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._turns)

    @property
    def turns(self) -> list[Turn]:
        return list(self._turns)

    def append(self, image: bytes, decision: str) -> None:
        self._turns.append(Turn(image=image, decision=decision))

    def reset(self) -> None:
        """Forget every exchange, keeping the instruction."""
        self._turns.clear()

    def messages(self) -> list[dict[str, Any]]:
        """Render the window as chat messages, instruction first."""
        messages: list[dict[str, Any]] = [{"role": "system", "content": self.instruction}]
        for turn in self._turns:
            messages.append(build_image_message(turn.image))
            messages.append({"role": "assistant", "content": turn.decision})
        return messages
