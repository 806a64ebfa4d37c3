"""Shared typing contracts for AI infrastructure."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Protocol

DEFAULT_ANSWER_MODEL = "gpt-4-0613"


class TokenCounterProtocol(Protocol):
    """Protocol describing tokenizer implementations."""

    model_name: str | None

    def count(self, text: str) -> int:
        """Return the precise token count for *text*."""
        ...

    def estimate(self, text: str) -> int:
        """Return a deterministic fallback estimate when precise counts fail."""
        ...


@dataclass(slots=True)
class AgentConfig:
    """Tunable parameters that shape a single agent session."""

    answer_model: str = DEFAULT_ANSWER_MODEL
    history_window: int = 3
    headroom: int = 2_048
    max_context_tokens: int | None = None
    channel_capacity: int = 16

    def clamp(self) -> AgentConfig:
        """Clamp values into safe operating ranges and return ``self``."""

        self.answer_model = (self.answer_model or DEFAULT_ANSWER_MODEL).strip()
        self.history_window = max(1, int(self.history_window or 1))
        self.headroom = max(0, int(self.headroom or 0))
        if self.max_context_tokens is not None:
            self.max_context_tokens = max(1, int(self.max_context_tokens))
        self.channel_capacity = max(1, int(self.channel_capacity or 1))
        return self

    def as_metadata(self) -> dict[str, object]:
        return asdict(self)


__all__ = ["DEFAULT_ANSWER_MODEL", "TokenCounterProtocol", "AgentConfig"]
