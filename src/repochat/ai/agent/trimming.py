"""Keep model transcripts inside the context window.

When a transcript leaves less than ``headroom`` tokens for the reply, the
oldest assistant and function-return messages are replaced with a sentinel,
one at a time, until it fits. System, user and function-call messages are
never touched. If nothing is left to hide, trimming fails rather than sending
a truncated transcript.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Sequence

from ..ai_types import TokenCounterProtocol
from ..utils.tokens import TokenCounterRegistry
from .messages import FunctionCallMessage, FunctionReturn, Message, PlainText

__all__ = [
    "HEADROOM",
    "HIDDEN",
    "HistoryTrimError",
    "context_window",
    "count_message_tokens",
    "message_tokens",
    "remaining_tokens",
    "trim_history",
]

LOGGER = logging.getLogger(__name__)

HEADROOM = 2_048
HIDDEN = "[HIDDEN]"

# Per-message framing overhead of the chat format, plus reply priming.
_TOKENS_PER_MESSAGE = 3
_TOKENS_PER_NAME = 1
_REPLY_PRIMING_TOKENS = 3

# Longest matching prefix wins.
_CONTEXT_WINDOWS: dict[str, int] = {
    "gpt-3.5-turbo": 4_096,
    "gpt-3.5-turbo-16k": 16_384,
    "gpt-3.5-turbo-1106": 16_385,
    "gpt-3.5-turbo-0125": 16_385,
    "gpt-4": 8_192,
    "gpt-4-32k": 32_768,
    "gpt-4-turbo": 128_000,
    "gpt-4-1106": 128_000,
    "gpt-4-0125": 128_000,
    "gpt-4o": 128_000,
    "gpt-4o-mini": 128_000,
    "gpt-4.1": 1_047_576,
}


class HistoryTrimError(RuntimeError):
    """Raised when a transcript cannot be brought under the token budget."""


def context_window(model: str) -> int:
    """Return the context size in tokens for *model*."""

    key = (model or "").strip().lower()
    matches = [prefix for prefix in _CONTEXT_WINDOWS if key == prefix or key.startswith(prefix + "-")]
    if not matches:
        raise HistoryTrimError(f"unknown model {model!r}: context window is not known")
    return _CONTEXT_WINDOWS[max(matches, key=len)]


def message_tokens(message: Message, counter: TokenCounterProtocol) -> int:
    """Return the chat-format token cost of a single message."""

    tokens = _TOKENS_PER_MESSAGE + counter.count(message.role)
    if isinstance(message, PlainText):
        tokens += counter.count(message.content)
    elif isinstance(message, FunctionCallMessage):
        tokens += counter.count(message.name) + counter.count(message.arguments)
    elif isinstance(message, FunctionReturn):
        tokens += counter.count(message.content) + counter.count(message.name) + _TOKENS_PER_NAME
    else:
        raise TypeError(f"unsupported message: {message!r}")
    return tokens


def count_message_tokens(messages: Sequence[Message], counter: TokenCounterProtocol) -> int:
    return sum(message_tokens(message, counter) for message in messages) + _REPLY_PRIMING_TOKENS


def remaining_tokens(max_tokens: int, costs: Sequence[int]) -> int:
    return max_tokens - sum(costs) - _REPLY_PRIMING_TOKENS


def trim_history(
    history: Sequence[Message],
    model: str,
    *,
    counter: TokenCounterProtocol | None = None,
    headroom: int = HEADROOM,
    max_tokens: int | None = None,
) -> list[Message]:
    """Return a copy of *history* that leaves at least *headroom* tokens free.

    Args:
        history: Transcript to trim, system message included.
        model: Model identifier used for the context size and token counter.
        counter: Token counter override; defaults to the registry entry for *model*.
        headroom: Tokens that must stay free for the reply.
        max_tokens: Context size override for models missing from the table.

    Raises:
        HistoryTrimError: Every eligible message is hidden and the transcript
            still does not fit, or the model's context size is unknown.
    """

    counter = counter or TokenCounterRegistry.global_instance().get(model)
    limit = max_tokens if max_tokens is not None else context_window(model)

    trimmed = list(history)
    costs = [message_tokens(message, counter) for message in trimmed]
    hidden = 0
    while remaining_tokens(limit, costs) < headroom:
        index = _first_trimmable(trimmed)
        if index is None:
            raise HistoryTrimError("could not find message to trim")
        trimmed[index] = dataclasses.replace(trimmed[index], content=HIDDEN)
        costs[index] = message_tokens(trimmed[index], counter)
        hidden += 1

    if hidden:
        LOGGER.debug(
            "Hid %s message(s) to fit %s; %s token(s) remain",
            hidden,
            model,
            remaining_tokens(limit, costs),
        )
    return trimmed


def _first_trimmable(history: Sequence[Message]) -> int | None:
    for index, message in enumerate(history):
        if isinstance(message, PlainText) and message.role == "assistant" and message.content != HIDDEN:
            return index
        if isinstance(message, FunctionReturn) and message.content != HIDDEN:
            return index
    return None
