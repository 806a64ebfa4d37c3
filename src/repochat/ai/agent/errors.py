"""Error kinds reported by agent sessions."""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

__all__ = [
    "AgentError",
    "AgentTimeout",
    "ProcessingError",
    "InvariantViolation",
    "with_deadline",
]

T = TypeVar("T")


class AgentError(RuntimeError):
    """Base class for failures reported by :meth:`Agent.step`."""


class AgentTimeout(AgentError):
    """An external deadline expired around a step invocation."""

    def __init__(self, duration: float) -> None:
        self.duration = duration
        super().__init__(f"agent step timed out after {duration:g}s")


class ProcessingError(AgentError):
    """Any other step failure; ``cause`` holds the underlying exception."""

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(str(cause) or type(cause).__name__)


class InvariantViolation(AssertionError):
    """Programming error: the session was used before any exchange existed."""


async def with_deadline(awaitable: Awaitable[T], timeout: float) -> T:
    """Await *awaitable*, translating deadline expiry into :class:`AgentTimeout`."""

    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as exc:
        raise AgentTimeout(timeout) from exc
