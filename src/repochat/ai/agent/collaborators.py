"""Interfaces of the services an agent depends on.

The agent does not search, read files or talk to the network itself. It is
handed a model client, a tool runner, an analytics sink and an outbound
channel, all described here as protocols so tests can provide fakes.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, AsyncIterator, Mapping, Protocol, Sequence

from .messages import FunctionCall, Message

if TYPE_CHECKING:
    from .exchange import Exchange

__all__ = [
    "ToolResult",
    "ModelClient",
    "ToolRunner",
    "ChannelClosedError",
    "ExchangeChannel",
]


@dataclass(slots=True, frozen=True)
class ToolResult:
    """Textual tool output plus the file paths it referenced."""

    response: str
    paths: tuple[str, ...] = ()


class ModelClient(Protocol):
    """Streams the model's function call for a transcript."""

    def chat(
        self,
        messages: Sequence[Message],
        functions: Sequence[Mapping[str, Any]] | None = None,
    ) -> AsyncIterator[FunctionCall]:
        ...


class ToolRunner(Protocol):
    """Executes retrieval tools and renders answers."""

    async def run_path(self, query: str) -> ToolResult:
        ...

    async def run_code(self, query: str) -> ToolResult:
        ...

    async def run_proc(self, query: str, paths: Sequence[str]) -> ToolResult:
        ...

    async def render_answer(self, paths: Sequence[str]) -> tuple[str, str | None]:
        ...


class ChannelClosedError(RuntimeError):
    """Raised when publishing to a channel whose receiver has gone away."""


_CLOSED = object()


class ExchangeChannel:
    """Bounded channel carrying exchange snapshots from an agent to its caller."""

    def __init__(self, capacity: int = 16) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=max(1, int(capacity)))
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def capacity(self) -> int:
        return self._queue.maxsize

    async def send(self, exchange: "Exchange") -> None:
        if self._closed:
            raise ChannelClosedError("exchange channel was closed")
        await self._queue.put(exchange)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # The receiver stops at the closed flag once the queue drains.
            pass

    async def receive(self) -> "Exchange | None":
        """Return the next snapshot, or ``None`` once the channel is closed and drained."""

        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    def drain(self) -> list["Exchange"]:
        """Return every snapshot currently buffered without waiting."""

        items: list[Exchange] = []
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return items
            if item is not _CLOSED:
                items.append(item)

    def __aiter__(self) -> "ExchangeChannel":
        return self

    async def __anext__(self) -> "Exchange":
        item = await self.receive()
        if item is None:
            raise StopAsyncIteration
        return item
