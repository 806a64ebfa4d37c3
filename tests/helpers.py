"""Shared test helpers and stub classes.

Fakes for the collaborators an agent depends on. Import from here instead of
duplicating these classes in individual test files.
"""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Mapping, Sequence

from repochat.ai.agent import ToolResult
from repochat.ai.agent.messages import FunctionCall, Message


def reply(name: str | None, arguments: Mapping[str, Any] | str, *, chunk: int = 7) -> list[FunctionCall]:
    """Split a function call into streamed fragments; only the first carries the name."""

    text = arguments if isinstance(arguments, str) else json.dumps(arguments)
    pieces = [text[index:index + chunk] for index in range(0, len(text), chunk)] or [""]
    fragments = [FunctionCall(name=name, arguments=pieces[0])]
    fragments.extend(FunctionCall(arguments=piece) for piece in pieces[1:])
    return fragments


class FakeModelClient:
    """Replays scripted replies and records every request."""

    def __init__(self, replies: Sequence[Sequence[FunctionCall]] = ()) -> None:
        self.replies = [list(item) for item in replies]
        self.requests: list[tuple[list[Message], list[dict[str, Any]]]] = []

    def queue(self, fragments: Sequence[FunctionCall]) -> None:
        self.replies.append(list(fragments))

    def offered(self, index: int = -1) -> list[str]:
        return [function["name"] for function in self.requests[index][1]]

    async def chat(
        self,
        messages: Sequence[Message],
        functions: Sequence[Mapping[str, Any]] | None = None,
    ) -> AsyncIterator[FunctionCall]:
        self.requests.append((list(messages), [dict(item) for item in functions or []]))
        if not self.replies:
            raise AssertionError("model was called more times than scripted")
        for fragment in self.replies.pop(0):
            yield fragment


class FakeTools:
    """Tool runner returning canned responses and recording calls."""

    def __init__(self, paths: Sequence[str] = ("src/auth.py", "src/session.py")) -> None:
        self.paths = tuple(paths)
        self.calls: list[tuple[str, Any]] = []

    async def run_path(self, query: str) -> ToolResult:
        self.calls.append(("path", query))
        listing = "\n".join(self.paths)
        return ToolResult(response=f"paths matching {query}:\n{listing}", paths=self.paths)

    async def run_code(self, query: str) -> ToolResult:
        self.calls.append(("code", query))
        return ToolResult(response=f"code matching {query}", paths=self.paths[:1])

    async def run_proc(self, query: str, paths: Sequence[str]) -> ToolResult:
        self.calls.append(("proc", (query, list(paths))))
        return ToolResult(response=f"processed {len(paths)} file(s) for {query}")

    async def render_answer(self, paths: Sequence[str]) -> tuple[str, str | None]:
        self.calls.append(("answer", list(paths)))
        return f"The answer uses {', '.join(paths)}.", "In short: see the files."
