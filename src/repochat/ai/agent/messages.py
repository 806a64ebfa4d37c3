"""Transcript message types exchanged with the model.

Three message shapes make up a transcript:

* :class:`PlainText` - a ``system``, ``user`` or ``assistant`` message.
* :class:`FunctionCallMessage` - a function call previously issued by the model.
* :class:`FunctionReturn` - the textual result of a function call.

All messages are immutable; transcript order is carried by the containing list.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, AsyncIterable, Iterable, Literal, Union

__all__ = [
    "Role",
    "PlainText",
    "FunctionCall",
    "FunctionCallMessage",
    "FunctionReturn",
    "Message",
    "system",
    "user",
    "assistant",
    "function_call",
    "function_return",
    "FunctionCallAccumulator",
    "fold_function_call",
    "afold_function_call",
]

Role = Literal["system", "user", "assistant"]


@dataclass(slots=True, frozen=True)
class PlainText:
    """A plain chat message carrying a role and text content."""

    role: Role
    content: str

    def to_chat_param(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}


@dataclass(slots=True, frozen=True)
class FunctionCall:
    """A function call emitted by the model, or one streamed fragment of it."""

    name: str | None = None
    arguments: str = ""

    def merge(self, fragment: FunctionCall) -> FunctionCall:
        """Return the call obtained by appending *fragment* to this one."""

        return FunctionCall(
            name=self.name or fragment.name or None,
            arguments=self.arguments + (fragment.arguments or ""),
        )

    def as_payload(self) -> dict[str, Any]:
        return {"name": self.name, "arguments": self.arguments}


@dataclass(slots=True, frozen=True)
class FunctionCallMessage:
    """Transcript entry recording a function call made by the assistant."""

    name: str
    arguments: str

    @property
    def role(self) -> str:
        return "assistant"

    def to_chat_param(self) -> dict[str, Any]:
        return {
            "role": "assistant",
            "content": None,
            "function_call": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(slots=True, frozen=True)
class FunctionReturn:
    """Transcript entry carrying the output of a function call."""

    name: str
    content: str

    @property
    def role(self) -> str:
        return "function"

    def to_chat_param(self) -> dict[str, Any]:
        return {"role": "function", "name": self.name, "content": self.content}


Message = Union[PlainText, FunctionCallMessage, FunctionReturn]


def system(content: str) -> PlainText:
    return PlainText(role="system", content=content)


def user(content: str) -> PlainText:
    return PlainText(role="user", content=content)


def assistant(content: str) -> PlainText:
    return PlainText(role="assistant", content=content)


def function_call(call: FunctionCall) -> FunctionCallMessage:
    if not call.name:
        raise ValueError("function call message requires a name")
    return FunctionCallMessage(name=call.name, arguments=call.arguments)


def function_return(name: str, content: str) -> FunctionReturn:
    return FunctionReturn(name=name, content=content)


class FunctionCallAccumulator:
    """Folds streamed fragments into a single :class:`FunctionCall`.

    Argument chunks are concatenated in arrival order and the first non-empty
    name wins.
    """

    def __init__(self) -> None:
        self._call = FunctionCall()

    def push(self, fragment: FunctionCall) -> None:
        self._call = self._call.merge(fragment)

    def result(self) -> FunctionCall:
        return self._call


def fold_function_call(fragments: Iterable[FunctionCall]) -> FunctionCall:
    accumulator = FunctionCallAccumulator()
    for fragment in fragments:
        accumulator.push(fragment)
    return accumulator.result()


async def afold_function_call(fragments: AsyncIterable[FunctionCall]) -> FunctionCall:
    accumulator = FunctionCallAccumulator()
    async for fragment in fragments:
        accumulator.push(fragment)
    return accumulator.result()
