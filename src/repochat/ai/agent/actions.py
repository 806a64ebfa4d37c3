"""Agent actions and their decoding from model function calls.

The model names a function and passes a JSON argument string. We normalise the
pair into the single-key wire mapping used internally::

    {"name": "proc", "arguments": "{\"query\": \"...\", \"paths\": [0, 2]}"}

becomes::

    {"proc": {"query": "...", "paths": [0, 2]}}

which is then resolved against the closed set of action tags.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Mapping, Union

from .messages import FunctionCall

__all__ = [
    "QueryAction",
    "PathAction",
    "CodeAction",
    "ProcAction",
    "AnswerAction",
    "Action",
    "ACTION_TAGS",
    "MalformedFunctionCall",
    "UnknownAction",
    "decode_function_call",
    "decode_wire",
]


class MalformedFunctionCall(ValueError):
    """The model emitted a function call that cannot be parsed."""


class UnknownAction(ValueError):
    """The function call does not name a known action or has the wrong shape."""


@dataclass(slots=True, frozen=True)
class QueryAction:
    """A user-provided query that starts a new exchange."""

    tag: ClassVar[str] = "query"

    text: str


@dataclass(slots=True, frozen=True)
class PathAction:
    tag: ClassVar[str] = "path"

    query: str

    def to_wire(self) -> dict[str, Any]:
        return {self.tag: {"query": self.query}}


@dataclass(slots=True, frozen=True)
class CodeAction:
    tag: ClassVar[str] = "code"

    query: str

    def to_wire(self) -> dict[str, Any]:
        return {self.tag: {"query": self.query}}


@dataclass(slots=True, frozen=True)
class ProcAction:
    tag: ClassVar[str] = "proc"

    query: str
    paths: tuple[int, ...]

    def to_wire(self) -> dict[str, Any]:
        return {self.tag: {"query": self.query, "paths": list(self.paths)}}


@dataclass(slots=True, frozen=True)
class AnswerAction:
    """Terminal action: render the final answer from the given path aliases."""

    tag: ClassVar[str] = "none"

    paths: tuple[int, ...]

    def to_wire(self) -> dict[str, Any]:
        return {self.tag: {"paths": list(self.paths)}}


Action = Union[QueryAction, PathAction, CodeAction, ProcAction, AnswerAction]


def decode_function_call(call: FunctionCall) -> Action:
    """Convert a model function call into an :data:`Action`."""

    if not call.name:
        raise MalformedFunctionCall("malformed function call: missing name")
    try:
        arguments = json.loads(call.arguments)
    except (TypeError, ValueError) as exc:
        raise MalformedFunctionCall("malformed function call: invalid arguments") from exc
    return decode_wire({call.name: arguments})


def decode_wire(payload: Mapping[str, Any]) -> Action:
    """Decode the single-key ``{tag: arguments}`` mapping into an action."""

    if not isinstance(payload, Mapping) or len(payload) != 1:
        raise UnknownAction("unknown action: expected a single-key mapping")
    (tag, arguments), = payload.items()
    decoder = _DECODERS.get(tag)
    if decoder is None:
        raise UnknownAction(f"unknown action: {tag!r}")
    if not isinstance(arguments, Mapping):
        raise UnknownAction(f"unknown action: {tag!r} arguments must be an object")
    return decoder(arguments)


def _require_str(tag: str, arguments: Mapping[str, Any], key: str) -> str:
    value = arguments.get(key)
    if not isinstance(value, str):
        raise UnknownAction(f"unknown action: {tag!r} requires a string {key!r}")
    return value


def _require_aliases(tag: str, arguments: Mapping[str, Any]) -> tuple[int, ...]:
    value = arguments.get("paths")
    if not isinstance(value, list) or not all(
        isinstance(item, int) and not isinstance(item, bool) and item >= 0 for item in value
    ):
        raise UnknownAction(f"unknown action: {tag!r} requires a list of path aliases")
    return tuple(value)


def _decode_path(arguments: Mapping[str, Any]) -> Action:
    return PathAction(query=_require_str("path", arguments, "query"))


def _decode_code(arguments: Mapping[str, Any]) -> Action:
    return CodeAction(query=_require_str("code", arguments, "query"))


def _decode_proc(arguments: Mapping[str, Any]) -> Action:
    return ProcAction(
        query=_require_str("proc", arguments, "query"),
        paths=_require_aliases("proc", arguments),
    )


def _decode_answer(arguments: Mapping[str, Any]) -> Action:
    return AnswerAction(paths=_require_aliases("none", arguments))


_DECODERS: dict[str, Callable[[Mapping[str, Any]], Action]] = {
    PathAction.tag: _decode_path,
    CodeAction.tag: _decode_code,
    ProcAction.tag: _decode_proc,
    AnswerAction.tag: _decode_answer,
}

ACTION_TAGS: frozenset[str] = frozenset(_DECODERS)
