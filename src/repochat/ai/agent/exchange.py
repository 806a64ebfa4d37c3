"""Turn state for an agent session.

An :class:`Exchange` records one user query and everything that happened while
resolving it: the search steps performed, the file paths first referenced, and
the final answer once one is rendered.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import ClassVar, Union

from .query import Query

__all__ = [
    "PathStep",
    "CodeStep",
    "ProcStep",
    "SearchStep",
    "StepUpdate",
    "AnswerUpdate",
    "Update",
    "Exchange",
]


@dataclass(slots=True, frozen=True)
class PathStep:
    """A fuzzy path search and its textual response."""

    name: ClassVar[str] = "path"

    query: str
    response: str


@dataclass(slots=True, frozen=True)
class CodeStep:
    """A semantic code search and its textual response."""

    name: ClassVar[str] = "code"

    query: str
    response: str


@dataclass(slots=True, frozen=True)
class ProcStep:
    """A file processing request over a set of paths."""

    name: ClassVar[str] = "proc"

    query: str
    paths: tuple[str, ...]
    response: str


SearchStep = Union[PathStep, CodeStep, ProcStep]


@dataclass(slots=True, frozen=True)
class StepUpdate:
    step: SearchStep


@dataclass(slots=True, frozen=True)
class AnswerUpdate:
    answer: str
    conclusion: str | None = None


Update = Union[StepUpdate, AnswerUpdate]


@dataclass(slots=True)
class Exchange:
    """One user query and its resolution."""

    query: Query
    paths: list[str] = field(default_factory=list)
    search_steps: list[SearchStep] = field(default_factory=list)
    conclusion: str | None = None
    answer_text: str | None = None

    def query_text(self) -> str | None:
        """Return the query target, or ``None`` when the query has none."""

        return self.query.target

    def answer(self) -> tuple[str, str | None] | None:
        if self.answer_text is None:
            return None
        return self.answer_text, self.conclusion

    def apply_update(self, update: Update) -> None:
        if isinstance(update, StepUpdate):
            self.search_steps.append(update.step)
        elif isinstance(update, AnswerUpdate):
            self.answer_text = update.answer
            self.conclusion = update.conclusion
        else:
            raise TypeError(f"unsupported exchange update: {update!r}")

    def snapshot(self) -> Exchange:
        """Return a detached copy suitable for publishing to observers."""

        return copy.deepcopy(self)
