"""Structured user queries.

A query is free text optionally mixed with ``key:value`` filters, e.g.
``"where is auth handled repo:bloop branch:main lang:rust"``. Filters are
pulled out into sets and the remaining words form the query target.
"""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass, field

__all__ = ["Query"]

_FILTER_RE = re.compile(r"^(?P<key>repo|branch|lang|path):(?P<value>.+)$", re.IGNORECASE)


@dataclass(slots=True, frozen=True)
class Query:
    """Parsed user query with its search filters."""

    target: str | None = None
    repos: frozenset[str] = field(default_factory=frozenset)
    branches: tuple[str, ...] = ()
    langs: frozenset[str] = field(default_factory=frozenset)
    paths: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def parse(cls, text: str) -> Query:
        repos: set[str] = set()
        branches: list[str] = []
        langs: set[str] = set()
        paths: set[str] = set()
        words: list[str] = []
        for token in _split(text):
            match = _FILTER_RE.match(token)
            if match is None:
                words.append(token)
                continue
            key = match.group("key").lower()
            value = match.group("value")
            if key == "repo":
                repos.add(value)
            elif key == "branch":
                if value not in branches:
                    branches.append(value)
            elif key == "lang":
                langs.add(value.lower())
            else:
                paths.add(value)
        target = " ".join(words).strip() or None
        return cls(
            target=target,
            repos=frozenset(repos),
            branches=tuple(branches),
            langs=frozenset(langs),
            paths=frozenset(paths),
        )


def _split(text: str) -> list[str]:
    try:
        return shlex.split(text or "")
    except ValueError:
        # Unbalanced quotes; treat the input as plain whitespace separated words.
        return (text or "").split()
