"""Stable integer aliases for file paths referenced during a session."""

from __future__ import annotations

from typing import Iterator, Sequence

from .exchange import Exchange

__all__ = ["UnknownAliasError", "PathAliasTable"]


class UnknownAliasError(LookupError):
    """Raised when the model refers to a path alias that was never issued."""

    def __init__(self, alias: int, known: int) -> None:
        self.alias = alias
        self.known = known
        super().__init__(f"unknown path alias {alias} ({known} path(s) in context)")


class PathAliasTable:
    """Append-only alias table backed by the session's exchanges.

    The alias of a path is its position in the flattened, order-preserving
    union of every exchange's path list. New paths are appended to the most
    recent exchange, so aliases never change once issued.
    """

    def __init__(self, exchanges: Sequence[Exchange]) -> None:
        self._exchanges = exchanges

    def paths(self) -> list[str]:
        return [path for exchange in self._exchanges for path in exchange.paths]

    def alias(self, path: str) -> int:
        """Return the alias of *path*, registering it on the current exchange if new."""

        paths = self.paths()
        try:
            return paths.index(path)
        except ValueError:
            pass
        if not self._exchanges:
            raise LookupError("cannot alias a path before the first exchange")
        self._exchanges[-1].paths.append(path)
        return len(paths)

    def index_of(self, path: str) -> int:
        """Return the alias of a path already in context without registering it."""

        try:
            return self.paths().index(path)
        except ValueError:
            raise KeyError(path) from None

    def resolve(self, alias: int) -> str:
        paths = self.paths()
        if isinstance(alias, bool) or not 0 <= alias < len(paths):
            raise UnknownAliasError(alias, len(paths))
        return paths[alias]

    def resolve_all(self, aliases: Sequence[int]) -> list[str]:
        return [self.resolve(alias) for alias in aliases]

    def __len__(self) -> int:
        return sum(len(exchange.paths) for exchange in self._exchanges)

    def __contains__(self, path: object) -> bool:
        return path in self.paths()

    def __iter__(self) -> Iterator[str]:
        return iter(self.paths())
