"""Tests for the session path alias table."""

from __future__ import annotations

import pytest

from repochat.ai.agent.aliases import PathAliasTable, UnknownAliasError
from repochat.ai.agent.exchange import Exchange
from repochat.ai.agent.query import Query


def _exchanges(*path_lists: list[str]) -> list[Exchange]:
    return [Exchange(query=Query(target=f"q{index}"), paths=list(paths)) for index, paths in enumerate(path_lists)]


def test_alias_is_stable_for_repeated_paths() -> None:
    table = PathAliasTable(_exchanges([]))

    first = table.alias("src/lib.rs")
    second = table.alias("src/lib.rs")

    assert first == second == 0
    assert table.paths() == ["src/lib.rs"]


def test_distinct_paths_get_increasing_aliases() -> None:
    table = PathAliasTable(_exchanges([]))

    aliases = [table.alias(path) for path in ("a.py", "b.py", "a.py", "c.py")]

    assert aliases == [0, 1, 0, 2]
    assert len(table) == 3


def test_new_paths_land_on_current_exchange() -> None:
    exchanges = _exchanges(["old.py"], [])
    table = PathAliasTable(exchanges)

    assert table.alias("old.py") == 0
    assert table.alias("new.py") == 1
    assert exchanges[0].paths == ["old.py"]
    assert exchanges[1].paths == ["new.py"]


def test_aliases_span_all_exchanges_in_order() -> None:
    table = PathAliasTable(_exchanges(["a.py", "b.py"], ["c.py"], ["d.py"]))

    assert table.paths() == ["a.py", "b.py", "c.py", "d.py"]
    assert table.index_of("c.py") == 2
    assert table.resolve(3) == "d.py"
    assert "b.py" in table


def test_index_of_does_not_register() -> None:
    exchanges = _exchanges(["a.py"])
    table = PathAliasTable(exchanges)

    with pytest.raises(KeyError):
        table.index_of("missing.py")
    assert exchanges[0].paths == ["a.py"]


@pytest.mark.parametrize("alias", [1, 5, -1])
def test_resolve_rejects_unknown_aliases(alias: int) -> None:
    table = PathAliasTable(_exchanges(["a.py"]))

    with pytest.raises(UnknownAliasError):
        table.resolve(alias)


def test_alias_requires_an_exchange() -> None:
    with pytest.raises(LookupError):
        PathAliasTable([]).alias("a.py")
