"""Rebuild the model transcript from an agent's exchanges."""

from __future__ import annotations

import json
from typing import Sequence

from . import messages, transcoder
from .aliases import PathAliasTable
from .exchange import CodeStep, Exchange, PathStep, ProcStep, SearchStep
from .messages import Message
from .prompts import FUNCTION_CALL_INSTRUCTION

__all__ = ["HISTORY_WINDOW", "HistoryError", "build_history", "step_arguments"]

HISTORY_WINDOW = 3


class HistoryError(RuntimeError):
    """Raised when the exchange list cannot be turned into a transcript."""


def build_history(
    exchanges: Sequence[Exchange],
    aliases: PathAliasTable,
    *,
    window: int = HISTORY_WINDOW,
) -> list[Message]:
    """Return the transcript for the last *window* exchanges, oldest first.

    Each exchange contributes its query, the function-call instruction, one
    call/return/instruction triple per search step and, when answered, the
    encoded answer. Building is side-effect free.
    """

    history: list[Message] = []
    for exchange in list(exchanges)[-window:] if window > 0 else []:
        query = exchange.query_text()
        if not query:
            raise HistoryError("query does not have target")

        history.append(messages.user(query))
        history.append(messages.user(FUNCTION_CALL_INSTRUCTION))

        for step in exchange.search_steps:
            history.append(messages.FunctionCallMessage(name=step.name, arguments=step_arguments(step, aliases)))
            history.append(messages.function_return(step.name, step.response))
            history.append(messages.user(FUNCTION_CALL_INSTRUCTION))

        answer = exchange.answer()
        if answer is not None:
            text, _conclusion = answer
            history.append(messages.assistant(transcoder.encode_answer(text)))
    return history


def step_arguments(step: SearchStep, aliases: PathAliasTable) -> str:
    """Return the JSON argument string the model would have sent for *step*."""

    if isinstance(step, (PathStep, CodeStep)):
        arguments: dict[str, object] = {"query": step.query}
    elif isinstance(step, ProcStep):
        try:
            encoded = [aliases.index_of(path) for path in step.paths]
        except KeyError as exc:
            raise HistoryError(f"path {exc.args[0]!r} has no alias") from exc
        arguments = {"paths": encoded, "query": step.query}
    else:
        raise TypeError(f"unsupported search step: {step!r}")
    return json.dumps(arguments, ensure_ascii=False)
