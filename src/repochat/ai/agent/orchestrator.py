"""Session orchestrator driving the search/answer loop.

Callers feed :meth:`Agent.step` an action, starting with a
:class:`~.actions.QueryAction` for a fresh question. Each call performs that
action, asks the model for the next one and returns it. The loop ends when the
model picks the terminal :class:`~.actions.AnswerAction`, at which point
``step`` renders the answer and returns ``None``.

Sessions that are torn down before :meth:`Agent.complete` is called report a
``cancelled`` analytics event exactly once, whether the teardown comes from
:meth:`Agent.close`, leaving an ``async with`` block, garbage collection or
interpreter exit.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
import weakref
from typing import Any, Callable, Sequence

from ..ai_types import AgentConfig, TokenCounterProtocol
from ..analytics import AnalyticsSink, EventData, QueryEvent
from . import messages, prompts
from .actions import (
    Action,
    AnswerAction,
    CodeAction,
    PathAction,
    ProcAction,
    QueryAction,
    decode_function_call,
)
from .aliases import PathAliasTable
from .collaborators import ExchangeChannel, ModelClient, ToolResult, ToolRunner
from .errors import AgentError, InvariantViolation, ProcessingError, with_deadline
from .exchange import AnswerUpdate, CodeStep, Exchange, PathStep, ProcStep, StepUpdate, Update
from .history import HistoryError, build_history
from .messages import Message, afold_function_call
from .query import Query
from .trimming import trim_history

__all__ = ["Agent", "run_step"]

LOGGER = logging.getLogger(__name__)


class Agent:
    """One user session: its exchanges, collaborators and completion state."""

    def __init__(
        self,
        *,
        model_client: ModelClient,
        tools: ToolRunner,
        analytics: AnalyticsSink,
        exchange_tx: ExchangeChannel,
        repo_ref: str,
        user: str | None = None,
        thread_id: uuid.UUID | None = None,
        query_id: uuid.UUID | None = None,
        config: AgentConfig | None = None,
        token_counter: TokenCounterProtocol | None = None,
        exchanges: Sequence[Exchange] | None = None,
    ) -> None:
        self.model_client = model_client
        self.tools = tools
        self.analytics = analytics
        self.exchange_tx = exchange_tx
        self.repo_ref = repo_ref
        self.user = user
        self.thread_id = thread_id or uuid.uuid4()
        self.query_id = query_id or uuid.uuid4()
        self.config = (config or AgentConfig()).clamp()
        self.token_counter = token_counter
        self.exchanges: list[Exchange] = list(exchanges or [])
        self.aliases = PathAliasTable(self.exchanges)

        # Whether the request was answered. Checked when the session is torn down.
        self.completed = False
        self._finalizer = weakref.finalize(
            self,
            _track_cancellation,
            analytics,
            self._event_context(),
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def complete(self) -> None:
        """Mark the session answered so teardown does not report a cancellation."""

        self.completed = True
        self._finalizer.detach()

    def close(self) -> None:
        """Tear the session down, reporting a cancellation if it never completed."""

        self._finalizer()
        self.exchange_tx.close()

    def __enter__(self) -> Agent:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    async def __aenter__(self) -> Agent:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def last_exchange(self) -> Exchange:
        if not self.exchanges:
            raise InvariantViolation("exchange list was empty")
        return self.exchanges[-1]

    def paths(self) -> list[str]:
        return self.aliases.paths()

    def get_path_alias(self, path: str) -> int:
        return self.aliases.alias(path)

    def track_query(self, data: EventData) -> None:
        event = QueryEvent(data=data, **self._event_context())
        self.analytics.record(event)

    async def update(self, update: Update) -> None:
        """Apply *update* to the active exchange and publish a snapshot of it."""

        exchange = self.last_exchange()
        exchange.apply_update(update)
        await self._publish(exchange)

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    async def step(self, action: Action) -> Action | None:
        """Perform *action* and return the model's next action.

        Returns ``None`` once *action* is the terminal answer.

        Raises:
            ProcessingError: Any tool, model, decoding, trimming or channel failure.
            InvariantViolation: A non-query action arrived before any exchange.
        """

        LOGGER.debug("Executing next action %r (thread %s)", action, self.thread_id)
        try:
            return await self._step(action)
        except (AgentError, InvariantViolation):
            raise
        except Exception as exc:
            LOGGER.debug("Step failed for thread %s: %s", self.thread_id, exc)
            raise ProcessingError(exc) from exc

    async def _step(self, action: Action) -> Action | None:
        if isinstance(action, QueryAction):
            self.track_query(EventData.input_stage("query").with_payload("q", action.text))
            await self._start_exchange(Query.parse(action.text))
        elif isinstance(action, AnswerAction):
            await self.answer(action.paths)
            return None
        elif isinstance(action, PathAction):
            await self.path_search(action.query)
        elif isinstance(action, CodeAction):
            await self.code_search(action.query)
        elif isinstance(action, ProcAction):
            await self.process_files(action.query, action.paths)
        else:
            raise TypeError(f"unsupported action: {action!r}")
        return await self._next_action()

    async def _start_exchange(self, query: Query) -> None:
        if not query.target:
            raise HistoryError("query does not have target")
        exchange = Exchange(query=query)
        self.exchanges.append(exchange)
        await self._publish(exchange)

    async def path_search(self, query: str) -> None:
        self.last_exchange()
        result = await self.tools.run_path(query)
        self._alias_result(result)
        await self.update(StepUpdate(PathStep(query=query, response=result.response)))

    async def code_search(self, query: str) -> None:
        self.last_exchange()
        result = await self.tools.run_code(query)
        self._alias_result(result)
        await self.update(StepUpdate(CodeStep(query=query, response=result.response)))

    async def process_files(self, query: str, aliases: Sequence[int]) -> None:
        self.last_exchange()
        paths = self.aliases.resolve_all(aliases)
        result = await self.tools.run_proc(query, paths)
        self._alias_result(result)
        step = ProcStep(query=query, paths=tuple(paths), response=result.response)
        await self.update(StepUpdate(step))

    async def answer(self, aliases: Sequence[int]) -> None:
        self.last_exchange()
        paths = self.aliases.resolve_all(aliases)
        answer, conclusion = await self.tools.render_answer(paths)
        await self.update(AnswerUpdate(answer=answer, conclusion=conclusion))
        self.track_query(
            EventData.output_stage("answer")
            .with_payload("paths", paths)
            .with_payload("answer_length", len(answer))
        )

    async def _next_action(self) -> Action:
        paths = self.paths()
        # proc is only offered once there are paths to process
        functions = prompts.functions(add_proc=bool(paths))

        history: list[Message] = [messages.system(prompts.system(paths))]
        history.extend(build_history(self.exchanges, self.aliases, window=self.config.history_window))

        trimmed_history = trim_history(
            history,
            self.config.answer_model,
            counter=self.token_counter,
            headroom=self.config.headroom,
            max_tokens=self.config.max_context_tokens,
        )

        raw_response = await afold_function_call(self.model_client.chat(trimmed_history, functions))

        self.track_query(
            EventData.output_stage("llm_reply")
            .with_payload("full_history", history)
            .with_payload("trimmed_history", trimmed_history)
            .with_payload("last_message", history[-1] if history else None)
            .with_payload("functions", functions)
            .with_payload("raw_response", raw_response)
        )

        action = decode_function_call(raw_response)
        LOGGER.debug("Model chose %r (thread %s)", action, self.thread_id)
        return action

    async def run(
        self,
        query: str,
        *,
        step_timeout: float | None = None,
        on_exchange: Callable[[Exchange], None] | None = None,
    ) -> Exchange:
        """Drive the loop from *query* to a final answer and complete the session.

        The exchange channel is read while the loop runs, so this must be its
        only consumer. Each published snapshot is handed to *on_exchange* in
        order; without a callback the snapshots are discarded.
        """

        consumer = asyncio.create_task(self._consume_snapshots(on_exchange))
        try:
            action: Action | None = QueryAction(query)
            while action is not None:
                action = await run_step(self, action, timeout=step_timeout)
        finally:
            consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass
            for snapshot in self.exchange_tx.drain():
                if on_exchange is not None:
                    on_exchange(snapshot)
        self.complete()
        return self.last_exchange().snapshot()

    async def _consume_snapshots(self, on_exchange: Callable[[Exchange], None] | None) -> None:
        async for snapshot in self.exchange_tx:
            if on_exchange is not None:
                on_exchange(snapshot)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _alias_result(self, result: ToolResult) -> None:
        for path in result.paths:
            self.aliases.alias(path)

    async def _publish(self, exchange: Exchange) -> None:
        # Raises ChannelClosedError once the caller has stopped listening.
        await self.exchange_tx.send(exchange.snapshot())

    def _event_context(self) -> dict[str, Any]:
        return {
            "query_id": self.query_id,
            "thread_id": self.thread_id,
            "repo_ref": self.repo_ref,
            "user": self.user,
        }


async def run_step(agent: Agent, action: Action, *, timeout: float | None = None) -> Action | None:
    """Run one step, converting an expired *timeout* into :class:`AgentTimeout`."""

    if timeout is None:
        return await agent.step(action)
    return await with_deadline(agent.step(action), timeout)


def _track_cancellation(analytics: AnalyticsSink, context: dict[str, Any]) -> None:
    event = QueryEvent(
        data=EventData.output_stage("cancelled").with_payload("message", "request was cancelled"),
        **context,
    )
    try:
        analytics.record(event)
    except Exception:  # pragma: no cover - finalizers must not raise
        LOGGER.warning("Failed to record cancellation for thread %s", context.get("thread_id"), exc_info=True)
