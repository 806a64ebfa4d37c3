"""Wiring helpers that build agent sessions from :class:`Settings`."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping

from ..ai.agent import Agent, Exchange, ExchangeChannel, ModelClient, ToolRunner
from ..ai.analytics import AnalyticsSink, LoggingAnalyticsSink
from ..ai.client import AIClient
from ..utils.logging import resolve_level, setup_logging
from .settings import Settings, SettingsStore, redact_secret

__all__ = ["SessionFactory"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class SessionFactory:
    """Creates agents sharing one model client, tool runner and analytics sink.

    Example:
        >>> factory = SessionFactory.from_store(tools=my_tools)
        >>> async with factory.create(repo_ref="github.com/org/repo") as agent:
        ...     exchange = await factory.answer(agent, "where is auth handled?")
    """

    settings: Settings
    tools: ToolRunner
    analytics: AnalyticsSink = field(default_factory=LoggingAnalyticsSink)
    model_client: ModelClient | None = None

    def __post_init__(self) -> None:
        if self.model_client is None:
            self.model_client = AIClient(self.settings.client_settings())

    @classmethod
    def from_store(
        cls,
        store: SettingsStore | None = None,
        *,
        tools: ToolRunner,
        analytics: AnalyticsSink | None = None,
        model_client: ModelClient | None = None,
        overrides: Mapping[str, Any] | None = None,
        log_dir: Path | str | None = None,
    ) -> SessionFactory:
        """Load settings, configure process logging and return a factory."""

        store = store or SettingsStore()
        settings = store.load(overrides=overrides)
        log_path = setup_logging(resolve_level(settings.debug_logging), log_dir=log_dir)
        LOGGER.info(
            "Session settings from %s: model=%s base_url=%s api_key=%s (log %s)",
            store.path,
            settings.model,
            settings.base_url,
            redact_secret(settings.api_key) or "unset",
            log_path,
        )
        return cls(
            settings=settings,
            tools=tools,
            analytics=analytics or LoggingAnalyticsSink(),
            model_client=model_client,
        )

    def create(self, *, repo_ref: str, user: str | None = None, channel: ExchangeChannel | None = None) -> Agent:
        config = self.settings.agent_config()
        agent = Agent(
            model_client=self.model_client,
            tools=self.tools,
            analytics=self.analytics,
            exchange_tx=channel or ExchangeChannel(config.channel_capacity),
            repo_ref=repo_ref,
            user=user,
            config=config,
        )
        LOGGER.debug("Created agent session %s for %s", agent.thread_id, repo_ref)
        return agent

    async def answer(
        self,
        agent: Agent,
        query: str,
        *,
        on_exchange: Callable[[Exchange], None] | None = None,
    ) -> Exchange:
        """Run *query* to completion using the configured per-step timeout.

        The agent's channel is consumed while the query runs; pass
        *on_exchange* to observe the published snapshots.
        """

        return await agent.run(query, step_timeout=self.settings.step_timeout, on_exchange=on_exchange)
