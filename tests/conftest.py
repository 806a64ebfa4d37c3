"""Shared pytest fixtures for agent tests."""

from __future__ import annotations

from typing import Any

import pytest

from repochat.ai.agent import Agent, ExchangeChannel
from repochat.ai.ai_types import AgentConfig
from repochat.ai.analytics import InMemoryAnalyticsSink
from repochat.ai.utils.tokens import ApproxByteCounter
from tests.helpers import FakeModelClient, FakeTools, reply


@pytest.fixture
def sink() -> InMemoryAnalyticsSink:
    return InMemoryAnalyticsSink()


@pytest.fixture
def model() -> FakeModelClient:
    return FakeModelClient()


@pytest.fixture
def tools() -> FakeTools:
    return FakeTools()


@pytest.fixture
def channel() -> ExchangeChannel:
    return ExchangeChannel(capacity=64)


@pytest.fixture
def make_agent(model: FakeModelClient, tools: FakeTools, sink: InMemoryAnalyticsSink, channel: ExchangeChannel):
    def _make(**overrides: Any) -> Agent:
        options: dict[str, Any] = {
            "model_client": model,
            "tools": tools,
            "analytics": sink,
            "exchange_tx": channel,
            "repo_ref": "github.com/example/repo",
            "user": "tester",
            "config": AgentConfig(),
            "token_counter": ApproxByteCounter(),
        }
        options.update(overrides)
        return Agent(**options)

    return _make


@pytest.fixture(name="reply")
def reply_fixture():
    return reply
