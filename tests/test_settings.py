"""Tests for the settings persistence layer and session wiring."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import replace
from pathlib import Path

import pytest

from repochat.services import SecretVault, SessionFactory, Settings, SettingsStore, redact_secret
from repochat.services import sessions as sessions_module

from tests.helpers import FakeModelClient, FakeTools, reply


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("REPOCHAT_"):
            monkeypatch.delenv(name, raising=False)


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json", vault=SecretVault(key_path=tmp_path / "key"))

    assert store.load() == Settings()


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    store = SettingsStore(path)
    original = Settings(
        base_url="https://example.com/v1",
        api_key="super-secret",
        model="gpt-4o-mini",
        organization="acme",
        history_window=5,
        max_context_tokens=16_000,
        step_timeout=30.0,
        default_headers={"X-Test": "1"},
    )

    store.save(original)
    reloaded = SettingsStore(path).load()

    assert reloaded == original


def test_api_key_is_never_written_in_plaintext(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    SettingsStore(path).save(Settings(api_key="super-secret"))

    payload = json.loads(path.read_text(encoding="utf-8"))

    assert "api_key" not in payload
    assert payload["api_key_ciphertext"].startswith("fernet:")
    assert "super-secret" not in path.read_text(encoding="utf-8")
    assert payload["version"] == 1


def test_undecryptable_key_is_dropped(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"model": "gpt-4", "api_key_ciphertext": "fernet:garbage"}), encoding="utf-8")

    settings = SettingsStore(path).load()

    assert settings.model == "gpt-4"
    assert settings.api_key == ""


def test_invalid_json_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    assert SettingsStore(path).load() == Settings()


def test_unknown_fields_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"headroom": 1024, "theme": "dark"}), encoding="utf-8")

    assert SettingsStore(path).load() == Settings(headroom=1024)


def test_runtime_and_environment_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPOCHAT_MODEL", "gpt-4-32k")
    monkeypatch.setenv("REPOCHAT_DEBUG_LOGGING", "yes")
    monkeypatch.setenv("REPOCHAT_HISTORY_WINDOW", "4")
    monkeypatch.setenv("REPOCHAT_STEP_TIMEOUT", "12.5")
    monkeypatch.setenv("REPOCHAT_HEADROOM", "lots")
    store = SettingsStore(tmp_path / "settings.json")

    settings = store.load(overrides={"base_url": "http://override", "model": "ignored", "bogus": 1})

    assert settings.base_url == "http://override"
    assert settings.model == "gpt-4-32k"
    assert settings.debug_logging is True
    assert settings.history_window == 4
    assert settings.step_timeout == 12.5
    assert settings.headroom == Settings().headroom


def test_vault_rejects_foreign_tokens(tmp_path: Path) -> None:
    vault = SecretVault(key_path=tmp_path / "key")

    token = vault.encrypt("secret")

    assert vault.decrypt(token) == "secret"
    assert vault.decrypt("") == ""
    with pytest.raises(ValueError):
        vault.decrypt("dpapi:abc")
    with pytest.raises(ValueError):
        SecretVault(key_path=tmp_path / "other").decrypt(token)


def test_settings_derive_client_and_agent_config() -> None:
    settings = Settings(api_key="k", model="gpt-4o", history_window=0, headroom=-5, default_headers={"X": "1"})

    client_settings = settings.client_settings()
    config = settings.agent_config()

    assert client_settings.model == "gpt-4o"
    assert client_settings.default_headers == {"X": "1"}
    assert replace(settings, default_headers={}).client_settings().default_headers is None
    assert config.answer_model == "gpt-4o"
    assert config.history_window == 1
    assert config.headroom == 0


@pytest.mark.parametrize(
    ("value", "expected"),
    [("", ""), ("abc", "***"), ("sk-123456", "sk*****56")],
)
def test_redact_secret(value: str, expected: str) -> None:
    assert redact_secret(value) == expected


@pytest.mark.asyncio
async def test_session_factory_builds_agents_and_answers() -> None:
    model = FakeModelClient([reply("none", {"paths": []})])
    tools = FakeTools()
    factory = SessionFactory(Settings(channel_capacity=8, step_timeout=5), tools=tools, model_client=model)

    async with factory.create(repo_ref="github.com/example/repo", user="alice") as agent:
        assert agent.exchange_tx.capacity == 8
        assert agent.config.answer_model == Settings().model
        exchange = await factory.answer(agent, "hello there")

    assert agent.completed is True
    assert exchange.answer() == ("The answer uses .", "In short: see the files.")
    assert tools.calls == [("answer", [])]


@pytest.mark.asyncio
async def test_answer_does_not_stall_on_a_small_channel() -> None:
    model = FakeModelClient([reply("path", {"query": "auth"}) for _ in range(3)] + [reply("none", {"paths": [1]})])
    factory = SessionFactory(Settings(channel_capacity=2), tools=FakeTools(), model_client=model)
    snapshots = []

    async with factory.create(repo_ref="github.com/example/repo") as agent:
        exchange = await asyncio.wait_for(factory.answer(agent, "where?", on_exchange=snapshots.append), timeout=2)

    assert exchange.answer() == ("The answer uses src/session.py.", "In short: see the files.")
    assert len(snapshots) == 5
    assert snapshots[-1].answer() == exchange.answer()


def test_from_store_loads_settings_and_configures_logging(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    store = SettingsStore(tmp_path / "settings.json")
    store.save(Settings(api_key="sk-abcdef123", model="gpt-4o", debug_logging=True))
    calls: list[tuple[int, object]] = []

    def _setup_logging(level: int, *, log_dir: object = None) -> Path:
        calls.append((level, log_dir))
        return tmp_path / "logs" / "repochat.log"

    monkeypatch.setattr(sessions_module, "setup_logging", _setup_logging)

    with caplog.at_level(logging.INFO, logger="repochat.services.sessions"):
        factory = SessionFactory.from_store(
            store,
            tools=FakeTools(),
            model_client=FakeModelClient(),
            overrides={"history_window": 2},
            log_dir=tmp_path / "logs",
        )

    assert calls == [(logging.DEBUG, tmp_path / "logs")]
    assert factory.settings.model == "gpt-4o"
    assert factory.settings.history_window == 2
    assert factory.create(repo_ref="r").config.history_window == 2
    messages = [record.getMessage() for record in caplog.records if record.name == "repochat.services.sessions"]
    assert any("sk********23" in message for message in messages)
    assert all("sk-abcdef123" not in message for message in messages)
