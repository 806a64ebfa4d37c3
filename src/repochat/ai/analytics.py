"""Query analytics events and sinks."""

from __future__ import annotations

import dataclasses
import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Literal, Mapping, Protocol

LOGGER = logging.getLogger(__name__)

Stage = Literal["input", "output"]


@dataclass(slots=True)
class EventData:
    """Stage-tagged analytics payload."""

    kind: Stage
    name: str
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def input_stage(cls, name: str) -> EventData:
        return cls(kind="input", name=name)

    @classmethod
    def output_stage(cls, name: str) -> EventData:
        return cls(kind="output", name=name)

    def with_payload(self, key: str, value: Any) -> EventData:
        self.payload[key] = to_json_safe(value)
        return self


@dataclass(slots=True)
class QueryEvent:
    """Analytics event tied to one agent session."""

    query_id: uuid.UUID
    thread_id: uuid.UUID
    data: EventData
    repo_ref: str | None = None
    user: str | None = None
    timestamp: float = field(default_factory=time.time)

    @property
    def name(self) -> str:
        return self.data.name

    def as_payload(self) -> dict[str, Any]:
        return {
            "query_id": str(self.query_id),
            "thread_id": str(self.thread_id),
            "repo_ref": self.repo_ref,
            "user": self.user,
            "stage": self.data.kind,
            "name": self.data.name,
            "payload": dict(self.data.payload),
            "timestamp": self.timestamp,
        }


class AnalyticsSink(Protocol):
    """Sink interface used to collect analytics events."""

    def record(self, event: QueryEvent) -> None:
        ...


class InMemoryAnalyticsSink:
    """Simple ring-buffer sink for local inspection and tests."""

    def __init__(self, capacity: int = 200) -> None:
        self._capacity = max(10, capacity)
        self._buffer: deque[QueryEvent] = deque(maxlen=self._capacity)
        self._lock = Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def record(self, event: QueryEvent) -> None:
        with self._lock:
            self._buffer.append(event)

    def tail(self, limit: int | None = None) -> list[QueryEvent]:
        with self._lock:
            events = list(self._buffer)
        if limit is None or limit >= len(events):
            return events
        return events[-limit:]

    def events_named(self, name: str) -> list[QueryEvent]:
        return [event for event in self.tail() if event.name == name]

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)


class LoggingAnalyticsSink:
    """Sink that writes each event to a logger at debug level."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or LOGGER

    def record(self, event: QueryEvent) -> None:
        self._logger.debug("Analytics %s/%s: %s", event.data.kind, event.name, event.as_payload())


def to_json_safe(value: Any) -> Any:
    """Convert transcript objects and containers into JSON-compatible values."""

    to_chat_param = getattr(value, "to_chat_param", None)
    if callable(to_chat_param):
        return to_chat_param()
    as_payload = getattr(value, "as_payload", None)
    if callable(as_payload):
        return as_payload()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {item.name: to_json_safe(getattr(value, item.name)) for item in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {str(key): to_json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_json_safe(item) for item in value]
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


__all__ = [
    "EventData",
    "QueryEvent",
    "AnalyticsSink",
    "InMemoryAnalyticsSink",
    "LoggingAnalyticsSink",
    "to_json_safe",
]
