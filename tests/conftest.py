from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

import orjson
import pytest
from mongomock_motor import AsyncMongoMockClient

from consulting_agents.dal import Store
from consulting_agents.events.envelope import Envelope
from consulting_agents.events.types import event_name


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeMessage:
    """Stands in for aio_pika's incoming message: body, headers, ack/nack."""

    def __init__(self, body: bytes, headers: Optional[Dict[str, Any]] = None):
        self.body = body
        self.headers = headers or {}
        self.acked = False
        self.nacked = False
        self.requeued = False

    @classmethod
    def of(cls, event_type: str, data: Any = None, headers: Optional[Dict[str, Any]] = None) -> "FakeMessage":
        return cls(orjson.dumps({"type": event_type, "data": data}), headers)

    async def ack(self) -> None:
        self.acked = True

    async def nack(self, requeue: bool = True) -> None:
        self.nacked = True
        self.requeued = requeue

    @property
    def settled(self) -> bool:
        return self.acked or self.nacked


class FakeBroker:
    """In-memory BrokerClient: records declares, publishes and consumer callbacks."""

    def __init__(self, *, queue_name: str = "agent_communication", fail_connect: Optional[Exception] = None):
        self.queue_name = queue_name
        self.fail_connect = fail_connect
        self.connected = False
        self.declared: List[str] = []
        self.published: List[Envelope] = []
        self.raw: List[Dict[str, Any]] = []
        self.callback = None
        self.cancelled = False
        self.closed = False

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def connect(self) -> None:
        if self.fail_connect is not None:
            raise self.fail_connect
        self.connected = True

    async def declare_queue(self, name: Optional[str] = None, *, durable: bool = True):
        self.declared.append(name or self.queue_name)

    async def publish_event(self, event_type, data: Any = None) -> None:
        self.published.append(Envelope.of(event_type, data))

    async def publish_raw(self, body: bytes, *, queue_name: str, headers=None) -> None:
        self.raw.append({"body": body, "queue": queue_name, "headers": dict(headers or {})})

    async def consume(self, callback) -> str:
        self.callback = callback
        return "ctag-1"

    async def cancel(self) -> None:
        self.cancelled = True

    async def close(self) -> None:
        self.closed = True
        self.connected = False

    def types(self) -> List[str]:
        return [e.type for e in self.published]


class RecordingPublisher:
    def __init__(self):
        self.published: List[Envelope] = []

    async def publish_event(self, event_type, data: Any = None) -> None:
        self.published.append(Envelope.of(event_type, data))

    def of_type(self, event_type) -> List[Envelope]:
        name = event_name(event_type)
        return [e for e in self.published if e.type == name]


class RecordingMetrics:
    def __init__(self):
        self.sent: List[tuple] = []

    def send(self, metric: str, value: float, tags=None) -> None:
        self.sent.append((metric, value, list(tags or [])))

    def names(self) -> List[str]:
        return [m for m, _, _ in self.sent]

    def close(self) -> None:
        pass


@pytest.fixture
def db():
    return AsyncMongoMockClient()[f"consulting_agents_{uuid.uuid4().hex}"]


@pytest.fixture
def store(db) -> Store:
    return Store.from_db(db)


@pytest.fixture
def metrics() -> RecordingMetrics:
    return RecordingMetrics()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def broker() -> FakeBroker:
    return FakeBroker()
