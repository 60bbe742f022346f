"""Shared fixtures for the realtime core tests."""

from __future__ import annotations

import asyncio
import itertools
from datetime import datetime, timezone
from pathlib import Path
import sys
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from livefeed.config import Settings
from livefeed.domain.entities import NotificationKind, NotificationRecord
from livefeed.infrastructure.realtime import RealtimeService, TransportConnection


class FakeBackend:
    """In-memory stand-in for the event-stream websocket."""

    def __init__(self, *, fail_with: Exception | None = None, hang: bool = False) -> None:
        self.fail_with = fail_with
        self.hang = hang
        self.gate: asyncio.Event | None = None
        self.drop_on_open: str | None = None
        self.opens = 0
        self.closes = 0
        self.joins: list[str] = []
        self.leaves: list[str] = []
        self.connected = False
        self._on_frame = None
        self._on_drop = None

    async def open(self, on_frame, on_drop) -> None:
        self.opens += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.hang:
            await asyncio.Event().wait()
        if self.fail_with is not None:
            raise self.fail_with
        self._on_frame = on_frame
        self._on_drop = on_drop
        self.connected = True
        if self.drop_on_open is not None:
            self.connected = False
            on_drop(self.drop_on_open)

    async def close(self) -> None:
        self.closes += 1
        self.connected = False

    async def join(self, topic: str) -> None:
        self.joins.append(topic)

    async def leave(self, topic: str) -> None:
        self.leaves.append(topic)

    def emit(self, topic: str, payload: dict[str, Any]) -> None:
        assert self._on_frame is not None, "backend was never opened"
        self._on_frame(topic, payload)

    def drop(self, reason: str = "socket closed") -> None:
        assert self._on_drop is not None, "backend was never opened"
        self.connected = False
        self._on_drop(reason)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, realtime_url=None, connect_timeout_seconds=1)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def transport(backend: FakeBackend) -> TransportConnection:
    return TransportConnection(backend, connect_timeout=1)


@pytest.fixture
async def service(backend: FakeBackend, settings: Settings):
    """A started realtime service connected to ``backend``."""

    realtime = RealtimeService(backend_factory=lambda _settings: backend)
    await realtime.start(settings)
    yield realtime
    await realtime.stop()


@pytest.fixture
def make_message():
    """Return a factory for wire-format change messages."""

    def factory(entity: str, mutation: str = "inserted", **record: Any) -> dict[str, Any]:
        message: dict[str, Any] = {
            "mutationKind": mutation,
            "entityType": entity,
            "record": record,
        }
        return message

    return factory


@pytest.fixture
def make_record():
    """Return a factory for unread notification records with unique ids."""

    counter = itertools.count(1)

    def factory(record_id: str | None = None, **overrides: Any) -> NotificationRecord:
        values: dict[str, Any] = {
            "id": record_id or f"post-{next(counter)}",
            "kind": NotificationKind.NEW_POST,
            "title": "New Post",
            "message": 'alice created "Range test"',
            "timestamp": datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        }
        values.update(overrides)
        return NotificationRecord(**values)

    return factory
