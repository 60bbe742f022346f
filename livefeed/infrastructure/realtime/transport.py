"""Single logical connection to the event-stream backend."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine, Mapping

from .backend import ChannelBackend
from .errors import ChannelConflictError, ConnectionTimeout

logger = logging.getLogger(__name__)

MessageCallback = Callable[[Mapping[str, Any]], None]
StatusListener = Callable[["ConnectionStatus"], None]
Disposer = Callable[[], None]


@dataclass(frozen=True)
class ConnectionStatus:
    """Observable connectivity state."""

    is_connected: bool
    error: str | None = None


@dataclass(eq=False)
class ChannelHandle:
    """Transport-level channel for one topic.

    Handles are owned by the subscription registry. A handle becomes stale when
    the connection drops or a new connection is established; stale handles no
    longer receive frames.
    """

    topic: str
    on_message: MessageCallback = field(repr=False)
    generation: int
    closed: bool = False

    @property
    def is_open(self) -> bool:
        return not self.closed

    def deliver(self, payload: Mapping[str, Any]) -> None:
        if self.closed:
            return
        self.on_message(payload)


class TransportConnection:
    """Maintain exactly one connection regardless of subscribed scopes.

    ``connect`` never raises for connection problems; they are recorded in
    :attr:`error` and the connection stays down until ``connect`` is called
    again. Every successful connect starts a new channel generation and calls
    the ``on_connected`` listeners so the registry can resubscribe its scopes.
    """

    def __init__(self, backend: ChannelBackend, *, connect_timeout: float = 10.0) -> None:
        if connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")
        self._backend = backend
        self._connect_timeout = connect_timeout
        self._connected = False
        self._error: str | None = None
        self._attempt: asyncio.Task[bool] | None = None
        self._handshake_drop: str | None = None
        self._generation = 0
        self._channels: dict[str, ChannelHandle] = {}
        self._status_listeners: list[StatusListener] = []
        self._connected_listeners: list[Callable[[], None]] = []
        self._pending: set[asyncio.Task[Any]] = set()
        self.channel_opens = 0
        self.channel_closes = 0

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def status(self) -> ConnectionStatus:
        return ConnectionStatus(is_connected=self._connected, error=self._error)

    @property
    def is_connecting(self) -> bool:
        return self._attempt is not None and not self._attempt.done()

    def open_topics(self) -> list[str]:
        """Return the topics with a live channel in the current generation."""

        return [topic for topic, handle in self._channels.items() if handle.is_open]

    def on_status_change(self, listener: StatusListener) -> Disposer:
        """Call ``listener`` whenever ``is_connected`` or ``error`` changes."""

        return _register(self._status_listeners, listener)

    def on_connected(self, listener: Callable[[], None]) -> Disposer:
        """Call ``listener`` after every successful (re)connect."""

        return _register(self._connected_listeners, listener)

    async def connect(self) -> bool:
        """Connect to the backend, joining any attempt already in flight."""

        if self._connected:
            return True
        attempt = self._attempt
        if attempt is None or attempt.done():
            attempt = asyncio.get_running_loop().create_task(self._connect_once())
            self._attempt = attempt
        try:
            return await asyncio.shield(attempt)
        except asyncio.CancelledError:
            # Attempt cancelled by disconnect(); the caller itself was not.
            if attempt.cancelled():
                return False
            raise
        finally:
            if attempt.done() and self._attempt is attempt:
                self._attempt = None

    async def disconnect(self) -> None:
        """Close the backend connection and invalidate every channel."""

        attempt, self._attempt = self._attempt, None
        if attempt is not None and not attempt.done():
            attempt.cancel()
        self._invalidate_channels()
        await self.drain()
        try:
            await self._backend.close()
        except Exception:
            logger.debug("Error while closing the realtime backend", exc_info=True)
        self._set_status(False, self._error)

    def open_channel(self, topic: str, on_message: MessageCallback) -> ChannelHandle:
        """Open the channel for ``topic``; joined now or on the next connect."""

        existing = self._channels.get(topic)
        if existing is not None and existing.is_open:
            raise ChannelConflictError(f"A live channel for {topic!r} already exists")

        handle = ChannelHandle(topic=topic, on_message=on_message, generation=self._generation)
        self._channels[topic] = handle
        self.channel_opens += 1
        if self._connected:
            self._send(self._backend.join(topic), f"join {topic}")
        return handle

    def close_channel(self, handle: ChannelHandle) -> None:
        """Close ``handle``; sends a leave frame only for live handles."""

        if handle.closed:
            return
        handle.closed = True
        self.channel_closes += 1
        if self._channels.get(handle.topic) is not handle:
            return
        del self._channels[handle.topic]
        if self._connected and handle.generation == self._generation:
            self._send(self._backend.leave(handle.topic), f"leave {handle.topic}")

    async def drain(self) -> None:
        """Wait for outstanding join/leave frames to be sent."""

        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _connect_once(self) -> bool:
        self._handshake_drop = None
        try:
            await asyncio.wait_for(
                self._backend.open(self._receive, self._handle_drop),
                timeout=self._connect_timeout,
            )
        except asyncio.TimeoutError:
            error = ConnectionTimeout(
                f"Timed out after {self._connect_timeout:g}s connecting to the realtime backend"
            )
            await self._abandon_backend()
            self._fail(str(error))
            return False
        except Exception as exc:
            await self._abandon_backend()
            self._fail(str(exc) or exc.__class__.__name__)
            return False

        if self._handshake_drop is not None:
            await self._abandon_backend()
            self._fail(self._handshake_drop)
            return False

        self._generation += 1
        self._invalidate_channels()
        self._set_status(True, None)
        logger.info("Connected to the realtime backend")
        for listener in list(self._connected_listeners):
            try:
                listener()
            except Exception:
                logger.exception("Realtime reconnect listener failed")
        return True

    async def _abandon_backend(self) -> None:
        try:
            await self._backend.close()
        except Exception:
            logger.debug("Error while closing a failed realtime backend", exc_info=True)

    def _fail(self, message: str) -> None:
        logger.warning("Realtime connection failed: %s", message)
        self._set_status(False, message)

    def _receive(self, topic: str, payload: Mapping[str, Any]) -> None:
        handle = self._channels.get(topic)
        if handle is None or not handle.is_open:
            logger.debug("Dropping frame for unsubscribed topic %s", topic)
            return
        handle.deliver(payload)

    def _handle_drop(self, reason: str) -> None:
        if not self._connected:
            if self.is_connecting:
                self._handshake_drop = reason or "Connection to the realtime backend was lost"
            return
        self._invalidate_channels()
        self._set_status(False, reason or "Connection to the realtime backend was lost")

    def _invalidate_channels(self) -> None:
        for handle in self._channels.values():
            handle.closed = True
        self._channels.clear()

    def _set_status(self, connected: bool, error: str | None) -> None:
        previous = self.status
        self._connected = connected
        self._error = error
        current = self.status
        if current == previous:
            return
        for listener in list(self._status_listeners):
            try:
                listener(current)
            except Exception:
                logger.exception("Realtime status listener failed")

    def _send(self, command: Coroutine[Any, Any, None], description: str) -> None:
        task = asyncio.get_running_loop().create_task(command)
        self._pending.add(task)

        def _done(finished: asyncio.Task[Any]) -> None:
            self._pending.discard(finished)
            if finished.cancelled():
                return
            exc = finished.exception()
            if exc is not None:
                logger.warning("Realtime %s failed: %s", description, exc)

        task.add_done_callback(_done)


def _register(listeners: list, listener: Callable[..., None]) -> Disposer:
    listeners.append(listener)

    def dispose() -> None:
        try:
            listeners.remove(listener)
        except ValueError:
            return

    return dispose


__all__ = ["ChannelHandle", "ConnectionStatus", "Disposer", "TransportConnection"]
