"""Process-wide realtime service wiring transport, registry and dispatcher."""

from __future__ import annotations

import logging
from typing import Any, Callable

from livefeed.config import Settings, get_settings
from livefeed.domain.entities import ScopeKey

from .backend import ChannelBackend, build_backend
from .dispatcher import ChangeDispatcher, ChangeHandler
from .errors import ServiceNotStarted
from .registry import ChangeSink, SubscriptionRegistry
from .transport import Disposer, TransportConnection

logger = logging.getLogger(__name__)

BackendFactory = Callable[[Settings], ChannelBackend]


def _default_backend_factory(settings: Settings) -> ChannelBackend:
    return build_backend(settings.realtime_url, api_key=settings.realtime_api_key)


class RealtimeService:
    """Own the single transport connection shared by every live feed.

    Nothing is connected until :meth:`start` runs; :meth:`stop` releases every
    channel and closes the connection. Consumers reach the registry and the
    shared dispatcher through this object only.
    """

    def __init__(self, backend_factory: BackendFactory | None = None) -> None:
        self._backend_factory = backend_factory or _default_backend_factory
        self._settings: Settings | None = None
        self._transport: TransportConnection | None = None
        self._registry: SubscriptionRegistry | None = None
        self._dispatcher: ChangeDispatcher | None = None

    @property
    def is_started(self) -> bool:
        return self._transport is not None

    @property
    def settings(self) -> Settings:
        return self._require(self._settings)

    @property
    def transport(self) -> TransportConnection:
        return self._require(self._transport)

    @property
    def registry(self) -> SubscriptionRegistry:
        return self._require(self._registry)

    @property
    def dispatcher(self) -> ChangeDispatcher:
        return self._require(self._dispatcher)

    async def start(self, settings: Settings | None = None, *, connect: bool = True) -> None:
        """Build the transport stack and, by default, attempt the first connect."""

        if self.is_started:
            return
        settings = settings or get_settings()
        backend = self._backend_factory(settings)
        transport = TransportConnection(
            backend, connect_timeout=settings.connect_timeout_seconds
        )
        dispatcher = ChangeDispatcher()
        self._settings = settings
        self._transport = transport
        self._dispatcher = dispatcher
        self._registry = SubscriptionRegistry(transport, dispatcher.dispatch)
        logger.info("Realtime service started")
        if connect:
            await transport.connect()

    async def stop(self) -> None:
        """Release every subscription and close the connection."""

        if not self.is_started:
            return
        registry, transport, dispatcher = self.registry, self.transport, self.dispatcher
        registry.release_all()
        registry.detach()
        await transport.disconnect()
        dispatcher.clear()
        self._registry = None
        self._transport = None
        self._dispatcher = None
        self._settings = None
        logger.info("Realtime service stopped")

    async def connect(self) -> bool:
        """Manually (re)connect; used by retry affordances."""

        return await self.transport.connect()

    def subscribe(self, scope_key: ScopeKey, sink: ChangeSink | None = None) -> Disposer:
        return self.registry.subscribe(scope_key, sink)

    def on_post_change(self, handler: ChangeHandler) -> Disposer:
        return self.dispatcher.on_post_change(handler)

    def on_reply_change(self, handler: ChangeHandler) -> Disposer:
        return self.dispatcher.on_reply_change(handler)

    def on_vote_change(self, handler: ChangeHandler) -> Disposer:
        return self.dispatcher.on_vote_change(handler)

    def status(self) -> dict[str, Any]:
        """Return connectivity details for status endpoints."""

        if not self.is_started:
            return {
                "is_connected": False,
                "is_connecting": False,
                "error": "Realtime service is not running",
                "scopes": [],
            }
        transport = self.transport
        return {
            "is_connected": transport.is_connected,
            "is_connecting": transport.is_connecting,
            "error": transport.error,
            "scopes": [
                {"topic": scope.topic, "ref_count": self.registry.ref_count(scope)}
                for scope in self.registry.scopes()
            ],
        }

    @staticmethod
    def _require(value: Any) -> Any:
        if value is None:
            raise ServiceNotStarted("Realtime service has not been started")
        return value


realtime_service = RealtimeService()


__all__ = ["BackendFactory", "RealtimeService", "realtime_service"]
