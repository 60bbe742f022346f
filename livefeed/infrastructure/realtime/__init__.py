"""Realtime change-distribution machinery."""

from .backend import (
    ChannelBackend,
    UnconfiguredBackend,
    WebSocketChannelBackend,
    build_backend,
)
from .buffer import DEFAULT_CAPACITY, BufferListener, NotificationBuffer
from .dispatcher import ChangeDispatcher, ChangeHandler
from .errors import (
    ChannelConflictError,
    ConnectionTimeout,
    RealtimeError,
    ServiceNotStarted,
)
from .messages import ChangeMessage, parse_change_message
from .registry import Subscription, SubscriptionRegistry, event_in_scope
from .service import RealtimeService, realtime_service
from .sound import SoundCue
from .transport import ChannelHandle, ConnectionStatus, Disposer, TransportConnection

__all__ = [
    "ChannelBackend",
    "UnconfiguredBackend",
    "WebSocketChannelBackend",
    "build_backend",
    "DEFAULT_CAPACITY",
    "BufferListener",
    "NotificationBuffer",
    "ChangeDispatcher",
    "ChangeHandler",
    "ChannelConflictError",
    "ConnectionTimeout",
    "RealtimeError",
    "ServiceNotStarted",
    "ChangeMessage",
    "parse_change_message",
    "Subscription",
    "SubscriptionRegistry",
    "event_in_scope",
    "RealtimeService",
    "realtime_service",
    "SoundCue",
    "ChannelHandle",
    "ConnectionStatus",
    "Disposer",
    "TransportConnection",
]
