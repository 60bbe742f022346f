"""Exceptions raised by the realtime infrastructure."""

from __future__ import annotations


class RealtimeError(RuntimeError):
    """Base class for realtime transport and registry failures."""


class ConnectionTimeout(RealtimeError):
    """The realtime backend did not complete its handshake in time."""


class ChannelConflictError(RealtimeError):
    """A second live channel was requested for a topic that already has one."""


class ServiceNotStarted(RealtimeError):
    """The realtime service was used before :meth:`RealtimeService.start`."""


__all__ = [
    "ChannelConflictError",
    "ConnectionTimeout",
    "RealtimeError",
    "ServiceNotStarted",
]
