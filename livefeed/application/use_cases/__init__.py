"""Aggregate application use cases."""

from .notifications import LiveFeed, NotificationFactory

__all__ = [
    "LiveFeed",
    "NotificationFactory",
]
