"""Websocket fan-out of live feed updates."""

from .manager import FeedConnectionManager, feed_manager
from .publisher import FeedPublisher, feed_publisher, serialize_notification

__all__ = [
    "FeedConnectionManager",
    "feed_manager",
    "FeedPublisher",
    "feed_publisher",
    "serialize_notification",
]
