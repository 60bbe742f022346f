"""Public helpers for building live notification feeds."""

from .events import NotificationFactory
from .feed import LiveFeed, resolve_scope, unread_badge

__all__ = [
    "NotificationFactory",
    "LiveFeed",
    "resolve_scope",
    "unread_badge",
]
