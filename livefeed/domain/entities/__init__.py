"""Domain entities exposed by the realtime core."""

from .change_event import ChangeEvent, EntityType, MutationKind
from .notification import (
    NotificationActor,
    NotificationKind,
    NotificationRecord,
    NotificationTarget,
)
from .scope import GLOBAL_TOPIC, ScopeKey, ScopeKind

__all__ = [
    "ChangeEvent",
    "EntityType",
    "MutationKind",
    "NotificationActor",
    "NotificationKind",
    "NotificationRecord",
    "NotificationTarget",
    "GLOBAL_TOPIC",
    "ScopeKey",
    "ScopeKind",
]
