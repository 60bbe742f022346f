"""Domain entity representing a user-facing live notification."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class NotificationKind(str, Enum):
    """Categories of live notifications shown in the feed."""

    NEW_POST = "new_post"
    UPDATED_POST = "updated_post"
    NEW_REPLY = "new_reply"
    VOTE = "vote"


@dataclass(frozen=True)
class NotificationActor:
    """User who caused the change, when the backend includes it."""

    display_name: str
    avatar_ref: str | None = None


@dataclass(frozen=True)
class NotificationTarget:
    """Navigable reference used by the feed "view" action."""

    entity_type: str
    entity_id: str
    url: str | None = None


@dataclass
class NotificationRecord:
    """Information message derived from a single change event.

    ``is_read`` is owned by the notification buffer; other components only
    read it.
    """

    id: str
    kind: NotificationKind
    title: str
    message: str
    timestamp: datetime
    target: NotificationTarget | None = None
    actor: NotificationActor | None = None
    is_read: bool = False


__all__ = [
    "NotificationActor",
    "NotificationKind",
    "NotificationRecord",
    "NotificationTarget",
]
