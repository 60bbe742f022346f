"""Pydantic models describing live feed payloads."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class NotificationMarkReadRequest(BaseModel):
    """Payload used to mark a batch of notifications as read."""

    ids: list[str] = Field(..., min_length=1, description="Notification identifiers")

    def unique_ids(self) -> list[str]:
        """Return the list of identifiers without duplicates preserving order."""

        unique: list[str] = []
        seen: set[str] = set()
        for notification_id in self.ids:
            if notification_id in seen:
                continue
            seen.add(notification_id)
            unique.append(notification_id)
        return unique


class NotificationActorRead(BaseModel):
    display_name: str
    avatar_ref: str | None = None


class NotificationTargetRead(BaseModel):
    entity_type: str
    entity_id: str
    url: str | None = None


class NotificationRead(BaseModel):
    """Representation of a notification delivered to the client."""

    id: str
    kind: str
    title: str
    message: str
    timestamp: datetime
    target: NotificationTargetRead | None = None
    actor: NotificationActorRead | None = None
    is_read: bool = False


class FeedSnapshotRead(BaseModel):
    """State of one live feed as shown by the updates panel."""

    scope: str
    notifications: list[NotificationRead] = Field(default_factory=list)
    unread_count: int = Field(ge=0)
    badge: str | None = None
    is_connected: bool
    error: str | None = None
    expanded: bool = False
    sound_enabled: bool = False


__all__ = [
    "FeedSnapshotRead",
    "NotificationActorRead",
    "NotificationMarkReadRequest",
    "NotificationRead",
    "NotificationTargetRead",
]
