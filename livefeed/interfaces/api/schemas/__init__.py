from .notification import (
    FeedSnapshotRead,
    NotificationActorRead,
    NotificationMarkReadRequest,
    NotificationRead,
    NotificationTargetRead,
)
from .status import ConnectionStatusRead, ScopeStatusRead

__all__ = [
    "FeedSnapshotRead",
    "NotificationActorRead",
    "NotificationMarkReadRequest",
    "NotificationRead",
    "NotificationTargetRead",
    "ConnectionStatusRead",
    "ScopeStatusRead",
]
