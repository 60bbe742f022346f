"""Bounded notification feed with read tracking."""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Deque, Iterator

from livefeed.domain.entities import NotificationRecord

from .transport import Disposer

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50

BufferListener = Callable[["NotificationBuffer", str], None]


class NotificationBuffer:
    """Ordered notification records, newest first.

    The list is only changed through the methods below so that
    ``unread_count`` always equals the number of unread records held,
    including after tail eviction.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        *,
        cue: Callable[[], object] | None = None,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._cue = cue
        self._records: Deque[NotificationRecord] = deque()
        self._index: dict[str, NotificationRecord] = {}
        self._unread = 0
        self._listeners: list[BufferListener] = []

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[NotificationRecord]:
        return iter(tuple(self._records))

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._index

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def unread_count(self) -> int:
        return self._unread

    @property
    def records(self) -> tuple[NotificationRecord, ...]:
        return tuple(self._records)

    def get(self, record_id: str) -> NotificationRecord | None:
        return self._index.get(record_id)

    def on_change(self, listener: BufferListener) -> Disposer:
        """Call ``listener(buffer, operation)`` after every change."""

        self._listeners.append(listener)

        def dispose() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                return

        return dispose

    def add(self, record: NotificationRecord, *, sound_enabled: bool = False) -> bool:
        """Prepend ``record``, evicting the oldest entries beyond capacity.

        Returns ``False`` when a record with the same id is already held.
        """

        if record.id in self._index:
            logger.debug("Ignoring duplicate notification %s", record.id)
            return False

        self._records.appendleft(record)
        self._index[record.id] = record
        if not record.is_read:
            self._unread += 1

        while len(self._records) > self._capacity:
            evicted = self._records.pop()
            self._index.pop(evicted.id, None)
            if not evicted.is_read:
                self._unread -= 1

        if sound_enabled:
            self._play_cue()
        self._notify("add")
        return True

    def mark_read(self, record_id: str) -> bool:
        """Mark one record read; returns whether a transition happened."""

        record = self._index.get(record_id)
        if record is None or record.is_read:
            return False
        record.is_read = True
        self._unread -= 1
        self._notify("mark_read")
        return True

    def mark_all_read(self) -> int:
        """Mark every record read and return how many changed."""

        changed = 0
        for record in self._records:
            if not record.is_read:
                record.is_read = True
                changed += 1
        self._unread = 0
        if changed:
            self._notify("mark_all_read")
        return changed

    def clear(self) -> None:
        self._records.clear()
        self._index.clear()
        self._unread = 0
        self._notify("clear")

    def _play_cue(self) -> None:
        if self._cue is None:
            return
        try:
            self._cue()
        except Exception:
            logger.debug("Notification cue failed", exc_info=True)

    def _notify(self, operation: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(self, operation)
            except Exception:
                logger.exception("Notification buffer listener failed on %s", operation)


__all__ = ["DEFAULT_CAPACITY", "BufferListener", "NotificationBuffer"]
