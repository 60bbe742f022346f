"""Live feed consumer tying a scope subscription to a notification buffer."""

from __future__ import annotations

import logging
from contextlib import ExitStack
from typing import Any, Callable

from livefeed.domain.entities import ChangeEvent, ScopeKey
from livefeed.infrastructure.notifications import serialize_notification
from livefeed.infrastructure.realtime import (
    ChangeDispatcher,
    NotificationBuffer,
    RealtimeService,
)

from .events import NotificationFactory

logger = logging.getLogger(__name__)

_BADGE_LIMIT = 99


def resolve_scope(thread_id: str | None = None, category_id: str | None = None) -> ScopeKey:
    """Pick the single scope a feed listens to.

    A thread wins over a category; with neither the feed follows everything.
    """

    if thread_id not in (None, ""):
        return ScopeKey.thread(thread_id)
    if category_id not in (None, ""):
        return ScopeKey.category(category_id)
    return ScopeKey.everything()


class LiveFeed:
    """View model behind one live updates panel.

    ``open`` subscribes the feed's scope and registers its change handlers;
    ``close`` releases all of them. Sound and expansion are view preferences:
    the buffer only receives ``sound_enabled`` as an argument to ``add``.
    """

    def __init__(
        self,
        service: RealtimeService,
        *,
        thread_id: str | None = None,
        category_id: str | None = None,
        sound_enabled: bool = False,
        capacity: int | None = None,
        cue: Callable[[], object] | None = None,
    ) -> None:
        self._service = service
        self.scope = resolve_scope(thread_id, category_id)
        if capacity is None:
            capacity = service.settings.notification_buffer_capacity
        self.buffer = NotificationBuffer(capacity, cue=cue)
        self.dispatcher = ChangeDispatcher()
        self.sound_enabled = sound_enabled
        self.expanded = False
        self._factory = NotificationFactory()
        self._stack: ExitStack | None = None

    @property
    def is_open(self) -> bool:
        return self._stack is not None

    def open(self) -> "LiveFeed":
        if self._stack is not None:
            return self
        stack = ExitStack()
        try:
            stack.callback(self.dispatcher.on_post_change(self._on_change))
            stack.callback(self.dispatcher.on_reply_change(self._on_change))
            stack.callback(self.dispatcher.on_vote_change(self._on_change))
            stack.callback(self._service.subscribe(self.scope, self.dispatcher.dispatch))
        except BaseException:
            stack.close()
            raise
        self._stack = stack
        logger.debug("Live feed opened for %s", self.scope)
        return self

    def close(self) -> None:
        stack, self._stack = self._stack, None
        if stack is not None:
            stack.close()
            logger.debug("Live feed closed for %s", self.scope)

    def __enter__(self) -> "LiveFeed":
        return self.open()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def mark_read(self, record_id: str) -> bool:
        return self.buffer.mark_read(record_id)

    def mark_all_read(self) -> int:
        return self.buffer.mark_all_read()

    def clear(self) -> None:
        self.buffer.clear()

    def set_sound_enabled(self, enabled: bool) -> None:
        self.sound_enabled = bool(enabled)

    def toggle_sound(self) -> bool:
        self.sound_enabled = not self.sound_enabled
        return self.sound_enabled

    def set_expanded(self, expanded: bool) -> None:
        self.expanded = bool(expanded)

    def toggle_expanded(self) -> bool:
        self.expanded = not self.expanded
        return self.expanded

    async def retry(self) -> bool:
        """Reconnect the shared transport after a failure."""

        if not self._service.is_started:
            return False
        return await self._service.connect()

    def snapshot(self) -> dict[str, Any]:
        """Return the feed state in a JSON-ready form."""

        status = self._service.status()
        unread = self.buffer.unread_count
        return {
            "scope": self.scope.topic,
            "notifications": [serialize_notification(record) for record in self.buffer],
            "unread_count": unread,
            "badge": unread_badge(unread),
            "is_connected": status["is_connected"],
            "error": status["error"],
            "expanded": self.expanded,
            "sound_enabled": self.sound_enabled,
        }

    def _on_change(self, event: ChangeEvent[Any]) -> None:
        record = self._factory.build(event)
        if record is None:
            return
        self.buffer.add(record, sound_enabled=self.sound_enabled)


def unread_badge(count: int) -> str | None:
    """Return the badge label for ``count`` unread notifications."""

    if count <= 0:
        return None
    if count > _BADGE_LIMIT:
        return f"{_BADGE_LIMIT}+"
    return str(count)


__all__ = ["LiveFeed", "resolve_scope", "unread_badge"]
