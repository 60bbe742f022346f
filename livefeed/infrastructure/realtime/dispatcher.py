"""Typed fan-out of change events to per-entity handler lists."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from livefeed.domain.entities import ChangeEvent, EntityType

from .messages import parse_change_message
from .transport import Disposer

logger = logging.getLogger(__name__)

ChangeHandler = Callable[[ChangeEvent[Any]], None]


class _Registration:
    """Wraps a handler so the same callable can be registered twice."""

    __slots__ = ("handler",)

    def __init__(self, handler: ChangeHandler) -> None:
        self.handler = handler


class ChangeDispatcher:
    """Route each :class:`ChangeEvent` to the handlers of its entity type.

    Handlers run synchronously, in registration order, for every matching
    event. A failing handler is logged and skipped; the remaining handlers
    still receive the event.
    """

    def __init__(self) -> None:
        self._handlers: dict[EntityType, list[_Registration]] = {
            entity_type: [] for entity_type in EntityType
        }

    def on_post_change(self, handler: ChangeHandler) -> Disposer:
        return self._register(EntityType.POST, handler)

    def on_reply_change(self, handler: ChangeHandler) -> Disposer:
        return self._register(EntityType.REPLY, handler)

    def on_vote_change(self, handler: ChangeHandler) -> Disposer:
        return self._register(EntityType.VOTE, handler)

    def handler_count(self, entity_type: EntityType | None = None) -> int:
        if entity_type is None:
            return sum(len(handlers) for handlers in self._handlers.values())
        return len(self._handlers.get(entity_type, ()))

    def clear(self) -> None:
        for handlers in self._handlers.values():
            handlers.clear()

    def dispatch(self, event: ChangeEvent[Any]) -> int:
        """Deliver ``event`` and return how many handlers completed."""

        registrations = self._handlers.get(event.entity_type)
        if registrations is None:
            logger.debug("Dropping change for unknown entity type %r", event.entity_type)
            return 0

        delivered = 0
        for registration in list(registrations):
            try:
                registration.handler(event)
            except Exception:
                logger.exception(
                    "Change handler %r failed for %s %s",
                    registration.handler,
                    event.entity_type.value,
                    event.mutation_kind.value,
                )
                continue
            delivered += 1
        return delivered

    def dispatch_message(self, message: Any, received_at: datetime | None = None) -> int:
        """Parse a raw wire message and dispatch it; invalid messages are dropped."""

        event = parse_change_message(message, received_at)
        if event is None:
            return 0
        return self.dispatch(event)

    def _register(self, entity_type: EntityType, handler: ChangeHandler) -> Disposer:
        if not callable(handler):
            raise TypeError("Change handlers must be callable")
        registration = _Registration(handler)
        handlers = self._handlers[entity_type]
        handlers.append(registration)

        def dispose() -> None:
            try:
                handlers.remove(registration)
            except ValueError:
                return

        return dispose


__all__ = ["ChangeDispatcher", "ChangeHandler"]
