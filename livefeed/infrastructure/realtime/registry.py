"""Reference-counted mapping of logical scopes onto transport channels."""

from __future__ import annotations

import itertools
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Iterator, Mapping

from livefeed.domain.entities import ChangeEvent, EntityType, ScopeKey, ScopeKind

from .messages import parse_change_message
from .transport import ChannelHandle, Disposer, TransportConnection

logger = logging.getLogger(__name__)

ChangeSink = Callable[[ChangeEvent[Any]], Any]


@dataclass(eq=False)
class Subscription:
    """Registry entry for one scope.

    ``channel_handle`` belongs to this entry alone. Each lease is one consumer
    reference; ``ref_count`` is the number of leases still held.
    """

    scope_key: ScopeKey
    channel_handle: ChannelHandle | None = None
    leases: dict[int, ChangeSink] = field(default_factory=dict)

    @property
    def ref_count(self) -> int:
        return len(self.leases)

    def sinks(self) -> list[ChangeSink]:
        """Return the distinct sinks attached to this scope in lease order."""

        unique: list[ChangeSink] = []
        for sink in self.leases.values():
            if not any(sink is known or sink == known for known in unique):
                unique.append(sink)
        return unique


class SubscriptionRegistry:
    """Multiplex consumer interest onto one transport channel per scope.

    The first :meth:`subscribe` for a scope opens its channel; the disposer of
    the last lease closes it. Entries survive connection drops and are
    resubscribed by :meth:`resubscribe_all` when the transport reconnects.
    """

    def __init__(self, transport: TransportConnection, default_sink: ChangeSink) -> None:
        self._transport = transport
        self._default_sink = default_sink
        self._entries: dict[ScopeKey, Subscription] = {}
        self._tokens = itertools.count(1)
        self._detach_transport = transport.on_connected(self.resubscribe_all)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, scope_key: object) -> bool:
        return scope_key in self._entries

    def scopes(self) -> list[ScopeKey]:
        return list(self._entries)

    def ref_count(self, scope_key: ScopeKey) -> int:
        entry = self._entries.get(scope_key)
        return 0 if entry is None else entry.ref_count

    def subscribe(self, scope_key: ScopeKey, sink: ChangeSink | None = None) -> Disposer:
        """Take a lease on ``scope_key`` and return the function releasing it.

        ``sink`` receives the scope's events; it defaults to the shared
        dispatcher. A sink attached through several leases is still called
        once per event.
        """

        if not isinstance(scope_key, ScopeKey):
            raise TypeError("subscribe() expects a ScopeKey")

        entry = self._entries.get(scope_key)
        if entry is None:
            entry = Subscription(scope_key=scope_key)
            self._entries[scope_key] = entry
            entry.channel_handle = self._open_channel(entry)
            logger.debug("Opened channel for %s", scope_key)

        token = next(self._tokens)
        entry.leases[token] = sink if sink is not None else self._default_sink
        return partial(self._release, entry, token)

    @contextmanager
    def acquire(
        self, scope_key: ScopeKey, sink: ChangeSink | None = None
    ) -> Iterator[ScopeKey]:
        """Hold a lease on ``scope_key`` for the duration of the ``with`` block."""

        release = self.subscribe(scope_key, sink)
        try:
            yield scope_key
        finally:
            release()

    def resubscribe_all(self) -> None:
        """Open a fresh channel for every live entry."""

        for entry in list(self._entries.values()):
            handle = entry.channel_handle
            if handle is not None and handle.is_open:
                self._transport.close_channel(handle)
            entry.channel_handle = self._open_channel(entry)
        if self._entries:
            logger.info("Resubscribed %d realtime scope(s)", len(self._entries))

    def release_all(self) -> None:
        """Close every channel and forget all leases."""

        entries = list(self._entries.values())
        self._entries.clear()
        for entry in entries:
            entry.leases.clear()
            self._close_channel(entry)

    def detach(self) -> None:
        """Stop listening to transport reconnects."""

        self._detach_transport()

    def _open_channel(self, entry: Subscription) -> ChannelHandle:
        return self._transport.open_channel(
            entry.scope_key.topic, partial(self._deliver, entry)
        )

    def _close_channel(self, entry: Subscription) -> None:
        handle, entry.channel_handle = entry.channel_handle, None
        if handle is not None:
            self._transport.close_channel(handle)

    def _release(self, entry: Subscription, token: int) -> None:
        if entry.leases.pop(token, None) is None:
            return
        if entry.leases:
            return
        if self._entries.get(entry.scope_key) is entry:
            del self._entries[entry.scope_key]
        self._close_channel(entry)
        logger.debug("Closed channel for %s", entry.scope_key)

    def _deliver(self, entry: Subscription, payload: Mapping[str, Any]) -> None:
        if self._entries.get(entry.scope_key) is not entry:
            return
        event = parse_change_message(payload)
        if event is None:
            return
        if not event_in_scope(entry.scope_key, event):
            logger.debug(
                "Dropping %s %s outside %s",
                event.entity_type.value,
                event.mutation_kind.value,
                entry.scope_key,
            )
            return
        for sink in entry.sinks():
            try:
                sink(event)
            except Exception:
                logger.exception(
                    "Change sink %r failed for %s on %s",
                    sink,
                    event.entity_type.value,
                    entry.scope_key,
                )
                continue


def event_in_scope(scope_key: ScopeKey, event: ChangeEvent[Any]) -> bool:
    """Return whether ``event`` belongs to ``scope_key``.

    Thread scopes match on the post the change belongs to; category scopes on
    the category of that post. Changes whose thread or category cannot be
    resolved from the payload are outside every non-global scope.
    """

    if scope_key.kind is ScopeKind.GLOBAL:
        return True
    if scope_key.kind is ScopeKind.THREAD:
        candidates = _thread_ids(event)
    else:
        candidates = _category_ids(event)
    return scope_key.identifier in candidates


def _thread_ids(event: ChangeEvent[Any]) -> set[str]:
    found: set[str] = set()
    for record in _records(event):
        if event.entity_type is EntityType.POST:
            _collect(found, record.get("id"))
        elif event.entity_type is EntityType.VOTE:
            if str(record.get("item_type", "")).lower() == "post":
                _collect(found, record.get("item_id"))
        _collect(found, record.get("post_id"), record.get("thread_id"))
        post = record.get("post")
        if isinstance(post, Mapping):
            _collect(found, post.get("id"))
    return found


def _category_ids(event: ChangeEvent[Any]) -> set[str]:
    found: set[str] = set()
    for record in _records(event):
        _collect(found, record.get("category_id"))
        post = record.get("post")
        if isinstance(post, Mapping):
            _collect(found, post.get("category_id"))
    return found


def _records(event: ChangeEvent[Any]) -> list[Mapping[str, Any]]:
    records = [event.record]
    if event.previous_record:
        records.append(event.previous_record)
    return [record for record in records if isinstance(record, Mapping)]


def _collect(found: set[str], *values: Any) -> None:
    for value in values:
        if value is not None and value != "":
            found.add(str(value))


__all__ = ["ChangeSink", "Subscription", "SubscriptionRegistry", "event_in_scope"]
