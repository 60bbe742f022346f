"""Tests for reference-counted scope subscriptions."""

from __future__ import annotations

import asyncio

import pytest

from livefeed.domain.entities import ScopeKey
from livefeed.infrastructure.realtime import SubscriptionRegistry, parse_change_message
from livefeed.infrastructure.realtime.registry import event_in_scope

pytestmark = pytest.mark.anyio


@pytest.fixture
def delivered():
    return []


@pytest.fixture
def registry(transport, delivered):
    return SubscriptionRegistry(transport, delivered.append)


async def test_two_views_on_one_thread_share_a_channel(transport, backend, registry):
    await transport.connect()

    release_first = registry.subscribe(ScopeKey.thread("42"))
    release_second = registry.subscribe(ScopeKey.thread("42"))
    assert registry.ref_count(ScopeKey.thread("42")) == 2

    release_first()
    assert ScopeKey.thread("42") in registry
    release_second()
    await transport.drain()

    assert ScopeKey.thread("42") not in registry
    assert transport.channel_opens == 1
    assert transport.channel_closes == 1
    assert backend.joins == ["thread:42"]
    assert backend.leaves == ["thread:42"]


async def test_concurrent_subscribes_open_one_channel(transport, registry):
    await transport.connect()

    async def view() -> None:
        registry.subscribe(ScopeKey.category("7"))

    await asyncio.gather(*(view() for _ in range(5)))

    assert transport.channel_opens == 1
    assert registry.ref_count(ScopeKey.category("7")) == 5


async def test_disposer_is_idempotent(transport, registry):
    await transport.connect()
    keep = registry.subscribe(ScopeKey.thread("1"))
    release = registry.subscribe(ScopeKey.thread("1"))

    release()
    release()

    assert registry.ref_count(ScopeKey.thread("1")) == 1
    assert transport.channel_closes == 0
    keep()
    assert transport.channel_closes == 1


def test_subscribe_rejects_plain_strings(registry):
    with pytest.raises(TypeError):
        registry.subscribe("thread:42")


async def test_events_outside_the_scope_are_dropped(
    transport, backend, registry, delivered, make_message
):
    await transport.connect()
    registry.subscribe(ScopeKey.thread("42"))

    backend.emit("thread:42", make_message("reply", id="r1", post_id="42"))
    backend.emit("thread:42", make_message("reply", id="r2", post_id="43"))
    backend.emit("thread:42", {"mutationKind": "inserted"})

    assert [event.record["id"] for event in delivered] == ["r1"]


async def test_reconnect_resubscribes_every_scope_once(
    transport, backend, registry, delivered, make_message
):
    await transport.connect()
    scopes = [ScopeKey.thread("42"), ScopeKey.category("7"), ScopeKey.everything()]
    for scope in scopes:
        registry.subscribe(scope)
    await transport.drain()

    backend.drop()
    await transport.connect()
    await transport.drain()

    assert sorted(transport.open_topics()) == sorted(scope.topic for scope in scopes)
    assert sorted(backend.joins) == sorted([scope.topic for scope in scopes] * 2)

    backend.emit("global", make_message("post", id="5", category_id="7", title="Hi"))
    assert len(delivered) == 1


async def test_scopes_subscribed_while_disconnected_join_on_connect(
    transport, backend, registry
):
    registry.subscribe(ScopeKey.thread("42"))
    assert backend.joins == []

    await transport.connect()
    await transport.drain()

    assert backend.joins == ["thread:42"]


async def test_shared_sink_receives_each_event_once(transport, backend, make_message):
    await transport.connect()
    shared: list = []
    other: list = []
    registry = SubscriptionRegistry(transport, shared.append)

    registry.subscribe(ScopeKey.everything(), shared.append)
    registry.subscribe(ScopeKey.everything(), shared.append)
    registry.subscribe(ScopeKey.everything(), other.append)

    backend.emit("global", make_message("vote", id="v1", vote_type="upvote"))

    assert len(shared) == 1
    assert len(other) == 1


async def test_acquire_releases_on_exit(transport, registry):
    await transport.connect()

    with registry.acquire(ScopeKey.category("3")) as scope:
        assert registry.ref_count(scope) == 1

    assert len(registry) == 0
    assert transport.channel_closes == 1


async def test_release_all_closes_every_channel(transport, registry):
    await transport.connect()
    release = registry.subscribe(ScopeKey.thread("1"))
    registry.subscribe(ScopeKey.thread("2"))

    registry.release_all()
    release()

    assert registry.scopes() == []
    assert transport.channel_closes == 2
    assert transport.open_topics() == []


def _event(entity: str, **record):
    return parse_change_message({"mutationKind": "inserted", "entityType": entity, "record": record})


@pytest.mark.parametrize(
    ("scope", "event", "expected"),
    [
        (ScopeKey.thread("42"), _event("post", id=42), True),
        (ScopeKey.thread("42"), _event("reply", id="r", post_id="42"), True),
        (ScopeKey.thread("42"), _event("vote", id="v", item_type="post", item_id="42"), True),
        (ScopeKey.thread("42"), _event("vote", id="v", item_type="reply", item_id="42"), False),
        (ScopeKey.thread("42"), _event("reply", id="r", post={"id": "42"}), True),
        (ScopeKey.category("7"), _event("post", id="1", category_id=7), True),
        (ScopeKey.category("7"), _event("reply", id="r", post_id="1"), False),
        (ScopeKey.everything(), _event("reply", id="r"), True),
    ],
)
def test_event_in_scope(scope, event, expected):
    assert event_in_scope(scope, event) is expected


def test_thread_scope_checks_the_previous_record():
    event = parse_change_message(
        {
            "mutationKind": "deleted",
            "entityType": "reply",
            "previousRecord": {"id": "r", "post_id": "42"},
        }
    )
    assert event_in_scope(ScopeKey.thread("42"), event) is True


async def test_failing_sink_does_not_starve_the_others(
    transport, backend, registry, make_message, caplog
):
    await transport.connect()
    received: list = []

    def broken_sink(event) -> None:
        raise RuntimeError("consumer bug")

    registry.subscribe(ScopeKey.everything(), broken_sink)
    registry.subscribe(ScopeKey.everything(), received.append)

    backend.emit("global", make_message("reply", id="r1", post_id="9"))

    assert len(received) == 1
    assert transport.is_connected is True
    assert transport.error is None
    assert "Change sink" in caplog.text
