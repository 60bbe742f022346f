"""Tests for routing change events to per-entity handlers."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from livefeed.domain.entities import ChangeEvent, EntityType, MutationKind
from livefeed.infrastructure.realtime import ChangeDispatcher


def _change(entity_type: EntityType, **record) -> ChangeEvent:
    return ChangeEvent(
        mutation_kind=MutationKind.INSERTED,
        entity_type=entity_type,
        record=record,
        received_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
    )


def test_handlers_only_receive_their_entity_type():
    dispatcher = ChangeDispatcher()
    posts: list[ChangeEvent] = []
    replies: list[ChangeEvent] = []
    dispatcher.on_post_change(posts.append)
    dispatcher.on_reply_change(replies.append)

    assert dispatcher.dispatch(_change(EntityType.REPLY, id="r1")) == 1
    assert dispatcher.dispatch(_change(EntityType.VOTE, id="v1")) == 0

    assert posts == []
    assert [event.record["id"] for event in replies] == ["r1"]


def test_handlers_run_in_registration_order():
    dispatcher = ChangeDispatcher()
    order: list[str] = []
    dispatcher.on_vote_change(lambda event: order.append("first"))
    dispatcher.on_vote_change(lambda event: order.append("second"))

    dispatcher.dispatch(_change(EntityType.VOTE, id="v1"))

    assert order == ["first", "second"]


def test_failing_handler_does_not_stop_the_others(caplog):
    dispatcher = ChangeDispatcher()
    seen: list[ChangeEvent] = []

    def broken(event: ChangeEvent) -> None:
        raise KeyError("author")

    dispatcher.on_post_change(broken)
    dispatcher.on_post_change(seen.append)

    with caplog.at_level(logging.ERROR):
        delivered = dispatcher.dispatch(_change(EntityType.POST, id="1"))

    assert delivered == 1
    assert len(seen) == 1
    assert "Change handler" in caplog.text


def test_disposer_removes_only_its_registration():
    dispatcher = ChangeDispatcher()
    calls: list[ChangeEvent] = []
    first = dispatcher.on_post_change(calls.append)
    dispatcher.on_post_change(calls.append)

    first()
    first()
    dispatcher.dispatch(_change(EntityType.POST, id="1"))

    assert len(calls) == 1
    assert dispatcher.handler_count(EntityType.POST) == 1


def test_handler_count_and_clear():
    dispatcher = ChangeDispatcher()
    dispatcher.on_post_change(lambda event: None)
    dispatcher.on_reply_change(lambda event: None)
    dispatcher.on_vote_change(lambda event: None)

    assert dispatcher.handler_count() == 3
    dispatcher.clear()
    assert dispatcher.handler_count() == 0


def test_registering_a_non_callable_fails():
    with pytest.raises(TypeError):
        ChangeDispatcher().on_reply_change("not a handler")


def test_dispatch_message_drops_invalid_payloads(make_message):
    dispatcher = ChangeDispatcher()
    replies: list[ChangeEvent] = []
    dispatcher.on_reply_change(replies.append)

    assert dispatcher.dispatch_message(make_message("reply", id="r1", post_id="9")) == 1
    assert dispatcher.dispatch_message({"entityType": "reply", "record": {"id": "r2"}}) == 0
    assert dispatcher.dispatch_message("not a mapping") == 0

    assert len(replies) == 1
    assert replies[0].mutation_kind is MutationKind.INSERTED
