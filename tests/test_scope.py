"""Tests for scope keys and their topic names."""

from __future__ import annotations

import pytest

from livefeed.domain.entities import ScopeKey, ScopeKind


def test_keys_are_value_objects():
    assert ScopeKey.thread(42) == ScopeKey.thread("42")
    assert hash(ScopeKey.category(" 7 ")) == hash(ScopeKey.category("7"))
    assert ScopeKey.thread("7") != ScopeKey.category("7")


@pytest.mark.parametrize(
    ("scope", "topic"),
    [
        (ScopeKey.thread("42"), "thread:42"),
        (ScopeKey.category("gear"), "category:gear"),
        (ScopeKey.everything(), "global"),
    ],
)
def test_topic_names(scope, topic):
    assert scope.topic == topic
    assert str(scope) == topic


def test_identifier_rules():
    with pytest.raises(ValueError):
        ScopeKey(ScopeKind.GLOBAL, "1")
    with pytest.raises(ValueError):
        ScopeKey.thread("  ")
