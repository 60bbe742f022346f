"""Utility helpers to turn change events into live notifications."""

from __future__ import annotations

import itertools
from typing import Any, Mapping

from livefeed.domain.entities import (
    ChangeEvent,
    EntityType,
    MutationKind,
    NotificationActor,
    NotificationKind,
    NotificationRecord,
    NotificationTarget,
)

_ANONYMOUS = "Someone"


class NotificationFactory:
    """Build :class:`NotificationRecord` instances from dispatched changes.

    Record ids combine the source entity id with a counter owned by the
    factory, so a change delivered twice yields two distinct records.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)

    def build(self, event: ChangeEvent[Any]) -> NotificationRecord | None:
        """Return the record for ``event`` or ``None`` when it is not notable."""

        if event.entity_type is EntityType.POST:
            return self.from_post_change(event)
        if event.entity_type is EntityType.REPLY:
            return self.from_reply_change(event)
        if event.entity_type is EntityType.VOTE:
            return self.from_vote_change(event)
        return None

    def from_post_change(self, event: ChangeEvent[Any]) -> NotificationRecord | None:
        post = event.record
        if event.mutation_kind is MutationKind.INSERTED:
            kind, prefix, title, verb = NotificationKind.NEW_POST, "post", "New Post", "created"
        elif event.mutation_kind is MutationKind.UPDATED:
            kind, prefix, title, verb = (
                NotificationKind.UPDATED_POST,
                "post-update",
                "Post Updated",
                "updated",
            )
        else:
            return None

        post_id = event.entity_id
        return NotificationRecord(
            id=self._next_id(prefix, post_id),
            kind=kind,
            title=title,
            message=f'{_author_name(post)} {verb} "{post.get("title") or "Untitled"}"',
            timestamp=event.received_at,
            target=_post_target(post, post_id),
            actor=_actor(post),
        )

    def from_reply_change(self, event: ChangeEvent[Any]) -> NotificationRecord | None:
        if event.mutation_kind is not MutationKind.INSERTED:
            return None

        reply = event.record
        reply_id = event.entity_id
        post_id = _text(reply.get("post_id"))
        target = None
        if reply_id:
            url = f"/forums/post/{post_id}#reply-{reply_id}" if post_id else None
            target = NotificationTarget(entity_type="reply", entity_id=reply_id, url=url)
        return NotificationRecord(
            id=self._next_id("reply", reply_id),
            kind=NotificationKind.NEW_REPLY,
            title="New Reply",
            message=f"{_author_name(reply)} replied to a post",
            timestamp=event.received_at,
            target=target,
            actor=_actor(reply),
        )

    def from_vote_change(self, event: ChangeEvent[Any]) -> NotificationRecord | None:
        if event.mutation_kind is not MutationKind.INSERTED:
            return None

        vote = event.record
        action = "upvoted" if vote.get("vote_type") == "upvote" else "downvoted"
        item_type = vote.get("item_type") or "post"
        return NotificationRecord(
            id=self._next_id("vote", event.entity_id),
            kind=NotificationKind.VOTE,
            title="New Vote",
            message=f"{_ANONYMOUS} {action} a {item_type}",
            timestamp=event.received_at,
        )

    def _next_id(self, prefix: str, entity_id: str | None) -> str:
        return f"{prefix}-{entity_id or 'unknown'}-{next(self._counter)}"


def _text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _author(record: Mapping[str, Any]) -> Mapping[str, Any] | None:
    author = record.get("author")
    return author if isinstance(author, Mapping) else None


def _author_name(record: Mapping[str, Any]) -> str:
    author = _author(record)
    if author and author.get("username"):
        return str(author["username"])
    return _ANONYMOUS


def _actor(record: Mapping[str, Any]) -> NotificationActor | None:
    author = _author(record)
    if not author or not author.get("username"):
        return None
    return NotificationActor(
        display_name=str(author["username"]),
        avatar_ref=_text(author.get("avatar_url")),
    )


def _post_target(post: Mapping[str, Any], post_id: str | None) -> NotificationTarget | None:
    if not post_id:
        return None
    category_id = _text(post.get("category_id"))
    slug = _text(post.get("slug"))
    url = None
    if category_id:
        url = f"/forums/{category_id}/{post_id}"
        if slug:
            url = f"{url}/{slug}"
    return NotificationTarget(entity_type="post", entity_id=post_id, url=url)


__all__ = ["NotificationFactory"]
