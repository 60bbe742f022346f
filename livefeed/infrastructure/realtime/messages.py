"""Validation of raw change messages delivered by the event stream."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from livefeed.domain.entities import ChangeEvent, EntityType, MutationKind
from livefeed.utils import ensure_app_timezone, now_in_app_timezone

logger = logging.getLogger(__name__)

_MUTATION_ALIASES: dict[str, MutationKind] = {
    "insert": MutationKind.INSERTED,
    "inserted": MutationKind.INSERTED,
    "update": MutationKind.UPDATED,
    "updated": MutationKind.UPDATED,
    "delete": MutationKind.DELETED,
    "deleted": MutationKind.DELETED,
}

_ENTITY_ALIASES: dict[str, EntityType] = {
    "post": EntityType.POST,
    "posts": EntityType.POST,
    "forum_posts": EntityType.POST,
    "reply": EntityType.REPLY,
    "replies": EntityType.REPLY,
    "forum_replies": EntityType.REPLY,
    "vote": EntityType.VOTE,
    "votes": EntityType.VOTE,
    "forum_votes": EntityType.VOTE,
}


class ChangeMessage(BaseModel):
    """Wire shape of a change notification.

    Both the camel-case contract (``mutationKind``/``entityType``) and the
    database-change shape (``type``/``table``/``old_record``) are accepted.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    mutation_kind: MutationKind = Field(
        validation_alias=AliasChoices("mutationKind", "mutation_kind", "type", "eventType")
    )
    entity_type: EntityType = Field(
        validation_alias=AliasChoices("entityType", "entity_type", "table")
    )
    record: dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("record", "new")
    )
    previous_record: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("previousRecord", "previous_record", "old_record", "old"),
    )

    @field_validator("mutation_kind", mode="before")
    @classmethod
    def _normalize_mutation(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _MUTATION_ALIASES.get(value.strip().lower(), value)
        return value

    @field_validator("entity_type", mode="before")
    @classmethod
    def _normalize_entity(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _ENTITY_ALIASES.get(value.strip().lower(), value)
        return value

    @field_validator("previous_record", mode="after")
    @classmethod
    def _empty_previous_is_missing(cls, value: dict[str, Any] | None) -> dict[str, Any] | None:
        return value or None

    @model_validator(mode="after")
    def _require_record(self) -> "ChangeMessage":
        if self.mutation_kind is MutationKind.DELETED:
            if not self.record and not self.previous_record:
                raise ValueError("Deleted changes need a record or a previous record")
        elif not self.record:
            raise ValueError("Inserted and updated changes need a record")
        return self


def parse_change_message(
    message: Any, received_at: datetime | None = None
) -> ChangeEvent[dict[str, Any]] | None:
    """Convert ``message`` into a :class:`ChangeEvent` or ``None`` when invalid.

    ``received_at`` defaults to the current time; timestamps carried by the
    message itself are never trusted.
    """

    if not isinstance(message, Mapping):
        logger.debug("Dropping change message of type %s", type(message).__name__)
        return None
    try:
        parsed = ChangeMessage.model_validate(dict(message))
    except ValidationError as exc:
        logger.debug("Dropping malformed change message: %s", exc.errors(include_url=False))
        return None

    stamped = ensure_app_timezone(received_at) if received_at else now_in_app_timezone()
    return ChangeEvent(
        mutation_kind=parsed.mutation_kind,
        entity_type=parsed.entity_type,
        record=parsed.record,
        previous_record=parsed.previous_record,
        received_at=stamped,
    )


__all__ = ["ChangeMessage", "parse_change_message"]
