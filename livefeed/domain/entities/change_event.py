"""Domain event describing a single mutation of a streamed backend entity."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Generic, Mapping, TypeVar

RecordT = TypeVar("RecordT", bound=Mapping[str, Any])


class MutationKind(str, Enum):
    """Kind of change reported by the backend."""

    INSERTED = "inserted"
    UPDATED = "updated"
    DELETED = "deleted"


class EntityType(str, Enum):
    """Entities whose changes are streamed to the realtime core."""

    POST = "post"
    REPLY = "reply"
    VOTE = "vote"


@dataclass(frozen=True)
class ChangeEvent(Generic[RecordT]):
    """A change delivered by the transport and stamped on ingestion.

    ``previous_record`` is only meaningful for updates and deletions and may be
    missing even then; consumers treat its absence as an unknown diff.
    """

    mutation_kind: MutationKind
    entity_type: EntityType
    record: RecordT
    received_at: datetime
    previous_record: RecordT | None = None

    @property
    def entity_id(self) -> str | None:
        """Return the identifier of the changed entity as a string."""

        value = self.record.get("id")
        if value is None and self.previous_record is not None:
            value = self.previous_record.get("id")
        return None if value is None else str(value)


__all__ = ["ChangeEvent", "EntityType", "MutationKind"]
