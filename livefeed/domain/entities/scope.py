"""Logical scopes consumers can subscribe to."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

GLOBAL_TOPIC = "global"


class ScopeKind(str, Enum):
    """Granularity of a subscription scope."""

    THREAD = "thread"
    CATEGORY = "category"
    GLOBAL = "global"


@dataclass(frozen=True)
class ScopeKey:
    """Composite key identifying one slice of the change stream."""

    kind: ScopeKind
    identifier: str | None = None

    def __post_init__(self) -> None:
        if self.kind is ScopeKind.GLOBAL:
            if self.identifier is not None:
                raise ValueError("Global scopes do not take an identifier")
            return
        if self.identifier is None or not str(self.identifier).strip():
            raise ValueError(f"{self.kind.value.title()} scopes require an identifier")
        object.__setattr__(self, "identifier", str(self.identifier).strip())

    @classmethod
    def thread(cls, thread_id: str | int) -> "ScopeKey":
        return cls(ScopeKind.THREAD, str(thread_id))

    @classmethod
    def category(cls, category_id: str | int) -> "ScopeKey":
        return cls(ScopeKind.CATEGORY, str(category_id))

    @classmethod
    def everything(cls) -> "ScopeKey":
        return cls(ScopeKind.GLOBAL)

    @property
    def topic(self) -> str:
        """Channel name used on the wire for this scope."""

        if self.kind is ScopeKind.GLOBAL:
            return GLOBAL_TOPIC
        return f"{self.kind.value}:{self.identifier}"

    def __str__(self) -> str:
        return self.topic


__all__ = ["GLOBAL_TOPIC", "ScopeKey", "ScopeKind"]
