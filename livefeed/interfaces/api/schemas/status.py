"""Pydantic models describing realtime connectivity."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ScopeStatusRead(BaseModel):
    topic: str
    ref_count: int = Field(ge=0)


class ConnectionStatusRead(BaseModel):
    """Connectivity of the shared realtime transport."""

    is_connected: bool
    is_connecting: bool = False
    error: str | None = None
    scopes: list[ScopeStatusRead] = Field(default_factory=list)


__all__ = ["ConnectionStatusRead", "ScopeStatusRead"]
