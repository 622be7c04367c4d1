"""Authenticated identities and a static identity context."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator


class Identity(BaseModel):
    """An authenticated user and the permission keys granted to them.

    Permission keys are case-insensitive (`"editPeerEntries:3"` == `"editpeerentries:3"`).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: int
    permissions: frozenset[str] = frozenset()

    @field_validator("permissions")
    @classmethod
    def normalize_permissions(cls, value: frozenset[str]) -> frozenset[str]:
        return frozenset(p.lower() for p in value)

    def can(self, permission: str) -> bool:
        return permission.lower() in self.permissions


class StaticIdentityContext:
    """Identity context for a request whose identity is known up front (or anonymous)."""

    def __init__(self, identity: Identity | None = None) -> None:
        self._identity = identity

    def current_identity(self) -> Identity | None:
        return self._identity
