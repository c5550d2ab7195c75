"""
Memory fact model.

A MemoryFact is one atomic statement about the owner or a named third party.
Facts form version chains: when a newer fact contradicts an older one, the
older fact is marked not-latest and the newer one points back to it through
``previous_version``. Content is never mutated in place.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field
from ulid import ULID


def _utcnow() -> datetime:
    """Get current UTC time (naive, for compatibility with stored timestamps)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class FactKind(str, Enum):
    """What sort of statement a fact makes."""

    FACT = "fact"
    PREFERENCE = "preference"
    EVENT = "event"


class MemoryFact(BaseModel):
    """A single stored fact and its version-chain state."""

    id: str = Field(
        default_factory=lambda: str(ULID()),
        description="Unique fact identifier (ULID for time-ordering)",
    )
    owner_id: str = Field(description="Owner that scopes every read and write")
    content: str = Field(
        description="The fact text",
        min_length=1,
        max_length=10000,
    )

    # Classification
    is_core: bool = Field(
        default=False,
        description="Static (permanent) fact when True, dynamic when False",
    )
    kind: FactKind = Field(default=FactKind.FACT)

    # Version chain
    is_latest: bool = Field(
        default=True,
        description="Whether this fact is the current value for its slot",
    )
    version: int = Field(default=1, ge=1)
    previous_version: str | None = Field(
        default=None,
        description="ID of the fact this one superseded",
    )

    # Soft delete
    is_forgotten: bool = Field(default=False)
    forgotten_at: datetime | None = Field(default=None)

    # Scope and provenance
    tags: list[str] = Field(
        default_factory=list,
        description="Container tags; empty means global scope",
    )
    source_document: str | None = Field(default=None)
    metadata: dict[str, Any] = Field(default_factory=dict)

    expires_at: datetime | None = Field(
        default=None,
        description="When an event fact stops being relevant",
    )
    embedding: list[float] = Field(default_factory=list)

    # Temporal information
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def shares_scope(self, tags: list[str]) -> bool:
        """Check whether this fact lives in the same tag scope as ``tags``.

        Two facts share a scope if their tag sets overlap or both are untagged.
        """
        if not self.tags and not tags:
            return True
        return bool(set(self.tags) & set(tags))

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or _utcnow())
