"""
Abstract base classes for fact storage backends.

Defines the store contract the consistency manager and search pipeline
consume, plus the exceptions raised across the write path.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from fact_memory.models.fact import FactKind, MemoryFact


# Custom exceptions
class StorageError(Exception):
    """Base exception for storage errors."""

    pass


class FactNotFoundError(StorageError):
    """Raised when a fact is not found."""

    pass


class ValidationError(Exception):
    """Raised when a request is rejected before any mutation happens."""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR", details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class AccessDeniedError(ValidationError):
    """Raised when a fact exists but belongs to another owner."""

    def __init__(self, message: str = "Access denied", details: dict[str, Any] | None = None):
        super().__init__(message, code="ACCESS_DENIED", details=details)


class BaseFactStore(ABC):
    """
    Abstract base class for fact stores.

    Stores own persistence and vector similarity; they never decide
    dedup or supersede semantics.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Initialize connection to storage backend."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to storage backend."""
        pass

    @abstractmethod
    async def is_connected(self) -> bool:
        """Check if storage is connected."""
        pass

    @abstractmethod
    async def get(self, fact_id: str) -> MemoryFact | None:
        """
        Read a fact by ID.

        Args:
            fact_id: The ID of the fact to read

        Returns:
            The fact if found, None otherwise
        """
        pass

    @abstractmethod
    async def insert(self, fact: MemoryFact) -> str:
        """
        Insert a new fact.

        Args:
            fact: The fact to store

        Returns:
            The ID of the stored fact
        """
        pass

    @abstractmethod
    async def patch(self, fact_id: str, **fields: Any) -> MemoryFact:
        """
        Update selected fields of a fact and bump ``updated_at``.

        Args:
            fact_id: The fact to update
            **fields: Field names and their new values

        Returns:
            The updated fact

        Raises:
            FactNotFoundError: If the fact does not exist
        """
        pass

    @abstractmethod
    async def delete(self, fact_id: str) -> bool:
        """
        Hard-delete a fact.

        Returns:
            True if a row was removed
        """
        pass

    @abstractmethod
    async def list_by_owner(
        self,
        owner_id: str,
        include_forgotten: bool = False,
        is_core: bool | None = None,
        kind: FactKind | None = None,
        tag: str | None = None,
        limit: int = 200,
    ) -> list[MemoryFact]:
        """
        List an owner's facts, newest first.

        Args:
            owner_id: Owner scope
            include_forgotten: Include soft-deleted facts
            is_core: Filter on static/dynamic
            kind: Filter on fact kind
            tag: Only facts carrying this tag
            limit: Maximum facts returned

        Returns:
            Matching facts ordered by creation time, descending
        """
        pass

    @abstractmethod
    async def list_expired(self, now: datetime) -> list[MemoryFact]:
        """List non-forgotten facts whose ``expires_at`` is at or before ``now``."""
        pass

    @abstractmethod
    async def search(
        self,
        owner_id: str,
        vector: list[float],
        k: int = 10,
        min_score: float = 0.0,
        equality_filter: dict[str, Any] | None = None,
        tag: str | None = None,
    ) -> list[tuple[MemoryFact, float]]:
        """
        Vector similarity search over an owner's non-forgotten facts.

        Args:
            owner_id: Owner scope
            vector: Query embedding
            k: Maximum results
            min_score: Minimum cosine similarity
            equality_filter: Field/value pairs the fact must equal
            tag: Only facts carrying this tag

        Returns:
            (fact, score) pairs sorted by score, descending
        """
        pass

    async def __aenter__(self) -> "BaseFactStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()
