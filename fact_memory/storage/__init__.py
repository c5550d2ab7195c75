"""
Storage backends for the Fact Memory engine.

Provides:
- Abstract fact store contract and write-path exceptions
- SQLite store with brute-force cosine search
"""

from fact_memory.storage.base import (
    AccessDeniedError,
    BaseFactStore,
    FactNotFoundError,
    StorageError,
    ValidationError,
)
from fact_memory.storage.sqlite import SQLiteFactStore, cosine_similarity

__all__ = [
    # Base
    "BaseFactStore",
    "StorageError",
    "FactNotFoundError",
    "ValidationError",
    "AccessDeniedError",
    # Implementations
    "SQLiteFactStore",
    "cosine_similarity",
]
