"""
SQLite fact store.

Uses aiosqlite for async operations. Embeddings are kept as JSON arrays and
similarity search is a brute-force cosine scan with numpy over the owner's
candidate rows, which is adequate for per-owner fact counts.
"""

import json
from datetime import datetime
from typing import Any

import aiosqlite
import numpy as np

from fact_memory.config import StorageConfig
from fact_memory.models.fact import FactKind, MemoryFact, _utcnow
from fact_memory.storage.base import BaseFactStore, FactNotFoundError, StorageError


# SQL Schema
SCHEMA = """
-- Facts table
CREATE TABLE IF NOT EXISTS facts (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    content TEXT NOT NULL,

    -- Classification
    is_core INTEGER DEFAULT 0,
    kind TEXT NOT NULL DEFAULT 'fact',

    -- Version chain
    is_latest INTEGER DEFAULT 1,
    version INTEGER DEFAULT 1,
    previous_version TEXT,

    -- Soft delete
    is_forgotten INTEGER DEFAULT 0,
    forgotten_at TEXT,

    source_document TEXT,
    metadata_json TEXT,
    embedding_json TEXT,

    -- Temporal
    expires_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- Tags table (many-to-many)
CREATE TABLE IF NOT EXISTS fact_tags (
    fact_id TEXT NOT NULL,
    tag TEXT NOT NULL,
    PRIMARY KEY (fact_id, tag),
    FOREIGN KEY (fact_id) REFERENCES facts(id) ON DELETE CASCADE
);

-- Indexes
CREATE INDEX IF NOT EXISTS idx_facts_owner ON facts(owner_id, is_forgotten);
CREATE INDEX IF NOT EXISTS idx_facts_previous ON facts(previous_version);
CREATE INDEX IF NOT EXISTS idx_facts_expires ON facts(expires_at);
CREATE INDEX IF NOT EXISTS idx_fact_tags_tag ON fact_tags(tag);
"""


def _serialize_datetime(dt: datetime | None) -> str | None:
    """Serialize datetime to ISO format string."""
    return dt.isoformat() if dt else None


def _deserialize_datetime(s: str | None) -> datetime | None:
    """Deserialize datetime from ISO format string."""
    return datetime.fromisoformat(s) if s else None


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two vectors; 0.0 when either is empty or zero."""
    if not a or not b or len(a) != len(b):
        return 0.0
    va = np.asarray(a, dtype=np.float32)
    vb = np.asarray(b, dtype=np.float32)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


class SQLiteFactStore(BaseFactStore):
    """
    SQLite-based fact store.

    Every write commits on its own. Superseding a fact is two writes (patch
    the old, insert the new) with no transaction spanning both.
    """

    def __init__(self, config: StorageConfig | None = None):
        """
        Initialize SQLite storage.

        Args:
            config: Storage configuration
        """
        self.config = config or StorageConfig()
        self.db_path = self.config.sqlite_path
        self._connection: aiosqlite.Connection | None = None
        self._connected = False

    async def connect(self) -> None:
        """Initialize connection and create schema."""
        try:
            # Ensure directory exists
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

            self._connection = await aiosqlite.connect(str(self.db_path))
            self._connection.row_factory = aiosqlite.Row

            # Enable foreign keys
            await self._connection.execute("PRAGMA foreign_keys = ON")

            # Create schema
            await self._connection.executescript(SCHEMA)
            await self._connection.commit()

            self._connected = True
        except Exception as e:
            raise StorageError(f"Failed to connect to SQLite: {e}") from e

    async def disconnect(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
        self._connected = False

    async def is_connected(self) -> bool:
        """Check if storage is connected."""
        return self._connected and self._connection is not None

    def _ensure_connected(self) -> None:
        """Raise error if not connected."""
        if not self._connected:
            raise StorageError("Not connected to database")

    def _fact_to_row(self, fact: MemoryFact) -> dict[str, Any]:
        """Convert a fact to a database row (tags are stored separately)."""
        return {
            "id": fact.id,
            "owner_id": fact.owner_id,
            "content": fact.content,
            "is_core": 1 if fact.is_core else 0,
            "kind": fact.kind.value,
            "is_latest": 1 if fact.is_latest else 0,
            "version": fact.version,
            "previous_version": fact.previous_version,
            "is_forgotten": 1 if fact.is_forgotten else 0,
            "forgotten_at": _serialize_datetime(fact.forgotten_at),
            "source_document": fact.source_document,
            "metadata_json": json.dumps(fact.metadata, default=str),
            "embedding_json": json.dumps(fact.embedding),
            "expires_at": _serialize_datetime(fact.expires_at),
            "created_at": _serialize_datetime(fact.created_at),
            "updated_at": _serialize_datetime(fact.updated_at),
        }

    def _row_to_fact(self, row: aiosqlite.Row, tags: list[str]) -> MemoryFact:
        """Convert a database row to a fact."""
        return MemoryFact(
            id=row["id"],
            owner_id=row["owner_id"],
            content=row["content"],
            is_core=bool(row["is_core"]),
            kind=FactKind(row["kind"]),
            is_latest=bool(row["is_latest"]),
            version=row["version"],
            previous_version=row["previous_version"],
            is_forgotten=bool(row["is_forgotten"]),
            forgotten_at=_deserialize_datetime(row["forgotten_at"]),
            tags=tags,
            source_document=row["source_document"],
            metadata=json.loads(row["metadata_json"]) if row["metadata_json"] else {},
            embedding=json.loads(row["embedding_json"]) if row["embedding_json"] else [],
            expires_at=_deserialize_datetime(row["expires_at"]),
            created_at=_deserialize_datetime(row["created_at"]),
            updated_at=_deserialize_datetime(row["updated_at"]),
        )

    async def _load_tags(self, fact_ids: list[str]) -> dict[str, list[str]]:
        """Fetch tags for a set of facts in one query."""
        tags: dict[str, list[str]] = {fact_id: [] for fact_id in fact_ids}
        if not fact_ids:
            return tags

        placeholders = ", ".join(["?" for _ in fact_ids])
        query = f"SELECT fact_id, tag FROM fact_tags WHERE fact_id IN ({placeholders}) ORDER BY tag"
        async with self._connection.execute(query, fact_ids) as cursor:
            async for row in cursor:
                tags[row["fact_id"]].append(row["tag"])
        return tags

    async def _fetch(self, query: str, params: list[Any]) -> list[MemoryFact]:
        """Run a SELECT on facts and hydrate rows with their tags."""
        async with self._connection.execute(query, params) as cursor:
            rows = await cursor.fetchall()

        tags = await self._load_tags([row["id"] for row in rows])
        return [self._row_to_fact(row, tags[row["id"]]) for row in rows]

    async def get(self, fact_id: str) -> MemoryFact | None:
        """Read a fact by ID."""
        self._ensure_connected()

        facts = await self._fetch("SELECT * FROM facts WHERE id = ?", [fact_id])
        return facts[0] if facts else None

    async def insert(self, fact: MemoryFact) -> str:
        """Insert a new fact."""
        self._ensure_connected()

        row = self._fact_to_row(fact)
        columns = ", ".join(row.keys())
        placeholders = ", ".join(["?" for _ in row])
        query = f"INSERT INTO facts ({columns}) VALUES ({placeholders})"

        try:
            await self._connection.execute(query, list(row.values()))

            if fact.tags:
                await self._connection.executemany(
                    "INSERT OR IGNORE INTO fact_tags (fact_id, tag) VALUES (?, ?)",
                    [(fact.id, tag) for tag in fact.tags],
                )

            await self._connection.commit()
            return fact.id
        except Exception as e:
            await self._connection.rollback()
            raise StorageError(f"Failed to insert fact: {e}") from e

    async def patch(self, fact_id: str, **fields: Any) -> MemoryFact:
        """Update selected fields of a fact."""
        self._ensure_connected()

        existing = await self.get(fact_id)
        if existing is None:
            raise FactNotFoundError(f"Fact not found: {fact_id}")

        fields.setdefault("updated_at", _utcnow())
        updated = existing.model_copy(update=fields)

        row = self._fact_to_row(updated)
        del row["id"]  # Don't update ID

        set_clause = ", ".join([f"{k} = ?" for k in row.keys()])
        query = f"UPDATE facts SET {set_clause} WHERE id = ?"

        try:
            await self._connection.execute(query, list(row.values()) + [fact_id])

            if "tags" in fields:
                await self._connection.execute(
                    "DELETE FROM fact_tags WHERE fact_id = ?", (fact_id,)
                )
                await self._connection.executemany(
                    "INSERT OR IGNORE INTO fact_tags (fact_id, tag) VALUES (?, ?)",
                    [(fact_id, tag) for tag in updated.tags],
                )

            await self._connection.commit()
            return updated
        except Exception as e:
            await self._connection.rollback()
            raise StorageError(f"Failed to update fact: {e}") from e

    async def delete(self, fact_id: str) -> bool:
        """Hard-delete a fact by ID."""
        self._ensure_connected()

        try:
            cursor = await self._connection.execute("DELETE FROM facts WHERE id = ?", (fact_id,))
            await self._connection.commit()
            return cursor.rowcount > 0
        except Exception as e:
            await self._connection.rollback()
            raise StorageError(f"Failed to delete fact: {e}") from e

    async def list_by_owner(
        self,
        owner_id: str,
        include_forgotten: bool = False,
        is_core: bool | None = None,
        kind: FactKind | None = None,
        tag: str | None = None,
        limit: int = 200,
    ) -> list[MemoryFact]:
        """List an owner's facts, newest first."""
        self._ensure_connected()

        query = "SELECT * FROM facts WHERE owner_id = ?"
        params: list[Any] = [owner_id]

        if not include_forgotten:
            query += " AND is_forgotten = 0"
        if is_core is not None:
            query += " AND is_core = ?"
            params.append(1 if is_core else 0)
        if kind is not None:
            query += " AND kind = ?"
            params.append(FactKind(kind).value)
        if tag is not None:
            query += " AND id IN (SELECT fact_id FROM fact_tags WHERE tag = ?)"
            params.append(tag)

        query += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(limit)

        return await self._fetch(query, params)

    async def list_expired(self, now: datetime) -> list[MemoryFact]:
        """List non-forgotten facts that have passed their expiry."""
        self._ensure_connected()

        query = """
            SELECT * FROM facts
            WHERE is_forgotten = 0
            AND expires_at IS NOT NULL
            AND expires_at <= ?
            ORDER BY expires_at ASC
        """
        return await self._fetch(query, [_serialize_datetime(now)])

    async def search(
        self,
        owner_id: str,
        vector: list[float],
        k: int = 10,
        min_score: float = 0.0,
        equality_filter: dict[str, Any] | None = None,
        tag: str | None = None,
    ) -> list[tuple[MemoryFact, float]]:
        """Cosine similarity scan over the owner's non-forgotten facts."""
        self._ensure_connected()

        query = "SELECT * FROM facts WHERE owner_id = ? AND is_forgotten = 0"
        params: list[Any] = [owner_id]
        if tag is not None:
            query += " AND id IN (SELECT fact_id FROM fact_tags WHERE tag = ?)"
            params.append(tag)

        candidates = await self._fetch(query, params)

        scored: list[tuple[MemoryFact, float]] = []
        for fact in candidates:
            if equality_filter and not _matches_equality(fact, equality_filter):
                continue
            score = cosine_similarity(vector, fact.embedding)
            if score >= min_score:
                scored.append((fact, score))

        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored[:k]


def _matches_equality(fact: MemoryFact, equality_filter: dict[str, Any]) -> bool:
    """Check field (or metadata) equality for every filter entry."""
    for key, expected in equality_filter.items():
        if key in MemoryFact.model_fields:
            actual = getattr(fact, key)
            if isinstance(actual, FactKind):
                actual = actual.value
        else:
            actual = fact.metadata.get(key)
        if actual != expected:
            return False
    return True
