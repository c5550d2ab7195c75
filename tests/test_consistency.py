"""
Tests for the consistency manager: dedup, version chains and direct operations.
"""

import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

from fact_memory.config import EmbeddingConfig
from fact_memory.consistency.manager import (
    ConsistencyManager,
    FactInput,
    WriteStatus,
    sanitize_metadata,
    validate_content,
)
from fact_memory.encoding.embedder import BaseEmbedder
from fact_memory.models.fact import FactKind, MemoryFact
from fact_memory.storage.base import AccessDeniedError, FactNotFoundError, StorageError, ValidationError

OWNER = "test_user_123"
NOW = datetime(2024, 3, 13, 9, 0)


class BrokenEmbedder(BaseEmbedder):
    def __init__(self):
        super().__init__(EmbeddingConfig(dimensions=8))

    async def _embed_raw(self, text: str) -> list[float]:
        raise RuntimeError("embedding service down")


@pytest.fixture
def manager(store, embedder):
    return ConsistencyManager(store, embedder)


class TestValidation:
    def test_validate_content_trims(self):
        assert validate_content("  User likes tea  ", 100) == "User likes tea"

    @pytest.mark.parametrize("content", [None, "", "   ", 42])
    def test_invalid_content(self, content):
        with pytest.raises(ValidationError) as exc:
            validate_content(content, 100)
        assert exc.value.code == "INVALID_CONTENT"

    def test_too_long(self):
        with pytest.raises(ValidationError) as exc:
            validate_content("x" * 10001, 10000)
        assert exc.value.code == "CONTENT_TOO_LONG"
        assert exc.value.details["length"] == 10001

    def test_sanitize_metadata(self):
        metadata = {"good_key": 1, "also-good": "x", "bad key": 2, "none": None, "fn": print}
        assert sanitize_metadata(metadata) == {"good_key": 1, "also-good": "x"}
        assert sanitize_metadata(None) == {}


class TestLexicalWrite:
    """Tests for dedup and contradiction on the write path."""

    async def test_create(self, manager, store):
        outcome = await manager.write_fact(OWNER, "User likes tea", kind=FactKind.PREFERENCE)
        fact = await store.get(outcome.fact_id)

        assert outcome.status is WriteStatus.CREATED
        assert outcome.created
        assert fact.kind == FactKind.PREFERENCE
        assert fact.is_latest
        assert fact.embedding  # embedded on write

    async def test_duplicate_is_idempotent(self, manager, store):
        first = await manager.create_fact(OWNER, "User likes tea")
        second = await manager.create_fact(OWNER, "user likes TEA!")

        assert second == first
        assert len(await store.list_by_owner(OWNER)) == 1

    async def test_duplicate_outcome(self, manager):
        await manager.write_fact(OWNER, "User likes tea")
        outcome = await manager.write_fact(OWNER, "User likes tea")

        assert outcome.status is WriteStatus.DUPLICATE
        assert outcome.status == "duplicate"
        assert not outcome.created

    async def test_contradiction_builds_chain(self, manager, store):
        v1 = await manager.write_fact(OWNER, "Revenue target is $5M")
        v2 = await manager.write_fact(OWNER, "Revenue target is now $6.2M")

        old = await store.get(v1.fact_id)
        new = await store.get(v2.fact_id)

        assert v2.status is WriteStatus.SUPERSEDED
        assert v2.superseded_id == v1.fact_id
        assert new.version == 2
        assert new.previous_version == v1.fact_id
        assert new.is_latest
        assert not old.is_latest

    async def test_chain_continues_from_latest(self, manager, store):
        v1 = await manager.write_fact(OWNER, "Revenue target is $5M")
        v2 = await manager.write_fact(OWNER, "Revenue target is now $6.2M")
        v3 = await manager.write_fact(OWNER, "Revenue target is now $7M")

        assert v3.superseded_id == v2.fact_id
        assert v3.version == 3

        history = await manager.version_history(OWNER, v3.fact_id)
        assert [fact.id for fact in history] == [v3.fact_id, v2.fact_id, v1.fact_id]

    async def test_tag_scope_isolation(self, manager, store):
        work = await manager.create_fact(OWNER, "User likes tea", tags=["work"])
        home = await manager.create_fact(OWNER, "User likes tea", tags=["home"])
        untagged = await manager.create_fact(OWNER, "User likes tea")

        assert len({work, home, untagged}) == 3

    async def test_contradiction_respects_scope(self, manager, store):
        work = await manager.write_fact(OWNER, "Revenue target is $5M", tags=["work"])
        other = await manager.write_fact(OWNER, "Revenue target is now $6.2M", tags=["side-project"])

        assert other.status is WriteStatus.CREATED
        assert (await store.get(work.fact_id)).is_latest

    async def test_owner_isolation(self, manager):
        mine = await manager.create_fact(OWNER, "User likes tea")
        theirs = await manager.create_fact("someone_else", "User likes tea")
        assert mine != theirs

    async def test_too_short_is_skipped(self, manager, store):
        assert await manager.write_fact(OWNER, "ok!") is None
        assert await store.list_by_owner(OWNER) == []

    async def test_missing_owner(self, manager):
        with pytest.raises(ValidationError) as exc:
            await manager.write_fact("", "User likes tea")
        assert exc.value.code == "MISSING_FIELD"

    async def test_metadata_sanitized(self, manager, store):
        fact_id = await manager.create_fact(OWNER, "User likes tea", metadata={"source": "chat", "bad key": 1})
        assert (await store.get(fact_id)).metadata == {"source": "chat"}

    async def test_embedding_failure_stores_without_vector(self, store):
        manager = ConsistencyManager(store, BrokenEmbedder())
        fact_id = await manager.create_fact(OWNER, "User likes tea")
        assert (await store.get(fact_id)).embedding == []

    async def test_supersede_failure_blocks_insert(self, manager, store):
        await manager.write_fact(OWNER, "Revenue target is $5M")
        store.patch = AsyncMock(side_effect=StorageError("disk full"))

        with pytest.raises(StorageError):
            await manager.write_fact(OWNER, "Revenue target is now $6.2M")
        assert len(await store.list_by_owner(OWNER)) == 1


class TestSemanticSupersede:
    """Tests for the embedding-based contradiction check."""

    async def insert(self, store, content, embedding, **kwargs):
        fact = MemoryFact(owner_id=OWNER, content=content, embedding=embedding, **kwargs)
        await store.insert(fact)
        return fact

    async def test_supersedes_same_entity_attribute(self, manager, store):
        old = await self.insert(store, "Alice lives in Paris", [1.0, 0.0])

        superseded = await manager.check_and_supersede(OWNER, "Alice lives in London", [1.0, 0.0])

        assert superseded == [old.id]
        assert not (await store.get(old.id)).is_latest

    async def test_entity_mismatch(self, manager, store):
        bob = await self.insert(store, "Bob lives in Paris", [1.0, 0.0])

        assert await manager.check_and_supersede(OWNER, "Alice lives in London", [1.0, 0.0]) == []
        assert (await store.get(bob.id)).is_latest

    async def test_below_similarity_threshold(self, manager, store):
        await self.insert(store, "Alice lives in Paris", [0.0, 1.0])
        assert await manager.check_and_supersede(OWNER, "Alice lives in London", [1.0, 0.0]) == []

    async def test_no_signature_skips_search(self, store, embedder):
        mock_store = AsyncMock()
        manager = ConsistencyManager(mock_store, embedder)

        assert await manager.check_and_supersede(OWNER, "The weather was mild", [1.0, 0.0]) == []
        mock_store.search.assert_not_called()

    async def test_empty_embedding(self, manager):
        assert await manager.check_and_supersede(OWNER, "Alice lives in London", []) == []

    async def test_search_failure_returns_empty(self, embedder):
        mock_store = AsyncMock()
        mock_store.search.side_effect = StorageError("index offline")
        manager = ConsistencyManager(mock_store, embedder)

        assert await manager.check_and_supersede(OWNER, "Alice lives in London", [1.0, 0.0]) == []

    async def test_excludes_new_fact_and_identical_content(self, manager, store):
        new = await self.insert(store, "Alice lives in London", [1.0, 0.0])
        same_text = await self.insert(store, "Alice lives in London", [1.0, 0.0])

        superseded = await manager.check_and_supersede(
            OWNER, "Alice lives in London", [1.0, 0.0], exclude_id=new.id
        )

        assert superseded == []
        assert (await store.get(same_text.id)).is_latest

    async def test_skips_already_superseded(self, manager, store):
        await self.insert(store, "Alice lives in Paris", [1.0, 0.0], is_latest=False)
        assert await manager.check_and_supersede(OWNER, "Alice lives in London", [1.0, 0.0]) == []


class TestDirectCreate:
    async def test_batch_with_invalid_item(self, manager, store):
        result = await manager.create_facts_direct(
            OWNER,
            [FactInput("User likes tea"), FactInput("   "), FactInput("User lives in Oslo", is_core=True)],
            tags=["home"],
        )

        assert [fact.content for fact in result.facts] == ["User likes tea", "User lives in Oslo"]
        assert result.facts[1].is_core is True
        assert [error["index"] for error in result.errors] == [1]

        stored = await store.list_by_owner(OWNER, tag="home")
        assert len(stored) == 2

    async def test_empty_batch(self, manager):
        with pytest.raises(ValidationError) as exc:
            await manager.create_facts_direct(OWNER, [])
        assert exc.value.code == "EMPTY_BATCH"

    async def test_batch_too_large(self, manager, store):
        items = [FactInput(f"User fact number {i}") for i in range(101)]
        with pytest.raises(ValidationError) as exc:
            await manager.create_facts_direct(OWNER, items)

        assert exc.value.code == "BATCH_TOO_LARGE"
        assert await store.list_by_owner(OWNER) == []

    async def test_too_short_reported(self, manager):
        result = await manager.create_facts_direct(OWNER, [FactInput("ok")])
        assert result.facts == []
        assert result.errors == [{"index": 0, "error": "Failed to create fact"}]


class TestOwnership:
    async def test_not_found(self, manager):
        with pytest.raises(FactNotFoundError):
            await manager.get_owned(OWNER, "missing")

    async def test_access_denied(self, manager):
        fact_id = await manager.create_fact("someone_else", "User likes tea")

        with pytest.raises(AccessDeniedError) as exc:
            await manager.forget_fact(OWNER, fact_id)
        assert exc.value.code == "ACCESS_DENIED"


class TestUpdate:
    async def test_creates_new_version(self, manager, store):
        fact_id = await manager.create_fact(
            OWNER, "User likes tea", is_core=True, tags=["home"], metadata={"source": "chat"}
        )

        result = await manager.update_fact(OWNER, fact_id, "User likes green tea")
        old = await store.get(fact_id)
        new = await store.get(result.new_id)

        assert result.version == 2
        assert not old.is_latest
        assert new.previous_version == fact_id
        assert new.is_core is True
        assert new.tags == ["home"]
        assert new.metadata == {"source": "chat"}

    async def test_new_metadata_replaces(self, manager, store):
        fact_id = await manager.create_fact(OWNER, "User likes tea", metadata={"source": "chat"})
        result = await manager.update_fact(OWNER, fact_id, "User likes green tea", metadata={"source": "api"})
        assert (await store.get(result.new_id)).metadata == {"source": "api"}

    async def test_unchanged_content(self, manager):
        fact_id = await manager.create_fact(OWNER, "User likes tea")
        with pytest.raises(ValidationError) as exc:
            await manager.update_fact(OWNER, fact_id, "User likes tea")
        assert exc.value.code == "CONTENT_UNCHANGED"

    async def test_forgotten_fact(self, manager):
        fact_id = await manager.create_fact(OWNER, "User likes tea")
        await manager.forget_fact(OWNER, fact_id)

        with pytest.raises(ValidationError) as exc:
            await manager.update_fact(OWNER, fact_id, "User likes coffee")
        assert exc.value.code == "FACT_FORGOTTEN"


class TestLifecycle:
    async def test_forget_and_restore_are_idempotent(self, manager, store):
        fact_id = await manager.create_fact(OWNER, "User likes tea")

        assert await manager.forget_fact(OWNER, fact_id) is True
        assert await manager.forget_fact(OWNER, fact_id) is False
        assert (await store.get(fact_id)).forgotten_at is not None

        assert await manager.restore_fact(OWNER, fact_id) is True
        assert await manager.restore_fact(OWNER, fact_id) is False
        assert (await store.get(fact_id)).forgotten_at is None

    async def test_restore_keeps_superseded_state(self, manager, store):
        v1 = await manager.write_fact(OWNER, "Revenue target is $5M")
        await manager.write_fact(OWNER, "Revenue target is now $6.2M")

        await manager.forget_fact(OWNER, v1.fact_id)
        await manager.restore_fact(OWNER, v1.fact_id)

        assert (await store.get(v1.fact_id)).is_latest is False

    async def test_promote_and_demote(self, manager, store):
        fact_id = await manager.create_fact(OWNER, "User likes tea")

        assert await manager.promote_fact(OWNER, fact_id) is True
        assert await manager.promote_fact(OWNER, fact_id) is False
        assert (await store.get(fact_id)).is_core is True

        assert await manager.demote_fact(OWNER, fact_id) is True
        assert (await store.get(fact_id)).is_core is False

    async def test_set_expiration(self, manager):
        fact_id = await manager.create_fact(OWNER, "User has a meeting")

        fact = await manager.set_expiration(OWNER, fact_id, NOW)
        assert fact.expires_at == NOW

        cleared = await manager.set_expiration(OWNER, fact_id, None)
        assert cleared.expires_at is None

    async def test_batch_forget(self, manager):
        first = await manager.create_fact(OWNER, "User likes tea")
        second = await manager.create_fact(OWNER, "User lives in Oslo")

        result = await manager.batch_forget(OWNER, [first, "missing", second])

        assert result.forgotten == [first, second]
        assert result.forgotten_count == 2
        assert [error["id"] for error in result.errors] == ["missing"]

    async def test_batch_forget_empty(self, manager):
        with pytest.raises(ValidationError):
            await manager.batch_forget(OWNER, [])

    async def test_purge(self, manager, store):
        fact_id = await manager.create_fact(OWNER, "User likes tea")

        assert await manager.purge_fact(OWNER, fact_id) is True
        assert await store.get(fact_id) is None

    async def test_forget_expired(self, manager, store):
        expired = await manager.create_fact(OWNER, "User has a meeting", expires_at=NOW - timedelta(hours=1))
        upcoming = await manager.create_fact(OWNER, "User has a flight", expires_at=NOW + timedelta(days=1))

        assert await manager.forget_expired(NOW) == 1
        assert (await store.get(expired)).is_forgotten
        assert not (await store.get(upcoming)).is_forgotten
        assert await manager.forget_expired(NOW) == 0

    async def test_stats(self, manager):
        await manager.write_fact(OWNER, "Revenue target is $5M", is_core=True)
        await manager.write_fact(OWNER, "Revenue target is now $6.2M", is_core=True)
        forgotten = await manager.create_fact(OWNER, "User likes tea")
        await manager.forget_fact(OWNER, forgotten)

        assert await manager.stats(OWNER) == {
            "total": 3,
            "core": 2,
            "dynamic": 0,
            "forgotten": 1,
            "versioned": 1,
            "active": 1,
        }
