"""
End-to-end tests for MemoryService and context wiring.
"""

import json
import logging
import pytest
from datetime import datetime, timedelta

from fact_memory import MemoryConfig, MemoryService, create_context
from fact_memory.config import EmbeddingConfig
from fact_memory.encoding.embedder import BaseEmbedder
from fact_memory.llm import LLMError
from fact_memory.storage.base import ValidationError

OWNER = "test_user_123"
NOW = datetime(2024, 3, 13, 9, 0)


def extraction(*facts, title="", summary=""):
    return json.dumps(
        {
            "facts": [{"confidence": 0.9, **fact} for fact in facts],
            "title": title,
            "summary": summary,
            "entities": [],
        }
    )


class ConstantEmbedder(BaseEmbedder):
    """Every text maps to the same direction, so every pair is a near duplicate."""

    def __init__(self):
        super().__init__(EmbeddingConfig(dimensions=2))

    async def _embed_raw(self, text: str) -> list[float]:
        return [1.0, 0.0]


@pytest.fixture
def config(storage_config):
    return MemoryConfig(storage=storage_config)


@pytest.fixture
async def service_factory(config, store, embedder, make_llm):
    async def build(*responses, embedder_override=None):
        context = await create_context(
            config,
            store=store,
            llm=make_llm(responses),
            embedder=embedder_override or embedder,
        )
        return MemoryService(context)

    yield build


class TestExtractAndSave:
    async def test_saves_extracted_facts(self, service_factory, store):
        service = await service_factory(
            extraction({"content": "User is allergic to peanuts", "kind": "fact"}, title="Allergy", summary="Allergy")
        )

        result = await service.extract_and_save(OWNER, "I am allergic to peanuts.", now=NOW)

        assert result["title"] == "Allergy"
        assert [fact["content"] for fact in result["facts"]] == ["User is allergic to peanuts"]
        stored = await store.get(result["facts"][0]["id"])
        assert stored.owner_id == OWNER
        assert stored.embedding

    async def test_rerun_is_idempotent(self, service_factory, store):
        response = extraction({"content": "User is allergic to peanuts"})
        service = await service_factory(response, response)

        first = await service.extract_and_save(OWNER, "I am allergic to peanuts.", now=NOW)
        second = await service.extract_and_save(OWNER, "I am allergic to peanuts.", now=NOW)

        assert second["facts"][0]["id"] == first["facts"][0]["id"]
        assert len(await store.list_by_owner(OWNER)) == 1

    async def test_force_is_core(self, service_factory, store):
        service = await service_factory(extraction({"content": "User likes green tea", "isStatic": False}))

        result = await service.extract_and_save(OWNER, "I like green tea", force_is_core=True, now=NOW)

        assert result["facts"][0]["is_core"] is True
        assert (await store.get(result["facts"][0]["id"])).is_core is True

    async def test_tags_metadata_and_source(self, service_factory, store):
        service = await service_factory(extraction({"content": "User likes green tea"}))

        result = await service.extract_and_save(
            OWNER,
            "I like green tea",
            tags=["home"],
            source_document="doc-42",
            metadata={"channel": "chat"},
            now=NOW,
        )
        stored = await store.get(result["facts"][0]["id"])

        assert stored.tags == ["home"]
        assert stored.source_document == "doc-42"
        assert stored.metadata == {"channel": "chat"}

    async def test_contradiction_then_search(self, service_factory):
        service = await service_factory(
            extraction({"content": "Revenue target is $5M"}),
            extraction({"content": "Revenue target is now $6.2M"}),
        )

        await service.extract_and_save(OWNER, "Our revenue target is $5M", now=NOW)
        await service.extract_and_save(OWNER, "Our revenue target is now $6.2M", now=NOW)
        response = await service.search(OWNER, "revenue target")

        assert [r.memory for r in response.results] == ["Revenue target is now $6.2M"]
        assert response.results[0].version == 2

    async def test_semantic_supersede(self, service_factory, store):
        service = await service_factory(
            extraction({"content": "Alice lives in Paris"}),
            extraction({"content": "Alice lives in London"}),
            embedder_override=ConstantEmbedder(),
        )

        first = await service.extract_and_save(OWNER, "Alice lives in Paris.", now=NOW)
        second = await service.extract_and_save(OWNER, "Alice lives in London.", now=NOW)

        old = await store.get(first["facts"][0]["id"])
        new = await store.get(second["facts"][0]["id"])
        assert old.is_latest is False
        assert new.is_latest is True

    async def test_fallback_when_llm_fails(self, service_factory):
        service = await service_factory(LLMError("connection refused"))

        result = await service.extract_and_save(OWNER, "My name is Alice and I work at Google.", now=NOW)

        assert [fact["content"] for fact in result["facts"]] == ["User's name is Alice", "User works at Google"]
        assert result["title"] == "User Information"

    async def test_event_expires(self, service_factory):
        service = await service_factory(
            extraction({"content": "User has a dentist appointment tomorrow", "kind": "event"})
        )

        await service.extract_and_save(OWNER, "Dentist appointment tomorrow", now=NOW)

        assert await service.forget_expired(NOW + timedelta(hours=1)) == 0
        assert await service.forget_expired(NOW + timedelta(days=2)) == 1

    async def test_nothing_extracted(self, service_factory):
        service = await service_factory(extraction(title="Small talk"))
        result = await service.extract_and_save(OWNER, "hello!", now=NOW)
        assert result["facts"] == []

    async def test_missing_owner(self, service_factory):
        service = await service_factory()
        with pytest.raises(ValidationError) as exc:
            await service.extract_and_save("", "I like tea")
        assert exc.value.code == "MISSING_FIELD"


class TestDirectOperations:
    async def test_create_facts_from_dicts(self, service_factory, store):
        service = await service_factory()

        result = await service.create_facts(
            OWNER,
            [{"content": "User lives in Oslo", "isCore": True}, {"content": "User likes tea", "metadata": {"a": 1}}],
        )

        assert [fact.is_core for fact in result.facts] == [True, False]
        assert len(await store.list_by_owner(OWNER)) == 2

    async def test_lifecycle(self, service_factory):
        service = await service_factory()

        fact_id = await service.create_fact(OWNER, "User likes tea")
        update = await service.update_fact(OWNER, fact_id, "User likes green tea")
        history = await service.version_history(OWNER, update.new_id)

        assert [fact.id for fact in history] == [update.new_id, fact_id]
        assert await service.promote_fact(OWNER, update.new_id) is True
        assert await service.demote_fact(OWNER, update.new_id) is True
        assert (await service.set_expiration(OWNER, update.new_id, NOW)).expires_at == NOW
        assert await service.forget_fact(OWNER, update.new_id) is True
        assert await service.restore_fact(OWNER, update.new_id) is True
        assert (await service.batch_forget(OWNER, [update.new_id])).forgotten == [update.new_id]
        assert await service.purge_fact(OWNER, fact_id) is True

        stats = await service.stats(OWNER)
        assert stats["total"] == 1
        assert stats["forgotten"] == 1

    async def test_search_requires_owner(self, service_factory):
        service = await service_factory()
        with pytest.raises(ValidationError):
            await service.search("", "tea")


class TestContext:
    async def test_create_and_close(self, config, embedder, make_llm):
        context = await create_context(config, llm=make_llm(), embedder=embedder)

        assert await context.store.is_connected()
        assert config.storage.sqlite_path.exists()

        await context.close()
        assert not await context.store.is_connected()

    async def test_async_context_manager(self, config, embedder, make_llm):
        async with await create_context(config, llm=make_llm(), embedder=embedder) as context:
            store = context.store
            assert await store.is_connected()
        assert not await store.is_connected()

    async def test_debug_sets_log_level(self, storage_config, embedder, make_llm):
        package_logger = logging.getLogger("fact_memory")
        previous = package_logger.level
        try:
            context = await create_context(
                MemoryConfig(storage=storage_config, debug=True), llm=make_llm(), embedder=embedder
            )
            assert package_logger.level == logging.DEBUG
            await context.close()
        finally:
            package_logger.setLevel(previous)

    async def test_injected_store_is_reused(self, config, store, embedder, make_llm):
        context = await create_context(config, store=store, llm=make_llm(), embedder=embedder)
        assert context.store is store
