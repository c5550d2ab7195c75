"""
Memory Service.

The entry point for callers (HTTP handlers, CLIs, agents). Ties the
extractor, the consistency manager and the searcher to one context.
"""

import logging
from datetime import datetime
from typing import Any

from fact_memory.consistency.manager import (
    BatchForgetResult,
    ConsistencyManager,
    CreateFactsResult,
    FactInput,
    UpdateResult,
)
from fact_memory.context import MemoryContext
from fact_memory.extraction.llm_extractor import FactExtractor
from fact_memory.models.fact import MemoryFact
from fact_memory.models.results import SearchResponse
from fact_memory.retrieval.searcher import Searcher
from fact_memory.storage.base import ValidationError

logger = logging.getLogger(__name__)


class MemoryService:
    """
    Fact lifecycle operations for one engine instance.

    Example:
        async with await create_context(config) as context:
            service = MemoryService(context)
            await service.extract_and_save("user_1", "I moved to Berlin last week")
            response = await service.search("user_1", "where does the user live?")
    """

    def __init__(self, context: MemoryContext):
        self.context = context
        config = context.config

        self.extractor = FactExtractor(context.llm, config.normalizer)
        self.manager = ConsistencyManager(context.store, context.embedder, config.consistency)
        self.searcher = Searcher(
            context.store,
            context.embedder,
            llm=context.llm,
            cache=context.cache,
            config=config.ranking,
        )

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def extract_and_save(
        self,
        owner_id: str,
        text: str,
        force_is_core: bool | None = None,
        tags: list[str] | None = None,
        source_document: str | None = None,
        metadata: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Extract facts from ``text`` and store them.

        Each fact goes through lexical dedup and contradiction handling; new
        facts then run the semantic supersede check.

        Args:
            owner_id: Owner scope
            text: Raw text to extract from
            force_is_core: Override the extracted static/dynamic class
            tags: Container tags for every stored fact
            source_document: Provenance id stored on every fact
            metadata: Metadata stored on every fact
            now: Reference time for relative dates and expiry

        Returns:
            ``{"facts": [{"id", "content", "is_core"}], "title", "summary"}``

        Raises:
            ValidationError: On a missing owner
            StorageError: If a write fails
        """
        if not owner_id:
            raise ValidationError("owner_id is required", code="MISSING_FIELD", details={"field": "owner_id"})

        extraction = await self.extractor.extract(text, now=now)
        saved: list[dict[str, Any]] = []
        if not extraction.facts:
            return {"facts": saved, "title": extraction.title, "summary": extraction.summary}

        embeddings = await self.context.embedder.embed_batch([fact.content for fact in extraction.facts])

        for fact, embedding in zip(extraction.facts, embeddings):
            is_core = force_is_core if force_is_core is not None else fact.is_static
            outcome = await self.manager.write_fact(
                owner_id,
                fact.content,
                is_core=is_core,
                kind=fact.kind,
                tags=tags,
                metadata=metadata,
                embedding=embedding,
                expires_at=fact.expires_at,
                source_document=source_document,
            )
            if outcome is None:
                continue

            if outcome.created:
                superseded = await self.manager.check_and_supersede(
                    owner_id, fact.content, embedding, exclude_id=outcome.fact_id
                )
                if superseded:
                    logger.info(f"Superseded {len(superseded)} existing fact(s)")

            saved.append({"id": outcome.fact_id, "content": fact.content, "is_core": is_core})
            logger.debug(f"Saved fact: {fact.content[:50]!r} ({'core' if is_core else 'dynamic'})")

        return {"facts": saved, "title": extraction.title, "summary": extraction.summary}

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    async def search(self, owner_id: str, query: str, **options: Any) -> SearchResponse:
        """Ranked search; see ``Searcher.search`` for the options."""
        if not owner_id:
            raise ValidationError("owner_id is required", code="MISSING_FIELD", details={"field": "owner_id"})
        return await self.searcher.search(owner_id, query, **options)

    # ------------------------------------------------------------------
    # Direct operations
    # ------------------------------------------------------------------

    async def create_fact(self, owner_id: str, content: str, **options: Any) -> str | None:
        return await self.manager.create_fact(owner_id, content, **options)

    async def create_facts(
        self,
        owner_id: str,
        items: list[FactInput | dict[str, Any]],
        tags: list[str] | None = None,
    ) -> CreateFactsResult:
        """Batch create; items may be FactInput or plain dicts."""
        inputs = [item if isinstance(item, FactInput) else _fact_input(item) for item in items or []]
        return await self.manager.create_facts_direct(owner_id, inputs, tags=tags)

    async def update_fact(
        self,
        owner_id: str,
        fact_id: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> UpdateResult:
        return await self.manager.update_fact(owner_id, fact_id, content, metadata=metadata)

    async def forget_fact(self, owner_id: str, fact_id: str) -> bool:
        return await self.manager.forget_fact(owner_id, fact_id)

    async def restore_fact(self, owner_id: str, fact_id: str) -> bool:
        return await self.manager.restore_fact(owner_id, fact_id)

    async def promote_fact(self, owner_id: str, fact_id: str) -> bool:
        return await self.manager.promote_fact(owner_id, fact_id)

    async def demote_fact(self, owner_id: str, fact_id: str) -> bool:
        return await self.manager.demote_fact(owner_id, fact_id)

    async def set_expiration(self, owner_id: str, fact_id: str, expires_at: datetime | None) -> MemoryFact:
        return await self.manager.set_expiration(owner_id, fact_id, expires_at)

    async def batch_forget(self, owner_id: str, fact_ids: list[str]) -> BatchForgetResult:
        return await self.manager.batch_forget(owner_id, fact_ids)

    async def purge_fact(self, owner_id: str, fact_id: str) -> bool:
        return await self.manager.purge_fact(owner_id, fact_id)

    async def version_history(self, owner_id: str, fact_id: str) -> list[MemoryFact]:
        return await self.manager.version_history(owner_id, fact_id)

    async def forget_expired(self, now: datetime | None = None) -> int:
        """Hook for the external scheduler."""
        return await self.manager.forget_expired(now)

    async def stats(self, owner_id: str) -> dict[str, int]:
        return await self.manager.stats(owner_id)


def _fact_input(item: dict[str, Any]) -> FactInput:
    return FactInput(
        content=item.get("content"),
        is_core=bool(item.get("is_core", item.get("isCore", False))),
        metadata=item.get("metadata"),
    )
