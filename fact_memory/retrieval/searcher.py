"""
Search pipeline over stored facts.

Steps:
1. Optional query expansion for short queries
2. Query embedding through the TTL cache
3. Vector search with an equality pre-filter and tag scope
4. Threshold and declarative filters
5. History exclusion, ranking and deduplication
6. Optional LLM rerank, then truncation
"""

import logging
import time
from datetime import datetime
from typing import Any

from fact_memory.config import RankingConfig
from fact_memory.encoding.cache import EmbeddingCache
from fact_memory.encoding.embedder import BaseEmbedder
from fact_memory.models.fact import MemoryFact
from fact_memory.models.results import SearchResponse, SearchResult
from fact_memory.retrieval.filters import apply_filters, extract_equality_filter
from fact_memory.retrieval.ranker import Ranker
from fact_memory.retrieval.rerank import QueryExpander, Reranker
from fact_memory.storage.base import BaseFactStore, ValidationError

logger = logging.getLogger(__name__)

SEARCH_MODES = ("memories", "hybrid")


def to_search_result(fact: MemoryFact, score: float) -> SearchResult:
    return SearchResult(
        id=fact.id,
        memory=fact.content,
        similarity=score,
        is_static=fact.is_core,
        kind=fact.kind.value,
        is_latest=fact.is_latest,
        version=fact.version,
        tags=list(fact.tags),
        metadata=dict(fact.metadata),
        created_at=fact.created_at,
        updated_at=fact.updated_at,
    )


class Searcher:
    """
    Ranked semantic search over one owner's facts.

    ``hybrid`` mode searches facts only; document chunks live outside this
    engine.
    """

    def __init__(
        self,
        store: BaseFactStore,
        embedder: BaseEmbedder,
        llm=None,
        cache: EmbeddingCache | None = None,
        config: RankingConfig | None = None,
    ):
        self.store = store
        self.embedder = embedder
        self.config = config or RankingConfig()
        self.cache = cache or EmbeddingCache(self.config.cache_ttl_seconds, self.config.cache_max_size)
        self.ranker = Ranker(self.config)
        self.reranker = Reranker(llm, self.config) if llm is not None else None
        self.expander = QueryExpander(llm) if llm is not None else None

    async def embed_query(self, query: str) -> list[float]:
        """Embed ``query``, reusing a cached vector when one is fresh."""
        cached = self.cache.get(query)
        if cached is not None:
            return cached
        embedding = await self.embedder.embed(query)
        self.cache.set(query, embedding)
        return embedding

    async def search(
        self,
        owner_id: str,
        query: str,
        limit: int | None = None,
        mode: str = "memories",
        rerank: bool = False,
        expand_query: bool = False,
        threshold: float = 0.0,
        filters: dict[str, Any] | None = None,
        include_history: bool = False,
        tag: str | None = None,
        now: datetime | None = None,
    ) -> SearchResponse:
        """
        Run the full search pipeline.

        Args:
            owner_id: Owner scope
            query: Natural-language query
            limit: Maximum results (defaults to ``default_limit``)
            mode: ``memories`` or ``hybrid``
            rerank: Blend LLM relevance scores into the top results
            expand_query: Widen short queries with related terms first
            threshold: Minimum raw similarity kept
            filters: Declarative filter tree or legacy filter dict
            include_history: Keep superseded versions
            tag: Only facts carrying this tag
            now: Reference time for recency weighting

        Returns:
            SearchResponse; empty if the store fails

        Raises:
            ValidationError: On an empty query or unknown mode
        """
        if not query or not query.strip():
            raise ValidationError("Query is required", code="INVALID_QUERY")
        if mode not in SEARCH_MODES:
            raise ValidationError(f"Unknown search mode: {mode}", code="INVALID_MODE")

        limit = limit or self.config.default_limit
        start = time.perf_counter()

        try:
            search_query = query
            if expand_query and self.expander is not None:
                search_query = await self.expander.expand(query)

            vector = await self.embed_query(search_query)
            pairs = await self.store.search(
                owner_id,
                vector,
                k=min(limit * 2, self.config.max_candidates),
                min_score=self.config.vector_min_score,
                equality_filter=extract_equality_filter(filters),
                tag=tag,
            )

            results = [
                to_search_result(fact, score)
                for fact, score in pairs
                if not fact.is_forgotten and score >= threshold
            ]
            results = apply_filters(results, filters)
            if not include_history:
                results = [result for result in results if result.is_latest]

            results = self.ranker.rank(results, now)

            if rerank and len(results) > 1 and self.reranker is not None:
                results = await self.reranker.rerank(query, results)

            results = results[:limit]
        except Exception as e:
            logger.error(f"Search failed for owner {owner_id}: {e}")
            return SearchResponse(timing_ms=(time.perf_counter() - start) * 1000)

        return SearchResponse(
            results=results,
            total=len(results),
            timing_ms=(time.perf_counter() - start) * 1000,
        )
