"""
Shared resources for one engine instance.

A MemoryContext owns the store, the LLM client, the embedder and the query
embedding cache. Build one with ``create_context`` and close it when done::

    async with await create_context(config) as context:
        service = MemoryService(context)
"""

import logging
from dataclasses import dataclass

from fact_memory.config import MemoryConfig
from fact_memory.encoding.cache import EmbeddingCache
from fact_memory.encoding.embedder import BaseEmbedder, create_embedder
from fact_memory.llm import LLMClient
from fact_memory.storage.base import BaseFactStore
from fact_memory.storage.sqlite import SQLiteFactStore

logger = logging.getLogger(__name__)


@dataclass
class MemoryContext:
    """Injectable bundle of engine resources."""

    store: BaseFactStore
    llm: LLMClient
    embedder: BaseEmbedder
    cache: EmbeddingCache
    config: MemoryConfig

    async def close(self) -> None:
        """Release the embedder's HTTP client and disconnect the store."""
        await self.embedder.close()
        if await self.store.is_connected():
            await self.store.disconnect()
        logger.info("Memory context closed")

    async def __aenter__(self) -> "MemoryContext":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


async def create_context(
    config: MemoryConfig | None = None,
    store: BaseFactStore | None = None,
    llm: LLMClient | None = None,
    embedder: BaseEmbedder | None = None,
) -> MemoryContext:
    """
    Build and connect a context.

    Any resource passed in is used as is; the rest are created from
    ``config``. The store is connected if it is not already.
    """
    config = config or MemoryConfig()
    if config.debug:
        logging.getLogger("fact_memory").setLevel(logging.DEBUG)

    store = store or SQLiteFactStore(config.storage)
    if not await store.is_connected():
        await store.connect()
        logger.info("Fact store connected")

    return MemoryContext(
        store=store,
        llm=llm or LLMClient(config.llm),
        embedder=embedder or create_embedder(config.embedding),
        cache=EmbeddingCache(config.ranking.cache_ttl_seconds, config.ranking.cache_max_size),
        config=config,
    )
