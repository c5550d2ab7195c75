"""
Fact Memory - Fact Lifecycle & Consistency Engine for AI Agents

Turns free text into atomic, classified facts and keeps them consistent:
- Relative date and pronoun normalization
- LLM extraction with regex supplement and regex-only fallback
- Static/dynamic and fact/preference/event classification with expiry
- Dedup, contradiction detection and version chains
- Ranked search with status, recency, filters and optional LLM rerank

Quick Start:
    from fact_memory import MemoryConfig, MemoryService, create_context

    async with await create_context(MemoryConfig()) as context:
        service = MemoryService(context)
        await service.extract_and_save("user_1", "Our revenue target is $5M")
        await service.extract_and_save("user_1", "Our revenue target is now $6.2M")
        response = await service.search("user_1", "revenue target")
        print(response.results[0].memory)
"""

from fact_memory.config import MemoryConfig
from fact_memory.context import MemoryContext, create_context
from fact_memory.models.fact import FactKind, MemoryFact
from fact_memory.models.results import ExtractedFact, ExtractionResult, SearchResponse, SearchResult
from fact_memory.service import MemoryService
from fact_memory.storage.base import (
    AccessDeniedError,
    FactNotFoundError,
    StorageError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "MemoryConfig",
    "MemoryContext",
    "create_context",
    "MemoryService",
    "FactKind",
    "MemoryFact",
    "ExtractedFact",
    "ExtractionResult",
    "SearchResponse",
    "SearchResult",
    "StorageError",
    "FactNotFoundError",
    "ValidationError",
    "AccessDeniedError",
]
