"""
Data models for the Fact Memory engine.
"""

from fact_memory.models.fact import FactKind, MemoryFact
from fact_memory.models.results import (
    ENTITY_TYPES,
    ExtractedEntity,
    ExtractedFact,
    ExtractionResult,
    SearchResponse,
    SearchResult,
)

__all__ = [
    "FactKind",
    "MemoryFact",
    "ENTITY_TYPES",
    "ExtractedEntity",
    "ExtractedFact",
    "ExtractionResult",
    "SearchResponse",
    "SearchResult",
]
