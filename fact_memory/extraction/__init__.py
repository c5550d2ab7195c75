"""
Fact extraction and classification.

Provides:
- LLM extraction with deterministic post-filters
- Regex supplement and regex-only fallback
- Permanence, kind and expiry classification
"""

from fact_memory.extraction.classifier import (
    calculate_expiry,
    classify_kind,
    classify_permanence,
    has_temporal_content,
)
from fact_memory.extraction.filters import (
    apply_filters,
    deduplicate,
    filter_broken_sentences,
    filter_noise,
    reclassify,
    validate,
)
from fact_memory.extraction.llm_extractor import FactExtractor, merge_entities
from fact_memory.extraction.rules import Rule, evaluate, first_match
from fact_memory.extraction.supplement import RegexSupplement, fallback_extraction

__all__ = [
    "FactExtractor",
    "RegexSupplement",
    "fallback_extraction",
    "merge_entities",
    # Classification
    "calculate_expiry",
    "classify_kind",
    "classify_permanence",
    "has_temporal_content",
    # Filters
    "apply_filters",
    "deduplicate",
    "filter_broken_sentences",
    "filter_noise",
    "reclassify",
    "validate",
    # Rules
    "Rule",
    "evaluate",
    "first_match",
]
