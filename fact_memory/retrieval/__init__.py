"""
Retrieval module.

Provides:
- Vector search pipeline
- Status and recency ranking
- Declarative result filters
- LLM reranking and query expansion
"""

from fact_memory.retrieval.filters import (
    apply_filters,
    convert_legacy_filters,
    evaluate_compound,
    evaluate_condition,
    extract_equality_filter,
    get_field_value,
    validate_condition,
)
from fact_memory.retrieval.ranker import Ranker
from fact_memory.retrieval.rerank import QueryExpander, Reranker, keyword_rerank
from fact_memory.retrieval.searcher import Searcher, to_search_result

__all__ = [
    "Searcher",
    "to_search_result",
    "Ranker",
    "Reranker",
    "QueryExpander",
    "keyword_rerank",
    "apply_filters",
    "convert_legacy_filters",
    "evaluate_compound",
    "evaluate_condition",
    "extract_equality_filter",
    "get_field_value",
    "validate_condition",
]
