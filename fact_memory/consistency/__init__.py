"""
Consistency: dedup, contradiction detection and the version chain.
"""

from fact_memory.consistency.manager import (
    BatchForgetResult,
    ConsistencyManager,
    CreatedFact,
    CreateFactsResult,
    FactInput,
    UpdateResult,
    WriteOutcome,
    WriteStatus,
    sanitize_metadata,
    validate_content,
)
from fact_memory.consistency.signatures import (
    EntityAttribute,
    detect_lexical_contradiction,
    extract_entity_attribute,
)

__all__ = [
    "ConsistencyManager",
    "WriteOutcome",
    "WriteStatus",
    "FactInput",
    "CreatedFact",
    "CreateFactsResult",
    "UpdateResult",
    "BatchForgetResult",
    "sanitize_metadata",
    "validate_content",
    "EntityAttribute",
    "detect_lexical_contradiction",
    "extract_entity_attribute",
]
