"""
Text normalization run before fact extraction.

Provides:
- Relative date resolution against a reference date
- Pronoun resolution to named antecedents
- Sanitization, regex entities and multi-speaker parsing
"""

from fact_memory.normalizer.pronouns import (
    NamedEntity,
    NormalizationContext,
    PronounResolver,
    detect_gender,
    extract_named_entities,
    resolve_pronouns,
    split_sentences,
)
from fact_memory.normalizer.temporal import (
    DateResolver,
    convert_relative_dates,
    convert_to_24_hour,
    extract_context_date,
)
from fact_memory.normalizer.text import (
    extract_entities,
    is_common_word,
    parse_multi_speaker,
    sanitize_content,
)

__all__ = [
    # Dates
    "DateResolver",
    "convert_relative_dates",
    "convert_to_24_hour",
    "extract_context_date",
    # Pronouns
    "NamedEntity",
    "NormalizationContext",
    "PronounResolver",
    "detect_gender",
    "extract_named_entities",
    "resolve_pronouns",
    "split_sentences",
    # Text
    "extract_entities",
    "is_common_word",
    "parse_multi_speaker",
    "sanitize_content",
]
