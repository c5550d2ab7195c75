"""
LLM-based fact extraction.

The LLM runs at ingest time and turns free text into atomic facts. Its
output is never trusted as-is: every fact goes through validation,
deduplication, the broken-sentence and noise filters and deterministic
permanence reclassification, and a regex supplement fills in what the
model dropped.

Example:
    INPUT: "My wife Jennifer is a pediatrician. Our son Marcus is 7."

    OUTPUT FACTS:
    - "User's wife is Jennifer"
    - "Jennifer is a pediatrician"
    - "User's son is Marcus"
    - "Marcus is 7 years old"
"""

import logging
import re
from datetime import datetime
from typing import Any

from fact_memory.config import NormalizerConfig
from fact_memory.extraction.classifier import calculate_expiry, classify_kind
from fact_memory.extraction.filters import (
    apply_filters,
    reclassify,
    validate,
)
from fact_memory.extraction.supplement import RegexSupplement, fallback_extraction
from fact_memory.llm import LLMClient, LLMError, parse_json_object
from fact_memory.models.fact import FactKind
from fact_memory.models.results import (
    ENTITY_TYPES,
    ExtractedEntity,
    ExtractedFact,
    ExtractionResult,
)
from fact_memory.normalizer.pronouns import resolve_pronouns
from fact_memory.normalizer.temporal import DateResolver
from fact_memory.normalizer.text import extract_entities, parse_multi_speaker, sanitize_content

logger = logging.getLogger(__name__)


DEFAULT_CONFIDENCE = 0.8
SUMMARY_FALLBACK_LENGTH = 200
TITLE_CONTEXT_LENGTH = 50000

_NAME_PATTERNS = [
    re.compile(r"\bname is ([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)"),
    re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)'s name"),
]


EXTRACTION_PROMPT = '''Extract ALL facts from the content below as short, atomic statements.

RULES:
1. One fact = one piece of information. Never combine several attributes into one fact.
   - WRONG: "User has a wife Jennifer who is a pediatrician"
   - RIGHT: "User's wife is Jennifer", "Jennifer is a pediatrician"
2. Preserve names. If a person is named, use the name, never "User".
   Use "User" only for first-person statements when no name is given.
3. Never use pronouns (he, she, his, her, him, they, them, their) in a fact. Repeat the full name.
4. Preserve job titles, roles and organizations (e.g. "John Smith is VP Engineering at Acme Corp").
5. Extract every number: budgets, team sizes, ages, percentages, amounts, years of experience.
6. Keep dates exactly as written, including phrases like "the week before", "since 2020", "last December".
7. Extract relationships: partners, children, parents, pets ("User has a cat named Luna"),
   and facts about other people ("Mike works at Google").
8. Extract negative facts ("User does not eat meat") and plans ("User plans to visit Japan in March").
9. Infer compound labels from behavior: no meat but eats fish means "User is pescatarian".
10. Programming languages are skills, never locations.
{speaker_hint}
For each fact give:
- content: the fact sentence
- isStatic: true for permanent facts about a named person, false for the user's current context
- confidence: 0.0-1.0, how explicit the fact is in the text
- kind: "fact", "preference" or "event"
- hasExpiry: true for time-bound events (meetings, deadlines, appointments)
- entities: names mentioned in the fact

CONTENT:
{content}

Return JSON only:
{{
  "facts": [
    {{"content": "John Smith is VP Engineering at Acme Corp", "isStatic": true, "confidence": 0.95, "kind": "fact", "hasExpiry": false, "entities": ["John Smith", "Acme Corp"]}}
  ],
  "title": "Brief descriptive title",
  "summary": "Brief summary",
  "entities": [{{"name": "John Smith", "type": "person"}}, {{"name": "Acme Corp", "type": "organization"}}]
}}'''

SPEAKER_HINT = (
    "11. This is a conversation between {speakers}. Attribute each fact to the person "
    "who stated it and set \"speaker\" on the fact.\n"
)

TITLE_PROMPT = '''Generate a concise, descriptive title for this content.

Examples of good titles:
- "Sarah Johnson - Product Manager in San Francisco with Dog Max"
- "User Preferences: Dark Mode, Vegetarian, Nut Allergy"
- "Weekly Meeting Notes - Product Launch Planning"

Content:
"""
{content}
"""

Respond with ONLY the title, nothing else. Keep it under 100 characters.'''

SUMMARY_PROMPT = '''Summarize this content in 1-2 sentences:

{content}

Respond with ONLY the summary.'''


def _confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if confidence != confidence or confidence == 0:
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, confidence))


def _kind(value: Any, content: str) -> FactKind:
    try:
        return FactKind(value)
    except ValueError:
        return classify_kind(content)


def merge_entities(
    llm_entities: list[ExtractedEntity],
    regex_entities: list[ExtractedEntity],
) -> list[ExtractedEntity]:
    """Merge entity lists by lowercased name; the LLM's type wins."""
    merged: dict[str, ExtractedEntity] = {}
    for entity in [*llm_entities, *regex_entities]:
        merged.setdefault(entity.name.lower(), entity)
    return list(merged.values())


def find_primary_person(
    entities: list[ExtractedEntity],
    facts: list[ExtractedFact],
) -> str | None:
    """First person entity, else the name stated in a "name is" fact."""
    for entity in entities:
        if entity.type == "person":
            return entity.name

    for fact in facts:
        lowered = fact.content.lower()
        if "name is" not in lowered and "'s name" not in lowered:
            continue
        for pattern in _NAME_PATTERNS:
            match = pattern.search(fact.content)
            if match and match.group(1) != "User":
                return match.group(1)
    return None


class FactExtractor:
    """
    Extract atomic facts from free text.

    Pipeline: sanitize, resolve dates and pronouns, ask the LLM, filter,
    then supplement with regex rules. Any failure along the way falls back
    to regex-only extraction, so ``extract`` never raises.
    """

    def __init__(
        self,
        llm: LLMClient,
        config: NormalizerConfig | None = None,
        supplement: RegexSupplement | None = None,
    ):
        self.llm = llm
        self.config = config or NormalizerConfig()
        self.supplement = supplement or RegexSupplement()

    def normalize(self, content: str, now: datetime | None = None) -> str:
        """Resolve relative dates and pronouns according to the config."""
        text = content
        if self.config.convert_dates:
            resolver = DateResolver(reference=now)
            reference = resolver.reference_for(text)
            text = resolver.resolve(text)
            if text != content:
                logger.debug(f"Date conversion applied. Reference date: {reference.isoformat()}")
        if self.config.resolve_pronouns:
            text = resolve_pronouns(text)
        return text

    def build_prompt(self, content: str) -> str:
        speakers = parse_multi_speaker(content)
        speaker_hint = ""
        if len(speakers) > 1:
            speaker_hint = SPEAKER_HINT.format(speakers=", ".join(speakers))
        return EXTRACTION_PROMPT.format(content=content, speaker_hint=speaker_hint)

    def parse_facts(self, raw_facts: Any, now: datetime | None = None) -> list[ExtractedFact]:
        """Turn the LLM's fact dicts into ExtractedFact objects."""
        if not isinstance(raw_facts, list):
            return []

        facts = []
        for item in raw_facts:
            if not isinstance(item, dict):
                continue
            content = str(item.get("content") or "").strip()
            kind = _kind(item.get("kind"), content)

            expires_at = None
            if item.get("hasExpiry") or kind == FactKind.EVENT:
                expires_at = calculate_expiry(content, now)

            entities = item.get("entities")
            facts.append(
                ExtractedFact(
                    content=content,
                    is_static=bool(item.get("isStatic")),
                    confidence=_confidence(item.get("confidence")),
                    kind=kind,
                    expires_at=expires_at,
                    entities=[e for e in entities if isinstance(e, str)] if isinstance(entities, list) else [],
                    speaker=item.get("speaker") or None,
                )
            )
        return facts

    @staticmethod
    def parse_entities(raw_entities: Any) -> list[ExtractedEntity]:
        if not isinstance(raw_entities, list):
            return []
        return [
            ExtractedEntity(
                name=item["name"],
                type=item.get("type") if item.get("type") in ENTITY_TYPES else "other",
            )
            for item in raw_entities
            if isinstance(item, dict) and isinstance(item.get("name"), str)
        ]

    async def extract(self, content: str, now: datetime | None = None) -> ExtractionResult:
        """
        Extract facts from ``content``.

        Args:
            content: Raw text (chat message, document, transcript)
            now: Reference time for relative dates and expiry (defaults to now)

        Returns:
            ExtractionResult with filtered facts, merged entities, title and summary
        """
        if not content or not isinstance(content, str):
            return ExtractionResult()

        sanitized = sanitize_content(content)
        if not sanitized:
            return ExtractionResult()

        normalized = self.normalize(sanitized, now)

        try:
            return await self._extract_with_llm(sanitized, normalized, now)
        except Exception as e:
            logger.warning(f"LLM extraction failed, using regex fallback: {e}")
            return fallback_extraction(normalized, now)

    async def _extract_with_llm(
        self,
        sanitized: str,
        normalized: str,
        now: datetime | None,
    ) -> ExtractionResult:
        response = await self.llm.complete(self.build_prompt(normalized))
        parsed = parse_json_object(response)
        if parsed is None:
            raise LLMError("No JSON object in extraction response")

        facts = validate(self.parse_facts(parsed.get("facts"), now))
        before = len(facts)
        facts = reclassify(apply_filters(facts))
        logger.debug(f"Filters kept {len(facts)} of {before} LLM facts")

        entities = merge_entities(
            self.parse_entities(parsed.get("entities")),
            extract_entities(sanitized),
        )

        primary_person = find_primary_person(entities, facts)
        supplemented = self.supplement.supplement(normalized, facts, primary_person)
        if supplemented:
            logger.info(f"Regex supplement added {len(supplemented)} facts the LLM missed")
            facts = apply_filters([*facts, *supplemented])

        return ExtractionResult(
            facts=facts,
            title=str(parsed.get("title") or ""),
            summary=str(parsed.get("summary") or normalized[:SUMMARY_FALLBACK_LENGTH]),
            entities=entities,
        )

    async def generate_title(self, content: str) -> str:
        """Short descriptive title, or "" when the LLM fails."""
        sanitized = sanitize_content(content, TITLE_CONTEXT_LENGTH)
        try:
            title = await self.llm.complete(TITLE_PROMPT.format(content=sanitized))
        except LLMError as e:
            logger.warning(f"Title generation error: {e}")
            return ""
        return title.strip()

    async def generate_summary(self, content: str) -> str:
        """One or two sentence summary, falling back to the leading text."""
        sanitized = sanitize_content(content, TITLE_CONTEXT_LENGTH)
        try:
            summary = await self.llm.complete(SUMMARY_PROMPT.format(content=sanitized))
        except LLMError as e:
            logger.warning(f"Summary generation error: {e}")
            return sanitized[:SUMMARY_FALLBACK_LENGTH]
        return summary.strip() or sanitized[:SUMMARY_FALLBACK_LENGTH]
