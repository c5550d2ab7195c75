"""
Text utilities used ahead of extraction: sanitization, regex entity
extraction and multi-speaker transcript parsing.
"""

import re

from fact_memory.models.results import ExtractedEntity


MAX_CONTENT_LENGTH = 10000

COMMON_WORDS = {
    "The", "This", "That", "These", "Those", "What", "When", "Where", "Which",
    "How", "Why", "Who", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday",
    "Saturday", "Sunday", "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December", "User",
    "Today", "Tomorrow", "Yesterday", "Morning", "Afternoon", "Evening", "Night",
}

KNOWN_ORGANIZATIONS = [
    "Google", "Apple", "Microsoft", "Amazon", "Meta", "Facebook",
    "Netflix", "Tesla", "OpenAI", "Anthropic", "Stripe", "Uber", "Airbnb",
]

SPEAKER_PATTERNS = [
    re.compile(r"^([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)\s*:\s*"),
    re.compile(r"^\[([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)\]\s*"),
    re.compile(r"^([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)\s+said\s*:\s*", re.IGNORECASE),
]

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")

_DATE_PATTERNS = [
    re.compile(r"\b(\d{1,2}/\d{1,2}/\d{2,4})\b"),
    re.compile(r"\b(\d{4}-\d{2}-\d{2})\b"),
    re.compile(
        r"\b((?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\s+\d{1,2}(?:,?\s+\d{4})?)\b",
        re.IGNORECASE,
    ),
]


def sanitize_content(content: str, max_length: int = MAX_CONTENT_LENGTH) -> str:
    """Strip control characters, squeeze whitespace runs and cap the length."""
    sanitized = _CONTROL_CHARS.sub("", content)
    sanitized = re.sub(r"\n{3,}", "\n\n", sanitized)
    sanitized = re.sub(r"[ \t]{3,}", "  ", sanitized)
    return sanitized.strip()[:max_length]


def is_common_word(word: str) -> bool:
    return word in COMMON_WORDS


def extract_entities(content: str) -> list[ExtractedEntity]:
    """
    Regex entity extraction, used alongside the LLM's entity list.

    Finds capitalized name runs (person), "X Inc/Corp/LLC" and well-known
    companies (organization), "in X" (location) and date-like strings.
    """
    entities: list[ExtractedEntity] = []
    seen: set[str] = set()

    def add(name: str, entity_type: str) -> None:
        if name not in seen:
            seen.add(name)
            entities.append(ExtractedEntity(name=name, type=entity_type))

    for match in re.finditer(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+){1,2})\b", content):
        if not is_common_word(match.group(1)):
            add(match.group(1), "person")

    for match in re.finditer(
        r"\b([A-Z][A-Za-z]+(?:\s+[A-Z][A-Za-z]+)*)\s+(?:Inc|Corp|LLC|Ltd|Company|Co)\b",
        content,
        re.IGNORECASE,
    ):
        add(match.group(0), "organization")

    for company in KNOWN_ORGANIZATIONS:
        if company in content:
            add(company, "organization")

    for match in re.finditer(r"\bin\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)\b", content):
        if not is_common_word(match.group(1)):
            add(match.group(1), "location")

    for pattern in _DATE_PATTERNS:
        for match in pattern.finditer(content):
            add(match.group(1), "date")

    return entities


def parse_multi_speaker(content: str) -> dict[str, list[str]]:
    """
    Group transcript lines by speaker.

    A line starting with "Name:", "[Name]" or "Name said:" opens a new
    statement for that speaker; following lines without a header are
    appended to it. Text before the first header is ignored.

    Returns:
        Mapping of speaker name to their statements, in order
    """
    statements: dict[str, list[str]] = {}
    current_speaker: str | None = None
    current_statement = ""

    def flush() -> None:
        if current_speaker and current_statement.strip():
            statements.setdefault(current_speaker, []).append(current_statement.strip())

    for line in content.split("\n"):
        for pattern in SPEAKER_PATTERNS:
            match = pattern.match(line)
            if match:
                flush()
                current_speaker = match.group(1)
                current_statement = pattern.sub("", line, count=1)
                break
        else:
            if current_speaker:
                current_statement += " " + line

    flush()
    return statements
