"""
Fact classification.

- Permanence: static (permanent, biographical) versus dynamic (contextual)
- Kind: fact, preference or event
- Expiry: when an event-like fact stops being relevant

All three are deterministic pure functions of the text (expiry also of
the current time), driven by ordered rule tables.
"""

import re
from datetime import datetime, timedelta

from fact_memory.extraction.rules import Rule, evaluate, patterns
from fact_memory.models.fact import FactKind, _utcnow


# Identity facts never change, so they win over any "currently"-style wording
IDENTITY_PATTERNS = patterns(
    # Name
    r"\bname\s+is\b",
    r"\bis\s+named\b",
    r"\bknown\s+as\b",
    r"\bgoes\s+by\b",
    r"\bmy\s+name\b",
    # Birth, age, anniversaries
    r"\bborn\s+(?:on|in)\b",
    r"\bbirthday\s+(?:is|on)\b",
    r"\banniversary\s+(?:is|on)\b",
    r"\bwedding\s+anniversary\b",
    r"\bbirthdate\b",
    r"\bdate\s+of\s+birth\b",
    r"\b\d+\s+years?\s+old\b",
    r"\bage\s+(?:is\s+)?\d+\b",
    # Education
    r"\bgraduated?\s+(?:from|at|in)\b",
    r"\bdegree\s+(?:in|from)\b",
    r"\b(?:bachelor|master|phd|doctorate|mba)\b",
    r"\bstudied\s+(?:at|in)\b",
    r"\balma\s+mater\b",
    r"\bmajored?\s+in\b",
    # Origin
    r"\bgrew\s+up\s+in\b",
    r"\bnative\s+(?:of|to)\b",
    r"\bhometown\b",
    r"\boriginally\s+from\b",
    # Family
    r"\bmarried\s+to\b",
    r"\b(?:wife|husband|spouse|partner)\s+is\b",
    r"\b(?:mother|father|mom|dad)\s+is\b",
    r"\b(?:son|daughter|child)\s+is\b",
    r"\b(?:brother|sister|sibling)\s+is\b",
    # Nationality
    r"\bnationality\b",
    r"\bcitizen(?:ship)?\b",
    r"\bethnicity\b",
    r"\bheritage\b",
) + patterns(r"\b[Cc]alled\s+[A-Z]", flags=0)

TEMPORARY_PATTERNS = patterns(
    r"\bcurrently\b",
    r"\bright\s+now\b",
    r"\bat\s+the\s+moment\b",
    r"\bworking\s+on\b",
    r"\bthis\s+(?:week|month|quarter|year)\b",
    r"\btoday\b",
    r"\brecently\b",
    r"\bplanning\s+to\b",
    r"\bgoing\s+to\b",
    r"\bwill\s+be\b",
    r"\btemporarily\b",
    r"\bis\s+(?:reading|working|watching|learning|studying|doing|making|building|writing|planning|preparing)\b",
    r"\bcurrently\s+(?:reading|working|watching|learning|studying|doing|making|building|writing|planning)\b",
)

PERMANENT_PATTERNS = patterns(
    # Name
    r"\bname\s+is\b",
    r"\bis\s+named?\b",
    r"\bknown\s+as\b",
    r"\bgoes\s+by\b",
    # Birth and age
    r"\bborn\s+(?:on|in)\b",
    r"\bbirthday\s+(?:is|on)\b",
    r"\bbirthdate\b",
    r"\bdate\s+of\s+birth\b",
    r"\bbirth\s+date\b",
    r"\b\d+\s+years?\s+old\b",
    r"\bage\s+(?:is\s+)?\d+\b",
    # Education
    r"\bgraduated?\s+(?:from|at|in)\b",
    r"\bdegree\s+(?:in|from)\b",
    r"\b(?:bachelor|master|phd|doctorate|mba)\b",
    r"\bstudied\s+(?:at|in)\b",
    r"\buniversity\b",
    r"\bcollege\b",
    r"\balma\s+mater\b",
    r"\bmajored?\s+in\b",
    # Origin
    r"\bborn\s+in\b",
    r"\bgrew\s+up\s+in\b",
    r"\bnative\s+(?:of|to)\b",
    r"\bhometown\b",
    r"\boriginally\s+from\b",
    # Family
    r"\b(?:wife|husband|spouse|partner)\s+is\b",
    r"\b(?:mother|father|mom|dad)\s+is\b",
    r"\b(?:son|daughter|child)\s+is\b",
    r"\b(?:brother|sister|sibling)\s+is\b",
    r"\bmarried\s+to\b",
    r"\b(?:boyfriend|girlfriend)\s+is\b",
    # Nationality
    r"\bnationality\b",
    r"\bcitizen(?:ship)?\b",
    r"\bethnicity\b",
    r"\bheritage\b",
    # Profession
    r"\bis\s+a[n]?\s+(?:software|senior|lead|principal|staff|junior|associate|chief|head|director)",
    r"\bis\s+a[n]?\s+(?:engineer|developer|doctor|lawyer|architect|designer|manager|analyst|scientist)",
    r"\bworks?\s+as\s+a[n]?\b",
    r"\bworks?\s+at\b",
    r"\bemployed\s+(?:at|by)\b",
    r"\b(?:CEO|CTO|CFO|COO|VP|director|manager)\s+(?:of|at)\b",
    # Residence
    r"\blives?\s+in\b",
    r"\bbased\s+in\b",
    r"\bresides?\s+in\b",
    r"\blocated\s+in\b",
    # Skills
    r"\bspecializes?\s+in\b",
    r"\bexpert\s+in\b",
    r"\bexpertise\s+in\b",
    r"\bproficient\s+in\b",
    r"\bskilled\s+in\b",
    # Hobbies
    r"\benjoys?\s+(?:playing|doing|watching|reading|cooking|traveling|hiking|swimming|running)",
    r"\bloves?\s+(?:playing|doing|watching|reading|cooking|traveling|hiking|swimming|running)",
    r"\bpassionate\s+about\b",
    r"\bhobby\s+is\b",
    r"\binterested\s+in\b",
    # Pets
    r"\bhas\s+a\s+(?:cat|dog|pet|bird|fish)\b",
    r"\b(?:cat|dog|pet)\s+(?:is\s+)?named\b",
    r"\bowns?\s+a\s+(?:cat|dog|pet)\b",
) + patterns(r"\b[Cc]alled\s+[A-Z]", flags=0)

PERMANENCE_RULES: list[Rule[bool]] = [
    Rule("identity", True, IDENTITY_PATTERNS, priority=10),
    Rule("temporary", False, TEMPORARY_PATTERNS, priority=20),
    Rule("permanent", True, PERMANENT_PATTERNS, priority=30),
    Rule("user_prefixed", False, predicate=lambda text: text.lower().startswith("user"), priority=40),
    Rule("full_name_prefix", True, patterns(r"^[A-Z][a-z]+\s+[A-Z][a-z]+", flags=0), priority=50),
    Rule("named_prefix", True, patterns(r"^[A-Z][a-z]+(?:'s)?\s", flags=0), priority=60),
]


def classify_permanence(content: str) -> bool:
    """Return True when ``content`` is a static (permanent) fact."""
    return evaluate(PERMANENCE_RULES, content, default=False)


EVENT_INDICATORS = [
    "meeting", "appointment", "scheduled", "event", "deadline", "due",
    "tomorrow", "next week", "on monday", "on tuesday", "will be",
    "going to", "planning to", "booked", "reserved",
]

PREFERENCE_INDICATORS = [
    "prefer", "like", "love", "hate", "dislike", "enjoy", "favorite",
    "favourite", "want", "need", "usually", "always", "never",
    "rather", "instead of", "better than", "fan of", "into",
]


def _contains_any(indicators: list[str]):
    return lambda text: any(indicator in text.lower() for indicator in indicators)


KIND_RULES: list[Rule[FactKind]] = [
    # Birthdays and anniversaries recur; they are facts, not events
    Rule(
        "recurring_date",
        FactKind.FACT,
        patterns(
            r"\b(?:my\s+)?(?:birthday|anniversary|wedding\s+anniversary)\b",
            r"\bborn\s+on\b",
            r"\b(?:celebrates?|observes?)\s+(?:birthday|anniversary)\b",
        ),
        priority=10,
    ),
    Rule("event", FactKind.EVENT, predicate=_contains_any(EVENT_INDICATORS), priority=20),
    Rule("preference", FactKind.PREFERENCE, predicate=_contains_any(PREFERENCE_INDICATORS), priority=30),
]


def classify_kind(content: str) -> FactKind:
    """Classify ``content`` as a fact, preference or event."""
    return evaluate(KIND_RULES, content, default=FactKind.FACT)


EVENT_KEYWORDS = [
    "meeting", "appointment", "deadline", "exam", "interview", "flight",
    "reservation", "booking", "event", "conference", "call", "presentation",
    "due", "expires", "birthday", "anniversary", "schedule",
]

DEFAULT_EVENT_EXPIRY_DAYS = 7


def days_to_weekend(now: datetime) -> int:
    """Days until the coming Saturday; a full week when today is Saturday."""
    days = (5 - now.weekday()) % 7
    return days or 7


# (name, regex, fixed days or None, multiplier for the captured count)
TEMPORAL_PATTERNS: list[tuple[str, re.Pattern, int | None, int]] = [
    ("tomorrow", re.compile(r"\b(?:tomorrow|tmrw)\b", re.IGNORECASE), 1, 1),
    ("today", re.compile(r"\btoday\b", re.IGNORECASE), 0, 1),
    ("next_week", re.compile(r"\bnext\s+week\b", re.IGNORECASE), 7, 1),
    ("next_month", re.compile(r"\bnext\s+month\b", re.IGNORECASE), 30, 1),
    ("this_weekend", re.compile(r"\bthis\s+weekend\b", re.IGNORECASE), None, 0),
    ("in_days", re.compile(r"\bin\s+(\d+)\s+days?\b", re.IGNORECASE), None, 1),
    ("in_weeks", re.compile(r"\bin\s+(\d+)\s+weeks?\b", re.IGNORECASE), None, 7),
    ("in_months", re.compile(r"\bin\s+(\d+)\s+months?\b", re.IGNORECASE), None, 30),
]


def has_event_keyword(content: str) -> bool:
    lowered = content.lower()
    return any(keyword in lowered for keyword in EVENT_KEYWORDS)


def calculate_expiry(content: str, now: datetime | None = None) -> datetime | None:
    """
    Compute when an event-like fact expires.

    Facts without an event keyword never expire. With one, the first
    matching temporal pattern sets the offset; otherwise it is 7 days.
    """
    if not has_event_keyword(content):
        return None

    now = now or _utcnow()

    for name, regex, days, multiplier in TEMPORAL_PATTERNS:
        match = regex.search(content)
        if not match:
            continue
        if name == "this_weekend":
            return now + timedelta(days=days_to_weekend(now))
        if days is not None:
            return now + timedelta(days=days)
        return now + timedelta(days=int(match.group(1)) * multiplier)

    return now + timedelta(days=DEFAULT_EVENT_EXPIRY_DAYS)


def has_temporal_content(content: str) -> bool:
    """True when ``content`` has both an event keyword and a temporal marker."""
    if not has_event_keyword(content):
        return False
    return any(regex.search(content) for _, regex, _, _ in TEMPORAL_PATTERNS)
