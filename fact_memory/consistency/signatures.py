"""
Fact signatures used to decide whether two facts describe the same slot.

Two independent tables:

- PROPERTY_SIGNATURES drive the lexical contradiction check on the write
  path. They run on normalized content and map a match to a property key
  such as ``favorite_color``, ``budget`` or ``customer_count``.
- ENTITY_ATTRIBUTE_SIGNATURES drive the semantic supersede check. They
  run on raw content and yield an (entity, attribute) pair.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable

from fact_memory.extraction.filters import normalize_content

logger = logging.getLogger(__name__)

KeyFn = Callable[[re.Match], str]


def _fixed(key: str) -> KeyFn:
    return lambda match: key


@dataclass(frozen=True)
class PropertySignature:
    """Regex over normalized content plus a function naming the property."""

    pattern: re.Pattern
    key: KeyFn

    def property_of(self, normalized: str) -> str | None:
        match = self.pattern.search(normalized)
        return self.key(match) if match else None


def _signature(pattern: str, key: str | KeyFn) -> PropertySignature:
    return PropertySignature(re.compile(pattern), _fixed(key) if isinstance(key, str) else key)


# Evaluated in order; the first signature both facts match with the same key
# and a differing value decides.
PROPERTY_SIGNATURES: list[PropertySignature] = [
    _signature(r"favorite\s+(\w+)\s+is\s+(?:now\s+)?(\w+)", lambda m: f"favorite_{m.group(1)}"),
    _signature(r"lives?\s+in\s+(\w+)", "location"),
    _signature(r"works?\s+at\s+(\w+)", "workplace"),
    _signature(r"name\s+is\s+(\w+)", "name"),
    _signature(r"is\s+(\d+)\s+years?\s+old", "age"),
    # Revenue targets
    _signature(r"(?:revenue|sales|profit)\s+(?:target|goal)", "revenue_target"),
    _signature(r"(?:q[1-4]|quarterly|annual|yearly)\s+(?:revenue|sales|target|goal)", "revenue_target"),
    _signature(r"(\w+)\s+target\s+(?:is|was|of)\s+", lambda m: f"{m.group(1)}_target"),
    _signature(r"budget\s+(?:is|was|of)\s+\d", "budget"),
    _signature(r"(?:team\s+size|headcount)\s+(?:is|was|of)?\s*(\d+)", "team_size"),
    _signature(r"(?:salary|compensation|pay)\s+(?:is|was|of)?\s*\d", "salary"),
    # Counts
    _signature(
        r"customer\s+count\s+(?:is|was|of|updated\s+to|grew\s+to|expanded\s+to)?\s*(\d+)",
        "customer_count",
    ),
    _signature(r"(\d+)\s+customers?", "customer_count"),
    _signature(r"(\w+)\s+count\s+(?:is|was|of|updated\s+to)?\s*(\d+)", lambda m: f"{m.group(1)}_count"),
    _signature(r"(?:employee|staff|worker)\s+count\s+(?:is|was|of)?\s*(\d+)", "employee_count"),
    _signature(r"(\d+)\s+(?:employees?|staff|workers?)", "employee_count"),
]

UPDATE_WORDS = re.compile(
    r"\b(now|updated|changed|new|revised|current|grew|expanded|increased|decreased|became)\b"
)

# Numeric or monetary token on raw lowercased content: "$6.2m", "1,500", "42"
NUMERIC_TOKEN = re.compile(r"\$?\d[\d,]*(?:\.\d+)?[kmb]?\b")


def first_numeric_value(content: str) -> str | None:
    """First numeric token with "$" and thousands separators removed."""
    match = NUMERIC_TOKEN.search(content.lower())
    if not match:
        return None
    return match.group(0).replace("$", "").replace(",", "")


def detect_lexical_contradiction(new_content: str, existing_content: str) -> str | None:
    """
    Check whether ``new_content`` updates the property ``existing_content`` states.

    Returns:
        The contradicted property key, or None
    """
    new_normalized = normalize_content(new_content)
    existing_normalized = normalize_content(existing_content)
    is_update = bool(UPDATE_WORDS.search(new_normalized))

    for signature in PROPERTY_SIGNATURES:
        new_property = signature.property_of(new_normalized)
        if new_property is None:
            continue
        if signature.property_of(existing_normalized) != new_property:
            continue

        new_value = first_numeric_value(new_content)
        existing_value = first_numeric_value(existing_content)
        if new_value is not None and existing_value is not None and new_value != existing_value:
            return new_property
        if is_update:
            return new_property

    return None


@dataclass(frozen=True)
class EntityAttribute:
    """Who a fact is about and which of their properties it states."""

    entity: str
    attribute: str


@dataclass(frozen=True)
class AttributeSignature:
    pattern: re.Pattern
    attribute: KeyFn


def _attribute(pattern: str, attribute: str | KeyFn) -> AttributeSignature:
    return AttributeSignature(
        re.compile(pattern, re.IGNORECASE),
        _fixed(attribute) if isinstance(attribute, str) else attribute,
    )


ENTITY_ATTRIBUTE_SIGNATURES: list[AttributeSignature] = [
    _attribute(r"^(\w+(?:\s+\w+)?)\s+lives?\s+in\b", "location"),
    _attribute(r"^(\w+(?:\s+\w+)?)\s+works?\s+(?:at|for)\b", "workplace"),
    _attribute(r"^(\w+(?:\s+\w+)?)\s+is\s+(?:a|an)\s+\w+(?:\s+\w+)?\s*$", "job"),
    _attribute(r"^(\w+(?:'s)?)\s+favorite\s+(\w+)\s+is\b", lambda m: f"favorite_{m.group(2).lower()}"),
    _attribute(r"^(\w+(?:'s)?)\s+(?:location|address|residence)\s+is\b", "location"),
    _attribute(r"^(\w+)\s+prefers?\b", "preference"),
    _attribute(r"^(\w+(?:\s+\w+)?)\s+is\s+\d+\s+years?\s+old", "age"),
]


def extract_entity_attribute(content: str) -> EntityAttribute | None:
    """(entity, attribute) signature of ``content``, or None."""
    text = content.strip()
    for signature in ENTITY_ATTRIBUTE_SIGNATURES:
        match = signature.pattern.search(text)
        if match:
            entity = re.sub(r"'s$", "", match.group(1), flags=re.IGNORECASE).lower()
            return EntityAttribute(entity=entity, attribute=signature.attribute(match))
    return None
