"""
Pronoun (coreference) resolution.

Replaces singular third-person pronouns with the most recently mentioned
named entity of matching gender, so that a sentence like
"Dr. Emily Chen leads the team. She published 3 papers." no longer
depends on its neighbour once split into atomic facts.

Gender comes from honorifics (Mrs/Ms/Miss, Mr) and curated first-name
lists. It is a heuristic: uncommon or unlisted names resolve as unknown
and only participate in singular "they/their" replacement.
"""

import logging
import re
from dataclasses import dataclass

from fact_memory.normalizer.text import is_common_word

logger = logging.getLogger(__name__)


FEMALE_NAMES = {
    "emily", "emma", "olivia", "ava", "sophia", "isabella", "mia", "charlotte", "amelia", "harper",
    "evelyn", "abigail", "elizabeth", "sofia", "ella", "grace", "chloe", "victoria", "lily", "hannah",
    "natalie", "zoe", "leah", "hazel", "aurora", "savannah", "audrey", "brooklyn", "bella", "claire",
    "skylar", "lucy", "anna", "caroline", "genesis", "aaliyah", "kennedy", "allison", "maya", "sarah",
    "madelyn", "adeline", "alexa", "ariana", "elena", "gabriella", "naomi", "alice", "sadie", "hailey",
    "eva", "emilia", "autumn", "quinn", "nevaeh", "piper", "ruby", "serenity", "willow", "everly",
    "cora", "kaylee", "lydia", "aubrey", "arianna", "eliana", "peyton", "melanie", "gianna", "isabelle",
    "julia", "valentina", "nova", "clara", "vivian", "reagan", "mackenzie", "maria", "mary", "patricia",
    "jennifer", "linda", "susan", "jessica", "karen", "nancy", "betty", "margaret", "sandra", "ashley",
    "dorothy", "kimberly", "helen", "samantha", "katherine", "christine", "deborah", "rachel", "laura",
    "carolyn", "janet", "catherine", "frances", "ann", "joyce", "diane", "amy", "kate", "katie", "beth",
    "liz", "lizzie", "meg", "maggie", "sue", "suzy", "anne", "annie", "jenny", "jess", "jessie", "kim",
    "kris", "kristy", "mandy", "molly", "penny", "sally", "sandy", "tina", "vicky", "wendy", "jo",
    "joan", "jane", "jean", "jill", "rose", "marie", "lisa", "lori", "tiffany", "amber",
}

MALE_NAMES = {
    "james", "john", "robert", "michael", "william", "david", "richard", "joseph", "thomas", "charles",
    "christopher", "daniel", "matthew", "anthony", "mark", "donald", "steven", "paul", "andrew",
    "joshua", "kenneth", "kevin", "brian", "george", "edward", "ronald", "timothy", "jason", "jeffrey",
    "ryan", "jacob", "gary", "nicholas", "eric", "jonathan", "stephen", "larry", "justin", "scott",
    "brandon", "raymond", "samuel", "benjamin", "gregory", "frank", "alexander", "patrick", "jack",
    "dennis", "jerry", "tyler", "aaron", "jose", "adam", "henry", "nathan", "douglas", "zachary",
    "peter", "kyle", "noah", "ethan", "jeremy", "walter", "christian", "keith", "roger", "terry",
    "austin", "sean", "gerald", "carl", "dylan", "harold", "jordan", "jesse", "bryan", "lawrence",
    "arthur", "gabriel", "bruce", "logan", "albert", "willie", "alan", "eugene", "russell", "vincent",
    "philip", "bobby", "johnny", "bradley", "liam", "mason", "oliver", "lucas", "aiden", "elijah",
    "sebastian", "mateo", "owen", "theodore", "levi", "tom", "tommy", "bob", "bill", "billy", "mike",
    "jim", "jimmy", "joe", "alex", "ben", "dan", "dave", "ed", "eddie", "fred", "greg", "harry", "ian",
    "jake", "jeff", "ken", "leo", "max", "nick", "pat", "pete", "phil", "ray", "rob", "ron", "sam",
    "steve", "ted", "tim", "tony", "vic", "will", "zach",
}

TITLES = {"dr", "mr", "mrs", "ms", "miss", "prof"}

_TITLE_NAME = re.compile(r"(?:Dr\.|Mr\.|Mrs\.|Ms\.|Miss|Prof\.)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)")
_MULTI_WORD_NAME = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)\b")
_SINGLE_NAME = re.compile(r"\b([A-Z][a-z]{2,})\b")
_LEADING_TITLE = re.compile(r"^(Dr|Mr|Mrs|Ms|Miss|Prof)\.?$", re.IGNORECASE)
_ABBREVIATION = re.compile(r"\b(Dr|Mr|Mrs|Ms|Miss|Prof|Jr|Sr|Inc|Ltd|Corp|vs|etc|e\.g|i\.e)\.", re.IGNORECASE)

_THEY_VERBS = (
    "is|has|was|does|wants|needs|likes|prefers|published|wrote|said|thinks|believes|works|leads|manages"
)
_SINGULAR_THEY = re.compile(r"\b[Tt]hey\s+(" + _THEY_VERBS + r")\b")
_THEIR_NOUN = re.compile(r"\b[Tt]heir\s+(paper|work|research|team|company|project|contribution)\b")


@dataclass
class NamedEntity:
    """A name found in text, with its offset and inferred gender."""

    name: str
    position: int
    gender: str = "unknown"

    @property
    def clean_name(self) -> str:
        """The name without a leading honorific."""
        parts = self.name.split()
        if _LEADING_TITLE.match(parts[0]):
            return " ".join(parts[1:])
        return self.name


@dataclass
class NormalizationContext:
    """Antecedents tracked while walking a text sentence by sentence."""

    last_female: str | None = None
    last_male: str | None = None
    last_entity: str | None = None


def detect_gender(name: str) -> str:
    """Infer "female", "male" or "unknown" from an honorific or first name."""
    parts = name.strip().split()
    if not parts:
        return "unknown"

    first_word = parts[0].lower().replace(".", "")
    first_name = re.sub(r"[^a-z]", "", first_word)
    if first_name in TITLES and len(parts) > 1:
        first_name = re.sub(r"[^a-z]", "", parts[1].lower())

    if first_word in ("mrs", "ms", "miss"):
        return "female"
    if first_word == "mr":
        return "male"

    if first_name in FEMALE_NAMES:
        return "female"
    if first_name in MALE_NAMES:
        return "male"
    return "unknown"


def extract_named_entities(text: str) -> list[NamedEntity]:
    """
    Find person-like names with their offsets.

    Three passes: honorific + name, runs of two or more capitalized words
    (skipping runs that start with a common word such as a weekday), and
    single capitalized words found in the first-name lists.
    """
    entities: list[NamedEntity] = []
    seen: set[str] = set()

    for match in _TITLE_NAME.finditer(text):
        full = match.group(0).strip()
        if full.lower() not in seen:
            seen.add(full.lower())
            entities.append(NamedEntity(full, match.start(), detect_gender(full)))

    for match in _MULTI_WORD_NAME.finditer(text):
        name = match.group(1).strip()
        if name.lower() not in seen and not is_common_word(name.split(" ")[0]):
            seen.add(name.lower())
            entities.append(NamedEntity(name, match.start(), detect_gender(name)))

    for match in _SINGLE_NAME.finditer(text):
        name = match.group(1)
        lower = name.lower()
        if lower not in seen and (lower in FEMALE_NAMES or lower in MALE_NAMES):
            seen.add(lower)
            entities.append(NamedEntity(name, match.start(), detect_gender(name)))

    # Stable: equal offsets keep discovery order
    return sorted(entities, key=lambda e: e.position)


def split_sentences(text: str) -> list[str]:
    """Split on terminal punctuation without breaking after abbreviations like "Dr."."""
    protected = _ABBREVIATION.sub(lambda m: m.group(1) + "\0", text)
    parts = re.split(r"(?<=[.!?])\s+", protected)
    return [part.replace("\0", ".") for part in parts]


class PronounResolver:
    """Sentence-by-sentence pronoun replacement."""

    def resolve(self, text: str) -> str:
        if not text:
            return text

        entities = extract_named_entities(text)
        if not entities:
            return text

        logger.debug(
            "Pronoun resolution: found entities "
            + ", ".join(f"{e.name}({e.gender})" for e in entities)
        )

        context = NormalizationContext()
        resolved = [self._resolve_sentence(s, entities, context) for s in split_sentences(text)]
        result = " ".join(resolved)

        if result != text:
            logger.debug(f"Pronouns resolved: {text[:200]!r} -> {result[:200]!r}")
        return result

    def _resolve_sentence(
        self,
        sentence: str,
        entities: list[NamedEntity],
        context: NormalizationContext,
    ) -> str:
        for entity in entities:
            clean = entity.clean_name
            if entity.name in sentence or (clean != entity.name and clean in sentence):
                tracked = clean or entity.name
                context.last_entity = tracked
                if entity.gender == "female":
                    context.last_female = tracked
                elif entity.gender == "male":
                    context.last_male = tracked

        resolved = sentence

        if context.last_female:
            name = context.last_female
            resolved = re.sub(r"\b[Ss]he\b", name, resolved)
            resolved = re.sub(r"\b[Hh]er\b(?!\s+(?:own|self))", name + "'s", resolved)
            resolved = re.sub(r"\b[Hh]ers\b", name + "'s", resolved)
            resolved = re.sub(r"\b[Hh]erself\b", name, resolved)

        if context.last_male:
            name = context.last_male
            resolved = re.sub(r"\b[Hh]e\b", name, resolved)
            resolved = re.sub(r"\b[Hh]is\b", name + "'s", resolved)
            resolved = re.sub(r"\b[Hh]im\b", name, resolved)
            resolved = re.sub(r"\b[Hh]imself\b", name, resolved)

        if context.last_entity:
            name = context.last_entity
            resolved = _SINGULAR_THEY.sub(lambda m: f"{name} {m.group(1)}", resolved)
            resolved = _THEIR_NOUN.sub(lambda m: f"{name}'s {m.group(1)}", resolved)

        return resolved


def resolve_pronouns(text: str) -> str:
    """Module-level convenience wrapper around PronounResolver."""
    return PronounResolver().resolve(text)
