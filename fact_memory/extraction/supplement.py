"""
Deterministic regex extraction.

Two entry points:

- RegexSupplement: always runs after the LLM. It catches facts the model
  tends to drop (job titles, employers, ages, allergies, pets,
  relationships, diets, hobbies, family details, tech stack, numbers).
  Each candidate is skipped when its guard keywords already appear in a
  known fact. The guard is coarse and can skip a genuinely new fact.
- fallback_extraction: regex-only extraction used when the LLM call fails.

Keywords are matched case-insensitively; captured names, companies,
places and technologies must be capitalized.
"""

import logging
import re
from datetime import datetime
from typing import Iterable

from fact_memory.extraction.classifier import EVENT_KEYWORDS, calculate_expiry
from fact_memory.extraction.filters import apply_filters, reclassify
from fact_memory.models.fact import FactKind
from fact_memory.models.results import ExtractedFact, ExtractionResult
from fact_memory.normalizer.text import extract_entities

logger = logging.getLogger(__name__)


_TITLE_PREFIX = r"(?:senior|junior|lead|chief|principal|staff)?\s*"
_TRAILING_PREPOSITION = re.compile(r"\s+(?:at|in|for|with|from|on|of|and)$", re.IGNORECASE)

JOB_PATTERNS = [
    re.compile(r"(?i:i'm|i am)\s+(?i:a|an)\s+((?i:" + _TITLE_PREFIX + r"[a-z]+(?:\s+[a-z]+)?))"),
    re.compile(r"(?i:work(?:ing)?\s+as)\s+(?i:a\s+|an\s+)?((?i:" + _TITLE_PREFIX + r"[a-z]+(?:\s+[a-z]+){0,2}))"),
    re.compile(
        r"(?i:(?:my\s+)?(?:role|job|position|title|profession|occupation)\s+(?:is|as))\s+"
        r"(?i:a\s+|an\s+)?((?i:" + _TITLE_PREFIX + r"[a-z]+(?:\s+[a-z]+){0,2}))"
    ),
]
NON_TITLES = {"a", "an", "the", "at", "in", "for"}

COMPANY_PATTERNS = [
    re.compile(r"(?i:work(?:ing)?|employed)\s+(?i:at|for)\s+([A-Z][A-Za-z]+(?:\s+[A-Z][A-Za-z]+)?)"),
    re.compile(r"(?i:i'm|i am)\s+(?i:at|with)\s+([A-Z][A-Za-z]+)"),
]

LOCATION_PATTERN = re.compile(
    r"\b(?i:live|living|based|located|from|in)\s+(?i:in\s+)?([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)"
)
NON_LOCATIONS = {
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
    "January", "February", "March", "April", "May", "June", "July", "August",
    "September", "October", "November", "December", "The", "This", "That",
    # Programming languages
    "Python", "Java", "JavaScript", "TypeScript", "Ruby", "Rust", "Go", "Golang",
    "Swift", "Kotlin", "Scala", "Perl", "Haskell", "Elixir", "Clojure", "Erlang",
    "Fortran", "Cobol", "Pascal", "Lisp", "Prolog", "Smalltalk", "Lua", "Julia", "Dart", "Groovy",
    # Frameworks
    "React", "Angular", "Vue", "Django", "Flask", "Rails",
    "Spring", "Node", "Express", "FastAPI", "Laravel", "Symfony",
}

AGE_PATTERN = re.compile(r"(?:i'm|i am|aged?)\s+(\d{1,3})\s*(?:years?\s*old|y\.?o\.?)?", re.IGNORECASE)

ALLERGY_PATTERNS = [
    re.compile(
        r"(?:allergic\s+to|allergy\s+to|have\s+(?:a|an)?\s*(?:\w+\s+)?allergy)\s+(?:to\s+)?([a-z]+(?:\s+[a-z]+)?)",
        re.IGNORECASE,
    ),
    re.compile(r"([a-z]+)\s+allergy", re.IGNORECASE),
]

PET_TYPE_PATTERNS = [
    re.compile(
        r"(?i:have|own|got)\s+(?i:a|an|\d+)?\s*((?i:cat|dog|bird|fish|hamster|rabbit|guinea pig))(?i:s)?\s*"
        r"(?:(?i:named?)\s+([A-Z][a-z]+(?:\s+and\s+[A-Z][a-z]+)?))?"
    ),
    re.compile(r"(?i:my|our)\s+((?i:cat|dog|bird))(?i:s)?\s*(?:(?i:named?)\s+)?([A-Z][a-z]+)?"),
]

THIRD_PARTY_ROLE_PATTERNS = [
    # "John Smith (VP Engineering, Acme Corp)"
    re.compile(r"([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)\s*\(([^,)]+),\s*([^)]+)\)"),
    # "John Smith, VP Engineering at Acme Corp"
    re.compile(r"([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+),\s*([A-Za-z\s]+?)\s+(?:at|of|from)\s+([A-Z][A-Za-z\s]+)"),
]

_ROMANTIC = r"boyfriend|girlfriend|husband|wife|partner|fiancé|fiancée|fiance|fiancee"
_FAMILY = r"son|daughter|mother|father|brother|sister|mom|dad|parent"
RELATION_WORDS = set((_ROMANTIC + "|" + _FAMILY).split("|"))

RELATIONSHIP_PATTERNS = [
    re.compile(r"\b(?i:my)\s+((?i:" + _ROMANTIC + r"))\s+([A-Z][a-z]+)"),
    re.compile(r"\b(?i:my)\s+((?i:" + _FAMILY + r"))\s+([A-Z][a-z]+)"),
    re.compile(
        r"\b(?i:my)\s+((?i:boyfriend|girlfriend|husband|wife|partner|son|daughter|mother|father|brother|sister|mom|dad))"
        r"(?i:'?s?)\s+(?i:name\s+is|is\s+named|called)\s+([A-Z][a-z]+)"
    ),
    re.compile(
        r"\b(?i:i\s+have\s+a)\s+((?i:boyfriend|girlfriend|husband|wife|partner|brother|sister))"
        r"\s+(?i:named|called)\s+([A-Z][a-z]+)"
    ),
    # Reversed: "Mike is my boyfriend"
    re.compile(
        r"\b([A-Z][a-z]+)\s+(?i:is\s+my)\s+((?i:boyfriend|girlfriend|husband|wife|partner|fiancé|fiancée"
        r"|son|daughter|mother|father|brother|sister|mom|dad))\b"
    ),
]

DIET_PATTERNS = [
    re.compile(r"I(?:'m| am)\s+(vegetarian|vegan|pescatarian|flexitarian|fruitarian|raw vegan)", re.IGNORECASE),
    re.compile(r"I\s+(?:don't|do not|cannot|can't)\s+eat\s+(\w+(?:\s+\w+)?)", re.IGNORECASE),
    re.compile(r"I(?:'m| am)\s+on\s+(?:a\s+)?(\w+)\s+diet", re.IGNORECASE),
    re.compile(r"I\s+follow\s+(?:a\s+)?(\w+)\s+diet", re.IGNORECASE),
]

_PET = r"cat|dog|pet|bird|hamster|rabbit|fish"
PET_NAME_PATTERNS = [
    re.compile(r"\b(?i:our|my|a)\s+((?i:" + _PET + r"))\s+(?i:named|called)\s+([A-Z][a-z]+)"),
    re.compile(r"\b(?i:we|i)\s+(?i:have)\s+(?i:a|an)\s+((?i:" + _PET + r"))\s+(?i:named|called)\s+([A-Z][a-z]+)"),
    re.compile(r"\b(?i:my|our)\s+((?i:" + _PET + r"))\s+([A-Z][a-z]+)\b"),
    re.compile(
        r"\b(?i:two|three|\d+)\s+((?i:cats?|dogs?|pets?))\s+(?i:named|called)\s+"
        r"([A-Z][a-z]+(?:\s+and\s+[A-Z][a-z]+)*)"
    ),
]

THIRD_PARTY_WORK_PATTERN = re.compile(r"\b([A-Z][a-z]+)\s+(?i:works?)\s+(?i:at|for)\s+([A-Z][A-Za-z]+)")
PRONOUN_LIKE = {"User", "He", "She", "They", "Who", "Which", "That", "It", "This"}

ACTIVITIES = (
    "tennis|golf|soccer|football|basketball|baseball|swimming|running|jogging|cycling|biking|hiking|yoga"
    "|pilates|gym|weightlifting|boxing|martial arts|karate|judo|taekwondo|chess|poker|photography|painting"
    "|drawing|cooking|baking|gardening|reading|writing|knitting|sewing|woodworking|fishing|hunting|skiing"
    "|snowboarding|surfing|skateboarding|climbing|dancing|singing|piano|guitar|violin|drums|flute|cello"
)
_FREQUENCY = (
    r"every\s+(?:day|week|month|monday|tuesday|wednesday|thursday|friday|saturday|sunday)"
    r"|twice\s+a\s+week|once\s+a\s+week|on\s+weekends?|daily|weekly"
)

HOBBY_PATTERNS = [
    re.compile(r"\bi\s+(?:play|do|practice|enjoy|love)\s+(" + ACTIVITIES + r")\b", re.IGNORECASE),
    re.compile(r"\bi(?:'ve|\s+have)\s+been\s+(?:playing|doing|practicing|learning)\s+(" + ACTIVITIES + r")\b", re.IGNORECASE),
    re.compile(r"\bi(?:'m|\s+am)\s+(?:learning|studying|practicing)\s+(" + ACTIVITIES + r")\b", re.IGNORECASE),
]

FREQUENCY_PATTERNS = [
    # (pattern, activity group, frequency group)
    (re.compile(r"\bi\s+(?:play|do|practice)\s+(" + ACTIVITIES + r")\s+(" + _FREQUENCY + r")", re.IGNORECASE), 1, 2),
    (re.compile(
        r"(every\s+(?:day|week|month|monday|tuesday|wednesday|thursday|friday|saturday|sunday)|on\s+weekends?)"
        r"\s+i\s+(?:play|do|practice)\s+(" + ACTIVITIES + r")",
        re.IGNORECASE,
    ), 2, 1),
]

DURATION_PATTERNS = [
    re.compile(
        r"\bi(?:'ve|\s+have)\s+been\s+(?:playing|doing|practicing|learning)\s+(" + ACTIVITIES + r")\s+"
        r"(?:for\s+(\d+\s+(?:year|month|week|day)s?)|since\s+(\d{4}))",
        re.IGNORECASE,
    ),
    re.compile(
        r"\bi\s+started\s+(?:playing|doing|practicing|learning)\s+(" + ACTIVITIES + r")\s+"
        r"(\d+\s+(?:year|month|week|day)s?\s+ago)",
        re.IGNORECASE,
    ),
]

OCCUPATIONS = (
    "doctor|nurse|teacher|engineer|lawyer|accountant|manager|director|chef|pilot|architect|scientist"
    "|professor|pediatrician|surgeon|dentist|pharmacist|therapist|analyst|consultant|designer|developer"
    "|programmer|writer|artist|musician|actor|photographer|journalist|editor|marketer|salesperson|realtor"
    "|contractor|plumber|electrician|mechanic|carpenter|firefighter|police officer|paramedic|veterinarian"
)
FAMILY_OCCUPATION_PATTERNS = [
    re.compile(r"\b([A-Z][a-z]+)\s+(?i:is)\s+(?i:a|an)\s+((?i:" + OCCUPATIONS + r"))\b"),
    re.compile(r"\b([A-Z][a-z]+)\s+(?i:works\s+as)\s+(?i:a|an)\s+((?i:\w+(?:\s+\w+)?))"),
]
FAMILY_AGE_PATTERNS = [
    re.compile(r"\b([A-Z][a-z]+)\s+(?i:is)\s+(\d{1,3})\s*(?i:years?\s*old)?(?:\s|,|\.|$)"),
    re.compile(r"\b(\d{1,3})[-\s]?(?i:year)[-\s]?(?i:old)\s+(?i:son|daughter|child|kid|boy|girl)?\s*([A-Z][a-z]+)"),
]

REPO_PATTERNS = [
    re.compile(r"working\s+on\s+(?:the\s+)?(\w+[-\w]*)\s+repo(?:sitory)?", re.IGNORECASE),
    re.compile(r"working\s+on\s+(?:the\s+)?(\w+[-\w]*)\s+project", re.IGNORECASE),
    re.compile(r"(?:in|on)\s+(?:the\s+)?(\w+[-\w]*)\s+(?:repo|repository|codebase)", re.IGNORECASE),
]
REPO_SKIP_WORDS = {"the", "this", "that", "a", "an", "my", "our", "your"}

TECHNOLOGIES = (
    r"Node\.js|Express|PostgreSQL|Redis|MongoDB|React|Vue|Angular|Django|Flask|FastAPI|Spring|Laravel|Rails"
    r"|Next\.js|Nuxt|Svelte|Prisma|TypeORM|Sequelize|Mongoose|GraphQL|REST|gRPC|Docker|Kubernetes|AWS|GCP"
    r"|Azure|Terraform|Ansible|Jenkins|GitHub Actions|CircleCI|Travis|Webpack|Vite|Rollup|ESLint|Prettier"
    r"|Jest|Mocha|Pytest|JUnit|Cypress|Playwright|Selenium|TypeScript|JavaScript|Python|Java|Go|Rust|Ruby"
    r"|PHP|C\+\+|C#|Kotlin|Swift|Scala|Elixir|Haskell|MySQL|MariaDB|SQLite|Oracle|SQL Server|Cassandra"
    r"|DynamoDB|Elasticsearch|Kafka|RabbitMQ|NGINX|Apache|Caddy|Traefik"
)
TECH_PATTERN = re.compile(r"(?<![\w.])(" + TECHNOLOGIES + r")(?![\w])\s*(\d+(?:\.\d+)?(?:\.\d+)?)?")
STACK_LIST_PATTERN = re.compile(r"(?:stack|tech stack|using|technologies?):\s*([^\n]+)", re.IGNORECASE)
STACK_ITEM_PATTERN = re.compile(r"([\w.+#-]+?)\s*(\d+(?:\.\d+)?(?:\.\d+)?)?$")
STACK_SKIP_WORDS = {"and", "or", "with", "using", "the", "a", "an"}

BUG_PATTERNS = [
    re.compile(r"(?:bug|issue|error|problem):\s*([^.]+)", re.IGNORECASE),
    re.compile(
        r"(?:debugging|fixing|investigating)\s+(?:a|an|the)?\s*([^.]+(?:bug|issue|error|problem)[^.]*)",
        re.IGNORECASE,
    ),
    re.compile(r"(?:there'?s?\s+(?:a|an)?\s*)?(bug|issue|error)\s+(?:in|with|where)\s+([^.]+)", re.IGNORECASE),
]

_MONEY = r"(\d+(?:,\d{3})*(?:\.\d+)?[KMB]?)"
NUMERIC_PATTERNS = [
    (re.compile(r"\$" + _MONEY + r"\s*(?:budget|funding)", re.IGNORECASE), "The budget is ${}"),
    (re.compile(r"budget\s+(?:of|is|was)\s*\$" + _MONEY, re.IGNORECASE), "The budget is ${}"),
    (re.compile(r"(\d+)[-\s]person\s+team", re.IGNORECASE), "The team has {} people"),
    (re.compile(r"team\s+of\s+(\d+)", re.IGNORECASE), "The team has {} people"),
    (re.compile(r"(\d+)\s+team\s+members", re.IGNORECASE), "The team has {} members"),
    (re.compile(r"\$" + _MONEY + r"\s*(?:revenue|sales|profit)", re.IGNORECASE), "Revenue is ${}"),
    (re.compile(r"(?:revenue|sales|profit)\s+(?:of|is|was)\s*\$" + _MONEY, re.IGNORECASE), "Revenue is ${}"),
    (re.compile(r"(\d+(?:\.\d+)?%)\s*(?:growth|increase|decrease|reduction)", re.IGNORECASE), "Growth rate is {}"),
    (re.compile(r"(\d+(?:,\d{3})*)\s+employees", re.IGNORECASE), "Company has {} employees"),
    (re.compile(r"headcount\s+(?:of|is|was)\s*(\d+(?:,\d{3})*)", re.IGNORECASE), "Headcount is {}"),
]


class _KnownFacts:
    """Lowercased contents of the facts extracted so far, plus supplement output."""

    def __init__(self, existing: Iterable[ExtractedFact]):
        self.contents = [fact.content.lower() for fact in existing]
        self.added: list[ExtractedFact] = []

    def has(self, keywords: Iterable[str]) -> bool:
        lowered = [keyword.lower() for keyword in keywords]
        return any(keyword in content for content in self.contents for keyword in lowered)

    def any(self, predicate) -> bool:
        return any(predicate(content) for content in self.contents)

    def add(self, fact: ExtractedFact) -> None:
        logger.debug(f"Regex supplement added: {fact.content!r}")
        self.added.append(fact)
        self.contents.append(fact.content.lower())

    def add_if_missing(self, keywords: Iterable[str], fact: ExtractedFact) -> None:
        if not self.has(keywords):
            self.add(fact)


def _fact(content: str, is_static: bool, confidence: float, entities: list[str] | None = None,
          kind: FactKind = FactKind.FACT) -> ExtractedFact:
    return ExtractedFact(
        content=content,
        is_static=is_static,
        confidence=confidence,
        kind=kind,
        entities=entities or [],
    )


class RegexSupplement:
    """Adds regex-detected facts the LLM missed."""

    def supplement(
        self,
        content: str,
        existing: list[ExtractedFact],
        primary_person: str | None = None,
    ) -> list[ExtractedFact]:
        """
        Run every rule family over ``content``.

        Args:
            content: The normalized source text
            existing: Facts already extracted (used by the duplicate guards)
            primary_person: Name the text is about, if known

        Returns:
            Only the newly added facts
        """
        known = _KnownFacts(existing)
        person = primary_person or "User"
        is_static = bool(primary_person)

        self._jobs(content, known, person, is_static)
        self._companies(content, known, person, is_static)
        self._locations(content, known, person, is_static)
        self._age(content, known, person, is_static)
        self._allergies(content, known, person, is_static)
        self._pet_types(content, known, person, is_static)
        self._third_party_roles(content, known, person)
        self._relationships(content, known)
        self._diets(content, known)
        self._pet_names(content, known)
        self._third_party_work(content, known, person)
        self._hobbies(content, known)
        self._family_details(content, known, person)
        self._repos(content, known)
        self._tech_stack(content, known)
        self._bugs(content, known)
        self._numbers(content, known)

        return known.added

    def _jobs(self, content, known, person, is_static):
        for pattern in JOB_PATTERNS:
            for match in pattern.finditer(content):
                title = _TRAILING_PREPOSITION.sub("", match.group(1).strip()).strip()
                if len(title) <= 2 or title.lower() in NON_TITLES:
                    continue
                known.add_if_missing(
                    [title],
                    _fact(f"{person} is a {title}", is_static, 0.85, [person] if is_static else []),
                )

    def _companies(self, content, known, person, is_static):
        for pattern in COMPANY_PATTERNS:
            for match in pattern.finditer(content):
                company = match.group(1).strip()
                if len(company) > 1:
                    known.add_if_missing(
                        [company, "works at", "employed at"],
                        _fact(
                            f"{person} works at {company}",
                            is_static,
                            0.85,
                            [person, company] if is_static else [company],
                        ),
                    )

    def _locations(self, content, known, person, is_static):
        for match in LOCATION_PATTERN.finditer(content):
            location = match.group(1).strip()
            if len(location) > 2 and location not in NON_LOCATIONS:
                known.add_if_missing(
                    [location, "lives in", "from", "based in"],
                    _fact(
                        f"{person} lives in {location}",
                        is_static,
                        0.75,
                        [person, location] if is_static else [location],
                    ),
                )

    def _age(self, content, known, person, is_static):
        match = AGE_PATTERN.search(content)
        if match:
            age = match.group(1)
            known.add_if_missing(
                [age, "years old", "age"],
                _fact(f"{person} is {age} years old", is_static, 0.9, [person] if is_static else []),
            )

    def _allergies(self, content, known, person, is_static):
        for pattern in ALLERGY_PATTERNS:
            for match in pattern.finditer(content):
                allergen = match.group(1).strip()
                if len(allergen) > 2:
                    known.add_if_missing(
                        [allergen, "allergic", "allergy"],
                        _fact(f"{person} is allergic to {allergen}", is_static, 0.9, [person] if is_static else []),
                    )

    def _pet_types(self, content, known, person, is_static):
        for pattern in PET_TYPE_PATTERNS:
            for match in pattern.finditer(content):
                pet_type = match.group(1).lower()
                names = match.group(2) or ""
                text = f"{person} has {pet_type}s named {names}" if names else f"{person} has a {pet_type}"
                known.add_if_missing(
                    [pet_type, "pet"],
                    _fact(text, is_static, 0.85, [person] if is_static else []),
                )

    def _third_party_roles(self, content, known, person):
        for pattern in THIRD_PARTY_ROLE_PATTERNS:
            for match in pattern.finditer(content):
                name, role, org = (group.strip() for group in match.groups())
                if name and role and org and name != person:
                    known.add_if_missing(
                        [name, role],
                        _fact(f"{name} is {role} at {org}", True, 0.9, [name, org]),
                    )

    def _relationships(self, content, known):
        for pattern in RELATIONSHIP_PATTERNS:
            for match in pattern.finditer(content):
                first, second = match.group(1), match.group(2)
                if first[0].isupper() and first.lower() not in RELATION_WORDS:
                    name, relation = first.strip(), second.lower()
                else:
                    relation, name = first.lower(), second.strip()

                if not known.any(lambda c: f"{relation} is {name}".lower() in c):
                    known.add(_fact(f"User's {relation} is {name}", False, 0.9, [name]))

    def _diets(self, content, known):
        for pattern in DIET_PATTERNS:
            for match in pattern.finditer(content):
                diet = match.group(1).strip().lower()
                phrase = match.group(0).lower()
                if "don't eat" in phrase or "do not eat" in phrase:
                    known.add_if_missing(
                        [diet, "don't eat", "do not eat"],
                        _fact(f"User doesn't eat {diet}", False, 0.9, kind=FactKind.PREFERENCE),
                    )
                elif "diet" in phrase:
                    known.add_if_missing(
                        [diet, "diet"],
                        _fact(f"User follows a {diet} diet", False, 0.9, kind=FactKind.PREFERENCE),
                    )
                else:
                    known.add_if_missing([diet], _fact(f"User is {diet}", False, 0.9))

    def _pet_names(self, content, known):
        for pattern in PET_NAME_PATTERNS:
            for match in pattern.finditer(content):
                pet_type = re.sub(r"s$", "", match.group(1).lower())
                pet_name = match.group(2).strip()
                exact = f"{pet_type} named {pet_name}".lower()
                if not known.any(lambda c: exact in c or (pet_type in c and pet_name.lower() in c)):
                    known.add(_fact(f"User has a {pet_type} named {pet_name}", False, 0.9, [pet_name]))

    def _third_party_work(self, content, known, person):
        for match in THIRD_PARTY_WORK_PATTERN.finditer(content):
            name, company = match.group(1).strip(), match.group(2).strip()
            if name in PRONOUN_LIKE or name == person:
                continue
            exact = f"{name.lower()} works at {company.lower()}"
            if not known.any(
                lambda c: exact in c or (name.lower() in c and "works" in c and company.lower() in c)
            ):
                known.add(_fact(f"{name} works at {company}", True, 0.85, [name, company]))

    def _hobbies(self, content, known):
        for pattern in HOBBY_PATTERNS:
            for match in pattern.finditer(content):
                activity = match.group(1).strip().lower()
                if known.any(lambda c: activity in c):
                    continue
                phrase = match.group(0).lower()
                verb = "is learning" if "learning" in phrase or "studying" in phrase else "plays"
                known.add(_fact(f"User {verb} {activity}", False, 0.85))

        for pattern, activity_group, frequency_group in FREQUENCY_PATTERNS:
            for match in pattern.finditer(content):
                activity = match.group(activity_group).strip().lower()
                frequency = match.group(frequency_group).strip().lower()
                if not known.any(lambda c: activity in c and frequency in c):
                    known.add(_fact(f"User plays {activity} {frequency}", False, 0.85))

        for pattern in DURATION_PATTERNS:
            for match in pattern.finditer(content):
                activity = match.group(1).strip().lower()
                groups = match.groups()
                duration = next((g for g in groups[1:] if g), "").strip().lower()
                if not duration:
                    continue
                if known.any(lambda c: activity in c and (duration in c or "year" in c or "since" in c)):
                    continue
                text = f"since {duration}" if "since" in match.group(0).lower() else f"for {duration}"
                known.add(_fact(f"User has been learning {activity} {text}", False, 0.85))

    def _family_details(self, content, known, person):
        for pattern in FAMILY_OCCUPATION_PATTERNS:
            for match in pattern.finditer(content):
                name = match.group(1).strip()
                occupation = match.group(2).strip().lower()
                if name == person or name in PRONOUN_LIKE:
                    continue
                if not known.any(lambda c: name.lower() in c and occupation in c):
                    known.add(_fact(f"{name} is a {occupation}", True, 0.85, [name]))

        for pattern in FAMILY_AGE_PATTERNS:
            for match in pattern.finditer(content):
                if match.group(1).isdigit():
                    age, name = match.group(1), (match.group(2) or "").strip()
                else:
                    name, age = match.group(1).strip(), match.group(2)
                if not name or not age or name == person or name in PRONOUN_LIKE:
                    continue
                if not known.any(lambda c: name.lower() in c and age in c and "year" in c):
                    known.add(_fact(f"{name} is {age} years old", True, 0.85, [name]))

    def _repos(self, content, known):
        for pattern in REPO_PATTERNS:
            for match in pattern.finditer(content):
                repo = match.group(1).strip()
                if len(repo) > 1 and repo.lower() not in REPO_SKIP_WORDS:
                    known.add_if_missing(
                        [repo, "repo", "repository", "project"],
                        _fact(f"User is working on {repo} repo", False, 0.85),
                    )

    def _tech_stack(self, content, known):
        seen: set[str] = set()

        for match in TECH_PATTERN.finditer(content):
            tech = match.group(1).strip()
            version = (match.group(2) or "").strip()
            if tech.lower() in seen:
                continue
            seen.add(tech.lower())
            text = f"User uses {tech} {version}" if version else f"User uses {tech}"
            known.add_if_missing([tech.lower()], _fact(text, False, 0.85))

        for match in STACK_LIST_PATTERN.finditer(content):
            for item in re.split(r"[,;]", match.group(1).rstrip(". ")):
                item_match = STACK_ITEM_PATTERN.search(item.strip())
                if not item_match or not item_match.group(1):
                    continue
                tech = item_match.group(1).strip()
                version = (item_match.group(2) or "").strip()
                key = tech.lower()
                if len(tech) > 1 and key not in STACK_SKIP_WORDS and key not in seen:
                    seen.add(key)
                    text = f"User uses {tech} {version}" if version else f"User uses {tech}"
                    known.add_if_missing([key], _fact(text, False, 0.8))

    def _bugs(self, content, known):
        for pattern in BUG_PATTERNS:
            for match in pattern.finditer(content):
                groups = match.groups()
                description = (groups[1] if len(groups) > 1 and groups[1] else groups[0] or "").strip()
                if not 5 < len(description) < 200:
                    continue
                description = re.sub(r"^\s*(a|an|the)\s+", "", description, flags=re.IGNORECASE)
                description = re.sub(r"\s+", " ", description).strip()
                if len(description) > 5:
                    known.add_if_missing(
                        [description[:20].lower()],
                        _fact(f"User is dealing with: {description}", False, 0.75),
                    )

    def _numbers(self, content, known):
        for pattern, template in NUMERIC_PATTERNS:
            for match in pattern.finditer(content):
                value = match.group(1)
                text = template.replace("{}", value)
                keyword = " ".join(text.split(" ")[:3]).lower()
                known.add_if_missing([keyword, value], _fact(text, True, 0.85))


# Fallback extraction (no LLM)

_FALLBACK_NAME = re.compile(r"(?i:my name is|i'm|i am)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)")
_FALLBACK_WORK = re.compile(r"(?i:work|working)\s+(?i:at|for)\s+([A-Z][A-Za-z]+)")
_FALLBACK_PREFERENCES = [
    re.compile(r"(?:i )?(?:prefer|like|love|enjoy)\s+(.+?)(?:\.|,|$)", re.IGNORECASE | re.MULTILINE),
    re.compile(r"(?:my favorite|favourite)\s+(.+?)\s+is\s+(.+?)(?:\.|,|$)", re.IGNORECASE | re.MULTILINE),
]
_FALLBACK_TEMPORAL_WORDS = r"(?:tomorrow|next week|today|monday|tuesday|wednesday|thursday|friday)"


def fallback_extraction(content: str, now: datetime | None = None) -> ExtractionResult:
    """
    Regex-only extraction for when the LLM is unavailable or unusable.

    Finds a self-introduced name, an employer, preference statements and
    scheduled events, then runs every RegexSupplement rule family over the
    same text. The result goes through the same filters and permanence
    reclassification as LLM output. Confidence is lower than for LLM facts;
    a preference only survives the noise filter when it names an entity.
    """
    facts: list[ExtractedFact] = []
    entities = extract_entities(content)
    people = [entity.name for entity in entities if entity.type == "person"]
    primary_person = people[0] if people else None

    name_match = _FALLBACK_NAME.search(content)
    if name_match:
        name = name_match.group(1)
        facts.append(_fact(f"User's name is {name}", True, 0.7, [name]))

    work_match = _FALLBACK_WORK.search(content)
    if work_match:
        company = work_match.group(1)
        if primary_person:
            facts.append(_fact(f"{primary_person} works at {company}", True, 0.7, [primary_person, company]))
        else:
            facts.append(_fact(f"User works at {company}", False, 0.7, [company]))

    for pattern in _FALLBACK_PREFERENCES:
        for match in pattern.finditer(content):
            subject = match.group(1)
            if subject and 2 < len(subject) < 100:
                statement = re.sub(r"^i\s+", "", match.group(0), flags=re.IGNORECASE).strip()
                mentioned = [e.name for e in entities if e.type != "date" and e.name in statement]
                facts.append(_fact(f"User {statement}", False, 0.5, mentioned, kind=FactKind.PREFERENCE))

    for keyword in EVENT_KEYWORDS:
        event_pattern = re.compile(
            rf"\b{keyword}\b[^.]*{_FALLBACK_TEMPORAL_WORDS}[^.]*\.?", re.IGNORECASE
        )
        for match in event_pattern.finditer(content):
            phrase = match.group(0)
            if 10 < len(phrase) < 200:
                fact = _fact(f"User has {phrase.strip()}", False, 0.6, kind=FactKind.EVENT)
                fact.expires_at = calculate_expiry(phrase, now)
                facts.append(fact)

    supplemented = RegexSupplement().supplement(content, facts, primary_person)
    if supplemented:
        logger.debug(f"Fallback supplement added {len(supplemented)} facts")

    title = f"{primary_person} - Personal Information" if primary_person else "User Information"
    return ExtractionResult(
        facts=reclassify(apply_filters([*facts, *supplemented])),
        title=title,
        summary=content[:200],
        entities=entities,
    )
