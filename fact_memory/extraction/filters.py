"""
Post-extraction filters.

Applied in order after the LLM (and again after the regex supplement):
validate -> deduplicate -> drop broken sentences -> drop noise, followed
by permanence reclassification.
"""

import logging
import re

from fact_memory.extraction.classifier import classify_permanence
from fact_memory.models.fact import FactKind
from fact_memory.models.results import ExtractedFact

logger = logging.getLogger(__name__)


MIN_CONFIDENCE_THRESHOLD = 0.1
LOW_CONFIDENCE_THRESHOLD = 0.6
MIN_FACT_LENGTH = 10
MIN_SUBSTANTIVE_WORDS = 2

PROGRAMMING_LANGUAGES = {
    "python", "java", "javascript", "typescript", "ruby", "rust", "go", "golang",
    "swift", "kotlin", "scala", "perl", "haskell", "elixir", "clojure", "erlang",
    "fortran", "cobol", "pascal", "lisp", "prolog", "lua", "julia", "dart", "groovy",
    "c++", "c#", "php", "r", "matlab", "sql", "html", "css", "bash", "shell",
    "objective-c", "assembly", "vb", "vba", "powershell", "f#", "ocaml", "nim",
    "zig", "crystal", "elm", "purescript", "reasonml", "solidity", "vyper",
}

TECHNICAL_TERMS = {
    "files", "file", "directory", "directories", "folder", "folders", "path", "paths",
    "src", "lib", "bin", "dist", "build", "node_modules", "packages", "modules",
    "config", "configs", "components", "services", "utils", "helpers", "models",
    "controllers", "routes", "views", "templates", "assets", "public", "private",
    "test", "tests", "spec", "specs", "__tests__", "fixtures", "mocks", "api",
    "endpoints", "schemas", "types", "interfaces", "classes", "functions", "methods",
    "database", "databases", "db", "server", "servers", "client", "clients",
    "backend", "frontend", "middleware", "plugins", "extensions", "addons",
    "scripts", "logs", "temp", "tmp", "cache", "vendor", "deps", "dependencies",
    "repos", "repository", "repositories", "codebase", "codebases", "branch", "branches",
    "commit", "commits", "merge", "merges", "pull", "push", "fetch", "clone",
    "main", "master", "develop", "staging", "production", "dev", "prod",
}

BROKEN_ENDINGS = (" and", " or", " the", " a", " an", " in", " on", " at", " to", " for", " with", " from")

CODE_FILE_EXTENSION = re.compile(
    r"\.(ts|tsx|js|jsx|py|rb|go|rs|java|cpp|c|h|hpp|css|scss|sass|less|html|xml|json|yaml|yml|md|txt"
    r"|sql|sh|bash|zsh|vue|svelte|astro|mjs|cjs|swift|kt|groovy|scala|pl|pm|ex|exs|erl|hrl|hs|ml|fs"
    r"|clj|cljs|r|rmd|jl|nim|zig|sol)(?:\s|$|,|;|:)",
    re.IGNORECASE,
)

CODE_PATH = re.compile(
    r"\b(src|lib|dist|build|node_modules|packages?|components?|services?|utils?|helpers?|models?"
    r"|controllers?|routes?|views?|templates?|assets?|public|private|tests?|specs?|__tests__|fixtures?"
    r"|mocks?|api|auth|core|common|shared|vendor|deps|scripts|logs|config|db|database)[/\\]",
    re.IGNORECASE,
)

CODE_SYNTAX = [
    re.compile(r"[{}].*[{}]"),
    re.compile(r"=>"),
    re.compile(r"\bfunction\s*\("),
    re.compile(r"\bconst\s+\w+\s*="),
    re.compile(r"\blet\s+\w+\s*="),
    re.compile(r"\bvar\s+\w+\s*="),
    re.compile(r"\bclass\s+\w+\s*[{<]"),
    re.compile(r"\binterface\s+\w+"),
    re.compile(r"\btype\s+\w+\s*="),
    re.compile(r"\bimport\s+.*\bfrom\b"),
    re.compile(r"\bexport\s+(?:default|const|function|class)"),
    re.compile(r"\brequire\s*\("),
    re.compile(r"\bmodule\.exports\b"),
    re.compile(r"\[\s*\.\.\."),
    re.compile(r"\{\s*\.\.\."),
    re.compile(r"\$\{.*\}"),
    re.compile(r"`[^`]*\$\{"),
    re.compile(r"\(\s*\)\s*=>"),
    re.compile(r"async\s+function"),
    re.compile(r"await\s+\w+"),
]

TECHNICAL_CONTEXT = [
    re.compile(r"\b(?:main|entry|config|source|primary)\s+files?\b", re.IGNORECASE),
    re.compile(r"\b(?:files?|paths?|directories?|folders?)\s*:", re.IGNORECASE),
    re.compile(r"\bimport(?:s|ed|ing)?\s+from\b", re.IGNORECASE),
    re.compile(r"\bexport(?:s|ed|ing)?\s+(?:default|const|function|class)\b", re.IGNORECASE),
    re.compile(r"\brequire\s*\(", re.IGNORECASE),
    re.compile(r"\bmodule\.exports\b", re.IGNORECASE),
    re.compile(r"\b(?:npm|yarn|pnpm)\s+(?:install|add|remove)\b", re.IGNORECASE),
    re.compile(r"\bgit\s+(?:clone|pull|push|commit|branch)\b", re.IGNORECASE),
]

NOISE_PATTERNS = [
    # Greetings and small talk
    re.compile(r"^(hi|hello|hey|greetings)\b", re.IGNORECASE),
    re.compile(r"^how are you", re.IGNORECASE),
    re.compile(r"^nice to meet you", re.IGNORECASE),
    re.compile(r"^good (morning|afternoon|evening|night)", re.IGNORECASE),
    # Acknowledgments
    re.compile(r"^(ok|okay|sure|yes|no|yeah|nope|alright|got it)\b", re.IGNORECASE),
    re.compile(r"^(thanks|thank you|thx)\b", re.IGNORECASE),
    re.compile(r"^(you're welcome|no problem|np)\b", re.IGNORECASE),
    # Filler
    re.compile(r"^(well|so|um|uh|like)\b", re.IGNORECASE),
    re.compile(r"^I (see|understand|got it)\b", re.IGNORECASE),
    re.compile(r"^(that's|thats) (nice|cool|great|interesting)\b", re.IGNORECASE),
    # Questions
    re.compile(r"^(what|who|when|where|why|how|can you|could you|would you|do you|are you)\b", re.IGNORECASE),
    re.compile(r"\?$"),
    # Vague statements
    re.compile(r"^user (said|mentioned|stated|asked|asked about)\b", re.IGNORECASE),
    re.compile(r"^(something|someone|somewhere|sometime)\b", re.IGNORECASE),
    re.compile(r"^it is (good|bad|nice|interesting)\b", re.IGNORECASE),
]

_TECH_LOCATION = (
    r"(?:files?|directories?|folders?|paths?|src|lib|dist|build|config|modules?|packages?)"
)

NONSENSE_PATTERNS = [
    re.compile(
        r"\blives?\s+in\s+(?:files?|directories?|folders?|paths?|src|lib|dist|build|config|modules?|packages?"
        r"|components?|services?|utils?|code|data|api|endpoints?|database|server|client|backend|frontend"
        r"|scripts|logs|cache|vendor|deps|main|master|develop|staging|production)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\bworks?\s+at\s+(?:src|lib|dist|build|config|modules?|packages?|files?|directories?|folders?)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\bis\s+from\s+" + _TECH_LOCATION + r"\b", re.IGNORECASE),
    re.compile(r"\bbased\s+in\s+" + _TECH_LOCATION + r"\b", re.IGNORECASE),
    re.compile(r"\blocated\s+in\s+" + _TECH_LOCATION + r"\b", re.IGNORECASE),
    # Organizations do not own pets
    re.compile(
        r"^(?!user)[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\s+has\s+(?:a\s+)?"
        r"(?:cats?|dogs?|pets?|birds?|fish|hamsters?|rabbits?)\s+(?:named|called)",
        re.IGNORECASE,
    ),
]

STOP_WORDS = {
    "a", "an", "the", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "must", "shall", "can", "need", "dare",
    "to", "of", "in", "for", "on", "with", "at", "by", "from", "as",
    "into", "through", "during", "before", "after", "above", "below",
    "between", "under", "again", "further", "then", "once", "here",
    "there", "when", "where", "why", "how", "all", "each", "few",
    "more", "most", "other", "some", "such", "no", "nor", "not",
    "only", "own", "same", "so", "than", "too", "very", "just",
    "and", "but", "or", "if", "because", "until", "while", "that",
    "which", "who", "whom", "this", "these", "those", "am", "its",
    "user", "users", "i", "me", "my", "myself", "we", "our", "ours",
}


def normalize_content(content: str) -> str:
    """Lowercase, drop punctuation and squeeze whitespace."""
    normalized = re.sub(r"[^\w\s]", "", content.lower())
    return re.sub(r"\s+", " ", normalized).strip()


def is_valid(fact: ExtractedFact) -> bool:
    if not fact.content or not fact.content.strip():
        return False
    if fact.confidence < MIN_CONFIDENCE_THRESHOLD:
        return False
    return isinstance(fact.kind, FactKind)


def validate(facts: list[ExtractedFact]) -> list[ExtractedFact]:
    return [fact for fact in facts if is_valid(fact)]


def deduplicate(facts: list[ExtractedFact]) -> list[ExtractedFact]:
    """
    Drop exact normalized duplicates and substring-contained facts.

    When one normalized fact contains another, the longer one is kept.
    """
    unique: list[ExtractedFact] = []
    seen: list[str] = []

    for fact in facts:
        normalized = normalize_content(fact.content)
        if normalized in seen:
            continue

        is_duplicate = False
        for existing in list(seen):
            if existing in normalized or normalized in existing:
                if len(normalized) > len(existing):
                    index = seen.index(existing)
                    seen.pop(index)
                    unique.pop(index)
                else:
                    is_duplicate = True
                    break

        if not is_duplicate:
            seen.append(normalized)
            unique.append(fact)

    return unique


def _broken_reason(fact: ExtractedFact) -> str | None:
    original = fact.content.strip()
    content = original.lower()

    if content.endswith(BROKEN_ENDINGS):
        return "dangling ending"
    if CODE_PATH.search(original):
        return "code path"
    if CODE_FILE_EXTENSION.search(original):
        return "file extension"

    lives_in = re.search(r"lives?\s+in\s+(\w+)", content)
    if lives_in:
        place = lives_in.group(1)
        if place in PROGRAMMING_LANGUAGES:
            return "programming language as location"
        if place in TECHNICAL_TERMS:
            return "technical term as location"

    from_match = re.search(r"\bfrom\s+(\w+)$", content)
    if from_match and from_match.group(1) in PROGRAMMING_LANGUAGES:
        return "programming language as origin"

    if any(pattern.search(original) for pattern in TECHNICAL_CONTEXT):
        return "technical context"
    if any(pattern.search(original) for pattern in CODE_SYNTAX):
        return "code syntax"
    return None


def filter_broken_sentences(facts: list[ExtractedFact]) -> list[ExtractedFact]:
    """Drop incomplete sentences and code or documentation fragments."""
    kept = []
    for fact in facts:
        reason = _broken_reason(fact)
        if reason:
            logger.debug(f"Filtering {reason}: {fact.content!r}")
            continue
        kept.append(fact)
    return kept


def _is_noise(fact: ExtractedFact) -> bool:
    content = fact.content.lower().strip()

    if any(pattern.search(content) for pattern in NOISE_PATTERNS):
        return True

    if any(pattern.search(content) for pattern in NONSENSE_PATTERNS):
        logger.debug(f"Filtering nonsensical fact: {fact.content!r}")
        return True

    substantive = [
        word for word in (re.sub(r"[^\w]", "", w) for w in content.split())
        if len(word) > 2 and word not in STOP_WORDS
    ]
    if len(substantive) < MIN_SUBSTANTIVE_WORDS:
        return True

    if len(content) < MIN_FACT_LENGTH:
        return True

    # Low-confidence facts survive only when anchored to entities or time
    if fact.confidence < LOW_CONFIDENCE_THRESHOLD:
        if not fact.entities and fact.kind != FactKind.EVENT:
            return True

    return False


def filter_noise(facts: list[ExtractedFact]) -> list[ExtractedFact]:
    """Drop greetings, acknowledgments, questions and other low-value facts."""
    return [fact for fact in facts if not _is_noise(fact)]


def reclassify(facts: list[ExtractedFact]) -> list[ExtractedFact]:
    """Overwrite ``is_static`` with the deterministic permanence rules."""
    for fact in facts:
        is_static = classify_permanence(fact.content)
        if is_static != fact.is_static:
            logger.debug(
                f"Reclassified {fact.content!r} as {'static' if is_static else 'dynamic'}"
            )
        fact.is_static = is_static
    return facts


def apply_filters(facts: list[ExtractedFact]) -> list[ExtractedFact]:
    """Dedup, broken-sentence and noise filters, in that order."""
    return filter_noise(filter_broken_sentences(deduplicate(facts)))
