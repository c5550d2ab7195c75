"""
Ordered rule tables.

Every classification cascade in the engine (permanence, kind, property
signatures) is a list of rules evaluated in priority order; the first
rule that matches decides the outcome. Keeping the cascades as data makes
the precedence explicit and lets each rule be tested on its own.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Generic, Iterable, TypeVar

T = TypeVar("T")


def patterns(*sources: str, flags: int = re.IGNORECASE) -> tuple[re.Pattern, ...]:
    """Compile several regex sources with the same flags."""
    return tuple(re.compile(source, flags) for source in sources)


@dataclass(frozen=True)
class Rule(Generic[T]):
    """
    A named rule producing ``outcome`` when any of its patterns match,
    or when its predicate returns True.
    """

    name: str
    outcome: T
    regexes: tuple[re.Pattern, ...] = field(default_factory=tuple)
    predicate: Callable[[str], bool] | None = None
    priority: int = 0

    def matches(self, text: str) -> bool:
        if self.predicate is not None and self.predicate(text):
            return True
        return any(regex.search(text) for regex in self.regexes)


def ordered(rules: Iterable[Rule[T]]) -> list[Rule[T]]:
    """Sort by priority, keeping declaration order among equal priorities."""
    return sorted(rules, key=lambda rule: rule.priority)


def first_match(rules: Iterable[Rule[T]], text: str) -> Rule[T] | None:
    """Return the first rule (in priority order) that matches ``text``."""
    for rule in ordered(rules):
        if rule.matches(text):
            return rule
    return None


def evaluate(rules: Iterable[Rule[T]], text: str, default: T) -> T:
    """Outcome of the first matching rule, or ``default``."""
    rule = first_match(rules, text)
    return rule.outcome if rule is not None else default
