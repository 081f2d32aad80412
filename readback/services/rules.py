"""
Data-driven rule tables.

Flight phases and instruction types are described as ordered lists of
PatternRule records and resolved by one of two reducers:

- first_match: the first rule in table order with any matching pattern wins.
- best_match: every rule is scored and the highest score wins.
"""

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Pattern, Sequence, Tuple, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class PatternRule:
    """
    A tag with the regex indicators that select it.

    Attributes:
        tag: Value returned when the rule wins.
        patterns: Compiled indicators; any match selects the rule.
        score: Base score used by best_match.
    """
    tag: object
    patterns: Tuple[Pattern[str], ...]
    score: float = 1.0

    def matches(self, text: str) -> bool:
        return any(p.search(text) for p in self.patterns)

    def match_fraction(self, text: str) -> float:
        """Share of this rule's patterns found in text."""
        if not self.patterns:
            return 0.0
        hits = sum(1 for p in self.patterns if p.search(text))
        return hits / len(self.patterns)


def rule(tag: object, *regexes: str, score: float = 1.0, flags: int = re.IGNORECASE) -> PatternRule:
    """Build a PatternRule from raw regex strings."""
    return PatternRule(tag=tag, patterns=tuple(re.compile(r, flags) for r in regexes), score=score)


def first_match(rules: Sequence[PatternRule], text: str, default: T) -> T:
    """Return the tag of the first rule with a matching indicator."""
    for candidate in rules:
        if candidate.matches(text):
            return candidate.tag
    return default


def best_match(
    rules: Iterable[PatternRule],
    text: str,
    default: T,
    weight_for: Optional[Callable[[object], float]] = None,
) -> Tuple[T, float]:
    """
    Score every rule and return the strictly best (tag, score).

    score = match_fraction * rule.score * weight_for(tag). Ties keep the
    earlier rule; when nothing scores above zero the default is returned
    with score 0.
    """
    best_tag, best_score = default, 0.0
    for candidate in rules:
        fraction = candidate.match_fraction(text)
        if fraction == 0.0:
            continue
        weight = weight_for(candidate.tag) if weight_for else 1.0
        score = fraction * candidate.score * weight
        if score > best_score:
            best_tag, best_score = candidate.tag, score
    return best_tag, best_score
