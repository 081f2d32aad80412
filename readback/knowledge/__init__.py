"""
Read-only knowledge base consumed by the dialogue analyzer and error engine.

KnowledgeBase bundles the tables so a caller can swap in different reference
data without touching engine code; DEFAULT_KNOWLEDGE_BASE is used otherwise.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from readback.knowledge.phraseology import (
    NON_NATIVE_ERROR_PATTERNS,
    NON_STANDARD_PHRASES,
    NUMBER_PRONUNCIATION_ERRORS,
    NonNativePattern,
    PhraseCorrection,
)
from readback.knowledge.references import (
    FACILITIES,
    KNOWN_CALLSIGNS,
    SIDS,
    SPECIAL_SQUAWK_CODES,
    STARS,
    WAYPOINTS,
)
from readback.knowledge.requirements import (
    READBACK_REQUIREMENTS,
    REQUIRED_ELEMENTS_TEXT,
    SAFETY_CRITICAL_PATTERNS,
    ReadbackRequirement,
    SafetyCriticalPhrase,
)


@dataclass(frozen=True)
class KnowledgeBase:
    non_standard_phrases: List[PhraseCorrection] = field(default_factory=lambda: NON_STANDARD_PHRASES)
    number_pronunciation: List[PhraseCorrection] = field(default_factory=lambda: NUMBER_PRONUNCIATION_ERRORS)
    non_native_patterns: List[NonNativePattern] = field(default_factory=lambda: NON_NATIVE_ERROR_PATTERNS)
    readback_requirements: List[ReadbackRequirement] = field(default_factory=lambda: READBACK_REQUIREMENTS)
    safety_critical: List[SafetyCriticalPhrase] = field(default_factory=lambda: SAFETY_CRITICAL_PATTERNS)
    callsigns: List[str] = field(default_factory=lambda: KNOWN_CALLSIGNS)
    waypoints: List[str] = field(default_factory=lambda: WAYPOINTS)
    sids: List[str] = field(default_factory=lambda: SIDS)
    stars: List[str] = field(default_factory=lambda: STARS)
    special_squawks: Dict[str, str] = field(default_factory=lambda: SPECIAL_SQUAWK_CODES)


DEFAULT_KNOWLEDGE_BASE = KnowledgeBase()

__all__ = [
    "KnowledgeBase",
    "DEFAULT_KNOWLEDGE_BASE",
    "PhraseCorrection",
    "NonNativePattern",
    "ReadbackRequirement",
    "SafetyCriticalPhrase",
    "NON_STANDARD_PHRASES",
    "NUMBER_PRONUNCIATION_ERRORS",
    "NON_NATIVE_ERROR_PATTERNS",
    "READBACK_REQUIREMENTS",
    "REQUIRED_ELEMENTS_TEXT",
    "SAFETY_CRITICAL_PATTERNS",
    "KNOWN_CALLSIGNS",
    "FACILITIES",
    "WAYPOINTS",
    "SIDS",
    "STARS",
    "SPECIAL_SQUAWK_CODES",
]
