"""
Phraseology reference tables.

Non-standard phrases, ICAO number pronunciation rules and common non-native
speaker patterns. Each entry carries a compiled pattern so the dialogue
analyzer can scan a line without knowing what the table contains.
"""

import re
from dataclasses import dataclass
from typing import List, Pattern

from readback.models.enums import ErrorType, SafetyImpact, Severity


@dataclass(frozen=True)
class PhraseCorrection:
    """
    A non-standard phrase and its ICAO replacement.

    Attributes:
        pattern: Matches the non-standard usage.
        incorrect: The non-standard wording, for display.
        standard: The replacement wording.
        explanation: Why the replacement is required.
        severity: Intrinsic severity of using the non-standard wording.
        category: acknowledgment, instruction, clarification or number.
        safety_impact: What the wording puts at risk.
    """
    pattern: Pattern[str]
    incorrect: str
    standard: str
    explanation: str
    severity: Severity
    category: str
    safety_impact: SafetyImpact


@dataclass(frozen=True)
class NonNativePattern:
    """A pronunciation, grammar or word-order slip typical of non-native speakers."""
    pattern: Pattern[str]
    error_type: ErrorType
    severity: Severity
    issue: str
    correction: str


def _phrase(
    regex: str,
    incorrect: str,
    standard: str,
    explanation: str,
    severity: Severity = Severity.LOW,
    category: str = "acknowledgment",
    safety_impact: SafetyImpact = SafetyImpact.CLARITY,
) -> PhraseCorrection:
    return PhraseCorrection(
        pattern=re.compile(regex, re.IGNORECASE),
        incorrect=incorrect,
        standard=standard,
        explanation=explanation,
        severity=severity,
        category=category,
        safety_impact=safety_impact,
    )


# =============================================================================
# Non-Standard Phrases
# =============================================================================

NON_STANDARD_PHRASES: List[PhraseCorrection] = [
    _phrase(
        r"\bwith you\b", "with you", "on your frequency",
        "Non-standard initial contact phrase. State altitude or flight level on initial contact.",
    ),
    _phrase(
        r"\bchecking in\b", "checking in", "[callsign], [altitude]",
        "Non-standard initial contact. State callsign and altitude.",
    ),
    _phrase(
        r"\bany traffic\b", "any traffic", "traffic information",
        "Use the proper traffic advisory format of ICAO Doc 4444.",
        category="instruction",
    ),
    _phrase(
        r"\bgo ahead\b", "go ahead", "pass your message",
        "Standard phraseology for requesting a transmission.",
    ),
    _phrase(
        r"\bno joy\b", "no joy", "negative contact",
        "Military slang is not part of standard phraseology.",
    ),
    _phrase(
        r"\bhave a good one\b", "have a good one", "good day",
        "Professional phraseology is required for frequency changes.",
        safety_impact=SafetyImpact.EFFICIENCY,
    ),
    _phrase(
        r"\bsee ya\b", "see ya", "good day",
        "Professional phraseology is required for frequency changes.",
        safety_impact=SafetyImpact.EFFICIENCY,
    ),
    _phrase(
        r"\bback to you\b", "back to you", "good day",
        "Informal hand-off wording.",
        safety_impact=SafetyImpact.EFFICIENCY,
    ),
    _phrase(
        r"\bsay again all after\b", "say again all after", "say again",
        "Request a repetition of the specific portion using standard words.",
        category="clarification",
    ),
    _phrase(
        r"\btake off\b(?!.*cleared)", "take off", "departure",
        "'Take off' is reserved for the takeoff clearance itself; use 'departure' elsewhere.",
        severity=Severity.HIGH,
        category="instruction",
        safety_impact=SafetyImpact.SAFETY,
    ),
    _phrase(
        r"\b(one|three|four|five|six|seven|eight|nine|niner|zero)\s+to\s+"
        r"(one|two|three|four|five|six|seven|eight|nine|niner|zero)\b",
        "to", "two",
        "'To' between digits can be heard as 'two'.",
        severity=Severity.HIGH,
        category="number",
        safety_impact=SafetyImpact.SAFETY,
    ),
    _phrase(
        r"\b(one|two|three|five|six|seven|eight|nine|niner|zero)\s+for\s+"
        r"(one|two|three|four|five|six|seven|eight|nine|niner|zero)\b",
        "for", "four",
        "'For' between digits can be heard as 'four'.",
        severity=Severity.HIGH,
        category="number",
        safety_impact=SafetyImpact.SAFETY,
    ),
    _phrase(r"\bokay\b", "okay", "affirm", "Use 'affirm' or 'roger'."),
    _phrase(r"\byeah\b", "yeah", "affirm", "Use 'affirm'."),
    _phrase(r"\buh\s*huh\b", "uh huh", "affirm", "Use 'affirm'."),
    _phrase(r"\bcopy that\b", "copy that", "roger", "Use 'roger' to acknowledge receipt."),
    _phrase(r"\bstandby one\b", "standby one", "standby", "'Standby' needs no suffix."),
]


# =============================================================================
# Number Pronunciation
# =============================================================================

NUMBER_PRONUNCIATION_ERRORS: List[PhraseCorrection] = [
    _phrase(
        r"\bnine\b", "nine", "niner",
        "'Niner' prevents confusion with German 'nein' (no).",
        severity=Severity.MEDIUM,
        category="number",
        safety_impact=SafetyImpact.SAFETY,
    ),
    _phrase(
        r"\bthree\b", "three", "tree",
        "'Tree' is clearer over radio.",
        category="number",
    ),
    _phrase(
        r"\bfive\b", "five", "fife",
        "'Fife' prevents confusion with 'four' or 'nine'.",
        category="number",
    ),
    _phrase(
        r"\bthousand\b", "thousand", "tousand",
        "Phonetic pronunciation for clarity.",
        category="number",
    ),
    _phrase(
        r"\bdecimal\b", "decimal", "day-see-mal",
        "Phonetic pronunciation of the decimal point.",
        category="number",
    ),
]


# =============================================================================
# Non-Native Speaker Patterns
# =============================================================================


def _non_native(
    regex: str,
    error_type: ErrorType,
    severity: Severity,
    issue: str,
    correction: str,
    flags: int = re.IGNORECASE,
) -> NonNativePattern:
    return NonNativePattern(
        pattern=re.compile(regex, flags),
        error_type=error_type,
        severity=severity,
        issue=issue,
        correction=correction,
    )


_PRON = ErrorType.NON_NATIVE_PRONUNCIATION

NON_NATIVE_ERROR_PATTERNS: List[NonNativePattern] = [
    _non_native(r"\bsero\b", _PRON, Severity.LOW,
                'Non-standard pronunciation of "zero"', 'Pronounce as "ZEE-ro"'),
    _non_native(r"\bziro\b", _PRON, Severity.LOW,
                'Non-standard pronunciation of "zero" (short vowel)', 'Pronounce as "ZEE-ro" with a long "ee"'),
    _non_native(r"\bwan\b", _PRON, Severity.LOW,
                'Non-standard pronunciation of "one"', 'Pronounce as "WUN" with a clear "w"'),
    _non_native(r"\btee\b", _PRON, Severity.MEDIUM,
                'Dropped "th" sound in "three"', 'Pronounce as "TREE"'),
    _non_native(r"\bsree\b", _PRON, Severity.MEDIUM,
                '"S" substituted for "th" in "three"', 'Pronounce as "TREE"'),
    _non_native(r"\bpor\b", _PRON, Severity.MEDIUM,
                '"P" substituted for "f" in "four"', 'Pronounce as "FOW-er"'),
    _non_native(r"\bfo\b(?!\w)", _PRON, Severity.MEDIUM,
                'Shortened pronunciation of "four"', 'Pronounce as "FOW-er"'),
    _non_native(r"\bpive\b", _PRON, Severity.MEDIUM,
                '"P" substituted for "f" in "five"', 'Pronounce as "FIFE"'),
    _non_native(r"\bsicks\b", _PRON, Severity.LOW,
                'Extended "six" pronunciation', 'Pronounce as "SIX" with a short "i"'),
    _non_native(r"\bseben\b", _PRON, Severity.MEDIUM,
                '"B" substituted for "v" in "seven"', 'Pronounce as "SEV-en"'),
    _non_native(r"\bsewen\b", _PRON, Severity.MEDIUM,
                '"W" substituted for "v" in "seven"', 'Pronounce as "SEV-en"'),
    _non_native(r"\beyt\b", _PRON, Severity.LOW,
                'Non-standard pronunciation of "eight"', 'Pronounce as "AIT"'),
    _non_native(r"\bnain\b", _PRON, Severity.LOW,
                'Non-standard pronunciation of "nine"', 'Pronounce as "NINER"'),
    _non_native(r"\bclearing\s+for\b", ErrorType.NON_NATIVE_GRAMMAR, Severity.MEDIUM,
                'Incorrect tense: "clearing for" instead of "cleared for"', 'Use "cleared for"'),
    _non_native(r"\bwe\s+are\s+(climbing|descending|turning)\b", ErrorType.NON_NATIVE_GRAMMAR, Severity.LOW,
                'Verbose construction', 'Say "climbing", not "we are climbing"'),
    _non_native(r"\bplease\s+(climb|descend|turn|contact|squawk)\b", ErrorType.NON_NATIVE_GRAMMAR, Severity.LOW,
                'Politeness marker in an operational readback', 'Omit "please" in readbacks'),
    _non_native(r"\b(one|two|three|four|five|six|seven|eight|nine|niner|zero)\s+(heading|altitude|speed)\b",
                ErrorType.NON_NATIVE_WORD_ORDER, Severity.HIGH,
                'Number before parameter type (should be "heading 270", not "270 heading")',
                'Say the parameter type first, then the value'),
    _non_native(r"\brunway\s+\d{1,2}\s*(reft|leight)\b", _PRON, Severity.CRITICAL,
                'L/R confusion in runway designator', 'Practice a clear "LEFT" and "RIGHT"'),
    _non_native(r"\b(reft|leight)\s+heading\b", _PRON, Severity.HIGH,
                'L/R confusion in turn direction', 'Practice a clear "LEFT" and "RIGHT"'),
    _non_native(r"\bDEpart\b", ErrorType.NON_NATIVE_STRESS, Severity.LOW,
                'Wrong stress pattern on "departure"', 'Stress the second syllable: de-PAR-ture',
                flags=0),
]
