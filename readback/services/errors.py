"""
Weighted Error and Severity Engine

Scores one ATC/pilot exchange with the adaptive model's weights:

1. detect_phase_weighted: nine fine-grained phases, each a PatternRule with
   a base score; score = matched fraction x base score x phase weight.
2. extract_patterns_weighted: twenty instruction patterns on the ATC text,
   each carrying its current pattern weight.
3. compare_readback: every matched pattern's critical values (digits,
   left/right) must show up in the pilot text.
4. detect_errors: missing elements, digit transpositions, magnitude errors,
   direction errors, bare acknowledgments and missing callsigns.
5. overall_confidence and severity_rollup.

Everything here is a pure function of its arguments.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from readback.models import (
    DetectedError,
    ErrorType,
    ModelPhase,
    ModelWeights,
    Severity,
)
from readback.services.rules import PatternRule, best_match, rule
from readback.services.semantic import find_callsign


# =============================================================================
# Weighted Phase Detection
# =============================================================================

MODEL_PHASE_RULES: List[PatternRule] = [
    rule(ModelPhase.GROUND, r"pushback", r"start\s*up", r"clearance\s+delivery", r"gate", score=0.8),
    rule(ModelPhase.TAXI, r"taxi\s+(to|via)", r"hold\s+short", r"give\s+way", score=0.85),
    rule(
        ModelPhase.DEPARTURE,
        r"cleared\s+(for\s+)?take\s*off",
        r"line\s+up",
        r"runway\s+\d+.*cleared",
        r"departure",
        score=0.9,
    ),
    rule(ModelPhase.CLIMB, r"climb\s+(and\s+)?maintain", r"passing\s+\d", r"radar\s+contact", score=0.85),
    rule(ModelPhase.CRUISE, r"maintain\s+flight\s+level", r"cruise", r"direct\s+\w+", score=0.7),
    rule(ModelPhase.DESCENT, r"descend\s+(and\s+)?maintain", r"expect\s+\w+\s+arrival", score=0.85),
    rule(
        ModelPhase.APPROACH,
        r"cleared\s+\w+\s+approach",
        r"vectors?\s+(for|to)",
        r"intercept",
        r"localizer",
        score=0.9,
    ),
    rule(ModelPhase.LANDING, r"cleared\s+to\s+land", r"continue\s+approach", r"wind\s+\d+", score=0.95),
    rule(ModelPhase.GO_AROUND, r"go\s*around", r"missed\s+approach", r"pull\s+up", score=0.95),
]


def detect_phase_weighted(atc: str, pilot: str, phase_weights: Dict[str, float]) -> Tuple[ModelPhase, float]:
    """
    Pick the best scoring phase for an exchange.

    Returns:
        (phase, confidence); CRUISE with confidence 0 when nothing matches.
    """
    phase, score = best_match(
        MODEL_PHASE_RULES,
        f"{atc} {pilot}",
        ModelPhase.CRUISE,
        weight_for=lambda tag: phase_weights.get(tag.value, 1.0),
    )
    return phase, min(score, 1.0)


# =============================================================================
# Weighted Pattern Extraction
# =============================================================================

INSTRUCTION_PATTERNS: Dict[str, re.Pattern] = {
    name: re.compile(regex, re.IGNORECASE)
    for name, regex in (
        ("altitude_climb", r"climb\s+(?:and\s+)?maintain\s+(?:flight\s+level\s+)?(\d+)"),
        ("altitude_descend", r"descend\s+(?:and\s+)?maintain\s+(?:flight\s+level\s+)?(\d+)"),
        ("altitude_maintain", r"maintain\s+(?:flight\s+level\s+)?(\d+)"),
        ("flight_level", r"flight\s+level\s+(\d{2,3})"),
        ("heading_turn_left", r"turn\s+left\s+(?:heading\s+)?(\d{3})"),
        ("heading_turn_right", r"turn\s+right\s+(?:heading\s+)?(\d{3})"),
        ("heading_fly", r"fly\s+heading\s+(\d{3})"),
        ("runway_heading", r"runway\s+heading"),
        ("cleared_takeoff", r"cleared\s+(?:for\s+)?take\s*off"),
        ("cleared_landing", r"cleared\s+to\s+land"),
        ("cleared_approach", r"cleared\s+(\w+)\s+approach"),
        ("line_up_wait", r"line\s+up\s+(?:and\s+)?wait"),
        ("contact_frequency", r"contact\s+(\w+)\s+(\d{3}[\.,]\d{1,3})"),
        ("squawk_code", r"squawk\s+(\d{4})"),
        ("direct_to", r"direct\s+(?:to\s+)?(\w+)"),
        ("hold_short", r"hold\s+short\s+(?:of\s+)?runway"),
        ("taxi_to", r"taxi\s+(?:to\s+)?(\w+)"),
        ("go_around", r"go\s*around"),
        ("expedite", r"expedite"),
        ("immediate", r"immediate(?:ly)?"),
    )
}


@dataclass(frozen=True)
class PatternMatch:
    pattern: str
    weight: float
    match: str


def extract_patterns_weighted(atc: str, pattern_weights: Dict[str, float]) -> List[PatternMatch]:
    """Every instruction pattern found in the ATC text, in table order."""
    matches = []
    for name, regex in INSTRUCTION_PATTERNS.items():
        found = regex.search(atc)
        if found:
            matches.append(PatternMatch(name, pattern_weights.get(name, 1.0), found.group(0)))
    return matches


# =============================================================================
# Readback Comparison
# =============================================================================

_DIGIT_WORDS = {
    "zero": "0", "one": "1", "two": "2", "tree": "3", "three": "3",
    "four": "4", "fower": "4", "five": "5", "fife": "5", "six": "6",
    "seven": "7", "eight": "8", "niner": "9", "nine": "9",
}
_DIGIT_WORD = re.compile(r"\b(" + "|".join(_DIGIT_WORDS) + r")\b")


def normalize_numbers(text: str) -> str:
    """Lowercase and replace digit words; spacing between digits is kept."""
    return _DIGIT_WORD.sub(lambda m: _DIGIT_WORDS[m.group(1)], text.lower())


def critical_values(match: str) -> List[str]:
    """Digit runs and turn directions in a matched instruction fragment."""
    numbers = re.findall(r"\d+", match)
    directions = [d.lower() for d in re.findall(r"\b(left|right)\b", match, re.IGNORECASE)]
    return numbers + directions


@dataclass
class ReadbackComparison:
    is_complete: bool
    confidence: float
    missing_elements: List[str] = field(default_factory=list)
    differing_elements: List[str] = field(default_factory=list)


def compare_readback(pilot: str, patterns: Iterable[PatternMatch]) -> ReadbackComparison:
    """
    Weight-proportional share of ATC patterns the pilot read back.

    A pattern with critical values counts as read back when any of them
    appears in the normalized pilot text (digits may be spoken with gaps).
    A pattern without values counts when the pilot repeats the phrase.
    A pattern whose phrase is repeated with other values is differing, not
    missing.
    """
    normalized = normalize_numbers(pilot)
    compact = re.sub(r"(?<=\d)\s+(?=\d)", "", normalized)

    total, matched = 0.0, 0.0
    missing: List[str] = []
    differing: List[str] = []
    for found in patterns:
        total += found.weight
        values = critical_values(found.match)
        if values:
            present = any(v in normalized or v in compact for v in values)
        else:
            present = bool(INSTRUCTION_PATTERNS[found.pattern].search(pilot))
        if present:
            matched += found.weight
        elif values and INSTRUCTION_PATTERNS[found.pattern].search(compact):
            differing.append(found.pattern)
        else:
            missing.append(found.pattern)

    confidence = matched / total if total > 0 else 1.0
    return ReadbackComparison(
        is_complete=not missing and not differing,
        confidence=confidence,
        missing_elements=missing,
        differing_elements=differing,
    )


# =============================================================================
# Error Detection
# =============================================================================


def is_transposition(a: str, b: str) -> bool:
    """
    True for a local digit swap between two equal-length numbers.

    Exactly two positions differ, the digits are a true swap and the
    swapped positions are at most two apart.

    >>> is_transposition("2461", "2416")
    True
    >>> is_transposition("123", "321")
    True
    >>> is_transposition("1234", "4231")
    False
    """
    if len(a) != len(b) or len(a) < 2 or a == b:
        return False
    positions = [i for i in range(len(a)) if a[i] != b[i]]
    if len(positions) != 2:
        return False
    i, j = positions
    return a[i] == b[j] and a[j] == b[i] and j - i <= 2


def is_magnitude_error(a: str, b: str) -> bool:
    """
    True when one number is exactly 10x or 100x the other.

    A digit swap such as "010" and "100" is a transposition, never both.

    >>> is_magnitude_error("15000", "1500")
    True
    """
    try:
        first, second = int(a), int(b)
    except ValueError:
        return False
    if first == 0 or second == 0 or is_transposition(a, b):
        return False
    high, low = max(first, second), min(first, second)
    return high % low == 0 and high // low in (10, 100)


BARE_ACKNOWLEDGMENTS = {"roger", "wilco", "copy", "affirm"}
VALUE_MISMATCH_DESCRIPTION = "Read-back value differs from the instruction"


def detect_errors(
    atc: str,
    pilot: str,
    error_weights: Dict[str, float],
    comparison: ReadbackComparison,
    phase: ModelPhase,
) -> List[DetectedError]:
    """
    Rule-based error detection over one exchange.

    Args:
        atc: ATC instruction text.
        pilot: Pilot readback text.
        error_weights: Current ModelWeights.errorWeights.
        comparison: Result of compare_readback for the same exchange.
        phase: Detected model phase.

    Returns:
        Errors in detection order, each carrying its current weight.
    """
    errors: List[DetectedError] = []

    def weight(error_type: ErrorType) -> float:
        return error_weights.get(error_type.value, 1.0)

    missing_weight = weight(ErrorType.MISSING_ELEMENT)
    for missing in comparison.missing_elements:
        label = missing.replace("_", " ")
        errors.append(DetectedError(
            type=ErrorType.MISSING_ELEMENT,
            description=f"Missing {label} in readback",
            severity=Severity.HIGH if missing_weight > 1.1 else Severity.MEDIUM,
            confidence=0.9,
            weight=missing_weight,
            correction=f"Include {label} in your readback",
        ))

    atc_numbers = re.findall(r"\d+", atc)
    pilot_numbers = re.findall(r"\d+", pilot)
    for atc_number in atc_numbers:
        if len(atc_number) < 2:
            continue
        for pilot_number in pilot_numbers:
            if is_transposition(atc_number, pilot_number):
                errors.append(DetectedError(
                    type=ErrorType.TRANSPOSITION,
                    description=f"Digit transposition: {atc_number} read as {pilot_number}",
                    severity=Severity.CRITICAL,
                    confidence=0.9,
                    weight=weight(ErrorType.TRANSPOSITION),
                    correction=f"Correct value is {atc_number}",
                ))
            elif is_magnitude_error(atc_number, pilot_number):
                errors.append(DetectedError(
                    type=ErrorType.WRONG_VALUE,
                    description=f"Magnitude error: {atc_number} read as {pilot_number} (10x or 100x difference)",
                    severity=Severity.CRITICAL,
                    confidence=0.95,
                    weight=weight(ErrorType.WRONG_VALUE),
                    correction=f"Correct value is {atc_number} - verify you heard the correct number of digits",
                ))

    value_errors = any(e.type in (ErrorType.TRANSPOSITION, ErrorType.WRONG_VALUE) for e in errors)
    if comparison.differing_elements and not value_errors:
        labels = ", ".join(d.replace("_", " ") for d in comparison.differing_elements)
        errors.append(DetectedError(
            type=ErrorType.WRONG_VALUE,
            description=f"{VALUE_MISMATCH_DESCRIPTION}: {labels}",
            severity=Severity.HIGH,
            confidence=0.85,
            weight=weight(ErrorType.WRONG_VALUE),
            correction="Read back the exact values given by ATC",
        ))

    atc_direction = re.search(r"\b(left|right)\b", atc, re.IGNORECASE)
    pilot_direction = re.search(r"\b(left|right)\b", pilot, re.IGNORECASE)
    if atc_direction and pilot_direction:
        expected, actual = atc_direction.group(1).lower(), pilot_direction.group(1).lower()
        if expected != actual:
            errors.append(DetectedError(
                type=ErrorType.WRONG_DIRECTION,
                description=f"Direction error: {expected} vs {actual}",
                severity=Severity.CRITICAL,
                confidence=0.95,
                weight=weight(ErrorType.WRONG_DIRECTION),
                correction=f"Correct direction is {expected}",
            ))

    if pilot.strip().lower() in BARE_ACKNOWLEDGMENTS:
        errors.append(DetectedError(
            type=ErrorType.INCOMPLETE_READBACK,
            description="Readback is incomplete - critical instructions must be read back fully",
            severity=Severity.HIGH if phase in (ModelPhase.APPROACH, ModelPhase.DEPARTURE) else Severity.MEDIUM,
            confidence=0.95,
            weight=weight(ErrorType.INCOMPLETE_READBACK),
            correction="Read back all critical elements: altitude, heading, runway, squawk",
        ))

    if not find_callsign(pilot):
        errors.append(DetectedError(
            type=ErrorType.MISSING_CALLSIGN,
            description="Callsign may be missing from readback",
            severity=Severity.LOW,
            confidence=0.7,
            weight=weight(ErrorType.MISSING_CALLSIGN) * 0.8,
        ))

    return errors


# =============================================================================
# Confidence and Severity
# =============================================================================

CONFIDENCE_FACTOR_WEIGHTS = {"phase": 0.2, "readback": 0.5, "pattern": 0.3}
DEFAULT_FACTOR_WEIGHT = 0.2

SEVERITY_BASE_SCORES = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}

# (minimum score, bucket), checked top down
SEVERITY_BUCKETS = [
    (5.0, Severity.CRITICAL),
    (3.5, Severity.HIGH),
    (2.0, Severity.MEDIUM),
]


def overall_confidence(factors: Dict[str, float]) -> float:
    """Weighted mean of the confidence factors, clamped to [0, 1]."""
    total_weight, weighted_sum = 0.0, 0.0
    for name, value in factors.items():
        factor_weight = CONFIDENCE_FACTOR_WEIGHTS.get(name, DEFAULT_FACTOR_WEIGHT)
        weighted_sum += value * factor_weight
        total_weight += factor_weight
    if total_weight == 0:
        return 0.5
    return max(0.0, min(1.0, weighted_sum / total_weight))


def severity_score(error: DetectedError, phase: ModelPhase, weights: ModelWeights) -> float:
    severity_weight = getattr(weights.severityWeights, error.severity.value)
    phase_weight = weights.phaseWeights.get(phase.value, 1.0)
    return SEVERITY_BASE_SCORES[error.severity] * severity_weight * error.weight * phase_weight


def severity_rollup(errors: List[DetectedError], phase: ModelPhase, weights: ModelWeights) -> Severity:
    """Bucket the highest weighted error score; no errors means LOW."""
    if not errors:
        return Severity.LOW
    top = max(severity_score(error, phase, weights) for error in errors)
    for minimum, bucket in SEVERITY_BUCKETS:
        if top >= minimum:
            return bucket
    return Severity.LOW


def find_most_common(items: List[str]) -> Optional[str]:
    """Most frequent item; ties go to the one seen first."""
    counts: Dict[str, int] = {}
    for item in items:
        counts[item] = counts.get(item, 0) + 1
    if not counts:
        return None
    top = max(counts.values())
    return next(item for item, count in counts.items() if count == top)
