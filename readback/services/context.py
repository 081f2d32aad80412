"""
Context builder: flight phase, callsigns and emergency flags for a transcript.

build_context() derives the per-analysis ConversationContext from parsed
lines, then asks the pairer for exchange pairs and runs the issue
accumulator over them.

Phase detection uses PHASE_RULES, ordered landing > approach > departure >
ground > enroute; the first phase with any matching indicator wins, so the
more safety-critical phase takes priority when a transcript mentions several.
"""

import logging
import re
from collections import Counter
from typing import List, Optional, Tuple

from readback.core.config import get_settings
from readback.models import (
    ConversationContext,
    ExchangePair,
    FlightPhase,
    IssueAccumulator,
    IssueRecord,
    ParsedLine,
    ReadbackQuality,
)
from readback.services.pairing import pair
from readback.services.rules import PatternRule, first_match, rule

logger = logging.getLogger(__name__)


# =============================================================================
# Phase Table
# =============================================================================

PHASE_RULES: List[PatternRule] = [
    rule(
        FlightPhase.LANDING,
        r"cleared\s+(to\s+)?land",
        r"on\s+(short\s+)?final",
        r"over\s+the\s+threshold",
        r"touchdown",
    ),
    rule(
        FlightPhase.APPROACH,
        r"cleared\s+(ils|rnav|vor|visual|ndb)\s+approach",
        r"vectoring\s+for\s+(final|approach|ils|rnav)",
        r"expect\s+(ils|rnav|vor|visual)\s+approach",
        r"intercept\s+(the\s+)?localizer",
        r"establish(ed)?\s+on\s+(the\s+)?(ils|localizer|glideslope)",
        r"descend\s+(via|and\s+maintain)",
        r"contact\s+\w+\s+tower",
    ),
    rule(
        FlightPhase.DEPARTURE,
        r"cleared\s+(for\s+)?takeoff",
        r"line\s+up\s+and\s+wait",
        r"\w+\s+departure",
        r"initial\s+climb",
        r"passing\s+\d+.*climbing",
        r"contact\s+\w+\s+departure",
        r"airborne",
    ),
    rule(
        FlightPhase.GROUND,
        r"taxi\s+(to|via)",
        r"hold\s+short",
        r"cross\s+runway",
        r"pushback",
        r"startup",
        r"clearance\s+delivery",
        r"ground\s+control",
        r"at\s+gate",
        r"parking",
    ),
    rule(
        FlightPhase.ENROUTE,
        r"cruise|cruising",
        r"maintain\s+FL\s*\d{3}",
        r"direct\s+\w+",
        r"proceed\s+direct",
        r"resume\s+own\s+navigation",
        r"\d+\s+miles?\s+(from|to)",
    ),
]

PHASE_DESCRIPTIONS = {
    FlightPhase.GROUND: "Ground operations - taxi, pushback, or parking",
    FlightPhase.DEPARTURE: "Departure phase - takeoff, initial climb, or SID",
    FlightPhase.ENROUTE: "Enroute/cruise phase - level flight",
    FlightPhase.APPROACH: "Approach phase - vectors, descent, or approach clearance",
    FlightPhase.LANDING: "Landing phase - final approach or landing clearance",
    FlightPhase.UNKNOWN: "Phase not clearly identified from dialogue",
}


# =============================================================================
# Callsigns and Flags
# =============================================================================

CALLSIGN_PATTERNS = [
    re.compile(r"\b(PAL|CEB|APG|GAP|RPC|SRQ)\s*\d{2,4}\b", re.IGNORECASE),
    re.compile(r"\bRP-?C\d{3,5}\b", re.IGNORECASE),
    re.compile(r"\b[A-Z]{3}\s*\d{2,4}\b"),
]

EMERGENCY_PATTERN = re.compile(r"\b(mayday|pan\s+pan|emergency)\b", re.IGNORECASE)
TCAS_PATTERN = re.compile(r"\btcas\s*(ra|resolution)", re.IGNORECASE)

# Escalation thresholds: (minimum issues in window, level, pattern text)
ESCALATION_LEVELS: List[Tuple[int, int, Optional[str]]] = [
    (4, 3, "Multiple consecutive errors detected - systematic issue"),
    (3, 2, "Error pattern emerging - attention required"),
    (2, 1, None),
]


def detect_flight_phase(lines: List[ParsedLine]) -> FlightPhase:
    """Return the first phase in PHASE_RULES with an indicator in the transcript."""
    full_text = " ".join(line.text for line in lines)
    return first_match(PHASE_RULES, full_text, FlightPhase.UNKNOWN)


def extract_callsigns(lines: List[ParsedLine]) -> Tuple[List[str], Optional[str]]:
    """
    Collect normalized callsigns and pick the most frequent as primary.

    Every pattern scans every line, so a callsign matched by two patterns
    counts twice; ties go to the callsign seen first.

    Returns:
        (distinct callsigns in order of first appearance, primary callsign)
    """
    counts: Counter = Counter()
    for line in lines:
        for pattern in CALLSIGN_PATTERNS:
            for match in pattern.finditer(line.text):
                counts[re.sub(r"\s+", "", match.group(0).upper())] += 1

    if not counts:
        return [], None

    callsigns = list(counts)
    top = max(counts.values())
    primary = next(c for c in callsigns if counts[c] == top)
    return callsigns, primary


def are_similar_callsigns(first: str, second: str) -> bool:
    """
    True when two callsigns share the airline prefix and their numbers
    differ in at most one position (length may differ by one digit).

    >>> are_similar_callsigns("PAL456", "PAL457")
    True
    >>> are_similar_callsigns("PAL456", "CEB456")
    False
    """
    prefix_a, prefix_b = re.sub(r"\d", "", first), re.sub(r"\d", "", second)
    if prefix_a != prefix_b:
        return False

    num_a, num_b = re.sub(r"\D", "", first), re.sub(r"\D", "", second)
    if abs(len(num_a) - len(num_b)) > 1:
        return False

    differences = sum(
        1
        for i in range(max(len(num_a), len(num_b)))
        if (num_a[i] if i < len(num_a) else None) != (num_b[i] if i < len(num_b) else None)
    )
    return differences <= 1


def similar_callsign_pairs(callsigns: List[str]) -> List[Tuple[str, str]]:
    return [
        (a, b)
        for i, a in enumerate(callsigns)
        for b in callsigns[i + 1:]
        if are_similar_callsigns(a, b)
    ]


def detect_emergency(lines: List[ParsedLine]) -> bool:
    return any(EMERGENCY_PATTERN.search(line.text) for line in lines)


def detect_tcas(lines: List[ParsedLine]) -> bool:
    return any(TCAS_PATTERN.search(line.text) for line in lines)


# =============================================================================
# Issue Accumulator
# =============================================================================


def update_issue_accumulator(
    accumulator: IssueAccumulator,
    issue: IssueRecord,
    window: Optional[int] = None,
) -> IssueAccumulator:
    """
    Add an issue and recompute the escalation level.

    Issues more than `window` lines behind the new one are dropped first.
    The result is an annotation for the student; callers must not fold the
    escalation level into numeric severity.
    """
    if window is None:
        window = get_settings().issue_window

    recent = [i for i in accumulator.recentIssues if issue.line - i.line < window]
    recent.append(issue)

    level, pattern = 0, None
    for minimum, candidate_level, candidate_pattern in ESCALATION_LEVELS:
        if len(recent) >= minimum:
            level, pattern = candidate_level, candidate_pattern
            break

    return IssueAccumulator(recentIssues=recent, escalationLevel=level, patternDetected=pattern)


def accumulate_issues(pairs: List[ExchangePair], window: Optional[int] = None) -> IssueAccumulator:
    """Run the accumulator over every non-complete exchange pair in order."""
    accumulator = IssueAccumulator()
    for pair in pairs:
        if pair.readbackQuality == ReadbackQuality.COMPLETE:
            continue
        line = pair.pilotLine.lineNumber if pair.pilotLine else pair.atcLine.lineNumber
        accumulator = update_issue_accumulator(
            accumulator,
            IssueRecord(line=line, severity=pair.contextualSeverity),
            window,
        )
    return accumulator


# =============================================================================
# Build Context
# =============================================================================


def build_context(lines: List[ParsedLine]) -> ConversationContext:
    """
    Derive the conversation context, exchange pairs included.

    Args:
        lines: Output of parser.parse().

    Returns:
        A fresh ConversationContext owned by the caller for one analysis.
    """
    callsigns, primary = extract_callsigns(lines)
    context = ConversationContext(
        flightPhase=detect_flight_phase(lines),
        detectedCallsigns=callsigns,
        primaryCallsign=primary,
        emergencyDeclared=detect_emergency(lines),
        tcasActive=detect_tcas(lines),
    )

    pairs = pair(lines, context)
    context.exchangePairs = pairs
    context.issueAccumulator = accumulate_issues(pairs)

    logger.debug(
        f"Context: phase={context.flightPhase.value} callsigns={callsigns} "
        f"pairs={len(pairs)} escalation={context.issueAccumulator.escalationLevel}"
    )
    return context
