"""
Full-dialogue analysis.

analyze_dialogue() parses a transcript, builds its conversation context and
scans every line against the knowledge base:

- non-standard phrases and number pronunciation,
- heading, flight level and squawk formats,
- non-native speaker patterns and missing pilot callsigns,
- approach/departure procedure wording (APP/DEP corpus only),
- incorrect, missing or partial readbacks from the exchange pairs.

Findings are rated in context (emergency, TCAS, flight phase) and rolled up
into safety metrics and a transcript risk level. Escalation from the issue
accumulator only annotates whyItMatters; it never changes a severity.
"""

import logging
import math
import re
from typing import List, Optional

from readback.knowledge import DEFAULT_KNOWLEDGE_BASE, KnowledgeBase, PhraseCorrection
from readback.knowledge.requirements import REQUIRED_ELEMENTS_TEXT
from readback.models import (
    ContextInfo,
    ConversationContext,
    CorpusType,
    DialogueAnalysis,
    ExchangeFeedback,
    ExchangePair,
    FindingCategory,
    FlightPhase,
    IssueAccumulator,
    IssueRecord,
    ParsedLine,
    PhraseologyFinding,
    ReadbackQuality,
    RiskLevel,
    SafetyCriticalDetection,
    SafetyImpact,
    SafetyMetrics,
    Severity,
    Speaker,
)
from readback.services.context import (
    PHASE_DESCRIPTIONS,
    build_context,
    similar_callsign_pairs,
    update_issue_accumulator,
)
from readback.services.pairing import IMPROPER_ACK
from readback.services.parser import parse
from readback.services.semantic import (
    generate_expected_readback,
    parse_structured_command,
    validate_readback_against_command,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Reference Text
# =============================================================================

CATEGORY_EXPLANATIONS = {
    "acknowledgment": (
        'The phrase is commonly heard but is not ICAO standard phraseology. '
        '"{standard}" is the internationally recognized way to confirm receipt of a message.'
    ),
    "instruction": (
        'The non-standard phrase may not be understood by pilots or controllers from other '
        'regions. "{standard}" is universally understood in aviation.'
    ),
    "clarification": (
        "ICAO prescribes specific phrases to say exactly what information is required, "
        "which prevents further confusion."
    ),
    "number": (
        "Numbers must be pronounced with the ICAO phonetic number system because several "
        "numbers sound alike over a noisy radio."
    ),
}

WHY_IT_MATTERS = {
    SafetyImpact.SAFETY: (
        "This directly impacts flight safety. Miscommunication could lead to loss of "
        "separation, runway incursions or altitude deviations."
    ),
    SafetyImpact.CLARITY: (
        "Clear communication prevents misunderstandings that need further clarification "
        "and waste radio time."
    ),
    SafetyImpact.EFFICIENCY: (
        "Standard phraseology is more concise and reduces radio congestion in busy airspace."
    ),
}

NUMBER_WHY_IT_MATTERS = (
    "Incorrect number pronunciation can cause altitude busts, heading deviations or "
    "frequency errors."
)

INSTRUCTION_FEEDBACK = {
    "altitude": (
        "altitude instructions are MANDATORY readback items. Failure to read back altitude "
        "has caused numerous altitude busts and near-misses."
    ),
    "heading": (
        "heading assignments must be read back with the turn direction. Missing direction "
        "can lead to 180 degree heading errors."
    ),
    "takeoff": (
        "takeoff clearances MUST be read back verbatim with runway. This is one of the most "
        "critical communications in aviation."
    ),
    "landing": (
        "landing clearances require full readback with runway. Runway confusion is a leading "
        "cause of runway incursions."
    ),
    "hold": (
        "hold short instructions are safety-critical. Failure to properly acknowledge can "
        "result in runway incursions."
    ),
    "squawk": "squawk codes must be read back to ensure correct radar identification.",
    "frequency": "frequency changes must be read back to prevent loss of communication.",
}
DEFAULT_INSTRUCTION_FEEDBACK = "this instruction requires proper acknowledgment for safety."

CLARIFICATION_PATTERNS = [
    re.compile(r"say\s+again", re.IGNORECASE),
    re.compile(r"confirm", re.IGNORECASE),
    re.compile(r"verify", re.IGNORECASE),
    re.compile(r"clarify", re.IGNORECASE),
    re.compile(r"\?\s*$", re.MULTILINE),
]

SAFETY_SCORE_PENALTIES = {"critical": 20, "high": 10, "medium": 5, "low": 2}

_ONE_STEP_UP = {Severity.LOW: Severity.MEDIUM, Severity.MEDIUM: Severity.HIGH}


def _finding_severity(severity: Severity) -> Severity:
    # Findings are rated low/medium/high; critical counts through safetyImpact
    return Severity.HIGH if severity == Severity.CRITICAL else severity


# =============================================================================
# Line Checks
# =============================================================================


def _phrase_finding(line: ParsedLine, phrase: PhraseCorrection, category: FindingCategory) -> PhraseologyFinding:
    explanation = CATEGORY_EXPLANATIONS.get(phrase.category, phrase.explanation).format(standard=phrase.standard)
    why = NUMBER_WHY_IT_MATTERS if category == FindingCategory.NUMBER else WHY_IT_MATTERS[phrase.safety_impact]
    return PhraseologyFinding(
        line=line.lineNumber,
        original=line.rawText,
        issue=phrase.explanation,
        suggestion=f'Use "{phrase.standard}" instead of "{phrase.incorrect}"',
        severity=_finding_severity(phrase.severity),
        category=category,
        safetyImpact=phrase.safety_impact,
        explanation=explanation,
        whyItMatters=why,
    )


def check_non_standard_phrases(line: ParsedLine, kb: KnowledgeBase) -> List[PhraseologyFinding]:
    findings = []
    for phrase in kb.non_standard_phrases:
        if phrase.pattern.search(line.text):
            category = (
                FindingCategory.LANGUAGE
                if phrase.category in ("acknowledgment", "instruction")
                else FindingCategory.PROCEDURE
            )
            findings.append(_phrase_finding(line, phrase, category))
    return findings


def check_number_pronunciation(line: ParsedLine, kb: KnowledgeBase) -> List[PhraseologyFinding]:
    return [
        _phrase_finding(line, phrase, FindingCategory.NUMBER)
        for phrase in kb.number_pronunciation
        if phrase.pattern.search(line.text)
    ]


def check_number_formats(line: ParsedLine) -> List[PhraseologyFinding]:
    """Heading digits and range, flight level length, squawk length and octal digits."""
    findings = []

    def add(issue, suggestion, severity, impact=SafetyImpact.CLARITY, why=None):
        findings.append(PhraseologyFinding(
            line=line.lineNumber,
            original=line.rawText,
            issue=issue,
            suggestion=suggestion,
            severity=severity,
            category=FindingCategory.NUMBER,
            safetyImpact=impact,
            whyItMatters=why,
        ))

    heading = re.search(r"heading\s+(\d+)", line.text, re.IGNORECASE)
    if heading:
        value = heading.group(1)
        if len(value) != 3:
            add(
                "Heading must be expressed as 3 digits",
                f'Use "heading {value.zfill(3)}" instead of "heading {value}"',
                Severity.LOW,
                why="A heading error can cause significant deviation from the intended flight path.",
            )
        if not 1 <= int(value) <= 360:
            add(
                "Invalid heading value - outside valid range",
                "Heading must be between 001 and 360",
                Severity.HIGH,
                SafetyImpact.SAFETY,
                "An invalid heading indicates a transmission error that must be corrected immediately.",
            )

    flight_level = re.search(r"\bFL\s*(\d+)", line.text, re.IGNORECASE)
    if flight_level and not 2 <= len(flight_level.group(1)) <= 3:
        add(
            "Flight level format incorrect",
            "Flight levels should be 2-3 digits (e.g., FL350, FL50)",
            Severity.LOW,
            why="Incorrect flight level format risks altitude assignment confusion.",
        )

    squawk = re.search(r"squawk\s+(\d+)", line.text, re.IGNORECASE)
    if squawk:
        code = squawk.group(1)
        if len(code) != 4:
            add(
                "Squawk code must be 4 digits",
                f'Use a 4-digit squawk code (0000-7777). Did you mean "squawk {code.zfill(4)}"?',
                Severity.MEDIUM,
                why="Incorrect squawk format prevents proper radar identification.",
            )
        elif re.search(r"[89]", code):
            add(
                "Invalid squawk code - contains digits 8 or 9",
                "Squawk codes use octal digits (0-7) only",
                Severity.HIGH,
                SafetyImpact.SAFETY,
                "An impossible squawk code must be corrected immediately for radar identification.",
            )
    return findings


def check_non_native_patterns(line: ParsedLine, kb: KnowledgeBase) -> List[PhraseologyFinding]:
    return [
        PhraseologyFinding(
            line=line.lineNumber,
            original=line.rawText,
            issue=pattern.issue,
            suggestion=pattern.correction,
            severity=_finding_severity(pattern.severity),
            category=FindingCategory.LANGUAGE,
            safetyImpact=SafetyImpact.CLARITY,
            explanation="Non-native speaker pronunciation pattern detected.",
        )
        for pattern in kb.non_native_patterns
        if pattern.pattern.search(line.text)
    ]


def check_pilot_callsign(line: ParsedLine, kb: KnowledgeBase) -> List[PhraseologyFinding]:
    if line.speaker != Speaker.PILOT or len(line.text) <= 15:
        return []
    upper = line.text.upper()
    if any(prefix in upper for prefix in kb.callsigns) or re.search(r"RP-?C?\d+", upper):
        return []
    return [PhraseologyFinding(
        line=line.lineNumber,
        original=line.rawText,
        issue="Missing callsign in pilot transmission",
        suggestion="Always include aircraft callsign at the end of readback",
        severity=Severity.MEDIUM,
        category=FindingCategory.STRUCTURE,
        safetyImpact=SafetyImpact.CLARITY,
    )]


# (pattern, unless, issue, suggestion, severity)
APP_DEP_PROCEDURE_RULES = [
    (
        r"descend\s+to\b", r"descend\s+(and\s+)?maintain",
        "Incomplete descent instruction",
        'Use "DESCEND AND MAINTAIN [altitude]" for standard phraseology',
        Severity.MEDIUM,
    ),
    (
        r"climb\s+to\b", r"climb\s+(and\s+)?maintain",
        "Incomplete climb instruction",
        'Use "CLIMB AND MAINTAIN [altitude]" for standard phraseology',
        Severity.MEDIUM,
    ),
    (
        r"turn\s+heading", r"turn\s+(left|right)\s+heading",
        "Missing turn direction",
        'Specify "TURN LEFT HEADING" or "TURN RIGHT HEADING"',
        Severity.MEDIUM,
    ),
    (
        r"contact\s+\w+.*\d{3}\s+point\s+\d", None,
        'Non-standard frequency pronunciation: "point" instead of "decimal"',
        'Use "DECIMAL" not "point" for frequencies',
        Severity.LOW,
    ),
    (
        r"cleared\s+(ils|rnav|vor|visual|ndb)", r"approach",
        "Incomplete approach clearance",
        'Include "APPROACH" after the approach type (e.g., "CLEARED ILS APPROACH")',
        Severity.LOW,
    ),
]


def check_app_dep_procedures(line: ParsedLine) -> List[PhraseologyFinding]:
    findings = []
    for pattern, unless, issue, suggestion, severity in APP_DEP_PROCEDURE_RULES:
        if not re.search(pattern, line.text, re.IGNORECASE):
            continue
        if unless and re.search(unless, line.text, re.IGNORECASE):
            continue
        findings.append(PhraseologyFinding(
            line=line.lineNumber,
            original=line.rawText,
            issue=issue,
            suggestion=suggestion,
            severity=severity,
            category=FindingCategory.PROCEDURE,
            safetyImpact=SafetyImpact.CLARITY,
        ))
    return findings


def scan_line(line: ParsedLine, corpus_type: CorpusType, kb: KnowledgeBase) -> List[PhraseologyFinding]:
    findings = (
        check_non_standard_phrases(line, kb)
        + check_number_pronunciation(line, kb)
        + check_number_formats(line)
        + check_non_native_patterns(line, kb)
        + check_pilot_callsign(line, kb)
    )
    if corpus_type == CorpusType.APP_DEP:
        findings += check_app_dep_procedures(line)
    return findings


# =============================================================================
# Context Adjustment
# =============================================================================


def _prefix(text: Optional[str], tag: str) -> str:
    return f"[{tag}] {text or ''}".strip()


def adjust_severity(
    finding: PhraseologyFinding,
    context: ConversationContext,
    corpus_type: CorpusType,
) -> PhraseologyFinding:
    """Re-rate a finding for the operational situation it occurred in."""
    severity = finding.severity
    explanation, why = finding.explanation, finding.whyItMatters
    issue = finding.issue

    if context.emergencyDeclared:
        severity = _ONE_STEP_UP.get(severity, severity)
        why = f"EMERGENCY CONTEXT: {why or 'Critical attention required during emergency.'}"

    if (
        context.tcasActive
        and finding.category == FindingCategory.NUMBER
        and re.search(r"altitude|flight\s+level|FL", issue, re.IGNORECASE)
    ):
        severity = Severity.HIGH
        why = f"TCAS ACTIVE: {why or 'Altitude accuracy is critical during TCAS RA.'}"

    phase = context.flightPhase
    if phase in (FlightPhase.APPROACH, FlightPhase.LANDING) and finding.category in (
        FindingCategory.PROCEDURE,
        FindingCategory.STRUCTURE,
    ):
        if severity == Severity.LOW:
            severity = Severity.MEDIUM
        elif severity == Severity.MEDIUM and finding.safetyImpact == SafetyImpact.SAFETY:
            severity = Severity.HIGH
        explanation = _prefix(explanation, "APPROACH/LANDING PHASE")

    if phase == FlightPhase.DEPARTURE and re.search(r"altitude|heading|climb", issue, re.IGNORECASE):
        if severity == Severity.LOW:
            severity = Severity.MEDIUM
        explanation = _prefix(explanation, "DEPARTURE PHASE")

    on_ground = phase == FlightPhase.GROUND or corpus_type == CorpusType.RAMP
    if on_ground and re.search(r"runway|taxi|hold\s+short", issue, re.IGNORECASE):
        if severity == Severity.MEDIUM:
            severity = Severity.HIGH
        explanation = _prefix(explanation, "GROUND PHASE")

    return finding.model_copy(update={
        "severity": severity,
        "explanation": explanation,
        "whyItMatters": why,
    })


# =============================================================================
# Exchange Feedback
# =============================================================================


def exchange_issue(pair: ExchangePair) -> Optional[str]:
    kind = pair.instructionType.value
    if pair.readbackQuality == ReadbackQuality.MISSING:
        return f"No proper readback for {kind} instruction"
    if pair.readbackQuality == ReadbackQuality.PARTIAL:
        return f"Incomplete readback - missing elements for {kind}"
    if pair.readbackQuality == ReadbackQuality.INCORRECT:
        return f"CRITICAL: Incorrect readback for {kind} - values don't match"
    return None


def dynamic_feedback(pair: ExchangePair, phase: FlightPhase) -> str:
    """Feedback text for one exchange in its flight phase."""
    if pair.readbackQuality == ReadbackQuality.COMPLETE:
        return "Proper readback completed"

    if phase in (FlightPhase.APPROACH, FlightPhase.LANDING):
        feedback = "During approach/landing phase, "
    elif phase == FlightPhase.DEPARTURE:
        feedback = "During departure phase, "
    else:
        feedback = ""
    text = INSTRUCTION_FEEDBACK.get(pair.instructionType.value, DEFAULT_INSTRUCTION_FEEDBACK)
    feedback += text if feedback else text[0].upper() + text[1:]

    if pair.contextualSeverity == Severity.CRITICAL:
        feedback += " This is a CRITICAL issue in the current context."
    elif pair.contextualSeverity == Severity.HIGH:
        feedback += " This requires immediate attention."
    return feedback


def exchange_findings(context: ConversationContext) -> List[PhraseologyFinding]:
    """One finding per incorrect, missing (above low severity) or partial readback."""
    findings = []
    for pair in context.exchangePairs:
        quality = pair.readbackQuality
        if quality == ReadbackQuality.COMPLETE:
            continue
        if quality == ReadbackQuality.MISSING and pair.contextualSeverity == Severity.LOW:
            continue

        atc_text = pair.atcLine.text
        pilot_text = pair.pilotLine.text if pair.pilotLine else ""
        line = pair.pilotLine.lineNumber if pair.pilotLine else pair.atcLine.lineNumber
        original = pair.pilotLine.rawText if pair.pilotLine else "No response detected"
        expected = generate_expected_readback(atc_text, context.primaryCallsign)
        feedback = dynamic_feedback(pair, context.flightPhase)
        kind = pair.instructionType.value

        if quality == ReadbackQuality.INCORRECT:
            errors = validate_readback_against_command(parse_structured_command(atc_text), pilot_text)
            findings.append(PhraseologyFinding(
                line=line,
                original=original,
                issue=(
                    f"INCORRECT READBACK: {errors[0].description}"
                    if errors
                    else f"INCORRECT READBACK: {kind} values don't match ATC instruction"
                ),
                suggestion=f'Correct readback: "{expected}"',
                severity=Severity.HIGH,
                category=FindingCategory.SAFETY,
                safetyImpact=SafetyImpact.SAFETY,
                explanation=" ".join(e.description for e in errors) or None,
                whyItMatters=feedback,
            ))
        elif quality == ReadbackQuality.MISSING:
            ack = IMPROPER_ACK.search(pilot_text)
            findings.append(PhraseologyFinding(
                line=line,
                original=original,
                issue=(
                    f'"{ack.group(0).upper()}" is inadequate - missing {kind} readback'
                    if ack
                    else f"Missing readback for {kind} instruction"
                ),
                suggestion=f'Correct readback: "{expected}"',
                severity=_finding_severity(pair.contextualSeverity),
                category=FindingCategory.STRUCTURE,
                safetyImpact=(
                    SafetyImpact.SAFETY
                    if pair.contextualSeverity in (Severity.CRITICAL, Severity.HIGH)
                    else SafetyImpact.CLARITY
                ),
                explanation=feedback,
                whyItMatters=(
                    f"In the current {context.flightPhase.value} phase, proper readback of "
                    f"{kind} is essential for flight safety."
                ),
            ))
        else:
            required = REQUIRED_ELEMENTS_TEXT.get(kind, "all instruction elements + callsign")
            findings.append(PhraseologyFinding(
                line=line,
                original=original,
                issue=f"Incomplete readback for {kind}",
                suggestion=f'Complete readback: "{expected}"',
                severity=_finding_severity(pair.contextualSeverity),
                category=FindingCategory.STRUCTURE,
                safetyImpact=SafetyImpact.CLARITY,
                explanation=feedback,
                whyItMatters=f"Partial readbacks can lead to misunderstandings. Required elements: {required}",
            ))
    return findings


# =============================================================================
# Metrics
# =============================================================================


def count_exchanges(lines: List[ParsedLine]) -> int:
    """Speaker changes, halved and rounded up."""
    turns, last = 0, None
    for line in lines:
        if line.speaker != Speaker.UNKNOWN and line.speaker != last:
            turns += 1
            last = line.speaker
    return math.ceil(turns / 2)


def count_clarifications(text: str) -> int:
    return sum(len(pattern.findall(text)) for pattern in CLARIFICATION_PATTERNS)


def readback_completeness(pairs: List[ExchangePair]) -> float:
    """Percentage of complete readbacks; 100 with no instructions."""
    if not pairs:
        return 100.0
    complete = sum(1 for p in pairs if p.readbackQuality == ReadbackQuality.COMPLETE)
    return round(complete / len(pairs) * 100, 1)


def safety_metrics(
    lines: List[ParsedLine],
    findings: List[PhraseologyFinding],
    completeness: float,
    kb: KnowledgeBase,
) -> SafetyMetrics:
    detections = [
        SafetyCriticalDetection(
            line=line.lineNumber,
            text=line.rawText,
            type=phrase.severity.value,
            description=phrase.description,
        )
        for line in lines
        for phrase in kb.safety_critical
        if phrase.pattern.search(line.text)
    ]

    critical = sum(1 for f in findings if f.severity == Severity.HIGH and f.safetyImpact == SafetyImpact.SAFETY)
    high = sum(1 for f in findings if f.severity == Severity.HIGH)
    medium = sum(1 for f in findings if f.severity == Severity.MEDIUM)
    low = sum(1 for f in findings if f.severity == Severity.LOW)

    penalty = (
        critical * SAFETY_SCORE_PENALTIES["critical"]
        + high * SAFETY_SCORE_PENALTIES["high"]
        + medium * SAFETY_SCORE_PENALTIES["medium"]
        + low * SAFETY_SCORE_PENALTIES["low"]
    )
    return SafetyMetrics(
        criticalIssues=critical,
        highSeverityIssues=high,
        mediumSeverityIssues=medium,
        lowSeverityIssues=low,
        safetyCriticalPhrases=detections,
        overallSafetyScore=max(0, 100 - penalty),
        readbackCompleteness=completeness,
    )


def risk_level(findings: List[PhraseologyFinding], metrics: SafetyMetrics) -> RiskLevel:
    if metrics.criticalIssues > 0 or metrics.highSeverityIssues >= 5:
        return RiskLevel.HIGH
    if metrics.highSeverityIssues >= 2 or metrics.readbackCompleteness < 75 or len(findings) > 10:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def situational_factors(context: ConversationContext) -> List[str]:
    factors = []
    if context.emergencyDeclared:
        factors.append("EMERGENCY DECLARED - All communications are safety-critical")
    if context.tcasActive:
        factors.append("TCAS RA Active - Pilot must follow TCAS, not ATC")
    if context.flightPhase in (FlightPhase.APPROACH, FlightPhase.LANDING):
        factors.append("Critical flight phase - Extra attention to readbacks required")
    if context.flightPhase == FlightPhase.DEPARTURE:
        factors.append("Departure phase - Altitude and heading readbacks are critical")
    if len(context.detectedCallsigns) > 1:
        factors.append(
            f"Multiple callsigns detected ({len(context.detectedCallsigns)}) - Watch for callsign confusion"
        )
    for first, second in similar_callsign_pairs(context.detectedCallsigns):
        factors.append(f"Similar callsigns detected: {first} and {second} - High confusion risk")
    return factors


def build_context_info(context: ConversationContext) -> ContextInfo:
    exchanges = [
        ExchangeFeedback(
            atcInstruction=pair.atcLine.rawText[:80],
            pilotResponse=pair.pilotLine.rawText[:80] if pair.pilotLine else None,
            instructionType=pair.instructionType,
            readbackQuality=pair.readbackQuality,
            contextualSeverity=pair.contextualSeverity,
            issue=exchange_issue(pair),
            dynamicFeedback=dynamic_feedback(pair, context.flightPhase),
        )
        for pair in context.exchangePairs
    ]
    return ContextInfo(
        flightPhase=context.flightPhase,
        phaseDescription=PHASE_DESCRIPTIONS[context.flightPhase],
        detectedCallsign=context.primaryCallsign,
        exchangeAnalysis=exchanges,
        patternWarning=context.issueAccumulator.patternDetected,
        escalationLevel=context.issueAccumulator.escalationLevel,
        situationalFactors=situational_factors(context),
    )


# =============================================================================
# Entry Point
# =============================================================================


def analyze_dialogue(
    text: str,
    corpus_type: CorpusType = CorpusType.APP_DEP,
    kb: KnowledgeBase = DEFAULT_KNOWLEDGE_BASE,
) -> DialogueAnalysis:
    """
    Analyze a whole transcript.

    Args:
        text: Transcript in any supported quoting convention.
        corpus_type: APP/DEP enables the approach/departure procedure checks;
            RAMP rates runway and taxi findings as on the ground.
        kb: Reference tables to check against.

    Returns:
        DialogueAnalysis with context, findings, safety metrics and risk level.

    Raises:
        ValueError: If the text is blank.
    """
    if not text or not text.strip():
        raise ValueError("Transcript text is required")

    lines = parse(text)
    context = build_context(lines)

    findings: List[PhraseologyFinding] = []
    accumulator = IssueAccumulator()
    for line in lines:
        for finding in scan_line(line, corpus_type, kb):
            adjusted = adjust_severity(finding, context, corpus_type)
            accumulator = update_issue_accumulator(
                accumulator, IssueRecord(line=adjusted.line, severity=adjusted.severity)
            )
            if accumulator.escalationLevel >= 2 and accumulator.patternDetected:
                adjusted = adjusted.model_copy(update={
                    "whyItMatters": f"{adjusted.whyItMatters or ''}\n\n{accumulator.patternDetected}".strip()
                })
            findings.append(adjusted)
    findings.extend(exchange_findings(context))

    if accumulator.escalationLevel > context.issueAccumulator.escalationLevel:
        context.issueAccumulator = accumulator

    total_words = len(text.split())
    non_standard = sum(
        1 for f in findings if f.category in (FindingCategory.LANGUAGE, FindingCategory.PROCEDURE)
    )
    non_standard_freq = non_standard / total_words * 1000 if total_words else 0.0

    completeness = readback_completeness(context.exchangePairs)
    metrics = safety_metrics(lines, findings, completeness, kb)
    risk = risk_level(findings, metrics)

    logger.debug(
        f"Dialogue analyzed: {len(lines)} lines, {len(context.exchangePairs)} exchanges, "
        f"{len(findings)} findings, risk={risk.value}"
    )

    return DialogueAnalysis(
        corpusType=corpus_type,
        totalWords=total_words,
        totalExchanges=count_exchanges(lines),
        nonStandardFreq=round(non_standard_freq, 1),
        clarificationCount=count_clarifications(text),
        lines=lines,
        context=context,
        contextInfo=build_context_info(context),
        phraseologyFindings=findings,
        safetyMetrics=metrics,
        riskLevel=risk,
    )
