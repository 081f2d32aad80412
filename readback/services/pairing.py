"""
Exchange Pairer and Readback Evaluator

Matches every ATC instruction with the pilot response that follows it and
judges how well the response reads the instruction back.

Pipeline per ATC line:
1. classify_instruction() via the ordered INSTRUCTION_RULES table.
   'information' lines (traffic, weather, wind) need no readback and are
   skipped.
2. Look forward up to `pairing_window` lines for the next PILOT line.
3. evaluate_readback() runs, in order:
   - the improper-acknowledgment shortcut ("Roger", "copy" ... <= 4 words),
   - parameter confusion (value read back under the wrong keyword),
   - the per-type value comparison.
4. contextual_severity() rates the outcome from instruction type, quality,
   flight phase and emergency state.

All values are compared after spelled-number normalization, so
"one five zero" and "150" are the same altitude.
"""

import re
from typing import Callable, Dict, List, Optional, Tuple

from readback.core.config import get_settings
from readback.models import (
    ConversationContext,
    ExchangePair,
    FlightPhase,
    InstructionType,
    MismatchType,
    ParsedLine,
    ReadbackMismatch,
    ReadbackQuality,
    Severity,
    Speaker,
)
from readback.services.rules import PatternRule, first_match, rule


# =============================================================================
# Instruction Table
# =============================================================================

INSTRUCTION_RULES: List[PatternRule] = [
    rule(
        InstructionType.ALTITUDE,
        r"(climb|descend)\s+(and\s+)?maintain",
        r"(climb|descend)\s+(to\s+)?(flight\s+level|FL|\d)",
        r"maintain\s+(flight\s+level|FL|\d)",
    ),
    rule(
        InstructionType.HEADING,
        r"turn\s+(left|right)\s+(heading\s+)?\d",
        r"heading\s+\d",
        r"fly\s+heading\s+\d",
    ),
    rule(
        InstructionType.SPEED,
        r"(reduce|increase)\s+speed\s+(to\s+)?\d",
        r"maintain\s+(\d+\s*knots|speed)",
        r"speed\s+\d+\s*knots",
        r"\d+\s*knots",
    ),
    rule(InstructionType.ALTIMETER, r"altimeter\s+\d", r"qnh\s+\d"),
    rule(InstructionType.SQUAWK, r"squawk\s+\d"),
    rule(InstructionType.FREQUENCY, r"contact\s+\w+(\s+\w+)?\s+(on\s+)?\d", r"monitor\s+\w+"),
    rule(InstructionType.APPROACH, r"cleared\s+(ils|rnav|vor|visual|ndb)\s+approach"),
    rule(InstructionType.TAKEOFF, r"cleared\s+(for\s+)?take\s*off"),
    rule(InstructionType.LANDING, r"cleared\s+to\s+land"),
    rule(InstructionType.TAXI, r"taxi\s+(to|via)"),
    rule(InstructionType.HOLD, r"hold\s+(short|position|at)"),
    rule(InstructionType.LINEUP, r"line\s+up\s+and\s+wait"),
    rule(InstructionType.DIRECT, r"proceed\s+direct|direct\s+(to\s+)?\w+"),
    rule(InstructionType.INFORMATION, r"traffic\s+\d+\s+o'?clock|weather|wind\s+\d"),
]

# Instruction types and phases that raise the severity of a bad readback
CRITICAL_INSTRUCTIONS = {
    InstructionType.ALTITUDE,
    InstructionType.TAKEOFF,
    InstructionType.LANDING,
    InstructionType.LINEUP,
    InstructionType.HOLD,
}
CRITICAL_PHASES = {FlightPhase.APPROACH, FlightPhase.LANDING, FlightPhase.DEPARTURE}

# Phrase a pilot must repeat verbatim for clearance-type instructions
REQUIRED_PHRASES: Dict[InstructionType, re.Pattern] = {
    InstructionType.TAKEOFF: re.compile(r"cleared\s+(for\s+)?take\s*off", re.IGNORECASE),
    InstructionType.LANDING: re.compile(r"cleared\s+(to\s+)?land", re.IGNORECASE),
    InstructionType.LINEUP: re.compile(r"line\s*up\s*(and\s+)?wait", re.IGNORECASE),
    InstructionType.HOLD: re.compile(r"hold\s*short", re.IGNORECASE),
}

IMPROPER_ACK = re.compile(r"\b(roger|copied|copy|ok|okay|understood|got\s+it|wilco)\b", re.IGNORECASE)
IMPROPER_ACK_MAX_WORDS = 4


def classify_instruction(text: str) -> InstructionType:
    """Return the instruction type of an ATC line, OTHER when no rule fires."""
    return first_match(INSTRUCTION_RULES, text, InstructionType.OTHER)


# =============================================================================
# Value Extraction
# =============================================================================

NUMBER_WORDS = {
    "zero": "0", "one": "1", "two": "2", "three": "3", "tree": "3",
    "four": "4", "fower": "4", "five": "5", "fife": "5", "six": "6",
    "seven": "7", "eight": "8", "nine": "9", "niner": "9",
}
_NUMBER_WORD = re.compile(r"\b(" + "|".join(NUMBER_WORDS) + r")\b", re.IGNORECASE)
_DIGIT_GAP = re.compile(r"(?<=\d)\s+(?=\d)")


def normalize_spelled_numbers(text: str) -> str:
    """
    Lowercase text, turn ICAO digit words into digits and join digit runs.

    >>> normalize_spelled_numbers("Descend flight level one fife zero")
    'descend flight level 150'
    """
    normalized = _NUMBER_WORD.sub(lambda m: NUMBER_WORDS[m.group(1).lower()], text.lower())
    return _DIGIT_GAP.sub("", normalized)


def _first_group(text: str, *patterns: str) -> Optional[str]:
    for pattern in patterns:
        match = re.search(pattern, text, re.IGNORECASE)
        if match:
            return match.group(1)
    return None


def extract_altitude(text: str) -> Optional[str]:
    normalized = normalize_spelled_numbers(text)
    return _first_group(
        normalized,
        r"flight\s*level\s*(\d{2,3})",
        r"\bfl\s*(\d{2,3})",
        r"\b(\d{3,5})\b",
    )


def extract_heading(text: str) -> Optional[str]:
    """Heading as a zero-padded three digit string."""
    normalized = normalize_spelled_numbers(text)
    value = _first_group(
        normalized,
        r"heading\s*(\d{1,3})",
        r"turn\s+(?:left|right)\s+(?:heading\s+)?(\d{1,3})",
    )
    return value.zfill(3) if value else None


def extract_speed(text: str) -> Optional[str]:
    normalized = normalize_spelled_numbers(text)
    return _first_group(
        normalized,
        r"speed\s*(?:to\s+)?(\d{2,3})\s*(?:knots)?",
        r"(\d{2,3})\s*knots",
        r"(?:reduce|increase|maintain)\s+(?:speed\s+)?(?:to\s+)?(\d{2,3})",
    )


def extract_altimeter(text: str) -> Optional[str]:
    return _first_group(normalize_spelled_numbers(text), r"(?:altimeter|qnh)\s*(\d{4})")


def extract_squawk(text: str) -> Optional[str]:
    return _first_group(normalize_spelled_numbers(text), r"squawk\s*(\d{4})", r"\b(\d{4})\b")


def extract_frequency(text: str) -> Optional[str]:
    """Frequency as 'NNN.N[NN]'; spoken 'decimal' and 'point' count as the dot."""
    normalized = normalize_spelled_numbers(text)
    normalized = re.sub(r"(?<=\d)\s*(?:decimal|point|day-see-mal)\s*(?=\d)", ".", normalized)
    match = re.search(r"(\d{3})[.,\s](\d{1,3})\b", normalized)
    return f"{match.group(1)}.{match.group(2)}" if match else None


def extract_runway(text: str) -> Optional[str]:
    """Runway as number plus optional designator letter, e.g. '24L'."""
    match = re.search(
        r"runway\s*(\d{1,2})\s*(l|r|c|left|right|cent(?:er|re))?\b",
        normalize_spelled_numbers(text),
    )
    if not match:
        return None
    designator = (match.group(2) or "")[:1].upper()
    return f"{match.group(1)}{designator}"


# =============================================================================
# Parameter Confusion
# =============================================================================

_ALTITUDE_WORDS = re.compile(r"flight\s*level|climb|descend|altitude", re.IGNORECASE)


def detect_parameter_confusion(atc_text: str, pilot_text: str) -> Optional[ReadbackMismatch]:
    """
    Detect a value read back under the wrong parameter keyword.

    Three cases: heading read as altitude (matching digits), altitude read
    as heading, speed read as altitude.
    """
    atc = normalize_spelled_numbers(atc_text)
    pilot = normalize_spelled_numbers(pilot_text)

    if re.search(r"heading\s*\d{1,3}|turn\s+(?:left|right)", atc) and _ALTITUDE_WORDS.search(pilot):
        atc_heading = extract_heading(atc)
        pilot_altitude = extract_altitude(pilot)
        # Heading also read back under its own keyword is not a confusion
        read_back_as_heading = extract_heading(pilot) == atc_heading
        if (
            atc_heading
            and pilot_altitude
            and not read_back_as_heading
            and atc_heading == pilot_altitude[-3:].zfill(3)
        ):
            return ReadbackMismatch(
                type=MismatchType.PARAMETER_CONFUSION,
                parameter="heading",
                atcValue=atc_heading,
                pilotValue=pilot_altitude,
            )

    if re.search(r"(?:climb|descend)\s+(?:and\s+)?maintain|flight\s*level", atc):
        if "heading" in pilot and not re.search(
            r"climb|descend|maintain|altitude|flight\s*level", pilot
        ):
            atc_altitude = extract_altitude(atc)
            pilot_heading = extract_heading(pilot)
            if atc_altitude and pilot_heading and pilot_heading == atc_altitude[-3:].zfill(3):
                return ReadbackMismatch(
                    type=MismatchType.PARAMETER_CONFUSION,
                    parameter="altitude",
                    atcValue=atc_altitude,
                    pilotValue=pilot_heading,
                )

    if re.search(r"(?:reduce|increase|maintain)\s+speed|speed\s+\d|knots", atc):
        if _ALTITUDE_WORDS.search(pilot) and not re.search(r"speed|knots", pilot):
            atc_speed = extract_speed(atc)
            pilot_altitude = extract_altitude(pilot)
            if atc_speed and pilot_altitude:
                return ReadbackMismatch(
                    type=MismatchType.PARAMETER_CONFUSION,
                    parameter="speed",
                    atcValue=atc_speed,
                    pilotValue=pilot_altitude,
                )

    return None


# =============================================================================
# Per-Type Evaluation
# =============================================================================

Evaluation = Tuple[ReadbackQuality, List[ReadbackMismatch]]


def _missing(parameter: str, atc_value: Optional[str]) -> Evaluation:
    return ReadbackQuality.MISSING, [
        ReadbackMismatch(type=MismatchType.MISSING_ELEMENT, parameter=parameter, atcValue=atc_value)
    ]


def _wrong(parameter: str, atc_value: str, pilot_value: str) -> Evaluation:
    return ReadbackQuality.INCORRECT, [
        ReadbackMismatch(
            type=MismatchType.WRONG_VALUE,
            parameter=parameter,
            atcValue=atc_value,
            pilotValue=pilot_value,
        )
    ]


def _partial(parameter: str, atc_value: Optional[str]) -> Evaluation:
    return ReadbackQuality.PARTIAL, [
        ReadbackMismatch(type=MismatchType.MISSING_ELEMENT, parameter=parameter, atcValue=atc_value)
    ]


_COMPLETE: Evaluation = (ReadbackQuality.COMPLETE, [])

_DIGIT_WORD = r"(?:one|two|three|tree|four|fower|five|fife|six|seven|eight|nine|niner|zero)"


def _evaluate_altitude(atc: str, pilot: str) -> Evaluation:
    atc_value, pilot_value = extract_altitude(atc), extract_altitude(pilot)
    mentions_altitude = bool(
        re.search(r"\b(climb|descend|maintain|flight\s*level|altitude|fl|thousand|hundred)\b", pilot)
        or re.search(rf"\b{_DIGIT_WORD}\s+{_DIGIT_WORD}", pilot)
    )
    if not mentions_altitude and not pilot_value:
        return _missing("altitude", atc_value)
    if atc_value and pilot_value and atc_value != pilot_value:
        return _wrong("altitude", atc_value, pilot_value)

    action = re.search(r"\b(climb|descend)\b", atc)
    if action and not re.search(r"\b(climb|descend|climbing|descending)\b", pilot):
        return _partial("climb/descend action", action.group(1))
    return _COMPLETE


def _evaluate_heading(atc: str, pilot: str) -> Evaluation:
    atc_value, pilot_value = extract_heading(atc), extract_heading(pilot)
    mentions_heading = bool(
        re.search(r"\bheading\b", pilot)
        or re.search(rf"\b(left|right)\s+(heading|turn)?\s*({_DIGIT_WORD}|\d)", pilot)
    )
    if not mentions_heading and not pilot_value:
        return _missing("heading", atc_value)
    if atc_value and pilot_value and atc_value != pilot_value:
        return _wrong("heading", atc_value, pilot_value)

    atc_direction = re.search(r"\b(left|right)\b", atc)
    pilot_direction = re.search(r"\b(left|right)\b", pilot)
    if atc_direction and not pilot_direction:
        return _partial("turn direction", atc_direction.group(1))
    if atc_direction and pilot_direction and atc_direction.group(1) != pilot_direction.group(1):
        return _wrong("turn direction", atc_direction.group(1), pilot_direction.group(1))
    return _COMPLETE


def _evaluate_speed(atc: str, pilot: str) -> Evaluation:
    atc_value, pilot_value = extract_speed(atc), extract_speed(pilot)
    if not re.search(r"\b(speed|knots|reduce|increase)\b", pilot) and not pilot_value:
        return _missing("speed", atc_value)
    if atc_value and pilot_value and atc_value != pilot_value:
        return _wrong("speed", atc_value, pilot_value)
    return _COMPLETE


def _evaluate_altimeter(atc: str, pilot: str) -> Evaluation:
    atc_value, pilot_value = extract_altimeter(atc), extract_altimeter(pilot)
    if not re.search(r"\b(altimeter|qnh)\b", pilot) and not pilot_value:
        return _missing("altimeter", atc_value)
    if atc_value and pilot_value and atc_value != pilot_value:
        return _wrong("altimeter", atc_value, pilot_value)
    return _COMPLETE


def _evaluate_squawk(atc: str, pilot: str) -> Evaluation:
    atc_value, pilot_value = extract_squawk(atc), extract_squawk(pilot)
    if not pilot_value:
        return _missing("squawk", atc_value)
    if atc_value and atc_value != pilot_value:
        return _wrong("squawk", atc_value, pilot_value)
    return _COMPLETE


def _evaluate_frequency(atc: str, pilot: str) -> Evaluation:
    atc_value, pilot_value = extract_frequency(atc), extract_frequency(pilot)
    if not pilot_value:
        digits = re.search(r"\d{4,6}", normalize_spelled_numbers(pilot))
        if not digits:
            return _missing("frequency", atc_value)
        if atc_value and digits.group(0) != atc_value.replace(".", ""):
            return _wrong("frequency", atc_value, digits.group(0))
        return _COMPLETE
    if atc_value and atc_value.replace(".", "") != pilot_value.replace(".", ""):
        return _wrong("frequency", atc_value, pilot_value)
    return _COMPLETE


def _evaluate_clearance(instruction_type: InstructionType) -> Callable[[str, str], Evaluation]:
    """Clearances need their exact phrase plus a matching runway."""
    def evaluate(atc: str, pilot: str) -> Evaluation:
        if not REQUIRED_PHRASES[instruction_type].search(pilot):
            return _missing(instruction_type.value, None)
        atc_runway, pilot_runway = extract_runway(atc), extract_runway(pilot)
        if atc_runway and not pilot_runway:
            return _partial("runway", atc_runway)
        if atc_runway and pilot_runway and atc_runway != pilot_runway:
            return _wrong("runway", atc_runway, pilot_runway)
        return _COMPLETE
    return evaluate


def _evaluate_general(atc: str, pilot: str) -> Evaluation:
    """Unknown types: a non-trivial response counts as complete."""
    if len(pilot) < 10:
        return ReadbackQuality.PARTIAL, [
            ReadbackMismatch(type=MismatchType.INCOMPLETE, parameter="general")
        ]
    return _COMPLETE


EVALUATORS: Dict[InstructionType, Callable[[str, str], Evaluation]] = {
    InstructionType.ALTITUDE: _evaluate_altitude,
    InstructionType.HEADING: _evaluate_heading,
    InstructionType.SPEED: _evaluate_speed,
    InstructionType.ALTIMETER: _evaluate_altimeter,
    InstructionType.SQUAWK: _evaluate_squawk,
    InstructionType.FREQUENCY: _evaluate_frequency,
    InstructionType.TAKEOFF: _evaluate_clearance(InstructionType.TAKEOFF),
    InstructionType.LANDING: _evaluate_clearance(InstructionType.LANDING),
    InstructionType.LINEUP: _evaluate_clearance(InstructionType.LINEUP),
    InstructionType.HOLD: _evaluate_clearance(InstructionType.HOLD),
}


def evaluate_readback(
    atc_text: str,
    pilot_text: str,
    instruction_type: InstructionType,
) -> Evaluation:
    """
    Judge a pilot response against one ATC instruction.

    Args:
        atc_text: ATC instruction text.
        pilot_text: Pilot response text.
        instruction_type: Result of classify_instruction(atc_text).

    Returns:
        (quality, mismatches). Mismatches are empty for a complete readback.
    """
    atc = atc_text.lower().strip()
    pilot = pilot_text.lower().strip()

    ack = IMPROPER_ACK.search(pilot)
    if ack and len(pilot.split()) <= IMPROPER_ACK_MAX_WORDS:
        return ReadbackQuality.MISSING, [
            ReadbackMismatch(
                type=MismatchType.INCOMPLETE,
                parameter="readback",
                atcValue=atc_text,
                pilotValue=ack.group(0),
            )
        ]

    confusion = detect_parameter_confusion(atc, pilot)
    if confusion:
        return ReadbackQuality.INCORRECT, [confusion]

    evaluator = EVALUATORS.get(instruction_type, _evaluate_general)
    return evaluator(atc, pilot)


# =============================================================================
# Severity and Pairing
# =============================================================================


def contextual_severity(
    instruction_type: InstructionType,
    quality: ReadbackQuality,
    phase: FlightPhase,
    emergency: bool,
) -> Severity:
    """
    Rate a readback outcome in its operational context.

    Emergencies dominate. Otherwise an incorrect readback is always
    critical, and missing or partial readbacks climb one level for a
    critical instruction type and one more when the phase is critical too.
    """
    if emergency:
        if quality in (ReadbackQuality.MISSING, ReadbackQuality.INCORRECT):
            return Severity.CRITICAL
        return Severity.HIGH

    if quality == ReadbackQuality.INCORRECT:
        return Severity.CRITICAL

    critical_count = int(instruction_type in CRITICAL_INSTRUCTIONS) + int(phase in CRITICAL_PHASES)
    if quality == ReadbackQuality.MISSING:
        return [Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL][critical_count]
    if quality == ReadbackQuality.PARTIAL:
        return [Severity.LOW, Severity.MEDIUM, Severity.HIGH][critical_count]
    return Severity.LOW


def pair(
    lines: List[ParsedLine],
    context: ConversationContext,
    window: Optional[int] = None,
) -> List[ExchangePair]:
    """
    Build one ExchangePair per ATC instruction that requires a readback.

    The response is the first PILOT line within `window` lines after the
    instruction; none found means the readback is missing.
    """
    if window is None:
        window = get_settings().pairing_window

    pairs: List[ExchangePair] = []
    for i, line in enumerate(lines):
        if line.speaker != Speaker.ATC:
            continue

        instruction_type = classify_instruction(line.text)
        if instruction_type == InstructionType.INFORMATION:
            continue

        response, delay = None, 0
        for j in range(i + 1, min(i + 1 + window, len(lines))):
            if lines[j].speaker == Speaker.PILOT:
                response, delay = lines[j], j - i
                break

        if response is not None:
            quality, mismatches = evaluate_readback(line.text, response.text, instruction_type)
        else:
            quality, mismatches = ReadbackQuality.MISSING, []

        pairs.append(
            ExchangePair(
                atcLine=line,
                pilotLine=response,
                instructionType=instruction_type,
                readbackQuality=quality,
                responseDelay=delay,
                contextualSeverity=contextual_severity(
                    instruction_type, quality, context.flightPhase, context.emergencyDeclared
                ),
                mismatches=mismatches,
            )
        )
    return pairs
