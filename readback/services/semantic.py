"""
Structured Command Parsing

Turns an ATC instruction into a StructuredCommand (action, parameter, value,
condition, constraint, immediacy) and validates a pilot readback against it.
This layer catches what value comparison alone misses:

- "Roger" substituted for a safety-critical readback
- conditional clauses ("when passing FL250") dropped or turned into "now"
- altitude constraints ("at or above 3000") dropped
- wrong runway, missing L/R/C designator
- takeoff, line-up and landing clearances confused with each other

generate_expected_readback() renders the standard readback with ICAO
phonetic digits (tree, fower, fife, niner).
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from readback.models import (
    ConditionType,
    ConstraintType,
    DetectedError,
    ErrorType,
    InstructionType,
    Severity,
)
from readback.services.pairing import classify_instruction, extract_runway

logger = logging.getLogger(__name__)


# =============================================================================
# Number Normalization
# =============================================================================

COMPOUND_NUMBERS = {
    "ten": "10", "eleven": "11", "twelve": "12", "thirteen": "13",
    "fourteen": "14", "fifteen": "15", "sixteen": "16", "seventeen": "17",
    "eighteen": "18", "nineteen": "19", "twenty": "20", "thirty": "30",
    "forty": "40", "fifty": "50", "sixty": "60", "seventy": "70",
    "eighty": "80", "ninety": "90",
}

SPOKEN_DIGITS = {
    "niner": "9", "zero": "0", "one": "1", "two": "2", "three": "3",
    "tree": "3", "four": "4", "fower": "4", "five": "5", "fife": "5",
    "six": "6", "seven": "7", "eight": "8", "ait": "8", "nine": "9",
    "oh": "0", "wun": "1", "too": "2",
}

_COMPOUND = re.compile(r"\b(" + "|".join(COMPOUND_NUMBERS) + r")\b")
_SPOKEN = re.compile(r"\b(" + "|".join(SPOKEN_DIGITS) + r")\b")
_DIGIT_GAP = re.compile(r"(?<=\d)\s+(?=\d)")


def normalize_to_digits(text: str) -> str:
    """
    Lowercase and convert compound and ICAO number words to digits.

    Space-separated digits are joined, so "tree fife zero" becomes "350".
    """
    normalized = text.lower().strip()
    normalized = _COMPOUND.sub(lambda m: COMPOUND_NUMBERS[m.group(1)], normalized)
    normalized = _SPOKEN.sub(lambda m: SPOKEN_DIGITS[m.group(1)], normalized)
    return _DIGIT_GAP.sub("", normalized)


# Joined tokens in any case (pal456), spaced tokens only when uppercase (PAL 456)
_CALLSIGN = re.compile(
    r"(?i:\b(?!(?:fl|qnh|rwy)\d)[a-z]{2,4}\d{2,4}\b)|\b(?!(?:QNH|RWY|ILS)\b)[A-Z]{3}\s+\d{2,4}\b"
)
_RP_CALLSIGN = re.compile(r"\bRP-?C\d{3,5}\b", re.IGNORECASE)


def remove_callsign(text: str) -> str:
    """Strip callsign tokens so flight numbers are not read as values."""
    return _RP_CALLSIGN.sub("", _CALLSIGN.sub("", text)).strip()


def find_callsign(text: str) -> Optional[str]:
    match = _RP_CALLSIGN.search(text) or _CALLSIGN.search(text)
    return re.sub(r"\s+", "", match.group(0).upper()) if match else None


def extract_value(text: str, parameter: str) -> Optional[str]:
    """
    Pull the value of one parameter out of free text.

    Altitudes come back as 'FL350' for flight levels or feet ('5000');
    headings are zero-padded to three digits; frequencies are 'NNN.N'.
    Callsign numbers are removed first.
    """
    cleaned = remove_callsign(text)
    normalized = normalize_to_digits(cleaned)

    if parameter == "altitude":
        match = re.search(r"(?:flight\s*level|\bfl)\s*(\d{2,3})", normalized)
        if match:
            return "FL" + match.group(1)
        match = re.search(r"\b(\d{1,2})\s+thousand(?:\s+(\d)\s+hundred)?", normalized)
        if match:
            return str(int(match.group(1)) * 1000 + int(match.group(2) or 0) * 100)
        match = re.search(r"(?:maintain|climb|descend)\D*?(\d{3,5})", normalized)
        if match:
            return match.group(1)
        match = re.search(r"(\d{4,5})", normalized)
        return match.group(1) if match else None

    if parameter == "heading":
        match = (
            re.search(r"heading\s*(\d{1,3})", normalized)
            or re.search(r"(?:turn\s+)?(?:left|right)\s+(?:heading\s*)?(\d{1,3})", normalized)
        )
        if match:
            return match.group(1).zfill(3)
        if re.search(r"heading|turn|fly", normalized):
            match = re.search(r"(\d{3})", normalized)
            return match.group(1) if match else None
        return None

    if parameter == "speed":
        match = (
            re.search(r"speed\D*?(\d{2,3})", normalized)
            or re.search(r"(\d{2,3})\s*knots?", normalized)
            or re.search(r"(?:reduce|increase|maintain)\D*?(\d{2,3})", normalized)
        )
        return match.group(1) if match else None

    if parameter == "altimeter":
        normalized = normalize_to_digits(text)
        match = re.search(r"(?:altimeter|qnh)\s*(\d{4})", normalized)
        if match:
            return match.group(1)
        if re.search(r"altimeter|qnh", normalized):
            match = re.search(r"(\d{4})", normalized)
            return match.group(1) if match else None
        return None

    if parameter == "squawk":
        match = re.search(r"(?:squawk|transponder)\s*(\d{4})", normalized)
        return match.group(1) if match else None

    if parameter == "frequency":
        match = re.search(r"(\d{3})\s*(?:decimal|point|\.)\s*(\d{1,3})", normalized)
        return f"{match.group(1)}.{match.group(2)}" if match else None

    return None


# =============================================================================
# Structured Command
# =============================================================================


@dataclass(frozen=True)
class Condition:
    type: ConditionType
    phrase: str
    trigger_value: Optional[str] = None


@dataclass(frozen=True)
class Constraint:
    type: ConstraintType
    phrase: str
    value: Optional[str] = None


@dataclass(frozen=True)
class StructuredCommand:
    """
    An ATC instruction broken into its operative parts.

    Attributes:
        action: climb, descend, turn, contact, cleared, ... or 'unknown'
        parameter: altitude, heading, speed, altimeter, squawk, frequency,
            runway, fix or 'unknown'
        value: Extracted value for the parameter, '' when none
        unit: feet, knots or minutes
        modifier: 'and maintain' or 'expedite'
        condition: Conditional clause, if any
        constraint: Altitude restriction, if any
        is_immediate: The instruction itself says now/immediately
        raw_text: The instruction as given
    """
    action: str
    parameter: str
    value: str
    unit: Optional[str]
    modifier: Optional[str]
    condition: Optional[Condition]
    constraint: Optional[Constraint]
    is_immediate: bool
    raw_text: str


# Instructions that need a full readback, never just "Roger"
SAFETY_CRITICAL_INSTRUCTIONS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"cleared\s+(for\s+)?take\s*off",
        r"cleared\s+to\s+land",
        r"line\s+up\s+(and\s+)?wait",
        r"hold\s+short",
        r"cross\s+runway",
        r"altimeter\s+\d",
        r"qnh\s+\d",
        r"squawk\s+\d",
        r"(climb|descend)\s+(and\s+)?maintain",
        r"maintain\s+\d",
        r"flight\s+level\s*\d",
        r"turn\s+(left|right)",
        r"heading\s+\d",
        r"contact\s+\w+\s+(on\s+)?\d{3}",
        r"(reduce|increase|maintain)\s+speed",
        r"cleared\s+(ils|rnav|vor|visual|approach)",
        r"go\s+around",
        r"expedite",
        r"immediate",
    )
]

CONDITION_PATTERNS: List[Tuple[re.Pattern, ConditionType]] = [
    (re.compile(p, re.IGNORECASE), t)
    for p, t in (
        (r"when\s+(you\s+)?(reach|pass|passing|at|clear\s+of|abeam)", ConditionType.WHEN),
        (r"when\s+ready", ConditionType.WHEN),
        (r"when\s+established", ConditionType.WHEN),
        (r"until\s+(established|reaching|clear|advised)", ConditionType.UNTIL),
        (r"until\s+further\s+advised", ConditionType.UNTIL),
        (r"after\s+(passing|departure|takeoff|reaching)", ConditionType.AFTER),
        (r"after\s+\w+\s+(departure|takeoff)", ConditionType.AFTER),
        (r"at\s+(or\s+)?(above|below|before)", ConditionType.AT),
        (r"once\s+(established|clear|airborne|passing)", ConditionType.ONCE),
        (r"before\s+(reaching|passing|entering)", ConditionType.BEFORE),
        (r"upon\s+(reaching|passing|entering)", ConditionType.UPON),
    )
]

# A conditional clause ends at the next instruction verb or clause break
CONDITION_TAIL = (
    r"[^,;]*?(?=\s+(?:climb|descend|turn|maintain|contact|squawk|cleared|proceed|reduce|increase|fly)\b"
    r"|[,;]|$)"
)

CONSTRAINT_PATTERNS: List[Tuple[re.Pattern, ConstraintType]] = [
    (re.compile(p, re.IGNORECASE), t)
    for p, t in (
        (r"at\s+or\s+above\s+(\d+|flight\s+level\s*\d+)", ConstraintType.AT_OR_ABOVE),
        (r"at\s+or\s+below\s+(\d+|flight\s+level\s*\d+)", ConstraintType.AT_OR_BELOW),
        (r"not\s+below\s+(\d+)", ConstraintType.NOT_BELOW),
        (r"not\s+above\s+(\d+)", ConstraintType.NOT_ABOVE),
        (r"cross\s+\w+\s+at\s+(\d+)", ConstraintType.CROSS_AT),
    )
]

CONSTRAINT_KEYWORDS = ("at or above", "at or below", "not below", "not above", "cross")

IMMEDIATE = re.compile(r"\b(now|immediately|right\s+now|no\s+delay)\b", re.IGNORECASE)

ONLY_ACKNOWLEDGED = re.compile(
    r"^\s*(roger|wilco|copied|copy|affirmative|affirm|ok|okay)\s*[,.]?\s*([a-z]{2,4}\s*\d{2,4})?\s*[.!]?\s*$",
    re.IGNORECASE,
)

_ACTION = re.compile(
    r"\b(climb|descend|maintain|turn|fly|reduce|increase|hold|cross|contact|squawk|cleared|line\s+up|taxi|proceed|direct)\b"
)


def is_safety_critical_instruction(text: str) -> bool:
    return any(p.search(text) for p in SAFETY_CRITICAL_INSTRUCTIONS)


def _detect_parameter(normalized: str) -> str:
    if re.search(r"altitude|flight\s+level|fl\s*\d|thousand|feet|(climb|descend)\s+(and\s+)?maintain", normalized):
        return "altitude"
    if re.search(r"heading\s*\d|turn\s+(left|right)", normalized):
        return "heading"
    if re.search(r"speed|knots?", normalized):
        return "speed"
    if re.search(r"altimeter|qnh", normalized):
        return "altimeter"
    if "squawk" in normalized:
        return "squawk"
    if re.search(r"frequency|contact", normalized):
        return "frequency"
    if "runway" in normalized:
        return "runway"
    if re.search(r"(hold|direct|proceed)\s+\w{3,5}", normalized):
        return "fix"
    return "unknown"


def _trigger_value(phrase: str) -> Optional[str]:
    match = re.search(r"(\d{3,5}|flight\s+level\s*\d{2,3}|fl\s*\d{2,3})", phrase, re.IGNORECASE)
    if match:
        return re.sub(r"\s+", "", match.group(1).upper())
    match = re.search(r"(?:passing|at|reach|abeam)\s+([a-z]{3,5})\b", phrase, re.IGNORECASE)
    if match:
        return match.group(1).upper()
    if "established" in phrase:
        return "established"
    return None


def parse_structured_command(atc_text: str) -> StructuredCommand:
    """Break an ATC instruction into a StructuredCommand."""
    normalized = atc_text.lower().strip()

    action_match = _ACTION.search(normalized)
    action = action_match.group(1) if action_match else "unknown"
    parameter = _detect_parameter(normalized)

    if parameter == "fix":
        fix = re.search(r"(?:hold|direct|proceed)\s+(?:direct\s+)?(?:to\s+)?([a-z]{3,5})\b", normalized)
        value = fix.group(1).upper() if fix else ""
    elif parameter == "runway":
        value = extract_runway(atc_text) or ""
    else:
        value = extract_value(atc_text, parameter if parameter != "unknown" else "altitude") or ""

    unit = None
    if "feet" in normalized:
        unit = "feet"
    elif re.search(r"knots?", normalized):
        unit = "knots"
    elif re.search(r"minutes?|mins?", normalized):
        unit = "minutes"

    modifier = None
    if re.search(r"and\s+maintain", normalized):
        modifier = "and maintain"
    elif "expedite" in normalized:
        modifier = "expedite"

    condition = None
    for pattern, condition_type in CONDITION_PATTERNS:
        match = re.search(pattern.pattern + CONDITION_TAIL, normalized)
        if match:
            phrase = match.group(0).strip()
            condition = Condition(condition_type, phrase, _trigger_value(phrase))
            break

    constraint = None
    for pattern, constraint_type in CONSTRAINT_PATTERNS:
        match = pattern.search(normalized)
        if match:
            constraint = Constraint(constraint_type, match.group(0), match.group(1))
            break

    return StructuredCommand(
        action=action,
        parameter=parameter,
        value=value,
        unit=unit,
        modifier=modifier,
        condition=condition,
        constraint=constraint,
        is_immediate=bool(IMMEDIATE.search(normalized)),
        raw_text=atc_text,
    )


# =============================================================================
# Validation
# =============================================================================

_CLEARANCES = [
    ("takeoff", re.compile(r"cleared\s+(for\s+)?take\s*off", re.IGNORECASE)),
    ("line up", re.compile(r"line\s+up(\s+and\s+wait)?", re.IGNORECASE)),
    ("landing", re.compile(r"cleared\s+to\s+land", re.IGNORECASE)),
]


def _clearance_kind(text: str) -> Optional[str]:
    for kind, pattern in _CLEARANCES:
        if pattern.search(text):
            return kind
    return None


def _validate_runway(atc_text: str, pilot_text: str) -> List[DetectedError]:
    atc_runway, pilot_runway = extract_runway(atc_text), extract_runway(pilot_text)
    if not atc_runway or not pilot_runway:
        return []

    atc_number, atc_designator = atc_runway.rstrip("LRC"), atc_runway[len(atc_runway.rstrip("LRC")):]
    pilot_number, pilot_designator = pilot_runway.rstrip("LRC"), pilot_runway[len(pilot_runway.rstrip("LRC")):]

    if atc_number.zfill(2) != pilot_number.zfill(2) or (
        atc_designator and pilot_designator and atc_designator != pilot_designator
    ):
        return [DetectedError(
            type=ErrorType.WRONG_RUNWAY,
            description=f"Wrong runway: ATC said runway {atc_runway}, pilot read back runway {pilot_runway}",
            severity=Severity.CRITICAL,
            confidence=0.95,
            correction=f"Correct runway is {atc_runway}",
        )]
    if atc_designator and not pilot_designator:
        return [DetectedError(
            type=ErrorType.MISSING_DESIGNATOR,
            description=f"Runway designator missing: ATC said runway {atc_runway}, pilot read back runway {pilot_runway}",
            severity=Severity.HIGH,
            confidence=0.9,
            correction=f"Include the designator: runway {atc_runway}",
        )]
    return []


def validate_readback_against_command(command: StructuredCommand, pilot_text: str) -> List[DetectedError]:
    """
    Check a pilot readback against a parsed instruction.

    Returns:
        Errors found; weights are left at 1.0 for the caller to apply.
    """
    errors: List[DetectedError] = []
    pilot_lower = pilot_text.lower()

    if is_safety_critical_instruction(command.raw_text) and ONLY_ACKNOWLEDGED.match(pilot_text):
        ack = ONLY_ACKNOWLEDGED.match(pilot_text).group(1)
        errors.append(DetectedError(
            type=ErrorType.ROGER_SUBSTITUTION,
            description=(
                f'"{ack}" cannot substitute for readback of safety-critical items. '
                f"Full readback required for verification."
            ),
            severity=Severity.CRITICAL,
            confidence=0.95,
            correction=f"Read back the instruction: {generate_expected_readback(command.raw_text)}",
        ))

    if command.value and command.parameter not in ("runway", "fix", "unknown"):
        pilot_value = extract_value(pilot_text, command.parameter)
        expected = normalize_to_digits(command.value).upper()
        if not pilot_value:
            errors.append(DetectedError(
                type=ErrorType.MISSING_ELEMENT,
                description=f"Required {command.parameter} value not read back",
                severity=Severity.HIGH if command.parameter in ("altitude", "heading") else Severity.MEDIUM,
                confidence=0.85,
                correction=f"Include {command.parameter} {command.value} in your readback",
            ))
        elif normalize_to_digits(pilot_value).upper() != expected and expected not in pilot_value.upper():
            errors.append(DetectedError(
                type=ErrorType.WRONG_VALUE,
                description=(
                    f"{command.parameter.capitalize()} mismatch: ATC said {command.value}, "
                    f"pilot read back {pilot_value}"
                ),
                severity=Severity.HIGH,
                confidence=0.9,
                correction=f"Correct {command.parameter} is {command.value}",
            ))

    if command.condition:
        keywords = [word for word in command.condition.phrase.split() if len(word) > 2]
        if not any(word in pilot_lower for word in keywords):
            errors.append(DetectedError(
                type=ErrorType.CONDITION_OMITTED,
                description=f'Conditional phrase "{command.condition.phrase}" not read back',
                severity=Severity.HIGH,
                confidence=0.85,
                correction=f'Read back the condition "{command.condition.phrase}"',
            ))
        if not command.is_immediate:
            immediate = IMMEDIATE.search(pilot_lower)
            if immediate:
                errors.append(DetectedError(
                    type=ErrorType.CONDITION_VIOLATED,
                    description=(
                        f'Pilot added "{immediate.group(0)}" but the instruction was conditional '
                        f'("{command.condition.phrase}")'
                    ),
                    severity=Severity.CRITICAL,
                    confidence=0.9,
                    correction=f'Execute only {command.condition.phrase}',
                ))

    if command.constraint and not any(keyword in pilot_lower for keyword in CONSTRAINT_KEYWORDS):
        errors.append(DetectedError(
            type=ErrorType.CONSTRAINT_MISSING,
            description=f'Altitude constraint "{command.constraint.phrase}" not read back',
            severity=Severity.HIGH,
            confidence=0.85,
            correction=f'Read back the restriction "{command.constraint.phrase}"',
        ))

    errors.extend(_validate_runway(command.raw_text, pilot_text))

    atc_clearance, pilot_clearance = _clearance_kind(command.raw_text), _clearance_kind(pilot_text)
    if atc_clearance and pilot_clearance and atc_clearance != pilot_clearance:
        errors.append(DetectedError(
            type=ErrorType.CRITICAL_CONFUSION,
            description=f"Clearance confusion: {atc_clearance} clearance read back as {pilot_clearance}",
            severity=Severity.CRITICAL,
            confidence=0.95,
            correction=f"The clearance was for {atc_clearance}",
        ))

    return errors


# =============================================================================
# Expected Readback
# =============================================================================

PHONETIC_DIGITS = {
    "0": "zero", "1": "one", "2": "two", "3": "tree", "4": "fower",
    "5": "fife", "6": "six", "7": "seven", "8": "eight", "9": "niner",
}
DESIGNATOR_WORDS = {"L": "left", "R": "right", "C": "center"}


def to_phonetic(number: str) -> str:
    """
    >>> to_phonetic("350")
    'tree fife zero'
    """
    return " ".join(PHONETIC_DIGITS.get(digit, digit) for digit in number)


def _runway_phonetic(runway: Optional[str]) -> str:
    if not runway:
        return "runway"
    number = runway.rstrip("LRC")
    designator = runway[len(number):]
    spoken = to_phonetic(number.zfill(2))
    return f"{spoken} {DESIGNATOR_WORDS[designator]}" if designator else spoken


def _altitude_phonetic(altitude: str) -> str:
    if altitude.startswith("FL"):
        return f"flight level {to_phonetic(altitude[2:])}"
    feet = int(altitude)
    if feet >= 1000:
        thousands, hundreds = divmod(feet, 1000)
        spoken = f"{to_phonetic(str(thousands))} thousand"
        if hundreds // 100:
            spoken += f" {to_phonetic(str(hundreds // 100))} hundred"
        return spoken
    return to_phonetic(altitude)


def _frequency_phonetic(frequency: str) -> str:
    whole, _, decimal = frequency.partition(".")
    if decimal:
        return f"{to_phonetic(whole)} decimal {to_phonetic(decimal)}"
    return to_phonetic(whole)


def generate_expected_readback(atc_text: str, callsign: Optional[str] = None) -> str:
    """
    Standard readback for an instruction, ICAO phonetic digits, callsign last.

    >>> generate_expected_readback("PAL456, squawk 2416", "PAL456")
    'squawk two fower one six, PAL456'
    """
    cs = callsign or find_callsign(atc_text) or "{callsign}"
    text = atc_text.strip()
    instruction_type = classify_instruction(text)
    runway = extract_runway(text)
    body: Union[str, None] = None

    if instruction_type == InstructionType.ALTITUDE:
        altitude = extract_value(text, "altitude")
        action = re.search(r"\b(climb|descend)\b", text, re.IGNORECASE)
        if action and altitude:
            body = f"{action.group(1).lower()} and maintain {_altitude_phonetic(altitude)}"
        else:
            body = f"maintain {_altitude_phonetic(altitude) if altitude else 'altitude'}"
    elif instruction_type == InstructionType.HEADING:
        heading = extract_value(text, "heading")
        direction = re.search(r"\b(left|right)\b", text, re.IGNORECASE)
        spoken = to_phonetic(heading) if heading else "value"
        body = f"{direction.group(1).lower()} heading {spoken}" if direction else f"heading {spoken}"
    elif instruction_type == InstructionType.SPEED:
        speed = extract_value(text, "speed")
        action = re.search(r"\b(reduce|increase)\b", text, re.IGNORECASE)
        spoken = to_phonetic(speed) if speed else "value"
        body = f"{action.group(1).lower()} speed {spoken} knots" if action else f"speed {spoken} knots"
    elif instruction_type == InstructionType.ALTIMETER:
        setting = extract_value(text, "altimeter")
        body = f"altimeter {to_phonetic(setting) if setting else 'value'}"
    elif instruction_type == InstructionType.SQUAWK:
        code = extract_value(text, "squawk")
        body = f"squawk {to_phonetic(code) if code else 'value'}"
    elif instruction_type == InstructionType.FREQUENCY:
        frequency = extract_value(text, "frequency")
        facility = re.search(r"contact\s+([a-z]+(?:\s+(?!on\b)[a-z]+)?)", text, re.IGNORECASE)
        body = (
            f"{facility.group(1).lower() if facility else 'facility'} "
            f"{_frequency_phonetic(frequency) if frequency else 'frequency'}"
        )
    elif instruction_type == InstructionType.APPROACH:
        approach = re.search(r"cleared\s+(ils|rnav|vor|visual|ndb)\s+approach", text, re.IGNORECASE)
        body = f"cleared {approach.group(1).upper()} approach runway {_runway_phonetic(runway)}"
    elif instruction_type == InstructionType.TAKEOFF:
        body = f"runway {_runway_phonetic(runway)} cleared for takeoff"
    elif instruction_type == InstructionType.LANDING:
        body = f"cleared to land runway {_runway_phonetic(runway)}"
    elif instruction_type == InstructionType.LINEUP:
        body = f"line up and wait runway {_runway_phonetic(runway)}"
    elif instruction_type == InstructionType.DIRECT:
        fix = re.search(r"direct\s+(?:to\s+)?(\w+)", text, re.IGNORECASE)
        body = f"direct {fix.group(1).upper() if fix else 'fix'}"

    if body is None:
        body = remove_callsign(text).strip(" ,.") or text
    return f"{body}, {cs}"
