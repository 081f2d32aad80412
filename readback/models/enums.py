"""
Enumeration definitions for the readback analysis service.

All enums inherit from both `str` and `Enum` so Pydantic models serialize them
as plain strings and weight maps keyed by their values stay JSON compatible.
"""

from enum import Enum


class Speaker(str, Enum):
    """Role assigned to a parsed dialogue line."""
    ATC = "ATC"
    PILOT = "PILOT"
    UNKNOWN = "UNKNOWN"


class FlightPhase(str, Enum):
    """
    Coarse flight phase inferred for a whole transcript.

    Listed in detection priority order: the safety-critical phases are
    checked first so a transcript mentioning both taxi and landing is
    treated as landing.
    """
    LANDING = "landing"
    APPROACH = "approach"
    DEPARTURE = "departure"
    GROUND = "ground"
    ENROUTE = "enroute"
    UNKNOWN = "unknown"


class ModelPhase(str, Enum):
    """
    Fine-grained phase used by the adaptive model.

    Each value has an entry in ModelWeights.phaseWeights.
    """
    GROUND = "ground"
    TAXI = "taxi"
    DEPARTURE = "departure"
    CLIMB = "climb"
    CRUISE = "cruise"
    DESCENT = "descent"
    APPROACH = "approach"
    LANDING = "landing"
    GO_AROUND = "go_around"


class InstructionType(str, Enum):
    """Instruction category assigned to an ATC line by the pairer."""
    ALTITUDE = "altitude"
    HEADING = "heading"
    SPEED = "speed"
    ALTIMETER = "altimeter"
    SQUAWK = "squawk"
    FREQUENCY = "frequency"
    APPROACH = "approach"
    TAKEOFF = "takeoff"
    LANDING = "landing"
    TAXI = "taxi"
    HOLD = "hold"
    LINEUP = "lineup"
    DIRECT = "direct"
    INFORMATION = "information"
    OTHER = "other"


class ReadbackQuality(str, Enum):
    """Outcome of comparing a pilot readback against its ATC instruction."""
    COMPLETE = "complete"
    PARTIAL = "partial"
    MISSING = "missing"
    INCORRECT = "incorrect"


class Severity(str, Enum):
    """
    Severity buckets shared by errors, exchange pairs and findings.

    Ordered from least to most severe; use SEVERITY_ORDER for comparisons.
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SEVERITY_ORDER = [Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL]


class ErrorType(str, Enum):
    """Fixed vocabulary of detected readback errors."""
    WRONG_VALUE = "wrong_value"
    TRANSPOSITION = "transposition"
    MISSING_ELEMENT = "missing_element"
    INCOMPLETE_READBACK = "incomplete_readback"
    WRONG_DIRECTION = "wrong_direction"
    MISSING_CALLSIGN = "missing_callsign"
    PARAMETER_CONFUSION = "parameter_confusion"
    CONDITION_OMITTED = "condition_omitted"
    CONDITION_VIOLATED = "condition_violated"
    CONSTRAINT_MISSING = "constraint_missing"
    ROGER_SUBSTITUTION = "roger_substitution"
    CRITICAL_CONFUSION = "critical_confusion"
    WRONG_RUNWAY = "wrong_runway"
    MISSING_DESIGNATOR = "missing_designator"
    NON_NATIVE_PRONUNCIATION = "non_native_pronunciation"
    NON_NATIVE_GRAMMAR = "non_native_grammar"
    NON_NATIVE_WORD_ORDER = "non_native_word_order"
    NON_NATIVE_STRESS = "non_native_stress"


class MismatchType(str, Enum):
    """Kind of discrepancy recorded by the per-exchange readback evaluator."""
    WRONG_VALUE = "wrong_value"
    MISSING_ELEMENT = "missing_element"
    PARAMETER_CONFUSION = "parameter_confusion"
    INCOMPLETE = "incomplete"


class CorpusType(str, Enum):
    """Transcript source for full-dialogue analysis."""
    APP_DEP = "APP/DEP"
    GND = "GND"
    RAMP = "RAMP"


class WeightUpdateReason(str, Enum):
    """Why the learning rule moved a weight."""
    FALSE_POSITIVE = "false_positive"
    FALSE_NEGATIVE = "false_negative"
    PHASE_CORRECTION = "phase_correction"


class ConditionType(str, Enum):
    """Conditional clause attached to an ATC instruction."""
    WHEN = "WHEN"
    UNTIL = "UNTIL"
    AFTER = "AFTER"
    AT = "AT"
    ONCE = "ONCE"
    BEFORE = "BEFORE"
    UPON = "UPON"


class ConstraintType(str, Enum):
    """Altitude restriction attached to an ATC instruction."""
    AT_OR_ABOVE = "at_or_above"
    AT_OR_BELOW = "at_or_below"
    NOT_BELOW = "not_below"
    NOT_ABOVE = "not_above"
    CROSS_AT = "cross_at"


class FindingCategory(str, Enum):
    """Category of a phraseology finding in full-dialogue analysis."""
    LANGUAGE = "language"
    NUMBER = "number"
    PROCEDURE = "procedure"
    STRUCTURE = "structure"
    SAFETY = "safety"


class SafetyImpact(str, Enum):
    """What a phraseology finding puts at risk."""
    CLARITY = "clarity"
    EFFICIENCY = "efficiency"
    SAFETY = "safety"


class RiskLevel(str, Enum):
    """Overall risk rating for an analyzed transcript."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
