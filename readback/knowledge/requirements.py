"""
Readback requirement and safety-critical phrase tables.
"""

import re
from dataclasses import dataclass
from typing import List, Pattern, Tuple

from readback.models.enums import Severity


@dataclass(frozen=True)
class ReadbackRequirement:
    """What a pilot must read back for one kind of instruction."""
    instruction_type: str
    trigger: Pattern[str]
    required_elements: Tuple[str, ...]
    must_readback: Tuple[str, ...]
    mandatory: bool
    description: str


@dataclass(frozen=True)
class SafetyCriticalPhrase:
    pattern: Pattern[str]
    description: str
    severity: Severity


def _req(instruction_type, regex, required, must, description, mandatory=True):
    return ReadbackRequirement(
        instruction_type=instruction_type,
        trigger=re.compile(regex, re.IGNORECASE),
        required_elements=tuple(required),
        must_readback=tuple(must),
        mandatory=mandatory,
        description=description,
    )


READBACK_REQUIREMENTS: List[ReadbackRequirement] = [
    _req("altitude", r"climb|descend", ["action", "value", "callsign"], ["altitude", "action"],
         "Altitude changes must be read back with the climb/descend action"),
    _req("heading", r"heading|turn", ["direction", "value", "callsign"], ["heading", "direction"],
         "Heading instructions must include direction and value"),
    _req("speed", r"speed|knots", ["value", "callsign"], ["speed"],
         "Speed instructions must be read back", mandatory=False),
    _req("squawk", r"squawk", ["code", "callsign"], ["squawk"],
         "Squawk codes must be read back"),
    _req("frequency", r"contact|frequency", ["frequency", "callsign"], ["frequency"],
         "Frequency changes must be read back"),
    _req("runway", r"runway", ["runway", "callsign"], ["runway"],
         "Runway assignments are safety-critical"),
    _req("altimeter", r"altimeter|qnh", ["setting", "callsign"], ["altimeter"],
         "Altimeter settings must be read back"),
    _req("hold", r"hold\s*short", ["hold short", "runway", "callsign"], ["hold short", "runway"],
         "Hold short instructions prevent runway incursions"),
    _req("takeoff", r"cleared\s*(for\s*)?take\s*off", ["cleared for takeoff", "runway", "callsign"],
         ["cleared for takeoff", "runway"], "Takeoff clearance is safety-critical"),
    _req("landing", r"cleared\s*(to\s*)?land", ["cleared to land", "runway", "callsign"],
         ["cleared to land", "runway"], "Landing clearance is safety-critical"),
    _req("go_around", r"go\s*around", ["go around", "callsign"], ["go around"],
         "Go around instruction is safety-critical"),
]

# Required-element summaries keyed by pairing instruction type
REQUIRED_ELEMENTS_TEXT = {
    "altitude": "climb/descend + altitude/FL + callsign",
    "heading": "turn direction + heading + callsign",
    "speed": "speed value + callsign",
    "squawk": "squawk code + callsign",
    "frequency": "frequency + callsign",
    "approach": "approach type + runway + callsign",
    "takeoff": "cleared for takeoff + runway + callsign",
    "landing": "cleared to land + runway + callsign",
    "altimeter": "altimeter/QNH setting + callsign",
    "hold": "hold short + runway/position + callsign",
    "lineup": "line up and wait + runway + callsign",
    "taxi": "taxi route + hold short points + callsign",
}


def _critical(regex: str, description: str, severity: Severity = Severity.CRITICAL) -> SafetyCriticalPhrase:
    return SafetyCriticalPhrase(re.compile(regex, re.IGNORECASE), description, severity)


SAFETY_CRITICAL_PATTERNS: List[SafetyCriticalPhrase] = [
    _critical(r"runway\s*\d{1,2}[LRC]?", "Runway designation"),
    _critical(r"hold\s*short", "Hold short instruction"),
    _critical(r"line\s*up\s*(and\s*)?wait", "Line up and wait"),
    _critical(r"go\s*around", "Go around instruction"),
    _critical(r"cleared\s*(to\s*)?land", "Landing clearance"),
    _critical(r"cleared\s*(for\s*)?take\s*off", "Takeoff clearance"),
    _critical(r"missed\s*approach", "Missed approach"),
    _critical(r"cancel\s*take\s*off", "Takeoff cancellation"),
    _critical(r"\bstop\b", "Stop instruction"),
    _critical(r"traffic\s*alert", "Traffic alert"),
    _critical(r"terrain\s*ahead", "Terrain warning"),
    _critical(r"pull\s*up", "Pull up warning"),
    _critical(r"break\s*(left|right)", "Emergency break"),
    _critical(r"expedite", "Expedite instruction", Severity.HIGH),
    _critical(r"immediately", "Immediate action required", Severity.HIGH),
]
