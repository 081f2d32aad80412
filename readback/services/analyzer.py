"""
Single-exchange analysis.

analyze() combines the three detectors over one ATC instruction and its
readback and scores the result with the adaptive model's weights:

- the exchange evaluator (pairing.evaluate_readback) for readback quality,
  parameter confusion and bare acknowledgments,
- structured command validation (semantic) for values, conditions,
  constraints, runways and clearance confusion,
- the weighted rule engine (errors) for transpositions, magnitude and
  direction errors, missing or differing pattern values and callsigns.

Errors from the weighted rule engine that repeat one already reported are
dropped. The function only reads the model state; recording the
interaction in the history is left to the ModelStore.
"""

import logging
from typing import Dict, List

from readback.models import (
    AdaptiveModelState,
    AnalysisContextInput,
    AnalysisInput,
    AnalysisResult,
    DetectedError,
    ErrorType,
    InstructionType,
    MismatchType,
    ModelMetrics,
    ModelPhase,
    ReadbackMismatch,
    ReadbackQuality,
    Severity,
)
from readback.services.errors import (
    VALUE_MISMATCH_DESCRIPTION,
    compare_readback,
    detect_errors,
    detect_phase_weighted,
    extract_patterns_weighted,
    find_most_common,
    overall_confidence,
    severity_rollup,
)
from readback.services.pairing import classify_instruction, evaluate_readback
from readback.services.semantic import (
    generate_expected_readback,
    parse_structured_command,
    validate_readback_against_command,
)

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 5

READBACK_CONFIDENCE = {
    ReadbackQuality.PARTIAL: 0.6,
    ReadbackQuality.MISSING: 0.3,
    ReadbackQuality.INCORRECT: 0.2,
}

PHASE_ADVICE: Dict[ModelPhase, List[str]] = {
    ModelPhase.APPROACH: [
        "Always confirm QNH/altimeter setting on approach",
        "Read back runway number to prevent wrong runway incidents",
    ],
    ModelPhase.LANDING: [
        "Always confirm QNH/altimeter setting on approach",
        "Read back runway number to prevent wrong runway incidents",
    ],
    ModelPhase.DEPARTURE: [
        "Confirm SID and initial altitude",
        "Read back runway heading if assigned",
    ],
}

# Command errors that make an otherwise complete readback incorrect
INCORRECT_ERROR_TYPES = {
    ErrorType.WRONG_VALUE,
    ErrorType.ROGER_SUBSTITUTION,
    ErrorType.CONDITION_VIOLATED,
    ErrorType.CRITICAL_CONFUSION,
    ErrorType.WRONG_RUNWAY,
}


def mismatch_errors(
    mismatches: List[ReadbackMismatch],
    instruction_type: InstructionType,
    expected_readback: str,
) -> List[DetectedError]:
    """Errors the other detectors cannot see: parameter confusion and bare acknowledgments."""
    errors = []
    for mismatch in mismatches:
        if mismatch.type == MismatchType.PARAMETER_CONFUSION:
            errors.append(DetectedError(
                type=ErrorType.PARAMETER_CONFUSION,
                description=(
                    f"Parameter confusion: {mismatch.parameter} {mismatch.atcValue} "
                    f"read back as {mismatch.pilotValue}"
                ),
                severity=Severity.CRITICAL,
                confidence=0.9,
                correction=f"Read back {mismatch.parameter} {mismatch.atcValue}",
            ))
        elif mismatch.type == MismatchType.INCOMPLETE and mismatch.parameter == "readback":
            errors.append(DetectedError(
                type=ErrorType.INCOMPLETE_READBACK,
                description=(
                    f'"{mismatch.pilotValue}" is inadequate for {instruction_type.value} instructions. '
                    f"Full readback of all parameters is required."
                ),
                severity=Severity.HIGH,
                confidence=0.95,
                correction=expected_readback,
            ))
    return errors


def _is_duplicate(candidate: DetectedError, errors: List[DetectedError]) -> bool:
    if candidate.description.startswith(VALUE_MISMATCH_DESCRIPTION):
        return any(e.type in (ErrorType.WRONG_VALUE, ErrorType.TRANSPOSITION) for e in errors)
    return any(
        e.type == candidate.type
        and (candidate.description in e.description or e.description[:20] in candidate.description)
        for e in errors
    )


def _suggestions(
    errors: List[DetectedError],
    phase: ModelPhase,
    previous_errors: List[str],
) -> List[str]:
    suggestions = [e.correction for e in errors if e.correction]
    suggestions.extend(PHASE_ADVICE.get(phase, []))
    if len(previous_errors) > 2:
        recurring = find_most_common(previous_errors)
        suggestions.append(f"Focus on {recurring.replace('_', ' ')} - this is a recurring issue")
    return list(dict.fromkeys(suggestions))[:MAX_SUGGESTIONS]


def analyze(data: AnalysisInput, state: AdaptiveModelState) -> AnalysisResult:
    """
    Analyze one ATC instruction and its readback.

    Args:
        data: Exchange text plus optional callsign and caller context.
        state: Model state to read weights and config from; not modified.

    Returns:
        AnalysisResult with errors, severity, suggestions and model metrics.

    Raises:
        ValueError: If either text is blank.
    """
    atc, pilot = data.atc.strip(), data.pilot.strip()
    if not atc or not pilot:
        raise ValueError("Both atc and pilot text are required")

    context = data.context or AnalysisContextInput()
    weights = state.weights

    if context.phase is not None:
        phase, phase_confidence = context.phase, 1.0
    else:
        phase, phase_confidence = detect_phase_weighted(atc, pilot, weights.phaseWeights)

    patterns = extract_patterns_weighted(atc, weights.patternWeights)
    comparison = compare_readback(pilot, patterns)

    instruction_type = classify_instruction(atc)
    quality, mismatches = evaluate_readback(atc, pilot, instruction_type)
    expected = generate_expected_readback(atc, data.callsign)

    command_errors = validate_readback_against_command(parse_structured_command(atc), pilot)
    if quality == ReadbackQuality.COMPLETE and command_errors:
        if any(e.type in INCORRECT_ERROR_TYPES for e in command_errors):
            quality = ReadbackQuality.INCORRECT
        else:
            quality = ReadbackQuality.PARTIAL

    errors = [
        e.model_copy(update={"weight": weights.errorWeights.get(e.type.value, 1.0)})
        for e in mismatch_errors(mismatches, instruction_type, expected) + command_errors
    ]
    primary_clean = quality == ReadbackQuality.COMPLETE and not errors
    for legacy in detect_errors(atc, pilot, weights.errorWeights, comparison, phase):
        if not _is_duplicate(legacy, errors):
            errors.append(legacy)

    factors = {
        "phase": phase_confidence,
        "readback": 1.0 if primary_clean else READBACK_CONFIDENCE.get(quality, 0.2),
        "pattern": comparison.confidence,
    }
    confidence = overall_confidence(factors)

    result = AnalysisResult(
        isCorrect=not errors,
        confidence=confidence,
        phase=phase,
        phaseConfidence=phase_confidence,
        errors=errors,
        severity=severity_rollup(errors, phase, weights),
        readbackQuality=quality,
        instructionType=instruction_type,
        suggestions=_suggestions(errors, phase, context.previousErrors),
        expectedReadback=expected,
        learningOpportunity=confidence < state.config.minConfidence + 0.2,
        modelMetrics=ModelMetrics(
            patternsMatched=len(patterns),
            weightsApplied=[p.pattern for p in patterns],
            confidenceFactors=factors,
        ),
    )
    logger.debug(
        f"Analyzed exchange: phase={phase.value} quality={quality.value} "
        f"errors={[e.type.value for e in errors]} severity={result.severity.value}"
    )
    return result
