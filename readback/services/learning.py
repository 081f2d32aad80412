"""
Adaptive Learning Rules

Online updates of the model weights from human corrections and session
results, plus statistics and (de)serialization of the model state.

Every mutating function here changes the AdaptiveModelState it is given and
returns it. Callers that share a state between requests must hand in a
private copy and publish it only after the call returns; ModelStore does
exactly that under its writer lock.

Learning rule:
- effective rate lr = learningRate * (1.5 - recentAccuracy) when the adaptive
  rate is enabled, recentAccuracy being the mean of the last 50 accuracy
  samples (0.5 with no samples).
- false positive:  errorWeights[t] *= (1 - lr * 0.5), floor 0.1
- false negative:  errorWeights[t] *= (1 + lr * 0.5), ceiling 3.0
- wrong phase:     phaseWeights[wrong] *= (1 - lr), floor 0.3;
                   phaseWeights[right] *= (1 + lr), ceiling 2.0
- wrong verdict:   thresholds.errorDetection +/- lr * 0.05 within [0.4, 0.9]
"""

import logging
from collections import Counter
from typing import Any, Dict, List, Optional, Sequence, Tuple, TypeVar

import numpy as np
from pydantic import ValidationError

from readback.core.config import get_settings
from readback.models import (
    ERROR_DETECTION_BOUNDS,
    ERROR_WEIGHT_BOUNDS,
    PHASE_WEIGHT_BOUNDS,
    AccuracySample,
    AdaptiveModelState,
    ConfigUpdate,
    LearningConfig,
    LearningHistory,
    LearningProgress,
    ModelStats,
    ModelWeights,
    SessionResults,
    SeverityWeights,
    Thresholds,
    TopError,
    UserCorrection,
    WeightDistribution,
    WeightUpdate,
    WeightUpdateReason,
    utcnow,
)

logger = logging.getLogger(__name__)

MODEL_VERSION = "3.0.0-adaptive"


# =============================================================================
# Default Weights
# =============================================================================

DEFAULT_PATTERN_WEIGHTS: Dict[str, float] = {
    "altitude_climb": 1.0,
    "altitude_descend": 1.0,
    "altitude_maintain": 1.0,
    "flight_level": 1.2,
    "heading_turn_left": 1.0,
    "heading_turn_right": 1.0,
    "heading_fly": 0.9,
    "runway_heading": 1.1,
    "cleared_takeoff": 1.3,
    "cleared_landing": 1.3,
    "cleared_approach": 1.2,
    "line_up_wait": 1.2,
    "contact_frequency": 1.0,
    "squawk_code": 1.1,
    "direct_to": 0.9,
    "hold_short": 1.2,
    "taxi_to": 0.8,
    "go_around": 1.5,
    "expedite": 1.4,
    "immediate": 1.5,
}

DEFAULT_ERROR_WEIGHTS: Dict[str, float] = {
    "wrong_value": 1.2,
    "transposition": 1.3,
    "missing_element": 1.0,
    "incomplete_readback": 0.9,
    "parameter_confusion": 1.1,
    "hearback_error": 0.8,
    "extra_element": 0.5,
    "wrong_direction": 1.4,
    "missing_callsign": 0.8,
    "callsign_confusion": 1.4,
    "condition_omitted": 1.3,
    "condition_violated": 1.5,
    "constraint_missing": 1.3,
    "roger_substitution": 1.4,
    "critical_confusion": 2.0,
    "wrong_runway": 2.0,
    "missing_designator": 1.5,
    "non_native_pronunciation": 0.6,
    "non_native_grammar": 0.5,
    "non_native_word_order": 0.7,
    "non_native_stress": 0.4,
}

DEFAULT_PHASE_WEIGHTS: Dict[str, float] = {
    "ground": 0.8,
    "taxi": 0.9,
    "departure": 1.2,
    "climb": 1.0,
    "cruise": 0.7,
    "descent": 1.0,
    "approach": 1.3,
    "landing": 1.4,
    "go_around": 1.5,
}

REINFORCED_PHASE_BOUNDS = (0.5, 2.0)
REINFORCED_ERROR_CEILING = 2.5

RECENT_ACCURACY_WINDOW = 50
PROGRESS_WINDOW = 100
ACCURACY_HISTORY_SIZE = 1000


def create_default_state(max_history_size: Optional[int] = None) -> AdaptiveModelState:
    """Fresh model with the hand-tuned default weights."""
    if max_history_size is None:
        max_history_size = get_settings().max_history_size
    return AdaptiveModelState(
        version=MODEL_VERSION,
        weights=ModelWeights(
            patternWeights=dict(DEFAULT_PATTERN_WEIGHTS),
            errorWeights=dict(DEFAULT_ERROR_WEIGHTS),
            phaseWeights=dict(DEFAULT_PHASE_WEIGHTS),
            severityWeights=SeverityWeights(),
            thresholds=Thresholds(),
        ),
        history=LearningHistory(),
        config=LearningConfig(maxHistorySize=max_history_size),
    )


# =============================================================================
# Helpers
# =============================================================================

T = TypeVar("T")


def push_bounded(buffer: List[T], items: Sequence[T], capacity: int) -> List[T]:
    """
    Append items and keep only the newest `capacity` entries.

    The single bounding rule for corrections, weight updates and accuracy
    samples.
    """
    buffer.extend(items)
    if len(buffer) > capacity:
        del buffer[: len(buffer) - capacity]
    return buffer


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def recent_accuracy(history: LearningHistory) -> float:
    """Mean of the last 50 accuracy samples, 0.5 with none."""
    samples = history.accuracyOverTime[-RECENT_ACCURACY_WINDOW:]
    if not samples:
        return 0.5
    return float(np.mean([s.accuracy for s in samples]))


def effective_learning_rate(state: AdaptiveModelState) -> float:
    rate = state.config.learningRate
    if state.config.adaptiveRateEnabled:
        rate *= 1.5 - recent_accuracy(state.history)
    return rate


def _record_outcome(state: AdaptiveModelState, prediction_correct: bool) -> None:
    history = state.history
    history.totalInteractions += 1
    if prediction_correct:
        history.correctPredictions += 1
    else:
        history.incorrectPredictions += 1
    push_bounded(
        history.accuracyOverTime,
        [AccuracySample(accuracy=history.correctPredictions / history.totalInteractions)],
        ACCURACY_HISTORY_SIZE,
    )


# =============================================================================
# Learning Operations
# =============================================================================


def apply_correction(
    state: AdaptiveModelState,
    correction: UserCorrection,
) -> Tuple[AdaptiveModelState, List[WeightUpdate]]:
    """
    Learn from one human correction.

    Args:
        state: Model state; mutated in place.
        correction: What the model predicted and what was actually true.

    Returns:
        (state, weight updates made by this correction)
    """
    weights = state.weights
    lr = effective_learning_rate(state)
    updates: List[WeightUpdate] = []

    predicted = list(dict.fromkeys(correction.original.predictedErrors))
    actual = list(dict.fromkeys(correction.corrected.actualErrors))

    low, high = ERROR_WEIGHT_BOUNDS
    for error_type in predicted:
        if error_type in actual:
            continue
        old = weights.errorWeights.get(error_type, 1.0)
        weights.errorWeights[error_type] = clamp(old * (1 - lr * 0.5), low, high)
        updates.append(WeightUpdate(
            pattern=f"error:{error_type}",
            oldWeight=old,
            newWeight=weights.errorWeights[error_type],
            reason=WeightUpdateReason.FALSE_POSITIVE,
            learningRate=lr,
        ))

    for error_type in actual:
        if error_type in predicted:
            continue
        old = weights.errorWeights.get(error_type, 1.0)
        weights.errorWeights[error_type] = clamp(old * (1 + lr * 0.5), low, high)
        updates.append(WeightUpdate(
            pattern=f"error:{error_type}",
            oldWeight=old,
            newWeight=weights.errorWeights[error_type],
            reason=WeightUpdateReason.FALSE_NEGATIVE,
            learningRate=lr,
        ))

    wrong_phase, right_phase = correction.original.predictedPhase, correction.corrected.actualPhase
    if wrong_phase != right_phase:
        low, high = PHASE_WEIGHT_BOUNDS
        old_wrong = weights.phaseWeights.get(wrong_phase, 1.0)
        weights.phaseWeights[wrong_phase] = clamp(old_wrong * (1 - lr), low, high)
        old_right = weights.phaseWeights.get(right_phase, 1.0)
        weights.phaseWeights[right_phase] = clamp(old_right * (1 + lr), low, high)
        updates.append(WeightUpdate(
            pattern=f"phase:{wrong_phase}",
            oldWeight=old_wrong,
            newWeight=weights.phaseWeights[wrong_phase],
            reason=WeightUpdateReason.PHASE_CORRECTION,
            learningRate=lr,
        ))
        updates.append(WeightUpdate(
            pattern=f"phase:{right_phase}",
            oldWeight=old_right,
            newWeight=weights.phaseWeights[right_phase],
            reason=WeightUpdateReason.PHASE_CORRECTION,
            learningRate=lr,
        ))

    was_wrong = correction.original.predictedCorrect != correction.corrected.isActuallyCorrect
    if was_wrong:
        # Too lenient raises the bar, too strict lowers it
        step = lr * 0.05 if correction.original.predictedCorrect else -lr * 0.05
        weights.thresholds.errorDetection = clamp(
            weights.thresholds.errorDetection + step, *ERROR_DETECTION_BOUNDS
        )

    _record_outcome(state, prediction_correct=not was_wrong)
    history = state.history
    push_bounded(
        history.userCorrections,
        [correction.model_copy(update={"applied": True})],
        state.config.maxHistorySize,
    )
    push_bounded(history.weightUpdates, updates, state.config.maxHistorySize * 2)
    state.updatedAt = utcnow()

    logger.info(
        f"Applied correction {correction.id}: {len(updates)} weight updates, "
        f"lr={lr:.4f}, prediction {'wrong' if was_wrong else 'right'}"
    )
    return state, updates


def batch_learn(
    state: AdaptiveModelState,
    corrections: Sequence[UserCorrection],
) -> Tuple[AdaptiveModelState, List[WeightUpdate]]:
    """Apply corrections in order; returns every weight update made."""
    all_updates: List[WeightUpdate] = []
    for correction in corrections:
        state, updates = apply_correction(state, correction)
        all_updates.extend(updates)
    return state, all_updates


def reinforce(state: AdaptiveModelState, session: SessionResults) -> AdaptiveModelState:
    """
    Nudge weights from a training session's results.

    Raises:
        ValueError: If the session has no readbacks.
    """
    if not state.config.reinforcementEnabled:
        logger.info("Reinforcement disabled; session ignored")
        return state
    if session.totalReadbacks <= 0:
        raise ValueError("totalReadbacks must be greater than zero")

    accuracy = session.correctReadbacks / session.totalReadbacks
    reward = 0.02 if accuracy > 0.8 else -0.02 if accuracy < 0.5 else 0.0

    weights = state.weights
    for phase in session.phases:
        old = weights.phaseWeights.get(phase, 1.0)
        weights.phaseWeights[phase] = clamp(old + reward, *REINFORCED_PHASE_BOUNDS)

    for error_type in session.commonErrors:
        old = weights.errorWeights.get(error_type, 1.0)
        weights.errorWeights[error_type] = min(
            REINFORCED_ERROR_CEILING, old * (1 + state.config.learningRate * 0.3)
        )

    now = utcnow()
    state.history.lastTrainingDate = now
    state.updatedAt = now
    logger.info(f"Reinforcement applied: session accuracy {accuracy:.2f}, reward {reward:+.2f}")
    return state


def record_interaction(state: AdaptiveModelState, is_correct: bool) -> AdaptiveModelState:
    """Count one analyzed exchange in the history."""
    _record_outcome(state, prediction_correct=is_correct)
    state.updatedAt = utcnow()
    return state


def update_config(state: AdaptiveModelState, update: ConfigUpdate) -> AdaptiveModelState:
    """Apply a partial config; numeric values are clamped into range."""
    config = state.config
    if update.learningRate is not None:
        config.learningRate = clamp(update.learningRate, 0.01, 0.5)
    if update.momentum is not None:
        config.momentum = clamp(update.momentum, 0.0, 0.9)
    if update.minConfidence is not None:
        config.minConfidence = clamp(update.minConfidence, 0.3, 0.9)
    if update.adaptiveRateEnabled is not None:
        config.adaptiveRateEnabled = update.adaptiveRateEnabled
    if update.reinforcementEnabled is not None:
        config.reinforcementEnabled = update.reinforcementEnabled
    state.updatedAt = utcnow()
    logger.info(f"Learning config updated: {config.model_dump()}")
    return state


def reset(state: AdaptiveModelState, preserve_history: bool = False) -> AdaptiveModelState:
    """Fresh default weights and config; history survives only on request."""
    fresh = create_default_state(state.config.maxHistorySize)
    if preserve_history:
        fresh.history = state.history
    logger.info(f"Model reset (history {'preserved' if preserve_history else 'cleared'})")
    return fresh


# =============================================================================
# Statistics
# =============================================================================


def get_stats(state: AdaptiveModelState) -> ModelStats:
    """Read-only summary of accuracy, weights and learning progress."""
    history, weights = state.history, state.weights

    accuracy = history.correctPredictions / history.totalInteractions if history.totalInteractions else 0.0

    error_counts: Counter = Counter()
    for correction in history.userCorrections:
        error_counts.update(correction.corrected.actualErrors)
    top_errors = [TopError(error=e, count=c) for e, c in error_counts.most_common(5)]

    all_weights = np.array(
        list(weights.patternWeights.values())
        + list(weights.errorWeights.values())
        + list(weights.phaseWeights.values()),
        dtype=float,
    )
    if all_weights.size:
        distribution = WeightDistribution(
            min=float(all_weights.min()),
            max=float(all_weights.max()),
            avg=float(all_weights.mean()),
        )
    else:
        distribution = WeightDistribution(min=0.0, max=0.0, avg=0.0)

    samples = [s.accuracy for s in history.accuracyOverTime]
    recent = samples[-PROGRESS_WINDOW:]
    older = samples[-2 * PROGRESS_WINDOW:-PROGRESS_WINDOW]
    recent_avg = float(np.mean(recent)) if recent else 0.0
    older_avg = float(np.mean(older)) if older else recent_avg
    change = (recent_avg - older_avg) / older_avg * 100 if older_avg > 0 else 0.0

    return ModelStats(
        accuracy=accuracy,
        totalInteractions=history.totalInteractions,
        recentAccuracy=recent_accuracy(history),
        topErrors=top_errors,
        weightDistribution=distribution,
        learningProgress=LearningProgress(improved=recent_avg > older_avg, changePercent=change),
        modelAgeDays=max(0, (utcnow() - state.createdAt).days),
        lastTrainingDate=history.lastTrainingDate,
    )


# =============================================================================
# Serialization
# =============================================================================


def serialize(state: AdaptiveModelState) -> Dict[str, Any]:
    """JSON-compatible document {version, createdAt, updatedAt, weights, history, config}."""
    return state.model_dump(mode="json")


def deserialize(data: Any) -> AdaptiveModelState:
    """
    Rebuild a state from serialize() output or its JSON text.

    Malformed input never yields a partial state: a fresh default state is
    returned instead.
    """
    try:
        if isinstance(data, (str, bytes)):
            return AdaptiveModelState.model_validate_json(data)
        return AdaptiveModelState.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Rejected malformed model state, using defaults: {e.error_count()} errors")
        return create_default_state()
