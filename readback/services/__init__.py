"""
Readback Services Module

Engine services for readback analysis. Everything except the model store is
a stateless function over its inputs.

Services:
- parser: transcript text to speaker-tagged lines
- context: flight phase, callsigns, emergency/TCAS flags, issue accumulator
- pairing: instruction classification, exchange pairing, readback evaluation
- semantic: structured command parsing and validation, expected readbacks
- errors: weighted phase detection, pattern extraction, error rules, severity
- learning: adaptive model updates, statistics and serialization
- analyzer: single-exchange analysis
- dialogue: full-transcript analysis
- store: single-writer model store and its persistence backends

All services are consumed by the API layer (readback/api/).
"""

# =============================================================================
# Dialogue Structure
# Parsing, context building and exchange pairing
# =============================================================================

from readback.services.parser import (
    parse,
    infer_speaker,
    identify_labeled_speaker,
    extract_quoted_segments,
    clean_text,
)
from readback.services.context import (
    build_context,
    detect_flight_phase,
    extract_callsigns,
    are_similar_callsigns,
    update_issue_accumulator,
)
from readback.services.pairing import (
    pair,
    classify_instruction,
    evaluate_readback,
    contextual_severity,
    detect_parameter_confusion,
)

# =============================================================================
# Error Detection
# Structured commands and the weighted rule engine
# =============================================================================

from readback.services.semantic import (
    parse_structured_command,
    validate_readback_against_command,
    generate_expected_readback,
    normalize_to_digits,
)
from readback.services.errors import (
    detect_phase_weighted,
    extract_patterns_weighted,
    compare_readback,
    detect_errors,
    severity_score,
    severity_rollup,
    is_transposition,
    is_magnitude_error,
)

# =============================================================================
# Analysis Entry Points
# =============================================================================

from readback.services.analyzer import analyze
from readback.services.dialogue import analyze_dialogue

# =============================================================================
# Adaptive Model
# =============================================================================

from readback.services.learning import (
    create_default_state,
    apply_correction,
    batch_learn,
    reinforce,
    record_interaction,
    update_config,
    reset,
    get_stats,
    serialize,
    deserialize,
    MODEL_VERSION,
)
from readback.services.store import (
    ModelStore,
    StateBackend,
    InMemoryStateBackend,
    PostgresStateBackend,
    PersistenceError,
    create_backend,
)

__all__ = [
    # Dialogue structure
    "parse",
    "infer_speaker",
    "identify_labeled_speaker",
    "extract_quoted_segments",
    "clean_text",
    "build_context",
    "detect_flight_phase",
    "extract_callsigns",
    "are_similar_callsigns",
    "update_issue_accumulator",
    "pair",
    "classify_instruction",
    "evaluate_readback",
    "contextual_severity",
    "detect_parameter_confusion",
    # Error detection
    "parse_structured_command",
    "validate_readback_against_command",
    "generate_expected_readback",
    "normalize_to_digits",
    "detect_phase_weighted",
    "extract_patterns_weighted",
    "compare_readback",
    "detect_errors",
    "severity_score",
    "severity_rollup",
    "is_transposition",
    "is_magnitude_error",
    # Analysis
    "analyze",
    "analyze_dialogue",
    # Adaptive model
    "create_default_state",
    "apply_correction",
    "batch_learn",
    "reinforce",
    "record_interaction",
    "update_config",
    "reset",
    "get_stats",
    "serialize",
    "deserialize",
    "MODEL_VERSION",
    "ModelStore",
    "StateBackend",
    "InMemoryStateBackend",
    "PostgresStateBackend",
    "PersistenceError",
    "create_backend",
]
