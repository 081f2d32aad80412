"""
Data models for the readback analysis service.

Re-exports all enums and Pydantic schemas so callers can write
`from readback.models import ParsedLine, Speaker`.
"""

from readback.models.enums import (
    SEVERITY_ORDER,
    ConditionType,
    ConstraintType,
    CorpusType,
    ErrorType,
    FindingCategory,
    FlightPhase,
    InstructionType,
    MismatchType,
    ModelPhase,
    ReadbackQuality,
    RiskLevel,
    SafetyImpact,
    Severity,
    Speaker,
    WeightUpdateReason,
)
from readback.models.schemas import (
    ERROR_DETECTION_BOUNDS,
    ERROR_WEIGHT_BOUNDS,
    PHASE_WEIGHT_BOUNDS,
    AccuracySample,
    AdaptiveModelState,
    AnalysisContextInput,
    AnalysisInput,
    AnalysisResult,
    BatchLearnRequest,
    CorrectionRequest,
    ConfigUpdate,
    ContextInfo,
    ConversationContext,
    CorrectionActual,
    CorrectionOriginal,
    CorrectionResponse,
    DetectedError,
    DialogueAnalysis,
    DialogueInput,
    ExchangeFeedback,
    ExchangePair,
    IssueAccumulator,
    IssueRecord,
    LearningConfig,
    LearningHistory,
    LearningProgress,
    ModelMetrics,
    ModelStateResponse,
    ModelStats,
    ModelWeights,
    ParsedLine,
    PhraseologyFinding,
    ReadbackMismatch,
    ResetRequest,
    SafetyCriticalDetection,
    SafetyMetrics,
    SessionResults,
    SeverityWeights,
    StatsResponse,
    Thresholds,
    TopError,
    UserCorrection,
    WeightDistribution,
    WeightUpdate,
    utcnow,
)

__all__ = [
    # Enums
    "SEVERITY_ORDER",
    "ConditionType",
    "ConstraintType",
    "CorpusType",
    "ErrorType",
    "FindingCategory",
    "FlightPhase",
    "InstructionType",
    "MismatchType",
    "ModelPhase",
    "ReadbackQuality",
    "RiskLevel",
    "SafetyImpact",
    "Severity",
    "Speaker",
    "WeightUpdateReason",
    # Dialogue structures
    "ParsedLine",
    "ReadbackMismatch",
    "ExchangePair",
    "IssueRecord",
    "IssueAccumulator",
    "ConversationContext",
    "DetectedError",
    # Model state
    "ERROR_WEIGHT_BOUNDS",
    "PHASE_WEIGHT_BOUNDS",
    "ERROR_DETECTION_BOUNDS",
    "SeverityWeights",
    "Thresholds",
    "ModelWeights",
    "LearningConfig",
    "CorrectionOriginal",
    "CorrectionActual",
    "UserCorrection",
    "WeightUpdate",
    "AccuracySample",
    "LearningHistory",
    "AdaptiveModelState",
    "utcnow",
    # Analysis
    "AnalysisContextInput",
    "AnalysisInput",
    "ModelMetrics",
    "AnalysisResult",
    # Model operations
    "SessionResults",
    "ConfigUpdate",
    "ResetRequest",
    "BatchLearnRequest",
    "CorrectionRequest",
    "TopError",
    "WeightDistribution",
    "LearningProgress",
    "ModelStats",
    "ModelStateResponse",
    "CorrectionResponse",
    "StatsResponse",
    # Dialogue analysis
    "DialogueInput",
    "PhraseologyFinding",
    "SafetyCriticalDetection",
    "SafetyMetrics",
    "ExchangeFeedback",
    "ContextInfo",
    "DialogueAnalysis",
]
