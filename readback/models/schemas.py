"""
Pydantic schemas for the readback analysis service.

Field names are camelCase so the same models serve as the JSON wire format of
the HTTP API and as the persisted form of the adaptive model state.

Groups:
- Dialogue structures: ParsedLine, ReadbackMismatch, ExchangePair,
  IssueRecord, IssueAccumulator, ConversationContext
- Errors: DetectedError
- Adaptive model state: ModelWeights, LearningConfig, LearningHistory,
  AdaptiveModelState, UserCorrection, WeightUpdate
- Requests and responses: AnalysisInput, AnalysisResult, SessionResults,
  ConfigUpdate, ModelStats, DialogueInput, DialogueAnalysis and friends
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from readback.models.enums import (
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


def utcnow() -> datetime:
    """Timezone-aware current time used for every timestamp in the state."""
    return datetime.now(timezone.utc)


# =============================================================================
# Dialogue Structures
# =============================================================================


class ParsedLine(BaseModel):
    """
    One speaker-tagged turn of a transcript.

    Created once per parse call and never modified afterwards.
    """
    model_config = ConfigDict(frozen=True)

    lineNumber: int = Field(
        ...,
        ge=1,
        description="1-based position of the turn in the parsed transcript"
    )
    text: str = Field(
        ...,
        description="Normalized text with speaker labels and brackets removed"
    )
    rawText: str = Field(
        ...,
        description="Text as extracted from the transcript"
    )
    speaker: Speaker = Field(
        ...,
        description="Inferred role of the speaker"
    )


class ReadbackMismatch(BaseModel):
    """A single discrepancy found while evaluating one readback."""
    model_config = ConfigDict(frozen=True)

    type: MismatchType
    parameter: str
    atcValue: Optional[str] = None
    pilotValue: Optional[str] = None


class ExchangePair(BaseModel):
    """
    An ATC instruction matched with the pilot's (possibly absent) response.
    """
    model_config = ConfigDict(frozen=True)

    atcLine: ParsedLine = Field(
        ...,
        description="The ATC instruction"
    )
    pilotLine: Optional[ParsedLine] = Field(
        default=None,
        description="The pilot response found within the pairing window"
    )
    instructionType: InstructionType = Field(
        ...,
        description="Instruction category of the ATC line"
    )
    readbackQuality: ReadbackQuality = Field(
        ...,
        description="How well the response reads back the instruction"
    )
    responseDelay: int = Field(
        default=0,
        ge=0,
        description="Line distance between instruction and response"
    )
    contextualSeverity: Severity = Field(
        ...,
        description="Severity adjusted for phase and emergency state"
    )
    mismatches: List[ReadbackMismatch] = Field(
        default_factory=list,
        description="Discrepancies behind a non-complete readback"
    )


class IssueRecord(BaseModel):
    """One non-complete readback remembered by the issue accumulator."""
    line: int
    severity: Severity
    timestamp: datetime = Field(default_factory=utcnow)


class IssueAccumulator(BaseModel):
    """
    Sliding-window counter of recent readback problems.

    escalationLevel is an annotation only; it never feeds the numeric
    severity of an exchange.
    """
    recentIssues: List[IssueRecord] = Field(default_factory=list)
    escalationLevel: int = Field(default=0, ge=0, le=3)
    patternDetected: Optional[str] = None


class ConversationContext(BaseModel):
    """
    Per-analysis aggregate derived from the parsed lines.

    Lives for one analyze call and is never persisted.
    """
    flightPhase: FlightPhase = FlightPhase.UNKNOWN
    detectedCallsigns: List[str] = Field(
        default_factory=list,
        description="Distinct normalized callsigns in order of first appearance"
    )
    primaryCallsign: Optional[str] = None
    emergencyDeclared: bool = False
    tcasActive: bool = False
    exchangePairs: List[ExchangePair] = Field(default_factory=list)
    issueAccumulator: IssueAccumulator = Field(default_factory=IssueAccumulator)


# =============================================================================
# Detected Errors
# =============================================================================


class DetectedError(BaseModel):
    """A concrete error instance found in a readback."""
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "type": "wrong_value",
                "description": "Altitude mismatch: ATC said 250, pilot read back 150",
                "severity": "critical",
                "confidence": 0.95,
                "weight": 1.2,
                "correction": "Correct altitude is 250"
            }
        }
    )

    type: ErrorType = Field(
        ...,
        description="Error type from the fixed vocabulary"
    )
    description: str = Field(
        ...,
        description="Human-readable explanation of the error"
    )
    severity: Severity = Field(
        ...,
        description="Intrinsic severity of this error"
    )
    confidence: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Detector confidence"
    )
    weight: float = Field(
        default=1.0,
        ge=0.0,
        description="Current model weight of this error type"
    )
    correction: Optional[str] = Field(
        default=None,
        description="Corrective guidance for the student"
    )


# =============================================================================
# Adaptive Model State
# =============================================================================

# Bounds kept by every learning update; imported states outside them are rejected
ERROR_WEIGHT_BOUNDS = (0.1, 3.0)
PHASE_WEIGHT_BOUNDS = (0.3, 2.0)
ERROR_DETECTION_BOUNDS = (0.4, 0.9)


def _check_bounds(name: str, weights: Dict[str, float], bounds: Tuple[float, float]) -> Dict[str, float]:
    low, high = bounds
    outside = {key: value for key, value in weights.items() if not low <= value <= high}
    if outside:
        raise ValueError(f"{name} outside [{low}, {high}]: {outside}")
    return weights



class SeverityWeights(BaseModel):
    """Multipliers applied to each severity bucket in the rollup."""
    critical: float = 1.5
    high: float = 1.2
    medium: float = 1.0
    low: float = 0.7


class Thresholds(BaseModel):
    """Decision thresholds; errorDetection stays within [0.4, 0.9]."""
    errorDetection: float = Field(
        default=0.65,
        ge=ERROR_DETECTION_BOUNDS[0],
        le=ERROR_DETECTION_BOUNDS[1],
    )
    phaseConfidence: float = Field(default=0.70, gt=0.0, lt=1.0)
    readbackAccuracy: float = Field(default=0.80, gt=0.0, lt=1.0)


class ModelWeights(BaseModel):
    """
    Mutable numeric record read by the error engine.

    errorWeights stay within [0.1, 3.0] and phaseWeights within [0.3, 2.0]
    after any sequence of learning operations.
    """
    patternWeights: Dict[str, float] = Field(default_factory=dict)
    errorWeights: Dict[str, float] = Field(default_factory=dict)
    phaseWeights: Dict[str, float] = Field(default_factory=dict)
    severityWeights: SeverityWeights = Field(default_factory=SeverityWeights)
    thresholds: Thresholds = Field(default_factory=Thresholds)

    @field_validator("errorWeights")
    @classmethod
    def error_weights_in_bounds(cls, v: Dict[str, float]) -> Dict[str, float]:
        return _check_bounds("errorWeights", v, ERROR_WEIGHT_BOUNDS)

    @field_validator("phaseWeights")
    @classmethod
    def phase_weights_in_bounds(cls, v: Dict[str, float]) -> Dict[str, float]:
        return _check_bounds("phaseWeights", v, PHASE_WEIGHT_BOUNDS)


class LearningConfig(BaseModel):
    """Online-learning hyperparameters."""
    learningRate: float = Field(default=0.1, ge=0.01, le=0.5)
    momentum: float = Field(default=0.3, ge=0.0, le=0.9)
    minConfidence: float = Field(default=0.5, ge=0.3, le=0.9)
    adaptiveRateEnabled: bool = True
    reinforcementEnabled: bool = True
    maxHistorySize: int = Field(default=1000, ge=1)


class CorrectionOriginal(BaseModel):
    """What the model predicted for an exchange."""
    model_config = ConfigDict(frozen=True)

    atc: str = ""
    pilot: str = ""
    predictedCorrect: bool
    predictedErrors: List[str] = Field(default_factory=list)
    predictedPhase: str


class CorrectionActual(BaseModel):
    """The human-supplied ground truth for an exchange."""
    model_config = ConfigDict(frozen=True)

    isActuallyCorrect: bool
    actualErrors: List[str] = Field(default_factory=list)
    actualPhase: str
    userFeedback: Optional[str] = None


class UserCorrection(BaseModel):
    """
    Immutable record of one human correction.

    The store appends a copy with applied=True once the weights were updated.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "original": {
                    "atc": "PAL456, descend and maintain flight level 250",
                    "pilot": "Descend flight level 250, PAL456",
                    "predictedCorrect": False,
                    "predictedErrors": ["missing_element"],
                    "predictedPhase": "descent"
                },
                "corrected": {
                    "isActuallyCorrect": True,
                    "actualErrors": [],
                    "actualPhase": "descent",
                    "userFeedback": "Acceptable readback"
                }
            }
        }
    )

    id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=utcnow)
    original: CorrectionOriginal
    corrected: CorrectionActual
    applied: bool = False


class WeightUpdate(BaseModel):
    """Audit record of one weight change made by the learning rule."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=utcnow)
    pattern: str = Field(
        ...,
        description="Updated weight, e.g. 'error:wrong_value' or 'phase:approach'"
    )
    oldWeight: float
    newWeight: float
    reason: WeightUpdateReason
    learningRate: float


class AccuracySample(BaseModel):
    """Running accuracy recorded after an interaction."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=utcnow)
    accuracy: float = Field(..., ge=0.0, le=1.0)


class LearningHistory(BaseModel):
    """
    Interaction counters plus bounded logs.

    totalInteractions always equals correctPredictions + incorrectPredictions.
    """
    totalInteractions: int = Field(default=0, ge=0)
    correctPredictions: int = Field(default=0, ge=0)
    incorrectPredictions: int = Field(default=0, ge=0)
    userCorrections: List[UserCorrection] = Field(default_factory=list)
    weightUpdates: List[WeightUpdate] = Field(default_factory=list)
    accuracyOverTime: List[AccuracySample] = Field(default_factory=list)
    lastTrainingDate: Optional[datetime] = None

    @model_validator(mode="after")
    def counters_consistent(self) -> "LearningHistory":
        if self.totalInteractions != self.correctPredictions + self.incorrectPredictions:
            raise ValueError(
                f"totalInteractions {self.totalInteractions} != "
                f"{self.correctPredictions} correct + {self.incorrectPredictions} incorrect"
            )
        return self


class AdaptiveModelState(BaseModel):
    """
    The single long-lived mutable entity of the engine.

    Owned by the ModelStore; replaced wholesale on import and reset.
    """
    version: str
    createdAt: datetime = Field(default_factory=utcnow)
    updatedAt: datetime = Field(default_factory=utcnow)
    weights: ModelWeights
    history: LearningHistory = Field(default_factory=LearningHistory)
    config: LearningConfig = Field(default_factory=LearningConfig)


# =============================================================================
# Single-Exchange Analysis
# =============================================================================


class AnalysisContextInput(BaseModel):
    """Optional caller context for a single-exchange analysis."""
    previousErrors: List[str] = Field(
        default_factory=list,
        description="Error types the student made in earlier exchanges"
    )
    phase: Optional[ModelPhase] = Field(
        default=None,
        description="Known flight phase; skips phase detection when set"
    )


class AnalysisInput(BaseModel):
    """Request body for single-exchange analysis."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "atc": "PAL456, descend and maintain flight level 250",
                "pilot": "Descend and maintain flight level 150, PAL456",
                "callsign": "PAL456",
                "context": {"previousErrors": ["wrong_value"]}
            }
        }
    )

    atc: str = Field(default="", description="ATC instruction text")
    pilot: str = Field(default="", description="Pilot readback text")
    callsign: Optional[str] = Field(default=None, description="Aircraft callsign")
    context: Optional[AnalysisContextInput] = None


class ModelMetrics(BaseModel):
    """Introspection data about which weights drove an analysis."""
    patternsMatched: int = 0
    weightsApplied: List[str] = Field(default_factory=list)
    confidenceFactors: Dict[str, float] = Field(default_factory=dict)


class AnalysisResult(BaseModel):
    """Result of analyzing one ATC instruction and its readback."""
    isCorrect: bool
    confidence: float = Field(..., ge=0.0, le=1.0)
    phase: ModelPhase
    phaseConfidence: float = Field(..., ge=0.0, le=1.0)
    errors: List[DetectedError] = Field(default_factory=list)
    severity: Severity
    readbackQuality: ReadbackQuality
    instructionType: InstructionType
    suggestions: List[str] = Field(default_factory=list)
    expectedReadback: str = ""
    learningOpportunity: bool = False
    modelMetrics: ModelMetrics = Field(default_factory=ModelMetrics)


# =============================================================================
# Model Operations
# =============================================================================


class SessionResults(BaseModel):
    """Aggregate of a training session used for reinforcement."""
    totalReadbacks: int = Field(default=0, description="Readbacks attempted")
    correctReadbacks: int = Field(default=0, ge=0)
    commonErrors: List[str] = Field(default_factory=list)
    phases: List[str] = Field(default_factory=list)


class ConfigUpdate(BaseModel):
    """Partial LearningConfig; out-of-range values are clamped, not rejected."""
    learningRate: Optional[float] = None
    momentum: Optional[float] = None
    minConfidence: Optional[float] = None
    adaptiveRateEnabled: Optional[bool] = None
    reinforcementEnabled: Optional[bool] = None


class CorrectionRequest(BaseModel):
    """A user correction as posted; both halves are checked by the router."""
    original: Optional[CorrectionOriginal] = None
    corrected: Optional[CorrectionActual] = None

    def to_correction(self) -> UserCorrection:
        return UserCorrection(original=self.original, corrected=self.corrected)


class ResetRequest(BaseModel):
    preserveHistory: bool = False


class BatchLearnRequest(BaseModel):
    examples: List[UserCorrection] = Field(default_factory=list)


class TopError(BaseModel):
    error: str
    count: int


class WeightDistribution(BaseModel):
    min: float
    max: float
    avg: float


class LearningProgress(BaseModel):
    improved: bool
    changePercent: float


class ModelStats(BaseModel):
    """Read-only statistics over the model state."""
    accuracy: float
    totalInteractions: int
    recentAccuracy: float
    topErrors: List[TopError] = Field(default_factory=list)
    weightDistribution: WeightDistribution
    learningProgress: LearningProgress
    modelAgeDays: int = 0
    lastTrainingDate: Optional[datetime] = None


class ModelStateResponse(BaseModel):
    state: AdaptiveModelState
    stats: ModelStats
    persistenceError: Optional[str] = None


class CorrectionResponse(BaseModel):
    stats: ModelStats
    updates: List[WeightUpdate] = Field(default_factory=list)
    persistenceError: Optional[str] = None


class StatsResponse(BaseModel):
    stats: ModelStats
    persistenceError: Optional[str] = None


# =============================================================================
# Full-Dialogue Analysis
# =============================================================================


class DialogueInput(BaseModel):
    """Request body for full-transcript analysis."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "text": "ATC: PAL456, climb and maintain flight level 350\n"
                        "PAL456: Roger",
                "corpusType": "APP/DEP"
            }
        }
    )

    text: str = Field(default="", description="Transcript text")
    corpusType: CorpusType = CorpusType.APP_DEP


class PhraseologyFinding(BaseModel):
    """One phraseology or readback problem found in a transcript."""
    line: int
    original: str
    issue: str
    suggestion: str
    severity: Severity
    category: FindingCategory
    safetyImpact: SafetyImpact = SafetyImpact.CLARITY
    explanation: Optional[str] = None
    whyItMatters: Optional[str] = None


class SafetyCriticalDetection(BaseModel):
    line: int
    text: str
    type: str
    description: str


class SafetyMetrics(BaseModel):
    """Severity counts and derived safety score for a transcript."""
    criticalIssues: int = 0
    highSeverityIssues: int = 0
    mediumSeverityIssues: int = 0
    lowSeverityIssues: int = 0
    safetyCriticalPhrases: List[SafetyCriticalDetection] = Field(default_factory=list)
    overallSafetyScore: float = 100.0
    readbackCompleteness: float = 100.0


class ExchangeFeedback(BaseModel):
    """Student-facing explanation of one exchange pair."""
    atcInstruction: str
    pilotResponse: Optional[str] = None
    instructionType: InstructionType
    readbackQuality: ReadbackQuality
    contextualSeverity: Severity
    issue: Optional[str] = None
    dynamicFeedback: str


class ContextInfo(BaseModel):
    flightPhase: FlightPhase
    phaseDescription: str
    detectedCallsign: Optional[str] = None
    exchangeAnalysis: List[ExchangeFeedback] = Field(default_factory=list)
    patternWarning: Optional[str] = None
    escalationLevel: int = 0
    situationalFactors: List[str] = Field(default_factory=list)


class DialogueAnalysis(BaseModel):
    """Result of analyzing a full transcript."""
    corpusType: CorpusType
    totalWords: int
    totalExchanges: int
    nonStandardFreq: float = Field(0.0, description="Language and procedure findings per 1000 words")
    clarificationCount: int
    lines: List[ParsedLine] = Field(default_factory=list)
    context: ConversationContext
    contextInfo: ContextInfo
    phraseologyFindings: List[PhraseologyFinding] = Field(default_factory=list)
    safetyMetrics: SafetyMetrics
    riskLevel: RiskLevel
