"""
Calibration Schemas.

A ``CalibrationAdjustment`` is the unit of work of the calibration loop:
generated as ``pending``, then ``applied`` or ``rejected`` by the applier,
then ``validated`` or ``rejected`` by the effectiveness validator.

Predicted improvements are heuristics computed at generation time;
``ValidationOutcome`` holds what was actually measured afterwards.
"""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AdjustmentType(StrEnum):
    WEIGHT_ADJUSTMENT = "weight_adjustment"
    THRESHOLD_ADJUSTMENT = "threshold_adjustment"
    BIAS_CORRECTION = "bias_correction"


class TargetComponent(StrEnum):
    SENTIMENT_ANALYSIS = "sentiment_analysis"
    CONFIDENCE_CALCULATOR = "confidence_calculator"
    PSYCHOLOGICAL_INDICATORS = "psychological_indicators"


class AdjustmentStatus(StrEnum):
    PENDING = "pending"
    APPLIED = "applied"
    VALIDATED = "validated"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (AdjustmentStatus.VALIDATED, AdjustmentStatus.REJECTED)


class ParameterAdjustment(BaseModel):
    """A single proposed parameter change on the target component."""

    model_config = ConfigDict(frozen=True)

    parameter_name: str
    current_value: float
    recommended_value: float
    adjustment_reason: str
    expected_impact: str

    @property
    def delta(self) -> float:
        return self.recommended_value - self.current_value


class PredictedImprovements(BaseModel):
    """Generation-time estimates. Not measurements."""

    model_config = ConfigDict(frozen=True)

    correlation_improvement: float
    bias_reduction: float = Field(ge=0)
    accuracy_improvement: float


class ValidationOutcome(BaseModel):
    """Measured effect of an applied adjustment on a later study."""

    model_config = ConfigDict(frozen=True)

    actual_correlation_improvement: float
    actual_bias_reduction: float = Field(ge=0, le=1)
    actual_accuracy_improvement: float
    validation_date: datetime
    meets_improvement_threshold: bool = False


class AppliedParameter(BaseModel):
    """Audit record of a committed write; ``previous_value`` is what revert restores."""

    model_config = ConfigDict(frozen=True)

    parameter_name: str
    previous_value: float
    applied_value: float


class CalibrationAdjustment(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    calibration_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source_validation_id: str
    adjustment_type: AdjustmentType
    target_component: TargetComponent
    parameter_adjustments: list[ParameterAdjustment] = Field(min_length=1)
    predicted_improvements: PredictedImprovements
    status: AdjustmentStatus = AdjustmentStatus.PENDING

    validation_results: Optional[ValidationOutcome] = None
    applied_parameters: list[AppliedParameter] = Field(default_factory=list)
    rejection_reason: Optional[str] = None

    def parameter_keys(self) -> list[tuple[str, str]]:
        """``(component, parameter_name)`` pairs this adjustment writes."""
        return [
            (self.target_component.value, p.parameter_name)
            for p in self.parameter_adjustments
        ]


class TrendEntry(BaseModel):
    """One point on the longitudinal improvement chart."""

    model_config = ConfigDict(frozen=True)

    date: datetime
    correlation_score: float
    bias_level: float
    accuracy_score: float


class ApplicationResult(BaseModel):
    """Partition of an apply call's input into applied and rejected."""

    applied: list[CalibrationAdjustment] = Field(default_factory=list)
    rejected: list[CalibrationAdjustment] = Field(default_factory=list)


class PerformanceSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_calibrations: int
    successful_calibrations: int
    overall_correlation_improvement: float
    overall_accuracy_improvement: float
    improvement_trend: tuple[TrendEntry, ...] = ()


class CalibrationCycleResult(BaseModel):
    """Outcome of one generate-then-maybe-apply cycle."""

    session_id: str
    generated: list[CalibrationAdjustment] = Field(default_factory=list)
    applied: list[CalibrationAdjustment] = Field(default_factory=list)
    rejected: list[CalibrationAdjustment] = Field(default_factory=list)
    awaiting_review: list[CalibrationAdjustment] = Field(default_factory=list)
