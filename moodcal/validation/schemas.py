"""
Validation Study Schemas.

Human-vs-algorithm validation results as produced by the study pipeline.
These are the statistical evidence the calibration loop reasons about; the
engine only reads them, so every model is frozen.
"""

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ConcordanceLevel(StrEnum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


class SystematicBias(StrEnum):
    OVER_ESTIMATION = "algorithmic_over_estimation"
    UNDER_ESTIMATION = "algorithmic_under_estimation"
    NONE = "no_systematic_bias"


class BiasDirection(StrEnum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    MIXED = "mixed"


class DiscrepancyType(StrEnum):
    OVER_ESTIMATION = "algorithmic_over_estimation"
    UNDER_ESTIMATION = "algorithmic_under_estimation"
    CLOSE_AGREEMENT = "close_agreement"


class BiasSeverity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        """Ordinal position: low=0, medium=1, high=2."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK: dict[BiasSeverity, int] = {
    BiasSeverity.LOW: 0,
    BiasSeverity.MEDIUM: 1,
    BiasSeverity.HIGH: 2,
}


# ── Metrics ────────────────────────────────────────────────────────────


class StatisticalSignificance(BaseModel):
    model_config = ConfigDict(frozen=True)

    p_value: float = Field(ge=0, le=1)
    is_significant: bool
    confidence_interval: tuple[float, float]

    @field_validator("confidence_interval")
    @classmethod
    def _ordered_interval(cls, v: tuple[float, float]) -> tuple[float, float]:
        if v[0] > v[1]:
            raise ValueError("confidence interval lower bound exceeds upper bound")
        return v


class ValidationMetrics(BaseModel):
    """Statistical snapshot comparing algorithmic and human mood scores."""

    model_config = ConfigDict(frozen=True)

    pearson_correlation: float = Field(ge=-1, le=1)
    spearman_correlation: float = Field(ge=-1, le=1)
    mean_absolute_error: float = Field(ge=0)
    root_mean_square_error: float = Field(ge=0)
    agreement_percentage: float = Field(ge=0, le=100)
    concordance_level: ConcordanceLevel
    statistical_significance: StatisticalSignificance
    sample_size: int = Field(ge=0, description="Validation pairs analysed; 0 only before any study")


def default_baseline_metrics() -> ValidationMetrics:
    """Reference performance used when no measured baseline is supplied."""
    return ValidationMetrics(
        pearson_correlation=0.6,
        spearman_correlation=0.6,
        mean_absolute_error=1.5,
        root_mean_square_error=2.0,
        agreement_percentage=60.0,
        concordance_level=ConcordanceLevel.MODERATE,
        statistical_significance=StatisticalSignificance(
            p_value=0.1,
            is_significant=False,
            confidence_interval=(0.4, 0.8),
        ),
        sample_size=0,
    )


# ── Discrepancies ──────────────────────────────────────────────────────


class BiasPattern(BaseModel):
    model_config = ConfigDict(frozen=True)

    magnitude: float = Field(ge=0)
    consistency: float = Field(ge=0, le=1)
    direction: BiasDirection


class DiscrepancyAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    systematic_bias: SystematicBias
    bias_pattern: BiasPattern
    common_discrepancy_types: list[str] = Field(default_factory=list)
    problematic_contexts: list[str] = Field(default_factory=list)
    improvement_recommendations: list[str] = Field(default_factory=list)


class IndividualAnalysis(BaseModel):
    """One conversation scored by both the algorithm and a human expert."""

    model_config = ConfigDict(frozen=True)

    conversation_id: str
    algorithmic_score: float
    human_score: float
    absolute_error: float = Field(ge=0)
    algorithmic_confidence: float = Field(ge=0, le=1)
    human_confidence: float = Field(ge=0, le=1)
    discrepancy_type: DiscrepancyType


# ── Bias analysis ──────────────────────────────────────────────────────


class BiasType(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    severity: BiasSeverity
    affected_samples: int = Field(ge=0)
    description: str = ""
    correction_recommendation: str = ""


class BiasAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    bias_detected: bool
    bias_types: list[BiasType] = Field(default_factory=list)
    detection_confidence: float = Field(default=0.0, ge=0, le=1)


class Recommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    priority: BiasSeverity
    category: str
    description: str
    expected_impact: str = ""


class SessionMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    validation_id: Optional[str] = None
    validation_date: datetime
    total_conversations: int = Field(ge=0)
    total_validators: int = Field(ge=0)


class ValidationResult(BaseModel):
    """Everything one validation study reports."""

    model_config = ConfigDict(frozen=True)

    overall_metrics: ValidationMetrics
    discrepancy_analysis: DiscrepancyAnalysis
    individual_analyses: list[IndividualAnalysis] = Field(default_factory=list)
    bias_analysis: BiasAnalysis
    recommendations: list[Recommendation] = Field(default_factory=list)
    session_metadata: SessionMetadata

    @model_validator(mode="after")
    def _sample_covers_analyses(self) -> "ValidationResult":
        if self.overall_metrics.sample_size < len(self.individual_analyses):
            raise ValueError(
                f"sample_size {self.overall_metrics.sample_size} is smaller than "
                f"the {len(self.individual_analyses)} individual analyses it summarizes"
            )
        return self
