"""
Validation study inputs.

The study pipeline produces ``ValidationResult`` objects once per study;
the calibration loop consumes them read-only.
"""

from moodcal.validation.schemas import (
    BiasAnalysis,
    BiasDirection,
    BiasPattern,
    BiasSeverity,
    BiasType,
    ConcordanceLevel,
    DiscrepancyAnalysis,
    DiscrepancyType,
    IndividualAnalysis,
    Recommendation,
    SessionMetadata,
    StatisticalSignificance,
    SystematicBias,
    ValidationMetrics,
    ValidationResult,
    default_baseline_metrics,
)

__all__ = [
    "BiasAnalysis",
    "BiasDirection",
    "BiasPattern",
    "BiasSeverity",
    "BiasType",
    "ConcordanceLevel",
    "DiscrepancyAnalysis",
    "DiscrepancyType",
    "IndividualAnalysis",
    "Recommendation",
    "SessionMetadata",
    "StatisticalSignificance",
    "SystematicBias",
    "ValidationMetrics",
    "ValidationResult",
    "default_baseline_metrics",
]
