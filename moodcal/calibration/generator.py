"""
Bias Analyzer / Adjustment Generator.

Turns one validation study into a short, ordered list of candidate
parameter adjustments:
1. Systematic over/under-estimation → sentiment weight adjustment
2. Overconfident high-error predictions → tighter high-confidence threshold
3. Each identified bias type → a bias-specific correction factor

Candidates are truncated to ``max_calibrations_per_session`` in that
priority order. Generation is synchronous and has no side effects.
"""

import math
import time
import uuid
from datetime import datetime, timezone
from typing import Mapping, Optional

import structlog

from moodcal.calibration.schemas import (
    AdjustmentType,
    CalibrationAdjustment,
    ParameterAdjustment,
    PredictedImprovements,
    TargetComponent,
)
from moodcal.calibration.store import (
    DEFAULT_CORRECTION_FACTOR,
    DEFAULT_PARAMETERS,
    ParameterKey,
)
from moodcal.config import CalibrationConfig
from moodcal.validation.schemas import BiasSeverity, BiasType, SystematicBias, ValidationResult

logger = structlog.get_logger(__name__)

# ── Configuration ─────────────────────────────────────────────────────────

SENTIMENT_WEIGHT_PARAMETER: str = "sentiment_weight"
MIN_SENTIMENT_WEIGHT: float = 0.1
MAX_SENTIMENT_WEIGHT: float = 0.6
WEIGHT_STEP_PER_MAGNITUDE: float = 0.05   # Weight change per unit of bias magnitude
MAX_WEIGHT_STEP: float = 0.1              # Never move the weight further than this at once

HIGH_CONFIDENCE_PARAMETER: str = "confidence_threshold_high"
HIGH_CONFIDENCE_LEVEL: float = 0.8        # Algorithmic confidence counted as "high"
HIGH_ERROR_LEVEL: float = 1.5             # Absolute error counted as "large"
OVERCONFIDENCE_SHARE: float = 0.3         # Share of analyses that must be overconfident
THRESHOLD_STEP: float = 0.05
MAX_CONFIDENCE_THRESHOLD: float = 0.95

SEVERITY_MULTIPLIERS: dict[BiasSeverity, float] = {
    BiasSeverity.LOW: 1.05,
    BiasSeverity.MEDIUM: 1.10,
    BiasSeverity.HIGH: 1.20,
}
SAMPLE_BOOST_CEILING: float = 0.3         # Sample multiplier saturates at 1.3
SAMPLE_BOOST_SCALE: float = 6.0           # Samples at which ~63% of the boost is reached

BIAS_TARGET_COMPONENTS: dict[str, TargetComponent] = {
    "emotional_minimization": TargetComponent.SENTIMENT_ANALYSIS,
    "sarcasm_detection_failure": TargetComponent.SENTIMENT_ANALYSIS,
    "mixed_emotion_oversimplification": TargetComponent.SENTIMENT_ANALYSIS,
    "emotional_complexity": TargetComponent.SENTIMENT_ANALYSIS,
    "repetitive_pattern_blindness": TargetComponent.PSYCHOLOGICAL_INDICATORS,
    "defensive_language_blindness": TargetComponent.PSYCHOLOGICAL_INDICATORS,
}
DEFAULT_BIAS_TARGET: TargetComponent = TargetComponent.SENTIMENT_ANALYSIS


def get_bias_target_component(bias_type: str) -> TargetComponent:
    """Component responsible for correcting a bias type."""
    return BIAS_TARGET_COMPONENTS.get(bias_type, DEFAULT_BIAS_TARGET)


def get_bias_correction_factor(severity: BiasSeverity, affected_samples: int) -> float:
    """
    Correction factor for a bias of the given severity and reach.

    factor = severity_multiplier × (1 + 0.3 × (1 − e^(−n/6)))

    Non-decreasing in severity for a fixed sample count and in sample
    count for a fixed severity; more samples give diminishing returns.
    """
    severity_multiplier = SEVERITY_MULTIPLIERS[BiasSeverity(severity)]
    n = max(0, affected_samples)
    sample_multiplier = 1.0 + SAMPLE_BOOST_CEILING * (1.0 - math.exp(-n / SAMPLE_BOOST_SCALE))
    return severity_multiplier * sample_multiplier


def _calibration_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class AdjustmentGenerator:
    """
    Produces pending calibration adjustments from a validation study.

    Proposals step from the live parameter values passed as ``current_values``
    (see ``parameter_keys``); keys missing there fall back to
    ``parameter_defaults``. The weight rule emits nothing when the clamped
    step would leave the weight where it is, so a weight already at its
    bound gets no proposal.
    """

    def __init__(
        self,
        config: Optional[CalibrationConfig] = None,
        parameter_defaults: Optional[Mapping[ParameterKey, float]] = None,
    ):
        self.config = config or CalibrationConfig()
        self.parameter_defaults = dict(DEFAULT_PARAMETERS)
        if parameter_defaults:
            self.parameter_defaults.update(parameter_defaults)

    def parameter_keys(self, validation_result: ValidationResult) -> list[ParameterKey]:
        """Parameters whose live value ``generate`` may step from."""
        keys: list[ParameterKey] = [
            (TargetComponent.SENTIMENT_ANALYSIS.value, SENTIMENT_WEIGHT_PARAMETER),
            (TargetComponent.CONFIDENCE_CALCULATOR.value, HIGH_CONFIDENCE_PARAMETER),
        ]
        for bias_type in validation_result.bias_analysis.bias_types:
            key = (
                get_bias_target_component(bias_type.type).value,
                f"{bias_type.type}_correction_factor",
            )
            if key not in keys:
                keys.append(key)
        return keys

    def generate(
        self,
        validation_result: ValidationResult,
        session_id: Optional[str] = None,
        current_values: Optional[Mapping[ParameterKey, float]] = None,
    ) -> list[CalibrationAdjustment]:
        session_id = session_id or f"session-{int(time.time() * 1000)}"
        values = dict(self.parameter_defaults)
        if current_values:
            values.update(current_values)

        logger.debug(
            "generating_calibration_adjustments",
            session_id=session_id,
            bias_detected=validation_result.bias_analysis.bias_detected,
            recommendation_count=len(validation_result.recommendations),
        )

        sample_size = validation_result.overall_metrics.sample_size
        if sample_size < self.config.min_validation_sample_size:
            logger.warning(
                "calibration_insufficient_sample",
                session_id=session_id,
                sample_size=sample_size,
                required=self.config.min_validation_sample_size,
            )
            return []

        candidates: list[CalibrationAdjustment] = []
        candidates.extend(self._weight_adjustments(validation_result, session_id, values))
        candidates.extend(self._threshold_adjustments(validation_result, session_id, values))
        candidates.extend(self._bias_corrections(validation_result, session_id, values))

        limited = candidates[: self.config.max_calibrations_per_session]

        logger.debug(
            "generated_calibration_adjustments",
            session_id=session_id,
            total_generated=len(candidates),
            limited_to=len(limited),
        )
        return limited

    # ── Rules ────────────────────────────────────────────────────────────

    def _weight_adjustments(
        self,
        result: ValidationResult,
        session_id: str,
        values: Mapping[ParameterKey, float],
    ) -> list[CalibrationAdjustment]:
        bias = result.discrepancy_analysis.systematic_bias
        magnitude = result.discrepancy_analysis.bias_pattern.magnitude
        if bias == SystematicBias.NONE or magnitude <= 0:
            return []

        current = values[(TargetComponent.SENTIMENT_ANALYSIS.value, SENTIMENT_WEIGHT_PARAMETER)]
        step = min(MAX_WEIGHT_STEP, WEIGHT_STEP_PER_MAGNITUDE * magnitude)
        if bias == SystematicBias.OVER_ESTIMATION:
            step = -step
        recommended = max(MIN_SENTIMENT_WEIGHT, min(MAX_SENTIMENT_WEIGHT, current + step))

        if recommended == current:
            logger.debug(
                "weight_adjustment_at_bound",
                session_id=session_id,
                current=current,
                bias=bias.value,
            )
            return []

        return [CalibrationAdjustment(
            calibration_id=_calibration_id("weight-adj"),
            timestamp=datetime.now(timezone.utc),
            source_validation_id=session_id,
            adjustment_type=AdjustmentType.WEIGHT_ADJUSTMENT,
            target_component=TargetComponent.SENTIMENT_ANALYSIS,
            parameter_adjustments=[ParameterAdjustment(
                parameter_name=SENTIMENT_WEIGHT_PARAMETER,
                current_value=current,
                recommended_value=recommended,
                adjustment_reason=f"Address {bias.value} with magnitude {magnitude:.2f}",
                expected_impact=f"Reduce systematic bias by {abs(recommended - current) * 100:.1f}%",
            )],
            predicted_improvements=PredictedImprovements(
                correlation_improvement=0.05,
                bias_reduction=min(0.5, 0.1 * magnitude),
                accuracy_improvement=magnitude * 0.3,
            ),
        )]

    def _threshold_adjustments(
        self,
        result: ValidationResult,
        session_id: str,
        values: Mapping[ParameterKey, float],
    ) -> list[CalibrationAdjustment]:
        analyses = result.individual_analyses
        if not analyses:
            return []

        overconfident = [
            a for a in analyses
            if a.algorithmic_confidence >= HIGH_CONFIDENCE_LEVEL and a.absolute_error > HIGH_ERROR_LEVEL
        ]
        if len(overconfident) <= len(analyses) * OVERCONFIDENCE_SHARE:
            return []

        current = values[(TargetComponent.CONFIDENCE_CALCULATOR.value, HIGH_CONFIDENCE_PARAMETER)]
        recommended = min(MAX_CONFIDENCE_THRESHOLD, current + THRESHOLD_STEP)
        if recommended <= max(current, HIGH_CONFIDENCE_LEVEL):
            return []

        return [CalibrationAdjustment(
            calibration_id=_calibration_id("threshold-adj"),
            timestamp=datetime.now(timezone.utc),
            source_validation_id=session_id,
            adjustment_type=AdjustmentType.THRESHOLD_ADJUSTMENT,
            target_component=TargetComponent.CONFIDENCE_CALCULATOR,
            parameter_adjustments=[ParameterAdjustment(
                parameter_name=HIGH_CONFIDENCE_PARAMETER,
                current_value=current,
                recommended_value=recommended,
                adjustment_reason=(
                    f"Reduce overconfidence: {len(overconfident)} of {len(analyses)} "
                    "cases with high confidence but high error"
                ),
                expected_impact="Improve confidence calibration accuracy by 10-15%",
            )],
            predicted_improvements=PredictedImprovements(
                correlation_improvement=0.02,
                bias_reduction=0.1,
                accuracy_improvement=0.2,
            ),
        )]

    def _bias_corrections(
        self,
        result: ValidationResult,
        session_id: str,
        values: Mapping[ParameterKey, float],
    ) -> list[CalibrationAdjustment]:
        return [
            self._bias_correction(bias_type, session_id, values)
            for bias_type in result.bias_analysis.bias_types
        ]

    def _bias_correction(
        self,
        bias_type: BiasType,
        session_id: str,
        values: Mapping[ParameterKey, float],
    ) -> CalibrationAdjustment:
        target = get_bias_target_component(bias_type.type)
        parameter = f"{bias_type.type}_correction_factor"
        factor = get_bias_correction_factor(bias_type.severity, bias_type.affected_samples)
        strength = factor - 1.0

        return CalibrationAdjustment(
            calibration_id=_calibration_id("bias-correction"),
            timestamp=datetime.now(timezone.utc),
            source_validation_id=session_id,
            adjustment_type=AdjustmentType.BIAS_CORRECTION,
            target_component=target,
            parameter_adjustments=[ParameterAdjustment(
                parameter_name=parameter,
                current_value=values.get(
                    (target.value, parameter), DEFAULT_CORRECTION_FACTOR
                ),
                recommended_value=factor,
                adjustment_reason=bias_type.description or f"{bias_type.severity.value} severity {bias_type.type}",
                expected_impact=bias_type.correction_recommendation or f"Correct {bias_type.type}",
            )],
            predicted_improvements=PredictedImprovements(
                correlation_improvement=0.02 + 0.03 * bias_type.severity.rank,
                bias_reduction=min(0.5, 0.1 + 0.5 * strength),
                accuracy_improvement=min(0.5, strength),
            ),
        )
