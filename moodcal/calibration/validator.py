"""
Effectiveness Validator — keep or revert an applied adjustment.

After an adjustment has been live for a while, a later validation study is
compared against the tracker's current metrics (the pre-adjustment
reference). The adjustment is kept only if correlation went up AND mean
absolute error went down; otherwise it is reverted on the target component.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog

from moodcal.calibration.applier import ParameterApplier
from moodcal.calibration.schemas import (
    AdjustmentStatus,
    CalibrationAdjustment,
    ValidationOutcome,
)
from moodcal.calibration.tracker import PerformanceTracker
from moodcal.config import CalibrationConfig
from moodcal.exceptions import CalibrationStateError
from moodcal.validation.schemas import ValidationMetrics, ValidationResult

logger = structlog.get_logger(__name__)

# Bias reduction composite weights (sum to 1.0)
CORRELATION_WEIGHT: float = 0.4
ERROR_WEIGHT: float = 0.4
AGREEMENT_WEIGHT: float = 0.2


def calculate_bias_reduction(before: ValidationMetrics, after: ValidationMetrics) -> float:
    """
    Composite bias reduction score in [0, 1].

    Formula:
      0.4 × Δpearson / 2  +  0.4 × ΔMAE / MAE_before  +  0.2 × Δagreement / 100

    Each term is the improvement normalized by its range, so when ``after``
    beats ``before`` on all three the score is in (0, 1] and grows with
    the size of the improvement. Net regressions floor at 0.
    """
    correlation_gain = (after.pearson_correlation - before.pearson_correlation) / 2.0

    if before.mean_absolute_error > 0:
        error_gain = (before.mean_absolute_error - after.mean_absolute_error) / before.mean_absolute_error
    else:
        # Nothing left to reduce; any error now is a regression
        error_gain = -min(1.0, after.mean_absolute_error)

    agreement_gain = (after.agreement_percentage - before.agreement_percentage) / 100.0

    score = (
        CORRELATION_WEIGHT * correlation_gain
        + ERROR_WEIGHT * error_gain
        + AGREEMENT_WEIGHT * agreement_gain
    )
    return max(0.0, min(1.0, score))


class EffectivenessValidator:
    """Decides whether an applied adjustment helped, and reverts it if not."""

    def __init__(
        self,
        tracker: PerformanceTracker,
        applier: ParameterApplier,
        config: Optional[CalibrationConfig] = None,
    ):
        self.tracker = tracker
        self.applier = applier
        self.config = config or CalibrationConfig()

    async def validate(
        self,
        adjustment: CalibrationAdjustment,
        later_result: ValidationResult,
    ) -> CalibrationAdjustment:
        if adjustment.status != AdjustmentStatus.APPLIED:
            raise CalibrationStateError(
                f"Cannot validate calibration in status '{adjustment.status.value}'",
                calibration_id=adjustment.calibration_id,
                status=adjustment.status.value,
                expected=AdjustmentStatus.APPLIED.value,
            )

        before = self.tracker.current_metrics
        after = later_result.overall_metrics

        correlation_delta = after.pearson_correlation - before.pearson_correlation
        accuracy_delta = before.mean_absolute_error - after.mean_absolute_error
        bias_reduction = calculate_bias_reduction(before, after)
        threshold = self.config.min_improvement_threshold

        adjustment.validation_results = ValidationOutcome(
            actual_correlation_improvement=correlation_delta,
            actual_bias_reduction=bias_reduction,
            actual_accuracy_improvement=accuracy_delta,
            validation_date=datetime.now(timezone.utc),
            meets_improvement_threshold=(
                correlation_delta >= threshold and accuracy_delta >= threshold
            ),
        )

        if correlation_delta > 0 and accuracy_delta > 0:
            adjustment.status = AdjustmentStatus.VALIDATED
            self.tracker.current_metrics = after
            self.tracker.record_trend(after)

            logger.info(
                "calibration_validated",
                calibration_id=adjustment.calibration_id,
                correlation_improvement=round(correlation_delta, 4),
                accuracy_improvement=round(accuracy_delta, 4),
                bias_reduction=round(bias_reduction, 4),
                meets_threshold=adjustment.validation_results.meets_improvement_threshold,
            )
            return adjustment

        adjustment.status = AdjustmentStatus.REJECTED
        adjustment.rejection_reason = "no measured improvement"

        logger.warning(
            "calibration_rejected_poor_performance",
            calibration_id=adjustment.calibration_id,
            correlation_improvement=round(correlation_delta, 4),
            accuracy_improvement=round(accuracy_delta, 4),
        )

        try:
            await self.applier.revert(adjustment)
        except Exception as exc:
            adjustment.rejection_reason = f"no measured improvement; revert failed: {exc}"
            logger.error(
                "calibration_revert_failed",
                calibration_id=adjustment.calibration_id,
                target_component=adjustment.target_component.value,
                error=str(exc),
            )

        return adjustment
