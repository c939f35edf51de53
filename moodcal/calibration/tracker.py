"""
Performance Tracker — longitudinal view of calibration results.

Holds two distinct snapshots:
- ``baseline_metrics``: fixed reference point, set once at construction.
  Summaries measure overall improvement against it.
- ``current_metrics``: the live algorithm's latest measured performance.
  Each validation decision compares a later study against it.

Plus an append-only trend, one entry per validated calibration.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

from moodcal.calibration.schemas import (
    AdjustmentStatus,
    CalibrationAdjustment,
    PerformanceSummary,
    TrendEntry,
)
from moodcal.validation.schemas import ValidationMetrics, default_baseline_metrics

# Mood scores live on a 0-10 scale; MAE is normalized against it
SCORE_RANGE: float = 10.0


class PerformanceTracker:
    def __init__(self, baseline_metrics: Optional[ValidationMetrics] = None):
        baseline = baseline_metrics or default_baseline_metrics()
        self._baseline = baseline
        self._current = baseline
        self._trend: list[TrendEntry] = []

    @property
    def baseline_metrics(self) -> ValidationMetrics:
        return self._baseline

    @property
    def current_metrics(self) -> ValidationMetrics:
        return self._current

    @current_metrics.setter
    def current_metrics(self, metrics: ValidationMetrics) -> None:
        self._current = metrics

    @property
    def improvement_trend(self) -> tuple[TrendEntry, ...]:
        return tuple(self._trend)

    def record_trend(
        self,
        metrics: ValidationMetrics,
        date: Optional[datetime] = None,
    ) -> TrendEntry:
        """Append a trend point derived from ``metrics``."""
        entry = TrendEntry(
            date=date or datetime.now(timezone.utc),
            correlation_score=metrics.pearson_correlation,
            bias_level=1.0 - metrics.pearson_correlation,
            accuracy_score=1.0 - metrics.mean_absolute_error / SCORE_RANGE,
        )
        self._trend.append(entry)
        return entry

    def summary(self, history: Iterable[CalibrationAdjustment]) -> PerformanceSummary:
        history = list(history)
        return PerformanceSummary(
            total_calibrations=len(history),
            successful_calibrations=sum(
                1 for c in history if c.status == AdjustmentStatus.VALIDATED
            ),
            overall_correlation_improvement=(
                self._current.pearson_correlation - self._baseline.pearson_correlation
            ),
            overall_accuracy_improvement=(
                self._baseline.mean_absolute_error - self._current.mean_absolute_error
            ),
            improvement_trend=tuple(self._trend),
        )
