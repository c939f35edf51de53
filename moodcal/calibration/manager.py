"""
Algorithm Calibration Manager — the closed calibration loop.

Pipeline:
1. Generate candidate adjustments from a validation study
2. Apply them to the target components' parameter stores
3. After a later study, validate each applied adjustment (keep or revert)
4. Summarize improvement against the baseline

The manager exclusively owns two collections. ``active`` holds applied
adjustments awaiting validation. ``history`` holds every adjustment that
reached a terminal status through validation. An adjustment is only ever
in one of them.
"""

import asyncio
import time
from typing import Any, Callable, Iterable, Mapping, Optional, Union

import structlog

from moodcal.calibration.applier import ParameterApplier
from moodcal.calibration.generator import AdjustmentGenerator
from moodcal.calibration.schemas import (
    AdjustmentStatus,
    ApplicationResult,
    CalibrationAdjustment,
    CalibrationCycleResult,
    PerformanceSummary,
)
from moodcal.calibration.store import ParameterKey, ParameterStore, SimulatedParameterStore
from moodcal.calibration.tracker import PerformanceTracker
from moodcal.calibration.validator import EffectivenessValidator
from moodcal.config import CalibrationConfig, get_settings
from moodcal.exceptions import (
    CalibrationStateError,
    ParameterStoreError,
    UnknownCalibrationError,
)
from moodcal.validation.schemas import ValidationMetrics, ValidationResult

logger = structlog.get_logger(__name__)


class AlgorithmCalibrationManager:
    """
    Continuous improvement of mood scoring parameters from human validation.

    Without an explicit ``store`` the manager writes to a
    ``SimulatedParameterStore`` driven by ``random_source``.
    """

    def __init__(
        self,
        config: Optional[Union[CalibrationConfig, Mapping[str, Any]]] = None,
        baseline_metrics: Optional[ValidationMetrics] = None,
        store: Optional[ParameterStore] = None,
        random_source: Optional[Callable[[], float]] = None,
        parameter_defaults: Optional[Mapping[ParameterKey, float]] = None,
    ):
        self.config = CalibrationConfig.resolve(config)
        self.store = store or SimulatedParameterStore(
            random_source=random_source,
            success_rate=get_settings().simulated_success_rate,
        )

        self.performance_tracking = PerformanceTracker(baseline_metrics)
        self.generator = AdjustmentGenerator(self.config, parameter_defaults)
        self.applier = ParameterApplier(self.store, self.config)
        self.validator = EffectivenessValidator(
            self.performance_tracking, self.applier, self.config
        )

        self._active: list[CalibrationAdjustment] = []
        self._history: list[CalibrationAdjustment] = []

    # ── Read access ─────────────────────────────────────────────────────

    @property
    def active_calibrations(self) -> tuple[CalibrationAdjustment, ...]:
        return tuple(self._active)

    @property
    def calibration_history(self) -> tuple[CalibrationAdjustment, ...]:
        return tuple(self._history)

    def get_calibration(self, calibration_id: str) -> Optional[CalibrationAdjustment]:
        """Find an adjustment in the active collection or the history."""
        for adjustment in (*self._active, *self._history):
            if adjustment.calibration_id == calibration_id:
                return adjustment
        return None

    # ── Loop stages ─────────────────────────────────────────────────────

    async def generate_calibration_adjustments(
        self,
        validation_result: ValidationResult,
        session_id: Optional[str] = None,
    ) -> list[CalibrationAdjustment]:
        """
        Candidate adjustments for one study, all ``pending``.

        Proposals step from the values currently committed in the store, so
        successive validated cycles keep moving a parameter.
        """
        current_values = await self._read_current_values(
            self.generator.parameter_keys(validation_result)
        )
        return self.generator.generate(validation_result, session_id, current_values)

    async def apply_calibration_adjustments(
        self,
        adjustments: Iterable[CalibrationAdjustment],
    ) -> ApplicationResult:
        """
        Apply adjustments concurrently; partition them into applied/rejected.

        Store refusals and faults never propagate: the adjustment is marked
        ``rejected`` instead. Passing a non-pending adjustment is a contract
        violation and raises before anything is written.
        """
        adjustments = list(adjustments)
        for adjustment in adjustments:
            if adjustment.status != AdjustmentStatus.PENDING:
                raise CalibrationStateError(
                    f"Cannot apply calibration in status '{adjustment.status.value}'",
                    calibration_id=adjustment.calibration_id,
                    status=adjustment.status.value,
                    expected=AdjustmentStatus.PENDING.value,
                )

        outcomes = await asyncio.gather(*(self._apply_one(a) for a in adjustments))

        result = ApplicationResult()
        for adjustment, ok in zip(adjustments, outcomes):
            (result.applied if ok else result.rejected).append(adjustment)

        logger.info(
            "calibration_batch_applied",
            requested=len(adjustments),
            applied=len(result.applied),
            rejected=len(result.rejected),
        )
        return result

    async def validate_calibration_effectiveness(
        self,
        adjustment: CalibrationAdjustment,
        after_validation_result: ValidationResult,
    ) -> CalibrationAdjustment:
        """Keep or revert an active adjustment, then move it to history."""
        if not any(a.calibration_id == adjustment.calibration_id for a in self._active):
            raise UnknownCalibrationError(
                f"Calibration '{adjustment.calibration_id}' is not active",
                calibration_id=adjustment.calibration_id,
            )

        validated = await self.validator.validate(adjustment, after_validation_result)

        self._active = [a for a in self._active if a.calibration_id != validated.calibration_id]
        self._history.append(validated)
        return validated

    def get_performance_improvement_summary(self) -> PerformanceSummary:
        return self.performance_tracking.summary(self._history)

    async def run_calibration_cycle(
        self,
        validation_result: ValidationResult,
        session_id: Optional[str] = None,
    ) -> CalibrationCycleResult:
        """
        Generate adjustments and, when allowed, apply them straight away.

        Auto-apply needs ``auto_apply_calibrations`` and a bias detection
        confidence at or above ``calibration_confidence_threshold``.
        Anything not applied is returned pending, for human review.
        """
        session_id = session_id or f"session-{int(time.time() * 1000)}"
        generated = await self.generate_calibration_adjustments(validation_result, session_id)
        cycle = CalibrationCycleResult(session_id=session_id, generated=generated)

        detection_confidence = validation_result.bias_analysis.detection_confidence
        auto_apply = (
            self.config.auto_apply_calibrations
            and detection_confidence >= self.config.calibration_confidence_threshold
        )

        if not generated:
            return cycle

        if not auto_apply:
            cycle.awaiting_review = list(generated)
            logger.info(
                "calibration_cycle_awaiting_review",
                session_id=session_id,
                count=len(generated),
                auto_apply_enabled=self.config.auto_apply_calibrations,
                detection_confidence=detection_confidence,
            )
            return cycle

        applied = await self.apply_calibration_adjustments(generated)
        cycle.applied = applied.applied
        cycle.rejected = applied.rejected
        return cycle

    # ── Internals ───────────────────────────────────────────────────────

    async def _read_current_values(self, keys: list[ParameterKey]) -> dict[ParameterKey, float]:
        values: dict[ParameterKey, float] = {}
        for component, name in keys:
            try:
                values[(component, name)] = await self.store.read(component, name)
            except ParameterStoreError as exc:
                logger.warning(
                    "live_parameter_unreadable",
                    component=component,
                    parameter=name,
                    error=str(exc),
                )
        return values

    async def _apply_one(self, adjustment: CalibrationAdjustment) -> bool:
        try:
            ok = await self.applier.apply(adjustment)
        except Exception as exc:
            adjustment.status = AdjustmentStatus.REJECTED
            adjustment.rejection_reason = f"parameter store fault: {exc}"
            logger.error(
                "calibration_apply_failed",
                calibration_id=adjustment.calibration_id,
                error=str(exc),
            )
            return False

        if not ok:
            adjustment.status = AdjustmentStatus.REJECTED
            adjustment.rejection_reason = "parameter write not committed"
            logger.warning(
                "calibration_rejected",
                calibration_id=adjustment.calibration_id,
                reason=adjustment.rejection_reason,
            )
            return False

        adjustment.status = AdjustmentStatus.APPLIED
        self._active.append(adjustment)
        logger.info(
            "calibration_applied",
            calibration_id=adjustment.calibration_id,
            adjustment_type=adjustment.adjustment_type.value,
            target_component=adjustment.target_component.value,
        )
        return True
