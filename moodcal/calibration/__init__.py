"""
Calibration Module — closed-loop tuning of the mood scorer's parameters.

Components:
- generator: bias analysis → candidate adjustments
- store: parameter read/write capability for target components
- applier: all-or-nothing parameter application and revert
- validator: keep-or-revert decision from a later validation study
- tracker: baseline/current metrics and the improvement trend
- manager: the calibration loop tying them together
"""

from moodcal.calibration.applier import ParameterApplier
from moodcal.calibration.generator import (
    AdjustmentGenerator,
    get_bias_correction_factor,
    get_bias_target_component,
)
from moodcal.calibration.manager import AlgorithmCalibrationManager
from moodcal.calibration.schemas import (
    AdjustmentStatus,
    AdjustmentType,
    ApplicationResult,
    AppliedParameter,
    CalibrationAdjustment,
    CalibrationCycleResult,
    ParameterAdjustment,
    PerformanceSummary,
    PredictedImprovements,
    TargetComponent,
    TrendEntry,
    ValidationOutcome,
)
from moodcal.calibration.store import (
    InMemoryParameterStore,
    ParameterStore,
    SimulatedParameterStore,
)
from moodcal.calibration.tracker import PerformanceTracker
from moodcal.calibration.validator import EffectivenessValidator, calculate_bias_reduction

__all__ = [
    # Loop
    "AlgorithmCalibrationManager",
    "AdjustmentGenerator",
    "ParameterApplier",
    "EffectivenessValidator",
    "PerformanceTracker",
    "get_bias_correction_factor",
    "get_bias_target_component",
    "calculate_bias_reduction",
    # Stores
    "ParameterStore",
    "InMemoryParameterStore",
    "SimulatedParameterStore",
    # Schemas
    "AdjustmentStatus",
    "AdjustmentType",
    "ApplicationResult",
    "AppliedParameter",
    "CalibrationAdjustment",
    "CalibrationCycleResult",
    "ParameterAdjustment",
    "PerformanceSummary",
    "PredictedImprovements",
    "TargetComponent",
    "TrendEntry",
    "ValidationOutcome",
]
