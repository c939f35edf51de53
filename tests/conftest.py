"""
Test fixtures for the calibration engine.

Provides:
- A scripted parameter store with deterministic write outcomes
- Validation metrics / study factories
- Calibration adjustment factory
- A manager wired to the scripted store with retries disabled
"""

import uuid
from datetime import datetime, timezone
from typing import Optional, Union

import pytest

from moodcal.calibration.manager import AlgorithmCalibrationManager
from moodcal.calibration.schemas import (
    AdjustmentType,
    CalibrationAdjustment,
    ParameterAdjustment,
    PredictedImprovements,
    TargetComponent,
)
from moodcal.calibration.store import InMemoryParameterStore
from moodcal.config import CalibrationConfig
from moodcal.log_config import configure_logging
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
    SessionMetadata,
    StatisticalSignificance,
    SystematicBias,
    ValidationMetrics,
    ValidationResult,
)

configure_logging("DEBUG")


# ── Scripted store ──────────────────────────────────────────────────────


class ScriptedParameterStore(InMemoryParameterStore):
    """
    In-memory store whose write outcomes are scripted per parameter.

    Each scripted outcome is consumed by one write: ``True`` commits,
    ``False`` refuses, an exception instance is raised. Unscripted
    writes commit.
    """

    def __init__(self, initial=None):
        super().__init__(initial)
        self._outcomes: dict[tuple[str, str], list[Union[bool, Exception]]] = {}
        self.writes: list[tuple[str, str, float]] = []

    def script(self, component: str, name: str, outcomes: list[Union[bool, Exception]]) -> None:
        self._outcomes.setdefault((component, name), []).extend(outcomes)

    async def write(self, component: str, name: str, value: float) -> bool:
        queue = self._outcomes.get((component, name))
        outcome = queue.pop(0) if queue else True
        if isinstance(outcome, Exception):
            raise outcome
        if not outcome:
            return False
        self.writes.append((component, name, value))
        return await super().write(component, name, value)


@pytest.fixture
def store() -> ScriptedParameterStore:
    return ScriptedParameterStore()


@pytest.fixture
def config() -> CalibrationConfig:
    return CalibrationConfig(store_retry_attempts=0, store_retry_base_delay=0.0)


@pytest.fixture
def manager(store, config) -> AlgorithmCalibrationManager:
    return AlgorithmCalibrationManager(config=config, store=store)


# ── Validation study factories ──────────────────────────────────────────


def build_metrics(
    pearson: float = 0.6,
    mae: float = 1.5,
    agreement: float = 60.0,
    sample_size: int = 50,
    **overrides,
) -> ValidationMetrics:
    fields = dict(
        pearson_correlation=pearson,
        spearman_correlation=pearson,
        mean_absolute_error=mae,
        root_mean_square_error=mae * 1.3,
        agreement_percentage=agreement,
        concordance_level=ConcordanceLevel.MODERATE,
        statistical_significance=StatisticalSignificance(
            p_value=0.05,
            is_significant=True,
            confidence_interval=(max(-1.0, pearson - 0.15), min(1.0, pearson + 0.15)),
        ),
        sample_size=sample_size,
    )
    fields.update(overrides)
    return ValidationMetrics(**fields)


def build_analysis(
    confidence: float = 0.6,
    error: float = 0.4,
    discrepancy: DiscrepancyType = DiscrepancyType.CLOSE_AGREEMENT,
) -> IndividualAnalysis:
    return IndividualAnalysis(
        conversation_id=f"conv-{uuid.uuid4().hex[:8]}",
        algorithmic_score=6.0 + error,
        human_score=6.0,
        absolute_error=error,
        algorithmic_confidence=confidence,
        human_confidence=0.85,
        discrepancy_type=discrepancy,
    )


def build_result(
    metrics: Optional[ValidationMetrics] = None,
    systematic_bias: SystematicBias = SystematicBias.NONE,
    magnitude: float = 0.0,
    analyses: Optional[list[IndividualAnalysis]] = None,
    bias_types: Optional[list[BiasType]] = None,
    detection_confidence: float = 0.8,
) -> ValidationResult:
    metrics = metrics or build_metrics()
    bias_types = bias_types or []
    direction = {
        SystematicBias.OVER_ESTIMATION: BiasDirection.POSITIVE,
        SystematicBias.UNDER_ESTIMATION: BiasDirection.NEGATIVE,
    }.get(systematic_bias, BiasDirection.MIXED)
    return ValidationResult(
        overall_metrics=metrics,
        discrepancy_analysis=DiscrepancyAnalysis(
            systematic_bias=systematic_bias,
            bias_pattern=BiasPattern(magnitude=magnitude, consistency=0.8, direction=direction),
        ),
        individual_analyses=analyses or [],
        bias_analysis=BiasAnalysis(
            bias_detected=bool(bias_types) or systematic_bias != SystematicBias.NONE,
            bias_types=bias_types,
            detection_confidence=detection_confidence,
        ),
        session_metadata=SessionMetadata(
            validation_id=f"study-{uuid.uuid4().hex[:8]}",
            validation_date=datetime.now(timezone.utc),
            total_conversations=metrics.sample_size,
            total_validators=3,
        ),
    )


def build_bias_type(
    type: str = "emotional_minimization",
    severity: BiasSeverity = BiasSeverity.HIGH,
    affected_samples: int = 5,
) -> BiasType:
    return BiasType(
        type=type,
        severity=severity,
        affected_samples=affected_samples,
        description=f"Algorithm shows {type}",
        correction_recommendation=f"Calibrate {type} handling",
    )


def build_adjustment(
    parameter_name: str = "sentiment_weight",
    recommended: float = 0.3,
    component: TargetComponent = TargetComponent.SENTIMENT_ANALYSIS,
    extra_parameters: Optional[list[tuple[str, float]]] = None,
) -> CalibrationAdjustment:
    params = [(parameter_name, recommended)] + list(extra_parameters or [])
    return CalibrationAdjustment(
        calibration_id=f"test-adj-{uuid.uuid4().hex[:12]}",
        source_validation_id="session-test",
        adjustment_type=AdjustmentType.WEIGHT_ADJUSTMENT,
        target_component=component,
        parameter_adjustments=[
            ParameterAdjustment(
                parameter_name=name,
                current_value=0.35,
                recommended_value=value,
                adjustment_reason="Test adjustment",
                expected_impact="Test impact",
            )
            for name, value in params
        ],
        predicted_improvements=PredictedImprovements(
            correlation_improvement=0.05,
            bias_reduction=0.1,
            accuracy_improvement=0.2,
        ),
    )


@pytest.fixture
def make_metrics():
    return build_metrics


@pytest.fixture
def make_analysis():
    return build_analysis


@pytest.fixture
def make_result():
    return build_result


@pytest.fixture
def make_bias_type():
    return build_bias_type


@pytest.fixture
def make_adjustment():
    return build_adjustment
