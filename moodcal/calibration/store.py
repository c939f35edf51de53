"""
Parameter Stores — read/write access to target components' live parameters.

The calibration engine never touches the mood scorer directly; it goes
through a ``ParameterStore``. A store write either commits (``True``),
is refused (``False``), or faults (raises ``ParameterStoreError``).
"""

import random
from abc import ABC, abstractmethod
from typing import Callable, Mapping, Optional

import structlog

from moodcal.exceptions import UnknownParameterError

logger = structlog.get_logger(__name__)

ParameterKey = tuple[str, str]  # (component, parameter_name)

# Live defaults of the mood scorer's tunable parameters.
DEFAULT_PARAMETERS: dict[ParameterKey, float] = {
    ("sentiment_analysis", "sentiment_weight"): 0.35,
    ("confidence_calculator", "confidence_threshold_high"): 0.8,
}

# Bias correction factors start neutral until first calibrated.
DEFAULT_CORRECTION_FACTOR: float = 1.0


class ParameterStore(ABC):
    """Capability to read and write a component's named parameters."""

    @abstractmethod
    async def read(self, component: str, name: str) -> float:
        """Current committed value. Raises ``UnknownParameterError`` if absent."""

    @abstractmethod
    async def write(self, component: str, name: str, value: float) -> bool:
        """Commit a value. ``False`` means the write was refused, nothing changed."""


class InMemoryParameterStore(ParameterStore):
    """
    Dict-backed store seeded with the scorer defaults.

    ``*_correction_factor`` parameters read as neutral (1.0) until written,
    so bias corrections can target factors the scorer has not set yet.
    """

    def __init__(self, initial: Optional[Mapping[ParameterKey, float]] = None):
        self._values: dict[ParameterKey, float] = dict(DEFAULT_PARAMETERS)
        if initial:
            self._values.update(initial)

    async def read(self, component: str, name: str) -> float:
        key = (component, name)
        if key in self._values:
            return self._values[key]
        if name.endswith("_correction_factor"):
            return DEFAULT_CORRECTION_FACTOR
        raise UnknownParameterError(
            f"No parameter '{name}' on component '{component}'",
            component=component,
            parameter_name=name,
        )

    async def write(self, component: str, name: str, value: float) -> bool:
        self._values[(component, name)] = value
        return True

    def snapshot(self) -> dict[ParameterKey, float]:
        """Copy of all committed values."""
        return dict(self._values)


class SimulatedParameterStore(InMemoryParameterStore):
    """
    In-memory store whose writes commit with a fixed probability.

    Stands in for a real write-and-verify call against the scorer.
    ``random_source`` is injectable so tests can script outcomes.
    """

    def __init__(
        self,
        random_source: Optional[Callable[[], float]] = None,
        success_rate: float = 0.9,
        initial: Optional[Mapping[ParameterKey, float]] = None,
    ):
        super().__init__(initial)
        self.random_source = random_source or random.random
        self.success_rate = success_rate

    async def write(self, component: str, name: str, value: float) -> bool:
        if self.random_source() >= self.success_rate:
            logger.debug(
                "simulated_write_refused",
                component=component,
                parameter=name,
            )
            return False
        return await super().write(component, name, value)
