"""
Parameter Applier — commits a calibration adjustment to its target component.

Each adjustment is all-or-nothing: every parameter it names is written,
or none is. If a write is refused or faults midway, the parameters already
written are restored to the values read before the attempt.

Writes to the same ``(component, parameter)`` are serialized with a
per-key lock; the store is last-writer-wins, so an interleaved
read-modify-write would otherwise lose one adjustment's effect.

The applier also remembers, per key, the adjustments whose writes are
stacked on it in commit order. Reverting an adjustment that a later one
has since overwritten leaves the live value alone and hands its
``previous_value`` to that later adjustment instead.
"""

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Optional

import structlog

from moodcal.calibration.schemas import AppliedParameter, CalibrationAdjustment
from moodcal.calibration.store import ParameterKey, ParameterStore
from moodcal.config import CalibrationConfig
from moodcal.exceptions import ParameterStoreUnavailable
from moodcal.resilience import retry_with_backoff

logger = structlog.get_logger(__name__)


class ParameterApplier:
    """Writes adjustments through a ``ParameterStore`` and can revert them."""

    def __init__(self, store: ParameterStore, config: Optional[CalibrationConfig] = None):
        self.store = store
        self.config = config or CalibrationConfig()
        self._locks: dict[ParameterKey, asyncio.Lock] = {}
        self._writers: dict[ParameterKey, list[CalibrationAdjustment]] = {}

    async def apply(self, adjustment: CalibrationAdjustment) -> bool:
        """
        Commit every parameter adjustment, or none of them.

        Returns:
            True if all writes committed, False if the store refused one.

        Raises:
            ParameterStoreError: the store faulted; prior writes were rolled back.
        """
        component = adjustment.target_component.value

        logger.debug(
            "applying_parameter_adjustments",
            calibration_id=adjustment.calibration_id,
            parameter_count=len(adjustment.parameter_adjustments),
        )

        async with self._locked(adjustment.parameter_keys()):
            committed: list[AppliedParameter] = []
            try:
                for param in adjustment.parameter_adjustments:
                    previous = await self.store.read(component, param.parameter_name)
                    ok = await self._write(component, param.parameter_name, param.recommended_value)
                    if not ok:
                        logger.warning(
                            "parameter_write_refused",
                            calibration_id=adjustment.calibration_id,
                            component=component,
                            parameter=param.parameter_name,
                        )
                        await self._rollback(adjustment, committed)
                        return False
                    committed.append(AppliedParameter(
                        parameter_name=param.parameter_name,
                        previous_value=previous,
                        applied_value=param.recommended_value,
                    ))
            except Exception:
                await self._rollback(adjustment, committed)
                raise

            adjustment.applied_parameters = committed
            for key in dict.fromkeys(adjustment.parameter_keys()):
                self._writers.setdefault(key, []).append(adjustment)

        return True

    async def revert(self, adjustment: CalibrationAdjustment) -> None:
        """
        Restore the values the adjustment overwrote.

        A parameter a later adjustment has since written is not touched;
        the later adjustment's audit is re-based onto this one's
        ``previous_value`` so reverting it still restores the original.
        """
        component = adjustment.target_component.value

        logger.debug(
            "reverting_calibration_adjustment",
            calibration_id=adjustment.calibration_id,
            parameter_count=len(adjustment.applied_parameters),
        )

        async with self._locked(adjustment.parameter_keys()):
            for applied in reversed(adjustment.applied_parameters):
                key = (component, applied.parameter_name)
                successor = self._successor(key, adjustment)
                if successor is not None:
                    _rebase(successor, applied)
                    logger.info(
                        "parameter_revert_superseded",
                        calibration_id=adjustment.calibration_id,
                        superseded_by=successor.calibration_id,
                        parameter=applied.parameter_name,
                    )
                else:
                    ok = await self._write(component, applied.parameter_name, applied.previous_value)
                    if not ok:
                        raise ParameterStoreUnavailable(
                            f"Revert of '{applied.parameter_name}' was not committed",
                            component=component,
                            parameter_name=applied.parameter_name,
                        )
                self._forget(key, adjustment)

        logger.info(
            "calibration_reverted",
            calibration_id=adjustment.calibration_id,
            target_component=component,
        )

    # ── Internals ────────────────────────────────────────────────────────

    async def _write(self, component: str, name: str, value: float) -> bool:
        return await retry_with_backoff(
            lambda: self.store.write(component, name, value),
            max_retries=self.config.store_retry_attempts,
            base_delay=self.config.store_retry_base_delay,
            max_delay=self.config.store_retry_max_delay,
            operation_name=f"write:{component}.{name}",
        )

    async def _rollback(
        self,
        adjustment: CalibrationAdjustment,
        committed: list[AppliedParameter],
    ) -> None:
        component = adjustment.target_component.value
        for applied in reversed(committed):
            try:
                ok = await self._write(component, applied.parameter_name, applied.previous_value)
            except Exception as exc:
                logger.error(
                    "parameter_rollback_fault",
                    calibration_id=adjustment.calibration_id,
                    parameter=applied.parameter_name,
                    error=str(exc),
                )
                continue
            if not ok:
                logger.error(
                    "parameter_rollback_failed",
                    calibration_id=adjustment.calibration_id,
                    component=component,
                    parameter=applied.parameter_name,
                    previous_value=applied.previous_value,
                )

    def _successor(
        self,
        key: ParameterKey,
        adjustment: CalibrationAdjustment,
    ) -> Optional[CalibrationAdjustment]:
        """The adjustment that wrote ``key`` right after ``adjustment``, if any."""
        writers = self._writers.get(key, [])
        for index, writer in enumerate(writers):
            if writer is adjustment:
                return writers[index + 1] if index + 1 < len(writers) else None
        return None

    def _forget(self, key: ParameterKey, adjustment: CalibrationAdjustment) -> None:
        writers = self._writers.get(key)
        if writers is None:
            return
        writers[:] = [w for w in writers if w is not adjustment]
        if not writers:
            del self._writers[key]

    def _lock_for(self, key: ParameterKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def _locked(self, keys: list[ParameterKey]) -> AsyncIterator[None]:
        """Hold the locks for ``keys``, taken in sorted order to avoid deadlock."""
        async with AsyncExitStack() as stack:
            for key in sorted(set(keys)):
                await stack.enter_async_context(self._lock_for(key))
            yield


def _rebase(successor: CalibrationAdjustment, reverted: AppliedParameter) -> None:
    """Point the successor's audit for this parameter at the reverted write's previous value."""
    successor.applied_parameters = [
        p.model_copy(update={"previous_value": reverted.previous_value})
        if p.parameter_name == reverted.parameter_name
        else p
        for p in successor.applied_parameters
    ]
