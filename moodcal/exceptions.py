"""
Custom exceptions for the calibration engine.

Two families live here:
- Contract violations (wrong lifecycle state, unknown calibration). These are
  programming errors and always propagate to the caller.
- Parameter store faults. These are expected runtime outcomes; the applier and
  manager absorb them and turn them into a ``rejected`` adjustment.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Standard error codes for the calibration engine."""
    # General errors (1xxx)
    UNKNOWN_ERROR = "E1000"
    CONFIGURATION_ERROR = "E1001"

    # Lifecycle errors (2xxx)
    INVALID_STATE = "E2000"
    CALIBRATION_NOT_FOUND = "E2001"

    # Parameter store errors (3xxx)
    STORE_ERROR = "E3000"
    STORE_UNAVAILABLE = "E3001"
    UNKNOWN_PARAMETER = "E3002"


@dataclass
class RecoveryHint:
    """A hint for recovering from an error."""
    action: str
    description: str
    auto_retry: bool = False


class CalibrationError(Exception):
    """
    Base exception for the calibration engine.

    All custom exceptions inherit from this class.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        recovery_hint: Optional[RecoveryHint] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.recovery_hint = recovery_hint
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging and audit records."""
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }

        if self.details:
            result["details"] = dict(self.details)

        if self.recovery_hint:
            result["recovery"] = {
                "action": self.recovery_hint.action,
                "description": self.recovery_hint.description,
                "auto_retry": self.recovery_hint.auto_retry,
            }

        if self.cause is not None:
            result["cause"] = str(self.cause)

        return result

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {self.message}"


class ConfigurationError(CalibrationError):
    """A calibration config override is unknown or out of range."""

    def __init__(self, message: str, config_key: str = "", **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.CONFIGURATION_ERROR,
            recovery_hint=RecoveryHint(
                action="check_config",
                description="Review the calibration config overrides",
            ),
            details={"config_key": config_key},
            **kwargs,
        )
        self.config_key = config_key


# ── Contract violations ─────────────────────────────────────────────────


class CalibrationStateError(CalibrationError):
    """An operation was invoked on an adjustment in the wrong lifecycle status."""

    def __init__(
        self,
        message: str,
        calibration_id: str = "",
        status: str = "",
        expected: str = "",
        **kwargs,
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.INVALID_STATE,
            details={
                "calibration_id": calibration_id,
                "status": status,
                "expected": expected,
            },
            **kwargs,
        )
        self.calibration_id = calibration_id
        self.status = status
        self.expected = expected


class UnknownCalibrationError(CalibrationError):
    """The adjustment is not tracked in the active calibrations collection."""

    def __init__(self, message: str, calibration_id: str = "", **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.CALIBRATION_NOT_FOUND,
            details={"calibration_id": calibration_id},
            **kwargs,
        )
        self.calibration_id = calibration_id


# ── Parameter store faults ──────────────────────────────────────────────


class ParameterStoreError(CalibrationError):
    """A target component's parameter store failed unexpectedly."""

    def __init__(
        self,
        message: str,
        component: str = "",
        parameter_name: str = "",
        error_code: ErrorCode = ErrorCode.STORE_ERROR,
        **kwargs,
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            details={"component": component, "parameter_name": parameter_name},
            **kwargs,
        )
        self.component = component
        self.parameter_name = parameter_name


class ParameterStoreUnavailable(ParameterStoreError):
    """Transient store outage; safe to retry."""

    def __init__(self, message: str, component: str = "", parameter_name: str = "", **kwargs):
        super().__init__(
            message=message,
            component=component,
            parameter_name=parameter_name,
            error_code=ErrorCode.STORE_UNAVAILABLE,
            recovery_hint=RecoveryHint(
                action="retry",
                description="Retry the write once the parameter store is reachable",
                auto_retry=True,
            ),
            **kwargs,
        )


class UnknownParameterError(ParameterStoreError):
    """The store holds no value for the requested component parameter."""

    def __init__(self, message: str, component: str = "", parameter_name: str = "", **kwargs):
        super().__init__(
            message=message,
            component=component,
            parameter_name=parameter_name,
            error_code=ErrorCode.UNKNOWN_PARAMETER,
            recovery_hint=RecoveryHint(
                action="verify_parameter",
                description="Check the parameter name against the component's registry",
            ),
            **kwargs,
        )
