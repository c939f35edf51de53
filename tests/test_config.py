"""
Configuration and error model tests.
"""

import pytest
import structlog
from pydantic import ValidationError

from moodcal.config import CalibrationConfig, Settings, get_settings
from moodcal.exceptions import (
    CalibrationStateError,
    ConfigurationError,
    ErrorCode,
    ParameterStoreUnavailable,
    UnknownCalibrationError,
)
from moodcal.log_config import configure_logging


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("MAX_CALIBRATIONS_PER_SESSION", raising=False)
        s = Settings(_env_file=None)
        assert s.max_calibrations_per_session == 3
        assert s.min_validation_sample_size == 5
        assert s.calibration_confidence_threshold == 0.7
        assert s.auto_apply_calibrations is False
        assert s.min_improvement_threshold == 0.05
        assert s.simulated_success_rate == 0.9

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("MIN_VALIDATION_SAMPLE_SIZE", "12")
        monkeypatch.setenv("SIMULATED_SUCCESS_RATE", "0.5")
        s = Settings(_env_file=None)
        assert s.min_validation_sample_size == 12
        assert s.simulated_success_rate == 0.5


class TestCalibrationConfig:
    def test_resolve_none(self):
        assert CalibrationConfig.resolve(None) == CalibrationConfig()

    def test_resolve_passes_config_through(self):
        config = CalibrationConfig(max_calibrations_per_session=7)
        assert CalibrationConfig.resolve(config) is config

    def test_resolve_partial_mapping(self):
        config = CalibrationConfig.resolve({"min_improvement_threshold": 0.1})
        assert config.min_improvement_threshold == 0.1
        assert config.max_calibrations_per_session == 3

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            CalibrationConfig.resolve({"max_calibrations": 5})
        assert exc_info.value.config_key == "max_calibrations"
        assert isinstance(exc_info.value.cause, ValidationError)

    def test_out_of_range_override_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            CalibrationConfig.resolve({"calibration_confidence_threshold": 1.5})
        assert exc_info.value.to_dict()["error_code"] == ErrorCode.CONFIGURATION_ERROR.value
        assert exc_info.value.to_dict()["recovery"]["action"] == "check_config"

    def test_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            CalibrationConfig(calibration_confidence_threshold=1.5)
        with pytest.raises(ValidationError):
            CalibrationConfig(max_calibrations_per_session=0)

    def test_frozen(self):
        config = CalibrationConfig()
        with pytest.raises(ValidationError):
            config.auto_apply_calibrations = True


class TestErrors:
    def test_state_error_dict(self):
        err = CalibrationStateError(
            "Cannot validate", calibration_id="adj-1", status="pending", expected="applied"
        )
        data = err.to_dict()
        assert data["error_code"] == ErrorCode.INVALID_STATE.value
        assert data["details"] == {"calibration_id": "adj-1", "status": "pending", "expected": "applied"}
        assert str(err) == "[E2000] Cannot validate"

    def test_unknown_calibration_code(self):
        assert UnknownCalibrationError("gone", calibration_id="x").error_code == ErrorCode.CALIBRATION_NOT_FOUND

    def test_unavailable_is_retryable(self):
        err = ParameterStoreUnavailable("timeout", component="sentiment_analysis")
        assert err.recovery_hint.auto_retry is True
        assert err.to_dict()["recovery"]["action"] == "retry"


class TestLoggingFromSettings:
    @pytest.fixture(autouse=True)
    def _restore(self):
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()
        configure_logging("DEBUG", "console")

    def test_format_defaults_to_setting(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        configure_logging()
        renderer = structlog.get_config()["processors"][-1]
        assert isinstance(renderer, structlog.processors.JSONRenderer)

    def test_explicit_format_wins(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        configure_logging(fmt="console")
        renderer = structlog.get_config()["processors"][-1]
        assert isinstance(renderer, structlog.dev.ConsoleRenderer)
