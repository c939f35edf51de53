"""
Calibration Engine Configuration.

Pydantic Settings v2 — loads from .env, environment variables.
``CalibrationConfig`` is the immutable, construction-time view the
calibration manager works from.
"""

from functools import lru_cache
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from moodcal.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ── Calibration ──────────────────────────────────────────────────────
    max_calibrations_per_session: int = Field(default=3, alias="MAX_CALIBRATIONS_PER_SESSION")
    min_validation_sample_size: int = Field(default=5, alias="MIN_VALIDATION_SAMPLE_SIZE")
    calibration_confidence_threshold: float = Field(
        default=0.7, alias="CALIBRATION_CONFIDENCE_THRESHOLD",
        description="Minimum bias-detection confidence before a cycle may auto-apply",
    )
    auto_apply_calibrations: bool = Field(default=False, alias="AUTO_APPLY_CALIBRATIONS")
    min_improvement_threshold: float = Field(default=0.05, alias="MIN_IMPROVEMENT_THRESHOLD")

    # ── Parameter Store ──────────────────────────────────────────────────
    store_retry_attempts: int = Field(default=2, alias="STORE_RETRY_ATTEMPTS")
    store_retry_base_delay: float = Field(default=0.1, alias="STORE_RETRY_BASE_DELAY")
    store_retry_max_delay: float = Field(default=2.0, alias="STORE_RETRY_MAX_DELAY")
    simulated_success_rate: float = Field(default=0.9, alias="SIMULATED_SUCCESS_RATE")

    # ── Operational ──────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="console", alias="LOG_FORMAT")


class CalibrationConfig(BaseModel):
    """Immutable knobs for one calibration manager."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_calibrations_per_session: int = Field(default=3, ge=1)
    min_validation_sample_size: int = Field(default=5, ge=0)
    calibration_confidence_threshold: float = Field(default=0.7, ge=0, le=1)
    auto_apply_calibrations: bool = False
    min_improvement_threshold: float = Field(default=0.05, ge=0, le=1)

    store_retry_attempts: int = Field(default=2, ge=0)
    store_retry_base_delay: float = Field(default=0.1, ge=0)
    store_retry_max_delay: float = Field(default=2.0, ge=0)

    @classmethod
    def from_settings(cls, source: Settings) -> "CalibrationConfig":
        """Build a config from loaded application settings."""
        return cls(
            max_calibrations_per_session=source.max_calibrations_per_session,
            min_validation_sample_size=source.min_validation_sample_size,
            calibration_confidence_threshold=source.calibration_confidence_threshold,
            auto_apply_calibrations=source.auto_apply_calibrations,
            min_improvement_threshold=source.min_improvement_threshold,
            store_retry_attempts=source.store_retry_attempts,
            store_retry_base_delay=source.store_retry_base_delay,
            store_retry_max_delay=source.store_retry_max_delay,
        )

    @classmethod
    def resolve(
        cls,
        config: Optional[Union["CalibrationConfig", Mapping[str, Any]]] = None,
    ) -> "CalibrationConfig":
        """
        Accept a full config, a mapping of overrides, or nothing.

        Overrides are layered on the environment-loaded settings. An unknown
        key or out-of-range value raises ``ConfigurationError``.
        """
        if isinstance(config, CalibrationConfig):
            return config
        base = cls.from_settings(get_settings())
        if config is None:
            return base
        try:
            return cls(**{**base.model_dump(), **dict(config)})
        except ValidationError as exc:
            first = exc.errors()[0]
            config_key = ".".join(str(part) for part in first["loc"])
            raise ConfigurationError(
                f"Invalid calibration config override '{config_key}': {first['msg']}",
                config_key=config_key,
                cause=exc,
            ) from exc


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Call ``get_settings.cache_clear()`` to reload after the environment changes.
    """
    return Settings()

