"""Pydantic configuration models for the target status operator."""

import logging

from pydantic import BaseModel, Field, field_validator, model_validator


class OperatorSettingsConfig(BaseModel):
    """Where the operator's own resources live."""
    operator_namespace: str = "gmp-system"
    public_namespace: str = "gmp-public"
    operator_config_name: str = "config"
    collector_name: str = "collector"
    collector_container_name: str = "prometheus"
    collector_port_name: str = "prom-metrics"


class TargetStatusConfig(BaseModel):
    """Collector polling configuration."""
    poll_concurrency: int = Field(default=4, ge=1, le=1000)
    min_poll_interval_seconds: float = Field(default=10.0, gt=0)
    fetch_timeout_seconds: float = Field(default=10.0, gt=0)
    fetch_deadline_seconds: float = Field(default=30.0, gt=0)

    @model_validator(mode='after')
    def deadline_covers_timeout(self) -> "TargetStatusConfig":
        """A single request must be able to finish inside the cycle deadline."""
        if self.fetch_deadline_seconds < self.fetch_timeout_seconds:
            raise ValueError('fetch_deadline_seconds must be >= fetch_timeout_seconds')
        return self


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Accept only standard logging level names."""
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f'Unknown log level: {v}')
        return level


class MetricsConfig(BaseModel):
    """Self-metrics HTTP endpoint."""
    enabled: bool = True
    port: int = Field(default=18080, ge=1, le=65535)


class OperatorConfig(BaseModel):
    """Root configuration model for the operator."""
    operator: OperatorSettingsConfig = Field(default_factory=OperatorSettingsConfig)
    target_status: TargetStatusConfig = Field(default_factory=TargetStatusConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
