from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

from .constants import (
    DEFAULT_BACKOFF_BASE,
    DEFAULT_MAX_RETAINED_WORKFLOWS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_START_DELAY_SECONDS,
    DEFAULT_STEP_PACING_SCALE,
    DEFAULT_TIMEOUT_MS,
)


class RetryPolicy(BaseModel):
    """How ``execute_with_retry`` spaces and bounds its attempts."""

    model_config = ConfigDict(frozen=True)

    attempts: int = Field(default=DEFAULT_RETRY_ATTEMPTS, ge=1)
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    backoff_base: float = DEFAULT_BACKOFF_BASE
    jitter: float = 0.0


class ServiceConfig(BaseModel):
    """Immutable per-service settings."""

    model_config = ConfigDict(frozen=True)

    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    retry_attempts: int = Field(default=DEFAULT_RETRY_ATTEMPTS, ge=1)
    enable_logging: bool = True

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(attempts=self.retry_attempts, timeout_ms=self.timeout_ms)


class OrchestratorSettings(BaseModel):
    """Execution settings for the workflow orchestrator."""

    step_pacing_scale: float = Field(default=DEFAULT_STEP_PACING_SCALE, ge=0)
    start_delay_seconds: float = Field(default=DEFAULT_START_DELAY_SECONDS, ge=0)
    max_retained_workflows: int = Field(default=DEFAULT_MAX_RETAINED_WORKFLOWS, ge=1)


class TaxflowConfig(BaseModel):
    """Top-level configuration model."""

    log_level: str = "INFO"
    general: ServiceConfig = ServiceConfig()
    orchestrator: OrchestratorSettings = OrchestratorSettings()


def load_config(path: Optional[str] = None) -> TaxflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to TAXFLOW_CONFIG env
            variable or 'taxflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("TAXFLOW_CONFIG", "taxflow.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = TaxflowConfig(**data)
    else:
        config = TaxflowConfig()

    env_log_level = os.getenv("TAXFLOW_LOG_LEVEL")
    if env_log_level:
        config.log_level = env_log_level
    return config
