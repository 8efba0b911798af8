from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.config import RegressionThresholds


class PerfEvalSettings(BaseSettings):
    """Process-wide configuration for the load-testing engine."""

    model_config = SettingsConfigDict(env_prefix="PERF_EVAL_", extra="ignore")

    # Logging
    log_level: str = Field(default="INFO")

    # Transport
    request_timeout: float = Field(default=30.0, gt=0)
    verify_ssl: bool = Field(default=True)
    max_connections: int = Field(default=1000, ge=1)

    # Regression thresholds (percent, failure rate in percentage points)
    average_response_time_threshold: float = Field(default=20.0)
    p95_response_time_threshold: float = Field(default=25.0)
    requests_per_second_threshold: float = Field(default=-15.0)
    failure_rate_threshold: float = Field(default=5.0)

    def regression_thresholds(self) -> RegressionThresholds:
        return RegressionThresholds(
            average_response_time=self.average_response_time_threshold,
            p95_response_time=self.p95_response_time_threshold,
            requests_per_second=self.requests_per_second_threshold,
            failure_rate=self.failure_rate_threshold,
        )
