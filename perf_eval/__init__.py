"""
perf-eval: load testing and performance regression detection.

Run a load test and compare it against a saved baseline:
    async with LoadTestingService() as service:
        metrics = await service.run_load_test(config)
        detection = service.detect_regression(metrics)
"""

__version__ = "0.1.0"

from .core.config import LoadTestConfig, RegressionThresholds, StressTestConfig
from .core.metrics import LoadTestMetrics, calculate_percentile
from .core.observers import LoadTestObserver, RegressionAlertObserver
from .core.regression import RegressionDetection
from .core.service import LoadTestingService
from .settings import PerfEvalSettings
from .transport import FunctionTransport, HttpxTransport, Transport, TransportResponse

__all__ = [
    "FunctionTransport",
    "HttpxTransport",
    "LoadTestConfig",
    "LoadTestMetrics",
    "LoadTestObserver",
    "LoadTestingService",
    "PerfEvalSettings",
    "RegressionAlertObserver",
    "RegressionDetection",
    "RegressionThresholds",
    "StressTestConfig",
    "Transport",
    "TransportResponse",
    "calculate_percentile",
]
