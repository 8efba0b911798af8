"""Core load testing components."""

from .benchmarks import BenchmarkStore, PerformanceBenchmark
from .cancellation import CancellationToken
from .config import (
    JsonBody,
    LoadTestConfig,
    NoBody,
    RawBody,
    RegressionThresholds,
    StressTestConfig,
)
from .metrics import ErrorRecord, LoadTestMetrics, calculate_percentile
from .regression import RegressionDetection, RegressionDetector, RegressionRecord
from .runner import LoadTestRunner
from .service import LoadTestingService
from .stress import StressTestController

__all__ = [
    "BenchmarkStore",
    "CancellationToken",
    "ErrorRecord",
    "JsonBody",
    "LoadTestConfig",
    "LoadTestMetrics",
    "LoadTestRunner",
    "LoadTestingService",
    "NoBody",
    "PerformanceBenchmark",
    "RawBody",
    "RegressionDetection",
    "RegressionDetector",
    "RegressionRecord",
    "RegressionThresholds",
    "StressTestConfig",
    "StressTestController",
    "calculate_percentile",
]
