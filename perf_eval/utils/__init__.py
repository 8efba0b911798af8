"""Shared helpers for perf-eval."""

from .errors import (
    LoadTestConfigError,
    PerfEvalError,
    RequestAbortedError,
    TestResultsNotFoundError,
    TransportError,
)

__all__ = [
    "PerfEvalError",
    "LoadTestConfigError",
    "TestResultsNotFoundError",
    "RequestAbortedError",
    "TransportError",
]
