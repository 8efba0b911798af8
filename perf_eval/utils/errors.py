"""Custom exceptions for the load-testing engine."""

from __future__ import annotations


class PerfEvalError(Exception):
    """Base exception for all perf-eval errors."""
    pass


class LoadTestConfigError(PerfEvalError, ValueError):
    """Raised when a load or stress test configuration is invalid."""
    pass


class TestResultsNotFoundError(PerfEvalError, KeyError):
    """Raised when no stored results exist for a test id."""

    __test__ = False

    def __init__(self, test_id: str):
        self.test_id = test_id
        super().__init__(f"Test results not found for ID: {test_id}")

    def __str__(self) -> str:
        return self.args[0]


class RequestAbortedError(PerfEvalError):
    """Raised when an in-flight request is aborted by run cancellation."""
    pass


class TransportError(PerfEvalError):
    """Raised when the HTTP transport fails to produce a response."""

    def __init__(self, message: str, *, url: "str | None" = None):
        self.url = url
        if url:
            message = f"{message} (url={url})"
        super().__init__(message)
