import asyncio
from typing import Iterable, Optional

import pytest

from perf_eval.core.config import LoadTestConfig
from perf_eval.core.metrics import LoadTestMetrics
from perf_eval.transport import Transport, TransportResponse


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast unit tests")


class StubTransport(Transport):
    """In-memory transport returning scripted responses.

    ``statuses`` is cycled through; an Exception instance in the sequence is
    raised instead of returned.
    """

    def __init__(
        self,
        statuses: Optional[Iterable] = None,
        delay: float = 0.001,
        content_length: int = 0,
    ):
        self.statuses = list(statuses or [200])
        self.delay = delay
        self.content_length = content_length
        self.calls = 0
        self.cancelled = 0
        self.closed = False

    async def send(self, config: LoadTestConfig) -> TransportResponse:
        outcome = self.statuses[self.calls % len(self.statuses)]
        self.calls += 1
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        if isinstance(outcome, Exception):
            raise outcome
        reason = "OK" if outcome < 400 else "Internal Server Error"
        return TransportResponse(status_code=outcome, reason=reason, content_length=self.content_length)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def stub_transport():
    return StubTransport()


@pytest.fixture
def make_transport():
    return StubTransport


@pytest.fixture
def load_config():
    return LoadTestConfig(
        name="unit-test",
        target_url="http://localhost:8000/health",
        duration=0.2,
        concurrent_users=3,
    )


def build_metrics(
    *,
    test_id: str = "test-1",
    average: float = 100.0,
    p95: float = 150.0,
    rps: float = 100.0,
    total: int = 1000,
    failed: int = 0,
) -> LoadTestMetrics:
    """Finalized-looking metrics with the fields the regression detector reads."""
    metrics = LoadTestMetrics(test_id=test_id, test_name=test_id, duration=10.0, concurrent_users=10)
    metrics.total_requests = total
    metrics.failed_requests = failed
    metrics.successful_requests = total - failed
    metrics.average_response_time = average
    metrics.min_response_time = min(average, p95) / 2
    metrics.max_response_time = p95 * 2
    metrics.p50_response_time = average
    metrics.p95_response_time = p95
    metrics.p99_response_time = p95
    metrics.requests_per_second = rps
    metrics.finalized = True
    return metrics


@pytest.fixture
def make_metrics():
    return build_metrics
