"""Unit tests for LoadTestMetrics accumulation and finalization."""

import math

import pytest

from perf_eval.core.metrics import ErrorRecord, LoadTestMetrics
from perf_eval.utils.errors import PerfEvalError


def _metrics() -> LoadTestMetrics:
    return LoadTestMetrics(test_id="test-1", test_name="checkout", duration=10.0, concurrent_users=5)


@pytest.mark.unit
class TestLoadTestMetrics:
    """Test cases for the shared metrics accumulator."""

    def test_initial_state(self):
        """Counters start at zero and min latency at +inf."""
        metrics = _metrics()
        assert metrics.total_requests == 0
        assert metrics.successful_requests == 0
        assert metrics.failed_requests == 0
        assert math.isinf(metrics.min_response_time)
        assert metrics.errors == []
        assert metrics.end_time is None
        assert metrics.finalized is False

    def test_record_keeps_total_invariant(self):
        """total == successful + failed after every record."""
        metrics = _metrics()
        metrics.record_success(100)
        metrics.record_failure("HTTP 500: Internal Server Error", status_code=500, content_length=20)
        metrics.record_failure("connection refused")
        metrics.record_success()

        assert metrics.total_requests == 4
        assert metrics.total_requests == metrics.successful_requests + metrics.failed_requests
        assert metrics.bytes_received == 120

    def test_failure_appends_error_record(self):
        """Failures append an ErrorRecord with the status code when known."""
        metrics = _metrics()
        metrics.record_failure("HTTP 503: Service Unavailable", status_code=503)
        metrics.record_failure("timed out")

        assert len(metrics.errors) == 2
        assert isinstance(metrics.errors[0], ErrorRecord)
        assert metrics.errors[0].status_code == 503
        assert metrics.errors[1].status_code is None
        assert metrics.errors[1].message == "timed out"

    def test_rates_with_no_requests(self):
        """Success and failure rates are 0 when nothing was sent."""
        metrics = _metrics()
        assert metrics.success_rate == 0.0
        assert metrics.failure_rate == 0.0

    def test_failure_rate_percent(self):
        """Test failure rate is a percentage of all requests."""
        metrics = _metrics()
        for _ in range(9):
            metrics.record_success()
        metrics.record_failure("boom")
        assert metrics.failure_rate == pytest.approx(10.0)
        assert metrics.success_rate == pytest.approx(90.0)

    def test_finalize_computes_latency_and_rates(self):
        """Finalize sorts the sample and derives statistics and rates."""
        metrics = _metrics()
        for _ in range(8):
            metrics.record_success(2048)
        metrics.record_failure("HTTP 500: err", status_code=500)
        metrics.record_failure("HTTP 500: err", status_code=500)
        sample = [50.0, 10.0, 40.0, 20.0, 30.0, 60.0, 90.0, 70.0, 80.0, 100.0]

        metrics.finalize(sample, elapsed_seconds=2.0)

        assert metrics.finalized is True
        assert metrics.end_time is not None
        assert metrics.actual_duration == 2.0
        assert metrics.requests_per_second == pytest.approx(5.0)
        assert metrics.errors_per_second == pytest.approx(1.0)
        assert metrics.throughput_kbps == pytest.approx(8 * 2048 / 1024 / 2.0)
        assert metrics.min_response_time == 10.0
        assert metrics.max_response_time == 100.0
        assert metrics.average_response_time == pytest.approx(55.0)
        assert metrics.p50_response_time == 50.0
        assert metrics.p95_response_time == 100.0
        assert metrics.p99_response_time == 100.0
        assert (
            metrics.min_response_time
            <= metrics.p50_response_time
            <= metrics.p95_response_time
            <= metrics.p99_response_time
            <= metrics.max_response_time
        )

    def test_finalize_empty_sample_zeroes_latency(self):
        """No samples means every latency field is 0."""
        metrics = _metrics()
        metrics.finalize([], elapsed_seconds=1.0)

        assert metrics.min_response_time == 0.0
        assert metrics.max_response_time == 0.0
        assert metrics.average_response_time == 0.0
        assert metrics.p50_response_time == 0.0
        assert metrics.p95_response_time == 0.0
        assert metrics.p99_response_time == 0.0
        assert metrics.requests_per_second == 0.0

    def test_finalize_only_once(self):
        """Test finalizing twice raises."""
        metrics = _metrics()
        metrics.finalize([1.0], elapsed_seconds=1.0)
        with pytest.raises(PerfEvalError):
            metrics.finalize([1.0], elapsed_seconds=1.0)

    def test_to_dict_before_finalize_has_no_infinite_values(self):
        """Unfinalized +inf min latency serializes as None."""
        data = _metrics().to_dict()
        assert data["min_response_time"] is None
        assert data["end_time"] is None

    def test_from_dict_restores_finalized_metrics(self):
        """Test metrics are rebuilt from their dict form."""
        metrics = _metrics()
        metrics.record_success(10)
        metrics.record_failure("HTTP 404: Not Found", status_code=404)
        metrics.finalize([5.0, 15.0], elapsed_seconds=1.0)

        restored = LoadTestMetrics.from_dict(metrics.to_dict())

        assert restored.test_id == "test-1"
        assert restored.total_requests == 2
        assert restored.failed_requests == 1
        assert restored.p95_response_time == metrics.p95_response_time
        assert restored.errors[0].status_code == 404
        assert restored.start_time == metrics.start_time
        assert restored.finalized is True
