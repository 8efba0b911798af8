"""Aggregate metrics for a single load test run."""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from ..utils.errors import PerfEvalError


def calculate_percentile(sorted_values: Sequence[float], percentile: float) -> float:
    """Nearest-rank percentile of an ascending sample.

    ``index = ceil(p / 100 * N) - 1``, clamped to ``[0, N - 1]``.

    Args:
        sorted_values: Response times sorted ascending.
        percentile: Percentile in the half-open range (0, 100].

    Raises:
        ValueError: empty sample or percentile out of range.
    """
    if not sorted_values:
        raise ValueError("cannot compute a percentile of an empty sample")
    if not 0 < percentile <= 100:
        raise ValueError(f"percentile must be in (0, 100], got {percentile}")

    n = len(sorted_values)
    index = math.ceil((percentile / 100.0) * n) - 1
    index = min(max(index, 0), n - 1)
    return sorted_values[index]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass(frozen=True)
class ErrorRecord:
    """A single failed request."""

    timestamp: datetime
    message: str
    status_code: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "message": self.message,
            "status_code": self.status_code,
        }


@dataclass
class LoadTestMetrics:
    """Mutable accumulator shared by every virtual user of one run.

    Counters are only touched through :meth:`record_success` and
    :meth:`record_failure` so ``total_requests`` always equals
    ``successful_requests + failed_requests``. Latency fields and rates are
    filled in once by :meth:`finalize`.
    """

    test_id: str
    test_name: str
    duration: float
    concurrent_users: int = 0
    start_time: datetime = field(default_factory=_utc_now)
    end_time: Optional[datetime] = None
    actual_duration: float = 0.0

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0

    average_response_time: float = 0.0
    min_response_time: float = math.inf
    max_response_time: float = 0.0
    p50_response_time: float = 0.0
    p95_response_time: float = 0.0
    p99_response_time: float = 0.0

    requests_per_second: float = 0.0
    errors_per_second: float = 0.0
    throughput_kbps: float = 0.0
    bytes_received: int = 0

    errors: List[ErrorRecord] = field(default_factory=list)
    finalized: bool = field(default=False, repr=False)

    def record_success(self, content_length: int = 0) -> None:
        self.total_requests += 1
        self.successful_requests += 1
        self.bytes_received += max(content_length, 0)

    def record_failure(
        self,
        message: str,
        status_code: Optional[int] = None,
        content_length: int = 0,
    ) -> None:
        self.total_requests += 1
        self.failed_requests += 1
        self.bytes_received += max(content_length, 0)
        self.errors.append(ErrorRecord(timestamp=_utc_now(), message=message, status_code=status_code))

    @property
    def success_rate(self) -> float:
        """Percentage of successful requests (0 when nothing was sent)."""
        if self.total_requests == 0:
            return 0.0
        return self.successful_requests / self.total_requests * 100.0

    @property
    def failure_rate(self) -> float:
        """Percentage of failed requests (0 when nothing was sent)."""
        if self.total_requests == 0:
            return 0.0
        return self.failed_requests / self.total_requests * 100.0

    def finalize(self, response_times: List[float], elapsed_seconds: float) -> "LoadTestMetrics":
        """Derive rates and latency statistics from the collected sample.

        Args:
            response_times: Every recorded response time in ms, any order.
                Sorted in place.
            elapsed_seconds: Measured wall-clock duration of the run.
        """
        if self.finalized:
            raise PerfEvalError(f"Metrics for {self.test_id} are already finalized")

        self.end_time = _utc_now()
        self.actual_duration = elapsed_seconds

        if elapsed_seconds > 0:
            self.requests_per_second = self.total_requests / elapsed_seconds
            self.errors_per_second = self.failed_requests / elapsed_seconds
            self.throughput_kbps = (self.bytes_received / 1024.0) / elapsed_seconds

        if response_times:
            response_times.sort()
            self.average_response_time = sum(response_times) / len(response_times)
            self.min_response_time = response_times[0]
            self.max_response_time = response_times[-1]
            self.p50_response_time = calculate_percentile(response_times, 50)
            self.p95_response_time = calculate_percentile(response_times, 95)
            self.p99_response_time = calculate_percentile(response_times, 99)
        else:
            self.average_response_time = 0.0
            self.min_response_time = 0.0
            self.max_response_time = 0.0

        self.finalized = True
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "test_id": self.test_id,
            "test_name": self.test_name,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration": self.duration,
            "actual_duration": self.actual_duration,
            "concurrent_users": self.concurrent_users,
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "average_response_time": self.average_response_time,
            "min_response_time": None if math.isinf(self.min_response_time) else self.min_response_time,
            "max_response_time": self.max_response_time,
            "p50_response_time": self.p50_response_time,
            "p95_response_time": self.p95_response_time,
            "p99_response_time": self.p99_response_time,
            "requests_per_second": self.requests_per_second,
            "errors_per_second": self.errors_per_second,
            "throughput_kbps": self.throughput_kbps,
            "bytes_received": self.bytes_received,
            "errors": [e.to_dict() for e in self.errors],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoadTestMetrics":
        """Rebuild finalized metrics from :meth:`to_dict` output."""
        min_rt = data.get("min_response_time")
        metrics = cls(
            test_id=data["test_id"],
            test_name=data.get("test_name", data["test_id"]),
            duration=float(data.get("duration", 0.0)),
            concurrent_users=int(data.get("concurrent_users", 0)),
            start_time=_parse_timestamp(data.get("start_time")) or _utc_now(),
            end_time=_parse_timestamp(data.get("end_time")),
            actual_duration=float(data.get("actual_duration", 0.0)),
            total_requests=int(data.get("total_requests", 0)),
            successful_requests=int(data.get("successful_requests", 0)),
            failed_requests=int(data.get("failed_requests", 0)),
            average_response_time=float(data.get("average_response_time", 0.0)),
            min_response_time=math.inf if min_rt is None else float(min_rt),
            max_response_time=float(data.get("max_response_time", 0.0)),
            p50_response_time=float(data.get("p50_response_time", 0.0)),
            p95_response_time=float(data.get("p95_response_time", 0.0)),
            p99_response_time=float(data.get("p99_response_time", 0.0)),
            requests_per_second=float(data.get("requests_per_second", 0.0)),
            errors_per_second=float(data.get("errors_per_second", 0.0)),
            throughput_kbps=float(data.get("throughput_kbps", 0.0)),
            bytes_received=int(data.get("bytes_received", 0)),
            errors=[
                ErrorRecord(
                    timestamp=_parse_timestamp(e.get("timestamp")) or _utc_now(),
                    message=e.get("message", ""),
                    status_code=e.get("status_code"),
                )
                for e in data.get("errors", [])
            ],
        )
        metrics.finalized = data.get("end_time") is not None
        return metrics
