"""Compare a run against a saved baseline and classify any regression."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .benchmarks import BenchmarkStore
from .config import RegressionThresholds
from .metrics import LoadTestMetrics

logger = logging.getLogger(__name__)

SEVERITY_ORDER = ["none", "minor", "major", "critical"]

CRITICAL_CHANGE = 50.0
MAJOR_CHANGE = 30.0


def percentage_change(baseline: float, current: float) -> float:
    """Relative change in percent; a zero baseline yields 100 (any increase) or 0."""
    if baseline == 0:
        return 100.0 if current > 0 else 0.0
    return (current - baseline) / baseline * 100.0


def classify_severity(changes: List[float]) -> str:
    if not changes:
        return "none"
    max_change = max(abs(c) for c in changes)
    if max_change > CRITICAL_CHANGE:
        return "critical"
    if max_change > MAJOR_CHANGE:
        return "major"
    return "minor"


@dataclass(frozen=True)
class RegressionRecord:
    metric: str
    baseline: float
    current: float
    percentage_change: float
    threshold: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric,
            "baseline": self.baseline,
            "current": self.current,
            "percentage_change": self.percentage_change,
            "threshold": self.threshold,
        }


@dataclass(frozen=True)
class RegressionDetection:
    detected: bool = False
    severity: str = "none"
    regressions: List[RegressionRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detected": self.detected,
            "severity": self.severity,
            "regressions": [r.to_dict() for r in self.regressions],
        }


class RegressionDetector:
    """Checks current metrics against the baseline held in a benchmark store.

    Latency and throughput use relative percent change. Failure rate uses
    the absolute difference in percentage points, and that difference is
    also what its record reports as ``percentage_change``.
    """

    def __init__(self, store: BenchmarkStore, thresholds: Optional[RegressionThresholds] = None):
        self.store = store
        self.thresholds = thresholds or RegressionThresholds()

    def detect(self, current: LoadTestMetrics, baseline_name: Optional[str] = None) -> RegressionDetection:
        benchmark = self.store.find_baseline(baseline_name)
        if benchmark is None:
            logger.debug(f"No baseline found{f' named {baseline_name}' if baseline_name else ''}")
            return RegressionDetection()
        return self.compare(benchmark.metrics, current)

    def compare(self, baseline: LoadTestMetrics, current: LoadTestMetrics) -> RegressionDetection:
        t = self.thresholds
        regressions: List[RegressionRecord] = []

        avg_change = percentage_change(baseline.average_response_time, current.average_response_time)
        if avg_change > t.average_response_time:
            regressions.append(
                RegressionRecord(
                    metric="Average Response Time",
                    baseline=baseline.average_response_time,
                    current=current.average_response_time,
                    percentage_change=avg_change,
                    threshold=t.average_response_time,
                )
            )

        p95_change = percentage_change(baseline.p95_response_time, current.p95_response_time)
        if p95_change > t.p95_response_time:
            regressions.append(
                RegressionRecord(
                    metric="P95 Response Time",
                    baseline=baseline.p95_response_time,
                    current=current.p95_response_time,
                    percentage_change=p95_change,
                    threshold=t.p95_response_time,
                )
            )

        rps_change = percentage_change(baseline.requests_per_second, current.requests_per_second)
        if rps_change < t.requests_per_second:
            regressions.append(
                RegressionRecord(
                    metric="Requests Per Second",
                    baseline=baseline.requests_per_second,
                    current=current.requests_per_second,
                    percentage_change=rps_change,
                    threshold=t.requests_per_second,
                )
            )

        failure_delta = current.failure_rate - baseline.failure_rate
        if failure_delta > t.failure_rate:
            regressions.append(
                RegressionRecord(
                    metric="Failure Rate",
                    baseline=baseline.failure_rate,
                    current=current.failure_rate,
                    percentage_change=failure_delta,
                    threshold=t.failure_rate,
                )
            )

        severity = classify_severity([r.percentage_change for r in regressions])
        if regressions:
            logger.info(
                f"Regression detected for {current.test_name} ({severity}): "
                + ", ".join(f"{r.metric} {r.percentage_change:+.1f}" for r in regressions)
            )
        return RegressionDetection(detected=bool(regressions), severity=severity, regressions=regressions)
