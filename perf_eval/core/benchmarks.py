"""Named snapshots of past runs used as regression baselines."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .metrics import LoadTestMetrics
from .runner import generate_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PerformanceBenchmark:
    id: str
    name: str
    metrics: LoadTestMetrics
    baseline: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "timestamp": self.timestamp.isoformat(),
            "baseline": self.baseline,
            "metrics": self.metrics.to_dict(),
        }


class BenchmarkStore:
    """In-memory benchmark registry.

    Several benchmarks may be flagged as baseline at once; lookups return
    the first match in insertion order.
    """

    def __init__(self) -> None:
        self._benchmarks: Dict[str, PerformanceBenchmark] = {}

    def save(self, name: str, metrics: LoadTestMetrics, baseline: bool = False) -> PerformanceBenchmark:
        benchmark = PerformanceBenchmark(
            id=generate_id("benchmark"),
            name=name,
            metrics=metrics,
            baseline=baseline,
        )
        self._benchmarks[benchmark.id] = benchmark
        logger.info(f"Benchmark saved: {name}{' (baseline)' if baseline else ''}")
        return benchmark

    def find_baseline(self, name: Optional[str] = None) -> Optional[PerformanceBenchmark]:
        for benchmark in self._benchmarks.values():
            if not benchmark.baseline:
                continue
            if name is None or benchmark.name == name:
                return benchmark
        return None

    def list_benchmarks(self) -> List[PerformanceBenchmark]:
        return list(self._benchmarks.values())

    def clear(self) -> None:
        self._benchmarks.clear()
        logger.info("All benchmarks cleared")
