"""Load testing service: one instance per process, passed to its consumers."""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from ..settings import PerfEvalSettings
from ..transport import HttpxTransport, Transport
from .benchmarks import BenchmarkStore, PerformanceBenchmark
from .config import LoadTestConfig, RegressionThresholds, StressTestConfig
from .metrics import LoadTestMetrics
from .observers import CompositeLoadTestObserver, LoadTestObserver
from .regression import RegressionDetection, RegressionDetector
from .runner import LoadTestRunner
from .stress import StressTestController

logger = logging.getLogger(__name__)


class LoadTestingService:
    """Facade over the runner, stress controller, benchmark store and detector.

    Example:
        async with LoadTestingService() as service:
            metrics = await service.run_load_test(config)
            service.save_benchmark("nightly", metrics, baseline=True)
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        *,
        settings: Optional[PerfEvalSettings] = None,
        thresholds: Optional[RegressionThresholds] = None,
        observers: Optional[Sequence[LoadTestObserver]] = None,
    ):
        self.settings = settings or PerfEvalSettings()
        self._owns_transport = transport is None
        self.transport = transport or HttpxTransport(
            timeout=self.settings.request_timeout,
            verify=self.settings.verify_ssl,
            max_connections=self.settings.max_connections,
        )
        self.observer = CompositeLoadTestObserver(observers)

        self.runner = LoadTestRunner(self.transport, observer=self.observer)
        self.stress_controller = StressTestController(self.runner, observer=self.observer)
        self.benchmarks = BenchmarkStore()
        self.detector = RegressionDetector(
            self.benchmarks,
            thresholds or self.settings.regression_thresholds(),
        )
        logger.info("Load testing service initialized")

    def add_observer(self, observer: LoadTestObserver) -> None:
        self.observer.add_observer(observer)

    async def run_load_test(self, config: Union[LoadTestConfig, Dict[str, Any]]) -> LoadTestMetrics:
        return await self.runner.run_load_test(config)

    async def run_stress_test(self, config: Union[StressTestConfig, Dict[str, Any]]) -> List[LoadTestMetrics]:
        return await self.stress_controller.run_stress_test(config)

    def stop_test(self, test_id: str) -> bool:
        return self.runner.stop_test(test_id)

    def stop_all_tests(self) -> None:
        self.runner.stop_all_tests()

    def active_tests(self) -> List[str]:
        return self.runner.active_test_ids()

    def save_benchmark(self, name: str, metrics: LoadTestMetrics, baseline: bool = False) -> PerformanceBenchmark:
        return self.benchmarks.save(name, metrics, baseline)

    def detect_regression(
        self,
        metrics: LoadTestMetrics,
        baseline_name: Optional[str] = None,
    ) -> RegressionDetection:
        """Compare ``metrics`` to the stored baseline; never raises for a missing baseline.

        Detected regressions are handed to observers via
        ``on_regression_detected``.
        """
        detection = self.detector.detect(metrics, baseline_name)
        if detection.detected:
            self.observer.on_regression_detected(
                detection=detection,
                metrics=metrics,
                baseline_name=baseline_name,
            )
        return detection

    def get_test_results(self, test_id: Optional[str] = None) -> Union[LoadTestMetrics, List[LoadTestMetrics]]:
        return self.runner.get_results(test_id)

    def get_benchmarks(self) -> List[PerformanceBenchmark]:
        return self.benchmarks.list_benchmarks()

    def clear_results(self) -> None:
        self.runner.clear_results()

    def clear_benchmarks(self) -> None:
        self.benchmarks.clear()

    async def aclose(self) -> None:
        self.stop_all_tests()
        if self._owns_transport:
            await self.transport.aclose()

    async def __aenter__(self) -> "LoadTestingService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
