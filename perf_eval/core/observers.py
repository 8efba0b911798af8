"""Observer hooks for load test lifecycle and regression events."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence

if TYPE_CHECKING:
    from .config import LoadTestConfig
    from .metrics import LoadTestMetrics
    from .regression import RegressionDetection

logger = logging.getLogger(__name__)


class LoadTestObserver:
    """Base observer with no-op hooks for load test lifecycle events."""

    def on_run_start(self, test_id: str, config: "LoadTestConfig") -> None:
        """Called once a run is registered and before virtual users start."""

    def on_request_error(
        self,
        test_id: str,
        user_index: int,
        error: str,
        status_code: Optional[int] = None,
    ) -> None:
        """Called for every failed request."""

    def on_run_complete(self, test_id: str, metrics: "LoadTestMetrics") -> None:
        """Called after a run's metrics are finalized and stored."""

    def on_run_error(self, test_id: str, error: str) -> None:
        """Called when a run aborts with an exception."""

    def on_stress_step(self, stress_id: str, users: int, metrics: "LoadTestMetrics") -> None:
        """Called after each stress test step."""

    def on_regression_detected(
        self,
        detection: "RegressionDetection",
        metrics: "LoadTestMetrics",
        baseline_name: Optional[str] = None,
    ) -> None:
        """Called when a comparison against a baseline flags a regression."""


class NullLoadTestObserver(LoadTestObserver):
    """Default observer that ignores all notifications."""

    pass


class CompositeLoadTestObserver(LoadTestObserver):
    """Fan-out observer that notifies multiple observers."""

    def __init__(self, observers: Optional[Sequence[LoadTestObserver]] = None) -> None:
        self._observers: List[LoadTestObserver] = []
        if observers:
            for observer in observers:
                self.add_observer(observer)

    def add_observer(self, observer: Optional[LoadTestObserver]) -> None:
        if observer is None:
            return
        self._observers.append(observer)

    def _call(self, method: str, **kwargs: Any) -> None:
        for observer in list(self._observers):
            callback = getattr(observer, method, None)
            if callable(callback):
                try:
                    callback(**kwargs)
                except Exception:
                    logger.exception(f"Observer {type(observer).__name__}.{method} failed")
                    continue

    def on_run_start(self, **kwargs: Any) -> None:
        self._call("on_run_start", **kwargs)

    def on_request_error(self, **kwargs: Any) -> None:
        self._call("on_request_error", **kwargs)

    def on_run_complete(self, **kwargs: Any) -> None:
        self._call("on_run_complete", **kwargs)

    def on_run_error(self, **kwargs: Any) -> None:
        self._call("on_run_error", **kwargs)

    def on_stress_step(self, **kwargs: Any) -> None:
        self._call("on_stress_step", **kwargs)

    def on_regression_detected(self, **kwargs: Any) -> None:
        self._call("on_regression_detected", **kwargs)


AlertHandler = Callable[[Dict[str, Any]], None]


class RegressionAlertObserver(LoadTestObserver):
    """Hands detected regressions to an alerting collaborator.

    The handler receives a plain dict with ``severity``, ``regressions``,
    ``test_id``, ``test_name`` and ``baseline_name``. Throttling and delivery
    are the handler's concern.
    """

    def __init__(self, handler: AlertHandler, min_severity: str = "minor") -> None:
        from .regression import SEVERITY_ORDER

        if min_severity not in SEVERITY_ORDER:
            raise ValueError(f"Unknown severity: {min_severity}")
        self.handler = handler
        self.min_severity = min_severity
        self._severity_order = SEVERITY_ORDER

    def on_regression_detected(
        self,
        detection: "RegressionDetection",
        metrics: "LoadTestMetrics",
        baseline_name: Optional[str] = None,
    ) -> None:
        if self._severity_order.index(detection.severity) < self._severity_order.index(self.min_severity):
            return
        payload = detection.to_dict()
        payload.update(
            {
                "test_id": metrics.test_id,
                "test_name": metrics.test_name,
                "baseline_name": baseline_name,
            }
        )
        self.handler(payload)
