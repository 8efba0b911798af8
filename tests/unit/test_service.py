"""Unit tests for the LoadTestingService facade and its observers."""

import asyncio
from unittest.mock import MagicMock

import pytest

from perf_eval.core.observers import (
    CompositeLoadTestObserver,
    LoadTestObserver,
    RegressionAlertObserver,
)
from perf_eval.core.regression import RegressionDetection
from perf_eval.core.service import LoadTestingService
from perf_eval.settings import PerfEvalSettings
from perf_eval.transport import HttpxTransport
from perf_eval.utils.errors import TestResultsNotFoundError


@pytest.mark.unit
class TestLoadTestingService:
    """Test cases for the public load testing operations."""

    @pytest.mark.asyncio
    async def test_run_and_fetch_results(self, stub_transport, load_config):
        """Test results of a run can be fetched and cleared."""
        service = LoadTestingService(stub_transport)

        metrics = await service.run_load_test(load_config)

        assert service.get_test_results(metrics.test_id) is metrics
        assert service.get_test_results() == [metrics]

        service.clear_results()
        assert service.get_test_results() == []
        with pytest.raises(TestResultsNotFoundError):
            service.get_test_results(metrics.test_id)

    @pytest.mark.asyncio
    async def test_stress_test(self, stub_transport):
        """Test a stress test runs through the service."""
        service = LoadTestingService(stub_transport)

        results = await service.run_stress_test(
            {
                "name": "svc",
                "target_url": "http://localhost/svc",
                "concurrent_users": 1,
                "max_users": 2,
                "user_increment_step": 1,
                "user_increment_interval": 0.05,
                "failure_threshold_percent": 10,
            }
        )

        assert len(results) == 2
        assert service.get_test_results() == results

    @pytest.mark.asyncio
    async def test_stop_test(self, make_transport, load_config):
        """Test a running test can be stopped by id."""
        service = LoadTestingService(make_transport(delay=10))
        config = load_config.model_copy(update={"duration": 30})

        run = asyncio.create_task(service.run_load_test(config))
        while not service.active_tests():
            await asyncio.sleep(0.001)

        assert service.stop_test(service.active_tests()[0]) is True
        metrics = await asyncio.wait_for(run, timeout=2)

        assert metrics.total_requests == 0
        assert service.stop_test(metrics.test_id) is False

    @pytest.mark.asyncio
    async def test_stop_all_tests(self, make_transport, load_config):
        """Test stop_all_tests empties the active registry."""
        service = LoadTestingService(make_transport(delay=10))
        config = load_config.model_copy(update={"duration": 30})

        run = asyncio.create_task(service.run_load_test(config))
        while not service.active_tests():
            await asyncio.sleep(0.001)

        service.stop_all_tests()
        await asyncio.wait_for(run, timeout=2)
        assert service.active_tests() == []

    def test_benchmarks(self, stub_transport, make_metrics):
        """Test benchmarks can be saved, listed and cleared."""
        service = LoadTestingService(stub_transport)

        benchmark = service.save_benchmark("nightly", make_metrics(), baseline=True)

        assert service.get_benchmarks() == [benchmark]
        service.clear_benchmarks()
        assert service.get_benchmarks() == []

    def test_detect_regression_without_baseline(self, stub_transport, make_metrics):
        """Test detection without a baseline reports nothing."""
        service = LoadTestingService(stub_transport)

        detection = service.detect_regression(make_metrics())

        assert detection == RegressionDetection()

    def test_detect_regression_notifies_observers(self, stub_transport, make_metrics):
        """Test detected regressions are handed to observers."""
        observer = MagicMock(spec=LoadTestObserver)
        service = LoadTestingService(stub_transport, observers=[observer])
        service.save_benchmark("nightly", make_metrics(average=100), baseline=True)

        current = make_metrics(test_id="test-2", average=200)
        detection = service.detect_regression(current, baseline_name="nightly")

        assert detection.severity == "critical"
        observer.on_regression_detected.assert_called_once_with(
            detection=detection,
            metrics=current,
            baseline_name="nightly",
        )

    def test_no_notification_without_regression(self, stub_transport, make_metrics):
        """Test observers are not notified without a regression."""
        observer = MagicMock(spec=LoadTestObserver)
        service = LoadTestingService(stub_transport)
        service.add_observer(observer)
        service.save_benchmark("nightly", make_metrics(), baseline=True)

        service.detect_regression(make_metrics())

        observer.on_regression_detected.assert_not_called()

    def test_thresholds_from_settings(self, stub_transport, make_metrics):
        """Test thresholds are read from settings."""
        settings = PerfEvalSettings(average_response_time_threshold=80)
        service = LoadTestingService(stub_transport, settings=settings)
        service.save_benchmark("nightly", make_metrics(average=100), baseline=True)

        assert service.detect_regression(make_metrics(average=170)).detected is False

    @pytest.mark.asyncio
    async def test_aclose_keeps_injected_transport(self, stub_transport):
        """Test an injected transport is left open."""
        async with LoadTestingService(stub_transport):
            pass
        assert stub_transport.closed is False

    @pytest.mark.asyncio
    async def test_aclose_closes_owned_transport(self):
        """Test the service closes a transport it created."""
        service = LoadTestingService(settings=PerfEvalSettings(request_timeout=5))
        assert isinstance(service.transport, HttpxTransport)

        await service.aclose()

        assert service.transport.client.is_closed


@pytest.mark.unit
class TestObservers:
    """Test cases for observer fan-out and regression alerts."""

    def test_composite_isolates_failing_observer(self):
        """Test a failing observer does not block the others."""
        failing = MagicMock(spec=LoadTestObserver)
        failing.on_run_error.side_effect = RuntimeError("observer broke")
        healthy = MagicMock(spec=LoadTestObserver)
        composite = CompositeLoadTestObserver([failing, None, healthy])

        composite.on_run_error(test_id="test-1", error="boom")

        healthy.on_run_error.assert_called_once_with(test_id="test-1", error="boom")

    def test_alert_observer_payload(self, make_metrics):
        """Test the alert handler receives a plain dict payload."""
        handler = MagicMock()
        observer = RegressionAlertObserver(handler)
        detection = RegressionDetection(detected=True, severity="major", regressions=[])

        observer.on_regression_detected(
            detection=detection,
            metrics=make_metrics(test_id="test-9"),
            baseline_name="nightly",
        )

        handler.assert_called_once_with(
            {
                "detected": True,
                "severity": "major",
                "regressions": [],
                "test_id": "test-9",
                "test_name": "test-9",
                "baseline_name": "nightly",
            }
        )

    def test_alert_observer_min_severity(self, make_metrics):
        """Test regressions below the minimum severity are dropped."""
        handler = MagicMock()
        observer = RegressionAlertObserver(handler, min_severity="critical")

        observer.on_regression_detected(
            detection=RegressionDetection(detected=True, severity="major"),
            metrics=make_metrics(),
        )

        handler.assert_not_called()

    def test_alert_observer_rejects_unknown_severity(self):
        """Test an unknown minimum severity is rejected."""
        with pytest.raises(ValueError, match="Unknown severity"):
            RegressionAlertObserver(MagicMock(), min_severity="urgent")

    def test_service_alert_end_to_end(self, stub_transport, make_metrics):
        """Test a detected regression reaches the alert handler."""
        alerts = []
        service = LoadTestingService(stub_transport, observers=[RegressionAlertObserver(alerts.append)])
        service.save_benchmark("nightly", make_metrics(average=100), baseline=True)

        service.detect_regression(make_metrics(test_id="test-3", average=130))

        assert len(alerts) == 1
        assert alerts[0]["severity"] == "minor"
        assert alerts[0]["test_id"] == "test-3"
        assert alerts[0]["regressions"][0]["metric"] == "Average Response Time"
