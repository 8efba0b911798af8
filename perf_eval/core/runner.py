"""Runs one load test: spawns virtual users and finalizes their metrics."""

import asyncio
import logging
import random
import string
import time
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ..transport import Transport
from ..utils.errors import LoadTestConfigError, TestResultsNotFoundError
from .cancellation import CancellationToken
from .config import LoadTestConfig
from .metrics import LoadTestMetrics
from .observers import LoadTestObserver, NullLoadTestObserver
from .virtual_user import VirtualUser

logger = logging.getLogger(__name__)


def generate_id(prefix: str) -> str:
    """``<prefix>-<epoch ms>-<9 random base36 chars>``."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def coerce_config(config: Any, model: type = LoadTestConfig) -> Any:
    """Accept a config model or a plain dict; raise LoadTestConfigError if invalid."""
    if isinstance(config, model):
        return config
    if isinstance(config, dict):
        try:
            return model(**config)
        except ValidationError as e:
            raise LoadTestConfigError(f"Invalid {model.__name__}: {e}") from e
    raise LoadTestConfigError(f"Expected {model.__name__} or dict, got {type(config).__name__}")


class LoadTestRunner:
    """Executes load tests and owns the active-run and results registries."""

    def __init__(self, transport: Transport, observer: Optional[LoadTestObserver] = None):
        self.transport = transport
        self.observer = observer or NullLoadTestObserver()
        self.active_tests: Dict[str, CancellationToken] = {}
        self.test_results: Dict[str, LoadTestMetrics] = {}

    async def run_load_test(
        self,
        config: Union[LoadTestConfig, Dict[str, Any]],
        *,
        cancel_token: Optional[CancellationToken] = None,
    ) -> LoadTestMetrics:
        """Run ``config`` to completion (or cancellation) and return finalized metrics.

        Per-request failures are recorded in the metrics; only invalid
        configuration or programming errors raise.

        Args:
            config: The run configuration.
            cancel_token: Share an existing token (e.g. a stress test's) instead
                of creating one for this run.
        """
        config = coerce_config(config)

        test_id = generate_id("test")
        cancel_token = cancel_token or CancellationToken()
        self.active_tests[test_id] = cancel_token

        logger.info(
            f"Starting load test: {config.name} (id={test_id}, target={config.target_url}, "
            f"duration={config.duration}s, users={config.concurrent_users})"
        )

        try:
            metrics = LoadTestMetrics(
                test_id=test_id,
                test_name=config.name,
                duration=config.duration,
                concurrent_users=config.concurrent_users,
            )
            response_times: List[float] = []
            self.observer.on_run_start(test_id=test_id, config=config)

            started = time.monotonic()
            end_time = started + config.duration

            users = [
                VirtualUser(
                    user_index=i,
                    config=config,
                    transport=self.transport,
                    metrics=metrics,
                    response_times=response_times,
                    cancel_token=cancel_token,
                    end_time=end_time,
                    ramp_up_delay_ms=config.ramp_up_delay_ms(i),
                    observer=self.observer,
                )
                for i in range(config.concurrent_users)
            ]
            await asyncio.gather(*(user.run() for user in users))

            metrics.finalize(response_times, time.monotonic() - started)
            self.test_results[test_id] = metrics

            logger.info(
                f"Load test completed: {config.name} - {metrics.total_requests} requests, "
                f"success {metrics.success_rate:.2f}%, avg {metrics.average_response_time:.2f}ms, "
                f"p95 {metrics.p95_response_time:.2f}ms, {metrics.requests_per_second:.2f} req/s"
            )
            self.observer.on_run_complete(test_id=test_id, metrics=metrics)
            return metrics

        except Exception as e:
            logger.error(f"Load test failed: {config.name} ({test_id}) - {e}")
            self.observer.on_run_error(test_id=test_id, error=str(e))
            raise

        finally:
            self.active_tests.pop(test_id, None)

    def stop_test(self, test_id: str) -> bool:
        """Cancel an active run. Returns False if ``test_id`` is not running."""
        cancel_token = self.active_tests.pop(test_id, None)
        if cancel_token is None:
            logger.warning(f"No active test with ID: {test_id}")
            return False
        cancel_token.cancel(f"Test {test_id} stopped")
        logger.info(f"Test stopped: {test_id}")
        return True

    def stop_all_tests(self) -> None:
        for test_id, cancel_token in list(self.active_tests.items()):
            cancel_token.cancel(f"Test {test_id} stopped")
            logger.info(f"Test stopped: {test_id}")
        self.active_tests.clear()

    def active_test_ids(self) -> List[str]:
        return list(self.active_tests)

    def get_results(self, test_id: Optional[str] = None) -> Union[LoadTestMetrics, List[LoadTestMetrics]]:
        if test_id:
            result = self.test_results.get(test_id)
            if result is None:
                raise TestResultsNotFoundError(test_id)
            return result
        return list(self.test_results.values())

    def clear_results(self) -> None:
        self.test_results.clear()
        logger.info("All test results cleared")
