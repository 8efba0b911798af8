"""Escalating-concurrency stress tests built on the load test runner."""

import logging
from typing import Any, Dict, List, Optional, Union

from .cancellation import CancellationToken
from .config import StressTestConfig
from .metrics import LoadTestMetrics
from .observers import LoadTestObserver, NullLoadTestObserver
from .runner import LoadTestRunner, coerce_config, generate_id

logger = logging.getLogger(__name__)


class StressTestController:
    """Runs load tests at increasing concurrency until the target saturates.

    Each step is an ordinary run through :class:`LoadTestRunner`, so its
    metrics land in the same results registry. The controller registers its
    own token under a ``stress-...`` id in the runner's active-run registry;
    stopping it ends the current step and prevents further steps.
    """

    def __init__(self, runner: LoadTestRunner, observer: Optional[LoadTestObserver] = None):
        self.runner = runner
        self.observer = observer or NullLoadTestObserver()

    async def run_stress_test(self, config: Union[StressTestConfig, Dict[str, Any]]) -> List[LoadTestMetrics]:
        config = coerce_config(config, StressTestConfig)

        stress_id = generate_id("stress")
        cancel_token = CancellationToken()
        self.runner.active_tests[stress_id] = cancel_token

        logger.info(
            f"Starting stress test: {config.name} (id={stress_id}, max users={config.max_users}, "
            f"+{config.user_increment_step} users every {config.user_increment_interval}s)"
        )

        results: List[LoadTestMetrics] = []
        current_users = config.concurrent_users
        try:
            while current_users <= config.max_users and not cancel_token.cancelled:
                logger.info(f"Stress step: {current_users} concurrent users")

                metrics = await self.runner.run_load_test(
                    config.step_config(current_users),
                    cancel_token=cancel_token,
                )
                results.append(metrics)
                self.observer.on_stress_step(stress_id=stress_id, users=current_users, metrics=metrics)

                failure_rate = metrics.failure_rate
                if failure_rate > config.failure_threshold_percent:
                    logger.warning(
                        f"Stress test stopped: failure threshold exceeded "
                        f"({failure_rate:.2f}% > {config.failure_threshold_percent}%) at {current_users} users"
                    )
                    break

                current_users += config.user_increment_step
        finally:
            self.runner.active_tests.pop(stress_id, None)

        if cancel_token.cancelled:
            logger.info(f"Stress test {stress_id} stopped after {len(results)} step(s)")
        else:
            logger.info(f"Stress test completed: {config.name} ({len(results)} step(s))")
        return results


def saturation_point(results: List[LoadTestMetrics], failure_threshold_percent: float) -> Optional[int]:
    """Concurrency of the first step whose failure rate crossed the threshold."""
    for metrics in results:
        if metrics.failure_rate > failure_threshold_percent:
            return metrics.concurrent_users
    return None
