"""A single simulated client issuing requests for the length of a run."""

import logging
import time
from typing import List, Optional

from ..transport import Transport
from ..utils.errors import RequestAbortedError
from .cancellation import CancellationToken
from .config import LoadTestConfig
from .metrics import LoadTestMetrics
from .observers import LoadTestObserver, NullLoadTestObserver

logger = logging.getLogger(__name__)


class VirtualUser:
    """Loops issuing requests until the run ends or is cancelled.

    Every outcome is recorded into the shared ``metrics`` and
    ``response_times``; per-request failures never escape :meth:`run`.
    All virtual users of a run share one event loop, so the shared
    accumulators are only mutated between suspension points.
    """

    def __init__(
        self,
        user_index: int,
        config: LoadTestConfig,
        transport: Transport,
        metrics: LoadTestMetrics,
        response_times: List[float],
        cancel_token: CancellationToken,
        end_time: float,
        ramp_up_delay_ms: float = 0.0,
        observer: Optional[LoadTestObserver] = None,
    ):
        self.user_index = user_index
        self.config = config
        self.transport = transport
        self.metrics = metrics
        self.response_times = response_times
        self.cancel_token = cancel_token
        self.end_time = end_time  # time.monotonic() deadline
        self.ramp_up_delay_ms = ramp_up_delay_ms
        self.observer = observer or NullLoadTestObserver()
        self.requests_sent = 0

    async def run(self) -> None:
        if self.ramp_up_delay_ms > 0:
            if not await self.cancel_token.sleep(self.ramp_up_delay_ms / 1000.0):
                return

        think_seconds = self.config.think_time / 1000.0

        while time.monotonic() < self.end_time and not self.cancel_token.cancelled:
            try:
                await self._issue_request()
            except RequestAbortedError:
                logger.debug(f"Virtual user {self.user_index} aborted for {self.metrics.test_id}")
                return

            if think_seconds > 0 and time.monotonic() < self.end_time:
                if not await self.cancel_token.sleep(think_seconds):
                    return

    async def _issue_request(self) -> None:
        started = time.perf_counter()
        try:
            response = await self.cancel_token.run(self.transport.send(self.config))
        except RequestAbortedError:
            raise
        except Exception as e:
            # Transport errors are counted but add no latency sample.
            self.requests_sent += 1
            message = str(e) or type(e).__name__
            self.metrics.record_failure(message)
            logger.debug(f"Request failed for {self.metrics.test_id}: {message}")
            self.observer.on_request_error(
                test_id=self.metrics.test_id,
                user_index=self.user_index,
                error=message,
                status_code=None,
            )
            return

        self._record(started)
        if response.ok:
            self.metrics.record_success(response.content_length)
            return

        if response.reason:
            message = f"HTTP {response.status_code}: {response.reason}"
        else:
            message = f"HTTP {response.status_code}"
        self.metrics.record_failure(message, status_code=response.status_code, content_length=response.content_length)
        self.observer.on_request_error(
            test_id=self.metrics.test_id,
            user_index=self.user_index,
            error=message,
            status_code=response.status_code,
        )

    def _record(self, started: float) -> None:
        self.response_times.append((time.perf_counter() - started) * 1000.0)
        self.requests_sent += 1
