"""HTTP transport boundary used by virtual users."""

import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx

from .core.config import LoadTestConfig
from .utils.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransportResponse:
    """The parts of a response the engine cares about."""

    status_code: int
    reason: str = ""
    content_length: int = 0

    @property
    def ok(self) -> bool:
        """2xx and 3xx count as success."""
        return 200 <= self.status_code < 400


def parse_content_length(value: Optional[str]) -> int:
    """Content-Length header as an int; missing or malformed values count as 0."""
    if not value:
        return 0
    try:
        return max(int(value.strip()), 0)
    except ValueError:
        return 0


class Transport(ABC):
    """Issues one request described by a :class:`LoadTestConfig`."""

    @abstractmethod
    async def send(self, config: LoadTestConfig) -> TransportResponse:
        """Send a single request and return its response summary."""
        pass

    async def aclose(self) -> None:
        """Release any pooled connections."""


class HttpxTransport(Transport):
    """Transport backed by a shared ``httpx.AsyncClient``.

    Redirects are not followed, so a 3xx response is reported as-is (and
    counted as a success).
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        timeout: float = 30.0,
        verify: bool = True,
        max_connections: int = 1000,
    ):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            verify=verify,
            follow_redirects=False,
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max(max_connections // 2, 1),
            ),
        )

    async def send(self, config: LoadTestConfig) -> TransportResponse:
        body_kwargs = config.body.to_request_kwargs()
        headers: Dict[str, str] = dict(config.headers)
        for key, value in body_kwargs.pop("headers", {}).items():
            headers.setdefault(key, value)

        try:
            response = await self.client.request(
                config.method,
                config.target_url,
                headers=headers,
                **body_kwargs,
            )
        except httpx.HTTPError as e:
            message = str(e) or type(e).__name__
            raise TransportError(message, url=config.target_url) from e

        return TransportResponse(
            status_code=response.status_code,
            reason=response.reason_phrase,
            content_length=parse_content_length(response.headers.get("content-length")),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


SendFunction = Callable[[LoadTestConfig], Union[Awaitable[Any], Any]]


class FunctionTransport(Transport):
    """Adapter for a plain callable acting as the target.

    The callable receives the run config and may return a
    :class:`TransportResponse`, an ``httpx.Response`` or a bare status code.
    """

    def __init__(self, func: SendFunction):
        self.func = func

    async def send(self, config: LoadTestConfig) -> TransportResponse:
        result = self.func(config)
        if inspect.isawaitable(result):
            result = await result
        return self._coerce(result)

    @staticmethod
    def _coerce(result: Any) -> TransportResponse:
        if isinstance(result, TransportResponse):
            return result
        if isinstance(result, httpx.Response):
            return TransportResponse(
                status_code=result.status_code,
                reason=result.reason_phrase,
                content_length=parse_content_length(result.headers.get("content-length")),
            )
        if isinstance(result, int) and not isinstance(result, bool):
            return TransportResponse(status_code=result)
        raise TypeError(f"Unsupported transport result: {type(result).__name__}")
