"""Shared HTTP plumbing for platform connectors.

Every platform adapter owns exactly one ``RateLimitedClient``. The client keeps
its own ``RateLimiterState``, so spacing and backoff never leak between
platforms or between tests.

Key Components:
- RateLimiterState: last request time, minimum spacing, current backoff delay
- RetryPolicy: exponential backoff parameters for rate-limited responses
- RateLimitedClient: httpx wrapper enforcing spacing and 503/429 retries
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterator
import time
from typing import Any, Self

from attrs import define
import backoff
import httpx

from crosstrack.config import get_logger
from crosstrack.domain.entities import Candidate, Platform
from crosstrack.domain.exceptions import (
    PlatformAuthError,
    PlatformRequestError,
    RateLimitExhaustedError,
)
from crosstrack.domain.matching import TITLE_WEIGHTED, ScoringWeights

from .protocols import TokenProvider

# Statuses that mean "slow down", retried with backoff
RETRYABLE_STATUS = frozenset({429, 503})
AUTH_STATUS = frozenset({401, 403})


@define(slots=True)
class RateLimiterState:
    """Mutable limiter bookkeeping owned by a single client."""

    min_interval: float
    last_request: float | None = None
    current_backoff: float = 0.0


@define(frozen=True, slots=True)
class RetryPolicy:
    """Exponential backoff: ``initial_delay * multiplier ** attempt``, capped."""

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    multiplier: float = 2.0

    def delay_for(self, attempt: int) -> float:
        return min(self.initial_delay * self.multiplier**attempt, self.max_delay)


def policy_delays(policy: RetryPolicy) -> Iterator[float | None]:
    """Wait generator for ``backoff.on_exception`` yielding ``policy.delay_for``."""
    yield None  # backoff primes the generator before the first retry
    attempt = 0
    while True:
        yield policy.delay_for(attempt)
        attempt += 1


class _RetryableResponse(Exception):
    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


class RateLimitedClient:
    """Rate-limited async HTTP client for one upstream platform.

    Requests are spaced at least ``min_interval`` seconds apart. Responses with
    status 503 or 429, and transport errors, are retried with exponential
    backoff. Any other non-2xx status fails immediately.

    Args:
        platform: Name used in logs and raised errors
        base_url: Base URL for relative request paths
        min_interval: Minimum seconds between two requests
        retry: Backoff parameters
        headers: Default request headers (User-Agent etc.)
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport, used by tests
        clock: Monotonic clock used for spacing
        sleep: Awaitable sleep used for spacing
    """

    def __init__(
        self,
        platform: str,
        base_url: str = "",
        *,
        min_interval: float = 0.0,
        retry: RetryPolicy | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.platform = platform
        self.state = RateLimiterState(min_interval=min_interval)
        self.retry = retry or RetryPolicy()
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers or {},
            timeout=timeout,
            transport=transport,
            follow_redirects=False,
        )
        self._logger = get_logger(__name__).bind(service=platform)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _wait_for_slot(self) -> None:
        """Sleep until ``min_interval`` has passed since the previous request."""
        async with self._lock:
            if self.state.last_request is not None:
                remaining = self.state.min_interval - (
                    self._clock() - self.state.last_request
                )
                if remaining > 0:
                    self._logger.debug("Rate limit wait", wait=f"{remaining:.3f}s")
                    await self._sleep(remaining)
            self.state.last_request = self._clock()

    def _on_backoff(self, details: dict[str, Any]) -> None:
        self.state.current_backoff = details["wait"]
        self._logger.warning(
            f"Retrying {self.platform} request (attempt {details['tries']})",
            retry_delay=f"{details['wait']:.2f}s",
            attempt=details["tries"],
        )

    def _on_giveup(self, details: dict[str, Any]) -> None:
        exception = details.get("exception")
        self._logger.error(
            f"All {details['tries']} attempts failed for {self.platform}",
            elapsed_time=f"{details['elapsed']:.2f}s",
            error=str(exception) if exception else "Unknown error",
        )

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request through the limiter.

        Returns:
            The successful (2xx, or 3xx when redirects are not followed) response

        Raises:
            RateLimitExhaustedError: Retries ran out on 503/429 or network errors
            PlatformAuthError: The platform answered 401 or 403
            PlatformRequestError: Any other unsuccessful status
        """

        @backoff.on_exception(
            policy_delays,
            (_RetryableResponse, httpx.TransportError),
            max_tries=self.retry.max_retries + 1,  # +1 because first attempt counts
            jitter=None,
            on_backoff=self._on_backoff,
            on_giveup=self._on_giveup,
            policy=self.retry,
        )
        async def send() -> httpx.Response:
            await self._wait_for_slot()
            response = await self._client.request(method, url, **kwargs)
            if response.status_code in RETRYABLE_STATUS:
                raise _RetryableResponse(response)
            return response

        try:
            response = await send()
        except _RetryableResponse as e:
            raise RateLimitExhaustedError(
                f"{self.platform} still rate limited after {self.retry.max_retries} retries",
                platform=self.platform,
                status_code=e.response.status_code,
            ) from e
        except httpx.TransportError as e:
            raise RateLimitExhaustedError(
                f"{self.platform} unreachable: {e}", platform=self.platform
            ) from e
        finally:
            self.state.current_backoff = 0.0

        if response.status_code in AUTH_STATUS:
            raise PlatformAuthError(
                f"{self.platform} rejected the access token",
                platform=self.platform,
                status_code=response.status_code,
            )
        if response.is_error:
            raise PlatformRequestError(
                f"{self.platform} request failed: HTTP {response.status_code}",
                platform=self.platform,
                status_code=response.status_code,
            )
        return response

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        response = await self.request("GET", url, **kwargs)
        return response.json()


class BasePlatformAdapter:
    """Common wiring for platform adapters.

    Subclasses set ``platform`` and implement the search contract from
    ``PlatformSearchAdapter``. Adapters that need auth receive a token provider;
    a provider answering ``None`` makes the adapter unavailable.
    """

    platform: Platform

    def __init__(
        self,
        client: RateLimitedClient,
        weights: ScoringWeights = TITLE_WEIGHTED,
        token_provider: TokenProvider | None = None,
    ) -> None:
        self.client = client
        self.weights = weights
        self.token_provider = token_provider
        self.logger = get_logger(__name__).bind(service=self.platform.value)

    async def is_available(self) -> bool:
        if self.token_provider is None:
            return True
        return await self.token_provider.get_access_token() is not None

    async def _bearer_headers(self) -> dict[str, str]:
        if self.token_provider is None:
            raise PlatformAuthError(
                f"No token provider configured for {self.platform}",
                platform=self.platform.value,
            )
        token = await self.token_provider.get_access_token()
        if not token:
            raise PlatformAuthError(
                f"No access token available for {self.platform}",
                platform=self.platform.value,
            )
        return {"Authorization": f"Bearer {token}"}

    async def search_top1(self, artist: str, title: str) -> Candidate | None:
        candidates = await self.search_top_n(artist, title, n=1)
        return candidates[0] if candidates else None

    async def search_top_n(self, artist: str, title: str, n: int = 5) -> list[Candidate]:
        raise NotImplementedError

    async def aclose(self) -> None:
        await self.client.aclose()
