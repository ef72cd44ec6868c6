# ABOUTME: Bounded page fetcher: shared concurrency limiter, tenacity retries and seedable jittered backoff
# ABOUTME: Turns page identifiers into PageContent, treating 404s as absent and exhausting retries as FetchError

import asyncio
import random
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt

from acs_database.config import get_config
from acs_database.extraction.base import FetchError, PageContent, TransientFetchError
from acs_database.utils.logging import get_logger, log_api_call

ABSENT_STATUS_CODES = frozenset({404, 410})


class ConcurrencyLimiter:
    """Counting limiter shared by every request of one phase.

    Wraps an ``asyncio.Semaphore`` and keeps ``in_flight`` / ``peak`` counters so
    callers (and tests) can observe how many requests were running at once.
    """

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError(f"Concurrency limit must be at least 1, got {limit}")
        self.limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self.in_flight = 0
        self.peak = 0
        self.acquired = 0

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        async with self._semaphore:
            self.in_flight += 1
            self.acquired += 1
            self.peak = max(self.peak, self.in_flight)
            try:
                yield
            finally:
                self.in_flight -= 1


class RandomizedBackoff:
    """Tenacity wait strategy: full-jitter exponential backoff drawn from a seedable RNG.

    The n-th retry sleeps a uniform random delay in ``[0, min(cap, base * 2**(n-1))]``
    so concurrent retries against the wiki do not line up.
    """

    def __init__(self, base: float = 1.0, cap: float = 30.0, seed: int | None = None, rng: random.Random | None = None):
        self.base = base
        self.cap = cap
        self.rng = rng or random.Random(seed)

    def ceiling(self, attempt_number: int) -> float:
        return min(self.cap, self.base * 2 ** (attempt_number - 1))

    def __call__(self, retry_state: RetryCallState) -> float:
        return self.rng.uniform(0, self.ceiling(retry_state.attempt_number))


class BoundedFetcher:
    """Fetches wiki pages with bounded concurrency, retries and backoff."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        limiter: ConcurrencyLimiter | None = None,
        retries: int | None = None,
        base_url: str | None = None,
        backoff: Callable[[RetryCallState], float] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        config = get_config()
        self.base_url = (base_url or config.base_url).rstrip("/")
        self.retries = config.default_retries if retries is None else retries
        self.limiter = limiter or ConcurrencyLimiter(config.default_limit)
        self.backoff = backoff or RandomizedBackoff(config.backoff_base, config.backoff_max, config.backoff_seed)
        self.http_client = client or httpx.AsyncClient(  # Allow for dependency injection
            headers={"User-Agent": config.user_agent, "Referer": f"{self.base_url}/"},
            timeout=httpx.Timeout(config.request_timeout),
            follow_redirects=True,
        )
        self._owns_client = client is None
        self._sleep = sleep
        self.logger = get_logger(__name__)

    def url_for(self, identifier: str) -> str:
        return f"{self.base_url}/{identifier}"

    async def fetch(
        self,
        identifier: str,
        url: str | None = None,
        *,
        retries: int | None = None,
        limiter: ConcurrencyLimiter | None = None,
    ) -> PageContent | None:
        """Fetch one page.

        Args:
            identifier: Page identifier (slug) being fetched
            url: Explicit URL, defaults to ``base_url/identifier``
            retries: Retry budget override (total attempts = retries + 1)
            limiter: Limiter override, defaults to the fetcher's own

        Returns:
            The page content, or None when the wiki reports the page as absent

        Raises:
            FetchError: If every attempt failed with a transient error
        """
        target = url or self.url_for(identifier)
        response = await self._request_with_retry("GET", target, identifier, retries=retries, limiter=limiter)
        if response is None:
            return None
        return PageContent(
            identifier=identifier,
            url=str(response.url),
            html=response.text,
            status_code=response.status_code,
            headers=dict(response.headers),
        )

    async def post_module(
        self,
        identifier: str,
        data: dict[str, str],
        headers: dict[str, str] | None = None,
        *,
        retries: int | None = None,
        limiter: ConcurrencyLimiter | None = None,
    ) -> httpx.Response | None:
        """POST a wikidot AJAX module request under the same limiter and retry policy."""
        url = f"{self.base_url}/ajax-module-connector.php"
        return await self._request_with_retry(
            "POST", url, identifier, retries=retries, limiter=limiter, data=data, headers=headers
        )

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        identifier: str,
        *,
        retries: int | None,
        limiter: ConcurrencyLimiter | None,
        **request_kwargs: Any,
    ) -> httpx.Response | None:
        budget = self.retries if retries is None else retries
        limiter = limiter or self.limiter
        attempts = 0

        retrying = AsyncRetrying(
            stop=stop_after_attempt(budget + 1),
            wait=self.backoff,
            retry=retry_if_exception_type(TransientFetchError),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    return await self._attempt(method, url, identifier=identifier, limiter=limiter, **request_kwargs)
        except TransientFetchError as e:
            raise FetchError(identifier, e.reason, attempts) from e
        return None  # pragma: no cover - AsyncRetrying either returns or raises

    @log_api_call("wikidot")
    async def _attempt(
        self, method: str, url: str, *, identifier: str, limiter: ConcurrencyLimiter, **request_kwargs: Any
    ) -> httpx.Response | None:
        # The permit covers one request only; backoff sleeps happen outside it
        async with limiter.slot():
            try:
                response = await self.http_client.request(method, url, **request_kwargs)
            except httpx.TimeoutException as e:
                raise TransientFetchError(f"timeout: {e}") from e
            except httpx.RequestError as e:
                raise TransientFetchError(f"{type(e).__name__}: {e}") from e

        if response.status_code in ABSENT_STATUS_CODES:
            self.logger.debug("Page absent", identifier=identifier, status_code=response.status_code, url=url)
            return None
        if not response.is_success:
            raise TransientFetchError(f"HTTP {response.status_code}", status_code=response.status_code)
        return response

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        self.logger.info(
            "Retrying request",
            attempt=retry_state.attempt_number,
            sleep_seconds=round(retry_state.upcoming_sleep, 3),
            error=str(error) if error else None,
        )

    async def close(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()

    async def __aenter__(self) -> "BoundedFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
