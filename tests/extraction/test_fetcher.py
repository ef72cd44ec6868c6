# ABOUTME: Tests for the bounded fetcher, its concurrency limiter and randomized backoff
# ABOUTME: HTTP is served by httpx.MockTransport and backoff sleeps are recorded instead of awaited

import asyncio
from types import SimpleNamespace

import httpx
import pytest

from acs_database.extraction.base import FetchError
from acs_database.extraction.fetcher import BoundedFetcher, ConcurrencyLimiter, RandomizedBackoff

BASE_URL = "https://scp-wiki.wikidot.com"


class SleepRecorder:
    """Stands in for asyncio.sleep so retries run instantly."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_fetcher(handler, *, limit: int = 4, retries: int = 2, seed: int = 1234, sleep=None) -> BoundedFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return BoundedFetcher(
        client=client,
        limiter=ConcurrencyLimiter(limit),
        retries=retries,
        base_url=BASE_URL,
        backoff=RandomizedBackoff(base=0.5, cap=4.0, seed=seed),
        sleep=sleep or SleepRecorder(),
    )


class TestConcurrencyLimiter:
    def test_rejects_non_positive_limit(self):
        with pytest.raises(ValueError):
            ConcurrencyLimiter(0)

    @pytest.mark.asyncio
    async def test_slot_is_released_on_error(self):
        limiter = ConcurrencyLimiter(1)

        with pytest.raises(RuntimeError):
            async with limiter.slot():
                raise RuntimeError("boom")

        assert limiter.in_flight == 0
        async with limiter.slot():
            assert limiter.in_flight == 1


class TestRandomizedBackoff:
    def test_same_seed_same_delays(self):
        first = RandomizedBackoff(base=1.0, cap=30.0, seed=42)
        second = RandomizedBackoff(base=1.0, cap=30.0, seed=42)

        delays_a = [first(SimpleNamespace(attempt_number=n)) for n in range(1, 6)]
        delays_b = [second(SimpleNamespace(attempt_number=n)) for n in range(1, 6)]

        assert delays_a == delays_b

    def test_delays_stay_under_capped_ceiling(self):
        backoff = RandomizedBackoff(base=1.0, cap=5.0, seed=7)

        for attempt in range(1, 10):
            delay = backoff(SimpleNamespace(attempt_number=attempt))
            assert 0 <= delay <= min(5.0, 2 ** (attempt - 1))

        assert backoff.ceiling(10) == 5.0


class TestBoundedFetcher:
    """Fetch semantics: success, absent pages, retries and the concurrency bound."""

    @pytest.mark.asyncio
    async def test_fetch_success(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/scp-173"
            return httpx.Response(200, text="<html><body>ok</body></html>")

        async with make_fetcher(handler) as fetcher:
            content = await fetcher.fetch("scp-173")

        assert content is not None
        assert content.identifier == "scp-173"
        assert content.url == f"{BASE_URL}/scp-173"
        assert "ok" in content.text

    @pytest.mark.asyncio
    async def test_not_found_is_absent_and_not_retried(self):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(404)

        async with make_fetcher(handler, retries=5) as fetcher:
            assert await fetcher.fetch("scp-9999") is None

        assert calls == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("retries", [0, 1, 3])
    async def test_exhausted_retries_make_retries_plus_one_attempts(self, retries):
        calls = 0
        sleep = SleepRecorder()

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(503)

        async with make_fetcher(handler, retries=retries, sleep=sleep) as fetcher:
            with pytest.raises(FetchError) as exc_info:
                await fetcher.fetch("scp-173")

        assert calls == retries + 1
        assert exc_info.value.attempts == retries + 1
        assert exc_info.value.identifier == "scp-173"
        assert "503" in exc_info.value.reason
        assert len(sleep.delays) == retries
        assert fetcher.limiter.in_flight == 0

    @pytest.mark.asyncio
    async def test_timeouts_are_retried(self):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls < 3:
                raise httpx.ReadTimeout("timed out", request=request)
            return httpx.Response(200, text="recovered")

        async with make_fetcher(handler, retries=2) as fetcher:
            content = await fetcher.fetch("scp-173")

        assert content is not None
        assert content.html == "recovered"
        assert calls == 3

    @pytest.mark.asyncio
    async def test_seeded_backoff_is_reproducible(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        recorded = []
        for _ in range(2):
            sleep = SleepRecorder()
            async with make_fetcher(handler, retries=3, seed=99, sleep=sleep) as fetcher:
                with pytest.raises(FetchError):
                    await fetcher.fetch("scp-173")
            recorded.append(sleep.delays)

        assert recorded[0] == recorded[1]
        assert len(recorded[0]) == 3

    @pytest.mark.asyncio
    async def test_never_exceeds_concurrency_limit(self):
        active = 0
        peak = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return httpx.Response(200, text="page")

        async with make_fetcher(handler, limit=3) as fetcher:
            results = await asyncio.gather(*(fetcher.fetch(f"scp-{n:03d}") for n in range(1, 21)))

        assert all(result is not None for result in results)
        assert peak <= 3
        assert fetcher.limiter.peak <= 3
        assert fetcher.limiter.acquired == 20
        assert fetcher.limiter.in_flight == 0

    @pytest.mark.asyncio
    async def test_limiter_override_per_call(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="page")

        phase_limiter = ConcurrencyLimiter(1)
        async with make_fetcher(handler) as fetcher:
            await fetcher.fetch("scp-173", limiter=phase_limiter)

        assert phase_limiter.acquired == 1
        assert fetcher.limiter.acquired == 0

    @pytest.mark.asyncio
    async def test_post_module_targets_connector(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = request.content.decode()
            return httpx.Response(200, json={"status": "ok", "body": "<ul></ul>"})

        async with make_fetcher(handler) as fetcher:
            response = await fetcher.post_module("acs-bar", {"page_id": "858310940"})

        assert response is not None
        assert seen["method"] == "POST"
        assert seen["path"] == "/ajax-module-connector.php"
        assert "page_id=858310940" in seen["body"]
