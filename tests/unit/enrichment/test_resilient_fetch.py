"""Tests for the resilient fetcher: cache, circuit and retry composed."""

import pytest
from structlog.testing import capture_logs

from enrichment.config import ResilienceConfig
from enrichment.services.cache import TTLCache
from enrichment.services.circuit_breaker import CircuitBreakerRegistry, CircuitOpenError
from enrichment.services.resilient_fetch import ResilientFetcher
from enrichment.services.retry import RetryExhaustedError, RetryPolicy
from tests.support import FakeClock, RecordingSleep


class CountingFetcher:
    def __init__(self, result=None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.call_count = 0

    async def __call__(self):
        self.call_count += 1
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def breakers(clock: FakeClock) -> CircuitBreakerRegistry:
    return CircuitBreakerRegistry(failure_threshold=3, cooldown_seconds=60.0, clock=clock)


@pytest.fixture
def fetcher(
    clock: FakeClock, breakers: CircuitBreakerRegistry, no_sleep: RecordingSleep
) -> ResilientFetcher:
    return ResilientFetcher(
        cache=TTLCache(clock=clock),
        breakers=breakers,
        retry_policy=RetryPolicy(breakers, sleep=no_sleep),
        config=ResilienceConfig(fetch_max_retries=2),
    )


class TestCachedFetch:
    """Test cache, circuit and retry composed in one call."""

    async def test_fetches_and_caches(self, fetcher: ResilientFetcher) -> None:
        source = CountingFetcher(result={"condition": "Cloudy"})

        first = await fetcher.cached_fetch("weather_37.77_-122.41", source, 300, "weather")
        second = await fetcher.cached_fetch("weather_37.77_-122.41", source, 300, "weather")

        assert first == {"condition": "Cloudy"}
        assert second == first
        assert source.call_count == 1

    async def test_refetches_after_ttl(self, fetcher: ResilientFetcher, clock: FakeClock) -> None:
        source = CountingFetcher(result="data")

        await fetcher.cached_fetch("key", source, 300, "weather")
        clock.advance(300)
        await fetcher.cached_fetch("key", source, 300, "weather")

        assert source.call_count == 2

    async def test_none_result_not_cached(self, fetcher: ResilientFetcher) -> None:
        source = CountingFetcher(result=None)

        assert await fetcher.cached_fetch("key", source, 300) is None
        assert await fetcher.cached_fetch("key", source, 300) is None

        assert source.call_count == 2
        assert "key" not in fetcher.cache

    async def test_failure_returns_none_and_opens_circuit(
        self, fetcher: ResilientFetcher, breakers: CircuitBreakerRegistry
    ) -> None:
        source = CountingFetcher(error=ConnectionError("boom"))

        result = await fetcher.cached_fetch("key", source, 300, "weather")

        assert result is None
        # One attempt plus two retries, all counted against the domain
        assert source.call_count == 3
        assert breakers.is_open("weather") is True

    async def test_open_circuit_skips_fetcher(
        self, fetcher: ResilientFetcher, breakers: CircuitBreakerRegistry
    ) -> None:
        for _ in range(3):
            breakers.record_failure("weather")
        source = CountingFetcher(result="data")

        assert await fetcher.cached_fetch("key", source, 300, "weather") is None
        assert source.call_count == 0

    async def test_cache_hit_served_while_circuit_open(
        self, fetcher: ResilientFetcher, breakers: CircuitBreakerRegistry
    ) -> None:
        source = CountingFetcher(result="cached-data")
        await fetcher.cached_fetch("key", source, 300, "weather")
        for _ in range(3):
            breakers.record_failure("weather")

        assert await fetcher.cached_fetch("key", source, 300, "weather") == "cached-data"
        assert source.call_count == 1

    async def test_circuit_admits_calls_after_cooldown(
        self, fetcher: ResilientFetcher, breakers: CircuitBreakerRegistry, clock: FakeClock
    ) -> None:
        for _ in range(3):
            breakers.record_failure("weather")
        clock.advance(61)
        source = CountingFetcher(result="recovered")

        assert await fetcher.cached_fetch("key", source, 300, "weather") == "recovered"
        assert breakers.state("weather").consecutive_failures == 0

    async def test_without_domain_failures_never_trip_a_circuit(
        self, fetcher: ResilientFetcher, breakers: CircuitBreakerRegistry
    ) -> None:
        source = CountingFetcher(error=ConnectionError("boom"))

        for _ in range(3):
            assert await fetcher.cached_fetch("key", source, 300) is None

        assert breakers.snapshot() == {}


class TestFetchResult:
    """Test the failure reasons carried by fetch results."""

    async def test_error_carries_reason(self, fetcher: ResilientFetcher) -> None:
        result = await fetcher.fetch_result(
            "key", CountingFetcher(error=TimeoutError("slow")), 300, "weather"
        )

        assert result.is_err()
        error = result.unwrap_err()
        assert isinstance(error, RetryExhaustedError)
        assert isinstance(error.last_error, TimeoutError)

    async def test_open_circuit_reported_as_circuit_error(
        self, fetcher: ResilientFetcher, breakers: CircuitBreakerRegistry
    ) -> None:
        for _ in range(3):
            breakers.record_failure("weather")

        result = await fetcher.fetch_result("key", CountingFetcher(result=1), 300, "weather")

        assert isinstance(result.unwrap_err(), CircuitOpenError)

    @pytest.mark.parametrize("ttl", [0, -5.0])
    async def test_non_positive_ttl_rejected_before_fetching(
        self, fetcher: ResilientFetcher, breakers: CircuitBreakerRegistry, ttl: float
    ) -> None:
        source = CountingFetcher(result="data")

        result = await fetcher.fetch_result("key", source, ttl, "weather")

        assert isinstance(result.unwrap_err(), ValueError)
        assert await fetcher.cached_fetch("key", source, ttl, "weather") is None
        assert source.call_count == 0
        assert breakers.snapshot() == {}

    async def test_none_is_a_successful_result(self, fetcher: ResilientFetcher) -> None:
        result = await fetcher.fetch_result("key", CountingFetcher(result=None), 300)

        assert result.is_ok()
        assert result.unwrap() is None


class TestApiCallLogging:
    """Test one api_call record per fetch path."""

    async def test_each_path_logs_status(
        self, fetcher: ResilientFetcher, breakers: CircuitBreakerRegistry
    ) -> None:
        with capture_logs() as logs:
            await fetcher.cached_fetch("key", CountingFetcher(result="x"), 300, "weather")
            await fetcher.cached_fetch("key", CountingFetcher(result="x"), 300, "weather")
            await fetcher.cached_fetch(
                "other", CountingFetcher(error=ValueError("bad")), 300, "weather"
            )
            await fetcher.cached_fetch("third", CountingFetcher(result="x"), 300, "weather")

        statuses = [log["status"] for log in logs if log["event"] == "api_call"]
        assert statuses == ["success", "cached", "error", "circuit_open"]

    async def test_logging_can_be_disabled(
        self, clock: FakeClock, breakers: CircuitBreakerRegistry
    ) -> None:
        quiet = ResilientFetcher(TTLCache(clock=clock), breakers, log_api_calls=False)

        with capture_logs() as logs:
            await quiet.cached_fetch("key", CountingFetcher(result="x"), 300)

        assert not [log for log in logs if log["event"] == "api_call"]
