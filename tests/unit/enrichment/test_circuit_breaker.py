"""Tests for the per-domain circuit breaker registry."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from enrichment.services.circuit_breaker import CircuitBreakerRegistry
from tests.support import FakeClock


@pytest.fixture
def breakers(clock: FakeClock) -> CircuitBreakerRegistry:
    return CircuitBreakerRegistry(failure_threshold=3, cooldown_seconds=60.0, clock=clock)


class TestOpening:
    """Test how consecutive failures open a circuit."""

    def test_new_domain_is_closed(self, breakers: CircuitBreakerRegistry) -> None:
        assert breakers.is_open("weather") is False
        state = breakers.state("weather")
        assert state.consecutive_failures == 0
        assert state.last_failure_time is None

    def test_opens_immediately_after_third_failure(self, breakers: CircuitBreakerRegistry) -> None:
        breakers.record_failure("weather")
        breakers.record_failure("weather")
        assert breakers.is_open("weather") is False

        breakers.record_failure("weather")

        assert breakers.is_open("weather") is True
        assert breakers.state("weather").consecutive_failures == 3

    def test_success_resets_failure_streak(self, breakers: CircuitBreakerRegistry) -> None:
        breakers.record_failure("weather")
        breakers.record_failure("weather")
        breakers.record_success("weather")
        breakers.record_failure("weather")

        assert breakers.is_open("weather") is False
        assert breakers.state("weather").consecutive_failures == 1

    def test_success_closes_open_circuit(self, breakers: CircuitBreakerRegistry) -> None:
        for _ in range(3):
            breakers.record_failure("weather")

        breakers.record_success("weather")

        assert breakers.is_open("weather") is False
        assert breakers.state("weather").consecutive_failures == 0

    def test_domains_are_independent(self, breakers: CircuitBreakerRegistry) -> None:
        for _ in range(3):
            breakers.record_failure("weather")

        assert breakers.is_open("weather") is True
        assert breakers.is_open("wearable-sync") is False


class TestCooldown:
    """Test that an open circuit admits calls again after the cooldown."""

    @pytest.fixture
    def tripped(self, breakers: CircuitBreakerRegistry) -> CircuitBreakerRegistry:
        for _ in range(3):
            breakers.record_failure("weather")
        return breakers

    def test_stays_open_within_cooldown(
        self, tripped: CircuitBreakerRegistry, clock: FakeClock
    ) -> None:
        clock.advance(59.9)
        assert tripped.is_open("weather") is True

    def test_stays_open_at_exactly_cooldown(
        self, tripped: CircuitBreakerRegistry, clock: FakeClock
    ) -> None:
        clock.advance(60.0)
        assert tripped.is_open("weather") is True

    def test_cooldown_expiry_closes_and_resets_count(
        self, tripped: CircuitBreakerRegistry, clock: FakeClock
    ) -> None:
        clock.advance(60.5)

        assert tripped.is_open("weather") is False
        state = tripped.state("weather")
        assert state.is_open is False
        assert state.consecutive_failures == 0

    def test_failure_after_cooldown_needs_full_threshold_to_reopen(
        self, tripped: CircuitBreakerRegistry, clock: FakeClock
    ) -> None:
        clock.advance(61)
        assert tripped.is_open("weather") is False

        tripped.record_failure("weather")
        assert tripped.is_open("weather") is False

        tripped.record_failure("weather")
        tripped.record_failure("weather")
        assert tripped.is_open("weather") is True

    def test_failure_while_open_extends_cooldown(
        self, tripped: CircuitBreakerRegistry, clock: FakeClock
    ) -> None:
        clock.advance(50)
        tripped.record_failure("weather")
        clock.advance(20)

        assert tripped.is_open("weather") is True


class TestReporting:
    """Test state copies, snapshots and resets."""

    def test_state_returns_copy(self, breakers: CircuitBreakerRegistry) -> None:
        state = breakers.state("weather")
        state.consecutive_failures = 99

        assert breakers.state("weather").consecutive_failures == 0

    def test_snapshot_lists_known_domains(self, breakers: CircuitBreakerRegistry) -> None:
        breakers.record_failure("weather")
        breakers.record_success("wearable-sync")

        snapshot = breakers.snapshot()

        assert set(snapshot) == {"weather", "wearable-sync"}
        assert snapshot["weather"].consecutive_failures == 1

    def test_reset_clears_domain(self, breakers: CircuitBreakerRegistry) -> None:
        for _ in range(3):
            breakers.record_failure("weather")

        breakers.reset("weather")

        assert breakers.is_open("weather") is False
        assert breakers.state("weather").consecutive_failures == 0

    @pytest.mark.parametrize(
        "threshold,cooldown", [(0, 60.0), (3, 0.0), (3, -5.0)]
    )
    def test_invalid_settings_rejected(self, threshold: int, cooldown: float) -> None:
        with pytest.raises(ValueError):
            CircuitBreakerRegistry(failure_threshold=threshold, cooldown_seconds=cooldown)


class TestConcurrentAccess:
    """Test the registry under failures recorded from many threads."""

    def test_no_failure_lost_across_threads(self) -> None:
        breakers = CircuitBreakerRegistry(failure_threshold=3, cooldown_seconds=60.0)
        workers, rounds = 8, 250
        barrier = threading.Barrier(workers)

        def worker() -> None:
            barrier.wait()
            for _ in range(rounds):
                breakers.record_failure("weather")
                breakers.is_open("weather")

        with ThreadPoolExecutor(max_workers=workers) as pool:
            for future in [pool.submit(worker) for _ in range(workers)]:
                future.result()

        state = breakers.state("weather")
        assert state.consecutive_failures == workers * rounds
        assert state.is_open is True

    def test_domains_updated_concurrently_stay_separate(self) -> None:
        breakers = CircuitBreakerRegistry(failure_threshold=3, cooldown_seconds=60.0)
        domains = [f"domain-{n}" for n in range(6)]

        def worker(domain: str) -> None:
            for _ in range(100):
                breakers.record_failure(domain)
            breakers.record_success(domain)
            breakers.record_failure(domain)

        with ThreadPoolExecutor(max_workers=len(domains)) as pool:
            list(pool.map(worker, domains))

        snapshot = breakers.snapshot()
        assert set(snapshot) == set(domains)
        assert all(state.consecutive_failures == 1 for state in snapshot.values())
        assert not any(breakers.is_open(domain) for domain in domains)
