"""
Circuit breaker registry for provider failure domains.

Features:
- One state per named domain ("weather", "wearable-sync", ...), created lazily
- Opens after a fixed number of consecutive failures
- Closes again once the cooldown has elapsed, without a half-open trial call
- Never raises: it only answers state queries and records outcomes
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, replace

import structlog

logger = structlog.get_logger(__name__)

WEATHER_DOMAIN = "weather"
WEARABLE_SYNC_DOMAIN = "wearable-sync"


class CircuitOpenError(Exception):
    """Raised when a call is rejected because its domain's circuit is open."""

    def __init__(self, domain: str, message: str = "Circuit is open") -> None:
        self.domain = domain
        self.message = message
        super().__init__(f"{domain}: {message}")


@dataclass
class CircuitState:
    """Failure bookkeeping for one domain."""

    domain: str
    consecutive_failures: int = 0
    last_failure_time: float | None = None
    is_open: bool = False


class CircuitBreakerRegistry:
    """
    Per-domain circuit breakers behind a single lock.

    States:
    - closed: calls pass, consecutive failures are counted
    - open: calls are rejected until the cooldown has elapsed

    When the cooldown expires the next ``is_open`` check resets the failure
    count to zero and lets calls through; the outcome of that first call
    drives the next transition.
    """

    def __init__(
        self,
        failure_threshold: int = 3,
        cooldown_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if cooldown_seconds <= 0:
            raise ValueError("cooldown_seconds must be positive")
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._states: dict[str, CircuitState] = {}
        self._lock = threading.Lock()

    def _get(self, domain: str) -> CircuitState:
        # Caller holds the lock.
        state = self._states.get(domain)
        if state is None:
            state = CircuitState(domain=domain)
            self._states[domain] = state
        return state

    def is_open(self, domain: str) -> bool:
        with self._lock:
            state = self._get(domain)
            if not state.is_open:
                return False

            last_failure = state.last_failure_time or 0.0
            if self._clock() - last_failure > self.cooldown_seconds:
                state.is_open = False
                state.consecutive_failures = 0
                logger.info("circuit_cooldown_elapsed", domain=domain)
                return False
            return True

    def record_success(self, domain: str) -> None:
        with self._lock:
            state = self._get(domain)
            if state.is_open or state.consecutive_failures:
                logger.info("circuit_closed", domain=domain)
            state.consecutive_failures = 0
            state.is_open = False

    def record_failure(self, domain: str) -> None:
        with self._lock:
            state = self._get(domain)
            state.consecutive_failures += 1
            state.last_failure_time = self._clock()

            if state.consecutive_failures >= self.failure_threshold:
                if not state.is_open:
                    logger.warning(
                        "circuit_opened",
                        domain=domain,
                        failures=state.consecutive_failures,
                        cooldown_seconds=self.cooldown_seconds,
                    )
                state.is_open = True

    def state(self, domain: str) -> CircuitState:
        """Return a copy of the domain's state (creating it if needed)."""
        with self._lock:
            return replace(self._get(domain))

    def snapshot(self) -> dict[str, CircuitState]:
        """Copies of every known domain's state, for health reporting."""
        with self._lock:
            return {name: replace(state) for name, state in self._states.items()}

    def reset(self, domain: str) -> None:
        with self._lock:
            self._states[domain] = CircuitState(domain=domain)
