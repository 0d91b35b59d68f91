"""
Retry with exponential backoff and jitter.

Wraps a single async operation, reports every outcome to the circuit breaker
registry when a failure domain is given, and fast-fails while that domain's
circuit is open.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from pydantic import BaseModel, Field, model_validator

from enrichment.services.circuit_breaker import CircuitBreakerRegistry, CircuitOpenError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class RetryConfig(BaseModel):
    """Retry tuning for one call chain."""

    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    base_delay_seconds: float = Field(default=0.5, gt=0.0)
    max_delay_seconds: float = Field(default=8.0, gt=0.0)

    @model_validator(mode="after")
    def max_delay_not_below_base(self) -> "RetryConfig":
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        return self


class RetryExhaustedError(Exception):
    """All attempts failed; ``last_error`` is the final underlying failure."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"failed after {attempts} attempts: {last_error}")


def compute_backoff_delay(
    attempt: int, config: RetryConfig, rng: Callable[[], float] = random.random
) -> float:
    """
    Delay before the retry that follows ``attempt`` (0-based).

    ``base * 2**attempt`` plus up to one base delay of jitter, capped at
    ``max_delay_seconds``.
    """
    exponential = config.base_delay_seconds * (2**attempt)
    jitter = rng() * config.base_delay_seconds
    return min(config.max_delay_seconds, exponential + jitter)


class RetryPolicy:
    """
    Executes operations with bounded retries.

    Usage:
        policy = RetryPolicy(breakers)
        data = await policy.execute(fetch_weather, RetryConfig(max_retries=2), "weather")
    """

    def __init__(
        self,
        breakers: CircuitBreakerRegistry | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.breakers = breakers
        self._sleep = sleep
        self._rng = rng

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        config: RetryConfig | None = None,
        circuit_domain: str | None = None,
    ) -> T:
        config = config or RetryConfig()
        name = getattr(operation, "__name__", repr(operation))

        if self._circuit_open(circuit_domain):
            raise CircuitOpenError(circuit_domain or "")

        total_attempts = config.max_retries + 1
        attempt = 0

        while True:
            try:
                result = await operation()
            except Exception as e:
                self._report(circuit_domain, success=False)

                if attempt == total_attempts - 1:
                    logger.error(
                        "retry_exhausted",
                        operation=name,
                        attempts=total_attempts,
                        error=str(e),
                        domain=circuit_domain,
                    )
                    raise RetryExhaustedError(total_attempts, e) from e

                delay = compute_backoff_delay(attempt, config, self._rng)
                logger.warning(
                    "retry_scheduled",
                    operation=name,
                    attempt=attempt + 1,
                    max_attempts=total_attempts,
                    delay_seconds=round(delay, 3),
                    error=str(e),
                    domain=circuit_domain,
                )
                await self._sleep(delay)
                attempt += 1
                continue

            self._report(circuit_domain, success=True)
            if attempt > 0:
                logger.info(
                    "retry_succeeded",
                    operation=name,
                    attempt=attempt + 1,
                    max_attempts=total_attempts,
                )
            return result

    def _circuit_open(self, domain: str | None) -> bool:
        return bool(domain) and self.breakers is not None and self.breakers.is_open(domain)

    def _report(self, domain: str | None, success: bool) -> None:
        if not domain or self.breakers is None:
            return
        if success:
            self.breakers.record_success(domain)
        else:
            self.breakers.record_failure(domain)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    breakers: CircuitBreakerRegistry | None = None,
    circuit_domain: str | None = None,
) -> T:
    """Functional interface over ``RetryPolicy.execute``."""
    return await RetryPolicy(breakers).execute(operation, config, circuit_domain)
