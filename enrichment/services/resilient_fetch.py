"""
Resilient fetch: cache, circuit breaker and retry composed into one call.

This is the single choke point every external-data consumer goes through.
Whatever goes wrong with a provider, the caller gets ``None`` back and never
an exception.
"""

import time
from collections.abc import Awaitable, Callable, Hashable
from typing import TypeVar

import structlog

from enrichment.config import ResilienceConfig
from enrichment.observability import ApiCallStatus, log_api_call
from enrichment.services.cache import TTLCache
from enrichment.services.circuit_breaker import CircuitBreakerRegistry, CircuitOpenError
from enrichment.services.result import Result
from enrichment.services.retry import RetryConfig, RetryPolicy

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ResilientFetcher:
    """
    Get data for a key via a fetcher, respecting a TTL and a failure domain.

    Design principles:
    - Cache first: a fresh entry means no network call, no retry, no circuit check
    - Backpressure: an open circuit short-circuits before any work is done
    - Graceful degradation: failures become absence, never exceptions
    """

    def __init__(
        self,
        cache: TTLCache,
        breakers: CircuitBreakerRegistry,
        retry_policy: RetryPolicy | None = None,
        config: ResilienceConfig | None = None,
        log_api_calls: bool = True,
    ) -> None:
        self.cache = cache
        self.breakers = breakers
        self.retry_policy = retry_policy or RetryPolicy(breakers)
        self.config = config or ResilienceConfig()
        self.retry_config = RetryConfig(
            max_retries=self.config.fetch_max_retries,
            base_delay_seconds=self.config.fetch_base_delay_seconds,
            max_delay_seconds=self.config.fetch_max_delay_seconds,
        )
        self.log_api_calls = log_api_calls
        self.logger = logger.bind(component="resilient_fetcher")

    async def fetch_result(
        self,
        key: Hashable,
        fetcher: Callable[[], Awaitable[T]],
        ttl_seconds: float,
        circuit_domain: str | None = None,
    ) -> Result[T | None, Exception]:
        """Like ``cached_fetch`` but keeps the failure reason."""
        started = time.perf_counter()
        service = circuit_domain or str(key)

        if ttl_seconds <= 0:
            error = ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
            self.logger.error("fetch_rejected", key=key, domain=circuit_domain, error=str(error))
            self._observe(service, "error", started, key, error=str(error))
            return Result.err(error)

        cached = self.cache.get(key)
        if cached is not None:
            self._observe(service, "cached", started, key)
            return Result.ok(cached)

        if circuit_domain and self.breakers.is_open(circuit_domain):
            self.logger.warning("fetch_skipped_circuit_open", key=key, domain=circuit_domain)
            self._observe(service, "circuit_open", started, key)
            return Result.err(CircuitOpenError(circuit_domain))

        try:
            data = await self.retry_policy.execute(fetcher, self.retry_config, circuit_domain)
        except CircuitOpenError as e:
            # Another caller tripped the circuit between our check and the first attempt.
            self._observe(service, "circuit_open", started, key)
            return Result.err(e)
        except Exception as e:
            self.logger.error("fetch_failed", key=key, domain=circuit_domain, error=str(e))
            self._observe(service, "error", started, key, error=str(e))
            return Result.err(e)

        if data is not None:
            self.cache.set(key, data, ttl_seconds)
        self._observe(service, "success", started, key)
        return Result.ok(data)

    async def cached_fetch(
        self,
        key: Hashable,
        fetcher: Callable[[], Awaitable[T]],
        ttl_seconds: float,
        circuit_domain: str | None = None,
    ) -> T | None:
        """Return fresh data for ``key``, or None when it cannot be obtained."""
        result = await self.fetch_result(key, fetcher, ttl_seconds, circuit_domain)
        return result.unwrap_or(None)

    def _observe(
        self,
        service: str,
        status: ApiCallStatus,
        started: float,
        key: Hashable,
        error: str | None = None,
    ) -> None:
        if not self.log_api_calls:
            return
        log_api_call(
            service=service,
            status=status,
            latency_ms=(time.perf_counter() - started) * 1000,
            key=str(key),
            error=error,
        )
