"""
Core services for the application.

This package contains the resilience primitives (cache, circuit breaker,
retry), the resilient fetcher composing them, and the entry context
coordinator built on top.
"""

from .cache import CacheEntry, TTLCache
from .circuit_breaker import (
    WEARABLE_SYNC_DOMAIN,
    WEATHER_DOMAIN,
    CircuitBreakerRegistry,
    CircuitOpenError,
    CircuitState,
)
from .context_coordinator import (
    ContextAcquisitionCoordinator,
    EnvironmentalAcquisition,
    with_timeout,
)
from .providers import LocationProvider, WearableDataSource, WeatherProvider
from .resilient_fetch import ResilientFetcher
from .result import Result
from .retry import RetryConfig, RetryExhaustedError, RetryPolicy, with_retry

__all__ = [
    "CacheEntry",
    "TTLCache",
    "CircuitBreakerRegistry",
    "CircuitOpenError",
    "CircuitState",
    "WEATHER_DOMAIN",
    "WEARABLE_SYNC_DOMAIN",
    "RetryConfig",
    "RetryExhaustedError",
    "RetryPolicy",
    "with_retry",
    "ResilientFetcher",
    "Result",
    "LocationProvider",
    "WeatherProvider",
    "WearableDataSource",
    "ContextAcquisitionCoordinator",
    "EnvironmentalAcquisition",
    "with_timeout",
]
