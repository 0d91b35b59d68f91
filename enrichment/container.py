"""
Dependency root for context enrichment.

Builds fresh cache, circuit breaker registry, retry policy and fetcher
instances for each coordinator so nothing is shared through module globals.
Applications build one coordinator at startup and reuse it; tests build one
per test case.
"""

from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from adapters.weather.client import HttpWeatherProvider
from adapters.wearable.client import HttpWearableClient
from adapters.wearable.store import WearableDataStore
from enrichment.config import AppConfig, get_config
from enrichment.domain.models import PhysiologicalReading, WearableConnection
from enrichment.services.cache import TTLCache
from enrichment.services.circuit_breaker import CircuitBreakerRegistry
from enrichment.services.context_coordinator import ContextAcquisitionCoordinator
from enrichment.services.providers import LocationProvider, WearableDataSource, WeatherProvider
from enrichment.services.resilient_fetch import ResilientFetcher
from enrichment.services.retry import RetryPolicy

logger = structlog.get_logger(__name__)


@dataclass
class HttpCollaborators:
    """HTTP-backed providers built from the provider config sections."""

    weather: HttpWeatherProvider
    wearable_client: HttpWearableClient
    wearable_store: WearableDataStore

    async def aclose(self) -> None:
        await self.weather.aclose()
        await self.wearable_client.aclose()


def build_http_collaborators(
    config: AppConfig | None = None,
    connections: Sequence[WearableConnection] = (),
    reading: PhysiologicalReading | None = None,
) -> HttpCollaborators:
    """Weather provider and wearable store talking to the configured endpoints."""
    config = config or get_config()
    wearable_client = HttpWearableClient(config.wearable)
    return HttpCollaborators(
        weather=HttpWeatherProvider(config.weather),
        wearable_client=wearable_client,
        wearable_store=WearableDataStore(wearable_client, connections, reading),
    )


def build_resilient_fetcher(config: AppConfig | None = None) -> ResilientFetcher:
    config = config or get_config()
    breakers = CircuitBreakerRegistry(
        failure_threshold=config.resilience.circuit_failure_threshold,
        cooldown_seconds=config.resilience.circuit_cooldown_seconds,
    )
    return ResilientFetcher(
        cache=TTLCache(),
        breakers=breakers,
        retry_policy=RetryPolicy(breakers),
        config=config.resilience,
        log_api_calls=config.logging.log_api_calls,
    )


def build_context_coordinator(
    location_provider: LocationProvider,
    weather_provider: WeatherProvider,
    wearable_source: WearableDataSource,
    config: AppConfig | None = None,
) -> ContextAcquisitionCoordinator:
    """Wire a coordinator from configuration and the application's collaborators."""
    config = config or get_config()
    coordinator = ContextAcquisitionCoordinator(
        location_provider=location_provider,
        weather_provider=weather_provider,
        wearable_source=wearable_source,
        fetcher=build_resilient_fetcher(config),
        timeouts=config.timeouts,
        resilience=config.resilience,
    )
    logger.info(
        "context_coordinator_built",
        environment=config.environment,
        physiological_budget_seconds=config.timeouts.physiological_timeout_seconds,
    )
    return coordinator
