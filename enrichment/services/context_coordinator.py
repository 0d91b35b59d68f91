"""
Entry context acquisition for a single logging action.

Acquires environmental data (location, then weather) and physiological data
(wearable reading, synced if stale) concurrently. Every external step is
time-boxed, so the whole call returns within a small constant bound no
matter how the providers behave, and it never raises.
"""

import asyncio
import math
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TypeVar

import structlog

from enrichment.config import ContextTimeoutsConfig, ResilienceConfig
from enrichment.domain.models import (
    EntryContext,
    EnvironmentalData,
    PhysiologicalReading,
    WearableConnection,
)
from enrichment.services.circuit_breaker import WEARABLE_SYNC_DOMAIN, WEATHER_DOMAIN
from enrichment.services.providers import LocationProvider, WearableDataSource, WeatherProvider
from enrichment.services.resilient_fetch import ResilientFetcher

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Operations abandoned by with_timeout keep running; hold a reference until they finish.
_detached_tasks: set[asyncio.Task] = set()


def _finish_detached(task: asyncio.Task) -> None:
    _detached_tasks.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.debug("detached_operation_failed", error=str(task.exception()))


async def with_timeout(
    operation: Awaitable[T], seconds: float, label: str = "operation"
) -> T | None:
    """
    Race ``operation`` against a deadline.

    Returns the operation's result, or None if the deadline fires first or the
    operation fails. A timed-out operation is not cancelled; it runs on in the
    background and its result is discarded.
    """
    task = asyncio.ensure_future(operation)
    try:
        done, _ = await asyncio.wait({task}, timeout=seconds)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if not done:
        logger.warning("operation_timed_out", operation=label, timeout_seconds=seconds)
        _detached_tasks.add(task)
        task.add_done_callback(_finish_detached)
        return None

    if task.cancelled():
        logger.warning("operation_cancelled", operation=label)
        return None

    error = task.exception()
    if error is not None:
        logger.warning("operation_failed", operation=label, error=str(error))
        return None
    return task.result()


def _grid_coordinate(value: float) -> str:
    # Half-way values round toward +inf, and whole numbers print without ".0".
    rounded = math.floor(value * 100 + 0.5) / 100
    if rounded.is_integer():
        return str(int(rounded))
    return repr(rounded)


def weather_cache_key(latitude: float, longitude: float) -> str:
    """Coordinates rounded to a ~1km grid so nearby entries share a lookup."""
    return f"weather_{_grid_coordinate(latitude)}_{_grid_coordinate(longitude)}"


@dataclass(frozen=True)
class EnvironmentalAcquisition:
    """Output of the environmental path."""

    environmental_data: EnvironmentalData | None = None
    latitude: float | None = None
    longitude: float | None = None
    city: str | None = None


class ContextAcquisitionCoordinator:
    """
    Produces an ``EntryContext`` for one logging action.

    Design principles:
    - Best-effort: any subset of fields may be absent, the call never fails
    - Bounded latency: every provider step has its own deadline
    - Independent paths: environmental and physiological data are acquired
      concurrently and neither waits on the other
    """

    def __init__(
        self,
        location_provider: LocationProvider,
        weather_provider: WeatherProvider,
        wearable_source: WearableDataSource,
        fetcher: ResilientFetcher,
        timeouts: ContextTimeoutsConfig | None = None,
        resilience: ResilienceConfig | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self.location_provider = location_provider
        self.weather_provider = weather_provider
        self.wearable_source = wearable_source
        self.fetcher = fetcher
        self.timeouts = timeouts or ContextTimeoutsConfig()
        self.resilience = resilience or fetcher.config
        self._clock = clock
        self.logger = logger.bind(component="context_coordinator")

    @property
    def has_wearable_connected(self) -> bool:
        return self._connected_device() is not None

    def _connected_device(self) -> WearableConnection | None:
        return next((c for c in self.wearable_source.connections if c.connected), None)

    async def acquire_environmental(self) -> EnvironmentalAcquisition:
        """Location, then weather for that location. Never raises."""
        try:
            location = await with_timeout(
                self.location_provider.get_current_location(),
                self.timeouts.location_timeout_seconds,
                label="location",
            )
            if location is None:
                return EnvironmentalAcquisition()

            latitude, longitude = location.latitude, location.longitude

            async def fetch_weather() -> EnvironmentalData:
                return await self.weather_provider.fetch_weather(latitude, longitude)

            weather = await with_timeout(
                self.fetcher.cached_fetch(
                    weather_cache_key(latitude, longitude),
                    fetch_weather,
                    self.resilience.weather_ttl_seconds,
                    WEATHER_DOMAIN,
                ),
                self.timeouts.weather_timeout_seconds,
                label="weather",
            )
            return EnvironmentalAcquisition(
                environmental_data=weather,
                latitude=latitude,
                longitude=longitude,
                city=weather.city if weather is not None else None,
            )
        except Exception as e:
            self.logger.exception("environmental_acquisition_failed", error=str(e))
            return EnvironmentalAcquisition()

    def _is_fresh(self, reading: PhysiologicalReading | None) -> bool:
        if reading is None or reading.synced_at is None:
            return False
        synced_at = reading.synced_at
        if synced_at.tzinfo is None:
            synced_at = synced_at.replace(tzinfo=UTC)
        age = (self._clock() - synced_at).total_seconds()
        return age < self.timeouts.wearable_freshness_seconds

    async def acquire_physiological(self) -> PhysiologicalReading | None:
        """Wearable reading, syncing first when the cached one is stale. Never raises."""
        try:
            device = self._connected_device()
            if device is None:
                return None

            cached = self.wearable_source.get_data_for_entry()
            if self._is_fresh(cached):
                return cached

            device_type = device.type

            async def sync_wearable() -> PhysiologicalReading | None:
                return await self.wearable_source.sync_wearable_data(device_type)

            await with_timeout(
                self.fetcher.cached_fetch(
                    f"wearable_sync_{device_type.value}",
                    sync_wearable,
                    self.resilience.wearable_sync_ttl_seconds,
                    WEARABLE_SYNC_DOMAIN,
                ),
                self.timeouts.effective_wearable_sync_timeout_seconds,
                label="wearable_sync",
            )
            # Whatever the sync outcome, the last-known reading is still useful.
            return self.wearable_source.get_data_for_entry()
        except Exception as e:
            self.logger.exception("physiological_acquisition_failed", error=str(e))
            return None

    def _last_known_reading(self) -> PhysiologicalReading | None:
        """Cached reading for a connected device, without syncing. Never raises."""
        try:
            if self._connected_device() is None:
                return None
            return self.wearable_source.get_data_for_entry()
        except Exception as e:
            self.logger.warning("last_known_reading_unavailable", error=str(e))
            return None

    async def get_entry_context(self) -> EntryContext:
        """Acquire both paths concurrently and merge whatever arrived in time."""
        start_time = time.perf_counter()
        environmental = EnvironmentalAcquisition()
        physiological: PhysiologicalReading | None = None

        try:
            async with asyncio.TaskGroup() as task_group:
                env_task = task_group.create_task(self.acquire_environmental())
                physio_task = task_group.create_task(
                    with_timeout(
                        self.acquire_physiological(),
                        self.timeouts.physiological_timeout_seconds,
                        label="physiological",
                    )
                )
            environmental = env_task.result()
            physiological = physio_task.result()
        except Exception as e:
            self.logger.exception("entry_context_acquisition_failed", error=str(e))

        if physiological is None:
            # The overall deadline can fire while a sync is still running.
            physiological = self._last_known_reading()

        context = EntryContext(
            environmental_data=environmental.environmental_data,
            physiological_data=physiological,
            latitude=environmental.latitude,
            longitude=environmental.longitude,
            city=environmental.city,
        )

        self.logger.info(
            "entry_context_acquired",
            has_environmental=context.environmental_data is not None,
            has_physiological=context.physiological_data is not None,
            has_location=context.latitude is not None,
            duration_seconds=round(time.perf_counter() - start_time, 3),
        )
        return context
