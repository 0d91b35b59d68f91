"""
Protocols for the external collaborators context acquisition depends on.

Adapters satisfy these structurally; nothing here inherits from them.
Concrete implementations live in ``adapters/``.
"""

from collections.abc import Sequence
from typing import Protocol

from enrichment.domain.models import (
    EnvironmentalData,
    GeoPoint,
    PhysiologicalReading,
    WearableConnection,
    WearableType,
)


class LocationProvider(Protocol):
    async def get_current_location(self) -> GeoPoint | None:
        """Current device position, or None if permission is denied or unavailable."""
        ...


class WeatherProvider(Protocol):
    async def fetch_weather(self, latitude: float, longitude: float) -> EnvironmentalData:
        """
        One call to the weather/air-quality provider.

        Raises on any failure; callers go through the resilient fetcher which
        turns failures into absence.
        """
        ...


class WearableDataSource(Protocol):
    """Wearable integrations plus the locally cached last reading."""

    @property
    def connections(self) -> Sequence[WearableConnection]: ...

    async def sync_wearable_data(self, device_type: WearableType) -> PhysiologicalReading | None:
        """Pull fresh data from the device's cloud and update the cached reading."""
        ...

    def get_data_for_entry(self) -> PhysiologicalReading | None:
        """Most recent cached reading, without any network call."""
        ...
