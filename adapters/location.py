"""Location providers backed by coordinates the client session already holds."""

import structlog

from enrichment.domain.models import GeoPoint

logger = structlog.get_logger(__name__)


class FixedLocationProvider:
    """
    Reports the coordinates shared by the device for the current session.

    ``None`` models a device that denied location permission.
    """

    def __init__(self, location: GeoPoint | None = None) -> None:
        self._location = location

    def update(self, location: GeoPoint | None) -> None:
        self._location = location

    async def get_current_location(self) -> GeoPoint | None:
        if self._location is None:
            logger.debug("location_unavailable")
        return self._location
