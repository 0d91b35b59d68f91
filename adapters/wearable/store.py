"""
Local wearable state: the connection registry and the last-known reading.

Implements the ``WearableDataSource`` protocol. A sync asks the cloud client
for a fresh reading and, on success, replaces the cached one; a failed sync
leaves the previous reading in place.
"""

import asyncio
from collections.abc import Sequence
from datetime import UTC, datetime

import structlog

from adapters.wearable.client import WearableSyncClient, WearableSyncError
from enrichment.domain.models import PhysiologicalReading, WearableConnection, WearableType

logger = structlog.get_logger(__name__)


class WearableDataStore:
    def __init__(
        self,
        client: WearableSyncClient,
        connections: Sequence[WearableConnection] = (),
        reading: PhysiologicalReading | None = None,
    ) -> None:
        self.client = client
        self._connections: dict[WearableType, WearableConnection] = {
            c.type: c for c in connections
        }
        self._reading = reading
        self._sync_lock = asyncio.Lock()
        self.logger = logger.bind(component="wearable_store")

    @property
    def connections(self) -> Sequence[WearableConnection]:
        return list(self._connections.values())

    def connect(self, device_type: WearableType) -> None:
        current = self._connections.get(device_type)
        last_sync = current.last_sync if current else None
        self._connections[device_type] = WearableConnection(
            type=device_type, connected=True, last_sync=last_sync
        )
        self.logger.info("wearable_connected", device=device_type.value)

    def disconnect(self, device_type: WearableType) -> None:
        if device_type in self._connections:
            self._connections[device_type] = WearableConnection(type=device_type, connected=False)
            self.logger.info("wearable_disconnected", device=device_type.value)

    async def sync_wearable_data(self, device_type: WearableType) -> PhysiologicalReading | None:
        connection = self._connections.get(device_type)
        if connection is None or not connection.connected:
            raise WearableSyncError(f"{device_type.value} is not connected")

        # Serialize syncs so an older response never overwrites a newer one.
        async with self._sync_lock:
            reading = await self.client.fetch_latest(device_type)
            self._reading = reading
            self._connections[device_type] = WearableConnection(
                type=device_type, connected=True, last_sync=datetime.now(UTC)
            )

        self.logger.info("wearable_synced", device=device_type.value)
        return reading

    def get_data_for_entry(self) -> PhysiologicalReading | None:
        return self._reading
