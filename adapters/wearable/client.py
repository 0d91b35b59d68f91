"""
HTTP client for wearable cloud data.

Fetches the latest summary for a linked device and maps the provider's
camelCase payload onto ``PhysiologicalReading``.
"""

from datetime import UTC, datetime
from typing import Any, Protocol

import httpx
import structlog
from pydantic import ValidationError

from enrichment.config import WearableProviderConfig
from enrichment.domain.models import PhysiologicalReading, WearableType

logger = structlog.get_logger(__name__)

# Provider field -> reading field
_FIELD_MAP: dict[str, str] = {
    "heartRate": "heart_rate",
    "restingHeartRate": "resting_heart_rate",
    "heartRateVariability": "heart_rate_variability",
    "spo2": "spo2",
    "breathingRate": "breathing_rate",
    "skinTemperature": "skin_temperature",
    "sleepHours": "sleep_hours",
    "sleepQuality": "sleep_quality",
    "sleepEfficiency": "sleep_efficiency",
    "steps": "steps",
    "activeMinutes": "active_minutes",
    "caloriesBurned": "calories_burned",
    "distance": "distance",
    "floors": "floors",
    "lastSyncedAt": "synced_at",
}


class WearableSyncError(Exception):
    """The wearable endpoint could not produce a reading."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class WearableSyncClient(Protocol):
    async def fetch_latest(self, device_type: WearableType) -> PhysiologicalReading:
        """Latest reading for the device; raises ``WearableSyncError`` on failure."""
        ...


def reading_from_payload(
    payload: dict[str, Any], device_type: WearableType
) -> PhysiologicalReading:
    """Map a provider payload onto a reading; unknown fields are dropped."""
    fields: dict[str, Any] = {
        target: payload[source]
        for source, target in _FIELD_MAP.items()
        if payload.get(source) is not None
    }
    fields.setdefault("synced_at", datetime.now(UTC))
    fields["source"] = device_type
    return PhysiologicalReading.model_validate(fields)


class HttpWearableClient:
    """Wearable data endpoint over httpx."""

    def __init__(
        self,
        config: WearableProviderConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or WearableProviderConfig()
        self._client = client or httpx.AsyncClient(timeout=self.config.request_timeout_seconds)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch_latest(self, device_type: WearableType) -> PhysiologicalReading:
        headers = {}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"

        try:
            response = await self._client.post(
                self.config.url, json={"device": device_type.value}, headers=headers
            )
        except httpx.HTTPError as e:
            raise WearableSyncError(f"wearable request failed: {e}") from e

        if response.status_code != 200:
            raise WearableSyncError(
                f"wearable endpoint returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise WearableSyncError("wearable endpoint returned invalid JSON") from e

        if not isinstance(payload, dict):
            raise WearableSyncError("wearable payload must be a JSON object")
        if payload.get("error"):
            raise WearableSyncError(str(payload["error"]), status_code=response.status_code)

        try:
            reading = reading_from_payload(payload, device_type)
        except ValidationError as e:
            raise WearableSyncError(f"malformed wearable payload: {e.error_count()} errors") from e

        logger.info("wearable_reading_fetched", device=device_type.value)
        return reading
