"""
Domain models for flare entry context.

These models represent the core business concepts and are framework-agnostic.
They use Pydantic for validation but could be swapped to dataclasses if needed.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Provider payloads arrive camelCased; snake_case names are accepted too.
PROVIDER_PAYLOAD_CONFIG = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class Season(str, Enum):
    """Meteorological season at the entry location (hemisphere-aware)."""

    SPRING = "spring"
    SUMMER = "summer"
    FALL = "fall"
    WINTER = "winter"


class WearableType(str, Enum):
    """Wearable integrations a user can link."""

    FITBIT = "fitbit"
    APPLE_HEALTH = "apple_health"
    GOOGLE_FIT = "google_fit"
    OURA = "oura"


class GeoPoint(BaseModel):
    """Device coordinates."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)


class LocationInfo(BaseModel):
    """Where the weather reading applies, as resolved by the provider."""

    model_config = PROVIDER_PAYLOAD_CONFIG

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    city: str | None = None
    region: str | None = None
    country: str | None = None


class WeatherConditions(BaseModel):
    model_config = PROVIDER_PAYLOAD_CONFIG

    condition: str
    temperature: float | None = Field(default=None, description="Degrees Fahrenheit")
    humidity: float | None = Field(default=None, ge=0.0, le=100.0)
    pressure: float | None = Field(default=None, description="inHg")
    wind_speed: float | None = Field(default=None, ge=0.0, description="mph")
    uv_index: float | None = Field(default=None, ge=0.0)


class AirQuality(BaseModel):
    model_config = PROVIDER_PAYLOAD_CONFIG

    aqi: int | None = Field(default=None, ge=0)
    pollen: float | None = Field(default=None, ge=0.0)
    pollutants: float | None = Field(default=None, ge=0.0)


class EnvironmentalData(BaseModel):
    """Weather and air-quality payload returned by the environmental provider."""

    model_config = PROVIDER_PAYLOAD_CONFIG

    location: LocationInfo | None = None
    weather: WeatherConditions
    air_quality: AirQuality | None = None
    season: Season | None = None
    captured_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def city(self) -> str | None:
        return self.location.city if self.location else None


class PhysiologicalReading(BaseModel):
    """
    Most recent wearable reading attached to an entry.

    Versioned, named optional fields instead of an open-ended mapping: a
    provider that does not report a metric simply leaves it unset.
    """

    model_config = ConfigDict(frozen=True)

    schema_version: Literal[1] = 1

    # Core vitals
    heart_rate: float | None = Field(default=None, gt=0.0)
    resting_heart_rate: float | None = Field(default=None, gt=0.0)
    heart_rate_variability: float | None = Field(default=None, ge=0.0)
    spo2: float | None = Field(default=None, ge=0.0, le=100.0)
    breathing_rate: float | None = Field(default=None, ge=0.0)
    skin_temperature: float | None = None

    # Sleep
    sleep_hours: float | None = Field(default=None, ge=0.0, le=24.0)
    sleep_quality: str | None = None
    sleep_efficiency: float | None = Field(default=None, ge=0.0, le=100.0)

    # Activity
    steps: int | None = Field(default=None, ge=0)
    active_minutes: int | None = Field(default=None, ge=0)
    calories_burned: float | None = Field(default=None, ge=0.0)
    distance: float | None = Field(default=None, ge=0.0)
    floors: int | None = Field(default=None, ge=0)

    # Metadata
    synced_at: datetime | None = None
    source: WearableType | None = None


class WearableConnection(BaseModel):
    """One entry of the connection registry."""

    type: WearableType
    connected: bool = False
    last_sync: datetime | None = None


class EntryContext(BaseModel):
    """
    Context attached to a single flare entry.

    Every field is independently optional; an absent field means the data
    could not be acquired in time, never that the entry failed.
    """

    model_config = ConfigDict(frozen=True)

    environmental_data: EnvironmentalData | None = None
    physiological_data: PhysiologicalReading | None = None
    latitude: float | None = None
    longitude: float | None = None
    city: str | None = None

    @property
    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.environmental_data,
                self.physiological_data,
                self.latitude,
                self.longitude,
                self.city,
            )
        )
