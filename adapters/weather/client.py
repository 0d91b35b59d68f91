"""
HTTP weather/air-quality provider.

One POST of ``{"latitude": .., "longitude": ..}`` to a weather-context
endpoint that aggregates current conditions, air quality and season for the
point. Failures raise ``WeatherProviderError``; retries, caching and circuit
breaking are the resilient fetcher's job, not this client's.
"""

from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from enrichment.config import WeatherProviderConfig
from enrichment.domain.models import EnvironmentalData

logger = structlog.get_logger(__name__)


class WeatherProviderError(Exception):
    """The weather endpoint could not produce a usable payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class HttpWeatherProvider:
    """
    Weather provider over httpx.

    Usage:
        async with HttpWeatherProvider(config) as provider:
            data = await provider.fetch_weather(37.77, -122.41)
    """

    def __init__(
        self,
        config: WeatherProviderConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or WeatherProviderConfig()
        self._client = client
        self._owns_client = client is None
        self.logger = logger.bind(component="weather_provider")

    async def __aenter__(self) -> "HttpWeatherProvider":
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.request_timeout_seconds)
            self._owns_client = True
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    async def fetch_weather(self, latitude: float, longitude: float) -> EnvironmentalData:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.request_timeout_seconds)
            self._owns_client = True

        try:
            response = await self._client.post(
                self.config.url,
                json={"latitude": latitude, "longitude": longitude},
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            raise WeatherProviderError(f"weather request failed: {e}") from e

        if response.status_code != 200:
            raise WeatherProviderError(
                f"weather endpoint returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise WeatherProviderError("weather endpoint returned invalid JSON") from e

        if isinstance(payload, dict) and payload.get("error"):
            raise WeatherProviderError(str(payload["error"]), status_code=response.status_code)

        try:
            data = EnvironmentalData.model_validate(payload)
        except ValidationError as e:
            raise WeatherProviderError(
                f"malformed weather payload: {e.error_count()} errors"
            ) from e

        self.logger.info(
            "weather_fetched",
            condition=data.weather.condition,
            city=data.city,
        )
        return data
