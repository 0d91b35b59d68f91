"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Secure defaults (no API keys in code)
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

# Load environment variables from .env file
load_dotenv()


class ResilienceConfig(BaseModel):
    """Cache, circuit breaker and retry tuning shared by every provider call."""

    circuit_failure_threshold: int = Field(
        default=3, gt=0, description="Consecutive failures before a domain's circuit opens"
    )
    circuit_cooldown_seconds: float = Field(
        default=60.0, gt=0.0, description="Time an open circuit waits before admitting a call"
    )

    # Retries performed by the resilient fetcher
    fetch_max_retries: int = Field(default=2, ge=0, description="Retries after the first attempt")
    fetch_base_delay_seconds: float = Field(
        default=0.3, gt=0.0, description="Base delay for exponential backoff"
    )
    fetch_max_delay_seconds: float = Field(
        default=8.0, gt=0.0, description="Upper bound for a single backoff delay"
    )

    # Cache lifetimes
    weather_ttl_seconds: float = Field(
        default=300.0, gt=0.0, description="How long a weather lookup is reused"
    )
    wearable_sync_ttl_seconds: float = Field(
        default=300.0, gt=0.0, description="How long a wearable sync result is reused"
    )

    @model_validator(mode="after")
    def max_delay_not_below_base(self) -> "ResilienceConfig":
        if self.fetch_max_delay_seconds < self.fetch_base_delay_seconds:
            raise ValueError("fetch_max_delay_seconds must be >= fetch_base_delay_seconds")
        return self


class ContextTimeoutsConfig(BaseModel):
    """Deadlines for each step of entry context acquisition."""

    location_timeout_seconds: float = Field(default=2.5, gt=0.0)
    weather_timeout_seconds: float = Field(default=3.5, gt=0.0)
    wearable_sync_timeout_seconds: float = Field(
        default=5.0, gt=0.0, description="Sync deadline on regular platforms"
    )
    constrained_wearable_sync_timeout_seconds: float = Field(
        default=10.0, gt=0.0, description="Sync deadline on resource-constrained platforms"
    )
    physiological_timeout_seconds: float = Field(
        default=8.0, gt=0.0, description="Overall budget for the physiological path"
    )
    wearable_freshness_seconds: float = Field(
        default=300.0, gt=0.0, description="Cached readings newer than this skip the sync"
    )
    resource_constrained_platform: bool = Field(
        default=False, description="Running on a mobile/native host with slow radios"
    )

    @property
    def effective_wearable_sync_timeout_seconds(self) -> float:
        if self.resource_constrained_platform:
            return self.constrained_wearable_sync_timeout_seconds
        return self.wearable_sync_timeout_seconds


class WeatherProviderConfig(BaseModel):
    """Weather/air-quality provider endpoint."""

    url: str = Field(
        default="http://localhost:54321/functions/v1/get-weather",
        description="Endpoint accepting a JSON body of latitude/longitude",
    )
    api_key: str | None = Field(default=None, description="Bearer token for the endpoint")
    request_timeout_seconds: float = Field(default=10.0, gt=0.0)

    @field_validator("url")
    def validate_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError("weather provider url must start with http:// or https://")
        return v


class WearableProviderConfig(BaseModel):
    """Wearable data endpoint used by the sync client."""

    url: str = Field(default="http://localhost:54321/functions/v1/fitbit-data")
    api_key: str | None = Field(default=None)
    request_timeout_seconds: float = Field(default=15.0, gt=0.0)

    @field_validator("url")
    def validate_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError("wearable provider url must start with http:// or https://")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")
    log_api_calls: bool = Field(default=True, description="Emit one record per provider call")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Component configs
    resilience: ResilienceConfig = Field(default_factory=ResilienceConfig)
    timeouts: ContextTimeoutsConfig = Field(default_factory=ContextTimeoutsConfig)
    weather: WeatherProviderConfig = Field(default_factory=WeatherProviderConfig)
    wearable: WearableProviderConfig = Field(default_factory=WearableProviderConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self

    @model_validator(mode="after")
    def environmental_path_within_budget(self) -> "AppConfig":
        """The environmental path must finish inside the physiological budget."""
        env_budget = (
            self.timeouts.location_timeout_seconds + self.timeouts.weather_timeout_seconds
        )
        if env_budget > self.timeouts.physiological_timeout_seconds:
            raise ValueError(
                "location + weather timeouts must not exceed the physiological budget"
            )
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _parse_bool(val: str | None, default: bool) -> bool:
        if val is None:
            return default
        return val.strip().lower() in {"1", "true", "yes", "on"}

    # Detect environment
    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    resilience_config = ResilienceConfig(
        circuit_failure_threshold=int(os.getenv("CIRCUIT_FAILURE_THRESHOLD", "3")),
        circuit_cooldown_seconds=float(os.getenv("CIRCUIT_COOLDOWN_SECONDS", "60.0")),
        fetch_max_retries=int(os.getenv("FETCH_MAX_RETRIES", "2")),
        fetch_base_delay_seconds=float(os.getenv("FETCH_BASE_DELAY_SECONDS", "0.3")),
        weather_ttl_seconds=float(os.getenv("WEATHER_TTL_SECONDS", "300.0")),
    )

    timeouts_config = ContextTimeoutsConfig(
        physiological_timeout_seconds=float(os.getenv("PHYSIOLOGICAL_TIMEOUT_SECONDS", "8.0")),
        resource_constrained_platform=_parse_bool(
            os.getenv("RESOURCE_CONSTRAINED_PLATFORM"), False
        ),
    )

    weather_config = WeatherProviderConfig(
        url=os.getenv("WEATHER_API_URL", "http://localhost:54321/functions/v1/get-weather"),
        api_key=os.getenv("WEATHER_API_KEY") or None,
    )

    wearable_config = WearableProviderConfig(
        url=os.getenv("WEARABLE_API_URL", "http://localhost:54321/functions/v1/fitbit-data"),
        api_key=os.getenv("WEARABLE_API_KEY") or None,
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
        log_api_calls=_parse_bool(os.getenv("LOG_API_CALLS"), True),
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        resilience=resilience_config,
        timeouts=timeouts_config,
        weather=weather_config,
        wearable=wearable_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def reset_config_cache() -> None:
    """Drop the cached configuration so the next get_config() re-reads the environment."""
    get_config.cache_clear()


# Configuration validation and helpers
def validate_config() -> None:
    """Validate configuration at startup."""
    try:
        config = get_config()
        print(f"✅ Configuration loaded for {config.environment} environment")

        if config.weather.api_key:
            print("✅ Weather provider key configured")

        if config.wearable.api_key:
            print("✅ Wearable provider key configured")

    except Exception as e:
        print(f"❌ Configuration validation failed: {e}")
        raise


# Development helpers
def print_config_summary() -> None:
    """Print configuration summary for debugging."""
    config = get_config()

    print("\n🔧 CONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug Mode: {config.debug}")
    print(f"Log Level: {config.logging.level}")

    print("\n🛡️ RESILIENCE")
    print(f"Circuit Threshold: {config.resilience.circuit_failure_threshold} failures")
    print(f"Circuit Cooldown: {config.resilience.circuit_cooldown_seconds}s")
    print(f"Fetch Retries: {config.resilience.fetch_max_retries}")
    print(f"Weather TTL: {config.resilience.weather_ttl_seconds}s")

    print("\n⏱️ CONTEXT DEADLINES")
    print(f"Location: {config.timeouts.location_timeout_seconds}s")
    print(f"Weather: {config.timeouts.weather_timeout_seconds}s")
    print(f"Wearable Sync: {config.timeouts.effective_wearable_sync_timeout_seconds}s")
    print(f"Physiological Budget: {config.timeouts.physiological_timeout_seconds}s")

    print("\n🌐 PROVIDERS")
    print(f"Weather: {config.weather.url}")
    print(f"Wearable: {config.wearable.url}")


if __name__ == "__main__":
    # Test configuration loading
    validate_config()
    print_config_summary()
