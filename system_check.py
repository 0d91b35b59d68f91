"""
Complete system check of the entry context pipeline.

This script checks:
1. Configuration loading and validation
2. Context acquisition with healthy providers
3. Circuit breaking when the weather provider keeps failing
4. Bounded latency when providers hang
5. Logging an entry with no location and no wearable

Run with: uv run python system_check.py
"""

import asyncio
import time
from datetime import UTC, datetime

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from adapters.location import FixedLocationProvider
from adapters.wearable.store import WearableDataStore
from enrichment.config import (
    AppConfig,
    ContextTimeoutsConfig,
    LoggingConfig,
    ResilienceConfig,
    get_config,
    print_config_summary,
    validate_config,
)
from enrichment.container import build_context_coordinator
from enrichment.domain.models import (
    EntryContext,
    EnvironmentalData,
    GeoPoint,
    LocationInfo,
    PhysiologicalReading,
    WearableConnection,
    WearableType,
    WeatherConditions,
)
from enrichment.observability import configure_logging
from enrichment.services.circuit_breaker import WEATHER_DOMAIN

console = Console()


class SimulatedWeatherProvider:
    """Weather provider that behaves according to a scenario."""

    def __init__(self, scenario: str = "normal") -> None:
        self.scenario = scenario
        self.call_count = 0

    async def fetch_weather(self, latitude: float, longitude: float) -> EnvironmentalData:
        self.call_count += 1
        await asyncio.sleep(0.05)

        if self.scenario == "failing":
            raise ConnectionError("weather provider unavailable")
        if self.scenario == "hanging":
            await asyncio.Event().wait()

        return EnvironmentalData(
            location=LocationInfo(latitude=latitude, longitude=longitude, city="San Francisco"),
            weather=WeatherConditions(condition="Cloudy", temperature=61, humidity=72),
        )


class SimulatedWearableClient:
    """Wearable cloud client that behaves according to a scenario."""

    def __init__(self, scenario: str = "normal") -> None:
        self.scenario = scenario

    async def fetch_latest(self, device_type: WearableType) -> PhysiologicalReading:
        await asyncio.sleep(0.05)
        if self.scenario == "hanging":
            await asyncio.Event().wait()
        return PhysiologicalReading(
            heart_rate=72,
            heart_rate_variability=41,
            sleep_hours=6.5,
            steps=5400,
            synced_at=datetime.now(UTC),
            source=device_type,
        )


def _check_config() -> AppConfig:
    """Short deadlines so the hanging scenarios finish quickly."""
    return AppConfig(
        environment="development",
        debug=True,
        resilience=ResilienceConfig(fetch_base_delay_seconds=0.05),
        timeouts=ContextTimeoutsConfig(
            location_timeout_seconds=0.5,
            weather_timeout_seconds=1.0,
            wearable_sync_timeout_seconds=1.0,
            physiological_timeout_seconds=2.0,
        ),
        logging=LoggingConfig(level="WARNING", format="console"),
    )


def _context_table(title: str, context: EntryContext, duration: float) -> Table:
    table = Table(title=title)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")

    env = context.environmental_data
    physio = context.physiological_data
    table.add_row("Weather", env.weather.condition if env else "—")
    table.add_row("City", context.city or "—")
    table.add_row("Latitude", f"{context.latitude}" if context.latitude is not None else "—")
    table.add_row("Longitude", f"{context.longitude}" if context.longitude is not None else "—")
    table.add_row("Heart Rate", f"{physio.heart_rate}" if physio and physio.heart_rate else "—")
    table.add_row("Duration", f"{duration:.2f}s")
    return table


async def check_configuration() -> bool:
    """Check configuration loading and validation."""

    console.print(Panel("🔧 Checking Configuration", style="blue"))

    try:
        validate_config()
        get_config()
        print_config_summary()
        console.print("✅ Configuration loaded successfully", style="green")
        return True

    except Exception as e:
        console.print(f"❌ Configuration check failed: {e}", style="red")
        return False


async def check_healthy_providers() -> bool:
    """Every provider answers: all fields present."""

    console.print(Panel("🌤️ Checking Healthy Providers", style="blue"))

    store = WearableDataStore(
        SimulatedWearableClient(),
        connections=[WearableConnection(type=WearableType.FITBIT, connected=True)],
    )
    coordinator = build_context_coordinator(
        FixedLocationProvider(GeoPoint(latitude=37.77, longitude=-122.41)),
        SimulatedWeatherProvider(),
        store,
        config=_check_config(),
    )

    start = time.perf_counter()
    context = await coordinator.get_entry_context()
    console.print(_context_table("Entry Context", context, time.perf_counter() - start))

    if context.environmental_data is None or context.physiological_data is None:
        console.print("❌ Expected both environmental and physiological data", style="red")
        return False
    console.print("✅ Full context acquired", style="green")
    return True


async def check_circuit_breaking() -> bool:
    """A failing weather provider trips its circuit and stops being called."""

    console.print(Panel("🛡️ Checking Circuit Breaking", style="blue"))

    weather = SimulatedWeatherProvider("failing")
    coordinator = build_context_coordinator(
        FixedLocationProvider(GeoPoint(latitude=37.77, longitude=-122.41)),
        weather,
        WearableDataStore(SimulatedWearableClient()),
        config=_check_config(),
    )

    first = await coordinator.get_entry_context()
    calls_after_first = weather.call_count
    second = await coordinator.get_entry_context()

    breaker_open = coordinator.fetcher.breakers.is_open(WEATHER_DOMAIN)
    console.print(
        f"Provider calls: {calls_after_first} on first entry, "
        f"{weather.call_count - calls_after_first} on second",
        style="yellow",
    )

    if first.environmental_data is not None or second.environmental_data is not None:
        console.print("❌ Failing provider should yield no weather", style="red")
        return False
    if not breaker_open or weather.call_count != calls_after_first:
        console.print("❌ Circuit did not stop calls to the failing provider", style="red")
        return False
    console.print("✅ Circuit opened; second entry did not touch the provider", style="green")
    return True


async def check_bounded_latency() -> bool:
    """Hanging providers never hold the entry past its budget."""

    console.print(Panel("⏱️ Checking Bounded Latency", style="blue"))

    config = _check_config()
    store = WearableDataStore(
        SimulatedWearableClient("hanging"),
        connections=[WearableConnection(type=WearableType.FITBIT, connected=True)],
    )
    coordinator = build_context_coordinator(
        FixedLocationProvider(GeoPoint(latitude=37.77, longitude=-122.41)),
        SimulatedWeatherProvider("hanging"),
        store,
        config=config,
    )

    start = time.perf_counter()
    context = await coordinator.get_entry_context()
    duration = time.perf_counter() - start
    console.print(_context_table("Entry Context (hanging providers)", context, duration))

    budget = config.timeouts.physiological_timeout_seconds + 0.5
    if duration > budget:
        console.print(f"❌ Took {duration:.2f}s, budget {budget:.2f}s", style="red")
        return False
    console.print("✅ Entry context returned within budget", style="green")
    return True


async def check_no_context_available() -> bool:
    """Location denied and no wearable: an empty context, no exception."""

    console.print(Panel("📭 Checking Empty Context", style="blue"))

    coordinator = build_context_coordinator(
        FixedLocationProvider(None),
        SimulatedWeatherProvider(),
        WearableDataStore(SimulatedWearableClient()),
        config=_check_config(),
    )
    context = await coordinator.get_entry_context()

    if not context.is_empty:
        console.print("❌ Expected every field to be absent", style="red")
        return False
    console.print("✅ Entry can be saved without context", style="green")
    return True


async def run_all_checks() -> None:
    """Run all system checks."""

    configure_logging(LoggingConfig(level="WARNING", format="console"))
    console.print(Panel("🧪 Flare Context Enrichment - System Checks", style="bold blue"))

    checks = [
        ("Configuration", check_configuration),
        ("Healthy Providers", check_healthy_providers),
        ("Circuit Breaking", check_circuit_breaking),
        ("Bounded Latency", check_bounded_latency),
        ("Empty Context", check_no_context_available),
    ]

    results = []

    for check_name, check_func in checks:
        console.print(f"\n{'=' * 60}")
        try:
            result = await check_func()
            results.append((check_name, result))
        except KeyboardInterrupt:
            console.print("\n⏹️  Checks interrupted by user", style="yellow")
            break
        except Exception as e:
            console.print(f"❌ {check_name} failed with exception: {e}", style="red")
            results.append((check_name, False))

    # Summary
    console.print(f"\n{'=' * 60}")
    console.print(Panel("📋 Check Results Summary", style="bold"))

    summary_table = Table()
    summary_table.add_column("Check", style="cyan")
    summary_table.add_column("Result", style="white")

    passed = 0
    for check_name, result in results:
        if result:
            summary_table.add_row(check_name, "✅ PASSED")
            passed += 1
        else:
            summary_table.add_row(check_name, "❌ FAILED")

    console.print(summary_table)

    console.print(f"\n🎯 Results: {passed}/{len(results)} checks passed")

    if passed == len(results):
        console.print("🎉 All checks passed! Context enrichment is ready.", style="green")
    else:
        console.print("⚠️  Some checks failed. Check the logs above for details.", style="yellow")


if __name__ == "__main__":
    try:
        asyncio.run(run_all_checks())
    except KeyboardInterrupt:
        console.print("\n👋 Checks stopped by user", style="yellow")
    except Exception as e:
        console.print(f"\n💥 Check suite failed: {e}", style="red")
