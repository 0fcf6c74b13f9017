"""Source fusion: fetch every provider concurrently, then merge and score.

Each lookup settles independently as success, no data, or failure. Only
after all lookups settle (or the gather deadline passes) are the fixed
fallback and merge rules applied. Tide is the one mandatory input; without
it the result is a CriticalFailure rather than a score.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union

from src.core.dam_aggregator import DamReleaseAggregator, unavailable_dam_releases
from src.core.factors import SwimScore
from src.core.fallbacks import (
    derive_current,
    fallback_water_quality,
    fallback_waves,
    merge_wind,
    within_proximity,
)
from src.core.location import SwimLocation, get_location
from src.core.readings import (
    CriticalFailure,
    ReadingSet,
    SourceState,
    SourceStatus,
    TidePhase,
    TidePhasePreference,
)
from src.core.scorer import SwimScorer

logger = logging.getLogger(__name__)

Provider = Optional[Callable[[], Any]]

# Looked up directly; the two wave providers run as one chained lookup
DIRECT_SOURCES = ("tide", "current", "weather", "wind", "water_quality", "overflows", "dam_flows")

DEFAULT_GATHER_TIMEOUT = 30


@dataclass
class SourceProviders:
    """Zero-argument callables, one per external source. None = not configured."""
    tide: Provider = None
    current: Provider = None
    weather: Provider = None
    wind: Provider = None
    waves_primary: Provider = None
    waves_secondary: Provider = None
    water_quality: Provider = None
    overflows: Provider = None
    dam_flows: Provider = None

    @classmethod
    def from_clients(
        cls,
        location: SwimLocation,
        tides=None,
        nws=None,
        open_meteo=None,
        openwaterlog=None,
        buoy=None,
        water_quality=None,
        sfpuc=None,
        cdec=None,
    ) -> "SourceProviders":
        """Wire the bundled HTTP clients to a location.

        Any client not passed in is created with its defaults.

        Args:
            location: Swim location supplying coordinates and station IDs
            tides: NOAATidesClient
            nws: NWSClient
            open_meteo: OpenMeteoClient
            openwaterlog: OpenWaterLogClient
            buoy: BuoyClient
            water_quality: WaterQualityClient
            sfpuc: SFPUCClient
            cdec: CDECClient

        Returns:
            SourceProviders
        """
        # Imported here so core modules don't need the HTTP stack at import time
        from src.clients.buoy_client import BuoyClient
        from src.clients.cdec_client import CDECClient
        from src.clients.noaa_tides_client import NOAATidesClient
        from src.clients.nws_client import NWSClient
        from src.clients.open_meteo_client import OpenMeteoClient
        from src.clients.openwaterlog_client import OpenWaterLogClient
        from src.clients.sfpuc_client import SFPUCClient
        from src.clients.water_quality_client import SF_STATIONS, WaterQualityClient

        lat, lon = location.coordinates.lat, location.coordinates.lon
        stations = location.stations

        tides = tides or NOAATidesClient(lat=lat, lon=lon)
        nws = nws or NWSClient()
        open_meteo = open_meteo or OpenMeteoClient()
        openwaterlog = openwaterlog or OpenWaterLogClient()
        buoy = buoy or BuoyClient()
        water_quality = water_quality or WaterQualityClient(
            lat, lon,
            stations={sid: SF_STATIONS.get(sid, sid) for sid in location.water_quality_stations} or None,
        )
        sfpuc = sfpuc or SFPUCClient(lat, lon)
        cdec = cdec or CDECClient()

        def dam_flows():
            series = cdec.get_station_series(location.dam_station_ids)
            # Every station empty means the feed is down, not that dams are idle
            return series if any(series.values()) else None

        return cls(
            tide=lambda: tides.get_current_tide_prediction(station_id=stations.tide),
            current=(lambda: tides.get_current_reading(stations.current)) if stations.current else None,
            weather=lambda: nws.get_latest_observation(lat, lon),
            wind=lambda: open_meteo.get_current_wind(lat, lon),
            waves_primary=openwaterlog.get_wave_reading,
            waves_secondary=lambda: buoy.get_wave_reading(stations.buoy),
            water_quality=water_quality.get_water_quality,
            overflows=sfpuc.get_recent_overflows,
            dam_flows=dam_flows if location.dams else None,
        )


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    try:
        return len(value) == 0
    except TypeError:
        return False


def _settle(name: str, provider: Provider) -> tuple[Any, SourceStatus]:
    """Run one lookup and classify its outcome.

    Returns:
        Tuple of (value or None, SourceStatus)
    """
    if provider is None:
        return None, SourceStatus(SourceState.MISSING, "not configured")

    try:
        value = provider()
    except Exception as e:
        logger.warning(f"{name} lookup failed: {e}")
        return None, SourceStatus(SourceState.ERROR, str(e))

    if _is_empty(value):
        logger.warning(f"{name} returned no data")
        return None, SourceStatus(SourceState.MISSING, "no data")

    logger.info(f"{name} lookup ok")
    return value, SourceStatus(SourceState.OK)


@dataclass(frozen=True)
class ConditionsReport:
    """A scored assessment together with the readings behind it."""
    timestamp: datetime
    score: SwimScore
    readings: ReadingSet


def _as_preference(preference) -> Optional[TidePhasePreference]:
    """Accept a TidePhasePreference, a TidePhase or a phase name."""
    if preference is None or isinstance(preference, TidePhasePreference):
        return preference
    return TidePhasePreference.favoring(preference)


class SourceFusion:
    """Gathers every source for a location and turns them into a score."""

    def __init__(
        self,
        providers: Optional[SourceProviders] = None,
        location: Optional[SwimLocation] = None,
        timeout: float = DEFAULT_GATHER_TIMEOUT,
        scorer: Optional[SwimScorer] = None,
    ):
        """Initialize the orchestrator.

        Args:
            providers: Source callables. Defaults to the bundled HTTP clients.
            location: Swim location. Defaults to config/location.yaml.
            timeout: Gather deadline in seconds
            scorer: Scorer. Defaults to SwimScorer().
        """
        self.location = location or get_location()
        self.providers = providers or SourceProviders.from_clients(self.location)
        self.timeout = timeout
        self.scorer = scorer or SwimScorer()

    def _waves(self, diagnostics: dict[str, SourceStatus]) -> Any:
        """Primary wave source, then the secondary exactly once if it gave nothing.

        Each step's status is recorded in diagnostics as soon as it settles.
        """
        reading, diagnostics["waves_primary"] = _settle("waves_primary", self.providers.waves_primary)
        if reading is None:
            reading, diagnostics["waves_secondary"] = _settle(
                "waves_secondary", self.providers.waves_secondary
            )
        return reading

    def _lookup_all(self) -> tuple[dict[str, Any], dict[str, SourceStatus]]:
        """Run every lookup concurrently and wait until all settle or the deadline passes."""
        values: dict[str, Any] = {}
        diagnostics: dict[str, SourceStatus] = {}
        timed_out = SourceStatus(SourceState.ERROR, f"timed out after {self.timeout}s")

        executor = ThreadPoolExecutor(max_workers=len(DIRECT_SOURCES) + 1)
        try:
            futures = {
                name: executor.submit(_settle, name, getattr(self.providers, name))
                for name in DIRECT_SOURCES
            }
            wave_diagnostics: dict[str, SourceStatus] = {}
            waves_future = executor.submit(self._waves, wave_diagnostics)
            wait([*futures.values(), waves_future], timeout=self.timeout)
        finally:
            # Don't block on lookups still running past the deadline
            executor.shutdown(wait=False, cancel_futures=True)

        for name, future in futures.items():
            if future.done():
                values[name], diagnostics[name] = future.result()
            else:
                logger.warning(f"{name} lookup {timed_out.message}")
                values[name], diagnostics[name] = None, timed_out

        if waves_future.done():
            values["waves"] = waves_future.result()
            diagnostics.update(wave_diagnostics)
        else:
            logger.warning(f"wave lookup {timed_out.message}")
            values["waves"] = None
            # Keep steps that settled; the step still running and any after it timed out
            settled = dict(wave_diagnostics)
            diagnostics.update(settled)
            diagnostics.setdefault("waves_primary", timed_out)
            if not settled.get("waves_primary", timed_out).ok:
                diagnostics.setdefault("waves_secondary", timed_out)

        return values, diagnostics

    def gather(self, now: Optional[datetime] = None) -> Union[ReadingSet, CriticalFailure]:
        """Fetch all sources and apply the fallback and merge rules.

        Args:
            now: Reference time. Defaults to current UTC time.

        Returns:
            ReadingSet with every field populated, or CriticalFailure if the
            tide could not be fetched
        """
        if now is None:
            now = datetime.now(timezone.utc)

        values, diagnostics = self._lookup_all()

        tide = values["tide"]
        if tide is None:
            logger.error("Tide data unavailable - cannot score conditions")
            return CriticalFailure(
                reason="Unable to fetch critical tide data",
                diagnostics=diagnostics,
                timestamp=now,
            )

        current = values["current"]
        if current is None:
            current = derive_current(tide, self.location, now)
            logger.info(f"Current derived from tide rate: {current.speed_knots:.2f} knots")

        waves = values["waves"]
        if waves is None:
            logger.warning("No wave data from any source - using fallback")
            waves = fallback_waves(now)

        water_quality = values["water_quality"] or fallback_water_quality(now)

        overflows = within_proximity(values["overflows"] or [], self.location.overflow_proximity_miles)

        if values["dam_flows"]:
            dam_releases = DamReleaseAggregator(self.location.dams).aggregate(values["dam_flows"], now)
        else:
            dam_releases = unavailable_dam_releases(now)

        return ReadingSet(
            fetched_at=now,
            tide=tide,
            current=current,
            weather=merge_wind(values["weather"], values["wind"], now),
            waves=waves,
            water_quality=water_quality,
            dam_releases=dam_releases,
            overflows=tuple(overflows),
            diagnostics=diagnostics,
        )

    def assess(
        self,
        preference: Union[TidePhasePreference, TidePhase, str, None] = None,
        now: Optional[datetime] = None,
    ) -> Union[ConditionsReport, CriticalFailure]:
        """Gather, aggregate and score current conditions.

        Args:
            preference: Tide phase weighting, a favoured TidePhase, or its name.
                Only affects the tide & current factor.
            now: Reference time. Defaults to current UTC time.

        Returns:
            ConditionsReport, or CriticalFailure if the tide is missing
        """
        preference = _as_preference(preference)
        readings = self.gather(now)
        if isinstance(readings, CriticalFailure):
            return readings

        score = self.scorer.calculate_score(readings, preference=preference)
        failed = [name for name, status in readings.diagnostics.items() if not status.ok]
        logger.info(
            f"Swim score {score.overall_score} ({score.rating.value})"
            + (f" - degraded sources: {', '.join(failed)}" if failed else "")
        )

        return ConditionsReport(timestamp=readings.fetched_at, score=score, readings=readings)


def assess_conditions(
    preference: Union[TidePhasePreference, TidePhase, str, None] = None,
    timeout: float = DEFAULT_GATHER_TIMEOUT,
) -> Union[ConditionsReport, CriticalFailure]:
    """Assess the default location with the bundled clients.

    Args:
        preference: Tide phase weighting or favoured phase
        timeout: Gather deadline in seconds

    Returns:
        ConditionsReport or CriticalFailure
    """
    return SourceFusion(timeout=timeout).assess(preference)
