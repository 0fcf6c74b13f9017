import threading

import pytest

from conftest import NOW, make_current, make_dam_series, make_tide, make_water_quality, make_waves, make_weather
from src.core.factors import Rating
from src.core.fusion import DIRECT_SOURCES, ConditionsReport, SourceFusion, SourceProviders
from src.core.readings import (
    CALCULATED_FROM_TIDE,
    CriticalFailure,
    OverflowEvent,
    ReadingSet,
    SourceState,
    TidePhase,
    WindReading,
)


def fail(message="connection refused"):
    def provider():
        raise ConnectionError(message)
    return provider


def providers(**overrides):
    """Providers returning ideal readings, with per-source overrides."""
    defaults = dict(
        tide=lambda: make_tide(),
        current=lambda: make_current(),
        weather=lambda: make_weather(),
        wind=lambda: None,
        waves_primary=lambda: make_waves(),
        waves_secondary=lambda: make_waves(source="NOAA-NDBC"),
        water_quality=lambda: make_water_quality(),
        overflows=lambda: [],
        dam_flows=lambda: make_dam_series(flow=5_000),
    )
    defaults.update(overrides)
    return SourceProviders(**defaults)


def test_gather_all_sources(location):
    readings = SourceFusion(providers(), location=location).gather(NOW)

    assert isinstance(readings, ReadingSet)
    assert readings.fetched_at == NOW
    assert readings.waves.source == "OpenWaterLog"
    assert readings.current.source == "NOAA"
    assert readings.dam_releases.current_total_flow_cfs == 10_000
    assert [s.name for s in readings.dam_releases.stations] == ["Shasta Dam", "Oroville Dam"]
    assert readings.diagnostics["tide"].ok
    assert readings.diagnostics["waves_primary"].ok
    assert "waves_secondary" not in readings.diagnostics
    # Empty overflow list and no wind reading both settle as "no data"
    assert readings.diagnostics["overflows"].state == SourceState.MISSING
    assert readings.diagnostics["wind"].state == SourceState.MISSING


def test_tide_failure_is_critical(location):
    result = SourceFusion(providers(tide=fail("tide station offline")), location=location).gather(NOW)

    assert isinstance(result, CriticalFailure)
    assert result.reason == "Unable to fetch critical tide data"
    assert result.timestamp == NOW
    assert set(result.diagnostics) == set(DIRECT_SOURCES) | {"waves_primary"}
    assert result.diagnostics["tide"].state == SourceState.ERROR
    assert result.diagnostics["tide"].message == "tide station offline"
    assert result.diagnostics["weather"].ok


def test_tide_no_data_is_critical(location):
    result = SourceFusion(providers(tide=lambda: None), location=location).gather(NOW)

    assert isinstance(result, CriticalFailure)
    assert result.diagnostics["tide"].state == SourceState.MISSING


def test_unconfigured_tide_is_critical(location):
    result = SourceFusion(providers(tide=None), location=location).gather(NOW)

    assert isinstance(result, CriticalFailure)
    assert result.diagnostics["tide"].message == "not configured"


def test_wave_fallback_to_secondary(location):
    secondary = make_waves(height=2.4, source="NOAA-NDBC")
    fusion = SourceFusion(
        providers(waves_primary=fail("page changed"), waves_secondary=lambda: secondary),
        location=location,
    )

    readings = fusion.gather(NOW)

    assert readings.waves is secondary
    assert readings.diagnostics["waves_primary"].state == SourceState.ERROR
    assert readings.diagnostics["waves_secondary"].ok


def test_secondary_waves_not_called_when_primary_succeeds(location):
    calls = []

    def secondary():
        calls.append(1)
        return make_waves(source="NOAA-NDBC")

    SourceFusion(providers(waves_secondary=secondary), location=location).gather(NOW)

    assert calls == []


def test_both_wave_sources_fail(location):
    fusion = SourceFusion(
        providers(waves_primary=lambda: None, waves_secondary=fail()),
        location=location,
    )

    readings = fusion.gather(NOW)

    assert readings.waves.source == "unavailable"
    assert readings.diagnostics["waves_primary"].state == SourceState.MISSING
    assert readings.diagnostics["waves_secondary"].state == SourceState.ERROR


def test_missing_current_is_derived_from_tide(location):
    fusion = SourceFusion(
        providers(tide=lambda: make_tide(TidePhase.EBB, -1.5), current=fail()),
        location=location,
    )

    readings = fusion.gather(NOW)

    assert readings.current.source == CALCULATED_FROM_TIDE
    assert readings.current.speed_knots == pytest.approx(0.6)
    assert readings.current.direction_deg == 270.0


def test_weather_and_wind_merged(location):
    wind = WindReading(timestamp=NOW, wind_speed_mph=16.0, wind_direction_deg=250.0, source="open-meteo")

    readings = SourceFusion(providers(wind=lambda: wind), location=location).gather(NOW)

    assert readings.weather.wind_speed_mph == 16.0
    assert readings.weather.temperature_f == 62.0
    assert readings.weather.source == "NOAA-NWS+open-meteo-wind"


def test_every_optional_source_down_still_scores(location):
    fusion = SourceFusion(
        providers(
            current=fail(), weather=fail(), wind=fail(), waves_primary=fail(), waves_secondary=fail(),
            water_quality=fail(), overflows=fail(), dam_flows=fail(),
        ),
        location=location,
    )

    report = fusion.assess(now=NOW)

    assert isinstance(report, ConditionsReport)
    assert not report.readings.weather.is_available
    assert not report.readings.water_quality.is_available
    assert not report.readings.dam_releases.is_available
    assert report.readings.overflows == ()
    factors = report.score.factors
    assert factors.water_quality.score == 50
    assert factors.waves.score == 50
    assert factors.weather.score == 50
    assert factors.dam_releases.score == 75
    assert "No water quality data available" in factors.issues


def test_overflows_filtered_by_proximity(location):
    events = [
        OverflowEvent(id="near", reported_at=NOW, resolved=False, distance_miles=0.8),
        OverflowEvent(id="far", reported_at=NOW, resolved=False, distance_miles=6.0),
    ]

    readings = SourceFusion(providers(overflows=lambda: events), location=location).gather(NOW)

    assert [e.id for e in readings.overflows] == ["near"]


def test_slow_lookup_times_out(location):
    release = threading.Event()

    def slow_weather():
        release.wait(5)
        return make_weather()

    fusion = SourceFusion(providers(weather=slow_weather), location=location, timeout=0.2)
    try:
        readings = fusion.gather(NOW)
    finally:
        release.set()

    assert readings.diagnostics["weather"].state == SourceState.ERROR
    assert "timed out" in readings.diagnostics["weather"].message
    assert not readings.weather.is_available


def test_slow_secondary_waves_keeps_primary_error(location):
    release = threading.Event()

    def slow_buoy():
        release.wait(5)
        return make_waves(source="NOAA-NDBC")

    fusion = SourceFusion(
        providers(waves_primary=fail("page changed"), waves_secondary=slow_buoy),
        location=location,
        timeout=0.2,
    )
    try:
        readings = fusion.gather(NOW)
    finally:
        release.set()

    assert readings.diagnostics["waves_primary"].state == SourceState.ERROR
    assert readings.diagnostics["waves_primary"].message == "page changed"
    assert readings.diagnostics["waves_secondary"].state == SourceState.ERROR
    assert "timed out" in readings.diagnostics["waves_secondary"].message
    assert not readings.waves.is_available


def test_slow_primary_waves_times_out_whole_chain(location):
    release = threading.Event()

    def slow_page():
        release.wait(5)
        return make_waves()

    fusion = SourceFusion(providers(waves_primary=slow_page), location=location, timeout=0.2)
    try:
        readings = fusion.gather(NOW)
    finally:
        release.set()

    assert "timed out" in readings.diagnostics["waves_primary"].message
    assert "timed out" in readings.diagnostics["waves_secondary"].message
    assert not readings.waves.is_available


def test_assess_scores_readings(location):
    report = SourceFusion(providers(), location=location).assess(now=NOW)

    assert report.timestamp == NOW
    assert report.score.overall_score == 100
    assert report.score.rating == Rating.EXCELLENT
    assert "Excellent time - slack tide" in report.score.recommendations


def test_assess_accepts_phase_name(location):
    fusion = SourceFusion(providers(tide=lambda: make_tide(TidePhase.EBB, 0.6)), location=location)

    default = fusion.assess(now=NOW)
    favored = fusion.assess("ebb", now=NOW)

    assert default.score.factors.tide_and_current.score == 85
    assert favored.score.factors.tide_and_current.score == 100


def test_assess_returns_critical_failure(location):
    result = SourceFusion(providers(tide=fail()), location=location).assess(now=NOW)

    assert isinstance(result, CriticalFailure)
