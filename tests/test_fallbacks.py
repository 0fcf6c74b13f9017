from datetime import timedelta

import pytest

from conftest import NOW, make_tide, make_weather
from src.core.fallbacks import (
    FALLBACK_TEMPERATURE_F,
    derive_current,
    fallback_water_quality,
    fallback_waves,
    fallback_weather,
    merge_wind,
    within_proximity,
)
from src.core.readings import CALCULATED_FROM_TIDE, OverflowEvent, TidePhase, WindReading


def make_wind(speed=14.0, temperature=None):
    return WindReading(
        timestamp=NOW - timedelta(minutes=5),
        wind_speed_mph=speed,
        wind_direction_deg=280.0,
        wind_gust_mph=20.0,
        temperature_f=temperature,
        source="open-meteo",
    )


def test_fallbacks_are_tagged_unavailable():
    for reading in (fallback_weather(NOW), fallback_waves(NOW), fallback_water_quality(NOW)):
        assert reading.source == "unavailable"
        assert not reading.is_available

    weather = fallback_weather(NOW)
    assert weather.temperature_f == 60
    assert weather.wind_speed_mph == 0
    assert weather.visibility_miles == 10
    assert weather.conditions == "unavailable"

    assert fallback_waves(NOW).height_ft == 0
    assert fallback_water_quality(NOW).status == "safe"
    assert fallback_water_quality(NOW).enterococcus_count is None


def test_merge_wind_both_present():
    weather = make_weather(wind=3.0, conditions="partly cloudy", temperature=64.0)

    merged = merge_wind(weather, make_wind(14.0), NOW)

    assert merged.wind_speed_mph == 14.0
    assert merged.wind_direction_deg == 280.0
    assert merged.wind_gust_mph == 20.0
    assert merged.temperature_f == 64.0
    assert merged.conditions == "partly cloudy"
    assert merged.timestamp == weather.timestamp
    assert merged.source == "NOAA-NWS+open-meteo-wind"


def test_merge_wind_only_weather():
    weather = make_weather()

    assert merge_wind(weather, None, NOW) is weather


def test_merge_wind_only_wind():
    merged = merge_wind(None, make_wind(9.0), NOW)

    assert merged.wind_speed_mph == 9.0
    assert merged.temperature_f == FALLBACK_TEMPERATURE_F
    assert merged.visibility_miles == 10
    assert merged.conditions == "unavailable"
    assert merged.source == "open-meteo"
    assert merged.is_available


def test_merge_wind_only_wind_keeps_its_temperature():
    merged = merge_wind(None, make_wind(9.0, temperature=57.5), NOW)

    assert merged.temperature_f == 57.5


def test_merge_wind_neither():
    merged = merge_wind(None, None, NOW)

    assert not merged.is_available
    assert merged.timestamp == NOW


@pytest.mark.parametrize("phase, rate, speed, direction", [
    (TidePhase.FLOOD, 1.5, 0.6, 90.0),
    (TidePhase.EBB, -2.0, 0.8, 270.0),
    (TidePhase.SLACK, 0.25, 0.1, 0.0),
])
def test_derive_current_from_tide(location, phase, rate, speed, direction):
    current = derive_current(make_tide(phase, rate), location, NOW)

    assert current.speed_knots == pytest.approx(speed)
    assert current.direction_deg == direction
    assert current.lat == location.coordinates.lat
    assert current.lon == location.coordinates.lon
    assert current.source == CALCULATED_FROM_TIDE
    assert current.is_derived


def test_within_proximity_keeps_unknown_distance():
    events = [
        OverflowEvent(id="near", reported_at=NOW, resolved=False, distance_miles=1.0),
        OverflowEvent(id="edge", reported_at=NOW, resolved=False, distance_miles=2.0),
        OverflowEvent(id="far", reported_at=NOW, resolved=False, distance_miles=5.0),
        OverflowEvent(id="unknown", reported_at=NOW, resolved=False),
    ]

    kept = within_proximity(events, 2.0)

    assert [e.id for e in kept] == ["near", "edge", "unknown"]
