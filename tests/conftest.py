from datetime import datetime, timedelta, timezone

import pytest
from requests_mock import Mocker

from src.core.dam_aggregator import aggregate_dam_releases
from src.core.location import Bounds, Coordinates, MonitoredDam, SwimLocation
from src.core.readings import (
    CurrentReading,
    DamFlowSample,
    ReadingSet,
    TidePhase,
    TidePrediction,
    WaterQualityReading,
    WaveReading,
    WeatherReading,
)


NOW = datetime(2024, 6, 1, 18, 0, tzinfo=timezone.utc)


@pytest.fixture
def requests_mock():
    with Mocker() as mock:
        yield mock


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def location():
    return SwimLocation(
        name="Aquatic Park",
        id="aquatic_park",
        coordinates=Coordinates(lat=37.8065, lon=-122.4216),
        bounds=Bounds(north=37.8095, south=37.8035, east=-122.4186, west=-122.4246),
        dams=[
            MonitoredDam(station_id="SHA", name="Shasta Dam"),
            MonitoredDam(station_id="ORO", name="Oroville Dam"),
        ],
    )


def make_tide(phase=TidePhase.SLACK, rate=0.2, height=3.0, source="NOAA"):
    return TidePrediction(
        timestamp=NOW,
        height_ft=height,
        current_phase=phase,
        change_rate_ft_per_hr=rate,
        source=source,
    )


def make_current(speed=0.1):
    return CurrentReading(
        timestamp=NOW, speed_knots=speed, direction_deg=90.0,
        lat=37.8065, lon=-122.4216, source="NOAA",
    )


def make_weather(wind=3.0, conditions="clear", temperature=62.0):
    return WeatherReading(
        timestamp=NOW,
        temperature_f=temperature,
        wind_speed_mph=wind,
        wind_direction_deg=270.0,
        visibility_miles=10.0,
        conditions=conditions,
        source="NOAA-NWS",
    )


def make_waves(height=1.0, source="OpenWaterLog"):
    return WaveReading(timestamp=NOW, height_ft=height, source=source)


def make_water_quality(entero=20.0):
    return WaterQualityReading(
        timestamp=NOW - timedelta(days=1),
        enterococcus_count=entero,
        status="safe",
        station_id="BAY#211_SL",
        source="SF Beach Water Quality (Aquatic Park)",
    )


def make_dam_series(flow=10_000.0, hours=48, stations=("SHA", "ORO")):
    return {
        station_id: [
            DamFlowSample(station_id=station_id, timestamp=NOW - timedelta(hours=h), flow_cfs=flow)
            for h in range(hours - 1, -1, -1)
        ]
        for station_id in stations
    }


@pytest.fixture
def readings():
    """A complete reading set with every source reporting ideal conditions."""
    return ReadingSet(
        fetched_at=NOW,
        tide=make_tide(),
        current=make_current(),
        weather=make_weather(),
        waves=make_waves(),
        water_quality=make_water_quality(),
        dam_releases=aggregate_dam_releases(make_dam_series(flow=5_000.0), now=NOW),
    )
