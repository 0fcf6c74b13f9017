"""Fallback values and merge rules applied after all lookups settle.

Every fallback is tagged ``source="unavailable"`` so the scorer treats it
as missing data rather than a measurement.
"""

from dataclasses import replace
from datetime import datetime
from typing import Optional

from src.core.location import SwimLocation
from src.core.readings import (
    CALCULATED_FROM_TIDE,
    UNAVAILABLE,
    CurrentReading,
    TidePhase,
    TidePrediction,
    WaterQualityReading,
    WaveReading,
    WeatherReading,
    WindReading,
)
from src.core.thresholds import TIDE_RATE_TO_CURRENT_KT


FALLBACK_TEMPERATURE_F = 60.0
FALLBACK_VISIBILITY_MILES = 10.0

# Direction of a tide-derived current, by phase (degrees)
PHASE_DIRECTIONS = {
    TidePhase.FLOOD: 90.0,   # Incoming - eastward
    TidePhase.EBB: 270.0,    # Outgoing - westward
    TidePhase.SLACK: 0.0,
}


def fallback_weather(now: datetime) -> WeatherReading:
    return WeatherReading(
        timestamp=now,
        temperature_f=FALLBACK_TEMPERATURE_F,
        wind_speed_mph=0.0,
        wind_direction_deg=0.0,
        visibility_miles=FALLBACK_VISIBILITY_MILES,
        conditions=UNAVAILABLE,
        source=UNAVAILABLE,
    )


def fallback_waves(now: datetime) -> WaveReading:
    return WaveReading(timestamp=now, height_ft=0.0, source=UNAVAILABLE)


def fallback_water_quality(now: datetime) -> WaterQualityReading:
    return WaterQualityReading(timestamp=now, status="safe", source=UNAVAILABLE)


def merge_wind(
    weather: Optional[WeatherReading],
    wind: Optional[WindReading],
    now: datetime,
) -> WeatherReading:
    """Combine the general weather reading with the wind-only reading.

    Both present: wind fields from the wind provider, everything else from
    the weather provider. Only one present: use it, filling the rest from
    the weather fallback.

    Args:
        weather: Weather provider reading (NWS)
        wind: Wind provider reading (Open-Meteo)
        now: Timestamp for fallback values

    Returns:
        WeatherReading, never None
    """
    if weather is not None and wind is not None:
        return replace(
            weather,
            wind_speed_mph=wind.wind_speed_mph,
            wind_direction_deg=wind.wind_direction_deg,
            wind_gust_mph=wind.wind_gust_mph,
            source=f"{weather.source}+{wind.source}-wind",
        )

    if weather is not None:
        return weather

    if wind is not None:
        return WeatherReading(
            timestamp=wind.timestamp,
            temperature_f=wind.temperature_f if wind.temperature_f is not None else FALLBACK_TEMPERATURE_F,
            wind_speed_mph=wind.wind_speed_mph,
            wind_direction_deg=wind.wind_direction_deg,
            wind_gust_mph=wind.wind_gust_mph,
            visibility_miles=FALLBACK_VISIBILITY_MILES,
            conditions=UNAVAILABLE,
            source=wind.source,
        )

    return fallback_weather(now)


def derive_current(tide: TidePrediction, location: SwimLocation, now: datetime) -> CurrentReading:
    """Estimate the current from the tide change rate.

    Args:
        tide: Current tide prediction
        location: Location whose centre is used as the reading position
        now: Reading timestamp

    Returns:
        CurrentReading tagged as calculated from the tide rate
    """
    return CurrentReading(
        timestamp=now,
        speed_knots=abs(tide.change_rate_ft_per_hr) * TIDE_RATE_TO_CURRENT_KT,
        direction_deg=PHASE_DIRECTIONS[tide.current_phase],
        lat=location.coordinates.lat,
        lon=location.coordinates.lon,
        source=CALCULATED_FROM_TIDE,
    )


def within_proximity(overflows, radius_miles: float) -> list:
    """Drop overflow events known to be farther than the radius.

    Events without a distance are kept.
    """
    return [
        event for event in overflows
        if event.distance_miles is None or event.distance_miles <= radius_miles
    ]
