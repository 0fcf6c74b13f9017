"""National Weather Service API client for observations and hourly forecasts.

Provides the latest surface observation from the station nearest the swim
location, plus the hourly gridpoint forecast. No API key required.
"""

import logging
import math
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import pandas as pd
import requests

from src.clients.cache import ResponseCache
from src.core.readings import WeatherReading


logger = logging.getLogger(__name__)

NWS_BASE_URL = "https://api.weather.gov"
CACHE_TTL_SECONDS = 1800  # 30 minutes for forecasts
USER_AGENT = "SwimConditions/1.0 (swim-conditions-app)"

DEFAULT_VISIBILITY_M = 16000

# Speed unit codes returned by observations -> mph factor
SPEED_TO_MPH = {
    "wmoUnit:m_s-1": 2.23694,
    "wmoUnit:km_h-1": 0.621371,
}
METERS_TO_MILES = 0.000621371

WIND_DIRECTIONS = {
    "N": 0, "NNE": 22.5, "NE": 45, "ENE": 67.5,
    "E": 90, "ESE": 112.5, "SE": 135, "SSE": 157.5,
    "S": 180, "SSW": 202.5, "SW": 225, "WSW": 247.5,
    "W": 270, "WNW": 292.5, "NW": 315, "NNW": 337.5,
}


def celsius_to_fahrenheit(celsius: float) -> float:
    return celsius * 9 / 5 + 32


def _value(props: dict, name: str) -> Optional[float]:
    """Numeric value of an observation quantity, None if missing."""
    value = (props.get(name) or {}).get("value")
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(value) else value


def _speed_mph(props: dict, name: str) -> Optional[float]:
    value = _value(props, name)
    if value is None:
        return None
    unit = (props.get(name) or {}).get("unitCode", "wmoUnit:m_s-1")
    return value * SPEED_TO_MPH.get(unit, SPEED_TO_MPH["wmoUnit:m_s-1"])


class NWSClient:
    """Client for fetching weather data from the National Weather Service API."""

    def __init__(self, cache_path: Optional[Path] = None, use_cache: bool = True, timeout: float = 10):
        """Initialize the NWS client.

        Args:
            cache_path: Path to SQLite cache file. Defaults to ~/.cache/swim-conditions/nws.db
            use_cache: Cache hourly forecasts
            timeout: Per-request timeout in seconds
        """
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT, "Accept": "application/geo+json"})
        self.cache = ResponseCache("nws", CACHE_TTL_SECONDS, cache_path) if use_cache else None
        self.timeout = timeout
        self._point_cache: dict = {}

    def _get_json(self, url: str, what: str) -> dict:
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            raise NWSError(f"Failed to get {what}: {e}") from e

    def _get_point(self, lat: float, lon: float) -> dict:
        """Get the NWS point metadata (forecast and station URLs) for a lat/lon.

        Args:
            lat: Latitude
            lon: Longitude

        Returns:
            The point's "properties" dict
        """
        cache_key = f"{lat:.4f},{lon:.4f}"
        if cache_key in self._point_cache:
            return self._point_cache[cache_key]

        data = self._get_json(f"{NWS_BASE_URL}/points/{cache_key}", f"point metadata for {lat}, {lon}")
        props = data.get("properties", {})
        if not props.get("observationStations") and not props.get("forecastHourly"):
            raise NWSError(f"Invalid point response for {lat}, {lon}")

        self._point_cache[cache_key] = props
        return props

    def get_latest_observation(self, lat: float, lon: float) -> Optional[WeatherReading]:
        """Get the latest observation from the nearest reporting station.

        Args:
            lat: Latitude
            lon: Longitude

        Returns:
            WeatherReading, or None if temperature or wind speed is missing
        """
        stations_url = self._get_point(lat, lon).get("observationStations")
        if not stations_url:
            raise NWSError(f"No observation stations listed for {lat}, {lon}")

        features = self._get_json(stations_url, "observation stations").get("features", [])
        if not features or not features[0].get("id"):
            raise NWSError("No nearby observation station found")
        station = features[0]["id"]

        props = self._get_json(f"{station}/observations/latest", "latest observation").get("properties", {})

        temperature_c = _value(props, "temperature")
        wind_mph = _speed_mph(props, "windSpeed")
        if temperature_c is None or wind_mph is None:
            logger.warning(
                f"Station {station} missing temperature ({temperature_c}) or wind ({wind_mph})"
            )
            return None

        visibility_m = _value(props, "visibility") or DEFAULT_VISIBILITY_M
        timestamp = props.get("timestamp")

        return WeatherReading(
            timestamp=datetime.fromisoformat(timestamp) if timestamp else datetime.now(timezone.utc),
            temperature_f=celsius_to_fahrenheit(temperature_c),
            wind_speed_mph=wind_mph,
            wind_direction_deg=_value(props, "windDirection") or 0.0,
            wind_gust_mph=_speed_mph(props, "windGust"),
            visibility_miles=visibility_m * METERS_TO_MILES,
            conditions=(props.get("textDescription") or "unknown").lower(),
            pressure=_value(props, "barometricPressure"),
            humidity=_value(props, "relativeHumidity"),
            source="NOAA-NWS",
        )

    def get_hourly_forecast(self, lat: float, lon: float) -> pd.DataFrame:
        """Get hourly weather forecast for a location.

        Args:
            lat: Latitude
            lon: Longitude

        Returns:
            DataFrame with columns: time, temperature_f, wind_speed_mph, wind_direction_deg,
                                   wind_gust_mph, precipitation_probability, short_forecast
        """
        url = self._get_point(lat, lon).get("forecastHourly")
        if not url:
            raise NWSError(f"No hourly forecast listed for {lat}, {lon}")

        cache_key = ResponseCache.make_key({"url": url})
        records = self.cache.get(cache_key) if self.cache else None

        if records is None:
            periods = self._get_json(url, "hourly forecast").get("properties", {}).get("periods", [])
            records = [self._parse_period(period) for period in periods]
            if self.cache and records:
                self.cache.set(cache_key, records)

        return pd.DataFrame(records)

    @staticmethod
    def _parse_period(period: dict) -> dict:
        """Flatten one forecast period."""
        def mph(text: Optional[str]) -> Optional[float]:
            # "10 mph" or "10 to 15 mph"
            match = re.search(r"(\d+)", text or "")
            return float(match.group(1)) if match else None

        # Handle precipitation probability where API returns {"value": null}
        precip_data = period.get("probabilityOfPrecipitation") or {}
        precip_prob = precip_data.get("value")
        if precip_prob is None:
            precip_prob = 0

        return {
            "time": period.get("startTime"),
            "temperature_f": period.get("temperature"),
            "wind_speed_mph": mph(period.get("windSpeed")) or 0.0,
            "wind_direction_deg": WIND_DIRECTIONS.get(period.get("windDirection") or "", 0),
            "wind_gust_mph": mph(period.get("windGust")),
            "precipitation_probability": precip_prob,
            "short_forecast": (period.get("shortForecast") or "").lower(),
        }


class NWSError(Exception):
    """Exception raised for NWS client errors."""

    pass
