"""Open-Meteo API client for current wind conditions.

Secondary wind provider: its model wind at 10 m tracks the bay better than
the nearest NWS airport station. No API key required.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Optional

import requests

from src.core.readings import WindReading


logger = logging.getLogger(__name__)

OPEN_METEO_BASE_URL = "https://api.open-meteo.com/v1/forecast"
WIND_FIELDS = "wind_speed_10m,wind_direction_10m,wind_gusts_10m"


def _number(value) -> Optional[float]:
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(value) else value


def _parse_time(value: Optional[str]) -> datetime:
    # Times come back in GMT without an offset ("2024-06-01T12:00")
    if not value:
        return datetime.now(timezone.utc)
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


class OpenMeteoClient:
    """Client for fetching wind data from Open-Meteo."""

    def __init__(self, timeout: float = 5):
        """Initialize the client.

        Args:
            timeout: Per-request timeout in seconds
        """
        self.session = requests.Session()
        self.timeout = timeout

    def _get(self, params: dict) -> dict:
        params = {"wind_speed_unit": "mph", "temperature_unit": "fahrenheit", "timezone": "GMT", **params}
        try:
            response = self.session.get(OPEN_METEO_BASE_URL, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            raise OpenMeteoError(f"Failed to fetch Open-Meteo data: {e}") from e

    def get_current_wind(self, lat: float, lon: float) -> Optional[WindReading]:
        """Get current wind at a location.

        Args:
            lat: Latitude
            lon: Longitude

        Returns:
            WindReading, or None when speed or direction is missing
        """
        data = self._get({
            "latitude": lat,
            "longitude": lon,
            "current": f"{WIND_FIELDS},temperature_2m",
        })

        current = data.get("current") or {}
        speed = _number(current.get("wind_speed_10m"))
        direction = _number(current.get("wind_direction_10m"))

        if speed is None or direction is None:
            logger.warning("Open-Meteo response missing wind speed or direction")
            return None

        return WindReading(
            timestamp=_parse_time(current.get("time")),
            wind_speed_mph=speed,
            wind_direction_deg=direction,
            wind_gust_mph=_number(current.get("wind_gusts_10m")) or None,
            temperature_f=_number(current.get("temperature_2m")),
            source="open-meteo",
        )


class OpenMeteoError(Exception):
    """Exception raised for Open-Meteo client errors."""

    pass
