"""NOAA CO-OPS API client for tide predictions, water levels and currents.

Provides the current tide state (height, phase, rate of change) for the
San Francisco station and observed currents from a nearby current station.
Stations: 9414290 (San Francisco), SFB1203 (Golden Gate Bridge currents)
"""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Literal, Optional

import pandas as pd
import requests

from src.clients.cache import ResponseCache
from src.core.readings import CurrentReading, TidePhase, TidePrediction, TideReading, TideType
from src.core.thresholds import TIDE_SLACK_RATE


logger = logging.getLogger(__name__)

COOPS_BASE_URL = "https://api.tidesandcurrents.noaa.gov/api/prod/datagetter"
CACHE_TTL_SECONDS = 3600  # 1 hour
APPLICATION = "swim-conditions"

SF_TIDE_STATION = "9414290"
SF_CURRENT_STATION = "SFB1203"

TIDE_TYPES = {"H": TideType.HIGH, "L": TideType.LOW}


def _coops_time(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y%m%d %H:%M")


def _parse_time(value: str) -> datetime:
    """Parse a CO-OPS GMT timestamp ("2024-06-01 12:06")."""
    return datetime.strptime(value, "%Y-%m-%d %H:%M").replace(tzinfo=timezone.utc)


class NOAATidesClient:
    """Client for fetching tide and current data from NOAA CO-OPS API."""

    def __init__(
        self,
        cache_path: Optional[Path] = None,
        use_cache: bool = True,
        timeout: float = 15,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
    ):
        """Initialize the NOAA Tides client.

        Args:
            cache_path: Path to SQLite cache file. Defaults to ~/.cache/swim-conditions/tides.db
            use_cache: Cache tide predictions. Real-time products are never cached.
            timeout: Per-request timeout in seconds
            lat: Latitude reported on current readings
            lon: Longitude reported on current readings
        """
        self.session = requests.Session()
        self.cache = ResponseCache("tides", CACHE_TTL_SECONDS, cache_path) if use_cache else None
        self.timeout = timeout
        self.lat = lat
        self.lon = lon

    def _fetch_data(self, params: dict, key: str = "data") -> list:
        """Fetch data from CO-OPS API."""
        params = {"application": APPLICATION, "time_zone": "gmt", "format": "json", **params}
        try:
            response = self.session.get(COOPS_BASE_URL, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise NOAATidesError(f"Failed to fetch {params.get('product')} data: {e}") from e

        if "error" in data:
            raise NOAATidesError(f"CO-OPS API error: {data['error'].get('message', 'Unknown error')}")

        return data.get(key, [])

    def get_tide_predictions(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        station_id: str = SF_TIDE_STATION,
        interval: Literal["h", "hilo"] = "hilo",
    ) -> pd.DataFrame:
        """Get tide predictions for a station.

        Args:
            start_date: Start time. Defaults to now.
            end_date: End time. Defaults to 24 hours after start.
            station_id: NOAA station ID
            interval: "h" for hourly, "hilo" for high/low only. Defaults to "hilo".

        Returns:
            DataFrame with columns: time (UTC), height_ft, type (high/low/normal)
        """
        if start_date is None:
            start_date = datetime.now(timezone.utc)
        if end_date is None:
            end_date = start_date + timedelta(hours=24)

        params = {
            "product": "predictions",
            "station": station_id,
            "begin_date": _coops_time(start_date),
            "end_date": _coops_time(end_date),
            "datum": "MLLW",
            "units": "english",
            "interval": interval,
        }

        cache_key = ResponseCache.make_key(params)
        records = self.cache.get(cache_key) if self.cache else None

        if records is None:
            predictions = self._fetch_data(params, key="predictions")
            records = [
                {"time": pred["t"], "height_ft": float(pred["v"]), "type": pred.get("type")}
                for pred in predictions
                if pred.get("t") and pred.get("v") not in (None, "")
            ]
            if self.cache and records:
                self.cache.set(cache_key, records)

        df = pd.DataFrame(records, columns=["time", "height_ft", "type"])
        if df.empty:
            return df

        df["time"] = pd.to_datetime(df["time"], format="%Y-%m-%d %H:%M", utc=True)
        df["type"] = df["type"].map(lambda t: TIDE_TYPES.get(t, TideType.NORMAL).value)
        return df.sort_values("time").reset_index(drop=True)

    def get_latest_water_level(
        self,
        station_id: str = SF_TIDE_STATION,
        now: Optional[datetime] = None,
    ) -> Optional[TideReading]:
        """Get the most recent observed water level (last hour).

        Args:
            station_id: NOAA station ID
            now: End of the lookup window. Defaults to now.

        Returns:
            TideReading or None if the station has not reported
        """
        if now is None:
            now = datetime.now(timezone.utc)

        data = self._fetch_data({
            "product": "water_level",
            "station": station_id,
            "begin_date": _coops_time(now - timedelta(hours=1)),
            "end_date": _coops_time(now),
            "datum": "MLLW",
            "units": "english",
        })

        observations = [obs for obs in data if obs.get("v") not in (None, "")]
        if not observations:
            return None

        latest = observations[-1]
        return TideReading(
            timestamp=_parse_time(latest["t"]),
            height_ft=float(latest["v"]),
            type=TideType.NORMAL,
            source="NOAA",
        )

    def get_current_tide_prediction(
        self,
        now: Optional[datetime] = None,
        station_id: str = SF_TIDE_STATION,
    ) -> Optional[TidePrediction]:
        """Determine the current tide phase and rate of change.

        The phase follows whichever of the next high or next low is nearer:
        flood when heading to a high, ebb when heading to a low. A rate
        below 0.5 ft/hr is treated as slack.

        Args:
            now: Reference time. Defaults to now.
            station_id: NOAA station ID

        Returns:
            TidePrediction or None if observations or predictions are missing
        """
        if now is None:
            now = datetime.now(timezone.utc)

        current = self.get_latest_water_level(station_id, now=now)
        predictions = self.get_tide_predictions(now, now + timedelta(hours=24), station_id)

        if current is None or predictions.empty:
            logger.warning(f"No tide observation or predictions for station {station_id}")
            return None

        future = predictions[predictions["time"] > pd.Timestamp(now)]
        next_high = self._first_of_type(future, TideType.HIGH)
        next_low = self._first_of_type(future, TideType.LOW)

        phase = TidePhase.SLACK
        change_rate = 0.0

        if next_high and next_low:
            hours_to_high = (next_high.timestamp - now).total_seconds() / 3600
            hours_to_low = (next_low.timestamp - now).total_seconds() / 3600

            if hours_to_high < hours_to_low:
                phase = TidePhase.FLOOD
                change_rate = (next_high.height_ft - current.height_ft) / hours_to_high
            else:
                phase = TidePhase.EBB
                change_rate = (current.height_ft - next_low.height_ft) / hours_to_low

            if abs(change_rate) < TIDE_SLACK_RATE:
                phase = TidePhase.SLACK

        logger.debug(
            f"Tide {station_id}: {current.height_ft:.2f} ft, {phase.value}, {change_rate:+.2f} ft/hr"
        )

        return TidePrediction(
            timestamp=current.timestamp,
            height_ft=current.height_ft,
            current_phase=phase,
            change_rate_ft_per_hr=change_rate,
            type=current.type,
            next_high=next_high,
            next_low=next_low,
            source=current.source,
        )

    @staticmethod
    def _first_of_type(df: pd.DataFrame, tide_type: TideType) -> Optional[TideReading]:
        matches = df[df["type"] == tide_type.value]
        if matches.empty:
            return None
        row = matches.iloc[0]
        return TideReading(
            timestamp=row["time"].to_pydatetime(),
            height_ft=float(row["height_ft"]),
            type=tide_type,
            source="NOAA",
        )

    def get_current_reading(
        self,
        station_id: str = SF_CURRENT_STATION,
        now: Optional[datetime] = None,
    ) -> Optional[CurrentReading]:
        """Get the most recent observed current (last hour).

        Args:
            station_id: NOAA current station ID
            now: End of the lookup window. Defaults to now.

        Returns:
            CurrentReading or None if the station has not reported
        """
        if now is None:
            now = datetime.now(timezone.utc)

        data = self._fetch_data({
            "product": "currents",
            "station": station_id,
            "begin_date": _coops_time(now - timedelta(hours=1)),
            "end_date": _coops_time(now),
            "units": "english",
        })

        observations = [obs for obs in data if obs.get("s") not in (None, "")]
        if not observations:
            return None

        latest = observations[-1]
        try:
            speed = float(latest["s"])
            direction = float(latest.get("d") or 0)
        except ValueError as e:
            raise NOAATidesError(f"Malformed current observation: {latest}") from e

        return CurrentReading(
            timestamp=_parse_time(latest["t"]),
            speed_knots=abs(speed),
            direction_deg=direction % 360,
            lat=self.lat if self.lat is not None else 0.0,
            lon=self.lon if self.lon is not None else 0.0,
            source="NOAA",
        )


class NOAATidesError(Exception):
    """Exception raised for NOAA Tides client errors."""

    pass
