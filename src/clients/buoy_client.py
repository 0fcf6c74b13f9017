"""NDBC buoy client for real-time wave observations.

Secondary wave source when OpenWaterLog is unavailable.
Default buoy: 46237 (San Francisco Bar), reported in the standard
meteorological format with "MM" marking missing values.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import pandas as pd
import requests

from src.clients.cache import ResponseCache
from src.core.readings import WaveReading


logger = logging.getLogger(__name__)

NDBC_TXT_URL = "https://www.ndbc.noaa.gov/data/realtime2/{station}.txt"
CACHE_TTL_SECONDS = 600  # 10 minutes for real-time buoy data

SF_BAR_BUOY = "46237"
METERS_TO_FEET = 3.28084

# Column positions in the standard format:
# YY MM DD hh mm WDIR WSPD GST WVHT DPD APD MWD PRES ATMP WTMP DEWP VIS PTDY TIDE
COL_WDIR, COL_WSPD, COL_GST = 5, 6, 7
COL_WVHT, COL_DPD, COL_APD, COL_MWD = 8, 9, 10, 11
COL_PRES, COL_ATMP, COL_WTMP = 12, 13, 14

MISSING_VALUES = ("MM", "999", "99.0", "9999", "99.00", "999.0")


def _safe_float(parts: list[str], index: int) -> Optional[float]:
    """Value at a column, None for missing markers or short rows."""
    if index >= len(parts) or parts[index] in MISSING_VALUES:
        return None
    try:
        return float(parts[index])
    except ValueError:
        return None


class BuoyClient:
    """Client for fetching buoy data from NDBC."""

    def __init__(self, cache_path: Optional[Path] = None, use_cache: bool = True, timeout: float = 15):
        """Initialize the Buoy client.

        Args:
            cache_path: Path to SQLite cache file. Defaults to ~/.cache/swim-conditions/buoy.db
            use_cache: Cache parsed observations
            timeout: Per-request timeout in seconds
        """
        self.session = requests.Session()
        self.cache = ResponseCache("buoy", CACHE_TTL_SECONDS, cache_path) if use_cache else None
        self.timeout = timeout

    def _parse_standard(self, text: str) -> list[dict]:
        """Parse NDBC standard meteorological text, newest row first."""
        records = []
        for line in text.strip().splitlines():
            if line.startswith("#"):
                continue
            parts = line.split()
            if len(parts) < COL_PRES + 1:
                continue

            try:
                year = int(parts[0])
                if year < 100:
                    year += 2000
                observed = datetime(
                    year, int(parts[1]), int(parts[2]), int(parts[3]), int(parts[4]),
                    tzinfo=timezone.utc,
                )
            except ValueError:
                continue

            records.append({
                "time": observed.isoformat(),
                "wind_direction_deg": _safe_float(parts, COL_WDIR),
                "wind_speed_mps": _safe_float(parts, COL_WSPD),
                "gust_speed_mps": _safe_float(parts, COL_GST),
                "wave_height_m": _safe_float(parts, COL_WVHT),
                "dominant_period_s": _safe_float(parts, COL_DPD),
                "average_period_s": _safe_float(parts, COL_APD),
                "mean_wave_direction_deg": _safe_float(parts, COL_MWD),
                "pressure_hpa": _safe_float(parts, COL_PRES),
                "air_temp_c": _safe_float(parts, COL_ATMP),
                "water_temp_c": _safe_float(parts, COL_WTMP),
            })

        return records

    def get_standard_data(self, station_id: str = SF_BAR_BUOY) -> pd.DataFrame:
        """Get standard meteorological data from a buoy.

        Args:
            station_id: NDBC station ID

        Returns:
            DataFrame with wind, wave, pressure and temperature columns, newest first
        """
        url = NDBC_TXT_URL.format(station=station_id)
        cache_key = ResponseCache.make_key({"url": url})
        records = self.cache.get(cache_key) if self.cache else None

        if records is None:
            try:
                response = self.session.get(url, timeout=self.timeout)
                response.raise_for_status()
            except requests.RequestException as e:
                raise BuoyError(f"Failed to fetch standard data for {station_id}: {e}") from e

            records = self._parse_standard(response.text)
            if self.cache and records:
                self.cache.set(cache_key, records)

        df = pd.DataFrame(records)
        if not df.empty:
            df["time"] = pd.to_datetime(df["time"], utc=True)
        return df

    def get_wave_reading(self, station_id: str = SF_BAR_BUOY) -> Optional[WaveReading]:
        """Get the latest wave reading from a buoy.

        Args:
            station_id: NDBC station ID

        Returns:
            WaveReading in feet, or None if the latest row has no wave height
        """
        df = self.get_standard_data(station_id)
        if df.empty:
            return None

        latest = df.iloc[0]
        height_m = latest.get("wave_height_m")
        logger.debug(
            f"Buoy {station_id} raw - WVHT: {height_m}, DPD: {latest.get('dominant_period_s')}, "
            f"MWD: {latest.get('mean_wave_direction_deg')}"
        )

        if height_m is None or pd.isna(height_m):
            logger.warning(f"No valid wave height from buoy {station_id}")
            return None

        def optional(value) -> Optional[float]:
            return None if value is None or pd.isna(value) else float(value)

        return WaveReading(
            timestamp=latest["time"].to_pydatetime(),
            height_ft=float(height_m) * METERS_TO_FEET,
            swell_period_s=optional(latest.get("dominant_period_s")),
            swell_direction_deg=optional(latest.get("mean_wave_direction_deg")),
            source="NOAA-NDBC",
        )


class BuoyError(Exception):
    """Exception raised for Buoy client errors."""

    pass
