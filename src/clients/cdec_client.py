"""CDEC (California Data Exchange Center) client for dam outflows.

Fetches hourly reservoir outflow (sensor 23, CFS) for the dams upstream of
the bay. Releases take days to reach the Golden Gate, so the aggregator
works on a 48-hour history rather than a single reading.
"""

import io
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

import pandas as pd
import requests

from src.core.readings import DamFlowSample


logger = logging.getLogger(__name__)

CDEC_CSV_URL = "https://cdec.water.ca.gov/dynamicapp/req/CSVDataServlet"
OUTFLOW_SENSOR = "23"  # Reservoir outflow, CFS
DURATION_CODE = "H"    # Hourly

# CDEC reports in Pacific local time
PACIFIC = ZoneInfo("America/Los_Angeles")

# CSV columns: STATION_ID, DURATION, SENSOR_NUMBER, SENSOR_TYPE, DATE TIME, OBS DATE, VALUE, DATA_FLAG, UNITS
COL_DATE_TIME = 4
COL_VALUE = 6


class CDECClient:
    """Client for fetching dam outflow history from CDEC."""

    def __init__(self, timeout: float = 15, max_workers: int = 5):
        """Initialize the client.

        Args:
            timeout: Per-request timeout in seconds
            max_workers: Stations fetched in parallel
        """
        self.session = requests.Session()
        self.timeout = timeout
        self.max_workers = max_workers

    def _parse_csv(self, station_id: str, text: str) -> list[DamFlowSample]:
        """Parse CDEC CSV rows, dropping non-positive or unparseable values."""
        if not text.strip():
            return []

        try:
            df = pd.read_csv(io.StringIO(text), header=0, dtype=str)
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise CDECError(f"Malformed CSV for {station_id}: {e}") from e

        if df.shape[1] <= COL_VALUE:
            return []

        flows = pd.to_numeric(df.iloc[:, COL_VALUE].str.strip(), errors="coerce")
        times = pd.to_datetime(df.iloc[:, COL_DATE_TIME].str.strip(), format="%Y%m%d %H%M", errors="coerce")

        valid = (flows > 0) & times.notna()
        times = times[valid].dt.tz_localize(PACIFIC, ambiguous="NaT", nonexistent="NaT").dt.tz_convert("UTC")

        return [
            DamFlowSample(station_id=station_id, timestamp=ts.to_pydatetime(), flow_cfs=float(flow))
            for ts, flow in zip(times, flows[valid])
            if not pd.isna(ts)
        ]

    def get_flow_history(
        self,
        station_id: str,
        start: datetime,
        end: datetime,
    ) -> list[DamFlowSample]:
        """Get hourly outflow samples for one station.

        Args:
            station_id: CDEC station ID (e.g., "SHA")
            start: Start of the window
            end: End of the window

        Returns:
            List of DamFlowSample, oldest first

        Raises:
            CDECError: If the request fails or the CSV is malformed
        """
        params = {
            "Stations": station_id,
            "SensorNums": OUTFLOW_SENSOR,
            "dur_code": DURATION_CODE,
            "Start": start.astimezone(PACIFIC).strftime("%Y-%m-%d"),
            "End": end.astimezone(PACIFIC).strftime("%Y-%m-%d"),
        }

        try:
            response = self.session.get(CDEC_CSV_URL, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise CDECError(f"Failed to fetch outflow for {station_id}: {e}") from e

        samples = [s for s in self._parse_csv(station_id, response.text) if start <= s.timestamp <= end]
        logger.debug(f"{station_id} - {len(samples)} hourly samples")
        return samples

    def get_station_series(
        self,
        station_ids: list[str],
        hours: int = 48,
        now: Optional[datetime] = None,
    ) -> dict[str, list[DamFlowSample]]:
        """Get recent outflow history for several stations in parallel.

        A station that fails is logged and returned with an empty list.

        Args:
            station_ids: CDEC station IDs
            hours: History window
            now: End of the window. Defaults to now.

        Returns:
            Dict mapping station ID to its samples
        """
        if now is None:
            now = datetime.now(timezone.utc)
        start = now - timedelta(hours=hours)

        def fetch(station_id: str) -> list[DamFlowSample]:
            try:
                return self.get_flow_history(station_id, start, now)
            except CDECError as e:
                logger.warning(f"Failed to fetch history for {station_id}: {e}")
                return []

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            results = list(executor.map(fetch, station_ids))

        return dict(zip(station_ids, results))


class CDECError(Exception):
    """Exception raised for CDEC client errors."""

    pass
