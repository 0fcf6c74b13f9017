"""Water quality client for bacteria sampling near Aquatic Park.

Queries three public sources concurrently and keeps the most recent sample:
- SF Beach Water Quality Monitoring (data.sfgov.org SODA API) - primary
- California Surface Water Bacteria data (data.ca.gov CKAN datastore)
- Water Quality Portal (USGS/EPA), station discovered and cached for 24h
"""

import io
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Optional

import pandas as pd
import requests

from src.clients.cache import CachedValue
from src.core.readings import WaterQualityReading
from src.core.thresholds import COLIFORM_ADVISORY, COLIFORM_WARNING, ENTEROCOCCUS_ADVISORY, ENTEROCOCCUS_SAFE


logger = logging.getLogger(__name__)

SF_BEACH_WQ_URL = "https://data.sfgov.org/resource/v3fv-x3ux.json"
CA_DATASTORE_URL = "https://data.ca.gov/api/3/action/datastore_search"
CA_MEASUREMENTS_RESOURCE_ID = "15a63495-8d9f-4a49-b43a-3092ef3106b9"  # 2020-present
WQP_STATION_URL = "https://www.waterqualitydata.us/data/Station/search"
WQP_RESULT_URL = "https://www.waterqualitydata.us/data/Result/search"

WQP_STATION_TTL = timedelta(hours=24)
WQP_LOOKBACK_DAYS = 90

# SF Beach monitoring stations nearest the swim area
SF_STATIONS = {
    "BAY#211_SL": "Aquatic Park",
    "BAY#210.1_SL": "Hyde St Pier",
}


def assess_water_quality_status(
    enterococcus: Optional[float] = None,
    coliform: Optional[float] = None,
) -> str:
    """Classify a sample as safe, advisory, warning or closed.

    Args:
        enterococcus: Enterococcus count (MPN/100ml)
        coliform: Total coliform count (MPN/100ml)

    Returns:
        Status string
    """
    if enterococcus is not None:
        if enterococcus > ENTEROCOCCUS_ADVISORY:
            return "closed"
        if enterococcus > ENTEROCOCCUS_SAFE:
            return "warning"

    if coliform is not None:
        if coliform > COLIFORM_WARNING:
            return "warning"
        if coliform > COLIFORM_ADVISORY:
            return "advisory"

    return "safe"


def _to_utc(value) -> datetime:
    ts = pd.Timestamp(value)
    ts = ts.tz_localize("UTC") if ts.tzinfo is None else ts.tz_convert("UTC")
    return ts.to_pydatetime()


def _number(value) -> Optional[float]:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return None if pd.isna(value) else value


def format_sample_age(sample_date: datetime, now: Optional[datetime] = None) -> str:
    """Human-readable sample age ("today", "yesterday", "3 days ago", date)."""
    if now is None:
        now = datetime.now(timezone.utc)
    days = (now - sample_date).days
    if days <= 0:
        return "today"
    if days == 1:
        return "yesterday"
    if days < 7:
        return f"{days} days ago"
    return sample_date.strftime("%Y-%m-%d")


class WaterQualityClient:
    """Client for bacteria sampling results near the swim location."""

    def __init__(
        self,
        lat: float,
        lon: float,
        stations: Optional[dict[str, str]] = None,
        timeout: float = 10,
    ):
        """Initialize the client.

        Args:
            lat: Latitude used for WQP station discovery by distance
            lon: Longitude used for WQP station discovery by distance
            stations: SF Beach station ID -> display name
            timeout: Per-request timeout in seconds
        """
        self.lat = lat
        self.lon = lon
        self.stations = stations or dict(SF_STATIONS)
        self.timeout = timeout
        self.session = requests.Session()
        self.wqp_station: Optional[CachedValue] = None

    def _get(self, url: str, params: dict, what: str) -> requests.Response:
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response
        except requests.RequestException as e:
            raise WaterQualityError(f"Failed to fetch {what}: {e}") from e

    def fetch_sf_beach(self) -> Optional[WaterQualityReading]:
        """Latest Enterococcus sample from the SF Beach monitoring stations.

        Returns:
            WaterQualityReading from whichever configured station sampled last,
            or None if none reported a numeric Enterococcus result
        """
        clauses = " OR ".join(f"source = '{station_id}'" for station_id in self.stations)
        response = self._get(SF_BEACH_WQ_URL, {
            "$where": f"({clauses}) AND analyte = 'ENTERO'",
            "$order": "sample_date DESC",
            "$limit": 200,
        }, "SF beach water quality")

        try:
            records = response.json()
        except ValueError as e:
            raise WaterQualityError(f"Malformed SF beach response: {e}") from e

        if not isinstance(records, list):
            raise WaterQualityError(f"Unexpected SF beach response: {type(records).__name__}")

        latest = {}
        for record in records:
            if not isinstance(record, dict):
                continue
            station_id = record.get("source")
            count = _number(record.get("data"))
            if station_id in self.stations and count is not None and record.get("sample_date"):
                latest.setdefault(station_id, (record, count))

        if not latest:
            logger.warning("No Enterococcus data from SF beach monitoring stations")
            return None

        station_id, (record, count) = max(
            latest.items(), key=lambda item: _to_utc(item[1][0]["sample_date"])
        )
        sampled = _to_utc(record["sample_date"])

        return WaterQualityReading(
            timestamp=sampled,
            enterococcus_count=count,
            status=assess_water_quality_status(count),
            notes=f"Sampled {format_sample_age(sampled)}",
            station_id=station_id,
            source=f"SF Beach Water Quality ({self.stations[station_id]})",
        )

    def fetch_california(self) -> Optional[WaterQualityReading]:
        """Latest Enterococcus / total coliform result from the state datastore."""
        response = self._get(CA_DATASTORE_URL, {
            "resource_id": CA_MEASUREMENTS_RESOURCE_ID,
            "q": "Aquatic Park",
            "sort": "SampleDate desc",
            "limit": 50,
        }, "California water quality")

        try:
            data = response.json()
        except ValueError as e:
            raise WaterQualityError(f"Malformed California response: {e}") from e

        if not isinstance(data, dict):
            raise WaterQualityError(f"Unexpected California response: {type(data).__name__}")

        if not data.get("success"):
            return None

        result = data.get("result") or {}
        if not isinstance(result, dict):
            raise WaterQualityError(f"Unexpected California result: {type(result).__name__}")
        records = [r for r in result.get("records") or [] if isinstance(r, dict)]
        entero = next(
            (r for r in records if r.get("Analyte") == "Enterococcus" and _number(r.get("Result")) is not None),
            None,
        )
        coliform = next(
            (r for r in records if r.get("Analyte") == "Coliform, Total" and _number(r.get("Result")) is not None),
            None,
        )

        if entero is None and coliform is None:
            logger.warning("No bacteria data in California datastore response")
            return None

        sampled = _to_utc((entero or coliform)["SampleDate"])
        entero_count = _number(entero["Result"]) if entero else None
        coliform_count = _number(coliform["Result"]) if coliform else None

        return WaterQualityReading(
            timestamp=sampled,
            enterococcus_count=entero_count,
            coliform_count=coliform_count,
            status=assess_water_quality_status(entero_count, coliform_count),
            notes=f"Sampled {format_sample_age(sampled)}",
            source="California Water Quality Data",
        )

    def _read_csv(self, url: str, params: dict, what: str) -> pd.DataFrame:
        response = self._get(url, {**params, "mimeType": "csv", "zip": "no"}, what)
        if not response.text.strip():
            return pd.DataFrame()
        try:
            return pd.read_csv(io.StringIO(response.text), dtype=str)
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise WaterQualityError(f"Malformed {what} CSV: {e}") from e

    def discover_wqp_station(
        self,
        cache: Optional[CachedValue] = None,
        now: Optional[datetime] = None,
    ) -> Optional[CachedValue]:
        """Find the WQP monitoring location for Aquatic Park.

        A still-valid cache is returned unchanged without any request. Otherwise
        the station is looked up by name within San Francisco County, then by
        distance (0.5 mi) from the location.

        Args:
            cache: Previously discovered station, if any
            now: Reference time for cache expiry

        Returns:
            CachedValue holding the station ID, or None if no station was found
        """
        if now is None:
            now = datetime.now(timezone.utc)
        if cache is not None and cache.is_valid(now):
            return cache

        by_county = self._read_csv(WQP_STATION_URL, {
            "countrycode": "US",
            "statecode": "US:06",
            "countycode": "US:06:075",
            "characteristicName": "Enterococcus",
        }, "WQP stations")

        station_id = None
        if {"MonitoringLocationName", "MonitoringLocationIdentifier"} <= set(by_county.columns):
            named = by_county[
                by_county["MonitoringLocationName"].str.contains("aquatic park", case=False, na=False)
            ]
            if not named.empty:
                station_id = named.iloc[0]["MonitoringLocationIdentifier"]

        if station_id is None:
            nearby = self._read_csv(WQP_STATION_URL, {
                "lat": str(self.lat),
                "long": str(self.lon),
                "within": "0.5",
                "characteristicName": "Enterococcus",
            }, "WQP stations nearby")
            if "MonitoringLocationIdentifier" in nearby.columns and not nearby.empty:
                station_id = nearby.iloc[0]["MonitoringLocationIdentifier"]

        if station_id is None:
            logger.warning("Could not discover WQP station for Aquatic Park")
            return None

        logger.info(f"Discovered WQP station {station_id}")
        return CachedValue.for_duration(station_id, WQP_STATION_TTL, now)

    def fetch_wqp(
        self,
        cache: Optional[CachedValue] = None,
        now: Optional[datetime] = None,
    ) -> tuple[Optional[WaterQualityReading], Optional[CachedValue]]:
        """Latest Enterococcus result from the Water Quality Portal (last 90 days).

        Args:
            cache: Previously discovered station, if any
            now: Reference time

        Returns:
            Tuple of (reading or None, station cache to keep)
        """
        if now is None:
            now = datetime.now(timezone.utc)

        cache = self.discover_wqp_station(cache, now)
        if cache is None:
            return None, None

        results = self._read_csv(WQP_RESULT_URL, {
            "siteid": cache.value,
            "characteristicName": "Enterococcus",
            "startDateLo": (now - timedelta(days=WQP_LOOKBACK_DAYS)).strftime("%m-%d-%Y"),
        }, "WQP results")

        if results.empty or not {"ActivityStartDate", "ResultMeasureValue"} <= set(results.columns):
            return None, cache

        results = results.assign(value=pd.to_numeric(results["ResultMeasureValue"], errors="coerce"))
        results = results.dropna(subset=["value", "ActivityStartDate"])
        if results.empty:
            return None, cache

        latest = results.sort_values("ActivityStartDate", ascending=False).iloc[0]
        sampled = _to_utc(latest["ActivityStartDate"])
        count = float(latest["value"])

        return WaterQualityReading(
            timestamp=sampled,
            enterococcus_count=count,
            status=assess_water_quality_status(count),
            notes=f"Sampled {format_sample_age(sampled, now)}",
            station_id=cache.value,
            source="Water Quality Portal (WQP)",
        ), cache

    def _fetch_wqp_cached(self) -> Optional[WaterQualityReading]:
        reading, self.wqp_station = self.fetch_wqp(self.wqp_station)
        return reading

    def get_water_quality(self) -> Optional[WaterQualityReading]:
        """Query all sources concurrently and return the most recent sample.

        Returns:
            WaterQualityReading or None if every source failed or was empty
        """
        sources = {
            "sf_beach": self.fetch_sf_beach,
            "california": self.fetch_california,
            "wqp": self._fetch_wqp_cached,
        }

        readings = []
        with ThreadPoolExecutor(max_workers=len(sources)) as executor:
            futures = {name: executor.submit(fetch) for name, fetch in sources.items()}
            for name, future in futures.items():
                try:
                    reading = future.result()
                except (WaterQualityError, requests.RequestException, ValueError, KeyError) as e:
                    logger.warning(f"Water quality source {name} failed: {e}")
                    continue
                if reading is not None:
                    readings.append(reading)

        if not readings:
            logger.warning("All water quality sources unavailable")
            return None

        latest = max(readings, key=lambda r: r.timestamp)
        logger.info(f"Using {latest.source} - sampled {latest.timestamp.date().isoformat()}")
        return latest


class WaterQualityError(Exception):
    """Exception raised for water quality client errors."""

    pass
