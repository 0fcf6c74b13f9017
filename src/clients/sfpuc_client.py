"""SFPUC sanitary sewer overflow (SSO) client.

Fetches recent overflow incidents from the SF open data portal and tags
each with its distance from the swim location.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import pandas as pd
import requests

from src.core.location import distance_miles
from src.core.readings import OverflowEvent
from src.core.thresholds import OVERFLOW_LOOKBACK_DAYS


logger = logging.getLogger(__name__)

SFPUC_BASE_URL = "https://data.sfgov.org/resource"
SSO_DATASET_ID = "pr5w-eger"
RESOLVED_STATUSES = ("closed", "resolved")


def _to_utc(value: str) -> datetime:
    ts = pd.Timestamp(value)
    ts = ts.tz_localize("UTC") if ts.tzinfo is None else ts.tz_convert("UTC")
    return ts.to_pydatetime()


def _number(value) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class SFPUCClient:
    """Client for SF sewer overflow reports."""

    def __init__(self, lat: float, lon: float, dataset_id: str = SSO_DATASET_ID, timeout: float = 10):
        """Initialize the client.

        Args:
            lat: Latitude distances are measured from
            lon: Longitude distances are measured from
            dataset_id: SODA dataset identifier
            timeout: Per-request timeout in seconds
        """
        self.lat = lat
        self.lon = lon
        self.url = f"{SFPUC_BASE_URL}/{dataset_id}.json"
        self.timeout = timeout
        self.session = requests.Session()

    def _parse_event(self, record: dict) -> Optional[OverflowEvent]:
        if not record.get("incident_date"):
            return None

        lat, lon = _number(record.get("latitude")), _number(record.get("longitude"))
        distance = distance_miles(self.lat, self.lon, lat, lon) if lat is not None and lon is not None else None
        status = (record.get("status") or "").lower()
        try:
            reported = _to_utc(record["incident_date"])
            closed = _to_utc(record["close_date"]) if record.get("close_date") else None
        except ValueError as e:
            logger.warning(f"Skipping overflow record {record.get('incident_id', '?')}: {e}")
            return None

        return OverflowEvent(
            id=record.get("incident_id") or f"sso-{reported:%Y%m%d%H%M}",
            reported_at=reported,
            location=record.get("location") or "Unknown location",
            resolved=status in RESOLVED_STATUSES,
            resolved_at=closed,
            distance_miles=distance,
            volume_gallons=_number(record.get("volume")),
            notes=record.get("description"),
            source="SFPUC",
        )

    def get_recent_overflows(
        self,
        days_back: int = OVERFLOW_LOOKBACK_DAYS,
        now: Optional[datetime] = None,
    ) -> list[OverflowEvent]:
        """Get overflow incidents reported in the last N days, newest first.

        Args:
            days_back: Lookback window in days
            now: Reference time. Defaults to now.

        Returns:
            List of OverflowEvent (empty if none reported)
        """
        if now is None:
            now = datetime.now(timezone.utc)
        start = (now - timedelta(days=days_back)).strftime("%Y-%m-%dT%H:%M:%S")

        try:
            response = self.session.get(self.url, params={
                "$where": f"incident_date >= '{start}'",
                "$order": "incident_date DESC",
                "$limit": 100,
            }, timeout=self.timeout)
            response.raise_for_status()
            records = response.json()
        except (requests.RequestException, ValueError) as e:
            raise SFPUCError(f"Failed to fetch sewer overflow events: {e}") from e

        if not isinstance(records, list):
            raise SFPUCError(f"Unexpected overflow response: {type(records).__name__}")

        events = [event for event in map(self._parse_event, records) if event is not None]
        logger.info(f"SFPUC: {len(events)} overflow events in the last {days_back} days")
        return events


class SFPUCError(Exception):
    """Exception raised for SFPUC client errors."""

    pass
