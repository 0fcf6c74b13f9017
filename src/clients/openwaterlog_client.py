"""OpenWaterLog scraper for Aquatic Park wave height.

The location page embeds its chart series as a ``var waveData = [...]``
script block. Each point carries an ISO timestamp and the height in feet.
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Optional

import pandas as pd
import requests
from bs4 import BeautifulSoup

from src.core.readings import WaveReading


logger = logging.getLogger(__name__)

OPENWATERLOG_URL = "https://openwaterlog.com/locations/aquatic-park/"
USER_AGENT = "SwimConditions/1.0 (swim-conditions-app)"

WAVE_DATA_PATTERN = re.compile(r"var\s+waveData\s*=\s*(\[[\s\S]*?\]);")


def _to_utc(value: str) -> datetime:
    ts = pd.Timestamp(value)
    ts = ts.tz_localize("UTC") if ts.tzinfo is None else ts.tz_convert("UTC")
    return ts.to_pydatetime()


class OpenWaterLogClient:
    """Client for scraping wave data from OpenWaterLog."""

    def __init__(self, url: str = OPENWATERLOG_URL, timeout: float = 10):
        """Initialize the client.

        Args:
            url: Location page URL
            timeout: Per-request timeout in seconds
        """
        self.url = url
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})
        self.timeout = timeout

    def get_wave_series(self) -> list[dict]:
        """Fetch and parse the embedded wave series.

        Returns:
            List of points with at least "iso" and "y" (feet). Empty if the page
            carries no series.

        Raises:
            OpenWaterLogError: If the page cannot be fetched or the series is malformed
        """
        try:
            response = self.session.get(self.url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise OpenWaterLogError(f"Failed to fetch OpenWaterLog page: {e}") from e

        soup = BeautifulSoup(response.text, "html.parser")

        for script in soup.find_all("script"):
            match = WAVE_DATA_PATTERN.search(script.string or "")
            if match:
                break
        else:
            logger.warning("Could not find waveData in OpenWaterLog page")
            return []

        try:
            points = json.loads(match.group(1))
        except json.JSONDecodeError as e:
            raise OpenWaterLogError(f"Malformed waveData: {e}") from e

        return [p for p in points if p.get("iso") and p.get("y") is not None]

    def get_wave_reading(self, now: Optional[datetime] = None) -> Optional[WaveReading]:
        """Get the most recent wave height not in the future.

        If every point is in the future the first one is used.

        Args:
            now: Reference time. Defaults to now.

        Returns:
            WaveReading or None if the page has no wave data
        """
        if now is None:
            now = datetime.now(timezone.utc)

        points = self.get_wave_series()
        if not points:
            return None

        past = [p for p in points if _to_utc(p["iso"]) <= now]
        point = past[-1] if past else points[0]

        reading = WaveReading(
            timestamp=_to_utc(point["iso"]),
            height_ft=float(point["y"]),
            source="OpenWaterLog",
        )
        logger.debug(f"OpenWaterLog wave height {reading.height_ft} ft at {reading.timestamp.isoformat()}")
        return reading


class OpenWaterLogError(Exception):
    """Exception raised for OpenWaterLog client errors."""

    pass
