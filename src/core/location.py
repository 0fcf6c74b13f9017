"""Swim location model and loader.

Loads the monitored location (Aquatic Park by default) from location.yaml:
coordinates, swim-area bounds, NOAA station IDs, water-quality stations,
the overflow proximity radius and the upstream dams that feed the bay.
"""

import logging
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from src.core.thresholds import OVERFLOW_PROXIMITY_MILES


logger = logging.getLogger(__name__)

LOCATION_CONFIG_ENV = "SWIM_LOCATION_CONFIG"

EARTH_RADIUS_MILES = 3959


@dataclass
class Coordinates:
    """Geographic coordinates."""
    lat: float
    lon: float


@dataclass
class Bounds:
    """Bounding box of the swim area."""
    north: float
    south: float
    east: float
    west: float

    def contains(self, point: Coordinates) -> bool:
        return self.south <= point.lat <= self.north and self.west <= point.lon <= self.east


@dataclass
class NOAAStations:
    """NOAA station identifiers used for this location."""
    tide: str = "9414290"
    current: Optional[str] = "SFB1203"
    buoy: str = "46237"


@dataclass
class MonitoredDam:
    """An upstream dam whose releases reach the bay."""
    station_id: str
    name: str
    weight: float = 1.0  # influence on bay currents, informational only


@dataclass
class SwimLocation:
    """Complete location model."""
    name: str
    id: str
    coordinates: Coordinates
    bounds: Bounds
    stations: NOAAStations = field(default_factory=NOAAStations)
    water_quality_stations: list[str] = field(default_factory=list)
    overflow_proximity_miles: float = OVERFLOW_PROXIMITY_MILES
    dams: list[MonitoredDam] = field(default_factory=list)

    @property
    def dam_station_ids(self) -> list[str]:
        return [dam.station_id for dam in self.dams]

    def distance_to(self, lat: float, lon: float) -> float:
        """Miles from the location centre to a point."""
        return distance_miles(self.coordinates.lat, self.coordinates.lon, lat, lon)


def distance_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in miles (haversine)."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_MILES * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _find_config() -> Optional[Path]:
    """Locate location.yaml: env override, then repo config/, then cwd."""
    override = os.environ.get(LOCATION_CONFIG_ENV)
    if override:
        return Path(override)

    possible_paths = [
        Path(__file__).parent.parent.parent / "config" / "location.yaml",
        Path.cwd() / "config" / "location.yaml",
    ]
    for path in possible_paths:
        if path.exists():
            return path
    return None


def _parse_location(data: dict) -> SwimLocation:
    """Parse a location dictionary into a SwimLocation object."""
    coords = data.get("coordinates", {})
    bounds = data.get("bounds", {})
    stations = data.get("stations", {})
    water_quality = data.get("water_quality", {})
    overflows = data.get("overflows", {})

    return SwimLocation(
        name=data.get("name", "Unknown"),
        id=data.get("id", "unknown"),
        coordinates=Coordinates(
            lat=coords.get("lat", 0),
            lon=coords.get("lon", 0),
        ),
        bounds=Bounds(
            north=bounds.get("north", 0),
            south=bounds.get("south", 0),
            east=bounds.get("east", 0),
            west=bounds.get("west", 0),
        ),
        stations=NOAAStations(
            tide=str(stations.get("tide", NOAAStations.tide)),
            current=stations.get("current", NOAAStations.current),
            buoy=str(stations.get("buoy", NOAAStations.buoy)),
        ),
        water_quality_stations=list(water_quality.get("stations", [])),
        overflow_proximity_miles=float(overflows.get("proximity_miles", OVERFLOW_PROXIMITY_MILES)),
        dams=[
            MonitoredDam(
                station_id=dam["station_id"],
                name=dam.get("name", dam["station_id"]),
                weight=float(dam.get("weight", 1.0)),
            )
            for dam in data.get("dams", [])
        ],
    )


def load_location(path: Optional[Path] = None) -> SwimLocation:
    """Load a SwimLocation from YAML.

    Args:
        path: Path to location.yaml. Defaults to $SWIM_LOCATION_CONFIG,
            then config/location.yaml.

    Returns:
        SwimLocation

    Raises:
        FileNotFoundError: If no config file can be found
    """
    if path is None:
        path = _find_config()

    if path is None or not Path(path).exists():
        raise FileNotFoundError(f"Could not find location.yaml (path: {path})")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    data = data.get("location", data)
    location = _parse_location(data)

    if data.get("bounds") and not location.bounds.contains(location.coordinates):
        logger.warning(f"{location.name} centre {location.coordinates} lies outside its configured bounds")

    return location


_default_location: Optional[SwimLocation] = None


def get_location() -> SwimLocation:
    """Get the default location (loaded once)."""
    global _default_location
    if _default_location is None:
        _default_location = load_location()
    return _default_location
