"""API clients for environmental data sources."""

from src.clients.buoy_client import BuoyClient, BuoyError
from src.clients.cache import CachedValue, ResponseCache
from src.clients.cdec_client import CDECClient, CDECError
from src.clients.noaa_tides_client import NOAATidesClient, NOAATidesError
from src.clients.nws_client import NWSClient, NWSError
from src.clients.open_meteo_client import OpenMeteoClient, OpenMeteoError
from src.clients.openwaterlog_client import OpenWaterLogClient, OpenWaterLogError
from src.clients.sfpuc_client import SFPUCClient, SFPUCError
from src.clients.water_quality_client import WaterQualityClient, WaterQualityError

__all__ = [
    "BuoyClient",
    "BuoyError",
    "CachedValue",
    "ResponseCache",
    "CDECClient",
    "CDECError",
    "NOAATidesClient",
    "NOAATidesError",
    "NWSClient",
    "NWSError",
    "OpenMeteoClient",
    "OpenMeteoError",
    "OpenWaterLogClient",
    "OpenWaterLogError",
    "SFPUCClient",
    "SFPUCError",
    "WaterQualityClient",
    "WaterQualityError",
]
