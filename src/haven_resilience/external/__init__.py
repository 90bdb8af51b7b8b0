"""第三方 HTTP 服务客户端：OpenWeatherMap、USGS、Nominatim。"""

from .nominatim_client import NominatimClient
from .openweather_client import OpenWeatherClient
from .usgs_client import DEFAULT_FEED, VALID_FEEDS, USGSClient

__all__ = ["DEFAULT_FEED", "NominatimClient", "OpenWeatherClient", "USGSClient", "VALID_FEEDS"]
