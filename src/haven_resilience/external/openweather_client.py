from __future__ import annotations

from typing import List, Optional

import httpx
import structlog
from pydantic import BaseModel, Field, ValidationError

from haven_resilience.errors import UpstreamServiceError
from haven_resilience.external.base import TTLCache, build_http_client, coordinate_key
from haven_resilience.models import Location, WeatherData, WeatherForecast

logger = structlog.get_logger(__name__)

PROVIDER = "openweathermap"
FORECAST_ENTRIES = 5
CURRENT_FAILURE_MESSAGE = "Failed to fetch weather data"
FORECAST_FAILURE_MESSAGE = "Failed to fetch forecast data"


# ===== 上游载荷（只声明用到的字段） =====


class _Condition(BaseModel):
    description: str
    icon: str


class _Wind(BaseModel):
    speed: float
    deg: float = 0.0


class _CurrentMain(BaseModel):
    temp: float
    humidity: float
    pressure: float


class _CurrentPayload(BaseModel):
    main: _CurrentMain
    wind: _Wind
    visibility: float = 0.0
    weather: List[_Condition] = Field(..., min_length=1)


class _ForecastMain(BaseModel):
    temp_max: float
    temp_min: float


class _ForecastItem(BaseModel):
    dt_txt: str
    main: _ForecastMain
    weather: List[_Condition] = Field(..., min_length=1)
    wind: _Wind
    rain: Optional[dict] = None


class _ForecastPayload(BaseModel):
    list: List[_ForecastItem]


class OpenWeatherClient:
    """OpenWeatherMap 2.5 客户端（公制单位），当前天气与预报分别缓存。"""

    def __init__(
        self,
        *,
        api_key: Optional[str],
        base_url: str,
        connect_timeout: float = 10.0,
        read_timeout: float = 10.0,
        current_cache_ttl: float = 300.0,
        forecast_cache_ttl: float = 1800.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._api_key = api_key
        self._owns_client = http_client is None
        self._client = http_client or build_http_client(
            base_url, connect_timeout=connect_timeout, read_timeout=read_timeout
        )
        self._current_cache: TTLCache[WeatherData] = TTLCache(current_cache_ttl)
        self._forecast_cache: TTLCache[List[WeatherForecast]] = TTLCache(forecast_cache_ttl)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def current(self, location: Location) -> WeatherData:
        key = coordinate_key(location.latitude, location.longitude)
        cached = await self._current_cache.get(key)
        if cached is not None:
            logger.debug("weather_cache_hit", cache_key=key)
            return cached

        data = await self._request("/weather", location, CURRENT_FAILURE_MESSAGE)
        try:
            payload = _CurrentPayload.model_validate(data)
        except ValidationError as exc:
            raise UpstreamServiceError(CURRENT_FAILURE_MESSAGE, provider=PROVIDER, info=str(exc)) from exc

        weather = WeatherData(
            temperature=payload.main.temp,
            humidity=payload.main.humidity,
            pressure=payload.main.pressure,
            wind_speed=payload.wind.speed,
            wind_direction=payload.wind.deg,
            visibility=payload.visibility / 1000,
            # UV 指数需要单独的接口，这里固定为 0
            uv_index=0.0,
            description=payload.weather[0].description,
            icon=payload.weather[0].icon,
        )
        await self._current_cache.set(key, weather)
        return weather

    async def forecast(self, location: Location) -> List[WeatherForecast]:
        key = coordinate_key(location.latitude, location.longitude)
        cached = await self._forecast_cache.get(key)
        if cached is not None:
            logger.debug("weather_cache_hit", cache_key=key, kind="forecast")
            return list(cached)

        data = await self._request("/forecast", location, FORECAST_FAILURE_MESSAGE)
        try:
            payload = _ForecastPayload.model_validate(data)
        except ValidationError as exc:
            raise UpstreamServiceError(FORECAST_FAILURE_MESSAGE, provider=PROVIDER, info=str(exc)) from exc

        entries = [
            WeatherForecast(
                date=item.dt_txt,
                high=item.main.temp_max,
                low=item.main.temp_min,
                description=item.weather[0].description,
                icon=item.weather[0].icon,
                precipitation=float((item.rain or {}).get("3h") or 0),
                wind_speed=item.wind.speed,
            )
            for item in payload.list[:FORECAST_ENTRIES]
        ]
        await self._forecast_cache.set(key, entries)
        return list(entries)

    async def _request(self, path: str, location: Location, failure_message: str) -> dict:
        if not self._api_key:
            logger.error("weather_api_key_missing", path=path)
            raise UpstreamServiceError(failure_message, provider=PROVIDER, info="OPENWEATHER_API_KEY not configured")

        params = {
            "lat": location.latitude,
            "lon": location.longitude,
            "appid": self._api_key,
            "units": "metric",
        }
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error("weather_upstream_failed", path=path, status_code=exc.response.status_code)
            raise UpstreamServiceError(failure_message, provider=PROVIDER, info=str(exc)) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("weather_upstream_failed", path=path, error=str(exc) or type(exc).__name__)
            raise UpstreamServiceError(failure_message, provider=PROVIDER, info=str(exc)) from exc
        return data
