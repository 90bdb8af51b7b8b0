"""天气查询接口：当前天气与 5 条预报。"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Query, Request

from haven_resilience.api.deps import require_state, to_json
from haven_resilience.errors import RequestValidationError
from haven_resilience.external.openweather_client import OpenWeatherClient
from haven_resilience.geo import parse_coordinates

router = APIRouter(prefix="/api", tags=["weather"])

WEATHER_TYPES = ("current", "forecast")


@router.get("/weather")
async def get_weather(
    request: Request,
    lat: Optional[str] = None,
    lon: Optional[str] = None,
    type_: str = Query("current", alias="type"),
) -> Any:
    location = parse_coordinates(lat, lon)
    if type_ not in WEATHER_TYPES:
        raise RequestValidationError('Type must be either "current" or "forecast"')

    client: OpenWeatherClient = require_state(request, "weather_client")
    if type_ == "current":
        return to_json(await client.current(location))
    return to_json(await client.forecast(location))
