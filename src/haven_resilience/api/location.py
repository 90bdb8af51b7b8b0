from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Request

from haven_resilience.api.deps import require_state, to_json
from haven_resilience.geo import parse_coordinates
from haven_resilience.location import LocationSearch

router = APIRouter(prefix="/api/location", tags=["location"])


@router.get("/search")
async def search_location(request: Request, q: str = "") -> Any:
    # 每个 HTTP 请求独立查询，防抖只用于同一输入会话内的连续调用
    search: LocationSearch = require_state(request, "location_search")
    return to_json(await search.lookup(q.strip()))


@router.get("/reverse")
async def reverse_geocode(request: Request, lat: Optional[str] = None, lon: Optional[str] = None) -> Any:
    point = parse_coordinates(lat, lon)
    search: LocationSearch = require_state(request, "location_search")
    return to_json(await search.reverse_geocode(point.latitude, point.longitude))


@router.get("/device")
async def current_device_location(request: Request) -> Any:
    search: LocationSearch = require_state(request, "location_search")
    return to_json(await search.current_device())
