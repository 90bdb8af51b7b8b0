from __future__ import annotations

import math
from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, Request

from haven_resilience.api.deps import require_state, to_json
from haven_resilience.errors import RequestValidationError
from haven_resilience.geo import parse_coordinates
from haven_resilience.models import ResourceType, utc_now
from haven_resilience.resources import MockResourceGenerator

router = APIRouter(prefix="/api", tags=["resources"])

DEFAULT_RADIUS_KM = 10.0
MAX_RADIUS_KM = 100.0
MOCK_DATA_NOTE = "This is mock data. In production, integrate with real emergency services APIs."


def _parse_radius(raw: Optional[str]) -> float:
    if raw is None or raw == "":
        return DEFAULT_RADIUS_KM
    try:
        radius = float(raw)
    except ValueError:
        radius = math.nan
    if math.isnan(radius) or radius <= 0 or radius > MAX_RADIUS_KM:
        raise RequestValidationError("Radius must be between 0 and 100 km")
    return radius


def _parse_type(raw: Optional[str]) -> Optional[ResourceType]:
    if not raw:
        return None
    try:
        return ResourceType(raw)
    except ValueError:
        valid = ", ".join(item.value for item in ResourceType)
        raise RequestValidationError(f"Invalid resource type. Must be one of: {valid}") from None


@router.get("/resources")
async def get_resources(
    request: Request,
    lat: Optional[str] = None,
    lon: Optional[str] = None,
    radius: Optional[str] = None,
    type_: Optional[str] = Query(None, alias="type"),
) -> Dict[str, Any]:
    """附近应急资源（模拟数据），按距离由近到远。"""
    location = parse_coordinates(lat, lon)
    radius_km = _parse_radius(radius)
    resource_type = _parse_type(type_)

    generator: MockResourceGenerator = require_state(request, "resource_generator")
    resources = generator.generate(location, radius_km, resource_type)

    return {
        "resources": to_json(resources),
        "metadata": {
            "location": to_json(location),
            "radius": radius_km,
            "type": resource_type.value if resource_type else "all",
            "count": len(resources),
            "searchTimestamp": to_json(utc_now()),
            "note": MOCK_DATA_NOTE,
        },
    }
