from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from haven_resilience.api.deps import require_state, to_json
from haven_resilience.errors import RequestValidationError
from haven_resilience.external.usgs_client import DEFAULT_FEED, SOURCE_NAME, VALID_FEEDS, USGSClient
from haven_resilience.models import utc_now

router = APIRouter(prefix="/api", tags=["earthquakes"])


@router.get("/earthquakes")
async def get_earthquakes(request: Request, feed: str = DEFAULT_FEED) -> Dict[str, Any]:
    """USGS 地震摘要订阅，映射为预警列表。"""
    if feed not in VALID_FEEDS:
        raise RequestValidationError(f"Invalid feed parameter. Must be one of: {', '.join(VALID_FEEDS)}")

    client: USGSClient = require_state(request, "usgs_client")
    earthquakes = await client.fetch_feed(feed)
    return {
        "earthquakes": to_json(earthquakes),
        "metadata": {
            "count": len(earthquakes),
            "feed": feed,
            "lastUpdated": to_json(utc_now()),
            "source": SOURCE_NAME,
        },
    }
