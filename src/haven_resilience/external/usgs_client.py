"""
USGS 地震 GeoJSON 摘要订阅客户端

feature → DisasterAlert 的映射：
    - 震级 ≥7 extreme，≥6 high，≥4 moderate，其余 low
    - 影响范围取震中 ±1 度
    - 防护指引按震级 ≥6 与以下分两套
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Tuple

import httpx
import structlog
from pydantic import BaseModel, Field, ValidationError

from haven_resilience.errors import UpstreamServiceError
from haven_resilience.external.base import TTLCache, build_http_client
from haven_resilience.models import (
    AlertSeverity,
    DisasterAlert,
    DisasterType,
    GeographicBounds,
    Location,
)

logger = structlog.get_logger(__name__)

PROVIDER = "usgs"
FAILURE_MESSAGE = "Failed to fetch earthquake data"
SOURCE_NAME = "USGS Earthquake Hazards Program"
DEFAULT_FEED = "significant_day"
VALID_FEEDS: Tuple[str, ...] = (
    "significant_day",
    "all_day",
    "significant_week",
    "all_week",
    "significant_month",
)

STRONG_QUAKE_INSTRUCTIONS: Tuple[str, ...] = (
    "Drop, cover, and hold on immediately",
    "Stay away from windows and heavy objects",
    "If outdoors, move to open area away from buildings",
    "After shaking stops, check for injuries and hazards",
    "Be prepared for aftershocks",
)
MINOR_QUAKE_INSTRUCTIONS: Tuple[str, ...] = (
    "Drop, cover, and hold on if you feel strong shaking",
    "Check for damage after shaking stops",
    "Be aware of potential aftershocks",
)


def magnitude_severity(magnitude: float) -> AlertSeverity:
    if magnitude >= 7:
        return AlertSeverity.EXTREME
    if magnitude >= 6:
        return AlertSeverity.HIGH
    if magnitude >= 4:
        return AlertSeverity.MODERATE
    return AlertSeverity.LOW


def earthquake_instructions(magnitude: float) -> List[str]:
    return list(STRONG_QUAKE_INSTRUCTIONS if magnitude >= 6 else MINOR_QUAKE_INSTRUCTIONS)


class _QuakeProperties(BaseModel):
    # 部分 all_* 订阅里 mag 可能为 null
    mag: Optional[float] = None
    title: str
    time: int


class _QuakeGeometry(BaseModel):
    coordinates: List[float] = Field(..., min_length=2)


class _QuakeFeature(BaseModel):
    id: str
    properties: _QuakeProperties
    geometry: _QuakeGeometry


class _FeedPayload(BaseModel):
    features: List[_QuakeFeature]


def feature_to_alert(feature: _QuakeFeature) -> DisasterAlert:
    magnitude = feature.properties.mag if feature.properties.mag is not None else 0.0
    longitude, latitude = feature.geometry.coordinates[0], feature.geometry.coordinates[1]
    return DisasterAlert(
        id=feature.id,
        type=DisasterType.EARTHQUAKE,
        severity=magnitude_severity(magnitude),
        title=feature.properties.title,
        description=f"Magnitude {magnitude:g} earthquake",
        location=Location(latitude=latitude, longitude=longitude),
        affected_area=GeographicBounds(
            north=latitude + 1,
            south=latitude - 1,
            east=longitude + 1,
            west=longitude - 1,
        ),
        start_time=datetime.fromtimestamp(feature.properties.time / 1000, tz=timezone.utc),
        instructions=earthquake_instructions(magnitude),
        source="USGS",
        is_active=True,
        urgency="immediate",
    )


class USGSClient:
    def __init__(
        self,
        *,
        base_url: str,
        connect_timeout: float = 10.0,
        read_timeout: float = 10.0,
        cache_ttl: float = 300.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or build_http_client(
            base_url, connect_timeout=connect_timeout, read_timeout=read_timeout
        )
        self._cache: TTLCache[List[DisasterAlert]] = TTLCache(cache_ttl)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch_feed(self, feed: str = DEFAULT_FEED) -> List[DisasterAlert]:
        """拉取摘要订阅并映射为预警列表；feed 须已校验。"""
        cached = await self._cache.get(feed)
        if cached is not None:
            logger.debug("earthquake_cache_hit", feed=feed)
            return list(cached)

        try:
            response = await self._client.get(f"/{feed}.geojson")
            response.raise_for_status()
            payload = _FeedPayload.model_validate(response.json())
            alerts = [feature_to_alert(feature) for feature in payload.features]
        except httpx.HTTPStatusError as exc:
            logger.error("earthquake_upstream_failed", feed=feed, status_code=exc.response.status_code)
            raise UpstreamServiceError(FAILURE_MESSAGE, provider=PROVIDER, info=str(exc)) from exc
        except (httpx.HTTPError, ValueError, ValidationError) as exc:
            logger.error("earthquake_upstream_failed", feed=feed, error=str(exc) or type(exc).__name__)
            raise UpstreamServiceError(FAILURE_MESSAGE, provider=PROVIDER, info=str(exc)) from exc

        logger.info("earthquake_feed_fetched", feed=feed, count=len(alerts))
        await self._cache.set(feed, alerts)
        return list(alerts)
