"""
地点搜索

- search(): 300ms 防抖，新查询会让尚未发出的旧查询失效；
  已发出的请求不取消，但返回时若已被新查询取代则丢弃结果。
- reverse_geocode(): 尽力而为，上游失败时只返回原始坐标。
- current_device(): 设备定位，超时或失败抛 GeolocationError，不回退默认位置。
"""

from __future__ import annotations

import asyncio
from typing import List, Optional, Protocol

import structlog

from haven_resilience.errors import GeolocationError, UpstreamServiceError
from haven_resilience.models import Location, LocationSuggestion

logger = structlog.get_logger(__name__)

MIN_QUERY_LENGTH = 3


class Geocoder(Protocol):
    async def search(self, query: str) -> List[LocationSuggestion]: ...

    async def reverse(self, latitude: float, longitude: float) -> Location: ...


class DevicePositionProvider(Protocol):
    async def current_position(self) -> Location: ...


class ConfiguredPositionProvider:
    """从配置读取固定设备坐标；未配置时视为定位不可用。"""

    def __init__(self, latitude: Optional[float], longitude: Optional[float]) -> None:
        self._latitude = latitude
        self._longitude = longitude

    async def current_position(self) -> Location:
        if self._latitude is None or self._longitude is None:
            raise GeolocationError("Device location is not available", reason="unavailable")
        return Location(latitude=self._latitude, longitude=self._longitude)


class LocationSearch:
    def __init__(
        self,
        geocoder: Geocoder,
        position_provider: DevicePositionProvider,
        *,
        debounce_seconds: float = 0.3,
        geolocation_timeout: float = 10.0,
    ) -> None:
        self._geocoder = geocoder
        self._position_provider = position_provider
        self._debounce = debounce_seconds
        self._geolocation_timeout = geolocation_timeout
        # 每次调用递增，用于判断请求是否已被后续查询取代
        self._generation = 0

    async def search(self, query: str) -> List[LocationSuggestion]:
        """防抖搜索；被取代或查询过短时返回空列表。"""
        self._generation += 1
        generation = self._generation

        if len(query) < MIN_QUERY_LENGTH:
            return []

        await asyncio.sleep(self._debounce)
        if generation != self._generation:
            logger.debug("location_search_superseded", stage="debounce")
            return []

        suggestions = await self.lookup(query)
        if generation != self._generation:
            logger.debug("location_search_superseded", stage="response")
            return []
        return suggestions

    async def lookup(self, query: str) -> List[LocationSuggestion]:
        """不经防抖的单次查询；上游失败时向上抛 UpstreamServiceError。"""
        if len(query) < MIN_QUERY_LENGTH:
            return []
        suggestions = await self._geocoder.search(query)
        logger.info("location_search_completed", query_length=len(query), results=len(suggestions))
        return suggestions

    async def reverse_geocode(self, latitude: float, longitude: float) -> Location:
        try:
            return await self._geocoder.reverse(latitude, longitude)
        except UpstreamServiceError as exc:
            logger.warning("reverse_geocode_degraded", provider=exc.provider, info=exc.info)
            return Location(latitude=latitude, longitude=longitude)

    async def current_device(self) -> Location:
        try:
            return await asyncio.wait_for(
                self._position_provider.current_position(),
                timeout=self._geolocation_timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.warning("device_location_timeout", timeout_seconds=self._geolocation_timeout)
            raise GeolocationError("Device location request timed out", reason="timeout") from exc
        except GeolocationError as exc:
            logger.warning("device_location_failed", reason=exc.reason)
            raise
