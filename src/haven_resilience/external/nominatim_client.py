from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from haven_resilience.errors import UpstreamServiceError
from haven_resilience.external.base import build_http_client
from haven_resilience.models import Location, LocationSuggestion

logger = structlog.get_logger(__name__)

PROVIDER = "nominatim"
FAILURE_MESSAGE = "Failed to fetch location data"
SEARCH_LIMIT = 5


class _Address(BaseModel):
    city: Optional[str] = None
    town: Optional[str] = None
    village: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None

    @property
    def locality(self) -> Optional[str]:
        return self.city or self.town or self.village


class _Place(BaseModel):
    display_name: str
    lat: float
    lon: float
    address: Optional[_Address] = None


class _ReversePlace(BaseModel):
    display_name: Optional[str] = None
    address: Optional[_Address] = None


class NominatimClient:
    """OpenStreetMap Nominatim 地理编码客户端，使用方必须提供 User-Agent。"""

    def __init__(
        self,
        *,
        base_url: str,
        user_agent: str,
        connect_timeout: float = 10.0,
        read_timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or build_http_client(
            base_url,
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            headers={"User-Agent": user_agent},
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def search(self, query: str, *, limit: int = SEARCH_LIMIT) -> List[LocationSuggestion]:
        params = {"format": "json", "q": query, "limit": limit, "addressdetails": 1}
        data = await self._request("/search", params)
        if not isinstance(data, list):
            raise UpstreamServiceError(FAILURE_MESSAGE, provider=PROVIDER, info="search payload is not a list")

        suggestions: List[LocationSuggestion] = []
        for raw in data:
            try:
                place = _Place.model_validate(raw)
            except ValidationError as exc:
                logger.warning("geocode_result_skipped", error=str(exc))
                continue
            address = place.address or _Address()
            suggestions.append(
                LocationSuggestion(
                    display_name=place.display_name,
                    latitude=place.lat,
                    longitude=place.lon,
                    city=address.locality,
                    state=address.state,
                    country=address.country,
                )
            )
        return suggestions

    async def reverse(self, latitude: float, longitude: float) -> Location:
        params = {"format": "json", "lat": latitude, "lon": longitude, "addressdetails": 1}
        data = await self._request("/reverse", params)
        try:
            place = _ReversePlace.model_validate(data)
        except ValidationError as exc:
            raise UpstreamServiceError(FAILURE_MESSAGE, provider=PROVIDER, info=str(exc)) from exc

        if place.address is None:
            return Location(latitude=latitude, longitude=longitude)
        return Location(
            latitude=latitude,
            longitude=longitude,
            city=place.address.locality,
            state=place.address.state,
            country=place.address.country,
            address=place.display_name,
        )

    async def _request(self, path: str, params: Dict[str, Any]) -> Any:
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("geocode_upstream_failed", path=path, status_code=exc.response.status_code)
            raise UpstreamServiceError(FAILURE_MESSAGE, provider=PROVIDER, info=str(exc)) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("geocode_upstream_failed", path=path, error=str(exc) or type(exc).__name__)
            raise UpstreamServiceError(FAILURE_MESSAGE, provider=PROVIDER, info=str(exc)) from exc
