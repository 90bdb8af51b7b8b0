from __future__ import annotations

import asyncio
from typing import List

import pytest

from haven_resilience.errors import GeolocationError, UpstreamServiceError
from haven_resilience.location import ConfiguredPositionProvider, LocationSearch
from haven_resilience.models import Location, LocationSuggestion


class _RecordingGeocoder:
    def __init__(self, *, fail_reverse: bool = False) -> None:
        self.queries: List[str] = []
        self.fail_reverse = fail_reverse

    async def search(self, query: str) -> List[LocationSuggestion]:
        self.queries.append(query)
        return [LocationSuggestion(display_name=f"{query}, Somewhere", latitude=1.0, longitude=2.0)]

    async def reverse(self, latitude: float, longitude: float) -> Location:
        if self.fail_reverse:
            raise UpstreamServiceError("Failed to fetch location data", provider="nominatim")
        return Location(latitude=latitude, longitude=longitude, city="Springfield")


class _SlowPosition:
    async def current_position(self) -> Location:
        await asyncio.sleep(1)
        return Location(latitude=0.0, longitude=0.0)


def _search(geocoder: _RecordingGeocoder, position=None, **kwargs) -> LocationSearch:
    return LocationSearch(
        geocoder,
        position or ConfiguredPositionProvider(None, None),
        debounce_seconds=kwargs.pop("debounce_seconds", 0.05),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_rapid_searches_collapse_into_single_lookup() -> None:
    geocoder = _RecordingGeocoder()
    search = _search(geocoder)

    queries = ["Spr", "Spri", "Sprin", "Spring", "Springfield"]
    results = await asyncio.gather(*(search.search(q) for q in queries))

    assert geocoder.queries == ["Springfield"]
    assert results[:-1] == [[], [], [], []]
    assert results[-1][0].display_name == "Springfield, Somewhere"


@pytest.mark.asyncio
async def test_short_query_returns_empty_without_lookup() -> None:
    geocoder = _RecordingGeocoder()
    search = _search(geocoder)

    assert await search.search("LA") == []
    assert await search.lookup("ab") == []
    assert geocoder.queries == []


@pytest.mark.asyncio
async def test_lookup_is_not_debounced() -> None:
    geocoder = _RecordingGeocoder()
    search = _search(geocoder, debounce_seconds=10)
    suggestions = await search.lookup("Boston")
    assert geocoder.queries == ["Boston"]
    assert suggestions[0].to_location().address == "Boston, Somewhere"


@pytest.mark.asyncio
async def test_reverse_geocode_degrades_to_coordinates() -> None:
    search = _search(_RecordingGeocoder(fail_reverse=True))
    location = await search.reverse_geocode(12.5, -45.0)
    assert location == Location(latitude=12.5, longitude=-45.0)


@pytest.mark.asyncio
async def test_reverse_geocode_success() -> None:
    location = await _search(_RecordingGeocoder()).reverse_geocode(12.5, -45.0)
    assert location.city == "Springfield"


@pytest.mark.asyncio
async def test_device_location_timeout_raises() -> None:
    search = _search(_RecordingGeocoder(), _SlowPosition(), geolocation_timeout=0.01)
    with pytest.raises(GeolocationError) as excinfo:
        await search.current_device()
    assert excinfo.value.reason == "timeout"


@pytest.mark.asyncio
async def test_unconfigured_device_location_raises() -> None:
    search = _search(_RecordingGeocoder())
    with pytest.raises(GeolocationError) as excinfo:
        await search.current_device()
    assert excinfo.value.reason == "unavailable"


@pytest.mark.asyncio
async def test_configured_device_location() -> None:
    search = _search(_RecordingGeocoder(), ConfiguredPositionProvider(40.7, -74.0))
    location = await search.current_device()
    assert (location.latitude, location.longitude) == (40.7, -74.0)
