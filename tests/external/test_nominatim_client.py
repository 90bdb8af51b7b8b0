from __future__ import annotations

import httpx
import pytest

from haven_resilience.errors import UpstreamServiceError
from haven_resilience.external import NominatimClient

BASE_URL = "https://geo.test"


def _client(handler) -> NominatimClient:
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url=BASE_URL,
        headers={"User-Agent": "haven-tests"},
    )
    return NominatimClient(base_url=BASE_URL, user_agent="haven-tests", http_client=http_client)


@pytest.mark.asyncio
async def test_search_maps_places_and_skips_invalid() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/search"
        assert request.url.params["q"] == "Springfield"
        assert request.url.params["format"] == "json"
        assert request.url.params["limit"] == "5"
        assert request.url.params["addressdetails"] == "1"
        return httpx.Response(
            200,
            json=[
                {
                    "display_name": "Springfield, Illinois, United States",
                    "lat": "39.7990",
                    "lon": "-89.6440",
                    "address": {"city": "Springfield", "state": "Illinois", "country": "United States"},
                },
                {"display_name": "Broken entry", "lat": "not-a-number", "lon": "1"},
                {
                    "display_name": "Springfield, Vermont",
                    "lat": "43.298",
                    "lon": "-72.482",
                    "address": {"town": "Springfield", "state": "Vermont"},
                },
            ],
        )

    suggestions = await _client(handler).search("Springfield")

    assert len(suggestions) == 2
    first, second = suggestions
    assert first.latitude == pytest.approx(39.799)
    assert first.longitude == pytest.approx(-89.644)
    assert first.city == "Springfield"
    assert first.country == "United States"
    assert second.city == "Springfield"
    assert second.country is None


@pytest.mark.asyncio
async def test_reverse_with_address() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/reverse"
        return httpx.Response(
            200,
            json={
                "display_name": "1 Main St, Smallville, Kansas",
                "address": {"village": "Smallville", "state": "Kansas", "country": "United States"},
            },
        )

    location = await _client(handler).reverse(39.0, -98.0)
    assert (location.latitude, location.longitude) == (39.0, -98.0)
    assert location.city == "Smallville"
    assert location.address == "1 Main St, Smallville, Kansas"


@pytest.mark.asyncio
async def test_reverse_without_address_returns_coordinates() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "Unable to geocode"})

    location = await _client(handler).reverse(0.0, -150.0)
    assert location.city is None
    assert location.address is None


@pytest.mark.asyncio
async def test_http_error_raises_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, text="rate limited")

    with pytest.raises(UpstreamServiceError) as excinfo:
        await _client(handler).search("Springfield")
    assert excinfo.value.message == "Failed to fetch location data"
    assert excinfo.value.provider == "nominatim"


@pytest.mark.asyncio
async def test_non_list_search_payload_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"unexpected": True})

    with pytest.raises(UpstreamServiceError):
        await _client(handler).search("Springfield")
