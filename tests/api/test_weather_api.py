from __future__ import annotations

import httpx
from fastapi import FastAPI
from fastapi.testclient import TestClient

from haven_resilience.api.deps import install_error_handlers
from haven_resilience.api.weather import router as weather_router
from haven_resilience.external import OpenWeatherClient

BASE_URL = "https://weather.test/data/2.5"

CURRENT_PAYLOAD = {
    "main": {"temp": 18.0, "humidity": 55, "pressure": 1009},
    "wind": {"speed": 2.0, "deg": 90},
    "visibility": 8000,
    "weather": [{"description": "few clouds", "icon": "02d"}],
}


def _forecast_payload() -> dict:
    return {
        "list": [
            {
                "dt_txt": f"2025-01-01 {hour:02d}:00:00",
                "main": {"temp_max": 15.0, "temp_min": 9.0},
                "weather": [{"description": "rain", "icon": "10d"}],
                "wind": {"speed": 5.5},
                "rain": {"3h": 0.5},
            }
            for hour in range(0, 24, 3)
        ]
    }


def _make_client(handler, api_key: str | None = "key") -> TestClient:
    app = FastAPI()
    install_error_handlers(app)
    app.include_router(weather_router)
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)
    app.state.weather_client = OpenWeatherClient(api_key=api_key, base_url=BASE_URL, http_client=http_client)
    return TestClient(app, raise_server_exceptions=False)


def _ok_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/forecast"):
        return httpx.Response(200, json=_forecast_payload())
    return httpx.Response(200, json=CURRENT_PAYLOAD)


def test_current_weather_camel_case() -> None:
    client = _make_client(_ok_handler)
    response = client.get("/api/weather", params={"lat": "34.05", "lon": "-118.25"})

    assert response.status_code == 200
    body = response.json()
    assert body["temperature"] == 18.0
    assert body["windSpeed"] == 2.0
    assert body["windDirection"] == 90
    assert body["visibility"] == 8.0
    assert body["uvIndex"] == 0.0


def test_forecast_returns_five_entries() -> None:
    client = _make_client(_ok_handler)
    response = client.get("/api/weather", params={"lat": "34.05", "lon": "-118.25", "type": "forecast"})

    assert response.status_code == 200
    body = response.json()
    assert len(body) == 5
    assert body[0]["precipitation"] == 0.5
    assert body[0]["windSpeed"] == 5.5


def test_missing_coordinates_rejected() -> None:
    response = _make_client(_ok_handler).get("/api/weather", params={"lat": "34.05"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid latitude or longitude parameters"}


def test_out_of_range_coordinates_rejected() -> None:
    response = _make_client(_ok_handler).get("/api/weather", params={"lat": "91", "lon": "0"})
    assert response.status_code == 400
    assert response.json() == {"error": "Coordinates out of valid range"}


def test_invalid_type_rejected() -> None:
    response = _make_client(_ok_handler).get("/api/weather", params={"lat": "1", "lon": "1", "type": "hourly"})
    assert response.status_code == 400
    assert response.json() == {"error": 'Type must be either "current" or "forecast"'}


def test_upstream_failure_returns_500() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    response = _make_client(handler).get("/api/weather", params={"lat": "1", "lon": "1"})
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch weather data"}


def test_missing_api_key_returns_500() -> None:
    response = _make_client(_ok_handler, api_key=None).get(
        "/api/weather", params={"lat": "1", "lon": "1", "type": "forecast"}
    )
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch forecast data"}
