from __future__ import annotations

from types import SimpleNamespace

from fastapi import FastAPI
from fastapi.testclient import TestClient

from haven_resilience.api.deps import install_error_handlers
from haven_resilience.api.resilience import router as resilience_router
from haven_resilience.services import AdvisorService


def _llm(text: str) -> SimpleNamespace:
    async def create(**kwargs):
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])

    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def _make_client(llm=None) -> TestClient:
    app = FastAPI()
    install_error_handlers(app)
    app.include_router(resilience_router)
    app.state.advisor = AdvisorService(llm, model="test-model")
    return TestClient(app, raise_server_exceptions=False)


def test_defaults_when_ai_disabled() -> None:
    response = _make_client().get("/api/resilience", params={"lat": "40.7", "lon": "-74"})

    assert response.status_code == 200
    body = response.json()
    assert [item["id"] for item in body] == ["1", "2", "3"]
    assert body[0]["cost"] == {"min": 10000, "max": 25000, "currency": "USD"}
    assert body[2]["category"] == "water_conservation"


def test_ai_text_parsed() -> None:
    text = "1. Plant a rain garden\nAbsorbs storm runoff\nCost: $500\n2. Join a neighborhood CERT team\nTrain for emergencies"
    body = _make_client(_llm(text)).get("/api/resilience", params={"lat": "40.7", "lon": "-74"}).json()

    assert [item["title"] for item in body] == ["Plant a rain garden", "Join a neighborhood CERT team"]
    assert body[0]["timeframe"] == "3-6 months"
    assert body[0]["cost"]["min"] == 1000


def test_invalid_coordinates_rejected() -> None:
    response = _make_client().get("/api/resilience", params={"lat": "40.7"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid latitude or longitude parameters"}
