from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from haven_resilience.api.deps import install_error_handlers
from haven_resilience.api.emergency_plan import router as plan_router
from haven_resilience.services import AdvisorService

AI_PLAN = """Preparation before the storm:
- Board up windows and secure outdoor furniture
Response while the storm passes:
- Shelter in an interior room away from windows
Phase 3, recovery after the storm:
- Photograph damage for insurance claims
"""


def _llm(result) -> SimpleNamespace:
    async def create(**kwargs):
        if isinstance(result, Exception):
            raise result
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=result))])

    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def _make_client(llm=None) -> TestClient:
    app = FastAPI()
    install_error_handlers(app)
    app.include_router(plan_router)
    app.state.advisor = AdvisorService(llm, model="test-model")
    return TestClient(app, raise_server_exceptions=False)


VALID_BODY = {"disasterType": "hurricane", "latitude": 25.76, "longitude": -80.19}


def test_template_returned_when_ai_disabled() -> None:
    response = _make_client().post("/api/emergency-plan", json=VALID_BODY)

    assert response.status_code == 200
    body = response.json()
    assert body["id"].startswith("plan-")
    assert body["disasterType"] == "hurricane"
    assert [phase["phase"] for phase in body["phases"]] == ["before", "during", "after"]
    assert body["phases"][0]["actions"][0]["requiredResources"][0] == "Food"
    assert body["location"]["latitude"] == 25.76


def test_template_returned_when_ai_fails() -> None:
    response = _make_client(_llm(RuntimeError("quota exceeded"))).post("/api/emergency-plan", json=VALID_BODY)
    assert response.status_code == 200
    assert [phase["title"] for phase in response.json()["phases"]] == [
        "Preparation Phase",
        "Response Phase",
        "Recovery Phase",
    ]


def test_ai_plan_is_parsed() -> None:
    response = _make_client(_llm(AI_PLAN)).post("/api/emergency-plan", json=VALID_BODY)

    body = response.json()
    phases = body["phases"]
    assert [phase["title"] for phase in phases] == ["Preparation Phase", "Response Phase", "Recovery Phase"]
    assert phases[0]["actions"][0]["description"] == "Board up windows and secure outdoor furniture"
    assert phases[1]["actions"][0]["priority"] == "critical"
    assert phases[1]["actions"][0]["id"] == "2-1"
    assert phases[2]["actions"][0]["isCompleted"] is False


@pytest.mark.parametrize(
    "body",
    [
        {"latitude": 1, "longitude": 1},
        {"disasterType": "flood", "longitude": 1},
        {"disasterType": "flood", "latitude": "1", "longitude": 1},
        {"disasterType": "", "latitude": 1, "longitude": 1},
    ],
)
def test_missing_parameters_rejected(body: dict) -> None:
    response = _make_client().post("/api/emergency-plan", json=body)
    assert response.status_code == 400
    assert response.json() == {"error": "Missing required parameters: disasterType, latitude, longitude"}


def test_invalid_disaster_type_rejected() -> None:
    response = _make_client().post("/api/emergency-plan", json={**VALID_BODY, "disasterType": "meteor"})
    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid disaster type. Must be one of: earthquake, flood")


def test_out_of_range_coordinates_rejected() -> None:
    response = _make_client().post("/api/emergency-plan", json={**VALID_BODY, "latitude": -91})
    assert response.status_code == 400
    assert response.json() == {"error": "Coordinates out of valid range"}


def test_non_object_body_returns_500() -> None:
    response = _make_client().post("/api/emergency-plan", json=["hurricane"])
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_oversized_integer_coordinates_rejected() -> None:
    response = _make_client().post("/api/emergency-plan", json={**VALID_BODY, "latitude": 10**400})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid latitude or longitude parameters"}
