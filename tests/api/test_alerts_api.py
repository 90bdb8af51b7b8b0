from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from haven_resilience.alerts import AlertStore
from haven_resilience.api.alerts import router as alerts_router
from haven_resilience.api.deps import install_error_handlers


def _alert_body(alert_id: str, *, severity: str = "moderate", start: str = "2025-01-01T00:00:00Z", **extra) -> dict:
    body = {
        "id": alert_id,
        "type": "earthquake",
        "severity": severity,
        "title": f"Alert {alert_id}",
        "description": "Magnitude 4.0 earthquake",
        "location": {"latitude": 34.2, "longitude": -118.4},
        "affectedArea": {"north": 35.2, "south": 33.2, "east": -117.4, "west": -119.4},
        "startTime": start,
        "source": "manual",
    }
    body.update(extra)
    return body


def _make_client() -> tuple[TestClient, AlertStore]:
    app = FastAPI()
    install_error_handlers(app)
    app.include_router(alerts_router)
    store = AlertStore()
    app.state.alert_store = store
    return TestClient(app, raise_server_exceptions=False), store


def _seed(client: TestClient) -> None:
    client.post("/api/alerts", json=_alert_body("a", severity="low", start="2025-01-01T00:00:00Z"))
    client.post("/api/alerts", json=_alert_body("b", severity="extreme", start="2025-01-03T00:00:00Z"))
    client.post(
        "/api/alerts",
        json=_alert_body("c", severity="high", start="2025-01-02T00:00:00Z", type="flood"),
    )


def test_upsert_and_list_newest_first() -> None:
    client, store = _make_client()
    _seed(client)

    response = client.get("/api/alerts")
    assert response.status_code == 200
    assert [alert["id"] for alert in response.json()] == ["b", "c", "a"]
    assert [alert.id for alert in store.alerts] == ["a", "b", "c"]


def test_upsert_replaces_existing() -> None:
    client, store = _make_client()
    _seed(client)
    response = client.post("/api/alerts", json=_alert_body("a", title="Updated"))

    assert response.status_code == 200
    assert response.json()["title"] == "Updated"
    assert len(store.alerts) == 3
    assert store.get("a").title == "Updated"


def test_sort_and_filters() -> None:
    client, _ = _make_client()
    _seed(client)

    oldest = client.get("/api/alerts", params={"sort": "oldest"}).json()
    assert [alert["id"] for alert in oldest] == ["a", "c", "b"]

    by_severity = client.get("/api/alerts", params={"sort": "severity"}).json()
    assert [alert["id"] for alert in by_severity] == ["b", "c", "a"]

    floods = client.get("/api/alerts", params={"type": "flood"}).json()
    assert [alert["id"] for alert in floods] == ["c"]

    extreme = client.get("/api/alerts", params={"severity": "extreme"}).json()
    assert [alert["id"] for alert in extreme] == ["b"]


def test_invalid_query_values_rejected() -> None:
    client, _ = _make_client()
    assert client.get("/api/alerts", params={"severity": "severe"}).json() == {
        "error": "Invalid severity. Must be one of: low, moderate, high, extreme"
    }
    assert client.get("/api/alerts", params={"sort": "random"}).json() == {
        "error": "Invalid sort. Must be one of: newest, oldest, severity"
    }
    assert client.get("/api/alerts", params={"type": "meteor"}).status_code == 400


def test_invalid_alert_payload_rejected() -> None:
    client, store = _make_client()
    response = client.post("/api/alerts", json={"id": "x", "type": "earthquake"})
    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid alert payload: ")
    assert "severity" in response.json()["error"]
    assert store.alerts == ()


def test_critical_alerts() -> None:
    client, _ = _make_client()
    _seed(client)
    assert [alert["id"] for alert in client.get("/api/alerts/critical").json()] == ["b", "c"]


def test_select_and_delete_clears_selection() -> None:
    client, store = _make_client()
    _seed(client)

    response = client.put("/api/alerts/selected", json={"id": "b"})
    assert response.status_code == 200
    assert client.get("/api/alerts/selected").json()["id"] == "b"

    assert client.delete("/api/alerts/b").json() == {"removed": "b"}
    assert client.get("/api/alerts/selected").json() is None
    assert store.selected_alert is None


def test_unknown_alert_returns_404() -> None:
    client, _ = _make_client()
    response = client.delete("/api/alerts/missing")
    assert response.status_code == 404
    assert response.json() == {"error": "Alert not found: missing"}
    assert client.put("/api/alerts/selected", json={"id": "missing"}).status_code == 404


def test_clear_selection_with_null() -> None:
    client, store = _make_client()
    _seed(client)
    client.put("/api/alerts/selected", json={"id": "a"})
    response = client.put("/api/alerts/selected", json={"id": None})
    assert response.status_code == 200
    assert response.json() is None
    assert store.selected_alert is None


def test_nearby_alerts_follow_session_location() -> None:
    client, _ = _make_client()
    _seed(client)
    client.post(
        "/api/alerts",
        json=_alert_body("far", location={"latitude": 60.0, "longitude": 10.0}),
    )

    assert client.get("/api/alerts/nearby").json() == []

    response = client.put(
        "/api/session/location",
        json={"latitude": 34.05, "longitude": -118.25, "city": "Los Angeles"},
    )
    assert response.status_code == 200
    assert response.json()["city"] == "Los Angeles"

    nearby = client.get("/api/alerts/nearby").json()
    assert sorted(alert["id"] for alert in nearby) == ["a", "b", "c"]


def test_session_reset_keeps_user_location() -> None:
    client, store = _make_client()
    _seed(client)
    client.put("/api/session/location", json={"latitude": 1.0, "longitude": 2.0})
    client.put("/api/alerts/selected", json={"id": "a"})

    session = client.get("/api/session").json()
    assert session["alertCount"] == 3
    assert session["selectedAlertId"] == "a"
    assert session["isOnline"] is True

    snapshot = client.post("/api/session/reset").json()
    assert snapshot["userLocation"]["latitude"] == 1.0
    assert store.alerts == ()
    assert client.get("/api/session").json()["selectedAlertId"] is None


def test_session_location_requires_numbers() -> None:
    client, _ = _make_client()
    response = client.put("/api/session/location", json={"latitude": "1", "longitude": 2})
    assert response.status_code == 400


def test_session_location_rejects_oversized_integers() -> None:
    client, _ = _make_client()
    response = client.put("/api/session/location", json={"latitude": 0, "longitude": 10**400})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid latitude or longitude parameters"}
