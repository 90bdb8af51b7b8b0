"""
预警与会话状态接口

AlertStore 的 HTTP 外壳：列表过滤排序、高危预警、附近预警、手动 upsert/删除、
选中项，以及会话级的用户位置与 reset。
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from haven_resilience.alerts import AlertStore
from haven_resilience.api.deps import read_json_object, require_state, to_json
from haven_resilience.errors import RequestValidationError
from haven_resilience.geo import require_numeric_coordinates
from haven_resilience.models import AlertSeverity, DisasterAlert, DisasterType, Location

router = APIRouter(prefix="/api", tags=["alerts"])

SEVERITY_RANK: Dict[AlertSeverity, int] = {
    AlertSeverity.LOW: 0,
    AlertSeverity.MODERATE: 1,
    AlertSeverity.HIGH: 2,
    AlertSeverity.EXTREME: 3,
}
SORT_KEYS: Dict[str, Callable[[DisasterAlert], Any]] = {
    "newest": lambda alert: alert.start_time,
    "oldest": lambda alert: alert.start_time,
    "severity": lambda alert: SEVERITY_RANK[alert.severity],
}
_DESCENDING_SORTS = frozenset({"newest", "severity"})


def _store(request: Request) -> AlertStore:
    return require_state(request, "alert_store")


def _not_found(alert_id: str) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": f"Alert not found: {alert_id}"})


def _parse_enum(enum_cls: Any, raw: Optional[str], label: str) -> Any:
    if not raw:
        return None
    try:
        return enum_cls(raw)
    except ValueError:
        valid = ", ".join(item.value for item in enum_cls)
        raise RequestValidationError(f"Invalid {label}. Must be one of: {valid}") from None


@router.get("/alerts")
async def list_alerts(
    request: Request,
    severity: Optional[str] = None,
    type_: Optional[str] = Query(None, alias="type"),
    sort: str = "newest",
) -> Any:
    wanted_severity = _parse_enum(AlertSeverity, severity, "severity")
    wanted_type = _parse_enum(DisasterType, type_, "alert type")
    if sort not in SORT_KEYS:
        raise RequestValidationError(f"Invalid sort. Must be one of: {', '.join(SORT_KEYS)}")

    def predicate(alert: DisasterAlert) -> bool:
        if wanted_severity is not None and alert.severity != wanted_severity:
            return False
        return wanted_type is None or alert.type == wanted_type

    alerts = _store(request).filtered_sorted(predicate, SORT_KEYS[sort], reverse=sort in _DESCENDING_SORTS)
    return to_json(alerts)


@router.get("/alerts/critical")
async def list_critical_alerts(request: Request) -> Any:
    return to_json(_store(request).critical_alerts())


@router.get("/alerts/nearby")
async def list_nearby_alerts(request: Request) -> Any:
    """用户位置附近（约 100km）的预警；未设置位置时为空列表。"""
    return to_json(_store(request).location_based_alerts())


@router.post("/alerts")
async def upsert_alert(request: Request) -> Any:
    body = await read_json_object(request)
    try:
        alert = DisasterAlert.model_validate(body)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(part) for part in err["loc"]) for err in exc.errors())
        raise RequestValidationError(f"Invalid alert payload: {fields}") from None
    _store(request).upsert(alert)
    return to_json(alert)


@router.delete("/alerts/{alert_id}")
async def delete_alert(alert_id: str, request: Request) -> Any:
    if not _store(request).remove(alert_id):
        return _not_found(alert_id)
    return {"removed": alert_id}


@router.get("/alerts/selected")
async def get_selected_alert(request: Request) -> Any:
    return to_json(_store(request).selected_alert)


@router.put("/alerts/selected")
async def select_alert(request: Request) -> Any:
    """body: {"id": "<alert id>"}，id 为 null 时取消选中。"""
    body = await read_json_object(request)
    alert_id = body.get("id")
    if alert_id is not None and not isinstance(alert_id, str):
        raise RequestValidationError("Alert id must be a string or null")
    try:
        selected = _store(request).select(alert_id)
    except KeyError:
        return _not_found(str(alert_id))
    return to_json(selected)


@router.get("/session")
async def get_session(request: Request) -> Dict[str, Any]:
    store = _store(request)
    return {
        **store.persisted_snapshot(),
        "isOnline": store.is_online,
        "showOfflineMessage": store.show_offline_message,
        "alertCount": len(store.alerts),
        "selectedAlertId": store.selected_alert.id if store.selected_alert else None,
    }


@router.put("/session/location")
async def set_session_location(request: Request) -> Any:
    body = await read_json_object(request)
    point = require_numeric_coordinates(body.get("latitude"), body.get("longitude"))
    location = Location(
        latitude=point.latitude,
        longitude=point.longitude,
        city=body.get("city"),
        state=body.get("state"),
        country=body.get("country"),
        address=body.get("address"),
    )
    _store(request).set_user_location(location)
    return to_json(location)


@router.post("/session/reset")
async def reset_session(request: Request) -> Dict[str, Any]:
    """清空会话数据，保留用户位置与偏好。"""
    store = _store(request)
    store.reset()
    return store.persisted_snapshot()
