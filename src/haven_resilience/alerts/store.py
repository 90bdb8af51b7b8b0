"""
预警与会话状态容器

字段分两类：
    - 持久字段：user_location、user_preferences，reset() 不会清空，可通过
      persisted_snapshot()/restore() 落盘与恢复；
    - 会话字段：预警列表、天气、风险评估、附近资源、选中预警、加载/离线标记。

所有写操作串行化（RLock），读接口只返回副本，外部无法直接修改内部列表。
每次变更后按写入顺序通知订阅者。
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import structlog

from haven_resilience.geo import degree_distance
from haven_resilience.models import (
    AlertSeverity,
    DisasterAlert,
    EmergencyResource,
    Location,
    RiskAssessment,
    UserPreferences,
    WeatherData,
)

logger = structlog.get_logger(__name__)

CRITICAL_SEVERITIES = frozenset({AlertSeverity.HIGH, AlertSeverity.EXTREME})
# 约 100km，按经纬度平面距离粗筛
NEARBY_ALERT_DEGREES = 1.0

Subscriber = Callable[[str], None]
AlertPredicate = Callable[[DisasterAlert], bool]


class AlertStore:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._subscribers: List[Subscriber] = []

        self._user_location: Optional[Location] = None
        self._user_preferences: Optional[UserPreferences] = None

        self._alerts: List[DisasterAlert] = []
        self._selected: Optional[DisasterAlert] = None
        self._weather: Optional[WeatherData] = None
        self._risk_assessment: Optional[RiskAssessment] = None
        self._nearby_resources: List[EmergencyResource] = []
        self._is_loading = False
        self._is_online = True
        self._show_offline_message = False

    # ===== 订阅 =====

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """注册变更回调（参数为变更名），返回取消订阅函数。"""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, change: str) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(change)
            except Exception:  # noqa: BLE001
                logger.exception("alert_store_subscriber_failed", change=change)

    # ===== 读取 =====

    @property
    def alerts(self) -> Tuple[DisasterAlert, ...]:
        with self._lock:
            return tuple(self._alerts)

    @property
    def selected_alert(self) -> Optional[DisasterAlert]:
        with self._lock:
            return self._selected

    @property
    def user_location(self) -> Optional[Location]:
        with self._lock:
            return self._user_location

    @property
    def user_preferences(self) -> Optional[UserPreferences]:
        with self._lock:
            return self._user_preferences

    @property
    def weather(self) -> Optional[WeatherData]:
        with self._lock:
            return self._weather

    @property
    def risk_assessment(self) -> Optional[RiskAssessment]:
        with self._lock:
            return self._risk_assessment

    @property
    def nearby_resources(self) -> Tuple[EmergencyResource, ...]:
        with self._lock:
            return tuple(self._nearby_resources)

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def is_online(self) -> bool:
        return self._is_online

    @property
    def show_offline_message(self) -> bool:
        return self._show_offline_message

    def get(self, alert_id: str) -> Optional[DisasterAlert]:
        with self._lock:
            return next((alert for alert in self._alerts if alert.id == alert_id), None)

    def filtered_sorted(
        self,
        predicate: Optional[AlertPredicate] = None,
        key: Optional[Callable[[DisasterAlert], Any]] = None,
        *,
        reverse: bool = False,
    ) -> List[DisasterAlert]:
        """过滤并排序出新列表，不修改内部集合；排序稳定。"""
        with self._lock:
            view = list(self._alerts)
        if predicate is not None:
            view = [alert for alert in view if predicate(alert)]
        if key is not None:
            view.sort(key=key, reverse=reverse)
        return view

    def critical_alerts(self) -> List[DisasterAlert]:
        """severity 为 high/extreme 的预警，每次读取都基于当前状态重新计算。"""
        return self.filtered_sorted(lambda alert: alert.severity in CRITICAL_SEVERITIES)

    def location_based_alerts(self) -> List[DisasterAlert]:
        """用户位置 1 度范围内的预警；未设置位置时为空。"""
        with self._lock:
            origin = self._user_location
            alerts = list(self._alerts)
        if origin is None:
            return []
        return [alert for alert in alerts if degree_distance(origin, alert.location) < NEARBY_ALERT_DEGREES]

    # ===== 预警写入 =====

    def upsert(self, alert: DisasterAlert) -> None:
        """同 id 原位替换，否则追加；同 id 按调用顺序后写覆盖。"""
        with self._lock:
            for index, existing in enumerate(self._alerts):
                if existing.id == alert.id:
                    self._alerts[index] = alert
                    if self._selected is not None and self._selected.id == alert.id:
                        self._selected = alert
                    break
            else:
                self._alerts.append(alert)
        self._notify("alerts")

    def merge(self, alerts: Iterable[DisasterAlert]) -> int:
        """批量 upsert，只通知一次，返回新增条数。"""
        added = 0
        with self._lock:
            index_by_id = {alert.id: i for i, alert in enumerate(self._alerts)}
            for alert in alerts:
                position = index_by_id.get(alert.id)
                if position is None:
                    index_by_id[alert.id] = len(self._alerts)
                    self._alerts.append(alert)
                    added += 1
                else:
                    self._alerts[position] = alert
                    if self._selected is not None and self._selected.id == alert.id:
                        self._selected = alert
        self._notify("alerts")
        return added

    def set_active_alerts(self, alerts: Iterable[DisasterAlert]) -> None:
        with self._lock:
            self._alerts = list(alerts)
            if self._selected is not None and all(a.id != self._selected.id for a in self._alerts):
                self._selected = None
        self._notify("alerts")

    def remove(self, alert_id: str) -> bool:
        """删除预警；若删的是选中项，同时清空选中。"""
        with self._lock:
            before = len(self._alerts)
            self._alerts = [alert for alert in self._alerts if alert.id != alert_id]
            removed = len(self._alerts) != before
            if self._selected is not None and self._selected.id == alert_id:
                self._selected = None
        if removed:
            self._notify("alerts")
        return removed

    def select(self, alert_id: Optional[str]) -> Optional[DisasterAlert]:
        """按 id 选中预警，None 表示取消选中；id 不存在时抛 KeyError。"""
        with self._lock:
            if alert_id is None:
                self._selected = None
            else:
                alert = next((a for a in self._alerts if a.id == alert_id), None)
                if alert is None:
                    raise KeyError(alert_id)
                self._selected = alert
            selected = self._selected
        self._notify("selected_alert")
        return selected

    # ===== 其余会话字段 =====

    def set_weather(self, weather: Optional[WeatherData]) -> None:
        with self._lock:
            self._weather = weather
        self._notify("weather")

    def set_risk_assessment(self, assessment: Optional[RiskAssessment]) -> None:
        with self._lock:
            self._risk_assessment = assessment
        self._notify("risk_assessment")

    def set_nearby_resources(self, resources: Iterable[EmergencyResource]) -> None:
        with self._lock:
            self._nearby_resources = list(resources)
        self._notify("nearby_resources")

    def set_loading(self, is_loading: bool) -> None:
        self._is_loading = is_loading
        self._notify("loading")

    def set_online_status(self, is_online: bool) -> None:
        with self._lock:
            self._is_online = is_online
            self._show_offline_message = not is_online
        self._notify("online")

    def set_show_offline_message(self, show: bool) -> None:
        self._show_offline_message = show
        self._notify("online")

    # ===== 持久字段 =====

    def set_user_location(self, location: Optional[Location]) -> None:
        with self._lock:
            self._user_location = location
        self._notify("user_location")

    def set_user_preferences(self, preferences: Optional[UserPreferences]) -> None:
        with self._lock:
            self._user_preferences = preferences
        self._notify("user_preferences")

    def persisted_snapshot(self) -> Dict[str, Any]:
        """只导出跨会话保留的字段。"""
        with self._lock:
            location = self._user_location
            preferences = self._user_preferences
        return {
            "userLocation": location.model_dump(mode="json", by_alias=True) if location else None,
            "userPreferences": preferences.model_dump(mode="json", by_alias=True) if preferences else None,
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        raw_location = snapshot.get("userLocation")
        raw_preferences = snapshot.get("userPreferences")
        location = Location.model_validate(raw_location) if raw_location else None
        preferences = UserPreferences.model_validate(raw_preferences) if raw_preferences else None
        with self._lock:
            self._user_location = location
            self._user_preferences = preferences
        self._notify("restored")

    def reset(self) -> None:
        """清空全部会话字段，保留用户位置与偏好。"""
        with self._lock:
            self._alerts = []
            self._selected = None
            self._weather = None
            self._risk_assessment = None
            self._nearby_resources = []
            self._is_loading = False
            self._is_online = True
            self._show_offline_message = False
        logger.info("alert_store_reset")
        self._notify("reset")
