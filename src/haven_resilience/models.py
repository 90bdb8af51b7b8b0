"""领域数据模型（Pydantic），对外序列化统一使用 camelCase 字段名。"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """内部使用 snake_case，JSON 输入输出使用 camelCase。"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================
# 枚举
# =============================


class DisasterType(str, Enum):
    EARTHQUAKE = "earthquake"
    FLOOD = "flood"
    HURRICANE = "hurricane"
    TORNADO = "tornado"
    WILDFIRE = "wildfire"
    HEATWAVE = "heatwave"
    BLIZZARD = "blizzard"
    TSUNAMI = "tsunami"
    VOLCANIC = "volcanic"
    DROUGHT = "drought"
    SEVERE_WEATHER = "severe_weather"


class AlertSeverity(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    EXTREME = "extreme"


class ResourceType(str, Enum):
    SHELTER = "shelter"
    HOSPITAL = "hospital"
    FIRE_STATION = "fire_station"
    POLICE_STATION = "police_station"
    EVACUATION_CENTER = "evacuation_center"
    SUPPLY_DEPOT = "supply_depot"
    COMMUNICATION_HUB = "communication_hub"


class ResilienceCategory(str, Enum):
    ENERGY_EFFICIENCY = "energy_efficiency"
    WATER_CONSERVATION = "water_conservation"
    SUSTAINABLE_TRANSPORT = "sustainable_transport"
    WASTE_REDUCTION = "waste_reduction"
    GREEN_INFRASTRUCTURE = "green_infrastructure"
    COMMUNITY_RESILIENCE = "community_resilience"
    EMERGENCY_PREPAREDNESS = "emergency_preparedness"


AlertUrgency = Literal["immediate", "expected", "future"]
PlanPhase = Literal["before", "during", "after"]
ActionPriority = Literal["low", "medium", "high", "critical"]


# =============================
# 位置
# =============================


class Location(CamelModel):
    """经纬度位置，构造后不可变。"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    latitude: float = Field(..., ge=-90.0, le=90.0, description="纬度")
    longitude: float = Field(..., ge=-180.0, le=180.0, description="经度")
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    address: Optional[str] = None

    def as_query(self) -> str:
        """拼成 "lat, lon" 形式，用作 AI 提示词里的位置描述。"""
        return f"{self.latitude}, {self.longitude}"


class GeographicBounds(CamelModel):
    north: float
    south: float
    east: float
    west: float

    def contains(self, location: Location) -> bool:
        return (
            self.south <= location.latitude <= self.north
            and self.west <= location.longitude <= self.east
        )


class LocationSuggestion(CamelModel):
    """地理编码候选项。"""

    display_name: str
    latitude: float
    longitude: float
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None

    def to_location(self) -> Location:
        return Location(
            latitude=self.latitude,
            longitude=self.longitude,
            city=self.city,
            state=self.state,
            country=self.country,
            address=self.display_name,
        )


# =============================
# 预警
# =============================


class DisasterAlert(CamelModel):
    id: str = Field(..., min_length=1)
    type: DisasterType
    severity: AlertSeverity
    title: str
    description: str
    location: Location
    affected_area: GeographicBounds
    start_time: datetime
    end_time: Optional[datetime] = None
    instructions: List[str] = Field(default_factory=list)
    source: str
    is_active: bool = True
    urgency: AlertUrgency = "immediate"


# =============================
# 风险评估
# =============================


class DisasterRisk(CamelModel):
    type: DisasterType
    probability: float = Field(..., ge=0.0, le=100.0)
    impact: float = Field(..., ge=0.0, le=100.0)
    risk_score: float = Field(..., ge=0.0, le=100.0)
    factors: List[str]
    mitigation_strategies: List[str]


class RiskAssessment(CamelModel):
    location: Location
    overall_risk: float = Field(..., ge=0.0, le=100.0)
    risk_level: Literal["Low", "Moderate", "High", "Extreme"]
    risks: List[DisasterRisk]
    recommendations: List[str]
    last_updated: datetime = Field(default_factory=utc_now)


# =============================
# 应急资源
# =============================


class ContactInfo(CamelModel):
    phone: str
    email: Optional[str] = None
    website: Optional[str] = None
    emergency_number: Optional[str] = None


class ResourceAvailability(CamelModel):
    is_open: bool
    capacity: int
    current_occupancy: int
    last_updated: datetime


class OperatingHours(CamelModel):
    monday: str = "24/7"
    tuesday: str = "24/7"
    wednesday: str = "24/7"
    thursday: str = "24/7"
    friday: str = "24/7"
    saturday: str = "24/7"
    sunday: str = "24/7"
    is_always_open: bool = True


class AccessibilityInfo(CamelModel):
    wheelchair_accessible: bool
    has_ramp: bool
    has_elevator: bool
    sign_language_support: bool
    braille_support: bool


class EmergencyResource(CamelModel):
    id: str
    name: str
    type: ResourceType
    location: Location
    contact: ContactInfo
    capacity: Optional[int] = None
    availability: ResourceAvailability
    services: List[str]
    operating_hours: OperatingHours = Field(default_factory=OperatingHours)
    accessibility: AccessibilityInfo


# =============================
# 应急预案
# =============================


class EmergencyAction(CamelModel):
    id: str
    description: str
    is_completed: bool = False
    priority: ActionPriority
    category: str
    estimated_time: str
    required_resources: List[str] = Field(default_factory=list)


class EmergencyPhase(CamelModel):
    phase: PlanPhase
    title: str
    actions: List[EmergencyAction]
    timeline: str
    priority: int


class EmergencyPlan(CamelModel):
    id: str
    disaster_type: DisasterType
    phases: List[EmergencyPhase]
    location: Optional[Location] = None
    last_updated: datetime = Field(default_factory=utc_now)


# =============================
# 气候韧性建议
# =============================


class CostRange(CamelModel):
    min: float
    max: float
    currency: str = "USD"


class ResourceLink(CamelModel):
    title: str
    url: str
    type: Literal["guide", "video", "tool", "article"]


class ResilienceRecommendation(CamelModel):
    id: str
    title: str
    description: str
    category: ResilienceCategory
    difficulty: Literal["easy", "moderate", "hard"]
    impact: Literal["low", "medium", "high"]
    timeframe: str
    cost: CostRange
    steps: List[str]
    benefits: List[str]
    resources: List[ResourceLink] = Field(default_factory=list)


# =============================
# 天气
# =============================


class WeatherData(CamelModel):
    temperature: float
    humidity: float
    pressure: float
    wind_speed: float
    wind_direction: float
    visibility: float = Field(..., description="能见度（公里）")
    uv_index: float = 0.0
    description: str
    icon: str
    timestamp: datetime = Field(default_factory=utc_now)


class WeatherForecast(CamelModel):
    date: str
    high: float
    low: float
    description: str
    icon: str
    precipitation: float = 0.0
    wind_speed: float


# =============================
# 用户偏好（会话持久化边界内的字段）
# =============================


class NotificationSettings(CamelModel):
    email: bool = False
    sms: bool = False
    push: bool = True
    emergency: bool = True
    severity: List[AlertSeverity] = Field(
        default_factory=lambda: [AlertSeverity.HIGH, AlertSeverity.EXTREME]
    )


class UserPreferences(CamelModel):
    location: Optional[Location] = None
    language: str = "en"
    units: Literal["metric", "imperial"] = "metric"
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    alert_types: List[DisasterType] = Field(default_factory=list)
    theme: Literal["light", "dark", "auto"] = "auto"
