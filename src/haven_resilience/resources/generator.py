"""
模拟应急资源生成器

在查询点半径 80% 范围内随机撒 3-8 个资源点，按距离升序返回。
随机源可注入（random.Random），测试时传入固定种子即可得到确定结果。
"""

from __future__ import annotations

import math
import random
import re
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

import structlog

from haven_resilience.geo import distance, offset
from haven_resilience.models import (
    AccessibilityInfo,
    ContactInfo,
    EmergencyResource,
    Location,
    OperatingHours,
    ResourceAvailability,
    ResourceType,
    utc_now,
)

logger = structlog.get_logger(__name__)

MIN_RESOURCES = 3
MAX_RESOURCES = 8
# 保持在半径 80% 以内，结果不会落在边界上
PLACEMENT_RADIUS_FRACTION = 0.8

RESOURCE_NAMES: Dict[ResourceType, Tuple[str, ...]] = {
    ResourceType.SHELTER: (
        "City Emergency Shelter",
        "Community Safe House",
        "Red Cross Shelter",
        "Municipal Evacuation Center",
    ),
    ResourceType.HOSPITAL: (
        "General Hospital",
        "Medical Center",
        "Regional Health Clinic",
        "Emergency Care Facility",
    ),
    ResourceType.FIRE_STATION: ("Fire Station #", "Fire Department", "Emergency Response Station"),
    ResourceType.POLICE_STATION: ("Police Precinct", "Law Enforcement Center", "Public Safety Station"),
    ResourceType.EVACUATION_CENTER: ("Evacuation Center", "Emergency Assembly Point", "Safe Haven Center"),
    ResourceType.SUPPLY_DEPOT: ("Emergency Supply Depot", "Relief Distribution Center", "Aid Station"),
    ResourceType.COMMUNICATION_HUB: (
        "Emergency Communication Center",
        "Information Hub",
        "Alert Coordination Center",
    ),
}

RESOURCE_SERVICES: Dict[ResourceType, Tuple[str, ...]] = {
    ResourceType.SHELTER: ("Emergency shelter", "Food", "Medical aid", "Communications"),
    ResourceType.HOSPITAL: ("Emergency medical care", "Trauma treatment", "Surgery", "Pharmacy"),
    ResourceType.FIRE_STATION: ("Fire suppression", "Search and rescue", "Hazard mitigation", "First aid"),
    ResourceType.POLICE_STATION: ("Law enforcement", "Emergency coordination", "Public safety", "Traffic control"),
    ResourceType.EVACUATION_CENTER: (
        "Temporary housing",
        "Food services",
        "Medical screening",
        "Family reunification",
    ),
    ResourceType.SUPPLY_DEPOT: ("Food distribution", "Water supplies", "Medical supplies", "Emergency kits"),
    ResourceType.COMMUNICATION_HUB: (
        "Emergency alerts",
        "Information dissemination",
        "Family communication",
        "Resource coordination",
    ),
}

# 只有避难类设施有容量上限
CAPPED_TYPES = frozenset({ResourceType.SHELTER, ResourceType.EVACUATION_CENTER})
CAPACITY_RANGE: Tuple[int, int] = (50, 250)
UNCAPPED_DISPLAY_CAPACITY = 100
UNCAPPED_MAX_OCCUPANCY = 80
OCCUPANCY_FRACTION = 0.8
OPEN_PROBABILITY = 0.9

# 无障碍设施为 True 的概率
ACCESSIBILITY_PROBABILITIES: Dict[str, float] = {
    "wheelchair_accessible": 0.8,
    "has_ramp": 0.7,
    "has_elevator": 0.6,
    "sign_language_support": 0.4,
    "braille_support": 0.3,
}

_STREETS = ("Main St", "Oak Ave", "Pine Rd", "Elm Blvd", "Maple Dr", "Cedar Ln", "Birch Way")
_DISTRICTS = ("City Center", "Downtown", "Uptown", "Midtown", "Northside", "Southside")


class MockResourceGenerator:
    """按位置生成随机应急资源列表，每次调用结果互不相关。"""

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._rng = rng or random.Random()
        self._clock = clock

    def generate(
        self,
        location: Location,
        radius_km: float,
        filter_type: Optional[ResourceType] = None,
    ) -> List[EmergencyResource]:
        count = self._rng.randint(MIN_RESOURCES, MAX_RESOURCES)
        all_types = list(ResourceType)
        resources: List[EmergencyResource] = []

        for index in range(count):
            resource_type = filter_type or self._rng.choice(all_types)
            bearing = self._rng.random() * 2 * math.pi
            spread = self._rng.random() * radius_km * PLACEMENT_RADIUS_FRACTION
            resource_location = offset(location, bearing, spread, address=self._address())
            resources.append(self._build_resource(index + 1, resource_type, resource_location))

        resources.sort(key=lambda item: distance(location, item.location))
        logger.info(
            "mock_resources_generated",
            count=len(resources),
            radius_km=radius_km,
            filter_type=filter_type.value if filter_type else "all",
        )
        return resources

    def _build_resource(self, resource_id: int, resource_type: ResourceType, location: Location) -> EmergencyResource:
        name = self._name(resource_id, resource_type)

        capacity: Optional[int] = None
        if resource_type in CAPPED_TYPES:
            capacity = self._rng.randrange(*CAPACITY_RANGE)

        if capacity is not None:
            occupancy = math.floor(self._rng.random() * capacity * OCCUPANCY_FRACTION)
        else:
            occupancy = math.floor(self._rng.random() * UNCAPPED_MAX_OCCUPANCY)

        last_updated = self._clock() - timedelta(seconds=self._rng.random() * 3600)

        accessibility = {
            field: self._rng.random() < probability
            for field, probability in ACCESSIBILITY_PROBABILITIES.items()
        }

        return EmergencyResource(
            id=str(resource_id),
            name=name,
            type=resource_type,
            location=location,
            contact=ContactInfo(
                phone=self._phone(),
                email=f"{re.sub(r'[^a-z0-9]', '', name.lower())}@emergency.gov",
                emergency_number="911",
            ),
            capacity=capacity,
            availability=ResourceAvailability(
                is_open=self._rng.random() < OPEN_PROBABILITY,
                capacity=capacity if capacity is not None else UNCAPPED_DISPLAY_CAPACITY,
                current_occupancy=occupancy,
                last_updated=last_updated,
            ),
            services=list(RESOURCE_SERVICES.get(resource_type, ("Emergency services",))),
            operating_hours=OperatingHours(),
            accessibility=AccessibilityInfo(**accessibility),
        )

    def _name(self, resource_id: int, resource_type: ResourceType) -> str:
        base = self._rng.choice(RESOURCE_NAMES.get(resource_type, ("Emergency Facility",)))
        if resource_type is not ResourceType.FIRE_STATION:
            return base
        # 编号直接拼在名称后，如 "Fire Station #3"、"Fire Department3"
        return f"{base}{resource_id % 10 + 1}"

    def _address(self) -> str:
        number = self._rng.randint(1, 9999)
        street = self._rng.choice(_STREETS)
        district = self._rng.choice(_DISTRICTS)
        return f"{number} {street}, {district}, State"

    def _phone(self) -> str:
        area = self._rng.randint(100, 999)
        exchange = self._rng.randint(100, 999)
        number = self._rng.randint(1000, 9999)
        return f"+1-{area}-{exchange}-{number}"
