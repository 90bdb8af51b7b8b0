"""
基于纬度/经度分带的风险评估

各灾种风险系数取决于坐标所在分带，概率、影响、风险分三者取同一数值（百分比）。
综合风险 = 100 × (0.3·洪水 + 0.3·地震 + 0.2·飓风 + 0.2·野火)。
AI 分析文本仅用于生成 recommendations，不参与打分。
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import structlog

from haven_resilience.models import DisasterRisk, DisasterType, Location, RiskAssessment

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class HazardProfile:
    """单一灾种的分带规则与静态说明。"""

    type: DisasterType
    weight: float
    factor: Callable[[float, float], float]
    factors: Tuple[str, ...]
    mitigation_strategies: Tuple[str, ...]


def _flood_factor(abs_lat: float, abs_lon: float) -> float:
    if abs_lat < 30:
        return 0.8
    if abs_lat > 60:
        return 0.2
    return 0.5


def _earthquake_factor(abs_lat: float, abs_lon: float) -> float:
    return 0.7 if abs_lat > 30 else 0.3


def _hurricane_factor(abs_lat: float, abs_lon: float) -> float:
    return 0.6 if abs_lat < 30 and abs_lon < 100 else 0.2


def _wildfire_factor(abs_lat: float, abs_lon: float) -> float:
    return 0.5 if abs_lat > 30 else 0.2


HAZARD_PROFILES: Tuple[HazardProfile, ...] = (
    HazardProfile(
        type=DisasterType.FLOOD,
        weight=0.3,
        factor=_flood_factor,
        factors=(
            "Proximity to water bodies",
            "Historical flooding patterns",
            "Elevation and topography",
            "Urban drainage systems",
        ),
        mitigation_strategies=(
            "Elevate critical infrastructure",
            "Install flood barriers",
            "Improve drainage systems",
            "Purchase flood insurance",
        ),
    ),
    HazardProfile(
        type=DisasterType.EARTHQUAKE,
        weight=0.3,
        factor=_earthquake_factor,
        factors=(
            "Seismic activity in the region",
            "Building codes and construction standards",
            "Soil composition",
            "Population density",
        ),
        mitigation_strategies=(
            "Retrofitting older buildings",
            "Emergency preparedness training",
            "Securing heavy furniture",
            "Having emergency supplies",
        ),
    ),
    HazardProfile(
        type=DisasterType.HURRICANE,
        weight=0.2,
        factor=_hurricane_factor,
        factors=(
            "Coastal proximity",
            "Historical storm patterns",
            "Wind exposure",
            "Storm surge potential",
        ),
        mitigation_strategies=(
            "Reinforcing roof and windows",
            "Creating emergency evacuation plans",
            "Securing outdoor property",
            "Stocking hurricane supplies",
        ),
    ),
    HazardProfile(
        type=DisasterType.WILDFIRE,
        weight=0.2,
        factor=_wildfire_factor,
        factors=(
            "Vegetation type and density",
            "Weather patterns",
            "Human activity",
            "Topography",
        ),
        mitigation_strategies=(
            "Creating defensible space",
            "Using fire-resistant materials",
            "Developing evacuation routes",
            "Maintaining emergency water supply",
        ),
    ),
)

DEFAULT_RECOMMENDATIONS: Tuple[str, ...] = (
    "Create an emergency kit with 72 hours of supplies",
    "Develop a family communication plan",
    "Learn about local evacuation routes",
    "Consider appropriate insurance coverage",
    "Stay informed about local weather and alerts",
)

# 风险分析提示词使用的模拟历史数据
HISTORICAL_FACTORS: Tuple[str, ...] = (
    "Historical flooding in the region",
    "Moderate earthquake activity",
    "Wildfire risk in summer months",
    "Urban area with infrastructure",
)

_RECOMMENDATION_KEYWORDS: Tuple[str, ...] = ("recommend", "prepare", "plan")
_MAX_AI_RECOMMENDATIONS = 4
_BULLET_PATTERN = re.compile(r"^\s*[-•]\s*")


def hazard_factors(location: Location) -> Dict[DisasterType, float]:
    """返回各灾种风险系数（0-1）。"""
    abs_lat = abs(location.latitude)
    abs_lon = abs(location.longitude)
    return {profile.type: profile.factor(abs_lat, abs_lon) for profile in HAZARD_PROFILES}


def overall_risk(factors: Dict[DisasterType, float]) -> float:
    """加权综合风险（0-100）。"""
    total = sum(profile.weight * factors[profile.type] for profile in HAZARD_PROFILES)
    return total * 100


def risk_level(score: float) -> str:
    if score >= 75:
        return "Extreme"
    if score >= 50:
        return "High"
    if score >= 25:
        return "Moderate"
    return "Low"


def extract_recommendations(ai_analysis: Optional[str]) -> List[str]:
    """从 AI 分析文本中挑出含 recommend/prepare/plan 的行，最多四条，去掉行首项目符号。"""
    if not ai_analysis:
        return []
    picked: List[str] = []
    for line in ai_analysis.split("\n"):
        if not any(keyword in line for keyword in _RECOMMENDATION_KEYWORDS):
            continue
        cleaned = _BULLET_PATTERN.sub("", line).strip()
        if cleaned:
            picked.append(cleaned)
        if len(picked) >= _MAX_AI_RECOMMENDATIONS:
            break
    return picked


class RiskScorer:
    """纯函数式风险评估；坐标合法性由调用方在入口处校验。"""

    def assess(self, location: Location, ai_analysis: Optional[str] = None) -> RiskAssessment:
        factors = hazard_factors(location)
        risks: List[DisasterRisk] = []
        for profile in HAZARD_PROFILES:
            score = factors[profile.type] * 100
            risks.append(
                DisasterRisk(
                    type=profile.type,
                    probability=score,
                    impact=score,
                    risk_score=score,
                    factors=list(profile.factors),
                    mitigation_strategies=list(profile.mitigation_strategies),
                )
            )

        overall = overall_risk(factors)
        recommendations = extract_recommendations(ai_analysis)
        if not recommendations:
            if ai_analysis:
                logger.info("risk_ai_recommendations_empty", fallback_count=len(DEFAULT_RECOMMENDATIONS))
            recommendations = list(DEFAULT_RECOMMENDATIONS)

        return RiskAssessment(
            location=location,
            overall_risk=overall,
            risk_level=risk_level(overall),
            risks=risks,
            recommendations=recommendations,
        )
