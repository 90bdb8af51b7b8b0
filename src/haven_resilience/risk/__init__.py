"""风险评估导出。"""

from .scorer import (
    DEFAULT_RECOMMENDATIONS,
    HAZARD_PROFILES,
    HISTORICAL_FACTORS,
    HazardProfile,
    RiskScorer,
    extract_recommendations,
    hazard_factors,
    overall_risk,
    risk_level,
)

__all__ = [
    "DEFAULT_RECOMMENDATIONS",
    "HAZARD_PROFILES",
    "HISTORICAL_FACTORS",
    "HazardProfile",
    "RiskScorer",
    "extract_recommendations",
    "hazard_factors",
    "overall_risk",
    "risk_level",
]
