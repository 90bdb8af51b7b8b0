from __future__ import annotations

import re
from typing import List, Optional, Tuple

import structlog

from haven_resilience.models import CostRange, ResilienceCategory, ResilienceRecommendation, ResourceLink

logger = structlog.get_logger(__name__)

_SECTION_SPLIT = re.compile(r"\d+\.\s+|Title:", re.IGNORECASE)
_BULLET_PREFIX = re.compile(r"^[-•]\s*")
_MIN_SECTION_LENGTH = 10
_MIN_SECTION_LINES = 2
# 含这些标签的行只用于排除，不解析成结构化字段
_METADATA_TAGS: Tuple[str, ...] = ("Difficulty:", "Cost:", "Timeframe:", "Benefits:")

_PARSED_STEPS: Tuple[str, ...] = ("Research options", "Get quotes", "Schedule installation")
_PARSED_BENEFITS: Tuple[str, ...] = ("Improved resilience", "Cost savings", "Environmental benefits")


def default_recommendations() -> List[ResilienceRecommendation]:
    """固定的三条默认建议：太阳能、屋顶加固、应急蓄水。"""
    return [
        ResilienceRecommendation(
            id="1",
            title="Install Solar Panels",
            description="Reduce energy costs and carbon footprint while ensuring backup power during outages",
            category=ResilienceCategory.ENERGY_EFFICIENCY,
            difficulty="moderate",
            impact="high",
            timeframe="3-6 months",
            cost=CostRange(min=10000, max=25000),
            steps=[
                "Get energy audit",
                "Research local incentives",
                "Get quotes from installers",
                "Apply for permits",
                "Schedule installation",
            ],
            benefits=[
                "Reduced electricity bills",
                "Emergency backup power",
                "Increased home value",
                "Reduced carbon footprint",
            ],
            resources=[ResourceLink(title="Solar Installation Guide", url="#", type="guide")],
        ),
        ResilienceRecommendation(
            id="2",
            title="Reinforce Roof and Windows",
            description="Strengthen building envelope against high winds and debris",
            category=ResilienceCategory.EMERGENCY_PREPAREDNESS,
            difficulty="moderate",
            impact="high",
            timeframe="1-3 months",
            cost=CostRange(min=5000, max=15000),
            steps=[
                "Inspect current roof condition",
                "Research impact-resistant options",
                "Get contractor quotes",
                "Schedule installation",
                "Maintain regularly",
            ],
            benefits=[
                "Protection from wind damage",
                "Reduced insurance premiums",
                "Increased property value",
                "Peace of mind during storms",
            ],
            resources=[ResourceLink(title="Wind Resistance Standards", url="#", type="guide")],
        ),
        ResilienceRecommendation(
            id="3",
            title="Create Emergency Water Supply",
            description="Install rainwater harvesting or greywater systems for emergency water access",
            category=ResilienceCategory.WATER_CONSERVATION,
            difficulty="easy",
            impact="medium",
            timeframe="1-2 months",
            cost=CostRange(min=1000, max=3000),
            steps=[
                "Assess water needs",
                "Research local regulations",
                "Choose appropriate system",
                "Install with professional help",
                "Test and maintain system",
            ],
            benefits=[
                "Emergency water during outages",
                "Reduced utility bills",
                "Environmental conservation",
                "Drought preparedness",
            ],
            resources=[ResourceLink(title="Water Conservation Guide", url="#", type="guide")],
        ),
    ]


def _description_for(lines: List[str], title: str) -> str:
    for line in lines:
        if not any(tag in line for tag in _METADATA_TAGS):
            return line
    return title


def parse_recommendations(ai_text: Optional[str]) -> List[ResilienceRecommendation]:
    """按编号列表或 Title: 标记切分 AI 文本，除标题和描述外其余字段取固定值。"""
    if not ai_text:
        return default_recommendations()

    sections = [s for s in _SECTION_SPLIT.split(ai_text) if len(s.strip()) > _MIN_SECTION_LENGTH]

    recommendations: List[ResilienceRecommendation] = []
    for section in sections:
        lines = [line.strip() for line in section.split("\n") if line.strip()]
        if len(lines) < _MIN_SECTION_LINES:
            continue
        title = _BULLET_PREFIX.sub("", lines[0])
        recommendations.append(
            ResilienceRecommendation(
                id=str(len(recommendations) + 1),
                title=title,
                description=_description_for(lines, title),
                category=ResilienceCategory.ENERGY_EFFICIENCY,
                difficulty="moderate",
                impact="high",
                timeframe="3-6 months",
                cost=CostRange(min=1000, max=5000),
                steps=list(_PARSED_STEPS),
                benefits=list(_PARSED_BENEFITS),
                resources=[],
            )
        )

    if not recommendations:
        logger.info("recommendation_parse_fallback_defaults", sections=len(sections))
        return default_recommendations()
    return recommendations
