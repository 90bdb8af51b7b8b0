"""
AI 顾问服务

封装三类补全请求：应急预案、韧性建议、风险分析。
任何失败（未配置、端点耗尽、超时、空回复）都只记录日志并返回 None，
由路由层换成确定性兜底内容，AI 不可用永远不会变成请求失败。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import structlog
from prometheus_client import Counter

from haven_resilience.llm.client import AsyncLLMClientProtocol
from haven_resilience.models import DisasterType, Location
from haven_resilience.risk import HISTORICAL_FACTORS

logger = structlog.get_logger(__name__)

ai_fallback_total = Counter(
    "haven_ai_fallback_total",
    "AI 补全失败后使用兜底内容的次数",
    ["feature", "reason"],
)

RESILIENCE_RISK_FACTORS: Tuple[str, ...] = ("flooding", "earthquake", "wildfire", "climate change impacts")


@dataclass(frozen=True)
class PromptSpec:
    feature: str
    system: str
    max_tokens: int
    temperature: float


PLAN_PROMPT = PromptSpec(
    feature="emergency_plan",
    system="You are an emergency preparedness expert providing clear, actionable advice for disaster response.",
    max_tokens=1000,
    temperature=0.7,
)
RESILIENCE_PROMPT = PromptSpec(
    feature="resilience",
    system="You are a climate resilience expert providing practical recommendations for community adaptation.",
    max_tokens=800,
    temperature=0.7,
)
RISK_PROMPT = PromptSpec(
    feature="risk_analysis",
    system="You are a disaster risk analyst providing evidence-based risk assessments.",
    max_tokens=600,
    temperature=0.6,
)


def build_plan_prompt(disaster_type: DisasterType, location: Location) -> str:
    return (
        f"Create a detailed emergency response plan for a {disaster_type.value} disaster in {location.as_query()}.\n"
        "Include the following phases:\n"
        "1. Preparation Phase (before the disaster)\n"
        "2. Response Phase (during the disaster)\n"
        "3. Recovery Phase (after the disaster)\n\n"
        "For each phase, provide specific, actionable steps that residents should take.\n"
        "Format the response as a clear, organized plan with bullet points and priorities."
    )


def build_resilience_prompt(location: Location, risk_factors: Sequence[str]) -> str:
    return (
        f"Based on the location {location.as_query()} and risk factors: {', '.join(risk_factors)},\n"
        "provide 3-5 specific, actionable climate resilience recommendations.\n"
        "Each recommendation should include:\n"
        "- Title\n"
        "- Description of the benefit\n"
        "- Difficulty level (easy, moderate, difficult)\n"
        "- Estimated cost range\n"
        "- Implementation timeframe\n\n"
        "Focus on practical, community-level solutions."
    )


def build_risk_prompt(location: Location, historical_data: Sequence[str]) -> str:
    return (
        f"Analyze the disaster risk for {location.as_query()} based on this historical data: "
        f"{', '.join(historical_data)}.\n"
        "Provide a risk assessment that includes:\n"
        "1. Overall risk level (Low, Moderate, High, Extreme)\n"
        "2. Key risk factors\n"
        "3. Recommended preparedness actions\n"
        "4. Long-term resilience strategies\n\n"
        "Be specific and actionable in your recommendations."
    )


class AdvisorService:
    def __init__(self, llm_client: Optional[AsyncLLMClientProtocol], *, model: str) -> None:
        self._llm = llm_client
        self._model = model

    @property
    def enabled(self) -> bool:
        return self._llm is not None

    async def generate_plan_text(self, disaster_type: DisasterType, location: Location) -> Optional[str]:
        return await self._complete(PLAN_PROMPT, build_plan_prompt(disaster_type, location))

    async def generate_resilience_text(
        self,
        location: Location,
        risk_factors: Sequence[str] = RESILIENCE_RISK_FACTORS,
    ) -> Optional[str]:
        return await self._complete(RESILIENCE_PROMPT, build_resilience_prompt(location, risk_factors))

    async def analyze_risk(
        self,
        location: Location,
        historical_data: Sequence[str] = HISTORICAL_FACTORS,
    ) -> Optional[str]:
        return await self._complete(RISK_PROMPT, build_risk_prompt(location, historical_data))

    async def _complete(self, spec: PromptSpec, prompt: str) -> Optional[str]:
        if self._llm is None:
            ai_fallback_total.labels(feature=spec.feature, reason="disabled").inc()
            logger.info("ai_fallback_used", feature=spec.feature, reason="disabled")
            return None

        try:
            response = await self._llm.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": spec.system},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=spec.max_tokens,
                temperature=spec.temperature,
            )
        except Exception as exc:  # noqa: BLE001
            ai_fallback_total.labels(feature=spec.feature, reason="error").inc()
            logger.warning(
                "ai_fallback_used",
                feature=spec.feature,
                reason="error",
                error=str(exc) or type(exc).__name__,
            )
            return None

        content = _first_choice_content(response)
        if not content:
            ai_fallback_total.labels(feature=spec.feature, reason="empty").inc()
            logger.warning("ai_fallback_used", feature=spec.feature, reason="empty")
            return None

        logger.info("ai_completion_received", feature=spec.feature, content_length=len(content))
        return content


def _first_choice_content(response: object) -> Optional[str]:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return None
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None)
    return content if isinstance(content, str) else None
