from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

from haven_resilience.api.deps import read_json_object, require_state, to_json
from haven_resilience.geo import require_numeric_coordinates
from haven_resilience.risk import RiskScorer
from haven_resilience.services.advisor import AdvisorService

router = APIRouter(prefix="/api", tags=["risk"])

_scorer = RiskScorer()


@router.post("/risk")
async def assess_risk(request: Request) -> Any:
    """按经纬度分带打分；AI 分析只用于补充建议，失败时使用固定建议。"""
    body = await read_json_object(request)
    location = require_numeric_coordinates(body.get("latitude"), body.get("longitude"))

    advisor: AdvisorService = require_state(request, "advisor")
    ai_analysis = await advisor.analyze_risk(location)
    return to_json(_scorer.assess(location, ai_analysis))
