from __future__ import annotations

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Request

from haven_resilience.api.deps import require_state, to_json
from haven_resilience.geo import parse_coordinates
from haven_resilience.parsing import default_recommendations, parse_recommendations
from haven_resilience.services.advisor import AdvisorService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["resilience"])


@router.get("/resilience")
async def get_resilience_recommendations(
    request: Request,
    lat: Optional[str] = None,
    lon: Optional[str] = None,
) -> Any:
    """气候韧性建议；AI 不可用时返回默认三条。"""
    location = parse_coordinates(lat, lon)

    advisor: AdvisorService = require_state(request, "advisor")
    text = await advisor.generate_resilience_text(location)
    if text is None:
        logger.info("ai_resilience_fallback_used")
        return to_json(default_recommendations())
    return to_json(parse_recommendations(text))
