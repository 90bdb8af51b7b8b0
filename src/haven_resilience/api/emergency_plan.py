"""应急预案接口：AI 生成，失败或解析不出内容时返回固定三阶段模板，始终 200。"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Request

from haven_resilience.api.deps import read_json_object, require_state, to_json
from haven_resilience.errors import RequestValidationError
from haven_resilience.geo import require_numeric_coordinates
from haven_resilience.models import DisasterType
from haven_resilience.parsing import build_plan_template, parse_plan
from haven_resilience.services.advisor import AdvisorService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["emergency-plan"])


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@router.post("/emergency-plan")
async def create_emergency_plan(request: Request) -> Any:
    body = await read_json_object(request)
    raw_type = body.get("disasterType")
    latitude = body.get("latitude")
    longitude = body.get("longitude")

    if not raw_type or not _is_number(latitude) or not _is_number(longitude):
        raise RequestValidationError("Missing required parameters: disasterType, latitude, longitude")
    try:
        disaster_type = DisasterType(raw_type)
    except ValueError:
        valid = ", ".join(item.value for item in DisasterType)
        raise RequestValidationError(f"Invalid disaster type. Must be one of: {valid}") from None
    location = require_numeric_coordinates(latitude, longitude)

    advisor: AdvisorService = require_state(request, "advisor")
    plan_text = await advisor.generate_plan_text(disaster_type, location)
    if plan_text is None:
        logger.info("ai_plan_fallback_used", disaster_type=disaster_type.value)
        return to_json(build_plan_template(disaster_type, location))
    return to_json(parse_plan(plan_text, disaster_type, location))
