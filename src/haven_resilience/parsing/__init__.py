"""AI 文本解析：应急预案与韧性建议。"""

from .plan_parser import PHASE_TIMELINES, build_plan_template, parse_plan
from .recommendation_parser import default_recommendations, parse_recommendations

__all__ = [
    "PHASE_TIMELINES",
    "build_plan_template",
    "default_recommendations",
    "parse_plan",
    "parse_recommendations",
]
