"""
应急预案文本解析

把 LLM 返回的自由文本按规则拆成 EmergencyPlan：
    1. 在 Phase / Preparation / Response 前切分（不区分大小写）
    2. 丢弃不足 20 字符的片段
    3. 按存活片段的顺序映射 before / during / after，标题按子串匹配
    4. 以 - 或 • 开头的行作为动作，去掉符号后长度需 > 10
    5. 没有动作的阶段丢弃
    6. 一个阶段都没有时返回固定三阶段模板

解析器从不抛异常，任何输入最终都落到解析结果或模板上。
"""

from __future__ import annotations

import re
import time
from typing import Callable, List, Optional, Tuple

import structlog

from haven_resilience.models import (
    DisasterType,
    EmergencyAction,
    EmergencyPhase,
    EmergencyPlan,
    Location,
    PlanPhase,
)

logger = structlog.get_logger(__name__)

_PHASE_SPLIT = re.compile(r"(?=Phase|Preparation|Response)", re.IGNORECASE)
_BULLET_PREFIX = re.compile(r"^[-•]\s*")
_MIN_SECTION_LENGTH = 20
_MIN_ACTION_LENGTH = 10

# (包含的关键字, 标题)，按顺序匹配，都不命中时取 Recovery
_TITLE_RULES: Tuple[Tuple[str, str], ...] = (
    ("Preparation", "Preparation Phase"),
    ("Response", "Response Phase"),
)
_DEFAULT_TITLE = "Recovery Phase"

_PHASE_ORDER: Tuple[PlanPhase, ...] = ("before", "during", "after")

PHASE_TIMELINES = {
    "before": "1-2 weeks before potential event",
    "during": "During the event",
    "after": "After the event",
}
_PHASE_CATEGORIES = {"before": "supplies", "during": "safety", "after": "communication"}


def _plan_id(clock: Callable[[], float]) -> str:
    return f"plan-{int(clock() * 1000)}"


def _phase_for(position: int) -> PlanPhase:
    return _PHASE_ORDER[min(position, len(_PHASE_ORDER) - 1)]


def _title_for(section: str) -> str:
    for keyword, title in _TITLE_RULES:
        if keyword in section:
            return title
    return _DEFAULT_TITLE


def _extract_actions(section: str, phase: PlanPhase, phase_index: int) -> List[EmergencyAction]:
    bullet_lines = [
        line.strip() for line in section.split("\n") if line.strip().startswith(("-", "•"))
    ]
    actions: List[EmergencyAction] = []
    # 动作编号沿用项目符号行的序号，被过滤掉的短行也占号
    for action_index, line in enumerate(bullet_lines):
        description = _BULLET_PREFIX.sub("", line).strip()
        if len(description) <= _MIN_ACTION_LENGTH:
            continue
        actions.append(
            EmergencyAction(
                id=f"{phase_index}-{action_index + 1}",
                description=description,
                priority="critical" if phase == "during" else "high",
                category=_PHASE_CATEGORIES[phase],
                estimated_time="Immediate" if phase == "during" else "30 minutes",
                required_resources=[],
            )
        )
    return actions


def build_plan_template(
    disaster_type: DisasterType,
    location: Optional[Location],
    *,
    clock: Callable[[], float] = time.time,
) -> EmergencyPlan:
    """固定三阶段预案模板，AI 不可用或解析失败时使用。"""
    return EmergencyPlan(
        id=_plan_id(clock),
        disaster_type=disaster_type,
        location=location,
        phases=[
            EmergencyPhase(
                phase="before",
                title="Preparation Phase",
                actions=[
                    EmergencyAction(
                        id="1",
                        description="Prepare emergency kit with supplies for 72 hours",
                        priority="high",
                        category="supplies",
                        estimated_time="2 hours",
                        required_resources=["Food", "Water", "First aid kit", "Flashlight", "Radio"],
                    )
                ],
                timeline=PHASE_TIMELINES["before"],
                priority=1,
            ),
            EmergencyPhase(
                phase="during",
                title="Response Phase",
                actions=[
                    EmergencyAction(
                        id="2",
                        description="Follow evacuation orders immediately",
                        priority="critical",
                        category="safety",
                        estimated_time="Immediate",
                        required_resources=["Transportation", "Emergency kit"],
                    )
                ],
                timeline=PHASE_TIMELINES["during"],
                priority=2,
            ),
            EmergencyPhase(
                phase="after",
                title="Recovery Phase",
                actions=[
                    EmergencyAction(
                        id="3",
                        description="Contact family and friends to confirm safety",
                        priority="high",
                        category="communication",
                        estimated_time="30 minutes",
                        required_resources=["Phone", "Contact list"],
                    )
                ],
                timeline=PHASE_TIMELINES["after"],
                priority=3,
            ),
        ],
    )


def parse_plan(
    ai_text: Optional[str],
    disaster_type: DisasterType,
    location: Optional[Location],
    *,
    clock: Callable[[], float] = time.time,
) -> EmergencyPlan:
    """解析 AI 预案文本，失败时回退到模板。"""
    if not ai_text:
        return build_plan_template(disaster_type, location, clock=clock)

    sections = [chunk for chunk in _PHASE_SPLIT.split(ai_text) if len(chunk.strip()) >= _MIN_SECTION_LENGTH]

    phases: List[EmergencyPhase] = []
    phase_index = 1
    for position, section in enumerate(sections):
        phase = _phase_for(position)
        actions = _extract_actions(section, phase, phase_index)
        if not actions:
            continue
        phases.append(
            EmergencyPhase(
                phase=phase,
                title=_title_for(section),
                actions=actions,
                timeline=PHASE_TIMELINES[phase],
                priority=phase_index,
            )
        )
        phase_index += 1

    if not phases:
        logger.info("plan_parse_fallback_template", sections=len(sections), text_length=len(ai_text))
        return build_plan_template(disaster_type, location, clock=clock)

    logger.debug("plan_parsed", phases=len(phases), actions=sum(len(p.actions) for p in phases))
    return EmergencyPlan(
        id=_plan_id(clock),
        disaster_type=disaster_type,
        location=location,
        phases=phases,
    )
