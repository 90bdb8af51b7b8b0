"""
统一日志模块

提供全局structlog配置，包括：
- 统一processor链（时间戳、堆栈、trace-id注入）
- JSON/控制台双渲染模式
- Prometheus日志计数
- 定时轮询类日志的可选抑制
"""

from __future__ import annotations

import logging
import os
import sys
from contextvars import ContextVar
from typing import Any

import structlog
from prometheus_client import Counter

# 是否抑制定时轮询类日志的运行时开关（可热切换）
_SUPPRESS_PERIODIC_LOGS_FLAG: bool = (
    os.getenv("SUPPRESS_PERIODIC_LOGS", "false").lower() in {"1", "true", "yes", "y", "on"}
)

# ========== ContextVar：跨异步边界的trace-id传递 ==========
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)


# ========== Prometheus指标 ==========
log_count_metric = Counter(
    "haven_log_total",
    "日志总数（按级别和模块分类）",
    ["level", "module"],
)


def add_trace_id(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """从ContextVar中提取trace-id并注入到日志上下文。"""
    trace_id = trace_id_var.get()
    if trace_id:
        event_dict["trace_id"] = trace_id
    return event_dict


def add_prometheus_metrics(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """日志事件计数到Prometheus，用于监控异常日志激增。"""
    level = event_dict.get("level", "info")
    module = event_dict.get("logger", "unknown")
    log_count_metric.labels(level=level, module=module).inc()
    return event_dict


# 周期性事件：仅在开启抑制开关时丢弃
PERIODIC_PREFIXES: tuple[str, ...] = ("alert_poll_",)
PERIODIC_EXACT: frozenset[str] = frozenset({"earthquake_cache_hit", "weather_cache_hit"})


def drop_periodic_logs(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """在开启 SUPPRESS_PERIODIC_LOGS 时丢弃噪声型的定时日志。

    只根据事件名过滤，错误/业务日志不受影响。
    """
    if not _SUPPRESS_PERIODIC_LOGS_FLAG:
        return event_dict
    if event_dict.get("level") in {"warning", "error", "critical"}:
        return event_dict

    event = str(event_dict.get("event", ""))
    if event in PERIODIC_EXACT or any(event.startswith(p) for p in PERIODIC_PREFIXES):
        raise structlog.DropEvent
    return event_dict


def configure_logging(
    *,
    json_logs: bool = False,
    log_level: str = "INFO",
) -> None:
    """
    配置全局structlog

    Args:
        json_logs: 是否输出JSON格式（生产环境推荐True）
        log_level: 日志级别（DEBUG/INFO/WARNING/ERROR）
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    processors: list[Any] = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        drop_periodic_logs,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_trace_id,
        add_prometheus_metrics,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def set_trace_id(trace_id: str) -> None:
    """设置当前协程的trace-id。"""
    trace_id_var.set(trace_id)


def clear_trace_id() -> None:
    """清除当前协程的trace-id（防止上下文泄漏）"""
    trace_id_var.set(None)


def get_trace_id() -> str | None:
    return trace_id_var.get()


def set_periodic_logs_suppressed(enabled: bool) -> None:
    """运行时打开/关闭定时日志抑制（无需重启）。"""
    global _SUPPRESS_PERIODIC_LOGS_FLAG
    _SUPPRESS_PERIODIC_LOGS_FLAG = bool(enabled)


# 导入时先按控制台模式配置；生产环境在启动时显式调用 configure_logging(json_logs=True)
configure_logging(json_logs=False, log_level="INFO")
