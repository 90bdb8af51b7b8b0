from __future__ import annotations

import json
import os
from dataclasses import dataclass

import structlog

from haven_resilience.llm.endpoint_manager import LLMEndpointConfig

_logger = structlog.get_logger(__name__)

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_LLM_MODEL = "gpt-4.1-nano"

try:
    # 说明：按 APP_ENV 选择性加载环境文件；文件不存在时 load_dotenv 静默跳过
    from dotenv import load_dotenv

    base_dir: str = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
    config_dir: str = os.path.join(base_dir, "config")

    # 1) 通用配置（不覆盖已有环境变量）
    load_dotenv(os.path.join(config_dir, "app.env"), override=False)

    # 2) 环境覆盖层：APP_ENV=production 时加载 config/env.production
    env_name: str = (os.getenv("APP_ENV") or "").strip().lower()
    if env_name:
        env_file: str = os.path.join(config_dir, f"env.{env_name}")
        load_dotenv(env_file, override=True)
        _logger.info("dotenv_env_selected", app_env=env_name, file=env_file)
except Exception as exc:
    # dotenv 加载失败不影响运行（保持现有环境变量）
    _logger.warning("dotenv_load_skipped", error=str(exc))


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        _logger.warning("config_value_invalid", name=name, raw=raw, fallback=default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        _logger.warning("config_value_invalid", name=name, raw=raw, fallback=default)
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_optional_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError:
        _logger.warning("config_value_invalid", name=name, raw=raw, fallback=None)
        return None


def _parse_llm_endpoints(raw_value: str | None, default_key: str) -> list[LLMEndpointConfig]:
    """解析 LLM_ENDPOINTS（JSON 数组），非法条目直接跳过。"""
    if not raw_value:
        return []
    try:
        parsed = json.loads(raw_value)
    except json.JSONDecodeError:
        _logger.warning("llm_endpoints_parse_failed", raw=raw_value)
        return []
    if not isinstance(parsed, list):
        return []
    endpoints: list[LLMEndpointConfig] = []
    for idx, raw in enumerate(parsed):
        if not isinstance(raw, dict):
            continue
        base_url = str(raw.get("base_url") or "")
        if not base_url:
            continue
        try:
            priority = int(raw.get("priority", 100))
        except (TypeError, ValueError):
            _logger.warning("llm_endpoints_entry_invalid", index=idx, priority=raw.get("priority"))
            continue
        endpoints.append(
            LLMEndpointConfig(
                name=str(raw.get("name") or f"endpoint-{idx}"),
                base_url=base_url,
                api_key=str(raw.get("api_key") or default_key),
                priority=priority,
            )
        )
    return endpoints


@dataclass(frozen=True)
class AppConfig:
    openai_base_url: str
    openai_api_key: str | None
    llm_model: str
    llm_endpoints: tuple[LLMEndpointConfig, ...]
    llm_failure_threshold: int
    llm_recovery_seconds: int
    llm_max_concurrency: int
    llm_request_timeout_seconds: float
    openweather_api_key: str | None
    openweather_base_url: str
    usgs_feed_base_url: str
    nominatim_base_url: str
    nominatim_user_agent: str
    http_connect_timeout: float
    http_read_timeout: float
    weather_cache_ttl_seconds: float
    forecast_cache_ttl_seconds: float
    earthquake_cache_ttl_seconds: float
    earthquake_poll_enabled: bool
    earthquake_poll_interval_seconds: float
    earthquake_poll_feed: str
    location_debounce_seconds: float
    geolocation_timeout_seconds: float
    device_latitude: float | None
    device_longitude: float | None
    log_json: bool
    log_level: str

    @property
    def ai_enabled(self) -> bool:
        """是否配置了可用的补全端点。"""
        return bool(self.llm_endpoints)

    @staticmethod
    def load_from_env() -> "AppConfig":
        openai_base_url = os.getenv("OPENAI_BASE_URL", DEFAULT_OPENAI_BASE_URL)
        openai_api_key = os.getenv("OPENAI_API_KEY") or None

        endpoints = _parse_llm_endpoints(os.getenv("LLM_ENDPOINTS"), openai_api_key or "")
        if openai_api_key and not any(e.base_url == openai_base_url for e in endpoints):
            endpoints.append(
                LLMEndpointConfig(
                    name="primary",
                    base_url=openai_base_url,
                    api_key=openai_api_key,
                    priority=100,
                )
            )

        return AppConfig(
            openai_base_url=openai_base_url,
            openai_api_key=openai_api_key,
            llm_model=os.getenv("LLM_MODEL", DEFAULT_LLM_MODEL),
            llm_endpoints=tuple(endpoints),
            llm_failure_threshold=_env_int("LLM_FAILURE_THRESHOLD", 3),
            llm_recovery_seconds=_env_int("LLM_RECOVERY_SECONDS", 60),
            llm_max_concurrency=_env_int("LLM_MAX_CONCURRENCY", 5),
            llm_request_timeout_seconds=_env_float("LLM_REQUEST_TIMEOUT_SECONDS", 30.0),
            openweather_api_key=os.getenv("OPENWEATHER_API_KEY") or None,
            openweather_base_url=os.getenv(
                "OPENWEATHER_API_URL", "https://api.openweathermap.org/data/2.5"
            ),
            usgs_feed_base_url=os.getenv(
                "USGS_FEED_URL", "https://earthquake.usgs.gov/earthquakes/feed/v1.0/summary"
            ),
            nominatim_base_url=os.getenv("NOMINATIM_API_URL", "https://nominatim.openstreetmap.org"),
            nominatim_user_agent=os.getenv("NOMINATIM_USER_AGENT", "haven-resilience/0.1"),
            http_connect_timeout=_env_float("HTTP_CONNECT_TIMEOUT", 10.0),
            http_read_timeout=_env_float("HTTP_READ_TIMEOUT", 10.0),
            weather_cache_ttl_seconds=_env_float("WEATHER_CACHE_TTL_SECONDS", 300.0),
            forecast_cache_ttl_seconds=_env_float("FORECAST_CACHE_TTL_SECONDS", 1800.0),
            earthquake_cache_ttl_seconds=_env_float("EARTHQUAKE_CACHE_TTL_SECONDS", 300.0),
            earthquake_poll_enabled=_env_bool("EARTHQUAKE_POLL_ENABLED", True),
            earthquake_poll_interval_seconds=_env_float("EARTHQUAKE_POLL_INTERVAL_SECONDS", 600.0),
            earthquake_poll_feed=os.getenv("EARTHQUAKE_POLL_FEED", "significant_day"),
            location_debounce_seconds=_env_float("LOCATION_DEBOUNCE_SECONDS", 0.3),
            geolocation_timeout_seconds=_env_float("GEOLOCATION_TIMEOUT_SECONDS", 10.0),
            device_latitude=_env_optional_float("DEVICE_LATITUDE"),
            device_longitude=_env_optional_float("DEVICE_LONGITUDE"),
            log_json=_env_bool("LOG_JSON", False),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
