#!/usr/bin/env python3
# Copyright 2025 msq
from __future__ import annotations

import asyncio
import random
import uuid
from contextlib import suppress
from typing import Any, Dict, Optional

import structlog
from fastapi import FastAPI, Request
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.middleware.base import BaseHTTPMiddleware

from haven_resilience.alerts import AlertPoller, AlertStore
from haven_resilience.api import alerts as alerts_api
from haven_resilience.api import earthquakes as earthquakes_api
from haven_resilience.api import emergency_plan as emergency_plan_api
from haven_resilience.api import location as location_api
from haven_resilience.api import resilience as resilience_api
from haven_resilience.api import resources as resources_api
from haven_resilience.api import risk as risk_api
from haven_resilience.api import weather as weather_api
from haven_resilience.api.deps import install_error_handlers
from haven_resilience.config import AppConfig
from haven_resilience.external import NominatimClient, OpenWeatherClient, USGSClient
from haven_resilience.llm.client import FailoverAsyncLLMClient, build_llm_client
from haven_resilience.location import ConfiguredPositionProvider, LocationSearch
from haven_resilience.logging import clear_trace_id, configure_logging, set_trace_id
from haven_resilience.resources import MockResourceGenerator
from haven_resilience.services import AdvisorService

_cfg = AppConfig.load_from_env()
configure_logging(json_logs=_cfg.log_json, log_level=_cfg.log_level)
logger = structlog.get_logger(__name__)

app = FastAPI(title="Haven Resilience API")

_weather_client: Optional[OpenWeatherClient] = None
_usgs_client: Optional[USGSClient] = None
_nominatim_client: Optional[NominatimClient] = None
_llm_client: Optional[FailoverAsyncLLMClient] = None
_poll_task: Optional[asyncio.Task[None]] = None


# ========== Trace-ID中间件：自动注入请求追踪ID ==========
class TraceIDMiddleware(BaseHTTPMiddleware):
    """
    为每个HTTP请求注入trace-id到日志上下文

    1. 客户端传入 X-Trace-Id 请求头时复用
    2. 否则生成 UUID
    3. 响应头回写 X-Trace-Id，便于客户端关联日志
    """

    async def dispatch(self, request: Request, call_next):
        trace_id = request.headers.get("X-Trace-Id") or str(uuid.uuid4())
        set_trace_id(trace_id)
        try:
            response = await call_next(request)
            response.headers["X-Trace-Id"] = trace_id
            return response
        finally:
            clear_trace_id()


app.add_middleware(TraceIDMiddleware)
install_error_handlers(app)

# metrics
Instrumentator().instrument(app).expose(app)

app.include_router(weather_api.router)
app.include_router(earthquakes_api.router)
app.include_router(risk_api.router)
app.include_router(resources_api.router)
app.include_router(emergency_plan_api.router)
app.include_router(resilience_api.router)
app.include_router(alerts_api.router)
app.include_router(location_api.router)


@app.on_event("startup")
async def on_startup() -> None:
    global _weather_client, _usgs_client, _nominatim_client, _llm_client, _poll_task

    cfg = _cfg
    _weather_client = OpenWeatherClient(
        api_key=cfg.openweather_api_key,
        base_url=cfg.openweather_base_url,
        connect_timeout=cfg.http_connect_timeout,
        read_timeout=cfg.http_read_timeout,
        current_cache_ttl=cfg.weather_cache_ttl_seconds,
        forecast_cache_ttl=cfg.forecast_cache_ttl_seconds,
    )
    if not cfg.openweather_api_key:
        logger.warning("weather_api_key_missing", hint="OPENWEATHER_API_KEY 未配置，天气接口将返回 500")
    _usgs_client = USGSClient(
        base_url=cfg.usgs_feed_base_url,
        connect_timeout=cfg.http_connect_timeout,
        read_timeout=cfg.http_read_timeout,
        cache_ttl=cfg.earthquake_cache_ttl_seconds,
    )
    _nominatim_client = NominatimClient(
        base_url=cfg.nominatim_base_url,
        user_agent=cfg.nominatim_user_agent,
        connect_timeout=cfg.http_connect_timeout,
        read_timeout=cfg.http_read_timeout,
    )
    _llm_client = build_llm_client(cfg)
    if _llm_client is None:
        logger.warning("ai_disabled", hint="未配置 OPENAI_API_KEY / LLM_ENDPOINTS，AI 功能使用固定兜底内容")

    store = AlertStore()
    app.state.config = cfg
    app.state.weather_client = _weather_client
    app.state.usgs_client = _usgs_client
    app.state.alert_store = store
    app.state.advisor = AdvisorService(_llm_client, model=cfg.llm_model)
    app.state.resource_generator = MockResourceGenerator(random.Random())
    app.state.location_search = LocationSearch(
        _nominatim_client,
        ConfiguredPositionProvider(cfg.device_latitude, cfg.device_longitude),
        debounce_seconds=cfg.location_debounce_seconds,
        geolocation_timeout=cfg.geolocation_timeout_seconds,
    )

    poller = AlertPoller(_usgs_client, store, feed=cfg.earthquake_poll_feed)
    app.state.alert_poller = poller
    if cfg.earthquake_poll_enabled:
        _poll_task = asyncio.create_task(poller.run_forever(cfg.earthquake_poll_interval_seconds))

    logger.info(
        "api_startup_complete",
        ai_enabled=_llm_client is not None,
        poll_enabled=cfg.earthquake_poll_enabled,
        poll_feed=cfg.earthquake_poll_feed,
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    global _weather_client, _usgs_client, _nominatim_client, _llm_client, _poll_task

    if _poll_task is not None:
        _poll_task.cancel()
        with suppress(asyncio.CancelledError):
            await _poll_task
        _poll_task = None

    for client in (_weather_client, _usgs_client, _nominatim_client):
        if client is not None:
            await client.close()
    if _llm_client is not None:
        await _llm_client.aclose()
    _weather_client = _usgs_client = _nominatim_client = None
    _llm_client = None
    logger.info("api_shutdown_complete")


@app.get("/healthz")
async def healthz() -> Dict[str, Any]:
    store: Optional[AlertStore] = getattr(app.state, "alert_store", None)
    poller: Optional[AlertPoller] = getattr(app.state, "alert_poller", None)
    llm_status = _llm_client.manager.status_snapshot() if _llm_client is not None else {}
    return {
        "status": "ok",
        "aiEnabled": _llm_client is not None,
        "llmEndpoints": llm_status,
        "alertCount": len(store.alerts) if store is not None else 0,
        "pollInFlight": poller.in_flight if poller is not None else False,
    }
