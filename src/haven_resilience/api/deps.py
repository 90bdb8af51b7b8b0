"""路由共享的依赖获取与错误映射。"""

from __future__ import annotations

from typing import Any, Dict

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from prometheus_client import Counter

from haven_resilience.errors import GeolocationError, RequestValidationError, UpstreamServiceError

logger = structlog.get_logger(__name__)

upstream_failures_total = Counter(
    "haven_upstream_failures_total",
    "第三方服务失败次数（按服务商分类）",
    ["provider"],
)

INTERNAL_ERROR_MESSAGE = "Internal server error"


def require_state(request: Request, name: str) -> Any:
    """从应用状态取依赖，未初始化时返回 503。"""
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, f"{name} unavailable")
    return value


def to_json(payload: Any) -> Any:
    """模型统一按 camelCase 别名序列化。"""
    return jsonable_encoder(payload, by_alias=True)


async def read_json_object(request: Request) -> Dict[str, Any]:
    """读取 JSON 请求体；格式错误会原样抛出，由兜底处理器转为 500。"""
    body = await request.json()
    if not isinstance(body, dict):
        raise ValueError("request body must be a JSON object")
    return body


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("request_rejected", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": exc.message})


async def _upstream_error_handler(request: Request, exc: UpstreamServiceError) -> JSONResponse:
    upstream_failures_total.labels(provider=exc.provider).inc()
    logger.error("upstream_request_failed", path=request.url.path, provider=exc.provider, info=exc.info)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": exc.message})


async def _geolocation_error_handler(request: Request, exc: GeolocationError) -> JSONResponse:
    code = status.HTTP_504_GATEWAY_TIMEOUT if exc.reason == "timeout" else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=code, content={"error": exc.message, "reason": exc.reason})


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("request_failed", path=request.url.path, error=str(exc) or type(exc).__name__, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": INTERNAL_ERROR_MESSAGE},
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(UpstreamServiceError, _upstream_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(GeolocationError, _geolocation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)
