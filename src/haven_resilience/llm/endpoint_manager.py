from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar

import httpx
import structlog
from openai import AsyncOpenAI

if TYPE_CHECKING:
    from haven_resilience.config import AppConfig

T = TypeVar("T")

logger = structlog.get_logger(__name__)


class LLMEndpointsExhaustedError(RuntimeError):
    """所有端点都失败时抛出。"""

    def __init__(self, operation: str, states: Dict[str, Dict[str, object]]) -> None:
        super().__init__(f"LLM endpoints exhausted during {operation}")
        self.operation = operation
        self.states = states


@dataclass(frozen=True)
class LLMEndpointConfig:
    """LLM 端点配置。

    Attributes:
        name: 端点名称（用于日志）。
        base_url: OpenAI 兼容服务的 Base URL。
        api_key: 该端点的 API Key。
        priority: 优先级，数值越大越先选用。
    """

    name: str
    base_url: str
    api_key: str
    priority: int = 100


@dataclass
class LLMEndpointState:
    available: bool = True
    consecutive_failures: int = 0
    half_open: bool = False
    recovery_at: float = 0.0


class LLMEndpointManager:
    """LLM 端点管理器：主备切换、熔断与恢复。

    - 端点连续失败达到阈值后熔断，转用下一个端点；
    - 429 限流直接熔断，冷却时间翻倍；
    - 冷却结束后以半开状态重新试探。
    """

    def __init__(
        self,
        endpoints: List[LLMEndpointConfig],
        *,
        client_builder: Callable[[LLMEndpointConfig], AsyncOpenAI],
        failure_threshold: int = 3,
        recovery_seconds: int = 60,
        max_concurrency: int = 5,
        request_timeout: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not endpoints:
            raise ValueError("至少需要一个LLM端点配置")

        self._order: List[LLMEndpointConfig] = sorted(endpoints, key=lambda e: e.priority, reverse=True)
        self._states: Dict[str, LLMEndpointState] = {e.name: LLMEndpointState() for e in self._order}
        self._failure_threshold = max(1, failure_threshold)
        self._recovery_seconds = max(10, recovery_seconds)
        self._builder = client_builder
        self._request_timeout = max(1.0, float(request_timeout))
        self._clock = clock
        self._clients: Dict[str, AsyncOpenAI] = {}
        # 状态表在请求协程和状态查询（/healthz）之间共享
        self._lock = threading.Lock()
        self._max_concurrency = max(1, int(max_concurrency))
        self._semaphore = asyncio.Semaphore(self._max_concurrency)

        logger.info(
            "llm_endpoint_manager_initialized",
            endpoints=[e.name for e in self._order],
            failure_threshold=self._failure_threshold,
            recovery_seconds=self._recovery_seconds,
            max_concurrency=self._max_concurrency,
            request_timeout_seconds=self._request_timeout,
        )

    @classmethod
    def from_config(cls, cfg: "AppConfig") -> "LLMEndpointManager":
        return cls.from_endpoints(
            cfg.llm_endpoints,
            failure_threshold=cfg.llm_failure_threshold,
            recovery_seconds=cfg.llm_recovery_seconds,
            max_concurrency=cfg.llm_max_concurrency,
            request_timeout=cfg.llm_request_timeout_seconds,
        )

    @classmethod
    def from_endpoints(
        cls,
        endpoints: Iterable[LLMEndpointConfig],
        *,
        failure_threshold: int,
        recovery_seconds: int,
        max_concurrency: int,
        request_timeout: float,
    ) -> "LLMEndpointManager":
        endpoint_list = list(endpoints)
        if not endpoint_list:
            raise ValueError("endpoints 不能为空")

        def build(endpoint: LLMEndpointConfig) -> AsyncOpenAI:
            timeout = httpx.Timeout(connect=5.0, read=request_timeout, write=request_timeout, pool=request_timeout)
            return AsyncOpenAI(
                base_url=endpoint.base_url,
                api_key=endpoint.api_key,
                http_client=httpx.AsyncClient(trust_env=False, timeout=timeout),
                timeout=request_timeout,
                max_retries=0,
            )

        return cls(
            endpoint_list,
            client_builder=build,
            failure_threshold=failure_threshold,
            recovery_seconds=recovery_seconds,
            max_concurrency=max_concurrency,
            request_timeout=request_timeout,
        )

    def _select_endpoint(self) -> LLMEndpointConfig:
        """选第一个可用端点；全部熔断时用最高优先级端点做最后尝试。"""
        now = self._clock()
        for endpoint in self._order:
            state = self._states[endpoint.name]
            if not state.available and now >= state.recovery_at:
                state.available = True
                state.half_open = True
            if state.available:
                return endpoint

        fallback = self._order[0]
        logger.warning("llm_all_endpoints_unavailable", fallback=fallback.name, states=self._snapshot())
        return fallback

    def _acquire_client(self, endpoint: LLMEndpointConfig) -> AsyncOpenAI:
        client = self._clients.get(endpoint.name)
        if client is None:
            client = self._builder(endpoint)
            self._clients[endpoint.name] = client
        return client

    def _on_success(self, endpoint: LLMEndpointConfig, latency_ms: int) -> None:
        state = self._states[endpoint.name]
        recovered = state.half_open
        state.consecutive_failures = 0
        state.available = True
        state.half_open = False
        logger.info("llm_endpoint_success", endpoint=endpoint.name, latency_ms=latency_ms, recovered=recovered)

    def _on_failure(self, endpoint: LLMEndpointConfig, latency_ms: int, error: Exception) -> None:
        state = self._states[endpoint.name]
        state.consecutive_failures += 1

        status_code = getattr(error, "status_code", None)
        is_rate_limit = status_code == 429
        cooldown = self._recovery_seconds * (2 if is_rate_limit else 1)

        if state.consecutive_failures >= self._failure_threshold or is_rate_limit or state.half_open:
            state.available = False
            state.half_open = False
            state.recovery_at = self._clock() + cooldown

        logger.warning(
            "llm_endpoint_failure",
            endpoint=endpoint.name,
            latency_ms=latency_ms,
            failure_count=state.consecutive_failures,
            marked_unavailable=not state.available,
            error=str(error) or type(error).__name__,
            rate_limited=is_rate_limit,
        )

    def _snapshot(self) -> Dict[str, Dict[str, object]]:
        return {
            name: {
                "available": state.available,
                "half_open": state.half_open,
                "failures": state.consecutive_failures,
                "recovery_at": state.recovery_at,
            }
            for name, state in self._states.items()
        }

    async def call(
        self,
        operation: str,
        caller: Callable[[AsyncOpenAI, LLMEndpointConfig], Awaitable[T]],
    ) -> T:
        """异步调用入口，失败时自动切换端点，全部失败抛 LLMEndpointsExhaustedError。"""
        last_exc: Optional[Exception] = None
        attempts = 0
        max_attempts = len(self._order) + self._failure_threshold

        while attempts < max_attempts:
            queued_at = time.monotonic()
            async with self._semaphore:
                queued_ms = int((time.monotonic() - queued_at) * 1000)
                if queued_ms > 2000:
                    logger.warning("llm_queue_wait", operation=operation, queued_ms=queued_ms)

                with self._lock:
                    endpoint = self._select_endpoint()
                attempts += 1
                client = self._acquire_client(endpoint)
                start = time.monotonic()
                try:
                    result = await asyncio.wait_for(caller(client, endpoint), timeout=self._request_timeout)
                except Exception as exc:  # noqa: BLE001
                    latency_ms = int((time.monotonic() - start) * 1000)
                    with self._lock:
                        self._on_failure(endpoint, latency_ms, exc)
                    last_exc = exc
                    continue
                latency_ms = int((time.monotonic() - start) * 1000)
                with self._lock:
                    self._on_success(endpoint, latency_ms)
                return result

        assert last_exc is not None
        snapshot = self.status_snapshot()
        logger.error("llm_endpoints_exhausted", operation=operation, states=snapshot)
        raise LLMEndpointsExhaustedError(operation, snapshot) from last_exc

    def status_snapshot(self) -> Dict[str, Dict[str, object]]:
        with self._lock:
            return self._snapshot()

    async def aclose(self) -> None:
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.close()
