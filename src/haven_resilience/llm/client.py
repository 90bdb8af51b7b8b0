from __future__ import annotations

from typing import Any, Optional, Protocol

from openai import AsyncOpenAI

from haven_resilience.config import AppConfig
from haven_resilience.llm.endpoint_manager import LLMEndpointConfig, LLMEndpointManager


class _ChatCompletionsProtocol(Protocol):
    async def create(self, *args: Any, **kwargs: Any) -> Any: ...


class _ChatNamespace(Protocol):
    completions: _ChatCompletionsProtocol


class AsyncLLMClientProtocol(Protocol):
    """与 AsyncOpenAI 的 chat.completions 子集兼容的客户端。"""

    chat: _ChatNamespace


class _AsyncFailoverChatCompletions:
    def __init__(self, manager: LLMEndpointManager) -> None:
        self._manager = manager

    async def create(self, *args: Any, **kwargs: Any) -> Any:
        # 每次请求都由管理器挑选端点
        async def caller(client: AsyncOpenAI, endpoint: LLMEndpointConfig) -> Any:
            return await client.chat.completions.create(*args, **kwargs)

        return await self._manager.call("chat_completion", caller)


class _AsyncFailoverChat:
    def __init__(self, manager: LLMEndpointManager) -> None:
        self.completions = _AsyncFailoverChatCompletions(manager)


class FailoverAsyncLLMClient:
    """异步 LLM 客户端，接口与 AsyncOpenAI 兼容，底层走端点主备切换。"""

    def __init__(self, manager: LLMEndpointManager) -> None:
        self.manager = manager
        self.chat = _AsyncFailoverChat(manager)

    async def aclose(self) -> None:
        await self.manager.aclose()


def build_llm_client(config: AppConfig) -> Optional[FailoverAsyncLLMClient]:
    """未配置任何端点时返回 None，调用方走确定性兜底。"""
    if not config.ai_enabled:
        return None
    return FailoverAsyncLLMClient(LLMEndpointManager.from_config(config))
