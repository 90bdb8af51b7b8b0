from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Mapping, Optional, TypeVar

import httpx

V = TypeVar("V")


@dataclass(slots=True)
class _CacheEntry(Generic[V]):
    value: V
    expires_at: float


class TTLCache(Generic[V]):
    """协程安全的简易过期缓存，ttl<=0 时不缓存。

    写入时顺带清理已过期条目；条目数超过 max_entries 时淘汰最早写入的条目。
    """

    def __init__(
        self,
        ttl_seconds: float,
        *,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max(1, max_entries)
        self._clock = clock
        self._entries: Dict[str, _CacheEntry[V]] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Optional[V]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at < self._clock():
                self._entries.pop(key, None)
                return None
            return entry.value

    async def set(self, key: str, value: V) -> None:
        if self._ttl <= 0:
            return
        async with self._lock:
            now = self._clock()
            expired = [k for k, entry in self._entries.items() if entry.expires_at < now]
            for k in expired:
                del self._entries[k]
            # 重新写入的 key 移到末尾，保持按写入顺序淘汰
            self._entries.pop(key, None)
            while len(self._entries) >= self._max_entries:
                del self._entries[next(iter(self._entries))]
            self._entries[key] = _CacheEntry(value=value, expires_at=now + self._ttl)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()


def build_http_client(
    base_url: str,
    *,
    connect_timeout: float,
    read_timeout: float,
    headers: Optional[Mapping[str, str]] = None,
) -> httpx.AsyncClient:
    timeout = httpx.Timeout(
        timeout=max(connect_timeout, read_timeout),
        connect=connect_timeout,
        read=read_timeout,
        write=read_timeout,
        pool=connect_timeout,
    )
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        timeout=timeout,
        headers=dict(headers or {}),
        trust_env=False,
    )


def coordinate_key(latitude: float, longitude: float) -> str:
    return f"{latitude:.4f},{longitude:.4f}"


JSONDict = Dict[str, Any]
