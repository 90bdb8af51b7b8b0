from __future__ import annotations

import asyncio
from typing import List, Protocol

import structlog

from haven_resilience.alerts.store import AlertStore
from haven_resilience.errors import UpstreamServiceError
from haven_resilience.models import DisasterAlert

logger = structlog.get_logger(__name__)


class EarthquakeFeed(Protocol):
    async def fetch_feed(self, feed: str = ...) -> List[DisasterAlert]: ...


class AlertPoller:
    """定时拉取地震订阅并合并进 AlertStore；上一轮未结束时跳过本轮。"""

    def __init__(self, feed_client: EarthquakeFeed, store: AlertStore, *, feed: str = "significant_day") -> None:
        self._feed_client = feed_client
        self._store = store
        self._feed = feed
        self._lock = asyncio.Lock()

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    async def poll_once(self) -> bool:
        """执行一次拉取，被跳过时返回 False。"""
        if self._lock.locked():
            logger.info("alert_poll_skipped", feed=self._feed, reason="previous_poll_in_flight")
            return False
        async with self._lock:
            try:
                alerts = await self._feed_client.fetch_feed(self._feed)
            except UpstreamServiceError as exc:
                logger.warning("alert_poll_failed", feed=self._feed, provider=exc.provider, info=exc.info)
                return True
            added = self._store.merge(alerts)
            logger.info("alert_poll_completed", feed=self._feed, fetched=len(alerts), added=added)
            return True

    async def run_forever(self, interval_seconds: float) -> None:
        """启动后立即拉取一次，之后按固定间隔循环，可在 FastAPI 启动时调度。"""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds 必须大于 0")
        logger.info("alert_poller_started", feed=self._feed, interval_seconds=interval_seconds)
        try:
            while True:
                await self.poll_once()
                await asyncio.sleep(interval_seconds)
        except asyncio.CancelledError:
            logger.info("alert_poller_cancelled", feed=self._feed)
            raise
