from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import List

import pytest

from haven_resilience.alerts import AlertPoller, AlertStore
from haven_resilience.errors import UpstreamServiceError
from haven_resilience.models import AlertSeverity, DisasterAlert, DisasterType, GeographicBounds, Location


def _alert(alert_id: str) -> DisasterAlert:
    return DisasterAlert(
        id=alert_id,
        type=DisasterType.EARTHQUAKE,
        severity=AlertSeverity.HIGH,
        title="M 5.1 - Somewhere",
        description="Magnitude 5.1 earthquake",
        location=Location(latitude=10.0, longitude=20.0),
        affected_area=GeographicBounds(north=11.0, south=9.0, east=21.0, west=19.0),
        start_time=datetime(2025, 1, 1, tzinfo=timezone.utc),
        source="USGS",
    )


class _BlockingFeed:
    def __init__(self, alerts: List[DisasterAlert]) -> None:
        self.alerts = alerts
        self.release = asyncio.Event()
        self.started = asyncio.Event()
        self.calls: List[str] = []

    async def fetch_feed(self, feed: str = "significant_day") -> List[DisasterAlert]:
        self.calls.append(feed)
        self.started.set()
        await self.release.wait()
        return list(self.alerts)


class _FailingFeed:
    async def fetch_feed(self, feed: str = "significant_day") -> List[DisasterAlert]:
        raise UpstreamServiceError("Failed to fetch earthquake data", provider="usgs", info="HTTP 503")


@pytest.mark.asyncio
async def test_poll_skipped_while_previous_in_flight() -> None:
    feed = _BlockingFeed([_alert("us1")])
    store = AlertStore()
    poller = AlertPoller(feed, store, feed="all_hour")

    first = asyncio.create_task(poller.poll_once())
    await feed.started.wait()
    assert poller.in_flight is True

    assert await poller.poll_once() is False
    assert feed.calls == ["all_hour"]

    feed.release.set()
    assert await first is True
    assert poller.in_flight is False
    assert [alert.id for alert in store.alerts] == ["us1"]


@pytest.mark.asyncio
async def test_repeated_polls_merge_without_duplicates() -> None:
    feed = _BlockingFeed([_alert("us1"), _alert("us2")])
    feed.release.set()
    store = AlertStore()
    poller = AlertPoller(feed, store)

    await poller.poll_once()
    await poller.poll_once()

    assert [alert.id for alert in store.alerts] == ["us1", "us2"]


@pytest.mark.asyncio
async def test_upstream_failure_keeps_existing_alerts() -> None:
    store = AlertStore()
    store.upsert(_alert("existing"))
    poller = AlertPoller(_FailingFeed(), store)

    assert await poller.poll_once() is True
    assert [alert.id for alert in store.alerts] == ["existing"]
    assert poller.in_flight is False


@pytest.mark.asyncio
async def test_run_forever_polls_immediately_and_cancels() -> None:
    feed = _BlockingFeed([_alert("us1")])
    feed.release.set()
    store = AlertStore()
    poller = AlertPoller(feed, store)

    task = asyncio.create_task(poller.run_forever(60))
    await feed.started.wait()
    await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert len(feed.calls) == 1
    assert store.get("us1") is not None


@pytest.mark.asyncio
async def test_run_forever_rejects_non_positive_interval() -> None:
    poller = AlertPoller(_FailingFeed(), AlertStore())
    with pytest.raises(ValueError):
        await poller.run_forever(0)
