"""
Tests for the trigger loop and model-cycle cache warmup

Run with: python -m pytest tests/test_scheduler.py -v
"""

import asyncio
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

import pytest

from seaside_beacon.config import DEFAULT_WARMUP_TRIGGERS, Trigger
from seaside_beacon.scheduler import TriggerScheduler, WarmupScheduler, wait_for_stop

IST = ZoneInfo("Asia/Kolkata")


class FakeWall:
    """Wall clock plus a wait() that jumps straight to the fire time."""

    def __init__(self, start: datetime, max_fires: int):
        self.now = start
        self.max_fires = max_fires
        self.fires = 0
        self.waits = []

    def __call__(self) -> datetime:
        return self.now

    async def wait(self, stop: asyncio.Event, timeout: float) -> bool:
        if self.fires >= self.max_fires:
            return True
        self.waits.append(timeout)
        self.now += timedelta(seconds=timeout)
        self.fires += 1
        return False


class TestTriggerScheduler:

    @pytest.mark.parametrize("local,label,fire_at", [
        (datetime(2025, 3, 20, 19, 0), "open-meteo-12z", datetime(2025, 3, 20, 22, 0)),
        (datetime(2025, 3, 20, 23, 0), "accuweather-predawn", datetime(2025, 3, 21, 3, 45)),
        (datetime(2025, 3, 21, 3, 50), "open-meteo-18z", datetime(2025, 3, 21, 4, 0)),
        (datetime(2025, 3, 21, 12, 0), "open-meteo-06z", datetime(2025, 3, 21, 17, 30)),
        (datetime(2025, 3, 21, 17, 30), "accuweather-evening", datetime(2025, 3, 21, 18, 5)),
    ])
    def test_next_fire(self, local, label, fire_at):
        scheduler = TriggerScheduler(DEFAULT_WARMUP_TRIGGERS, "Asia/Kolkata")
        when, trigger = scheduler.next_fire(local.replace(tzinfo=IST))
        assert trigger.label == label
        assert when == fire_at.replace(tzinfo=IST)

    def test_timezone_is_configuration(self):
        triggers = [Trigger(time(9, 0), "morning", ("open_meteo",))]
        scheduler = TriggerScheduler(triggers, "UTC")
        when, _ = scheduler.next_fire(datetime(2025, 3, 20, 10, 0, tzinfo=ZoneInfo("UTC")))
        assert when == datetime(2025, 3, 21, 9, 0, tzinfo=ZoneInfo("UTC"))

    def test_requires_triggers(self):
        with pytest.raises(ValueError):
            TriggerScheduler([])

    @pytest.mark.asyncio
    async def test_run_fires_in_order(self):
        wall = FakeWall(datetime(2025, 3, 20, 19, 0, tzinfo=IST), max_fires=3)
        scheduler = TriggerScheduler(DEFAULT_WARMUP_TRIGGERS, "Asia/Kolkata", now=wall, wait=wall.wait)
        fired = []

        async def callback(trigger):
            fired.append(trigger.label)

        await scheduler.run(callback)

        assert fired == ["open-meteo-12z", "accuweather-predawn", "open-meteo-18z"]
        assert wall.waits == [3 * 3600, 5 * 3600 + 45 * 60, 15 * 60]

    @pytest.mark.asyncio
    async def test_callback_failure_does_not_stop_loop(self):
        wall = FakeWall(datetime(2025, 3, 20, 19, 0, tzinfo=IST), max_fires=2)
        scheduler = TriggerScheduler(DEFAULT_WARMUP_TRIGGERS, "Asia/Kolkata", now=wall, wait=wall.wait)
        fired = []

        async def callback(trigger):
            fired.append(trigger.label)
            raise RuntimeError("boom")

        await scheduler.run(callback)
        assert len(fired) == 2

    @pytest.mark.asyncio
    async def test_stop_event(self):
        stop = asyncio.Event()
        stop.set()
        assert await wait_for_stop(stop, 3600) is True

        assert await wait_for_stop(asyncio.Event(), 0.01) is False


class TestWarmupScheduler:

    @pytest.mark.asyncio
    async def test_open_meteo_warmup(self, forecaster, upstream):
        report = await WarmupScheduler(forecaster).warmup("open-meteo-06z")

        assert report.refreshed == 4
        assert report.failed == 0
        assert upstream.calls["forecast"] == 2
        assert upstream.calls["air_quality"] == 2
        assert upstream.calls["hourly"] == 0

    @pytest.mark.asyncio
    async def test_accuweather_warmup_uses_one_location_key(self, forecaster, upstream):
        report = await WarmupScheduler(forecaster).warmup("accuweather-evening")

        assert report.refreshed == 2
        assert upstream.calls["hourly"] == 1
        assert upstream.calls["daily"] == 1

    @pytest.mark.asyncio
    async def test_warmup_bypasses_fresh_cache(self, forecaster, upstream):
        warmer = WarmupScheduler(forecaster)
        await warmer.warmup("open-meteo-06z")
        await warmer.warmup("open-meteo-06z")

        assert upstream.calls["forecast"] == 4

    @pytest.mark.asyncio
    async def test_warmup_drops_predictions(self, forecaster, upstream):
        await forecaster.get_score("marina")
        assert len(forecaster.predictions) == 1

        await WarmupScheduler(forecaster).warmup("all")

        assert len(forecaster.predictions) == 0

    @pytest.mark.asyncio
    async def test_warmup_failures_are_reported_not_raised(self, forecaster, upstream):
        upstream.status["forecast"] = 500

        report = await WarmupScheduler(forecaster).warmup("open-meteo-06z")

        assert report.refreshed == 2
        assert report.failed == 2
        assert len(report.errors) == 2
        assert report.total == 4

    @pytest.mark.asyncio
    async def test_warmup_during_outage_keeps_stale(self, forecaster, upstream, clock):
        await forecaster.get_score("marina")
        clock.advance(7 * 3600)
        upstream.status["hourly"] = 503

        report = await WarmupScheduler(forecaster).warmup("accuweather-predawn")

        assert report.failed == 1
        assert report.refreshed == 1
        result = await forecaster.get_score("marina")
        assert any(s.startswith("accuweather.hourly:STALE") for s in result.degraded_sources)

    @pytest.mark.asyncio
    async def test_unknown_label(self, forecaster, upstream):
        report = await WarmupScheduler(forecaster).warmup("nope")

        assert report.total == 0
        assert report.errors
        assert sum(upstream.calls.values()) == 0

    @pytest.mark.asyncio
    async def test_run_forever_warms_on_trigger(self, forecaster, upstream):
        wall = FakeWall(datetime(2025, 3, 20, 19, 0, tzinfo=IST), max_fires=1)
        warmer = WarmupScheduler(forecaster, now=wall, wait=wall.wait)

        await warmer.run_forever()

        # 22:00 is the open-meteo-12z trigger
        assert upstream.calls["forecast"] == 2
        assert upstream.calls["hourly"] == 0
