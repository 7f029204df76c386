"""
Seaside Beacon Warmup Scheduler

Pre-fetches provider data shortly after each upstream publishes a new model
run, so evening visitors hit a warm cache instead of the upstream.

Triggers are plain (local time, label, providers) entries; the timezone is
configuration. A warmup is just another caller of ProviderClient.fetch
(with force_refresh), so it shares the in-flight and negative-cache layers
with live requests. Warmups log failures and never raise.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from seaside_beacon.config import Trigger
from seaside_beacon.errors import NoDataAvailable
from seaside_beacon.forecast import SunriseForecaster

logger = logging.getLogger(__name__)

ALL_PROVIDERS = "all"


async def wait_for_stop(stop: asyncio.Event, timeout: float) -> bool:
    """Sleep up to timeout seconds; True if stop was set meanwhile."""
    try:
        await asyncio.wait_for(stop.wait(), timeout=max(timeout, 0))
        return True
    except asyncio.TimeoutError:
        return stop.is_set()


class TriggerScheduler:
    """Fires a callback at fixed local wall-clock times, every day."""

    def __init__(
        self,
        triggers: Sequence[Trigger],
        timezone: str = "Asia/Kolkata",
        now: Optional[Callable[[], datetime]] = None,
        wait: Callable[[asyncio.Event, float], Awaitable[bool]] = wait_for_stop,
    ):
        if not triggers:
            raise ValueError("TriggerScheduler needs at least one trigger")
        self.triggers = list(triggers)
        self.tz = ZoneInfo(timezone)
        self._now = now or (lambda: datetime.now(self.tz))
        self._wait = wait

    def next_fire(self, now: datetime) -> Tuple[datetime, Trigger]:
        """Earliest (fire time, trigger) strictly after now."""
        local = now.astimezone(self.tz)
        best: Optional[Tuple[datetime, Trigger]] = None
        for trigger in self.triggers:
            fire_at = datetime.combine(local.date(), trigger.at, tzinfo=self.tz)
            if fire_at <= local:
                fire_at = datetime.combine(local.date() + timedelta(days=1), trigger.at, tzinfo=self.tz)
            if best is None or fire_at < best[0]:
                best = (fire_at, trigger)
        return best

    async def run(
        self,
        callback: Callable[[Trigger], Awaitable[Any]],
        stop: Optional[asyncio.Event] = None,
    ) -> None:
        """Loop until stop is set, awaiting callback(trigger) at each fire time."""
        stop = stop or asyncio.Event()
        while not stop.is_set():
            now = self._now()
            fire_at, trigger = self.next_fire(now)
            delay = (fire_at - now).total_seconds()
            logger.info(f"[TriggerScheduler] Next: {trigger.label} at {fire_at.isoformat()} (in {delay / 60:.0f} min)")

            if await self._wait(stop, delay):
                break

            try:
                await callback(trigger)
            except Exception as e:
                logger.error(f"[TriggerScheduler] {trigger.label} callback failed: {e}", exc_info=True)

        logger.info("[TriggerScheduler] Stopped")


@dataclass
class WarmupReport:
    """Outcome of one warmup run."""
    label: str
    refreshed: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.refreshed + self.failed


class WarmupScheduler:
    """Best-effort cache warmup on model-cycle triggers."""

    def __init__(
        self,
        forecaster: SunriseForecaster,
        triggers: Optional[Sequence[Trigger]] = None,
        timezone: Optional[str] = None,
        now: Optional[Callable[[], datetime]] = None,
        wait: Callable[[asyncio.Event, float], Awaitable[bool]] = wait_for_stop,
    ):
        self.forecaster = forecaster
        self.triggers = list(triggers if triggers is not None else forecaster.settings.warmup_triggers)
        self.timezone = timezone or forecaster.settings.timezone
        self._now = now
        self._wait = wait

    def providers_for(self, label: str) -> Optional[Tuple[str, ...]]:
        if label == ALL_PROVIDERS:
            return tuple(self.forecaster.providers)
        for trigger in self.triggers:
            if trigger.label == label:
                return trigger.providers
        return None

    async def warmup(self, label: str = ALL_PROVIDERS) -> WarmupReport:
        """
        Force-refresh every endpoint of the providers named by label.

        Args:
            label: Trigger label, or "all"

        Returns:
            WarmupReport with refreshed / failed counts
        """
        report = WarmupReport(label=label)
        providers = self.providers_for(label)
        if providers is None:
            logger.error(f"[WarmupScheduler] Unknown warmup label '{label}'")
            report.errors.append(f"unknown label '{label}'")
            return report

        try:
            targets = self.forecaster.refresh_targets(providers)
        except ValueError as e:
            logger.error(f"[WarmupScheduler] {label}: {e}")
            report.errors.append(str(e))
            return report

        logger.info(f"[WarmupScheduler] {label}: refreshing {len(targets)} endpoint(s) for {', '.join(providers)}")
        outcomes = await asyncio.gather(
            *(self.forecaster.refresh(*target) for target in targets), return_exceptions=True
        )

        for (provider, endpoint, key), outcome in zip(targets, outcomes):
            name = f"{provider}.{endpoint} {key}"
            if isinstance(outcome, BaseException):
                report.failed += 1
                report.errors.append(f"{name}: {outcome}")
                level = logging.WARNING if isinstance(outcome, NoDataAvailable) else logging.ERROR
                logger.log(level, f"[WarmupScheduler] {name} failed: {outcome}")
            elif outcome.source == "API":
                report.refreshed += 1
            else:
                report.failed += 1
                report.errors.append(f"{name}: {outcome.error_message or outcome.status_label}")
                logger.warning(f"[WarmupScheduler] {name} not refreshed ({outcome.status_label})")

        self.forecaster.invalidate_predictions()
        logger.info(f"[WarmupScheduler] {label}: {report.refreshed} refreshed, {report.failed} failed")
        return report

    async def run_forever(self, stop: Optional[asyncio.Event] = None) -> None:
        scheduler = TriggerScheduler(self.triggers, self.timezone, now=self._now, wait=self._wait)

        async def _fire(trigger: Trigger) -> None:
            await self.warmup(trigger.label)

        await scheduler.run(_fire, stop)
