"""
Polling monitor for time-driven transitions.

Nothing fires when a check-in window closes; time just passes. The monitor
re-evaluates the mirrored state on a fixed period and publishes each
transition once.
"""

import asyncio
import logging
from datetime import datetime

from . import conf, schema, timing
from .events import EventType, SignalEvent
from .state import AggregatesRefreshed
from .sync import SyncManager

logger = logging.getLogger(__name__)


class CheckInMonitor:
    """
    Publishes check_in_expired, check_in_reminder and dependent_non_responsive.

    Each event is keyed by the expiration time it refers to, so a new check-in
    (which moves the expiration) can trigger the same kind of event again.
    """

    def __init__(self, sync: SyncManager, poll_seconds: float = None):
        self.sync = sync
        self.poll_seconds = (
            poll_seconds if poll_seconds is not None else conf.get_setting("MONITOR_POLL_SECONDS")
        )
        # (kind, subject) -> (expiration key, emitted variants for that expiration)
        self._emitted: dict[tuple[str, str], tuple[int, set]] = {}
        self._task: asyncio.Task | None = None

    def reset(self) -> None:
        self._emitted.clear()

    def _once(self, kind: str, subject: str, expires_key: int, variant=None) -> bool:
        """True the first time (kind, subject, expiration, variant) is seen.

        Only the latest expiration per (kind, subject) is remembered; a new
        expiration replaces the old one.
        """
        slot = (kind, subject)
        current = self._emitted.get(slot)
        if current is None or current[0] != expires_key:
            current = (expires_key, set())
            self._emitted[slot] = current
        if variant in current[1]:
            return False
        current[1].add(variant)
        return True

    def _forget_missing_dependents(self, dependent_ids: set[str]) -> None:
        stale = [
            slot for slot in self._emitted
            if slot[0] == "dependent" and slot[1] not in dependent_ids
        ]
        for slot in stale:
            del self._emitted[slot]

    async def poll(self, now: datetime = None) -> list[SignalEvent]:
        """Evaluate at `now`, publish new transitions and return them."""
        now = now or self.sync.clock()
        state = await self.sync.store.dispatch(AggregatesRefreshed(now))
        events = []

        user = state.user
        if user is not None:
            status = user.status(now)
            expires_key = int(status.expiration_time.timestamp())
            if status.is_expired:
                if self._once("expired", user.uid, expires_key):
                    events.append(SignalEvent(
                        EventType.CHECK_IN_EXPIRED,
                        user.uid,
                        now,
                        {"expired_at": schema.encode_value(status.expiration_time)},
                    ))
            elif user.notification_enabled:
                for flag, lead_time in conf.get_reminder_lead_times().items():
                    if not getattr(user, flag, False) or not status.is_due_soon(lead_time):
                        continue
                    minutes = int(lead_time.total_seconds() // 60)
                    if self._once("reminder", user.uid, expires_key, minutes):
                        events.append(SignalEvent(
                            EventType.CHECK_IN_REMINDER,
                            user.uid,
                            now,
                            {
                                "lead_minutes": minutes,
                                "expires_at": schema.encode_value(status.expiration_time),
                                "time_remaining": timing.format_time_interval(status.time_remaining),
                            },
                        ))

        for edge in state.dependents():
            if not edge.is_non_responsive(now):
                continue
            expires_at = edge.expiration_time()
            if self._once("dependent", edge.id, int(expires_at.timestamp())):
                events.append(SignalEvent(
                    EventType.DEPENDENT_NON_RESPONSIVE,
                    edge.id,
                    now,
                    {"name": edge.name, "expired_at": schema.encode_value(expires_at)},
                ))

        self._forget_missing_dependents({edge.id for edge in state.dependents()})
        await self.sync.events.publish_all(events)
        return events

    async def _run(self) -> None:
        while True:
            try:
                await self.poll()
            except Exception:
                logger.exception("Check-in monitor poll failed")
            await asyncio.sleep(self.poll_seconds)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._task = asyncio.create_task(self._run(), name="lifesignal-monitor")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
