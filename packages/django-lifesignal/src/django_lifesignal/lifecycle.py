"""
Check-in lifecycle of the signed-in user.

A user is active until `last_checked_in + check_in_interval` has passed and
expired after. Checking in restarts the window. Reminders are advisory and
are described here for a notification layer to schedule.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from . import conf, timing
from .exceptions import InvalidInput, NotFound
from .sync import SyncManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reminder:
    """A reminder a notification layer should schedule."""

    identifier: str
    fire_at: datetime
    lead_time: timedelta


def reminder_identifier(expires_at: datetime, lead_time: timedelta) -> str:
    minutes = int(lead_time.total_seconds() // 60)
    return f"checkInReminder-{int(expires_at.timestamp())}-{minutes}"


def validate_interval(interval: timedelta) -> None:
    """
    Check an interval against the configured bounds.

    Raises:
        InvalidInput: Non-positive, not a whole number of seconds, below
            LIFESIGNAL_MIN_CHECK_IN_INTERVAL or above
            LIFESIGNAL_MAX_CHECK_IN_INTERVAL when that is set
    """
    if not isinstance(interval, timedelta):
        raise InvalidInput("check_in_interval", "must be a timedelta")
    if interval <= timedelta(0):
        raise InvalidInput("check_in_interval", "must be greater than zero")
    # The wire format carries whole seconds.
    if interval % timedelta(seconds=1):
        raise InvalidInput("check_in_interval", "must be a whole number of seconds")

    minimum = conf.get_setting("MIN_CHECK_IN_INTERVAL")
    if minimum and interval < minimum:
        raise InvalidInput(
            "check_in_interval",
            f"must be at least {timing.format_time_interval(minimum)}",
        )
    maximum = conf.get_setting("MAX_CHECK_IN_INTERVAL")
    if maximum and interval > maximum:
        raise InvalidInput(
            "check_in_interval",
            f"must be at most {timing.format_interval_full(maximum)}",
        )


class CheckInService:

    def __init__(self, sync: SyncManager):
        self.sync = sync

    def _user(self):
        uid = self.sync.require_user_id()
        user = self.sync.store.state.user
        if user is None or user.uid != uid:
            raise NotFound("user", uid)
        return user

    async def check_in(self) -> datetime:
        """Restart the check-in window now. Returns the new check-in time."""
        now = self.sync.clock()
        await self.sync.update_self_fields(last_checked_in=now)
        logger.info("Checked in at %s", now.isoformat())
        return now

    async def update_check_in_interval(self, interval: timedelta) -> None:
        """
        Change the check-in interval.

        Applies retroactively: a shorter interval can expire the current
        window immediately, a longer one can revive it.
        """
        validate_interval(interval)
        await self.sync.update_self_fields(check_in_interval=interval)
        logger.info("Check-in interval set to %s", timing.format_interval_full(interval))

    def status(self, now: datetime = None) -> timing.CheckInStatus:
        """
        The local user's check-in status at `now`.

        Raises:
            Unauthenticated: No signed-in user
            NotFound: The user's record has not been loaded
        """
        return self._user().status(now or self.sync.clock())

    def scheduled_reminders(self, now: datetime = None) -> list[Reminder]:
        """Reminders still ahead of `now` for the enabled lead times, earliest first."""
        user = self._user()
        if not user.notification_enabled:
            return []

        now = now or self.sync.clock()
        expires_at = timing.expiration_time(user.last_checked_in, user.check_in_interval)
        reminders = []
        for flag, lead_time in conf.get_reminder_lead_times().items():
            if not getattr(user, flag, False):
                continue
            fire_at = expires_at - lead_time
            if fire_at <= now:
                continue
            reminders.append(Reminder(reminder_identifier(expires_at, lead_time), fire_at, lead_time))
        return reminders

    async def update_notification_preferences(
        self,
        notify_30_min: bool = None,
        notify_2_hours: bool = None,
    ) -> None:
        """Set the reminder lead-time flags. None leaves a flag unchanged."""
        changes = {}
        if notify_30_min is not None:
            changes["notify_30_min_before"] = notify_30_min
        if notify_2_hours is not None:
            changes["notify_2_hours_before"] = notify_2_hours
        if not changes:
            return
        await self.sync.update_self_fields(**changes)
        logger.info("Notification preferences updated: %s", changes)
