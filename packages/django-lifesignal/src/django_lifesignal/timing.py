"""
Pure functions evaluating a check-in window.

Every function takes `now` explicitly; nothing here reads the clock or
caches a result, because the answer changes as time passes without any
event firing. Used by the lifecycle services, the monitor, contact edges
and tests directly.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from .exceptions import InvalidInput


MINUTE = timedelta(minutes=1)
HOUR = timedelta(hours=1)
DAY = timedelta(days=1)


class CheckInState(str, Enum):
    """Persisted lifecycle states. "Due soon" is advisory and not a state."""

    ACTIVE = "active"
    EXPIRED = "expired"


def _require_positive(interval: timedelta) -> None:
    if interval <= timedelta(0):
        raise InvalidInput("check_in_interval", "must be greater than zero")


def expiration_time(last_checked_in: datetime, interval: timedelta) -> datetime:
    """When the window that started at `last_checked_in` closes."""
    _require_positive(interval)
    return last_checked_in + interval


def is_expired(last_checked_in: datetime, interval: timedelta, now: datetime) -> bool:
    """Strictly after expiration; the expiration instant itself is still active."""
    return now > expiration_time(last_checked_in, interval)


def time_remaining(last_checked_in: datetime, interval: timedelta, now: datetime) -> timedelta:
    """Time until expiration. Negative once expired."""
    return expiration_time(last_checked_in, interval) - now


def progress(last_checked_in: datetime, interval: timedelta, now: datetime) -> float:
    """Fraction of the window elapsed, clamped to [0.0, 1.0]."""
    _require_positive(interval)
    elapsed = (now - last_checked_in) / interval
    return min(max(elapsed, 0.0), 1.0)


@dataclass(frozen=True)
class CheckInStatus:
    """Snapshot of a check-in window evaluated at `now`."""

    last_checked_in: datetime
    interval: timedelta
    now: datetime
    expiration_time: datetime
    time_remaining: timedelta
    progress: float
    state: CheckInState

    @property
    def is_expired(self) -> bool:
        return self.state is CheckInState.EXPIRED

    def is_due_soon(self, lead_time: timedelta) -> bool:
        """Within `lead_time` of expiration and not yet expired."""
        return not self.is_expired and self.time_remaining <= lead_time


def evaluate(last_checked_in: datetime, interval: timedelta, now: datetime) -> CheckInStatus:
    """Evaluate every derived value of a check-in window at once."""
    expires_at = expiration_time(last_checked_in, interval)
    return CheckInStatus(
        last_checked_in=last_checked_in,
        interval=interval,
        now=now,
        expiration_time=expires_at,
        time_remaining=expires_at - now,
        progress=progress(last_checked_in, interval, now),
        state=CheckInState.EXPIRED if now > expires_at else CheckInState.ACTIVE,
    )


# =============================================================================
# Formatting
# =============================================================================

def format_time_interval(interval: timedelta) -> str:
    """
    Compact countdown text: "2d 5h", "5h 30m", "30m".

    Days suppress minutes. Zero or negative intervals render as "0m".
    """
    if interval <= timedelta(0):
        return "0m"

    days = interval // DAY
    hours = (interval % DAY) // HOUR
    minutes = (interval % HOUR) // MINUTE

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0 or days > 0:
        parts.append(f"{hours}h")
    if days == 0:
        parts.append(f"{minutes}m")
    return " ".join(parts)


def format_interval_full(interval: timedelta) -> str:
    """Interval in whole days, or whole hours below a day: "2 days", "1 hour"."""
    days = interval // DAY
    if days > 0:
        return f"{days} day{'' if days == 1 else 's'}"
    hours = (interval % DAY) // HOUR
    return f"{hours} hour{'' if hours == 1 else 's'}"


def format_time_ago(moment: datetime, now: datetime) -> str:
    """Relative past time: "2d ago", "3h ago", "5m ago" or "just now"."""
    elapsed = now - moment
    if elapsed < MINUTE:
        return "just now"
    if elapsed >= DAY:
        return f"{elapsed // DAY}d ago"
    if elapsed >= HOUR:
        return f"{elapsed // HOUR}h ago"
    return f"{elapsed // MINUTE}m ago"
