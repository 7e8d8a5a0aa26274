"""Configuration helpers for django-lifesignal.

All settings can be overridden in your Django settings.py.

Example:
    # settings.py
    LIFESIGNAL_MIN_CHECK_IN_INTERVAL = timedelta(hours=1)
    LIFESIGNAL_EVENT_SINKS = ["django_lifesignal.events.DatabaseEventSink"]
"""

from datetime import datetime, timedelta
from functools import lru_cache
from importlib import import_module

from django.conf import settings
from django.utils import timezone

from .exceptions import SinkLoadError


DEFAULTS = {
    "DEFAULT_CHECK_IN_INTERVAL": timedelta(hours=24),
    "MIN_CHECK_IN_INTERVAL": timedelta(seconds=60),
    "MAX_CHECK_IN_INTERVAL": None,
    # Lead-time flag on the user record -> how long before expiry it fires
    "REMINDER_LEAD_TIMES": {
        "notify_30_min_before": timedelta(minutes=30),
        "notify_2_hours_before": timedelta(hours=2),
    },
    "MONITOR_POLL_SECONDS": 30,
    "STREAM_POLL_SECONDS": 5,
    "API_BASE_URL": "",
    "HTTP_TIMEOUT_SECONDS": 30,
    "EVENT_SINKS": [],
    "EVENT_LOG_RETENTION_DAYS": 30,
}


def get_setting(name: str, default=None):
    """Get a setting with LIFESIGNAL_ prefix, falling back to DEFAULTS."""
    if default is None:
        default = DEFAULTS.get(name)
    return getattr(settings, f"LIFESIGNAL_{name}", default)


def aware_now() -> datetime:
    """timezone.now(), made aware in the current time zone when USE_TZ is off."""
    now = timezone.now()
    if timezone.is_naive(now):
        now = timezone.make_aware(now)
    return now


def get_reminder_lead_times() -> dict[str, timedelta]:
    """Lead-time flag name -> lead time, ordered longest first."""
    lead_times = get_setting("REMINDER_LEAD_TIMES")
    return dict(sorted(lead_times.items(), key=lambda item: item[1], reverse=True))


@lru_cache(maxsize=32)
def load_sink(dotted_path: str):
    """
    Import and instantiate an event sink from dotted path.

    Raises SinkLoadError for bad imports or classes that are not event sinks.
    """
    from .events import BaseEventSink

    try:
        module_path, class_name = dotted_path.rsplit(".", 1)
    except ValueError:
        raise SinkLoadError(dotted_path, "Invalid dotted path format")

    try:
        module = import_module(module_path)
    except ImportError as e:
        raise SinkLoadError(dotted_path, f"Cannot import module: {e}")

    try:
        sink_class = getattr(module, class_name)
    except AttributeError:
        raise SinkLoadError(dotted_path, f"Class '{class_name}' not found in module")

    if not isinstance(sink_class, type) or not issubclass(sink_class, BaseEventSink):
        raise SinkLoadError(
            dotted_path,
            f"'{class_name}' must be a subclass of BaseEventSink"
        )

    return sink_class()


def get_configured_sinks() -> list:
    """Load every sink named in LIFESIGNAL_EVENT_SINKS."""
    return [load_sink(path) for path in get_setting("EVENT_SINKS") or []]


def clear_sink_cache():
    """Clear the sink loading cache. Useful for testing."""
    load_sink.cache_clear()
