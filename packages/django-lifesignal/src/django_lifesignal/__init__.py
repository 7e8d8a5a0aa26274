"""
django-lifesignal: Check-in expiry, contact relationships and ping propagation.

Provides:
- timing: Pure expiry/progress evaluation for a check-in window
- LifeSignalClient: Composition root wiring auth, backend, store and services
- ContactService / PingService / AlertService / CheckInService: Optimistic
  operations that reload authoritative state on remote failure
- SignalEventLog: Audit of emitted transition events
"""

__version__ = "0.1.0"

__all__ = [
    "LifeSignalClient",
    "SignalEventLog",
    "LifeSignalError",
    "Unauthenticated",
    "NotFound",
    "AlreadyExists",
    "InvalidInput",
    "RemoteFailure",
]


def __getattr__(name):
    """Lazy imports to prevent AppRegistryNotReady errors."""
    if name == "LifeSignalClient":
        from .client import LifeSignalClient

        return LifeSignalClient
    if name == "SignalEventLog":
        from .models import SignalEventLog

        return SignalEventLog
    if name in (
        "LifeSignalError",
        "Unauthenticated",
        "NotFound",
        "AlreadyExists",
        "InvalidInput",
        "RemoteFailure",
    ):
        from . import exceptions

        return getattr(exceptions, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
