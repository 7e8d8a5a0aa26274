"""
Outbound event channel.

The core never delivers notifications itself. It publishes `SignalEvent`s
to sinks; a sink may log them, persist them, or hand them to a push
service. Sink failures are logged and never reach the publisher.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from asgiref.sync import sync_to_async
from django.db import models

logger = logging.getLogger(__name__)


class EventType(models.TextChoices):
    CHECK_IN_EXPIRED = "check_in_expired", "Check-in expired"
    CHECK_IN_REMINDER = "check_in_reminder", "Check-in reminder"
    DEPENDENT_NON_RESPONSIVE = "dependent_non_responsive", "Dependent non-responsive"
    PING_RECEIVED = "ping_received", "Ping received"
    ALERT_ACTIVATED = "alert_activated", "Alert activated"
    ALERT_DEACTIVATED = "alert_deactivated", "Alert deactivated"


@dataclass(frozen=True)
class SignalEvent:
    """A transition worth telling someone about.

    `subject_id` is the user the event is about: the local user for
    check-in events, the peer for contact events. Payload values are
    JSON-compatible.
    """

    event_type: EventType
    subject_id: str
    occurred_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)


class BaseEventSink(ABC):
    """Abstract base class for event sinks."""

    sink_name: str = "base"

    @abstractmethod
    async def handle(self, event: SignalEvent) -> None:
        raise NotImplementedError


class LoggingEventSink(BaseEventSink):
    """Sink that logs events (for development)."""

    sink_name = "logging"

    async def handle(self, event: SignalEvent) -> None:
        logger.info(
            "EVENT %s subject=%s at=%s payload=%s",
            event.event_type.value,
            event.subject_id,
            event.occurred_at.isoformat(),
            event.payload,
        )


class DatabaseEventSink(BaseEventSink):
    """Sink that appends events to SignalEventLog."""

    sink_name = "database"

    def record(self, event: SignalEvent):
        from .models import SignalEventLog

        return SignalEventLog.objects.create(
            event_type=event.event_type,
            subject_id=event.subject_id,
            occurred_at=event.occurred_at,
            payload=event.payload,
        )

    async def handle(self, event: SignalEvent) -> None:
        await sync_to_async(self.record)(event)


class EventChannel:
    """Fans events out to every registered sink, in registration order."""

    def __init__(self, sinks: Iterable[BaseEventSink] = ()):
        self.sinks = list(sinks)

    def add_sink(self, sink: BaseEventSink) -> None:
        self.sinks.append(sink)

    async def publish(self, event: SignalEvent) -> None:
        logger.info("Publishing %s for %s", event.event_type.value, event.subject_id)
        for sink in self.sinks:
            try:
                await sink.handle(event)
            except Exception:
                logger.exception(
                    "Event sink %s failed on %s", sink.sink_name, event.event_type.value
                )

    async def publish_all(self, events: Iterable[SignalEvent]) -> None:
        for event in events:
            await self.publish(event)
