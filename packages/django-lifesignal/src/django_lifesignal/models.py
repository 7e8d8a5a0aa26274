"""Models for django-lifesignal.

Provides:
- SignalEventLog: Append-only audit of events published by the core
"""

from django.db import models

from .events import EventType


class SignalEventLog(models.Model):
    """
    One published event.

    Written by DatabaseEventSink, pruned by the prune_signal_events command.
    """

    event_type = models.CharField(
        max_length=50,
        choices=EventType.choices,
        help_text="What happened"
    )
    subject_id = models.CharField(
        max_length=128,
        help_text="User the event is about"
    )
    occurred_at = models.DateTimeField(
        help_text="When the transition was observed"
    )
    payload = models.JSONField(
        default=dict,
        blank=True,
        help_text="Event details"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-occurred_at"]
        indexes = [
            models.Index(fields=["event_type", "-occurred_at"], name="lifesignal_type_occurred_idx"),
            models.Index(fields=["subject_id"], name="lifesignal_subject_idx"),
        ]

    def __str__(self):
        return f"{self.event_type} {self.subject_id} @ {self.occurred_at:%Y-%m-%d %H:%M}"
