"""Tests for prune_signal_events management command."""

from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.test import override_settings
from django.utils import timezone

from django_lifesignal.events import EventType
from django_lifesignal.models import SignalEventLog


def log_event(days_ago, event_type=EventType.CHECK_IN_EXPIRED):
    return SignalEventLog.objects.create(
        event_type=event_type,
        subject_id="alice",
        occurred_at=timezone.now() - timedelta(days=days_ago),
    )


@pytest.mark.django_db
class TestPruneSignalEventsCommand:
    """Test suite for prune_signal_events command."""

    def test_deletes_old_events(self):
        """Command should delete events older than specified days."""
        old = log_event(days_ago=10)
        recent = log_event(days_ago=1)

        out = StringIO()
        call_command('prune_signal_events', '--days=7', stdout=out)

        assert not SignalEventLog.objects.filter(pk=old.pk).exists()
        assert SignalEventLog.objects.filter(pk=recent.pk).exists()
        assert 'Deleted 1 signal events' in out.getvalue()

    def test_default_retention(self):
        """Without --days the 30-day retention setting applies."""
        old = log_event(days_ago=31)
        kept = log_event(days_ago=29)

        call_command('prune_signal_events', stdout=StringIO())

        assert not SignalEventLog.objects.filter(pk=old.pk).exists()
        assert SignalEventLog.objects.filter(pk=kept.pk).exists()

    @override_settings(LIFESIGNAL_EVENT_LOG_RETENTION_DAYS=3)
    def test_retention_setting(self):
        old = log_event(days_ago=4)

        call_command('prune_signal_events', stdout=StringIO())

        assert not SignalEventLog.objects.filter(pk=old.pk).exists()

    def test_dry_run_does_not_delete(self):
        """--dry-run should show counts without deleting."""
        log_event(days_ago=10)
        log_event(days_ago=10, event_type=EventType.PING_RECEIVED)

        out = StringIO()
        call_command('prune_signal_events', '--days=7', '--dry-run', stdout=out)

        assert SignalEventLog.objects.count() == 2
        output = out.getvalue()
        assert 'Would delete 2 signal events' in output
        assert 'Check-in expired: 1' in output
        assert 'Ping received: 1' in output
