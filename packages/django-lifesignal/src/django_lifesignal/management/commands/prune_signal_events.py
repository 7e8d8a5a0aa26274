"""Management command to prune old signal event log rows."""

from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from django_lifesignal.conf import get_setting
from django_lifesignal.events import EventType
from django_lifesignal.models import SignalEventLog


class Command(BaseCommand):
    help = 'Delete signal event log entries older than the retention window'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            default=None,
            help='Delete events older than this many days '
                 '(default: LIFESIGNAL_EVENT_LOG_RETENTION_DAYS)'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show count of events that would be deleted without deleting'
        )

    def handle(self, *args, **options):
        days = options['days']
        if days is None:
            days = get_setting('EVENT_LOG_RETENTION_DAYS')
        dry_run = options['dry_run']
        cutoff = timezone.now() - timedelta(days=days)

        qs = SignalEventLog.objects.filter(occurred_at__lt=cutoff)
        count = qs.count()

        if dry_run:
            self.stdout.write(f'Would delete {count} signal events (older than {days} days)')
            for event_type in EventType:
                type_count = qs.filter(event_type=event_type).count()
                if type_count > 0:
                    self.stdout.write(f'  - {event_type.label}: {type_count}')
        else:
            deleted, _ = qs.delete()
            self.stdout.write(
                self.style.SUCCESS(f'Deleted {deleted} signal events')
            )
