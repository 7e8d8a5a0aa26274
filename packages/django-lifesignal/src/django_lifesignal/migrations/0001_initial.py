# Generated manually for standalone django-lifesignal package

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="SignalEventLog",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        choices=[
                            ("check_in_expired", "Check-in expired"),
                            ("check_in_reminder", "Check-in reminder"),
                            ("dependent_non_responsive", "Dependent non-responsive"),
                            ("ping_received", "Ping received"),
                            ("alert_activated", "Alert activated"),
                            ("alert_deactivated", "Alert deactivated"),
                        ],
                        help_text="What happened",
                        max_length=50,
                    ),
                ),
                (
                    "subject_id",
                    models.CharField(help_text="User the event is about", max_length=128),
                ),
                (
                    "occurred_at",
                    models.DateTimeField(help_text="When the transition was observed"),
                ),
                (
                    "payload",
                    models.JSONField(blank=True, default=dict, help_text="Event details"),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["-occurred_at"],
                "indexes": [
                    models.Index(
                        fields=["event_type", "-occurred_at"],
                        name="lifesignal_type_occurred_idx",
                    ),
                    models.Index(fields=["subject_id"], name="lifesignal_subject_idx"),
                ],
            },
        ),
    ]
