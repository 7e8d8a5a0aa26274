from django.apps import AppConfig


class DjangoLifeSignalConfig(AppConfig):
    name = "django_lifesignal"
    verbose_name = "LifeSignal"
    default_auto_field = "django.db.models.BigAutoField"
