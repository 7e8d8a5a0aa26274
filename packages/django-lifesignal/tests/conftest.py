from datetime import datetime, timedelta, timezone

import django
import pytest
from django.conf import settings


def pytest_configure():
    if not settings.configured:
        settings.configure(
            DEBUG=True,
            SECRET_KEY="test-secret-key-for-lifesignal",
            DATABASES={
                "default": {
                    "ENGINE": "django.db.backends.sqlite3",
                    "NAME": ":memory:",
                }
            },
            INSTALLED_APPS=[
                "django.contrib.contenttypes",
                "django.contrib.auth",
                "django_lifesignal",
            ],
            DEFAULT_AUTO_FIELD="django.db.models.BigAutoField",
            USE_TZ=True,
        )
    django.setup()


START = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock shared by the server and the clients of a test."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingSink:
    """Event sink collecting everything it is handed."""

    sink_name = "recording"

    def __init__(self):
        self.events = []

    async def handle(self, event):
        self.events.append(event)

    def types(self):
        return [event.event_type for event in self.events]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def server(clock):
    from django_lifesignal.backends.memory import InMemoryServer

    return InMemoryServer(clock=clock)


@pytest.fixture
def recorder():
    return RecordingSink()


@pytest.fixture
def make_client(server, clock):
    """Factory building a client signed in as `uid` against the shared server."""
    from django_lifesignal.backends.memory import InMemoryAuth, InMemoryBackend
    from django_lifesignal.client import LifeSignalClient

    def factory(uid, **kwargs):
        auth = InMemoryAuth(uid)
        kwargs.setdefault("clock", clock)
        return LifeSignalClient(auth, InMemoryBackend(server, auth), **kwargs)

    return factory


@pytest.fixture
def alice(server):
    return server.create_user("alice", name="Alice")


@pytest.fixture
def bob(server):
    return server.create_user("bob", name="Bob")

