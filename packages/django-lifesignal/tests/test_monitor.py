"""Tests for CheckInMonitor."""

import asyncio

import pytest

from django_lifesignal.events import EventType


@pytest.fixture
def monitored(make_client, server, recorder, alice, bob):
    """Alice monitors Bob; Alice's client records events."""
    server.call("alice", "addContactRelation", {
        "contactId": "bob", "isResponder": False, "isDependent": True,
    })
    return make_client("alice", sinks=[recorder])


@pytest.mark.asyncio
class TestOwnCheckIn:
    """Events about the local user's own window."""

    async def test_nothing_while_active(self, monitored, recorder):
        await monitored.refresh()

        events = await monitored.monitor.poll()

        assert events == []
        assert recorder.events == []

    async def test_reminder_once_in_lead_window(self, monitored, recorder, clock):
        """A 30-minute reminder fires once when the window opens."""
        await monitored.refresh()

        clock.advance(hours=23, minutes=40)
        await monitored.monitor.poll()
        clock.advance(minutes=5)
        await monitored.monitor.poll()

        assert recorder.types() == [EventType.CHECK_IN_REMINDER]
        assert recorder.events[0].payload["lead_minutes"] == 30
        assert recorder.events[0].payload["time_remaining"] == "20m"

    async def test_no_reminder_when_notifications_disabled(self, monitored, recorder, clock):
        await monitored.refresh()
        await monitored.profile.set_notifications_enabled(False)

        clock.advance(hours=23, minutes=45)
        await monitored.monitor.poll()

        assert recorder.events == []

    async def test_two_hour_reminder_needs_flag(self, monitored, recorder, clock):
        await monitored.refresh()
        clock.advance(hours=22, minutes=30)

        await monitored.monitor.poll()
        assert recorder.events == []

        await monitored.check_ins.update_notification_preferences(notify_2_hours=True)
        await monitored.monitor.poll()
        assert recorder.types() == [EventType.CHECK_IN_REMINDER]
        assert recorder.events[0].payload["lead_minutes"] == 120

    async def test_expired_once_per_window(self, monitored, recorder, clock):
        """check_in_expired fires once, and again only after a new window expires."""
        await monitored.refresh()

        clock.advance(hours=24, seconds=1)
        await monitored.monitor.poll()
        clock.advance(hours=1)
        await monitored.monitor.poll()
        assert recorder.types().count(EventType.CHECK_IN_EXPIRED) == 1

        await monitored.check_ins.check_in()
        clock.advance(hours=24, seconds=1)
        await monitored.monitor.poll()
        assert recorder.types().count(EventType.CHECK_IN_EXPIRED) == 2

    async def test_expiration_instant_is_not_expired(self, monitored, recorder, clock):
        await monitored.refresh()
        clock.advance(hours=24)

        events = await monitored.monitor.poll()

        assert EventType.CHECK_IN_EXPIRED not in [event.event_type for event in events]


@pytest.mark.asyncio
class TestDependents:
    """Events about monitored dependents."""

    async def test_dependent_non_responsive_once(self, monitored, recorder, clock):
        await monitored.refresh()
        # Keep Alice's own window open so only Bob's expiry is reported
        clock.advance(hours=24, minutes=5)
        await monitored.check_ins.check_in()

        await monitored.monitor.poll()
        await monitored.monitor.poll()

        dependent_events = [
            event for event in recorder.events
            if event.event_type == EventType.DEPENDENT_NON_RESPONSIVE
        ]
        assert len(dependent_events) == 1
        assert dependent_events[0].subject_id == "bob"
        assert monitored.state.non_responsive_dependents_count == 1

    async def test_poll_refreshes_aggregate(self, monitored, clock):
        """The count follows time without any delivery."""
        await monitored.refresh()
        assert monitored.state.non_responsive_dependents_count == 0

        clock.advance(hours=25)
        await monitored.monitor.poll()

        assert monitored.state.non_responsive_dependents_count == 1

    async def test_responders_not_reported(self, make_client, server, recorder, clock, alice, bob):
        server.call("alice", "addContactRelation", {
            "contactId": "bob", "isResponder": True, "isDependent": False,
        })
        client = make_client("alice", sinks=[recorder])
        await client.refresh()
        clock.advance(hours=25)

        await client.monitor.poll()

        assert EventType.DEPENDENT_NON_RESPONSIVE not in recorder.types()


@pytest.mark.asyncio
class TestEmittedMemory:
    """The monitor remembers only the latest window per subject."""

    async def test_superseded_windows_are_forgotten(self, monitored, recorder, clock):
        await monitored.refresh()

        for _ in range(3):
            clock.advance(hours=25)
            await monitored.monitor.poll()
            await monitored.check_ins.check_in()

        assert recorder.types().count(EventType.CHECK_IN_EXPIRED) == 3
        assert set(monitored.monitor._emitted) == {("expired", "alice"), ("dependent", "bob")}

    async def test_removed_dependent_is_forgotten(self, monitored, clock):
        await monitored.refresh()
        clock.advance(hours=25)
        await monitored.monitor.poll()
        assert ("dependent", "bob") in monitored.monitor._emitted

        await monitored.contacts.remove_contact("bob")
        await monitored.monitor.poll()

        assert ("dependent", "bob") not in monitored.monitor._emitted


@pytest.mark.asyncio
class TestMonitorLoop:
    """Tests for start() / stop()."""

    async def test_loop_polls_until_stopped(self, make_client, recorder, clock, alice):
        client = make_client("alice", sinks=[recorder], monitor_poll_seconds=0.01)
        await client.refresh()
        clock.advance(hours=25)

        client.monitor.start()
        try:
            for _ in range(100):
                if recorder.events:
                    break
                await asyncio.sleep(0.01)
        finally:
            await client.monitor.stop()

        assert recorder.types() == [EventType.CHECK_IN_EXPIRED]
        assert client.monitor.running is False

    async def test_start_is_idempotent(self, make_client, alice):
        client = make_client("alice", monitor_poll_seconds=60)
        first = client.monitor.start()
        try:
            assert client.monitor.start() is first
        finally:
            await client.monitor.stop()
