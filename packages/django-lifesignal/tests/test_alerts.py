"""Tests for AlertService."""

from unittest.mock import AsyncMock, patch

import pytest

from django_lifesignal.exceptions import RemoteFailure


@pytest.mark.asyncio
class TestManualAlert:
    """Tests for activate() / deactivate()."""

    async def test_activate_sets_flag_and_timestamp(self, make_client, server, clock, alice):
        client = make_client("alice")
        await client.refresh()

        assert await client.alerts.activate() is True

        user = client.state.user
        assert user.manual_alert_active is True
        assert user.manual_alert_timestamp == clock.now
        assert server.users["alice"]["manualAlertActive"] is True

    async def test_activate_twice_is_noop(self, make_client, alice):
        client = make_client("alice")
        await client.refresh()
        await client.alerts.activate()

        with patch.object(client.backend, "update_user_fields", new_callable=AsyncMock) as update:
            assert await client.alerts.activate() is False
        update.assert_not_called()

    async def test_deactivate_clears_flag_and_timestamp(self, make_client, server, alice):
        client = make_client("alice")
        await client.refresh()
        await client.alerts.activate()

        assert await client.alerts.deactivate() is True

        assert client.state.user.manual_alert_active is False
        assert client.state.user.manual_alert_timestamp is None
        assert server.users["alice"]["manualAlertTimestamp"] is None

    async def test_deactivate_when_inactive_is_noop(self, make_client, alice):
        client = make_client("alice")
        await client.refresh()

        assert await client.alerts.deactivate() is False

    async def test_activate_loads_record_when_missing(self, make_client, alice):
        """activate() works before the record has been mirrored."""
        client = make_client("alice")

        assert await client.alerts.activate() is True
        assert client.state.user.manual_alert_active is True

    async def test_failure_reloads_self(self, make_client, alice):
        client = make_client("alice")
        await client.refresh()

        with patch.object(
            client.backend,
            "update_user_fields",
            new_callable=AsyncMock,
            side_effect=RemoteFailure("update_user_fields"),
        ):
            with pytest.raises(RemoteFailure):
                await client.alerts.activate()

        assert client.state.user.manual_alert_active is False


@pytest.mark.asyncio
class TestObservedAlerts:
    """Tests for peers' alerts seen through contact edges."""

    async def test_dependent_alert_visible_and_emitted(self, make_client, server, alice, bob, recorder):
        """Bob's alert shows on Alice's edge and raises alert_activated."""
        server.call("alice", "addContactRelation", {
            "contactId": "bob", "isResponder": False, "isDependent": True,
        })
        client_a = make_client("alice", sinks=[recorder])
        client_b = make_client("bob")
        await client_a.refresh()
        await client_b.refresh()

        await client_b.alerts.activate()
        await client_a.sync.load_contacts()

        assert [edge.id for edge in client_a.alerts.alerting_dependents()] == ["bob"]
        assert [event.event_type.value for event in recorder.events] == ["alert_activated"]
        assert recorder.events[0].subject_id == "bob"

        await client_b.alerts.deactivate()
        await client_a.sync.load_contacts()

        assert client_a.alerts.alerting_dependents() == ()
        assert recorder.events[-1].event_type.value == "alert_deactivated"

    async def test_responder_alert_not_emitted(self, make_client, server, alice, bob, recorder):
        """Alerts from contacts the user does not monitor raise no event."""
        server.call("alice", "addContactRelation", {
            "contactId": "bob", "isResponder": True, "isDependent": False,
        })
        client_a = make_client("alice", sinks=[recorder])
        client_b = make_client("bob")
        await client_a.refresh()

        await client_b.alerts.activate()
        await client_a.sync.load_contacts()

        assert client_a.contacts.get("bob").manual_alert_active is True
        assert recorder.events == []
