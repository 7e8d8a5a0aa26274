"""Tests for HttpBackend against an httpx mock transport."""

import asyncio
import json

import httpx
import pytest
from django.core.exceptions import ImproperlyConfigured
from django.test import override_settings

from django_lifesignal.backends.http import HttpBackend
from django_lifesignal.backends.memory import InMemoryAuth
from django_lifesignal.exceptions import (
    AlreadyExists,
    InvalidInput,
    NotFound,
    RemoteFailure,
    Unauthenticated,
)


class TokenAuth(InMemoryAuth):
    async def id_token(self):
        return f"token-{self.current_user_id()}"


USER = {
    "uid": "alice",
    "name": "Alice",
    "qrCodeId": "qr-alice",
    "lastCheckedIn": "2025-01-01T12:00:00+00:00",
    "checkInInterval": 86400,
}


def make_backend(handler, **kwargs):
    kwargs.setdefault("poll_seconds", 0)
    return HttpBackend(
        TokenAuth("alice"),
        "https://api.example.test",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def error(status_code, status, message="failed"):
    return httpx.Response(status_code, json={"error": {"status": status, "message": message}})


@pytest.mark.asyncio
class TestDocuments:
    """Tests for user and contact document endpoints."""

    async def test_load_user(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=USER)

        backend = make_backend(handler)
        document = await backend.load_user("alice")

        assert document == USER
        assert requests[0].method == "GET"
        assert requests[0].url.path == "/users/alice"
        assert requests[0].headers["Authorization"] == "Bearer token-alice"

    async def test_update_user_fields_patches(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(204)

        backend = make_backend(handler)
        await backend.update_user_fields("alice", {"note": "Diabetic"})

        assert requests[0].method == "PATCH"
        assert json.loads(requests[0].content) == {"note": "Diabetic"}

    async def test_load_contacts_envelope_or_list(self):
        edges = [{"id": "bob", "isResponder": True, "isDependent": False}]

        wrapped = make_backend(lambda request: httpx.Response(200, json={"contacts": edges}))
        bare = make_backend(lambda request: httpx.Response(200, json=edges))

        assert await wrapped.load_contacts("alice") == edges
        assert await bare.load_contacts("alice") == edges


@pytest.mark.asyncio
class TestFunctions:
    """Tests for callable functions."""

    async def test_call_wraps_data_and_unwraps_result(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"result": {"userId": "bob", "name": "Bob"}})

        backend = make_backend(handler)
        result = await backend.lookup_user_by_code("qr-bob")

        assert result == {"userId": "bob", "name": "Bob"}
        assert requests[0].url.path == "/functions/lookupUserByQRCode"
        assert json.loads(requests[0].content) == {"data": {"qrCode": "qr-bob"}}

    async def test_respond_to_all_sends_empty_data(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"result": {"success": True}})

        await make_backend(handler).respond_to_all_pings()

        assert json.loads(requests[0].content) == {"data": {}}


@pytest.mark.asyncio
class TestErrorMapping:
    """Tests for translating HTTP errors into lifesignal exceptions."""

    @pytest.mark.parametrize(
        "response,expected",
        [
            (error(404, "NOT_FOUND"), NotFound),
            (error(400, "NOT_FOUND"), NotFound),
            (error(409, "ALREADY_EXISTS"), AlreadyExists),
            (error(401, "UNAUTHENTICATED"), Unauthenticated),
            (error(400, "INVALID_ARGUMENT"), InvalidInput),
            (error(500, "INTERNAL"), RemoteFailure),
            (httpx.Response(503, text="Service Unavailable"), RemoteFailure),
        ],
    )
    async def test_status_mapping(self, response, expected):
        backend = make_backend(lambda request: response)

        with pytest.raises(expected):
            await backend.ping_dependent("bob")

    async def test_transport_error_becomes_remote_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        backend = make_backend(handler)

        with pytest.raises(RemoteFailure) as exc_info:
            await backend.load_user("alice")

        assert isinstance(exc_info.value.original_error, httpx.ConnectError)

    async def test_non_json_body(self):
        backend = make_backend(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(RemoteFailure):
            await backend.load_user("alice")

    async def test_error_message_preserved(self):
        backend = make_backend(lambda request: error(400, "INVALID_ARGUMENT", "bad dependentId"))

        with pytest.raises(InvalidInput) as exc_info:
            await backend.ping_dependent("bob")

        assert "bad dependentId" in str(exc_info.value)


@pytest.mark.asyncio
class TestPollingStreams:
    """Tests for polled streams."""

    async def test_yields_only_changes(self):
        versions = [USER, USER, {**USER, "note": "changed"}]
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=versions[min(len(calls), len(versions)) - 1])

        stream = make_backend(handler).stream_user("alice")
        first = await asyncio.wait_for(stream.__anext__(), timeout=1)
        second = await asyncio.wait_for(stream.__anext__(), timeout=1)
        await stream.aclose()

        assert first == USER
        assert second["note"] == "changed"
        assert len(calls) == 3

    async def test_transient_failure_keeps_polling(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(503)
            return httpx.Response(200, json=[])

        stream = make_backend(handler).stream_contacts("alice")
        contacts = await asyncio.wait_for(stream.__anext__(), timeout=1)
        await stream.aclose()

        assert contacts == []
        assert len(calls) == 2


class TestConfiguration:
    """Tests for HttpBackend settings."""

    def test_base_url_required(self):
        with pytest.raises(ImproperlyConfigured):
            HttpBackend(InMemoryAuth("alice"))

    @override_settings(LIFESIGNAL_API_BASE_URL="https://configured.example.test")
    def test_base_url_from_settings(self):
        backend = HttpBackend(InMemoryAuth("alice"))

        assert str(backend.client.base_url).startswith("https://configured.example.test")
        assert backend.poll_seconds == 5
