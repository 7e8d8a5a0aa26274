"""
In-process backend.

`InMemoryServer` holds every user's document and contact list in wire form
and implements the server side of the relationship model: mirrored edges,
ping propagation, cascade deletion and cached peer fields. Several
`InMemoryBackend` instances (one per signed-in user) can share one server,
which is how the multi-user scenarios in the tests run.
"""

import asyncio
import copy
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from .. import conf
from ..exceptions import AlreadyExists, InvalidInput, NotFound, RemoteFailure, Unauthenticated
from .base import AuthBackend, AuthListener, RemoteBackend, RemoteFunctions

logger = logging.getLogger(__name__)

# User document keys copied onto the edges pointing at that user
CACHED_PEER_KEYS = (
    "name",
    "phoneNumber",
    "note",
    "lastCheckedIn",
    "checkInInterval",
    "manualAlertActive",
    "manualAlertTimestamp",
)


def _wire_time(value: datetime) -> str:
    return value.isoformat()


class InMemoryServer:
    """Authoritative store shared by in-memory backends."""

    def __init__(self, clock: Callable[[], datetime] = None):
        self.clock = clock or conf.aware_now
        self.users: dict[str, dict[str, Any]] = {}
        self.edges: dict[str, dict[str, dict[str, Any]]] = {}
        self._user_queues: dict[str, list[asyncio.Queue]] = {}
        self._contact_queues: dict[str, list[asyncio.Queue]] = {}
        self._handlers = {
            RemoteFunctions.LOOKUP_USER_BY_QR_CODE: self._lookup_user_by_qr_code,
            RemoteFunctions.ADD_CONTACT_RELATION: self._add_contact_relation,
            RemoteFunctions.UPDATE_CONTACT_ROLES: self._update_contact_roles,
            RemoteFunctions.DELETE_CONTACT_RELATION: self._delete_contact_relation,
            RemoteFunctions.PING_DEPENDENT: self._ping_dependent,
            RemoteFunctions.CLEAR_PING: self._clear_ping,
            RemoteFunctions.RESPOND_TO_PING: self._respond_to_ping,
            RemoteFunctions.RESPOND_TO_ALL_PINGS: self._respond_to_all_pings,
        }

    # -------------------------------------------------------------------------
    # Seeding
    # -------------------------------------------------------------------------

    def create_user(
        self,
        uid: str = None,
        *,
        name: str = "",
        last_checked_in: datetime = None,
        check_in_interval: timedelta = None,
        **fields,
    ) -> dict[str, Any]:
        """Create a user document with the defaults a new account gets.

        Extra keyword arguments are wire keys merged into the document.
        """
        uid = uid or uuid.uuid4().hex
        interval = check_in_interval or conf.get_setting("DEFAULT_CHECK_IN_INTERVAL")
        now = self.clock()
        document = {
            "uid": uid,
            "name": name,
            "phoneNumber": "",
            "phoneRegion": "US",
            "note": "",
            "qrCodeId": str(uuid.uuid4()),
            "lastCheckedIn": _wire_time(last_checked_in or now),
            "checkInInterval": int(interval.total_seconds()),
            "notify30MinBefore": True,
            "notify2HoursBefore": False,
            "manualAlertActive": False,
            "manualAlertTimestamp": None,
            "notificationEnabled": True,
            "profileComplete": bool(name),
            "lastUpdated": _wire_time(now),
        }
        document.update(fields)
        self.users[uid] = document
        self.edges.setdefault(uid, {})
        self._notify_user(uid)
        return copy.deepcopy(document)

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    def get_user(self, uid: str) -> dict[str, Any]:
        try:
            return copy.deepcopy(self.users[uid])
        except KeyError:
            raise NotFound("user", uid)

    def update_user(self, uid: str, fields: dict[str, Any]) -> None:
        if uid not in self.users:
            raise NotFound("user", uid)
        self.users[uid].update(copy.deepcopy(fields))
        self._notify_user(uid)

        cached = {key: value for key, value in fields.items() if key in CACHED_PEER_KEYS}
        if cached:
            for peer_id in self.edges.get(uid, {}):
                edge = self.edges[peer_id].get(uid)
                if edge is not None:
                    edge.update(copy.deepcopy(cached))
                    self._notify_contacts(peer_id)

    def get_contacts(self, uid: str) -> list[dict[str, Any]]:
        if uid not in self.users:
            raise NotFound("user", uid)
        return [copy.deepcopy(edge) for edge in self.edges.get(uid, {}).values()]

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe_user(self, uid: str) -> asyncio.Queue:
        queue = asyncio.Queue()
        self._user_queues.setdefault(uid, []).append(queue)
        if uid in self.users:
            queue.put_nowait(self.get_user(uid))
        return queue

    def subscribe_contacts(self, uid: str) -> asyncio.Queue:
        queue = asyncio.Queue()
        self._contact_queues.setdefault(uid, []).append(queue)
        if uid in self.users:
            queue.put_nowait(self.get_contacts(uid))
        return queue

    def unsubscribe(self, uid: str, queue: asyncio.Queue) -> None:
        for registry in (self._user_queues, self._contact_queues):
            queues = registry.get(uid, [])
            if queue in queues:
                queues.remove(queue)

    def _notify_user(self, uid: str) -> None:
        for queue in self._user_queues.get(uid, []):
            queue.put_nowait(self.get_user(uid))

    def _notify_contacts(self, uid: str) -> None:
        for queue in self._contact_queues.get(uid, []):
            queue.put_nowait(self.get_contacts(uid))

    # -------------------------------------------------------------------------
    # Remote functions
    # -------------------------------------------------------------------------

    def call(self, caller: Optional[str], name: str, data: dict[str, Any]) -> Any:
        if caller is None:
            raise Unauthenticated()
        handler = self._handlers.get(name)
        if handler is None:
            raise RemoteFailure(name, "unknown function")
        logger.debug("In-memory call %s by %s: %s", name, caller, data)
        return handler(caller, data)

    def _require(self, data: dict[str, Any], key: str):
        value = data.get(key)
        if not value:
            raise InvalidInput(key, "is required")
        return value

    def _edge(self, owner: str, peer: str) -> dict[str, Any]:
        edge = self.edges.get(owner, {}).get(peer)
        if edge is None:
            raise NotFound("contact", peer)
        return edge

    def _new_edge(self, peer_id: str, is_responder: bool, is_dependent: bool) -> dict[str, Any]:
        peer = self.users[peer_id]
        now = _wire_time(self.clock())
        edge = {
            "id": peer_id,
            "isResponder": is_responder,
            "isDependent": is_dependent,
            "hasIncomingPing": False,
            "incomingPingTimestamp": None,
            "hasOutgoingPing": False,
            "outgoingPingTimestamp": None,
            "addedAt": now,
            "lastUpdated": now,
        }
        edge.update({key: copy.deepcopy(peer.get(key)) for key in CACHED_PEER_KEYS})
        return edge

    def _lookup_user_by_qr_code(self, caller, data):
        code = self._require(data, "qrCode")
        for document in self.users.values():
            if document.get("qrCodeId") == code:
                return {
                    "userId": document["uid"],
                    "name": document.get("name", ""),
                    "phoneNumber": document.get("phoneNumber", ""),
                    "emergencyNote": document.get("note", ""),
                }
        raise NotFound("qr code", code)

    def _add_contact_relation(self, caller, data):
        peer_id = self._require(data, "contactId")
        is_responder = bool(data.get("isResponder"))
        is_dependent = bool(data.get("isDependent"))
        if not (is_responder or is_dependent):
            raise InvalidInput("roles", "at least one role is required")
        if peer_id == caller:
            raise InvalidInput("contactId", "cannot add yourself as a contact")
        if peer_id not in self.users:
            raise NotFound("user", peer_id)
        if peer_id in self.edges.get(caller, {}):
            raise AlreadyExists(peer_id)

        # The peer sees the caller with the roles reversed
        self.edges.setdefault(caller, {})[peer_id] = self._new_edge(
            peer_id, is_responder, is_dependent
        )
        self.edges.setdefault(peer_id, {})[caller] = self._new_edge(
            caller, is_dependent, is_responder
        )
        self._notify_contacts(caller)
        self._notify_contacts(peer_id)
        return {"success": True}

    def _update_contact_roles(self, caller, data):
        peer_id = self._require(data, "contactId")
        is_responder = bool(data.get("isResponder"))
        is_dependent = bool(data.get("isDependent"))
        if not (is_responder or is_dependent):
            raise InvalidInput("roles", "at least one role is required")

        now = _wire_time(self.clock())
        self._edge(caller, peer_id).update(
            {"isResponder": is_responder, "isDependent": is_dependent, "lastUpdated": now}
        )
        mirrored = self.edges.get(peer_id, {}).get(caller)
        if mirrored is not None:
            mirrored.update(
                {"isResponder": is_dependent, "isDependent": is_responder, "lastUpdated": now}
            )
        self._notify_contacts(caller)
        self._notify_contacts(peer_id)
        return {"success": True}

    def _delete_contact_relation(self, caller, data):
        peer_id = self._require(data, "contactId")
        self._edge(caller, peer_id)
        del self.edges[caller][peer_id]
        self.edges.get(peer_id, {}).pop(caller, None)
        self._notify_contacts(caller)
        self._notify_contacts(peer_id)
        return {"success": True}

    def _ping_dependent(self, caller, data):
        dependent_id = self._require(data, "dependentId")
        edge = self._edge(caller, dependent_id)
        if not edge["isDependent"]:
            raise InvalidInput("dependentId", "contact is not a dependent")

        now = _wire_time(self.clock())
        edge.update({"hasOutgoingPing": True, "outgoingPingTimestamp": now})
        mirrored = self.edges.get(dependent_id, {}).get(caller)
        if mirrored is not None:
            mirrored.update({"hasIncomingPing": True, "incomingPingTimestamp": now})
        self._notify_contacts(caller)
        self._notify_contacts(dependent_id)
        return {"success": True}

    def _clear_ping(self, caller, data):
        dependent_id = self._require(data, "dependentId")
        self._edge(caller, dependent_id).update(
            {"hasOutgoingPing": False, "outgoingPingTimestamp": None}
        )
        mirrored = self.edges.get(dependent_id, {}).get(caller)
        if mirrored is not None:
            mirrored.update({"hasIncomingPing": False, "incomingPingTimestamp": None})
        self._notify_contacts(caller)
        self._notify_contacts(dependent_id)
        return {"success": True}

    def _answer_ping(self, caller: str, responder_id: str) -> None:
        self._edge(caller, responder_id).update(
            {"hasIncomingPing": False, "incomingPingTimestamp": None}
        )
        mirrored = self.edges.get(responder_id, {}).get(caller)
        if mirrored is not None:
            mirrored.update({"hasOutgoingPing": False, "outgoingPingTimestamp": None})
            self._notify_contacts(responder_id)

    def _respond_to_ping(self, caller, data):
        responder_id = self._require(data, "responderId")
        self._answer_ping(caller, responder_id)
        self._notify_contacts(caller)
        return {"success": True}

    def _respond_to_all_pings(self, caller, data):
        pinged = [
            peer_id
            for peer_id, edge in self.edges.get(caller, {}).items()
            if edge.get("hasIncomingPing")
        ]
        for peer_id in pinged:
            self._answer_ping(caller, peer_id)
        self._notify_contacts(caller)
        return {"success": True, "count": len(pinged)}


class InMemoryAuth(AuthBackend):
    """Authentication stand-in: whoever signs in is authenticated."""

    def __init__(self, user_id: str = None):
        self._user_id = user_id
        self._listeners: list[AuthListener] = []

    def current_user_id(self) -> Optional[str]:
        return self._user_id

    async def sign_in(self, user_id: str) -> None:
        self._user_id = user_id
        await self._notify()

    async def sign_out(self) -> None:
        self._user_id = None
        await self._notify()

    def add_listener(self, callback: AuthListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def remove():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove

    async def _notify(self) -> None:
        for callback in list(self._listeners):
            await callback(self._user_id)


class InMemoryBackend(RemoteBackend):
    """One user's view of an `InMemoryServer`."""

    def __init__(self, server: InMemoryServer, auth: AuthBackend):
        self.server = server
        self.auth = auth

    async def load_user(self, uid: str) -> dict[str, Any]:
        return self.server.get_user(uid)

    async def update_user_fields(self, uid: str, fields: dict[str, Any]) -> None:
        self.server.update_user(uid, fields)

    async def stream_user(self, uid: str):
        queue = self.server.subscribe_user(uid)
        try:
            while True:
                yield await queue.get()
        finally:
            self.server.unsubscribe(uid, queue)

    async def load_contacts(self, uid: str) -> list[dict[str, Any]]:
        return self.server.get_contacts(uid)

    async def stream_contacts(self, uid: str):
        queue = self.server.subscribe_contacts(uid)
        try:
            while True:
                yield await queue.get()
        finally:
            self.server.unsubscribe(uid, queue)

    async def call_function(self, name: str, data: Optional[dict[str, Any]] = None) -> Any:
        return self.server.call(self.auth.current_user_id(), name, data or {})
