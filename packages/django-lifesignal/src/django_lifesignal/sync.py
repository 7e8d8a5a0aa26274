"""
Synchronization between the local store and the remote backend.

Loads and stream deliveries are authoritative: they overwrite local state
unconditionally, in delivery order. Writes are optimistic: the local
action is dispatched first, the remote call follows, and a failed call is
repaired by reloading the authoritative state before the error is
re-raised.

Events about contacts (pings received, alerts raised or cleared) are
derived by diffing consecutive authoritative contact lists. The first list
after start is the baseline and emits nothing; optimistic writes never
emit events.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable

from . import conf, schema
from .backends.base import AuthBackend, RemoteBackend
from .events import EventChannel, EventType, SignalEvent
from .exceptions import DocumentDecodeError, LifeSignalError, RemoteFailure, Unauthenticated
from .schema import ContactEdge, UserRecord
from .state import ContactsLoaded, SelfLoaded, SelfPatched, Store

logger = logging.getLogger(__name__)


def diff_contacts(
    previous: tuple[ContactEdge, ...],
    current: tuple[ContactEdge, ...],
    now: datetime,
) -> list[SignalEvent]:
    """Events implied by moving from one authoritative contact list to the next."""
    before = {edge.id: edge for edge in previous}
    events = []
    for edge in current:
        old = before.get(edge.id)

        if edge.has_incoming_ping and not (old and old.has_incoming_ping):
            events.append(SignalEvent(
                EventType.PING_RECEIVED,
                edge.id,
                now,
                {
                    "name": edge.name,
                    "pinged_at": schema.encode_value(edge.incoming_ping_timestamp),
                },
            ))

        if not edge.is_dependent:
            continue
        was_active = bool(old and old.manual_alert_active)
        if edge.manual_alert_active and not was_active:
            events.append(SignalEvent(
                EventType.ALERT_ACTIVATED,
                edge.id,
                now,
                {
                    "name": edge.name,
                    "alerted_at": schema.encode_value(edge.manual_alert_timestamp),
                },
            ))
        elif was_active and not edge.manual_alert_active:
            events.append(SignalEvent(
                EventType.ALERT_DEACTIVATED, edge.id, now, {"name": edge.name}
            ))
    return events


class SyncManager:
    """Keeps the store in step with the backend for the signed-in user."""

    def __init__(
        self,
        store: Store,
        auth: AuthBackend,
        backend: RemoteBackend,
        events: EventChannel = None,
        clock: Callable[[], datetime] = None,
    ):
        self.store = store
        self.auth = auth
        self.backend = backend
        self.events = events or EventChannel()
        self.clock = clock or conf.aware_now
        self._tasks: dict[str, asyncio.Task] = {}
        self._last_contacts: tuple[ContactEdge, ...] | None = None

    def require_user_id(self) -> str:
        uid = self.auth.current_user_id()
        if not uid:
            raise Unauthenticated()
        return uid

    # -------------------------------------------------------------------------
    # Authoritative state
    # -------------------------------------------------------------------------

    async def load_self(self) -> UserRecord:
        uid = self.require_user_id()
        user = schema.decode_user(await self.backend.load_user(uid))
        await self.store.dispatch(SelfLoaded(user))
        return user

    async def ensure_self(self) -> UserRecord:
        """The local user record, loading it first if nothing is mirrored yet."""
        user = self.store.state.user
        if user is None or user.uid != self.require_user_id():
            user = await self.load_self()
        return user

    async def load_contacts(self) -> tuple[ContactEdge, ...]:
        uid = self.require_user_id()
        contacts = schema.decode_contacts(await self.backend.load_contacts(uid))
        await self._apply_contacts(contacts)
        return contacts

    async def _apply_contacts(self, contacts: tuple[ContactEdge, ...]) -> None:
        now = self.clock()
        previous = self._last_contacts
        self._last_contacts = contacts
        await self.store.dispatch(ContactsLoaded(contacts, now))
        if previous is not None:
            await self.events.publish_all(diff_contacts(previous, contacts, now))

    def reset(self) -> None:
        """Forget the event baseline, e.g. after the user changes."""
        self._last_contacts = None

    # -------------------------------------------------------------------------
    # Streams
    # -------------------------------------------------------------------------

    def start_self_stream(self) -> asyncio.Task:
        uid = self.require_user_id()
        return self._start("self", self._run_self_stream(uid))

    def start_contacts_stream(self) -> asyncio.Task:
        uid = self.require_user_id()
        return self._start("contacts", self._run_contacts_stream(uid))

    def _start(self, name: str, coro) -> asyncio.Task:
        existing = self._tasks.get(name)
        if existing is not None and not existing.done():
            existing.cancel()
        task = asyncio.create_task(coro, name=f"lifesignal-{name}-stream")
        self._tasks[name] = task
        return task

    async def _run_self_stream(self, uid: str) -> None:
        try:
            async for document in self.backend.stream_user(uid):
                logger.debug("User document delivered for %s", uid)
                try:
                    user = schema.decode_user(document)
                except DocumentDecodeError as e:
                    logger.warning("Ignoring undecodable user document: %s", e)
                    continue
                await self.store.dispatch(SelfLoaded(user))
        except Exception:
            logger.exception("User stream for %s stopped", uid)

    async def _run_contacts_stream(self, uid: str) -> None:
        try:
            async for documents in self.backend.stream_contacts(uid):
                logger.debug("Contact list delivered for %s (%d edges)", uid, len(documents))
                try:
                    contacts = schema.decode_contacts(documents)
                except DocumentDecodeError as e:
                    logger.warning("Ignoring undecodable contact list: %s", e)
                    continue
                await self._apply_contacts(contacts)
        except Exception:
            logger.exception("Contacts stream for %s stopped", uid)

    @property
    def streaming(self) -> bool:
        return any(not task.done() for task in self._tasks.values())

    async def stop(self) -> None:
        """Cancel both streams and wait for them to finish."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def apply_optimistic(
        self,
        action,
        remote_call: Callable[[], Awaitable[Any]],
        recover: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Dispatch `action`, then await `remote_call`.

        On any failure, await `recover` (a full reload of the affected state)
        and re-raise. Package errors are re-raised as they are; anything else
        is wrapped in RemoteFailure.

        Args:
            action: State action applied before the remote call, or None.
            remote_call: Zero-argument coroutine function doing the write.
            recover: Zero-argument coroutine function reloading server state.

        Returns:
            Whatever `remote_call` returned.
        """
        if action is not None:
            await self.store.dispatch(action)
        try:
            return await remote_call()
        except Exception as e:
            logger.warning("Remote write failed, reloading authoritative state: %s", e)
            try:
                await recover()
            except Exception:
                logger.exception("Reload after failed write also failed")
            if isinstance(e, LifeSignalError):
                raise
            operation = type(action).__name__ if action is not None else "write"
            raise RemoteFailure(operation, original_error=e) from e

    async def update_self_fields(self, **changes) -> None:
        """Write only the changed fields of the user's record, stamped with lastUpdated."""
        uid = self.require_user_id()
        changes["last_updated"] = self.clock()
        fields = schema.encode_user_fields(**changes)
        await self.apply_optimistic(
            SelfPatched(changes),
            lambda: self.backend.update_user_fields(uid, fields),
            self.load_self,
        )
