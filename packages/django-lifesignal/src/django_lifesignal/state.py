"""
Local mirror of the signed-in user's record and contact list.

State is immutable. Every change is an action passed through `reduce`, a
pure function returning a new `LifeSignalState`, and `Store.dispatch` swaps
the result in whole under an asyncio lock. Aggregates are recomputed from
the full contact list whenever the list changes.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable

from .schema import ContactEdge, UserRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LifeSignalState:
    user: UserRecord | None = None
    contacts: tuple[ContactEdge, ...] = ()
    pending_pings_count: int = 0
    non_responsive_dependents_count: int = 0

    def contact(self, contact_id: str) -> ContactEdge | None:
        for edge in self.contacts:
            if edge.id == contact_id:
                return edge
        return None

    def responders(self) -> tuple[ContactEdge, ...]:
        return tuple(edge for edge in self.contacts if edge.is_responder)

    def dependents(self) -> tuple[ContactEdge, ...]:
        return tuple(edge for edge in self.contacts if edge.is_dependent)


# =============================================================================
# Actions
# =============================================================================

@dataclass(frozen=True)
class SelfLoaded:
    user: UserRecord


@dataclass(frozen=True)
class SelfPatched:
    changes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ContactsLoaded:
    contacts: tuple[ContactEdge, ...]
    now: datetime


@dataclass(frozen=True)
class ContactAdded:
    edge: ContactEdge
    now: datetime


@dataclass(frozen=True)
class ContactPatched:
    contact_id: str
    changes: dict[str, Any]
    now: datetime


@dataclass(frozen=True)
class ContactRemoved:
    contact_id: str
    now: datetime


@dataclass(frozen=True)
class IncomingPingCleared:
    contact_id: str


@dataclass(frozen=True)
class AllIncomingPingsCleared:
    pass


@dataclass(frozen=True)
class AggregatesRefreshed:
    now: datetime


@dataclass(frozen=True)
class Reset:
    pass


# =============================================================================
# Reducer
# =============================================================================

def count_pending_pings(contacts) -> int:
    return sum(1 for edge in contacts if edge.has_incoming_ping)


def count_non_responsive_dependents(contacts, now: datetime) -> int:
    return sum(1 for edge in contacts if edge.is_dependent and edge.is_non_responsive(now))


def _with_contacts(state: LifeSignalState, contacts, now: datetime) -> LifeSignalState:
    contacts = tuple(contacts)
    return replace(
        state,
        contacts=contacts,
        pending_pings_count=count_pending_pings(contacts),
        non_responsive_dependents_count=count_non_responsive_dependents(contacts, now),
    )


def _clear_incoming(edge: ContactEdge) -> ContactEdge:
    return edge.replace(has_incoming_ping=False, incoming_ping_timestamp=None)


def reduce(state: LifeSignalState, action) -> LifeSignalState:
    """Apply one action. Pure: never mutates `state`."""
    if isinstance(action, SelfLoaded):
        return replace(state, user=action.user)

    if isinstance(action, SelfPatched):
        if state.user is None:
            return state
        return replace(state, user=state.user.replace(**action.changes))

    if isinstance(action, ContactsLoaded):
        return _with_contacts(state, action.contacts, action.now)

    if isinstance(action, ContactAdded):
        others = [edge for edge in state.contacts if edge.id != action.edge.id]
        return _with_contacts(state, [*others, action.edge], action.now)

    if isinstance(action, ContactPatched):
        contacts = [
            edge.replace(**action.changes) if edge.id == action.contact_id else edge
            for edge in state.contacts
        ]
        return _with_contacts(state, contacts, action.now)

    if isinstance(action, ContactRemoved):
        contacts = [edge for edge in state.contacts if edge.id != action.contact_id]
        return _with_contacts(state, contacts, action.now)

    if isinstance(action, IncomingPingCleared):
        contacts = tuple(
            _clear_incoming(edge) if edge.id == action.contact_id else edge
            for edge in state.contacts
        )
        return replace(
            state,
            contacts=contacts,
            pending_pings_count=count_pending_pings(contacts),
        )

    if isinstance(action, AllIncomingPingsCleared):
        contacts = tuple(_clear_incoming(edge) for edge in state.contacts)
        return replace(state, contacts=contacts, pending_pings_count=0)

    if isinstance(action, AggregatesRefreshed):
        return _with_contacts(state, state.contacts, action.now)

    if isinstance(action, Reset):
        return LifeSignalState()

    raise TypeError(f"Unknown action: {type(action).__name__}")


# =============================================================================
# Store
# =============================================================================

Listener = Callable[[LifeSignalState, LifeSignalState, Any], None]


class Store:
    """Holds the current state; the only place it changes."""

    def __init__(self, state: LifeSignalState | None = None):
        self._state = state or LifeSignalState()
        self._lock = asyncio.Lock()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> LifeSignalState:
        return self._state

    async def dispatch(self, action) -> LifeSignalState:
        async with self._lock:
            previous = self._state
            self._state = reduce(previous, action)
            current = self._state

        for listener in list(self._listeners):
            try:
                listener(previous, current, action)
            except Exception:
                logger.exception("State listener failed for %s", type(action).__name__)
        return current

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register `listener(previous, current, action)`. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
