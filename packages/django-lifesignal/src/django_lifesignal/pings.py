"""
Pings: a responder asking a dependent to check in.

A ping lives on two edges: the sender's edge to the dependent carries the
outgoing flag, the dependent's edge to the sender carries the incoming
flag. The sender only sets its own side; the backend mirrors the other.
"""

import logging

from .exceptions import InvalidInput, NotFound
from .schema import ContactEdge
from .state import AllIncomingPingsCleared, ContactPatched, IncomingPingCleared
from .sync import SyncManager

logger = logging.getLogger(__name__)


class PingService:

    def __init__(self, sync: SyncManager):
        self.sync = sync

    def _edge(self, contact_id: str) -> ContactEdge:
        self.sync.require_user_id()
        edge = self.sync.store.state.contact(contact_id)
        if edge is None:
            raise NotFound("contact", contact_id)
        return edge

    async def ping_dependent(self, contact_id: str) -> bool:
        """
        Ping a dependent. Returns False when a ping is already outstanding.

        Raises:
            NotFound: No local edge to the contact
            InvalidInput: The contact is not a dependent
        """
        edge = self._edge(contact_id)
        if not edge.is_dependent:
            raise InvalidInput("contact_id", "only dependents can be pinged")
        if edge.has_outgoing_ping:
            logger.debug("Ping to %s already outstanding", contact_id)
            return False

        now = self.sync.clock()
        await self.sync.apply_optimistic(
            ContactPatched(
                contact_id,
                {"has_outgoing_ping": True, "outgoing_ping_timestamp": now},
                now,
            ),
            lambda: self.sync.backend.ping_dependent(contact_id),
            self.sync.load_contacts,
        )
        logger.info("Pinged dependent %s", contact_id)
        return True

    async def clear_ping(self, contact_id: str) -> bool:
        """Withdraw an outgoing ping. Returns False when there was none."""
        edge = self._edge(contact_id)
        if not edge.has_outgoing_ping:
            logger.debug("No outgoing ping to %s", contact_id)
            return False

        now = self.sync.clock()
        await self.sync.apply_optimistic(
            ContactPatched(
                contact_id,
                {"has_outgoing_ping": False, "outgoing_ping_timestamp": None},
                now,
            ),
            lambda: self.sync.backend.clear_ping(contact_id),
            self.sync.load_contacts,
        )
        logger.info("Cleared ping to %s", contact_id)
        return True

    async def respond_to_ping(self, contact_id: str) -> bool:
        """Answer a responder's ping. Returns False when there was none."""
        edge = self._edge(contact_id)
        if not edge.has_incoming_ping:
            logger.debug("No incoming ping from %s", contact_id)
            return False

        await self.sync.apply_optimistic(
            IncomingPingCleared(contact_id),
            lambda: self.sync.backend.respond_to_ping(contact_id),
            self.sync.load_contacts,
        )
        logger.info("Responded to ping from %s", contact_id)
        return True

    async def respond_to_all_pings(self) -> None:
        """Answer every incoming ping.

        The remote call is made even when no incoming ping is mirrored
        locally, since the mirror may be stale and the call is idempotent.
        """
        self.sync.require_user_id()
        await self.sync.apply_optimistic(
            AllIncomingPingsCleared(),
            self.sync.backend.respond_to_all_pings,
            self.sync.load_contacts,
        )
        logger.info("Responded to all pings")
