"""
Contact relationships.

Each accepted contact is a pair of edges, one in each user's list, owned by
that list's user. The backend creates and deletes both sides; this service
only ever touches the local user's edge, optimistically, and reloads the
whole list when the remote call fails.
"""

import logging

from . import schema
from .exceptions import AlreadyExists, InvalidInput, NotFound
from .schema import ContactEdge
from .state import ContactAdded, ContactPatched, ContactRemoved
from .sync import SyncManager

logger = logging.getLogger(__name__)


def _require_role(is_responder: bool, is_dependent: bool) -> None:
    if not (is_responder or is_dependent):
        raise InvalidInput("roles", "a contact must be a responder, a dependent, or both")


class ContactService:
    """Adds, re-roles and removes contacts of the signed-in user."""

    def __init__(self, sync: SyncManager):
        self.sync = sync

    @property
    def state(self):
        return self.sync.store.state

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, contact_id: str) -> ContactEdge | None:
        return self.state.contact(contact_id)

    def responders(self) -> tuple[ContactEdge, ...]:
        return self.state.responders()

    def dependents(self) -> tuple[ContactEdge, ...]:
        return self.state.dependents()

    def non_responsive_dependents(self, now=None) -> tuple[ContactEdge, ...]:
        now = now or self.sync.clock()
        return tuple(edge for edge in self.dependents() if edge.is_non_responsive(now))

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def add_contact(
        self,
        qr_code: str,
        *,
        is_responder: bool,
        is_dependent: bool,
    ) -> ContactEdge:
        """
        Add the owner of `qr_code` as a contact.

        The backend creates the peer's mirrored edge with the roles reversed.

        Args:
            qr_code: The peer's QR code id
            is_responder: The peer will respond to the local user's alerts
            is_dependent: The local user will monitor the peer

        Returns:
            The local edge as inserted optimistically

        Raises:
            InvalidInput: Both roles false, empty code, or the user's own code
            Unauthenticated: No signed-in user
            NotFound: No user owns the code
            AlreadyExists: The peer is already a contact
            RemoteFailure: The relation could not be created
        """
        _require_role(is_responder, is_dependent)
        uid = self.sync.require_user_id()
        code = (qr_code or "").strip()
        if not code:
            raise InvalidInput("qr_code", "cannot be empty")

        user = self.state.user
        if user is not None and user.qr_code_id == code:
            raise InvalidInput("qr_code", "cannot add yourself as a contact")

        result = await self.sync.backend.lookup_user_by_code(code)
        if not result:
            raise NotFound("qr code", code)
        peer = schema.decode_peer(result)

        if peer.user_id == uid:
            raise InvalidInput("qr_code", "cannot add yourself as a contact")
        if self.get(peer.user_id) is not None:
            raise AlreadyExists(peer.user_id)

        now = self.sync.clock()
        edge = ContactEdge(
            id=peer.user_id,
            is_responder=is_responder,
            is_dependent=is_dependent,
            name=peer.name,
            phone_number=peer.phone_number,
            note=peer.note,
            added_at=now,
            last_updated=now,
        )
        await self.sync.apply_optimistic(
            ContactAdded(edge, now),
            lambda: self.sync.backend.add_contact_relation(
                peer.user_id, is_responder, is_dependent
            ),
            self.sync.load_contacts,
        )
        logger.info(
            "Added contact %s (responder=%s, dependent=%s)",
            peer.user_id, is_responder, is_dependent,
        )
        return edge

    async def update_roles(self, contact_id: str, is_responder: bool, is_dependent: bool) -> None:
        """
        Change the roles of an existing contact.

        Both roles false is rejected locally; removing a contact is
        remove_contact's job.
        """
        _require_role(is_responder, is_dependent)
        self.sync.require_user_id()

        now = self.sync.clock()
        action = None
        if self.get(contact_id) is not None:
            action = ContactPatched(
                contact_id,
                {"is_responder": is_responder, "is_dependent": is_dependent, "last_updated": now},
                now,
            )
        await self.sync.apply_optimistic(
            action,
            lambda: self.sync.backend.update_contact_roles(contact_id, is_responder, is_dependent),
            self.sync.load_contacts,
        )
        logger.info(
            "Updated roles of %s (responder=%s, dependent=%s)",
            contact_id, is_responder, is_dependent,
        )

    async def remove_contact(self, contact_id: str) -> None:
        """Remove a contact. The backend deletes the peer's edge as well."""
        self.sync.require_user_id()
        action = None
        if self.get(contact_id) is not None:
            action = ContactRemoved(contact_id, self.sync.clock())
        await self.sync.apply_optimistic(
            action,
            lambda: self.sync.backend.delete_contact_relation(contact_id),
            self.sync.load_contacts,
        )
        logger.info("Removed contact %s", contact_id)
