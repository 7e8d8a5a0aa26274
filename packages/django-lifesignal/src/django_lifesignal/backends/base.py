"""Base interfaces for the authentication and remote store capabilities."""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Awaitable, Callable, Optional


AuthListener = Callable[[Optional[str]], Awaitable[None]]


class RemoteFunctions:
    """Names of the remote callable functions."""

    LOOKUP_USER_BY_QR_CODE = "lookupUserByQRCode"
    ADD_CONTACT_RELATION = "addContactRelation"
    UPDATE_CONTACT_ROLES = "updateContactRoles"
    DELETE_CONTACT_RELATION = "deleteContactRelation"
    PING_DEPENDENT = "pingDependent"
    CLEAR_PING = "clearPing"
    RESPOND_TO_PING = "respondToPing"
    RESPOND_TO_ALL_PINGS = "respondToAllPings"


class AuthBackend(ABC):
    """Abstract authentication capability.

    Provides a stable user id for the signed-in user and notifies listeners
    when it changes.
    """

    @abstractmethod
    def current_user_id(self) -> Optional[str]:
        """The signed-in user's id, or None."""
        raise NotImplementedError

    async def id_token(self) -> Optional[str]:
        """Bearer token for remote calls. None when the backend needs none."""
        return None

    @abstractmethod
    async def sign_out(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def add_listener(self, callback: AuthListener) -> Callable[[], None]:
        """Register an async `callback(user_id)` for auth changes.

        Returns:
            A callable removing the listener.
        """
        raise NotImplementedError


class RemoteBackend(ABC):
    """Abstract remote store and function capability.

    Loads and streams return raw wire documents (camelCase dicts); decoding
    happens in the sync layer. Implementations raise the errors from
    `django_lifesignal.exceptions`, never transport exceptions.
    """

    @abstractmethod
    async def load_user(self, uid: str) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    async def update_user_fields(self, uid: str, fields: dict[str, Any]) -> None:
        """Merge `fields` (wire keys) into the user document."""
        raise NotImplementedError

    @abstractmethod
    def stream_user(self, uid: str) -> AsyncIterator[dict[str, Any]]:
        """Yield the user document now and after every change. Never ends."""
        raise NotImplementedError

    @abstractmethod
    async def load_contacts(self, uid: str) -> list[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def stream_contacts(self, uid: str) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield the full contact list now and after every change. Never ends."""
        raise NotImplementedError

    @abstractmethod
    async def call_function(self, name: str, data: Optional[dict[str, Any]] = None) -> Any:
        """Invoke a named remote function and return its result."""
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # Named operations
    # -------------------------------------------------------------------------

    async def lookup_user_by_code(self, qr_code: str) -> dict[str, Any]:
        return await self.call_function(
            RemoteFunctions.LOOKUP_USER_BY_QR_CODE, {"qrCode": qr_code}
        )

    async def add_contact_relation(
        self, contact_id: str, is_responder: bool, is_dependent: bool
    ) -> Any:
        return await self.call_function(
            RemoteFunctions.ADD_CONTACT_RELATION,
            {
                "contactId": contact_id,
                "isResponder": is_responder,
                "isDependent": is_dependent,
            },
        )

    async def update_contact_roles(
        self, contact_id: str, is_responder: bool, is_dependent: bool
    ) -> Any:
        return await self.call_function(
            RemoteFunctions.UPDATE_CONTACT_ROLES,
            {
                "contactId": contact_id,
                "isResponder": is_responder,
                "isDependent": is_dependent,
            },
        )

    async def delete_contact_relation(self, contact_id: str) -> Any:
        return await self.call_function(
            RemoteFunctions.DELETE_CONTACT_RELATION, {"contactId": contact_id}
        )

    async def ping_dependent(self, dependent_id: str) -> Any:
        return await self.call_function(
            RemoteFunctions.PING_DEPENDENT, {"dependentId": dependent_id}
        )

    async def clear_ping(self, dependent_id: str) -> Any:
        return await self.call_function(
            RemoteFunctions.CLEAR_PING, {"dependentId": dependent_id}
        )

    async def respond_to_ping(self, responder_id: str) -> Any:
        return await self.call_function(
            RemoteFunctions.RESPOND_TO_PING, {"responderId": responder_id}
        )

    async def respond_to_all_pings(self) -> Any:
        return await self.call_function(RemoteFunctions.RESPOND_TO_ALL_PINGS)
