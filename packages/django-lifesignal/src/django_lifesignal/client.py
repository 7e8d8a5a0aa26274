"""
Composition root.

LifeSignalClient wires one store, one sync manager, the services and the
monitor around the capabilities it is given. There are no module-level
singletons: two clients sharing an in-memory server behave like two users
on two devices.

Example:
    server = InMemoryServer()
    auth = InMemoryAuth(user_id)
    client = LifeSignalClient(auth, InMemoryBackend(server, auth))
    await client.start()
    await client.check_ins.check_in()
"""

import logging
from datetime import datetime
from typing import Callable, Iterable, Optional

from . import conf
from .alerts import AlertService
from .backends.base import AuthBackend, RemoteBackend
from .contacts import ContactService
from .events import BaseEventSink, EventChannel
from .lifecycle import CheckInService
from .monitor import CheckInMonitor
from .pings import PingService
from .profile import ProfileService
from .state import LifeSignalState, Reset, Store
from .sync import SyncManager

logger = logging.getLogger(__name__)


class LifeSignalClient:

    def __init__(
        self,
        auth: AuthBackend,
        backend: RemoteBackend,
        *,
        sinks: Iterable[BaseEventSink] = (),
        clock: Callable[[], datetime] = None,
        monitor_poll_seconds: float = None,
    ):
        self.auth = auth
        self.backend = backend
        self.store = Store()
        self.events = EventChannel([*conf.get_configured_sinks(), *sinks])
        self.sync = SyncManager(self.store, auth, backend, self.events, clock)

        self.contacts = ContactService(self.sync)
        self.pings = PingService(self.sync)
        self.alerts = AlertService(self.sync)
        self.check_ins = CheckInService(self.sync)
        self.profile = ProfileService(self.sync)
        self.monitor = CheckInMonitor(self.sync, poll_seconds=monitor_poll_seconds)

        self._session_user_id: Optional[str] = None
        self._remove_auth_listener = auth.add_listener(self._on_auth_changed)

    @property
    def state(self) -> LifeSignalState:
        return self.store.state

    @property
    def running(self) -> bool:
        return self._session_user_id is not None

    async def refresh(self) -> None:
        """Reload the user's record and contacts from the backend."""
        await self.sync.load_self()
        await self.sync.load_contacts()

    async def start(self) -> None:
        """Load the user's record and contacts, then start streams and monitor."""
        uid = self.sync.require_user_id()
        await self.refresh()
        self.sync.start_self_stream()
        self.sync.start_contacts_stream()
        self.monitor.start()
        self._session_user_id = uid
        logger.info("LifeSignal client started for %s", uid)

    async def stop(self) -> None:
        await self.monitor.stop()
        await self.sync.stop()
        if self._session_user_id is not None:
            logger.info("LifeSignal client stopped for %s", self._session_user_id)
        self._session_user_id = None

    async def _reset(self) -> None:
        await self.store.dispatch(Reset())
        self.sync.reset()
        self.monitor.reset()

    async def sign_out(self) -> None:
        await self.stop()
        await self._reset()
        await self.auth.sign_out()

    async def close(self) -> None:
        """Stop and detach from the auth backend."""
        await self.stop()
        self._remove_auth_listener()

    async def _on_auth_changed(self, user_id: Optional[str]) -> None:
        if user_id is None:
            if self.running or self.state.user is not None:
                await self.stop()
                await self._reset()
            return
        if user_id == self._session_user_id:
            return
        await self.stop()
        await self._reset()
        await self.start()
