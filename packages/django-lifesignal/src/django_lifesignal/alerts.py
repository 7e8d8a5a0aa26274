"""
Manual alerts.

An alert is a flag on the user's own record, so the user is its only
writer. The backend copies it onto every edge pointing at the user; the
local user observes other people's alerts through those cached fields.
"""

import logging

from .schema import ContactEdge
from .sync import SyncManager

logger = logging.getLogger(__name__)


class AlertService:

    def __init__(self, sync: SyncManager):
        self.sync = sync

    async def activate(self) -> bool:
        """Raise the manual alert. Returns False if it was already active."""
        user = await self.sync.ensure_self()
        if user.manual_alert_active:
            logger.debug("Manual alert already active for %s", user.uid)
            return False

        await self.sync.update_self_fields(
            manual_alert_active=True,
            manual_alert_timestamp=self.sync.clock(),
        )
        logger.info("Manual alert activated for %s", user.uid)
        return True

    async def deactivate(self) -> bool:
        """Clear the manual alert. Returns False if it was not active."""
        user = await self.sync.ensure_self()
        if not user.manual_alert_active:
            logger.debug("Manual alert already inactive for %s", user.uid)
            return False

        await self.sync.update_self_fields(
            manual_alert_active=False,
            manual_alert_timestamp=None,
        )
        logger.info("Manual alert deactivated for %s", user.uid)
        return True

    def alerting_dependents(self) -> tuple[ContactEdge, ...]:
        """Monitored contacts whose manual alert is up."""
        return tuple(
            edge for edge in self.sync.store.state.dependents() if edge.manual_alert_active
        )
