"""Profile fields and preferences on the user's own record."""

import logging
import uuid

from .exceptions import InvalidInput
from .sync import SyncManager

logger = logging.getLogger(__name__)


class ProfileService:

    def __init__(self, sync: SyncManager):
        self.sync = sync

    async def update_profile(
        self,
        *,
        name: str = None,
        note: str = None,
        phone_number: str = None,
        phone_region: str = None,
    ) -> None:
        """
        Update profile fields. None leaves a field unchanged.

        Setting a name marks the profile complete.

        Raises:
            InvalidInput: `name` is blank
        """
        changes = {}
        if name is not None:
            name = name.strip()
            if not name:
                raise InvalidInput("name", "cannot be empty")
            changes["name"] = name
            changes["profile_complete"] = True
        if note is not None:
            changes["note"] = note
        if phone_number is not None:
            changes["phone_number"] = phone_number
        if phone_region is not None:
            changes["phone_region"] = phone_region
        if not changes:
            return

        await self.sync.update_self_fields(**changes)
        logger.info("Profile updated: %s", sorted(changes))

    async def set_notifications_enabled(self, enabled: bool) -> None:
        await self.sync.update_self_fields(notification_enabled=enabled)
        logger.info("Notifications %s", "enabled" if enabled else "disabled")

    async def regenerate_qr_code(self) -> str:
        """Issue a new QR code id. The old code stops resolving."""
        qr_code_id = str(uuid.uuid4())
        await self.sync.update_self_fields(qr_code_id=qr_code_id)
        logger.info("QR code regenerated")
        return qr_code_id
