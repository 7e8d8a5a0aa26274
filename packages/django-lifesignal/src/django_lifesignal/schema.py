"""
Typed documents exchanged with the remote store.

Remote documents are JSON with camelCase keys, ISO-8601 timestamps with a
UTC offset and durations in seconds. A timestamp without an offset fails
decoding. Backends hand raw documents to the decode functions here;
nothing past this module sees an untyped dict.
"""

import logging
from datetime import datetime, timedelta
from typing import Any

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from . import timing
from .exceptions import DocumentDecodeError

logger = logging.getLogger(__name__)


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    def replace(self, **changes):
        """Copy with python-named fields replaced."""
        return self.model_copy(update=changes)


class UserRecord(_Document):
    """The signed-in user's own record."""

    uid: str
    name: str = ""
    phone_number: str = Field("", alias="phoneNumber")
    phone_region: str = Field("US", alias="phoneRegion")
    note: str = ""
    qr_code_id: str = Field(alias="qrCodeId")
    last_checked_in: AwareDatetime = Field(alias="lastCheckedIn")
    check_in_interval: timedelta = Field(alias="checkInInterval")
    notify_30_min_before: bool = Field(True, alias="notify30MinBefore")
    notify_2_hours_before: bool = Field(False, alias="notify2HoursBefore")
    manual_alert_active: bool = Field(False, alias="manualAlertActive")
    manual_alert_timestamp: AwareDatetime | None = Field(None, alias="manualAlertTimestamp")
    notification_enabled: bool = Field(True, alias="notificationEnabled")
    profile_complete: bool = Field(False, alias="profileComplete")
    last_updated: AwareDatetime | None = Field(None, alias="lastUpdated")

    @field_validator("check_in_interval")
    @classmethod
    def _interval_positive(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("checkInInterval must be greater than zero")
        return value

    def status(self, now: datetime) -> timing.CheckInStatus:
        return timing.evaluate(self.last_checked_in, self.check_in_interval, now)


class ContactEdge(_Document):
    """
    One directed relationship in a user's contact list.

    `id` is the peer's uid. The cached peer fields are copies written by the
    backend and may lag the peer's own record.
    """

    id: str
    is_responder: bool = Field(alias="isResponder")
    is_dependent: bool = Field(alias="isDependent")
    name: str = ""
    phone_number: str = Field("", alias="phoneNumber")
    note: str = ""
    last_checked_in: AwareDatetime | None = Field(None, alias="lastCheckedIn")
    check_in_interval: timedelta | None = Field(None, alias="checkInInterval")
    has_incoming_ping: bool = Field(False, alias="hasIncomingPing")
    incoming_ping_timestamp: AwareDatetime | None = Field(None, alias="incomingPingTimestamp")
    has_outgoing_ping: bool = Field(False, alias="hasOutgoingPing")
    outgoing_ping_timestamp: AwareDatetime | None = Field(None, alias="outgoingPingTimestamp")
    manual_alert_active: bool = Field(False, alias="manualAlertActive")
    manual_alert_timestamp: AwareDatetime | None = Field(None, alias="manualAlertTimestamp")
    added_at: AwareDatetime | None = Field(None, alias="addedAt")
    last_updated: AwareDatetime | None = Field(None, alias="lastUpdated")

    @field_validator("check_in_interval")
    @classmethod
    def _cached_interval(cls, value: timedelta | None) -> timedelta | None:
        # A non-positive cached interval counts as missing.
        if value is not None and value <= timedelta(0):
            return None
        return value

    @property
    def has_role(self) -> bool:
        return self.is_responder or self.is_dependent

    def expiration_time(self) -> datetime | None:
        if self.last_checked_in is None or self.check_in_interval is None:
            return None
        return timing.expiration_time(self.last_checked_in, self.check_in_interval)

    def is_non_responsive(self, now: datetime) -> bool:
        """Expired cached check-in; False when either cached field is missing."""
        if self.last_checked_in is None or self.check_in_interval is None:
            return False
        return timing.is_expired(self.last_checked_in, self.check_in_interval, now)


class PeerProfile(_Document):
    """Result of resolving a QR code to its owner."""

    user_id: str = Field(alias="userId")
    name: str = ""
    phone_number: str = Field("", alias="phoneNumber")
    note: str = Field("", alias="emergencyNote")


def _errors(exc: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]


def decode_user(document: dict[str, Any]) -> UserRecord:
    """Strictly decode a user document, raising DocumentDecodeError."""
    try:
        return UserRecord.model_validate(document)
    except ValidationError as e:
        raise DocumentDecodeError("user", _errors(e)) from e


def decode_contacts(documents: list[dict[str, Any]]) -> tuple[ContactEdge, ...]:
    """
    Decode a full contact list.

    A malformed edge fails the whole list. Edges with neither role set are
    absent by definition and dropped with a warning.
    """
    edges = []
    for document in documents:
        try:
            edge = ContactEdge.model_validate(document)
        except ValidationError as e:
            raise DocumentDecodeError("contact", _errors(e)) from e
        if not edge.has_role:
            logger.warning("Dropping contact edge %s with no role", edge.id)
            continue
        edges.append(edge)
    return tuple(edges)


def decode_peer(document: dict[str, Any]) -> PeerProfile:
    try:
        return PeerProfile.model_validate(document)
    except ValidationError as e:
        raise DocumentDecodeError("qr lookup", _errors(e)) from e


def encode_value(value: Any) -> Any:
    """Python value -> wire value."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, timedelta):
        return int(value.total_seconds())
    return value


def encode_fields(model: type[BaseModel], changes: dict[str, Any]) -> dict[str, Any]:
    """Map python field names to wire keys and values to wire values."""
    encoded = {}
    for name, value in changes.items():
        field = model.model_fields.get(name)
        if field is None:
            raise ValueError(f"{model.__name__} has no field '{name}'")
        encoded[field.alias or name] = encode_value(value)
    return encoded


def encode_user_fields(**changes) -> dict[str, Any]:
    return encode_fields(UserRecord, changes)


def encode_document(document: _Document) -> dict[str, Any]:
    """Full wire form of a document."""
    return {
        (field.alias or name): encode_value(getattr(document, name))
        for name, field in type(document).model_fields.items()
    }
