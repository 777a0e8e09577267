"""Domain models for device telemetry events.

An Event is one telemetry message emitted by a device. Its destination path
encodes the event type and the device id, its metadata carries the boot-time,
and its birthdate is parsed from the payload when the event is created.

All models are pure Python + Pydantic v2. Zero framework imports.
"""

from __future__ import annotations

import enum
import re
from datetime import UTC, datetime, timedelta

import orjson
from pydantic import BaseModel, Field

from device_interpreter.domain.errors import (
    BirthdateParseError,
    BootTimeNotFoundError,
    BootTimeParseError,
    ParseDeviceIDError,
    TypeNotFoundError,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BOOT_TIME_KEY = "/boot-time"

ONLINE_EVENT_TYPE = "online"
OFFLINE_EVENT_TYPE = "offline"
REBOOT_PENDING_EVENT_TYPE = "reboot-pending"
OPERATIONAL_EVENT_TYPE = "operational"
FULLY_MANAGEABLE_EVENT_TYPE = "fully-manageable"

_ID_SCHEMES = r"(?i:mac|uuid|dns|serial)"

# <event>/<scheme>:<authority>/<type>[/...]
# The grammar is a fixed contract; device id and event type extraction depend on it.
EVENT_REGEX = re.compile(
    r"^(?P<event>[^/]+)/"
    rf"(?P<id>(?P<scheme>{_ID_SCHEMES}):(?P<authority>[^/]+))/"
    r"(?P<type>[^/\s]+)"
)

# Matches a device id anywhere in a string.
DEVICE_ID_REGEX = re.compile(rf"(?P<scheme>{_ID_SCHEMES}):(?P<authority>[^/]+)")

_INT64_PATTERN = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_RFC3339_NANO = re.compile(
    r"^(?P<seconds>\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d{1,9}))?"
    r"(?P<offset>[Zz]|[+-]\d{2}:\d{2})$"
)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class TimeLocation(enum.StrEnum):
    """Which timestamp of an event to use in elapsed-time calculations."""

    BIRTHDATE = "birthdate"
    BOOT_TIME = "boot-time"


# ---------------------------------------------------------------------------
# Wire message and Event
# ---------------------------------------------------------------------------


class Message(BaseModel):
    """Inbound telemetry message as received from the event stream."""

    message_type: int = 0
    source: str = ""
    destination: str = ""
    transaction_uuid: str = ""
    content_type: str = ""
    metadata: dict[str, str] = Field(default_factory=dict)
    payload: bytes = b""
    partner_ids: list[str] = Field(default_factory=list)
    session_id: str = ""


class Event(BaseModel):
    """Immutable telemetry event.

    Field aliases are the JSON names used by the event store; the Python
    attribute names are accepted as well.
    """

    model_config = {"frozen": True, "populate_by_name": True}

    msg_type: int = 0
    source: str = ""
    destination: str = Field(default="", alias="dest")
    transaction_uuid: str = ""
    content_type: str = ""
    metadata: dict[str, str] = Field(default_factory=dict)
    payload: str = ""
    birthdate: int = Field(default=0, alias="birth_date")
    partner_ids: list[str] = Field(default_factory=list)
    session_id: str = Field(default="", alias="sessionID")

    def metadata_value(self, key: str) -> str | None:
        """Look up a metadata key, treating keys with and without a leading '/' as equal."""
        if key in self.metadata:
            return self.metadata[key]
        bare = key.strip("/")
        for candidate in (bare, f"/{bare}"):
            if candidate in self.metadata:
                return self.metadata[candidate]
        return None

    def boot_time(self) -> int:
        """Return the boot-time in unix seconds.

        Raises BootTimeNotFoundError if the metadata key is absent and
        BootTimeParseError if the value is not a base-10 integer that fits
        in a signed 64-bit integer.
        """
        raw = self.metadata_value(BOOT_TIME_KEY)
        if raw is None:
            raise BootTimeNotFoundError()
        if not _INT64_PATTERN.fullmatch(raw):
            raise BootTimeParseError(f"invalid syntax {raw!r}")
        value = int(raw)
        if not _INT64_MIN <= value <= _INT64_MAX:
            raise BootTimeParseError(f"value out of range {raw!r}")
        return value

    def device_id(self) -> str:
        """Return the ``scheme:authority`` device id from the destination."""
        match = EVENT_REGEX.match(self.destination)
        if match is None:
            raise ParseDeviceIDError()
        return match.group("id")

    def event_type(self) -> str:
        """Return the trailing type segment of the destination."""
        match = EVENT_REGEX.match(self.destination)
        if match is None:
            raise TypeNotFoundError()
        return match.group("type")

    def birthdate_time(self) -> datetime:
        return _EPOCH + timedelta(microseconds=self.birthdate // 1000)


def new_event(message: Message) -> tuple[Event, BirthdateParseError | None]:
    """Create an Event from a Message, parsing the birthdate from the payload.

    An Event is always returned. When the payload has no parsable ``ts``
    field the birthdate is left at zero and a BirthdateParseError is
    returned alongside the event.
    """
    birthdate = parse_birthdate(message.payload)
    event = Event(
        msg_type=message.message_type,
        source=message.source,
        destination=message.destination,
        transaction_uuid=message.transaction_uuid,
        content_type=message.content_type,
        metadata=dict(message.metadata),
        payload=message.payload.decode("utf-8", errors="replace"),
        birthdate=birthdate or 0,
        partner_ids=list(message.partner_ids),
        session_id=message.session_id,
    )
    if birthdate is None:
        return event, BirthdateParseError()
    return event, None


def parse_birthdate(payload: bytes | str) -> int | None:
    """Parse the RFC 3339 ``ts`` field of a JSON payload into unix nanoseconds."""
    if not payload:
        return None
    try:
        parsed = orjson.loads(payload)
    except orjson.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None
    timestamp = parsed.get("ts")
    if not isinstance(timestamp, str):
        return None
    return parse_rfc3339_nano(timestamp)


def parse_rfc3339_nano(value: str) -> int | None:
    """Parse an RFC 3339 timestamp keeping nanosecond precision."""
    match = _RFC3339_NANO.match(value)
    if match is None:
        return None
    offset = match.group("offset")
    if offset in ("Z", "z"):
        offset = "+00:00"
    try:
        whole = datetime.fromisoformat(match.group("seconds").replace("t", "T") + offset)
    except ValueError:
        return None
    seconds = (whole - _EPOCH) // timedelta(seconds=1)
    fraction = (match.group("fraction") or "").ljust(9, "0")
    return seconds * 1_000_000_000 + int(fraction)


def parse_time_location(location: str) -> TimeLocation:
    """Map a location name to a TimeLocation, defaulting to BIRTHDATE."""
    try:
        return TimeLocation(location.lower())
    except ValueError:
        return TimeLocation.BIRTHDATE


def parse_time(event: Event, location: str) -> int:
    """Return the event's birthdate (ns) or boot-time (s) depending on ``location``."""
    if parse_time_location(location) == TimeLocation.BIRTHDATE:
        return event.birthdate
    return event.boot_time()


def boot_time_or_zero(event: Event) -> int:
    """Return the event's boot-time, or 0 when it is missing or unparsable."""
    try:
        return event.boot_time()
    except (BootTimeNotFoundError, BootTimeParseError):
        return 0
