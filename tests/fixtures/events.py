"""Event factory functions for tests.

Provides convenience builders for creating Event instances with sensible
defaults. Every function accepts **overrides so callers can replace any field.
All times are relative to the fixed clock ``NOW``.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from uuid import uuid4

from device_interpreter.domain.models import BOOT_TIME_KEY, Event

NOW = datetime(2021, 8, 1, 12, 0, tzinfo=UTC)

DEVICE_ID = "mac:112233445566"

_MISSING = object()


def fixed_now() -> datetime:
    """Clock callable that always returns ``NOW``."""
    return NOW


def unix(moment: datetime) -> int:
    """Unix seconds of ``moment``."""
    return int(moment.timestamp())


def unix_nano(moment: datetime) -> int:
    """Unix nanoseconds of ``moment`` (microsecond precision)."""
    return (moment - datetime(1970, 1, 1, tzinfo=UTC)) // timedelta(microseconds=1) * 1000


def destination_for(event_type: str, device_id: str = DEVICE_ID, *suffix: str) -> str:
    """Build an ``event:device-status/<id>/<type>[/...]`` destination."""
    parts = [f"event:device-status/{device_id}/{event_type}", *suffix]
    return "/".join(parts)


def make_event(
    event_type: str = "online",
    boot_time: datetime | int | None | object = _MISSING,
    birthdate: datetime | int | None = None,
    **overrides,
) -> Event:
    """Create a single Event with sensible defaults.

    ``boot_time`` defaults to one hour before ``NOW``; pass ``None`` to leave
    the metadata key out. ``birthdate`` defaults to ``NOW``. Datetimes are
    converted to unix seconds (boot-time) and nanoseconds (birthdate).
    """
    if boot_time is _MISSING:
        boot_time = NOW - timedelta(hours=1)
    if birthdate is None:
        birthdate = NOW

    metadata: dict[str, str] = dict(overrides.pop("metadata", {}))
    if boot_time is not None:
        value = unix(boot_time) if isinstance(boot_time, datetime) else boot_time
        metadata.setdefault(BOOT_TIME_KEY, str(value))

    defaults: dict = {
        "msg_type": 4,
        "source": DEVICE_ID,
        "destination": destination_for(event_type),
        "transaction_uuid": str(uuid4()),
        "content_type": "application/json",
        "metadata": metadata,
        "birthdate": unix_nano(birthdate) if isinstance(birthdate, datetime) else birthdate,
        "session_id": "session-1",
    }
    defaults.update(overrides)
    return Event(**defaults)


def make_cycle(
    boot_time: datetime,
    event_types: list[str],
    session_id: str = "session-1",
    start: datetime | None = None,
    spacing: timedelta = timedelta(minutes=1),
) -> list[Event]:
    """Create one event per type, all sharing ``boot_time``.

    Birthdates start a minute after the boot (or at ``start``) and increase
    by ``spacing`` in list order.
    """
    first = start if start is not None else boot_time + timedelta(minutes=1)
    return [
        make_event(
            event_type,
            boot_time=boot_time,
            birthdate=first + spacing * i,
            session_id=session_id,
        )
        for i, event_type in enumerate(event_types)
    ]


def uuids(events: list[Event]) -> list[str]:
    return [e.transaction_uuid for e in events]
