"""Anomaly tags attached to validation errors.

A Tag is a closed numeric enumeration with a stable lowercase string form,
used when errors are serialized, logged, or grouped for reporting.

Pure Python, no framework imports.
"""

from __future__ import annotations

import enum


class Tag(enum.IntEnum):
    """Category of problem found with an event or a boot cycle."""

    UNKNOWN = 0
    PASS = 1

    # Event-level
    INCONSISTENT_DEVICE_ID = 2
    INVALID_BOOT_TIME = 3
    MISSING_BOOT_TIME = 4
    OLD_BOOT_TIME = 5
    FUTURE_BOOT_TIME = 6
    OUTDATED_BOOT_TIME = 7
    INVALID_BOOT_DURATION = 8
    FAST_BOOT = 9
    INVALID_BIRTHDATE = 10
    MISALIGNED_BIRTHDATE = 11
    INVALID_DESTINATION = 12
    NON_EVENT = 13
    INVALID_EVENT_TYPE = 14
    EVENT_TYPE_MISMATCH = 15
    DUPLICATE_EVENT = 16

    # Cycle-level
    INCONSISTENT_METADATA = 17
    REPEATED_TRANSACTION_UUID = 18
    MISSING_ONLINE_EVENT = 19
    MISSING_OFFLINE_EVENT = 20
    INVALID_EVENT_ORDER = 21
    FALSE_REBOOT = 22
    NO_REBOOT = 23

    MULTIPLE_TAGS = 24

    @classmethod
    def _missing_(cls, value: object) -> Tag:
        return cls.UNKNOWN

    def __str__(self) -> str:
        return _TAG_TO_STRING.get(self, "unknown")

    def __format__(self, format_spec: str) -> str:
        return format(str(self), format_spec)


_TAG_TO_STRING: dict[Tag, str] = {
    Tag.UNKNOWN: "unknown",
    Tag.PASS: "pass",
    Tag.INCONSISTENT_DEVICE_ID: "inconsistent_device_id",
    Tag.INVALID_BOOT_TIME: "invalid_boot_time",
    Tag.MISSING_BOOT_TIME: "missing_boot_time",
    Tag.OLD_BOOT_TIME: "suspiciously_old_boot_time",
    Tag.FUTURE_BOOT_TIME: "suspiciously_future_boot_time",
    Tag.OUTDATED_BOOT_TIME: "outdated_boot_time",
    Tag.INVALID_BOOT_DURATION: "invalid_boot_duration",
    Tag.FAST_BOOT: "suspiciously_fast_boot",
    Tag.INVALID_BIRTHDATE: "invalid_birthdate",
    Tag.MISALIGNED_BIRTHDATE: "misaligned_birthdate",
    Tag.INVALID_DESTINATION: "invalid_destination",
    Tag.NON_EVENT: "not_an_event",
    Tag.INVALID_EVENT_TYPE: "invalid_event_type",
    Tag.EVENT_TYPE_MISMATCH: "event_type_mismatch",
    Tag.DUPLICATE_EVENT: "duplicate_event",
    Tag.INCONSISTENT_METADATA: "inconsistent_metadata",
    Tag.REPEATED_TRANSACTION_UUID: "repeated_transaction_uuid",
    Tag.MISSING_ONLINE_EVENT: "missing_online_event",
    Tag.MISSING_OFFLINE_EVENT: "missing_offline_event",
    Tag.INVALID_EVENT_ORDER: "invalid_event_order",
    Tag.FALSE_REBOOT: "false_reboot",
    Tag.NO_REBOOT: "no_reboot",
    Tag.MULTIPLE_TAGS: "multiple_tags",
}

_STRING_TO_TAG: dict[str, Tag] = {name: tag for tag, name in _TAG_TO_STRING.items()}


def parse_tag(value: str) -> Tag:
    """Convert a tag name to a Tag. Returns Tag.UNKNOWN if the name is not known.

    Matching is case-insensitive and treats spaces as underscores.
    """
    normalized = value.lower().replace(" ", "_")
    return _STRING_TO_TAG.get(normalized, Tag.UNKNOWN)
