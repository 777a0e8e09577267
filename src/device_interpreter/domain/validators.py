"""Event-level validation rules.

A Validator answers "is this event itself wrong". Every rule returns
``(True, None)`` on pass and ``(False, error)`` with a tagged error on
failure. Rules built by the factories below are ValidatorFunc instances, so
a plain function and a class with a ``valid`` method can be mixed freely in
a Validators list.

Pure Python, no framework imports.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta
from typing import Protocol, runtime_checkable

from device_interpreter.domain.errors import (
    BootDurationError,
    BootTimeNotFoundError,
    BootTimeParseError,
    Errors,
    FastBootError,
    FutureDateError,
    InconsistentIDError,
    InvalidBirthdateError,
    InvalidBootTimeError,
    InvalidDestinationError,
    InvalidEventError,
    InvalidEventTypeError,
    MisalignedBirthdateError,
    NonEventError,
    PastDateError,
    TypeNotFoundError,
)
from device_interpreter.domain.models import DEVICE_ID_REGEX, EVENT_REGEX, Event
from device_interpreter.domain.tags import Tag
from device_interpreter.domain.time_validation import TimeValidation

_SEGMENT_REGEX = re.compile(r"/(?P<content>[^/]+)")
_TIMESTAMP_PATTERN = re.compile(r"[+-]?[0-9]+")

ValidationOutcome = tuple[bool, Exception | None]


@runtime_checkable
class Validator(Protocol):
    """Validates a single event."""

    def valid(self, event: Event) -> ValidationOutcome: ...


class ValidatorFunc:
    """Adapts a plain function into a Validator."""

    def __init__(self, func: Callable[[Event], ValidationOutcome]) -> None:
        self._func = func
        self.__doc__ = func.__doc__
        self.__name__ = getattr(func, "__name__", type(self).__name__)

    def __call__(self, event: Event) -> ValidationOutcome:
        return self._func(event)

    def valid(self, event: Event) -> ValidationOutcome:
        return self._func(event)

    def __repr__(self) -> str:
        return f"ValidatorFunc({self.__name__})"


class Validators(list[Validator]):
    """An ordered list of Validators evaluated in aggregate mode.

    Every rule runs; all failures are collected into one Errors value so a
    bad boot-time never hides a simultaneous bad birthdate.
    """

    def valid(self, event: Event) -> ValidationOutcome:
        failures = Errors()
        for validator in self:
            ok, err = validator.valid(event)
            if not ok:
                failures.append(err if err is not None else InvalidEventError())
        if failures.errors:
            return False, failures
        return True, None


def boot_time_validator(tv: TimeValidation) -> ValidatorFunc:
    """Check that the boot-time is present, positive, and inside ``tv``'s window."""

    def _valid(event: Event) -> ValidationOutcome:
        try:
            boot_time = event.boot_time()
        except BootTimeNotFoundError as exc:
            return False, InvalidBootTimeError(exc, Tag.MISSING_BOOT_TIME)
        except BootTimeParseError as exc:
            return False, InvalidBootTimeError(exc, Tag.INVALID_BOOT_TIME)

        if boot_time <= 0:
            return False, InvalidBootTimeError(None, Tag.INVALID_BOOT_TIME)

        try:
            boot_datetime = datetime.fromtimestamp(boot_time, UTC)
        except (OverflowError, OSError, ValueError):
            return False, InvalidBootTimeError(FutureDateError(), Tag.FUTURE_BOOT_TIME)

        ok, err = tv.valid(boot_datetime)
        if ok:
            return True, None
        if isinstance(err, PastDateError):
            tag = Tag.OLD_BOOT_TIME
        elif isinstance(err, FutureDateError):
            tag = Tag.FUTURE_BOOT_TIME
        else:
            tag = Tag.INVALID_BOOT_TIME
        return False, InvalidBootTimeError(err, tag)

    _valid.__name__ = "boot_time_validator"
    return ValidatorFunc(_valid)


def birthdate_validator(tv: TimeValidation) -> ValidatorFunc:
    """Check that the birthdate is positive and inside ``tv``'s window."""

    def _valid(event: Event) -> ValidationOutcome:
        if event.birthdate <= 0:
            return False, InvalidBirthdateError()

        ok, err = tv.valid(event.birthdate_time())
        if not ok:
            return False, InvalidBirthdateError(err)
        return True, None

    _valid.__name__ = "birthdate_validator"
    return ValidatorFunc(_valid)


def birthdate_alignment_validator(max_drift: timedelta) -> ValidatorFunc:
    """Check that every unix timestamp in the destination is within ``max_drift`` of the birthdate.

    All misaligned timestamps are reported, not just the first. Events
    without a birthdate are left to birthdate_validator.
    """

    def _valid(event: Event) -> ValidationOutcome:
        if event.birthdate <= 0:
            return True, None

        drift_ns = max_drift // timedelta(microseconds=1) * 1000
        misaligned = [
            ts
            for ts in destination_timestamps(event.destination)
            if abs(ts * 1_000_000_000 - event.birthdate) > drift_ns
        ]
        if misaligned:
            return False, InvalidBirthdateError(
                MisalignedBirthdateError(),
                Tag.MISALIGNED_BIRTHDATE,
                destination=event.destination,
                timestamps=misaligned,
            )
        return True, None

    _valid.__name__ = "birthdate_alignment_validator"
    return ValidatorFunc(_valid)


def boot_duration_validator(min_duration: timedelta) -> ValidatorFunc:
    """Check that destination timestamps come at least ``min_duration`` after the boot-time.

    Timestamps before the boot-time are ignored. When the boot-time cannot be
    obtained the rule passes but still returns the boot-time error.
    """

    def _valid(event: Event) -> ValidationOutcome:
        try:
            boot_time = event.boot_time()
        except BootTimeNotFoundError as exc:
            return True, InvalidBootTimeError(exc, Tag.MISSING_BOOT_TIME)
        except BootTimeParseError as exc:
            return True, InvalidBootTimeError(exc, Tag.INVALID_BOOT_TIME)
        if boot_time <= 0:
            return True, InvalidBootTimeError(None, Tag.INVALID_BOOT_TIME)

        too_fast = [
            ts
            for ts in destination_timestamps(event.destination)
            if boot_time < ts and timedelta(seconds=ts - boot_time) < min_duration
        ]
        if too_fast:
            return False, BootDurationError(
                FastBootError(),
                Tag.FAST_BOOT,
                destination=event.destination,
                timestamps=too_fast,
            )
        return True, None

    _valid.__name__ = "boot_duration_validator"
    return ValidatorFunc(_valid)


def consistent_device_id_validator() -> ValidatorFunc:
    """Check that every device id found in source, destination and metadata is identical."""

    def _valid(event: Event) -> ValidationOutcome:
        found: list[str] = []
        for text in (event.source, event.destination, *event.metadata.values()):
            for match in DEVICE_ID_REGEX.finditer(text):
                if match.group(0) not in found:
                    found.append(match.group(0))
        if len(found) > 1:
            return False, InconsistentIDError(found)
        return True, None

    _valid.__name__ = "consistent_device_id_validator"
    return ValidatorFunc(_valid)


def event_type_validator(allowed: Iterable[str]) -> ValidatorFunc:
    """Check that the event type is non-empty and one of ``allowed``."""
    allowed_types = frozenset(allowed)

    def _valid(event: Event) -> ValidationOutcome:
        try:
            event_type = event.event_type()
        except TypeNotFoundError as exc:
            return False, InvalidEventError(exc, Tag.INVALID_EVENT_TYPE)
        if not event_type or event_type not in allowed_types:
            return False, InvalidEventError(
                InvalidEventTypeError(repr(event_type)),
                Tag.INVALID_EVENT_TYPE,
            )
        return True, None

    _valid.__name__ = "event_type_validator"
    return ValidatorFunc(_valid)


def destination_validator(regex: re.Pattern[str] | str) -> ValidatorFunc:
    """Check that the destination is an event and matches the type-specific ``regex``."""
    pattern = re.compile(regex) if isinstance(regex, str) else regex

    def _valid(event: Event) -> ValidationOutcome:
        if not EVENT_REGEX.match(event.destination):
            return False, InvalidDestinationError(
                NonEventError(),
                Tag.NON_EVENT,
                destination=event.destination,
            )
        if not pattern.search(event.destination):
            return False, InvalidDestinationError(
                InvalidEventTypeError(),
                Tag.EVENT_TYPE_MISMATCH,
                destination=event.destination,
                event_type=pattern.pattern,
            )
        return True, None

    _valid.__name__ = "destination_validator"
    return ValidatorFunc(_valid)


def destination_timestamps(destination: str) -> list[int]:
    """Return every path segment of the destination that parses as a base-10 integer.

    Any numeric segment counts, including ones that are not really timestamps.
    """
    timestamps: list[int] = []
    for match in _SEGMENT_REGEX.finditer(destination):
        content = match.group("content")
        if _TIMESTAMP_PATTERN.fullmatch(content):
            timestamps.append(int(content))
    return timestamps

