"""Relational rules between a history event and an incoming event.

A Comparator answers "is the incoming event wrong relative to this history
event". ``(True, error)`` flags an anomaly and tells the caller to stop
scanning; ``(False, None)`` means no relation was found.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from device_interpreter.domain.errors import TypeNotFoundError
from device_interpreter.domain.models import Event, boot_time_or_zero
from device_interpreter.domain.tags import Tag
from device_interpreter.history.errors import (
    ComparatorError,
    DuplicateEventError,
    NewerBootTimeError,
)

ComparisonOutcome = tuple[bool, Exception | None]


@runtime_checkable
class Comparator(Protocol):
    def compare(self, base_event: Event, new_event: Event) -> ComparisonOutcome: ...


class ComparatorFunc:
    """Adapts a plain function into a Comparator."""

    def __init__(self, func: Callable[[Event, Event], ComparisonOutcome]) -> None:
        self._func = func
        self.__name__ = getattr(func, "__name__", type(self).__name__)

    def __call__(self, base_event: Event, new_event: Event) -> ComparisonOutcome:
        return self._func(base_event, new_event)

    def compare(self, base_event: Event, new_event: Event) -> ComparisonOutcome:
        return self._func(base_event, new_event)

    def __repr__(self) -> str:
        return f"ComparatorFunc({self.__name__})"


class Comparators(list[Comparator]):
    """A list of Comparators that short-circuits on the first match."""

    def compare(self, base_event: Event, new_event: Event) -> ComparisonOutcome:
        for comparator in self:
            matched, err = comparator.compare(base_event, new_event)
            if matched:
                return True, err
        return False, None


def default_comparator() -> ComparatorFunc:
    """A comparator that never matches."""

    def _compare(_base: Event, _new: Event) -> ComparisonOutcome:
        return False, None

    _compare.__name__ = "default_comparator"
    return ComparatorFunc(_compare)


def older_boot_time_comparator() -> ComparatorFunc:
    """Flag ``new_event`` when a history event has a newer boot-time.

    Assumes ``new_event`` has a valid boot-time.
    """

    def _compare(base_event: Event, new_event: Event) -> ComparisonOutcome:
        if base_event.transaction_uuid == new_event.transaction_uuid:
            return False, None

        latest_boot_time = boot_time_or_zero(new_event)
        boot_time = boot_time_or_zero(base_event)
        if boot_time <= 0:
            return False, None

        if boot_time > latest_boot_time:
            return True, ComparatorError(
                NewerBootTimeError(),
                Tag.OUTDATED_BOOT_TIME,
                comparison_event=base_event,
            )
        return False, None

    _compare.__name__ = "older_boot_time_comparator"
    return ComparatorFunc(_compare)


def duplicate_event_comparator() -> ComparatorFunc:
    """Flag ``new_event`` as a duplicate of a history event.

    A duplicate shares the event type and boot-time of the history event and
    has a birthdate equal to or newer than it. Assumes ``new_event`` has a
    valid boot-time and event type.
    """

    def _compare(base_event: Event, new_event: Event) -> ComparisonOutcome:
        if base_event.transaction_uuid == new_event.transaction_uuid:
            return False, None

        try:
            base_type = base_event.event_type()
        except TypeNotFoundError:
            return False, None
        try:
            new_type = new_event.event_type()
        except TypeNotFoundError:
            new_type = ""

        if base_type.strip().lower() != new_type.strip().lower():
            return False, None

        boot_time = boot_time_or_zero(base_event)
        if boot_time <= 0:
            return False, None

        if boot_time == boot_time_or_zero(new_event) and base_event.birthdate <= new_event.birthdate:
            return True, ComparatorError(
                DuplicateEventError(),
                Tag.DUPLICATE_EVENT,
                comparison_event=base_event,
            )
        return False, None

    _compare.__name__ = "duplicate_event_comparator"
    return ComparatorFunc(_compare)
