"""Reconstruct boot cycles from an unordered event history.

Every parser takes ``(history, current_event)`` and returns the subset of the
history relevant to the trigger event, newest first: primarily by boot-time
descending, then by birthdate descending. Parsers never reorder the caller's
list; they build and sort new lists.

All parsers first require the trigger event to have a positive boot-time and
run every history event that has one through the comparator. A comparator
match aborts the whole parse by raising the comparator's error. History
events without a positive boot-time are silently left out.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

import structlog

from device_interpreter.domain.errors import (
    BootTimeNotFoundError,
    BootTimeParseError,
    InterpreterError,
    TypeNotFoundError,
)
from device_interpreter.domain.models import (
    FULLY_MANAGEABLE_EVENT_TYPE,
    OFFLINE_EVENT_TYPE,
    ONLINE_EVENT_TYPE,
    OPERATIONAL_EVENT_TYPE,
    REBOOT_PENDING_EVENT_TYPE,
    Event,
    boot_time_or_zero,
)
from device_interpreter.history.comparators import Comparator, default_comparator
from device_interpreter.history.finders import check_comparator, require_boot_time

log = structlog.get_logger(__name__)


class EventsParserFunc:
    """Adapts a plain function into an events parser with a ``parse`` method."""

    def __init__(self, func: Callable[[Sequence[Event], Event], list[Event]]) -> None:
        self._func = func
        self.__name__ = getattr(func, "__name__", type(self).__name__)

    def __call__(self, events: Sequence[Event], current_event: Event) -> list[Event]:
        return self._func(events, current_event)

    def parse(self, events: Sequence[Event], current_event: Event) -> list[Event]:
        return self._func(events, current_event)

    def __repr__(self) -> str:
        return f"EventsParserFunc({self.__name__})"


@dataclass
class CycleBuckets:
    """The two cycles around a trigger event, each sorted newest first by birthdate."""

    last_cycle: list[Event] = field(default_factory=list)
    current_cycle: list[Event] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


def default_cycle_parser(comparator: Comparator | None = None) -> EventsParserFunc:
    """Return the whole history plus the trigger event, sorted by birthdate."""
    comparator = comparator if comparator is not None else default_comparator()

    def _parse(events: Sequence[Event], current_event: Event) -> list[Event]:
        require_boot_time(current_event)
        collected: list[Event] = []
        for event in events:
            check_comparator(comparator, event, current_event)
            if event.transaction_uuid != current_event.transaction_uuid:
                collected.append(event)
        collected.append(current_event)
        return sort_by_birthdate(collected)

    _parse.__name__ = "default_cycle_parser"
    return EventsParserFunc(_parse)


def current_cycle_parser(comparator: Comparator | None = None) -> EventsParserFunc:
    """Events sharing the trigger's boot-time with a birthdate no newer than it."""
    comparator = comparator if comparator is not None else default_comparator()

    def _parse(events: Sequence[Event], current_event: Event) -> list[Event]:
        return split_cycles(events, current_event, comparator).current_cycle

    _parse.__name__ = "current_cycle_parser"
    return EventsParserFunc(_parse)


def last_cycle_parser(comparator: Comparator | None = None) -> EventsParserFunc:
    """Every event of the boot cycle immediately before the trigger's."""
    comparator = comparator if comparator is not None else default_comparator()

    def _parse(events: Sequence[Event], current_event: Event) -> list[Event]:
        return split_cycles(events, current_event, comparator).last_cycle

    _parse.__name__ = "last_cycle_parser"
    return EventsParserFunc(_parse)


def last_cycle_to_current_parser(comparator: Comparator | None = None) -> EventsParserFunc:
    """The current cycle up to the trigger followed by the whole previous cycle."""
    comparator = comparator if comparator is not None else default_comparator()

    def _parse(events: Sequence[Event], current_event: Event) -> list[Event]:
        buckets = split_cycles(events, current_event, comparator)
        return buckets.current_cycle + buckets.last_cycle

    _parse.__name__ = "last_cycle_to_current_parser"
    return EventsParserFunc(_parse)


def reboot_parser(comparator: Comparator | None = None) -> EventsParserFunc:
    """Events around the latest reboot.

    From the previous cycle: the last reboot-pending event (or, without one,
    the last offline event) and everything after it. From the current cycle:
    everything up to and including the first fully-manageable event, else
    the first operational event, else the first online event.
    """
    comparator = comparator if comparator is not None else default_comparator()

    def _parse(events: Sequence[Event], current_event: Event) -> list[Event]:
        buckets = split_cycles(events, current_event, comparator)
        return reboot_end(buckets.current_cycle) + reboot_start(buckets.last_cycle)

    _parse.__name__ = "reboot_parser"
    return EventsParserFunc(_parse)


def reboot_to_current_parser(comparator: Comparator | None = None) -> EventsParserFunc:
    """Like reboot_parser, but keeps the whole current cycle up to the trigger."""
    comparator = comparator if comparator is not None else default_comparator()

    def _parse(events: Sequence[Event], current_event: Event) -> list[Event]:
        buckets = split_cycles(events, current_event, comparator)
        return buckets.current_cycle + reboot_start(buckets.last_cycle)

    _parse.__name__ = "reboot_to_current_parser"
    return EventsParserFunc(_parse)


PARSERS: dict[str, Callable[[Comparator | None], EventsParserFunc]] = {
    "default": default_cycle_parser,
    "current_cycle": current_cycle_parser,
    "last_cycle": last_cycle_parser,
    "last_cycle_to_current": last_cycle_to_current_parser,
    "reboot": reboot_parser,
    "reboot_to_current": reboot_to_current_parser,
}


# ---------------------------------------------------------------------------
# Cycle splitting
# ---------------------------------------------------------------------------


def split_cycles(events: Iterable[Event], current_event: Event, comparator: Comparator) -> CycleBuckets:
    """Split the history into the previous cycle and the current cycle.

    The previous cycle holds every event with the greatest boot-time strictly
    less than the trigger's. The current cycle holds every event with the
    trigger's boot-time and a birthdate no newer than the trigger's, plus the
    trigger itself.
    """
    latest_boot_time = require_boot_time(current_event)

    buckets = CycleBuckets()
    last_boot_time = 0
    for event in events:
        boot_time = boot_time_or_zero(event)
        if boot_time <= 0:
            continue

        check_comparator(comparator, event, current_event)
        if event.transaction_uuid == current_event.transaction_uuid:
            continue

        if last_boot_time < boot_time < latest_boot_time:
            last_boot_time = boot_time
            buckets.last_cycle = []

        if boot_time == last_boot_time:
            buckets.last_cycle.append(event)

        if boot_time == latest_boot_time and event.birthdate <= current_event.birthdate:
            buckets.current_cycle.append(event)

    buckets.current_cycle.append(current_event)
    buckets.last_cycle = sort_by_birthdate(buckets.last_cycle)
    buckets.current_cycle = sort_by_birthdate(buckets.current_cycle)

    log.debug(
        "cycles_split",
        transaction_uuid=current_event.transaction_uuid,
        boot_time=latest_boot_time,
        last_boot_time=last_boot_time,
        last_cycle_size=len(buckets.last_cycle),
        current_cycle_size=len(buckets.current_cycle),
    )
    return buckets


def reboot_start(events: Sequence[Event]) -> list[Event]:
    """Trim a cycle to its last reboot-pending (else last offline) event and everything after.

    Assumes all events share one boot-time. Returns an empty list when the
    cycle has neither event type.
    """
    ordered = sort_by_birthdate(events)
    last_offline = -1
    for i, event in enumerate(ordered):
        event_type = _event_type_or_empty(event)
        if event_type == REBOOT_PENDING_EVENT_TYPE:
            return ordered[: i + 1]
        if event_type == OFFLINE_EVENT_TYPE and last_offline == -1:
            last_offline = i
    return ordered[: last_offline + 1]


def reboot_end(events: Sequence[Event]) -> list[Event]:
    """Trim a cycle to everything up to its first fully-manageable event.

    Falls back to the first operational event, then the first online event.
    Assumes all events share one boot-time and that a boot goes online,
    operational, fully-manageable. Returns an empty list when none exist.
    """
    ordered = sort_by_birthdate(events)
    operational = -1
    online = -1
    for i in range(len(ordered) - 1, -1, -1):
        event_type = _event_type_or_empty(ordered[i])
        if event_type == FULLY_MANAGEABLE_EVENT_TYPE:
            return ordered[i:]
        if event_type == OPERATIONAL_EVENT_TYPE and operational == -1:
            operational = i
        elif event_type == ONLINE_EVENT_TYPE and online == -1:
            online = i

    if operational > -1:
        return ordered[operational:]
    if online > -1:
        return ordered[online:]
    return []


# ---------------------------------------------------------------------------
# Whole-history partitioning
# ---------------------------------------------------------------------------


@dataclass
class BootCycle:
    """One reconstructed cycle of a history, or the reason it could not be built."""

    id: str
    boot_time: int
    events: list[Event] = field(default_factory=list)
    error: Exception | None = None


def parse_into_cycles(events: Sequence[Event], parser: EventsParserFunc) -> list[BootCycle]:
    """Run ``parser`` once per distinct boot-time, in the order boot-times first appear.

    The newest event (by birthdate) with each boot-time is the trigger, so
    the result does not depend on the order of ``events``. A parser failure
    is kept on the cycle instead of stopping the partitioning.
    """
    triggers: dict[int, Event] = {}
    for event in events:
        try:
            boot_time = event.boot_time()
        except (BootTimeNotFoundError, BootTimeParseError):
            continue
        newest = triggers.get(boot_time)
        if newest is None or event.birthdate > newest.birthdate:
            triggers[boot_time] = event

    cycles: list[BootCycle] = []
    for boot_time, event in triggers.items():
        cycle = BootCycle(id=str(len(cycles)), boot_time=boot_time)
        try:
            cycle.events = parser.parse(events, event)
        except InterpreterError as exc:
            cycle.error = exc
            log.info(
                "cycle_parse_failed",
                cycle_id=cycle.id,
                boot_time=boot_time,
                transaction_uuid=event.transaction_uuid,
                error=str(exc),
            )
        cycles.append(cycle)
    return cycles


# ---------------------------------------------------------------------------
# Ordering helpers
# ---------------------------------------------------------------------------


def sort_by_birthdate(events: Iterable[Event]) -> list[Event]:
    """Return a new list sorted newest first by birthdate."""
    return sorted(events, key=lambda e: e.birthdate, reverse=True)


def sort_by_boot_time(events: Iterable[Event]) -> list[Event]:
    """Return a new list sorted newest first by boot-time, then by birthdate."""
    return sorted(events, key=lambda e: (boot_time_or_zero(e), e.birthdate), reverse=True)


def _event_type_or_empty(event: Event) -> str:
    try:
        return event.event_type()
    except TypeNotFoundError:
        return ""
