"""Locate a relevant event for a trigger event within a raw, unsorted history.

Finders are fail-fast: an invalid trigger boot-time or a fatal comparator
match raises immediately, and a full scan without a qualifying event raises
EventFinderError wrapping EventNotFoundError.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

import structlog

from device_interpreter.domain.errors import BootTimeNotFoundError, BootTimeParseError, InvalidBootTimeError
from device_interpreter.domain.models import Event, boot_time_or_zero
from device_interpreter.domain.validators import Validator
from device_interpreter.history.comparators import Comparator, default_comparator
from device_interpreter.history.errors import ComparatorError, EventFinderError, EventNotFoundError

log = structlog.get_logger(__name__)


class FinderFunc:
    """Adapts a plain function into a finder with a ``find`` method."""

    def __init__(self, func: Callable[[Iterable[Event], Event], Event]) -> None:
        self._func = func
        self.__name__ = getattr(func, "__name__", type(self).__name__)

    def __call__(self, events: Iterable[Event], current_event: Event) -> Event:
        return self._func(events, current_event)

    def find(self, events: Iterable[Event], current_event: Event) -> Event:
        return self._func(events, current_event)

    def __repr__(self) -> str:
        return f"FinderFunc({self.__name__})"


def last_session_finder(validator: Validator, comparator: Comparator | None = None) -> FinderFunc:
    """Find the newest valid event of the boot cycle just before the trigger's.

    The target boot-time is the greatest one strictly less than the trigger
    event's boot-time.
    """
    fatal = comparator if comparator is not None else default_comparator()

    def _find(events: Iterable[Event], current_event: Event) -> Event:
        current_boot_time = require_boot_time(current_event)

        latest: Event | None = None
        previous_boot_time = 0
        for event in events:
            if event.transaction_uuid == current_event.transaction_uuid:
                continue
            check_comparator(fatal, event, current_event)

            boot_time = boot_time_or_zero(event)
            if boot_time <= 0:
                continue

            if previous_boot_time < boot_time < current_boot_time:
                previous_boot_time = boot_time
                latest = None

            if is_newer_candidate(event, latest, validator, previous_boot_time):
                latest = event

        if latest is None:
            raise EventFinderError(EventNotFoundError())
        return latest

    _find.__name__ = "last_session_finder"
    return FinderFunc(_find)


def current_session_finder(validator: Validator, comparator: Comparator | None = None) -> FinderFunc:
    """Find the newest valid event sharing the trigger event's boot-time."""
    fatal = comparator if comparator is not None else default_comparator()

    def _find(events: Iterable[Event], current_event: Event) -> Event:
        current_boot_time = require_boot_time(current_event)

        latest: Event | None = None
        for event in events:
            if event.transaction_uuid == current_event.transaction_uuid:
                continue
            check_comparator(fatal, event, current_event)

            if boot_time_or_zero(event) <= 0:
                continue

            if is_newer_candidate(event, latest, validator, current_boot_time):
                latest = event

        if latest is None:
            raise EventFinderError(EventNotFoundError())
        return latest

    _find.__name__ = "current_session_finder"
    return FinderFunc(_find)


def history_iterator(comparator: Comparator | None = None) -> FinderFunc:
    """Confirm no history event contradicts the trigger event, then return the trigger."""
    fatal = comparator if comparator is not None else default_comparator()

    def _find(events: Iterable[Event], current_event: Event) -> Event:
        require_boot_time(current_event)
        for event in events:
            if event.transaction_uuid == current_event.transaction_uuid:
                continue
            check_comparator(fatal, event, current_event)
        return current_event

    _find.__name__ = "history_iterator"
    return FinderFunc(_find)


# ---------------------------------------------------------------------------
# Helpers shared with the events parsers
# ---------------------------------------------------------------------------


def require_boot_time(event: Event) -> int:
    """Return the event's boot-time or raise InvalidBootTimeError if it is not positive."""
    try:
        boot_time = event.boot_time()
    except (BootTimeNotFoundError, BootTimeParseError) as exc:
        raise InvalidBootTimeError(exc) from exc
    if boot_time <= 0:
        raise InvalidBootTimeError()
    return boot_time


def check_comparator(comparator: Comparator, event: Event, current_event: Event) -> None:
    """Raise the comparator's error when it flags ``current_event`` against ``event``."""
    matched, err = comparator.compare(event, current_event)
    if not matched:
        return
    if err is None:
        err = ComparatorError(comparison_event=event)
    log.debug(
        "comparator_matched",
        transaction_uuid=current_event.transaction_uuid,
        comparison_uuid=event.transaction_uuid,
        error=str(err),
    )
    raise err


def is_newer_candidate(
    event: Event,
    current_best: Event | None,
    validator: Validator,
    target_boot_time: int,
) -> bool:
    """Whether ``event`` has the target boot-time, passes ``validator`` and is newer than ``current_best``."""
    if boot_time_or_zero(event) != target_boot_time:
        return False

    valid, _ = validator.valid(event)
    if not valid:
        return False

    return current_best is None or event.birthdate > current_best.birthdate
