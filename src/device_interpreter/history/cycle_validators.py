"""Rules evaluated over all events of a boot cycle.

A CycleValidator receives the events of one cycle (in any order unless a
rule says otherwise) and returns ``(True, None)`` or ``(False, error)``
where the error is a CycleValidationError naming the offending ids or keys.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from typing import Protocol, runtime_checkable

from device_interpreter.domain.errors import Errors, TypeNotFoundError
from device_interpreter.domain.models import (
    OFFLINE_EVENT_TYPE,
    ONLINE_EVENT_TYPE,
    Event,
    boot_time_or_zero,
)
from device_interpreter.domain.tags import Tag
from device_interpreter.history.errors import (
    CycleValidationError,
    FalseRebootError,
    InconsistentMetadataError,
    InvalidEventOrderError,
    MissingOfflineEventError,
    MissingOnlineEventError,
    NoRebootError,
    RepeatIDError,
)
from device_interpreter.history.parsers import sort_by_boot_time

CycleOutcome = tuple[bool, Exception | None]

# Decides whether a session may skip the bookend check: (cycle events, session id) -> skip.
ExcludeFunc = Callable[[Sequence[Event], str], bool]


@runtime_checkable
class CycleValidator(Protocol):
    def valid(self, events: Sequence[Event]) -> CycleOutcome: ...


class CycleValidatorFunc:
    """Adapts a plain function into a CycleValidator."""

    def __init__(self, func: Callable[[Sequence[Event]], CycleOutcome]) -> None:
        self._func = func
        self.__name__ = getattr(func, "__name__", type(self).__name__)

    def __call__(self, events: Sequence[Event]) -> CycleOutcome:
        return self._func(events)

    def valid(self, events: Sequence[Event]) -> CycleOutcome:
        return self._func(events)

    def __repr__(self) -> str:
        return f"CycleValidatorFunc({self.__name__})"


class CycleValidators(list[CycleValidator]):
    """Runs every CycleValidator and aggregates all failures."""

    def valid(self, events: Sequence[Event]) -> CycleOutcome:
        failures = Errors()
        for validator in self:
            ok, err = validator.valid(events)
            if not ok:
                failures.append(err if err is not None else CycleValidationError())
        if failures.errors:
            return False, failures
        return True, None


def default_cycle_validator() -> CycleValidatorFunc:
    """A CycleValidator that always passes."""

    def _valid(_events: Sequence[Event]) -> CycleOutcome:
        return True, None

    _valid.__name__ = "default_cycle_validator"
    return CycleValidatorFunc(_valid)


def metadata_validator(keys: Iterable[str], check_within_cycle: bool = False) -> CycleValidatorFunc:
    """Check that events share the same values for ``keys``.

    With ``check_within_cycle`` the reference values are taken per distinct
    boot-time, otherwise the first event's values are the reference for all.
    """
    fields = list(keys)

    def _valid(events: Sequence[Event]) -> CycleOutcome:
        if check_within_cycle:
            incorrect = _validate_metadata_within_cycle(fields, events)
        else:
            incorrect = _validate_metadata(fields, events)

        if not incorrect:
            return True, None

        cause = InconsistentMetadataError("among same boot-time events") if check_within_cycle else InconsistentMetadataError()
        return False, CycleValidationError(
            cause,
            Tag.INCONSISTENT_METADATA,
            detail_key="inconsistent metadata keys",
            detail_values=incorrect,
        )

    _valid.__name__ = "metadata_validator"
    return CycleValidatorFunc(_valid)


def transaction_uuid_validator() -> CycleValidatorFunc:
    """Check that no transaction uuid appears more than once."""

    def _valid(events: Sequence[Event]) -> CycleOutcome:
        seen: dict[str, int] = {}
        for event in events:
            seen[event.transaction_uuid] = seen.get(event.transaction_uuid, 0) + 1

        repeated = [uuid for uuid, count in seen.items() if count > 1]
        if not repeated:
            return True, None

        return False, CycleValidationError(
            RepeatIDError(),
            Tag.REPEATED_TRANSACTION_UUID,
            detail_key="repeated uuids",
            detail_values=repeated,
        )

    _valid.__name__ = "transaction_uuid_validator"
    return CycleValidatorFunc(_valid)


def session_online_validator(exclude: ExcludeFunc | None = None) -> CycleValidatorFunc:
    """Check that every session has an online event unless ``exclude`` skips it."""

    def _valid(events: Sequence[Event]) -> CycleOutcome:
        sessions = parse_sessions(events, ONLINE_EVENT_TYPE)
        invalid_ids = find_sessions_without_event(sessions, events, exclude)
        if not invalid_ids:
            return True, None

        return False, CycleValidationError(
            MissingOnlineEventError(),
            Tag.MISSING_ONLINE_EVENT,
            detail_key="session ids",
            detail_values=invalid_ids,
        )

    _valid.__name__ = "session_online_validator"
    return CycleValidatorFunc(_valid)


def session_offline_validator(exclude: ExcludeFunc | None = None) -> CycleValidatorFunc:
    """Check that every session has an offline event unless ``exclude`` skips it.

    The session holding the newest event may still be active and is exempt.
    """

    def _valid(events: Sequence[Event]) -> CycleOutcome:
        if not events:
            return True, None

        sessions = parse_sessions(events, OFFLINE_EVENT_TYPE)
        latest = _latest_session_id(events)
        if latest is not None:
            sessions.pop(latest, None)

        invalid_ids = find_sessions_without_event(sessions, events, exclude)
        if not invalid_ids:
            return True, None

        return False, CycleValidationError(
            MissingOfflineEventError(),
            Tag.MISSING_OFFLINE_EVENT,
            detail_key="session ids",
            detail_values=invalid_ids,
        )

    _valid.__name__ = "session_offline_validator"
    return CycleValidatorFunc(_valid)


def event_order_validator(order: Sequence[str]) -> CycleValidatorFunc:
    """Check that the event types in ``order`` occur in that order.

    Scanning starts at the first event of type ``order[0]``; each following
    type must appear later, and unrelated events in between are skipped.
    The error lists the types that were matched before the scan ran out.
    """
    expected = list(order)

    def _valid(events: Sequence[Event]) -> CycleOutcome:
        if not expected:
            return True, None

        index = 0
        actual_order: list[str] = []
        for event in events:
            if index >= len(expected):
                break
            try:
                event_type = event.event_type()
            except TypeNotFoundError:
                continue
            if event_type == expected[index]:
                actual_order.append(event_type)
                index += 1

        if index != len(expected):
            return False, CycleValidationError(
                InvalidEventOrderError(),
                Tag.INVALID_EVENT_ORDER,
                detail_key="event_order",
                detail_values=actual_order,
            )
        return True, None

    _valid.__name__ = "event_order_validator"
    return CycleValidatorFunc(_valid)


def true_reboot_validator() -> CycleValidatorFunc:
    """Check that the newest online event follows a boot-time change.

    Events are sorted newest first by boot-time, then birthdate. The event
    right after the newest online event must carry a different boot-time.
    """

    def _valid(events: Sequence[Event]) -> CycleOutcome:
        ordered = sort_by_boot_time(events)
        for i, event in enumerate(ordered):
            try:
                event_type = event.event_type()
            except TypeNotFoundError:
                continue
            if event_type != ONLINE_EVENT_TYPE:
                continue

            if i < len(ordered) - 1:
                current_boot_time = boot_time_or_zero(event)
                previous_boot_time = boot_time_or_zero(ordered[i + 1])
                if current_boot_time <= 0 or previous_boot_time <= 0 or current_boot_time == previous_boot_time:
                    return False, CycleValidationError(FalseRebootError(), Tag.FALSE_REBOOT)
            return True, None

        return False, CycleValidationError(NoRebootError(), Tag.NO_REBOOT)

    _valid.__name__ = "true_reboot_validator"
    return CycleValidatorFunc(_valid)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def parse_sessions(events: Iterable[Event], searched_event_type: str) -> dict[str, bool]:
    """Map each session id to whether it contains an event of ``searched_event_type``.

    Events without a session id or without a parsable event type are ignored.
    """
    sessions: dict[str, bool] = {}
    for event in events:
        if not event.session_id:
            continue
        try:
            event_type = event.event_type()
        except TypeNotFoundError:
            continue
        sessions.setdefault(event.session_id, False)
        if event_type == searched_event_type:
            sessions[event.session_id] = True
    return sessions


def find_sessions_without_event(
    sessions: dict[str, bool],
    events: Sequence[Event],
    exclude: ExcludeFunc | None = None,
) -> list[str]:
    missing: list[str] = []
    for session_id, has_event in sessions.items():
        if has_event:
            continue
        if exclude is not None and exclude(events, session_id):
            continue
        missing.append(session_id)
    return missing


def _latest_session_id(events: Sequence[Event]) -> str | None:
    latest: Event | None = None
    for event in events:
        if not event.session_id:
            continue
        if latest is None or event.birthdate > latest.birthdate:
            latest = event
    return latest.session_id if latest is not None else None


def determine_metadata_values(keys: Iterable[str], event: Event) -> dict[str, str]:
    return {key: event.metadata_value(key) or "" for key in keys}


def _validate_metadata(keys: list[str], events: Sequence[Event]) -> list[str]:
    if not events:
        return []

    expected = determine_metadata_values(keys, events[0])
    incorrect: dict[str, None] = {}
    for event in events:
        check_metadata_values(expected, incorrect, event)
    return list(incorrect)


def _validate_metadata_within_cycle(keys: list[str], events: Sequence[Event]) -> list[str]:
    expected_by_boot_time: dict[int, dict[str, str]] = {}
    incorrect: dict[str, None] = {}
    for event in events:
        boot_time = boot_time_or_zero(event)
        if boot_time <= 0:
            continue

        expected = expected_by_boot_time.get(boot_time)
        if expected is None:
            # First event seen with this boot-time sets the reference values.
            expected_by_boot_time[boot_time] = determine_metadata_values(keys, event)
            continue
        check_metadata_values(expected, incorrect, event)
    return list(incorrect)


def check_metadata_values(expected: dict[str, str], incorrect: dict[str, None], event: Event) -> dict[str, None]:
    """Record in ``incorrect`` every key whose value on ``event`` differs from ``expected``."""
    for key, value in expected.items():
        if (event.metadata_value(key) or "") != value:
            incorrect[key] = None
    return incorrect
