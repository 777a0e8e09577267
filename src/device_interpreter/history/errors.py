"""Errors produced while comparing, finding and validating events in a history."""

from __future__ import annotations

from typing import TYPE_CHECKING

from device_interpreter.domain.errors import InterpreterError, WrappingError
from device_interpreter.domain.tags import Tag

if TYPE_CHECKING:
    from device_interpreter.domain.models import Event


class NewerBootTimeError(InterpreterError):
    message = "newer boot-time found"


class DuplicateEventError(InterpreterError):
    message = "duplicate event found"


class EventNotFoundError(InterpreterError):
    message = "event not found"


class InconsistentMetadataError(InterpreterError):
    message = "inconsistent metadata"


class RepeatIDError(InterpreterError):
    message = "repeat transaction uuid found"


class MissingOnlineEventError(InterpreterError):
    message = "session does not have online event"


class MissingOfflineEventError(InterpreterError):
    message = "session does not have offline event"


class InvalidEventOrderError(InterpreterError):
    message = "invalid event order"


class FalseRebootError(InterpreterError):
    message = "not a true reboot"


class NoRebootError(InterpreterError):
    message = "no reboot found"


class ComparatorError(WrappingError):
    """A trigger event contradicts an event already in the history.

    ``comparison_event`` is the history event that exposed the problem.
    """

    message = "comparator error"

    def __init__(
        self,
        original_error: BaseException | None = None,
        tag: Tag = Tag.UNKNOWN,
        comparison_event: Event | None = None,
    ) -> None:
        super().__init__(original_error, tag)
        self.comparison_event = comparison_event


class EventFinderError(WrappingError):
    message = "failed to find event"


class CycleValidationError(WrappingError):
    """A boot cycle failed a cycle-level rule.

    ``detail_key`` names what ``detail_values`` lists, e.g. the session ids
    missing an online event.
    """

    message = "cycle validation error"

    def __init__(
        self,
        original_error: BaseException | None = None,
        tag: Tag = Tag.UNKNOWN,
        detail_key: str = "",
        detail_values: list[str] | None = None,
    ) -> None:
        super().__init__(original_error, tag)
        self.detail_key = detail_key
        self.detail_values = list(detail_values or [])

    @property
    def fields(self) -> list[str]:
        return list(self.detail_values)
