"""Error types for event validation.

Errors are values: validators return them alongside a ``False`` verdict and
the history layer raises them when a scan must stop. Every wrapper keeps the
error it wraps as ``original_error`` and as ``__cause__``, so callers can ask
whether a failure stems from a given cause with :func:`caused_by` without
knowing which wrapper produced it.

Pure Python, no framework imports.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from device_interpreter.domain.tags import Tag

if TYPE_CHECKING:
    from device_interpreter.domain.models import Event


# ---------------------------------------------------------------------------
# Capability protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class TaggedError(Protocol):
    """An error that carries a single Tag."""

    @property
    def tag(self) -> Tag: ...


@runtime_checkable
class TaggedErrors(Protocol):
    """An error that carries several Tags."""

    @property
    def tags(self) -> list[Tag]: ...

    @property
    def unique_tags(self) -> list[Tag]: ...


@runtime_checkable
class ErrorWithFields(Protocol):
    """An error that names the offending fields, ids or timestamps."""

    @property
    def detail_key(self) -> str: ...

    @property
    def fields(self) -> list[str]: ...


# ---------------------------------------------------------------------------
# Base classes
# ---------------------------------------------------------------------------


class InterpreterError(Exception):
    """Base class for every error produced by the interpreter."""

    message = "interpreter error"

    def __init__(self, detail: object | None = None) -> None:
        self.detail = detail
        text = self.message if detail is None else f"{self.message}: {detail}"
        super().__init__(text)


class WrappingError(InterpreterError):
    """An error that wraps an original cause and resolves a Tag.

    The tag is the explicitly set one, else the class default, else the tag
    of the first tagged error found in the wrapped chain.
    """

    message = "error"
    default_tag = Tag.UNKNOWN

    def __init__(
        self,
        original_error: BaseException | None = None,
        tag: Tag = Tag.UNKNOWN,
    ) -> None:
        self.original_error = original_error
        self.error_tag = tag
        super().__init__(original_error)
        self.__cause__ = original_error

    @property
    def tag(self) -> Tag:
        if self.error_tag != Tag.UNKNOWN:
            return self.error_tag
        if self.default_tag != Tag.UNKNOWN:
            return self.default_tag
        return tag_of(self.original_error)


# ---------------------------------------------------------------------------
# Causes raised by Event accessors and time checks
# ---------------------------------------------------------------------------


class ParseDeviceIDError(InterpreterError):
    message = "error getting device ID from event"


class BirthdateParseError(InterpreterError):
    message = "unable to parse birthdate from payload"


class BootTimeParseError(InterpreterError):
    message = "unable to parse boot-time"


class BootTimeNotFoundError(InterpreterError):
    message = "boot-time not found"


class TypeNotFoundError(InterpreterError):
    message = "type not found"


class FutureDateError(InterpreterError):
    message = "date is too far in the future"


class PastDateError(InterpreterError):
    message = "date is too far in the past"


class InvalidYearError(InterpreterError):
    message = "date is outside of the desired year"


class NilTimeFuncError(InterpreterError):
    message = "current-time function has not been set"


class InvalidEventTypeError(InterpreterError):
    message = "event type doesn't match"


class NonEventError(InterpreterError):
    message = "not an event"


class FastBootError(InterpreterError):
    message = "fast booting"


class MisalignedBirthdateError(InterpreterError):
    message = "birthdate does not align with destination timestamps"


# ---------------------------------------------------------------------------
# Tagged wrappers
# ---------------------------------------------------------------------------


class InvalidEventError(WrappingError):
    """Generic invalid-event wrapper; the tag falls back to the wrapped error's."""

    message = "event invalid"


class InvalidBootTimeError(WrappingError):
    message = "boot-time invalid"
    default_tag = Tag.INVALID_BOOT_TIME


class InvalidBirthdateError(WrappingError):
    message = "birthdate invalid"
    default_tag = Tag.INVALID_BIRTHDATE
    detail_key = "timestamps"

    def __init__(
        self,
        original_error: BaseException | None = None,
        tag: Tag = Tag.UNKNOWN,
        destination: str = "",
        timestamps: list[int] | None = None,
    ) -> None:
        super().__init__(original_error, tag)
        self.destination = destination
        self.timestamps = list(timestamps or [])

    @property
    def fields(self) -> list[str]:
        return [str(ts) for ts in self.timestamps]


class BootDurationError(WrappingError):
    message = "boot duration error"
    default_tag = Tag.INVALID_BOOT_DURATION
    detail_key = "timestamps"

    def __init__(
        self,
        original_error: BaseException | None = None,
        tag: Tag = Tag.UNKNOWN,
        destination: str = "",
        timestamps: list[int] | None = None,
    ) -> None:
        super().__init__(original_error, tag)
        self.destination = destination
        self.timestamps = list(timestamps or [])

    @property
    def fields(self) -> list[str]:
        return [str(ts) for ts in self.timestamps]


class InvalidDestinationError(WrappingError):
    message = "invalid destination"
    default_tag = Tag.INVALID_DESTINATION

    def __init__(
        self,
        original_error: BaseException | None = None,
        tag: Tag = Tag.UNKNOWN,
        destination: str = "",
        event_type: str = "",
    ) -> None:
        super().__init__(original_error, tag)
        self.destination = destination
        self.event_type = event_type


class InconsistentIDError(InterpreterError):
    """The device ids found across an event's fields disagree."""

    message = "inconsistent device id"
    detail_key = "device ids"

    def __init__(self, ids: list[str] | None = None) -> None:
        super().__init__()
        self.ids = list(ids or [])

    @property
    def tag(self) -> Tag:
        return Tag.INCONSISTENT_DEVICE_ID

    @property
    def fields(self) -> list[str]:
        return list(self.ids)


class EventWithError(InterpreterError):
    """Connects an error with the event it was found on."""

    def __init__(self, event: Event, original_error: BaseException | None) -> None:
        self.event = event
        self.original_error = original_error
        super().__init__()
        self.__cause__ = original_error

    def __str__(self) -> str:
        event_id = self.event.transaction_uuid or "Missing"
        return f"event id: {event_id}; error: {self.original_error}"

    @property
    def tag(self) -> Tag:
        return tag_of(self.original_error)

    @property
    def tags(self) -> list[Tag]:
        return _flat_tags(self.original_error)

    @property
    def unique_tags(self) -> list[Tag]:
        return _dedupe(_flat_tags(self.original_error))


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


class Errors(InterpreterError):
    """An ordered list of errors that also acts as a single error.

    The combined message is log friendly while each error stays accessible
    through :attr:`errors`.
    """

    def __init__(self, errors: Iterable[BaseException] = ()) -> None:
        self._errors: list[BaseException] = list(errors)
        super().__init__()

    def __str__(self) -> str:
        if not self._errors:
            return "unknown or no errors"
        if len(self._errors) == 1:
            return str(self._errors[0])
        return "multiple errors: [" + ", ".join(str(e) for e in self._errors) + "]"

    def __iter__(self) -> Iterator[BaseException]:
        return iter(self._errors)

    @property
    def errors(self) -> list[BaseException]:
        return list(self._errors)

    def append(self, error: BaseException) -> None:
        self._errors.append(error)

    @property
    def tag(self) -> Tag:
        """The single tag carried, MULTIPLE_TAGS if more than one error is tagged."""
        tag = Tag.UNKNOWN
        for err in self._errors:
            tagged = _find_tagged(err)
            if tagged is None:
                continue
            if tag != Tag.UNKNOWN:
                return Tag.MULTIPLE_TAGS
            tag = tagged.tag
        return tag

    @property
    def tags(self) -> list[Tag]:
        """All tags in order, flattening nested aggregates. Untagged errors give UNKNOWN."""
        tags: list[Tag] = []
        for err in self._errors:
            tags.extend(_flat_tags(err) or [Tag.UNKNOWN])
        return tags

    @property
    def unique_tags(self) -> list[Tag]:
        """Tags without repetition, in order of first occurrence."""
        tags: list[Tag] = []
        for err in self._errors:
            tags.extend(_flat_tags(err))
        return _dedupe(tags)


# ---------------------------------------------------------------------------
# Chain helpers
# ---------------------------------------------------------------------------


def _chain(err: BaseException | None) -> Iterator[BaseException]:
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        yield err
        err = err.__cause__


def _find_tagged(err: BaseException | None) -> TaggedError | None:
    for link in _chain(err):
        if isinstance(getattr(link, "tag", None), Tag):
            return link  # type: ignore[return-value]
    return None


def _flat_tags(err: BaseException | None) -> list[Tag]:
    if err is None:
        return []
    if isinstance(err, Errors):
        return [tag for member in err for tag in _flat_tags(member)]
    if isinstance(err, EventWithError):
        return _flat_tags(err.original_error)
    tagged = _find_tagged(err)
    return [tagged.tag] if tagged is not None else []


def _dedupe(tags: list[Tag]) -> list[Tag]:
    unique: list[Tag] = []
    for tag in tags:
        if tag not in unique:
            unique.append(tag)
    return unique


def tag_of(err: BaseException | None) -> Tag:
    """Return the tag of the first tagged error in err's chain, or UNKNOWN."""
    tagged = _find_tagged(err)
    return tagged.tag if tagged is not None else Tag.UNKNOWN


def find_cause(
    err: BaseException | None,
    cause_type: type[BaseException],
) -> BaseException | None:
    """Return the first error of ``cause_type`` in err's chain or aggregates."""
    for link in _chain(err):
        if isinstance(link, cause_type):
            return link
        if isinstance(link, Errors):
            for member in link:
                found = find_cause(member, cause_type)
                if found is not None:
                    return found
    return None


def caused_by(
    err: BaseException | None,
    cause: type[BaseException] | BaseException,
) -> bool:
    """Report whether err is, wraps, or aggregates ``cause``.

    ``cause`` may be an exception class (matched with isinstance) or a
    specific exception instance (matched by identity).
    """
    if isinstance(cause, type):
        return find_cause(err, cause) is not None
    for link in _chain(err):
        if link is cause:
            return True
        if isinstance(link, Errors) and any(caused_by(member, cause) for member in link):
            return True
    return False
