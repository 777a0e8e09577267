"""Relative time-window checks for boot-times and birthdates.

A TimeValidator is an immutable configuration record. The clock is injected
through ``current`` so callers (and tests) decide what "now" is.

Pure Python, no framework imports.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol

from device_interpreter.domain.errors import (
    FutureDateError,
    InvalidYearError,
    NilTimeFuncError,
    PastDateError,
)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class TimeValidation(Protocol):
    """Checks whether a time falls within an allowed frame."""

    def valid(self, date: datetime) -> tuple[bool, Exception | None]: ...


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class TimeValidator:
    """Validates that a time lies within ``[now + valid_from, now + valid_to]``.

    ``valid_from`` is an offset into the past; a positive value is treated as
    its negation. ``min_valid_year`` and ``max_valid_year`` bound the time to
    the current calendar day in those years and are disabled when 0.
    """

    current: Callable[[], datetime] | None = utc_now
    valid_from: timedelta = timedelta(0)
    valid_to: timedelta = timedelta(0)
    min_valid_year: int = 0
    max_valid_year: int = 0

    def valid(self, date: datetime) -> tuple[bool, Exception | None]:
        if self.current is None:
            return False, NilTimeFuncError()

        if date <= _EPOCH:
            return False, PastDateError()

        valid_from = self.valid_from
        if valid_from > timedelta(0):
            valid_from = -valid_from

        now = self.current()

        if self.min_valid_year > 0:
            compare_date = _same_day_in_year(now, self.min_valid_year)
            if date < compare_date:
                return False, InvalidYearError(f"Year: {self.min_valid_year}")

        if self.max_valid_year > 0:
            compare_date = _same_day_in_year(now, self.max_valid_year)
            if date > compare_date:
                return False, InvalidYearError(f"Year: {self.max_valid_year}")

        if date < now + valid_from:
            return False, PastDateError()

        if date > now + self.valid_to:
            return False, FutureDateError()

        return True, None


def _same_day_in_year(now: datetime, year: int) -> datetime:
    """Midnight of today's month and day in ``year`` (Feb 29 falls back to Feb 28)."""
    day = now.day
    if now.month == 2 and day == 29:
        try:
            return datetime(year, 2, 29, tzinfo=now.tzinfo or UTC)
        except ValueError:
            day = 28
    return datetime(year, now.month, day, tzinfo=now.tzinfo or UTC)
