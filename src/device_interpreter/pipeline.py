"""Validate a whole event history: split it into boot cycles, then run the
event-level and cycle-level rules over every cycle.

The builders translate settings into rule lists. Each produced EventReport
pairs one event of one cycle with the errors found on the event and on the
cycle it belongs to.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime

import structlog

from device_interpreter.domain.errors import EventWithError, TaggedErrors, tag_of
from device_interpreter.domain.models import Event
from device_interpreter.domain.tags import Tag
from device_interpreter.domain.time_validation import TimeValidator, utc_now
from device_interpreter.domain.validators import (
    Validator,
    Validators,
    birthdate_alignment_validator,
    birthdate_validator,
    boot_duration_validator,
    boot_time_validator,
    consistent_device_id_validator,
    event_type_validator,
)
from device_interpreter.history.comparators import Comparator
from device_interpreter.history.cycle_validators import (
    CycleValidator,
    CycleValidators,
    event_order_validator,
    metadata_validator,
    session_offline_validator,
    session_online_validator,
    transaction_uuid_validator,
)
from device_interpreter.history.parsers import PARSERS, BootCycle, EventsParserFunc, parse_into_cycles
from device_interpreter.settings import Settings, TimeWindowSettings, ValidatorSettings

log = structlog.get_logger(__name__)


def configure_logging(log_level: str) -> None:
    """Drop structlog events below ``log_level`` (a stdlib level name)."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def time_validator(window: TimeWindowSettings, now: Callable[[], datetime] = utc_now) -> TimeValidator:
    return TimeValidator(
        current=now,
        valid_from=window.valid_from,
        valid_to=window.valid_to,
        min_valid_year=window.min_valid_year,
        max_valid_year=window.max_valid_year,
    )


def build_event_validators(settings: ValidatorSettings, now: Callable[[], datetime] = utc_now) -> Validators:
    """Event rules in evaluation order: times first, then ids, durations and types."""
    return Validators(
        [
            boot_time_validator(time_validator(settings.boot_time, now)),
            birthdate_validator(time_validator(settings.birthdate, now)),
            birthdate_alignment_validator(settings.birthdate_alignment_duration),
            consistent_device_id_validator(),
            boot_duration_validator(settings.min_boot_duration),
            event_type_validator(settings.valid_event_types),
        ]
    )


def build_cycle_validators(settings: ValidatorSettings) -> CycleValidators:
    """Cycle rules; metadata and event order checks are added only when configured."""
    validators = CycleValidators(
        [
            transaction_uuid_validator(),
            session_online_validator(),
            session_offline_validator(),
        ]
    )

    within_cycle = settings.within_cycle_keys()
    if within_cycle:
        validators.append(metadata_validator(within_cycle, check_within_cycle=True))

    whole_cycle = settings.whole_cycle_keys()
    if whole_cycle:
        validators.append(metadata_validator(whole_cycle, check_within_cycle=False))

    if settings.event_order:
        validators.append(event_order_validator(settings.event_order))

    return validators


def build_parser(strategy: str, comparator: Comparator | None = None) -> EventsParserFunc:
    """Look up a parser by name; raises ValueError for an unknown strategy."""
    factory = PARSERS.get(strategy)
    if factory is None:
        raise ValueError(f"unknown parser strategy {strategy!r}, expected one of {sorted(PARSERS)}")
    return factory(comparator)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@dataclass
class EventReport:
    """Validation outcome for one event within one boot cycle."""

    cycle_id: str
    event: Event
    event_error: EventWithError | None = None
    cycle_error: Exception | None = None

    @property
    def event_tags(self) -> list[str]:
        return error_tag_names(self.event_error)

    @property
    def cycle_tags(self) -> list[str]:
        return error_tag_names(self.cycle_error)

    @property
    def valid(self) -> bool:
        return self.event_error is None and self.cycle_error is None


def error_tag_names(err: BaseException | None) -> list[str]:
    """Names of the unique tags carried by ``err``.

    Errors without any tag are reported by their message.
    """
    if err is None:
        return []
    if isinstance(err, EventWithError):
        return error_tag_names(err.original_error)
    if isinstance(err, TaggedErrors):
        return [str(tag) for tag in err.unique_tags]
    tag = tag_of(err)
    if tag != Tag.UNKNOWN:
        return [str(tag)]
    return [str(err)]


def validate_cycles(
    cycles: Sequence[BootCycle],
    event_validator: Validator,
    cycle_validator: CycleValidator,
) -> list[EventReport]:
    """Run both rule sets over every cycle that was reconstructed."""
    reports: list[EventReport] = []
    for cycle in cycles:
        if cycle.error is not None:
            log.warning("cycle_skipped", cycle_id=cycle.id, boot_time=cycle.boot_time, error=str(cycle.error))
            continue

        _, cycle_error = cycle_validator.valid(cycle.events)
        invalid_events = 0
        for event in cycle.events:
            ok, err = event_validator.valid(event)
            event_error = None
            if not ok:
                event_error = EventWithError(event, err)
                invalid_events += 1
            reports.append(
                EventReport(
                    cycle_id=cycle.id,
                    event=event,
                    event_error=event_error,
                    cycle_error=cycle_error,
                )
            )

        log.info(
            "cycle_validated",
            cycle_id=cycle.id,
            boot_time=cycle.boot_time,
            events=len(cycle.events),
            invalid_events=invalid_events,
            cycle_tags=error_tag_names(cycle_error),
        )
    return reports


def validate_history(
    events: Sequence[Event],
    settings: Settings | None = None,
    now: Callable[[], datetime] = utc_now,
    comparator: Comparator | None = None,
) -> list[EventReport]:
    """Split ``events`` into boot cycles and validate each one.

    This is the entry point for a whole history; it applies
    ``settings.log_level`` to structlog before validating.
    """
    settings = settings if settings is not None else Settings()
    configure_logging(settings.log_level)
    parser = build_parser(settings.parser_strategy, comparator)
    cycles = parse_into_cycles(events, parser)
    return validate_cycles(
        cycles,
        build_event_validators(settings.validators, now),
        build_cycle_validators(settings.validators),
    )
