"""Unit tests for boot cycle reconstruction (src/device_interpreter/history/parsers.py).

Histories are built from three boot cycles at NOW-2h, NOW-1h and NOW; see
the ``three_cycle_history`` fixture.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from device_interpreter.domain.errors import InvalidBootTimeError
from device_interpreter.domain.tags import Tag
from device_interpreter.history.comparators import (
    default_comparator,
    duplicate_event_comparator,
    older_boot_time_comparator,
)
from device_interpreter.history.errors import ComparatorError
from device_interpreter.history.parsers import (
    PARSERS,
    EventsParserFunc,
    current_cycle_parser,
    default_cycle_parser,
    last_cycle_parser,
    last_cycle_to_current_parser,
    parse_into_cycles,
    reboot_end,
    reboot_parser,
    reboot_start,
    reboot_to_current_parser,
    sort_by_boot_time,
    split_cycles,
)
from tests.fixtures.events import NOW, make_cycle, make_event, uuids


@pytest.fixture()
def history(three_cycle_history):
    return three_cycle_history["oldest"] + three_cycle_history["previous"] + three_cycle_history["current"]


# ---------------------------------------------------------------------------
# Bucket strategies
# ---------------------------------------------------------------------------


class TestCycleParsers:
    def test_last_cycle_only(self, history, three_cycle_history) -> None:
        trigger = three_cycle_history["current"][1]
        parsed = last_cycle_parser().parse(history, trigger)
        assert uuids(parsed) == uuids(list(reversed(three_cycle_history["previous"])))

    def test_current_cycle_only(self, history, three_cycle_history) -> None:
        current = three_cycle_history["current"]
        parsed = current_cycle_parser().parse(history, current[1])
        assert uuids(parsed) == [current[1].transaction_uuid, current[0].transaction_uuid]

    def test_current_cycle_excludes_newer_events(self, history, three_cycle_history) -> None:
        current = three_cycle_history["current"]
        parsed = current_cycle_parser().parse(history, current[0])
        assert uuids(parsed) == [current[0].transaction_uuid]

    def test_trigger_not_in_history_is_added(self, three_cycle_history) -> None:
        trigger = make_event("operational", boot_time=NOW, birthdate=NOW + timedelta(minutes=10))
        parsed = current_cycle_parser().parse(three_cycle_history["current"], trigger)
        assert parsed[0] is trigger
        assert len(parsed) == 3

    def test_last_cycle_to_current(self, history, three_cycle_history) -> None:
        current = three_cycle_history["current"]
        parsed = last_cycle_to_current_parser().parse(history, current[1])
        expected = [current[1], current[0], *reversed(three_cycle_history["previous"])]
        assert uuids(parsed) == uuids(expected)
        assert uuids(parsed) == uuids(sort_by_boot_time(parsed))

    def test_default_returns_everything_by_birthdate(self, history, three_cycle_history) -> None:
        trigger = three_cycle_history["current"][1]
        parsed = default_cycle_parser().parse(history, trigger)
        assert len(parsed) == len(history)
        assert [e.birthdate for e in parsed] == sorted((e.birthdate for e in history), reverse=True)

    def test_caller_list_is_not_reordered(self, history, three_cycle_history) -> None:
        before = uuids(history)
        last_cycle_to_current_parser().parse(history, three_cycle_history["current"][1])
        assert uuids(history) == before

    def test_registry(self) -> None:
        assert set(PARSERS) == {
            "default",
            "current_cycle",
            "last_cycle",
            "last_cycle_to_current",
            "reboot",
            "reboot_to_current",
        }
        assert isinstance(PARSERS["reboot"](None), EventsParserFunc)


class TestParserEdgeCases:
    def test_trigger_without_boot_time_fails(self, history) -> None:
        with pytest.raises(InvalidBootTimeError):
            current_cycle_parser().parse(history, make_event(boot_time=None))

    def test_history_events_without_boot_time_are_skipped(self, three_cycle_history) -> None:
        current = three_cycle_history["current"]
        broken = [
            make_event(boot_time=None, birthdate=NOW),
            make_event(boot_time=None, metadata={"/boot-time": "soon"}),
            make_event(boot_time=0),
        ]
        parsed = current_cycle_parser(older_boot_time_comparator()).parse(broken + current, current[1])
        assert uuids(parsed) == [current[1].transaction_uuid, current[0].transaction_uuid]

    def test_comparator_match_aborts_parse(self, history, three_cycle_history) -> None:
        trigger = make_event("online", boot_time=NOW, birthdate=NOW + timedelta(minutes=10))
        with pytest.raises(ComparatorError) as exc_info:
            current_cycle_parser(duplicate_event_comparator()).parse(history, trigger)
        assert exc_info.value.tag is Tag.DUPLICATE_EVENT

    def test_outdated_trigger_aborts(self, history, three_cycle_history) -> None:
        trigger = three_cycle_history["previous"][-1]
        with pytest.raises(ComparatorError) as exc_info:
            last_cycle_parser(older_boot_time_comparator()).parse(history, trigger)
        assert exc_info.value.tag is Tag.OUTDATED_BOOT_TIME

    def test_no_previous_cycle(self, three_cycle_history) -> None:
        current = three_cycle_history["current"]
        buckets = split_cycles(current, current[1], default_comparator())
        assert buckets.last_cycle == []
        assert len(buckets.current_cycle) == 2


# ---------------------------------------------------------------------------
# Reboot window
# ---------------------------------------------------------------------------


class TestRebootWindow:
    """Reboot parsers keep the shutdown of one cycle and the startup of the next."""

    def test_reboot_parser(self, history, three_cycle_history) -> None:
        previous = three_cycle_history["previous"]
        current = three_cycle_history["current"]
        parsed = reboot_parser().parse(history, current[1])
        # current: operational, online; previous: offline, reboot-pending
        assert uuids(parsed) == uuids([current[1], current[0], previous[4], previous[3]])

    def test_reboot_to_current_parser(self, history, three_cycle_history) -> None:
        previous = three_cycle_history["previous"]
        current = three_cycle_history["current"]
        parsed = reboot_to_current_parser().parse(history, current[1])
        assert uuids(parsed) == uuids([current[1], current[0], previous[4], previous[3]])

    def test_reboot_end_stops_at_fully_manageable(self) -> None:
        cycle = make_cycle(NOW, ["online", "operational", "fully-manageable", "reboot-pending"])
        assert uuids(reboot_end(cycle)) == uuids([cycle[2], cycle[1], cycle[0]])

    def test_reboot_end_falls_back_to_online(self) -> None:
        cycle = make_cycle(NOW, ["offline", "online", "offline"])
        assert uuids(reboot_end(cycle)) == uuids([cycle[1], cycle[0]])

    def test_reboot_end_without_bookend(self) -> None:
        assert reboot_end(make_cycle(NOW, ["offline"])) == []

    def test_reboot_start_falls_back_to_offline(self) -> None:
        cycle = make_cycle(NOW, ["online", "offline", "operational"])
        assert uuids(reboot_start(cycle)) == uuids([cycle[2], cycle[1]])

    def test_reboot_start_without_bookend(self) -> None:
        assert reboot_start(make_cycle(NOW, ["online", "operational"])) == []

    def test_reboot_to_current_keeps_whole_current_cycle(self) -> None:
        previous = make_cycle(NOW - timedelta(hours=1), ["online", "reboot-pending", "offline"])
        current = make_cycle(NOW, ["online", "operational", "fully-manageable", "offline"])
        trigger = current[-1]
        assert len(reboot_to_current_parser().parse(previous + current, trigger)) == 4 + 2
        assert len(reboot_parser().parse(previous + current, trigger)) == 3 + 2


# ---------------------------------------------------------------------------
# Whole-history partitioning
# ---------------------------------------------------------------------------


class TestParseIntoCycles:
    def test_one_cycle_per_boot_time(self, history) -> None:
        newest_first = list(reversed(history))
        cycles = parse_into_cycles(newest_first, current_cycle_parser())
        assert [c.id for c in cycles] == ["0", "1", "2"]
        assert [len(c.events) for c in cycles] == [2, 5, 5]
        assert all(c.error is None for c in cycles)
        assert cycles[0].boot_time > cycles[1].boot_time > cycles[2].boot_time

    def test_chronological_history_keeps_whole_cycles(self, history, three_cycle_history) -> None:
        """The newest event of each boot-time is the trigger, whatever the input order."""
        cycles = parse_into_cycles(history, current_cycle_parser())
        assert [len(c.events) for c in cycles] == [5, 5, 2]
        assert cycles[0].boot_time < cycles[1].boot_time < cycles[2].boot_time
        assert cycles[2].events[0] is three_cycle_history["current"][-1]

    def test_shuffled_history(self, history) -> None:
        shuffled = history[1::2][::-1] + history[::2]
        cycles = parse_into_cycles(shuffled, current_cycle_parser())
        assert sorted(len(c.events) for c in cycles) == [2, 5, 5]

    def test_parse_failure_is_kept_on_cycle(self, history) -> None:
        newest_first = list(reversed(history))
        cycles = parse_into_cycles(newest_first, current_cycle_parser(older_boot_time_comparator()))
        assert cycles[0].error is None
        assert isinstance(cycles[1].error, ComparatorError)
        assert cycles[1].events == []

    def test_events_without_boot_time_start_no_cycle(self) -> None:
        cycles = parse_into_cycles([make_event(boot_time=None)], current_cycle_parser())
        assert cycles == []
