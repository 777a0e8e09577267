"""Unit tests for anomaly tags (src/device_interpreter/domain/tags.py)."""

from __future__ import annotations

import pytest

from device_interpreter.domain.tags import Tag, parse_tag


class TestTagString:
    def test_every_tag_round_trips_through_its_name(self) -> None:
        for tag in Tag:
            assert parse_tag(str(tag)) is tag

    @pytest.mark.parametrize(
        ("tag", "name"),
        [
            (Tag.OLD_BOOT_TIME, "suspiciously_old_boot_time"),
            (Tag.FAST_BOOT, "suspiciously_fast_boot"),
            (Tag.NON_EVENT, "not_an_event"),
            (Tag.MULTIPLE_TAGS, "multiple_tags"),
        ],
    )
    def test_names_are_stable(self, tag: Tag, name: str) -> None:
        assert str(tag) == name

    def test_format_uses_name(self) -> None:
        assert f"{Tag.FALSE_REBOOT}" == "false_reboot"


class TestParseTag:
    """Tests for tag name normalisation."""

    def test_case_insensitive(self) -> None:
        assert parse_tag("Missing_Boot_Time") is Tag.MISSING_BOOT_TIME

    def test_spaces_become_underscores(self) -> None:
        assert parse_tag("duplicate event") is Tag.DUPLICATE_EVENT

    def test_unknown_name(self) -> None:
        assert parse_tag("not a real tag") is Tag.UNKNOWN


class TestUnregisteredValues:
    def test_unregistered_number_is_unknown(self) -> None:
        assert Tag(999) is Tag.UNKNOWN

    def test_unknown_renders_as_unknown(self) -> None:
        assert str(Tag(-1)) == "unknown"

    def test_values_are_integers(self) -> None:
        assert int(Tag.UNKNOWN) == 0
        assert int(Tag.MULTIPLE_TAGS) == 24
