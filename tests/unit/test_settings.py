"""Unit tests for application settings (src/device_interpreter/settings.py).

Settings are read from INTERP_ environment variables; ``monkeypatch`` keeps
each test's environment isolated.
"""

from __future__ import annotations

from datetime import timedelta

from device_interpreter.settings import (
    BirthdateWindowSettings,
    BootTimeWindowSettings,
    MetadataKeySettings,
    Settings,
    ValidatorSettings,
)


class TestDefaults:
    def test_root_defaults(self) -> None:
        settings = Settings()
        assert settings.log_level == "INFO"
        assert settings.parser_strategy == "current_cycle"

    def test_validator_defaults(self) -> None:
        settings = ValidatorSettings()
        assert settings.metadata == []
        assert settings.event_order == []
        assert "online" in settings.valid_event_types
        assert settings.min_boot_duration == timedelta(seconds=10)

    def test_windows_default_to_the_same_bounds(self) -> None:
        assert BootTimeWindowSettings().valid_from == BirthdateWindowSettings().valid_from


class TestEnvironment:
    def test_root_prefix(self, monkeypatch) -> None:
        monkeypatch.setenv("INTERP_PARSER_STRATEGY", "reboot")
        monkeypatch.setenv("INTERP_LOG_LEVEL", "DEBUG")
        settings = Settings()
        assert settings.parser_strategy == "reboot"
        assert settings.log_level == "DEBUG"

    def test_validator_prefix(self, monkeypatch) -> None:
        monkeypatch.setenv("INTERP_VALIDATOR_MIN_BOOT_DURATION", "30")
        monkeypatch.setenv("INTERP_VALIDATOR_VALID_EVENT_TYPES", '["online", "offline"]')
        monkeypatch.setenv(
            "INTERP_VALIDATOR_METADATA",
            '[{"key": "/fw-name", "check_within_cycle": true}, {"key": "/hw-model"}]',
        )
        settings = ValidatorSettings()
        assert settings.min_boot_duration == timedelta(seconds=30)
        assert settings.valid_event_types == ["online", "offline"]
        assert settings.metadata == [
            MetadataKeySettings(key="/fw-name", check_within_cycle=True),
            MetadataKeySettings(key="/hw-model"),
        ]
        assert settings.within_cycle_keys() == ["/fw-name"]
        assert settings.whole_cycle_keys() == ["/hw-model"]

    def test_time_windows_have_separate_prefixes(self, monkeypatch) -> None:
        monkeypatch.setenv("INTERP_BOOT_TIME_MIN_VALID_YEAR", "2020")
        monkeypatch.setenv("INTERP_BIRTHDATE_VALID_TO", "PT2H")
        settings = Settings()
        assert settings.validators.boot_time.min_valid_year == 2020
        assert settings.validators.birthdate.min_valid_year == 2015
        assert settings.validators.birthdate.valid_to == timedelta(hours=2)
        assert settings.validators.boot_time.valid_to == timedelta(hours=1)
