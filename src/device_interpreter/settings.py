"""Application settings via Pydantic BaseSettings.

All configuration uses the INTERP_ environment variable prefix. The
validation core never reads these classes; the pipeline builders turn them
into validators, so tests can construct rules directly.

Durations accept seconds or ISO 8601 strings (``PT1H``).
"""

from __future__ import annotations

from datetime import timedelta

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from device_interpreter.domain.models import (
    FULLY_MANAGEABLE_EVENT_TYPE,
    OFFLINE_EVENT_TYPE,
    ONLINE_EVENT_TYPE,
    OPERATIONAL_EVENT_TYPE,
    REBOOT_PENDING_EVENT_TYPE,
)


class TimeWindowSettings(BaseSettings):
    """Acceptable window for a timestamp, relative to now."""

    model_config = {"env_prefix": "INTERP_TIME_"}

    # How far in the past a time may be. Stored negative; a positive value is negated on use.
    valid_from: timedelta = timedelta(days=-365)
    valid_to: timedelta = timedelta(hours=1)

    # 0 disables the year bound
    min_valid_year: int = 2015
    max_valid_year: int = 0


class BootTimeWindowSettings(TimeWindowSettings):
    """Window for the boot-time metadata value."""

    model_config = {"env_prefix": "INTERP_BOOT_TIME_"}


class BirthdateWindowSettings(TimeWindowSettings):
    """Window for the payload birthdate."""

    model_config = {"env_prefix": "INTERP_BIRTHDATE_"}


class MetadataKeySettings(BaseModel):
    """A metadata key whose value must stay consistent.

    With ``check_within_cycle`` the value only has to match among events
    that share a boot-time.
    """

    key: str
    check_within_cycle: bool = False


class ValidatorSettings(BaseSettings):
    """Which rules the pipeline runs and their thresholds."""

    model_config = {"env_prefix": "INTERP_VALIDATOR_"}

    metadata: list[MetadataKeySettings] = Field(default_factory=list)

    # Max distance between the birthdate and any timestamp in the destination
    birthdate_alignment_duration: timedelta = timedelta(hours=1)

    # Destination timestamps closer than this to the boot-time are a fast boot
    min_boot_duration: timedelta = timedelta(seconds=10)

    valid_event_types: list[str] = Field(
        default_factory=lambda: [
            ONLINE_EVENT_TYPE,
            OFFLINE_EVENT_TYPE,
            REBOOT_PENDING_EVENT_TYPE,
            OPERATIONAL_EVENT_TYPE,
            FULLY_MANAGEABLE_EVENT_TYPE,
        ]
    )

    # Empty disables the event order check
    event_order: list[str] = Field(default_factory=list)

    boot_time: BootTimeWindowSettings = Field(default_factory=BootTimeWindowSettings)
    birthdate: BirthdateWindowSettings = Field(default_factory=BirthdateWindowSettings)

    def within_cycle_keys(self) -> list[str]:
        return [m.key for m in self.metadata if m.check_within_cycle]

    def whole_cycle_keys(self) -> list[str]:
        return [m.key for m in self.metadata if not m.check_within_cycle]


class Settings(BaseSettings):
    """Root application settings."""

    model_config = {"env_prefix": "INTERP_"}

    log_level: str = "INFO"

    # One of the names in device_interpreter.history.parsers.PARSERS
    parser_strategy: str = "current_cycle"

    validators: ValidatorSettings = Field(default_factory=ValidatorSettings)
