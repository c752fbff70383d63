"""Device limits and fixed markers used by Tasmota commands."""

import datetime
from dataclasses import dataclass
from enum import Enum, IntEnum

INACTIVE_DAY_MARKER = "-"
ACTIVE_DAY_MARKER = "1"
DAY_MASK_LENGTH = 7

COMMAND_PATH = "/cm"
DEFAULT_HTTP_TIMEOUT = 5.0


class Weekday(str, Enum):
    """Weekdays in day mask order (Sunday first)."""

    sunday = "sunday"
    monday = "monday"
    tuesday = "tuesday"
    wednesday = "wednesday"
    thursday = "thursday"
    friday = "friday"
    saturday = "saturday"

    @classmethod
    def from_date(cls, value: datetime.date) -> "Weekday":
        """Return the weekday of a date."""
        # isoweekday: Monday=1 .. Sunday=7
        return DAY_MASK_ORDER[value.isoweekday() % 7]


DAY_MASK_ORDER = list(Weekday)


class TimerAction(IntEnum):
    """Action codes understood by the ``TimerN`` command."""

    OFF = 0
    ON = 1
    TOGGLE = 2
    RULE = 3


@dataclass(frozen=True)
class DeviceLimits:
    """Firmware limits of the target device.

    Different device generations ship different relay counts and slot pools,
    so none of these are hardcoded in the compiler.
    """

    min_relay: int = 1
    max_relay: int = 8
    timer_slots: int = 16
    rule_slots: int = 3
    rule_timers: int = 8
    # Delay is expressed in deciseconds
    delay_units_per_second: int = 10

    def relay_in_range(self, relay: int) -> bool:
        """Return True if ``relay`` is a valid output index."""
        return self.min_relay <= relay <= self.max_relay


DEFAULT_LIMITS = DeviceLimits()
