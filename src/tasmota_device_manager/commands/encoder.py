"""Command encoders and related helpers for Tasmota devices."""

from __future__ import annotations

import datetime
import json
import re
from typing import Iterable, Union

from ..const import (
    ACTIVE_DAY_MARKER,
    DAY_MASK_LENGTH,
    DAY_MASK_ORDER,
    DEFAULT_LIMITS,
    INACTIVE_DAY_MARKER,
    DeviceLimits,
    TimerAction,
    Weekday,
)
from ..exception import InvalidFormatError

_DEVICE_TIME_RE = re.compile(r"^(\d{2}):(\d{2})$")

TimeInput = Union[str, datetime.time]


def encode_day_mask(weekdays: Iterable[Weekday]) -> str:
    """Encode a set of weekdays into the 7 character ``Days`` mask.

    Position 0 is Sunday and position 6 is Saturday. Days in the set get the
    active marker, every other position gets ``-``.

    Examples:
        encode_day_mask([Weekday.monday, Weekday.wednesday]) -> "-1-1---"
        encode_day_mask([]) -> "-------"
    """
    selected = {Weekday(day) for day in weekdays}
    return "".join(
        ACTIVE_DAY_MARKER if day in selected else INACTIVE_DAY_MARKER
        for day in DAY_MASK_ORDER
    )


def decode_day_mask(mask: str) -> set[Weekday]:
    """Convert a ``Days`` mask back into the set of active weekdays.

    Any character other than ``-`` marks the day as active, so masks written
    by the device web UI (``SMTWTFS``) decode the same as ``1`` masks.

    Raises:
        InvalidFormatError: If the mask is not exactly 7 characters long
    """
    if not isinstance(mask, str) or len(mask) != DAY_MASK_LENGTH:
        raise InvalidFormatError(
            f"Day mask must be {DAY_MASK_LENGTH} characters, got {mask!r}"
        )
    return {
        day
        for day, marker in zip(DAY_MASK_ORDER, mask)
        if marker != INACTIVE_DAY_MARKER
    }


def format_device_time(value: datetime.time) -> str:
    """Render a clock time as the zero padded 24h ``HH:mm`` string."""
    return f"{value.hour:02d}:{value.minute:02d}"


def minute_of_day(value: datetime.time) -> int:
    """Return the ``Time#Minute`` value (0-1439) for a clock time."""
    return value.hour * 60 + value.minute


def parse_device_time(value: TimeInput) -> datetime.time:
    """Parse a strict 24h ``HH:mm`` string.

    ``datetime.time`` values pass through with seconds dropped.

    Raises:
        InvalidFormatError: If the text is not a valid 24h ``HH:mm`` time
    """
    if isinstance(value, datetime.time):
        return value.replace(second=0, microsecond=0)
    if not isinstance(value, str):
        raise InvalidFormatError(
            f"Time must be an HH:MM string or a time, got {value!r}"
        )

    match = _DEVICE_TIME_RE.match(value.strip())
    if match is None:
        raise InvalidFormatError(
            f"Time must be in HH:MM format, got {value!r}"
        )
    hours, minutes = int(match.group(1)), int(match.group(2))
    if not 0 <= hours <= 23:
        raise InvalidFormatError(f"Hours must be 0-23, got {hours}")
    if not 0 <= minutes <= 59:
        raise InvalidFormatError(f"Minutes must be 0-59, got {minutes}")
    return datetime.time(hours, minutes)


def one_shot_date_pattern(when: datetime.datetime) -> str:
    """Return the ``-MM-ddTHH:mm`` pattern matched against local time.

    The year is left out so the pattern matches the tail of the device's
    ``StatusTIM`` local time string.
    """
    fields = (when.month, when.day, when.hour, when.minute)
    if any(not 0 <= value <= 99 for value in fields):
        raise InvalidFormatError(
            f"Cannot encode {when!r} as a two digit date pattern"
        )
    return (
        f"-{when.month:02d}-{when.day:02d}T{when.hour:02d}:{when.minute:02d}"
    )


def power_command(output: int, state: bool) -> str:
    """Return the ``PowerN 1|0`` instruction used inside rule scripts."""
    return f"Power{output} {1 if state else 0}"


def build_backlog(
    output: int,
    on_when_true: bool,
    pulse_seconds: int | None = None,
    auto_disable: bool = False,
    rule_index: int = 1,
    limits: DeviceLimits = DEFAULT_LIMITS,
) -> str:
    """Build the action part of a rule script.

    The output is switched to the target state first. A positive pulse adds
    a ``Delay`` in deciseconds followed by the reverting power instruction.
    ``auto_disable`` appends ``RuleN 0`` so the rule switches itself off.

    Examples:
        build_backlog(1, True) -> "Backlog Power1 1"
        build_backlog(1, True, 5) -> "Backlog Power1 1; Delay 50; Power1 0"
    """
    steps = [power_command(output, on_when_true)]
    if pulse_seconds is not None and pulse_seconds > 0:
        steps.append(f"Delay {pulse_seconds * limits.delay_units_per_second}")
        steps.append(power_command(output, not on_when_true))
    if auto_disable:
        steps.append(rule_enable_command(rule_index, False))
    return "Backlog " + "; ".join(steps)


def rule_script_command(rule_index: int, script: str) -> str:
    """Return the command storing ``script`` in rule slot ``rule_index``."""
    return f"Rule{rule_index} {script}"


def rule_enable_command(rule_index: int, enable: bool) -> str:
    """Return the command switching a rule slot on or off."""
    return f"Rule{rule_index} {1 if enable else 0}"


def rule_clear_commands(rule_index: int) -> list[str]:
    """Return the commands that disable and empty a rule slot."""
    return [rule_enable_command(rule_index, False), f'Rule{rule_index} ""']


def rule_timer_command(timer_index: int, seconds: int) -> str:
    """Return the command arming ``RuleTimerN`` with a countdown."""
    return f"RuleTimer{timer_index} {seconds}"


def timer_payload(
    at: datetime.time,
    days_mask: str,
    output: int,
    action: TimerAction | int,
    *,
    enabled: bool = True,
    repeat: bool = True,
    window: int = 0,
    mode: int = 0,
) -> str:
    """Encode the JSON payload of a ``TimerN`` command."""
    payload = {
        "Enable": 1 if enabled else 0,
        "Time": format_device_time(at),
        "Window": window,
        "Days": days_mask,
        "Repeat": 1 if repeat else 0,
        "Output": output,
        "Action": int(action),
        "Mode": mode,
    }
    return json.dumps(payload, separators=(",", ":"))


def timer_command(index: int, payload: str) -> str:
    """Return the ``TimerN {json}`` command."""
    return f"Timer{index} {payload}"


def timers_enable_command(enable: bool) -> str:
    """Return the command switching the whole timer subsystem."""
    return f"Timers {1 if enable else 0}"


def timer_clear_commands(index: int) -> list[str]:
    """Return the commands that disable and empty a timer slot."""
    return [f"Timer{index} 0", f"Timer{index} {{}}"]


def set_time_command(when: datetime.datetime) -> str:
    """Build a set-time command for the device."""
    return f"Time {when:%Y-%m-%d %H:%M:%S}"
