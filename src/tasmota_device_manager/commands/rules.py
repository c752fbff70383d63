"""Rule script compiler and best-effort decompiler.

The compiler turns a schedule intent into ``on <trigger> do <action> endon``
scripts for the device's rule slots. The decompiler goes the other way for
inspection only: it recognises the scripts this compiler writes and is lossy
by nature (the one-shot year, the countdown start delay and the sun offset
are never recovered). It never raises on content and falls back to
``UnknownRule``.
"""

from __future__ import annotations

import datetime
import logging
import re
from typing import Optional

from ..commands_model import (
    CompiledRuleScript,
    OneShotAtLocalTime,
    RelativePulse,
    ScheduleIntent,
    SunriseSunset,
    UnknownRule,
)
from ..const import DEFAULT_LIMITS, DeviceLimits
from ..exception import (
    InsufficientSlotsError,
    MissingFieldError,
    OutOfRangeError,
    UnsupportedVariantError,
)
from .encoder import build_backlog, minute_of_day, one_shot_date_pattern

logger = logging.getLogger(__name__)

LOCAL_TIME_MARKER = "StatusTIM#Local$|"
RULE_TIMER_MARKER = "Rules#Timer="
SUNRISE_MARKER = "on Sunrise"
SUNSET_MARKER = "on Sunset"
STATUS_REFRESH = "Status 7"

_DATE_PATTERN_RE = re.compile(r"-([0-1]\d)-([0-3]\d)T([0-2]\d):([0-5]\d)")
_POWER_RE = re.compile(r"Power(\d+)\s+([01])", re.IGNORECASE)
_PULSE_RE = re.compile(r"Power\d+\s+[01]\s*;\s*Delay\s+(\d+)", re.IGNORECASE)


def auxiliary_rule_index(
    rule_index: int, limits: DeviceLimits = DEFAULT_LIMITS
) -> int:
    """Return the slot holding the status refresh helper of a one-shot.

    The helper goes into the next slot, wrapping from the last slot back
    to the first (3 -> 1 on a three slot device).
    """
    return 1 if rule_index >= limits.rule_slots else rule_index + 1


def _pulse_seconds(pulse: Optional[datetime.timedelta]) -> Optional[int]:
    if pulse is None:
        return None
    return int(round(pulse.total_seconds()))


def _validate_indices(
    intent: ScheduleIntent,
    rule_index: int,
    timer_index: int,
    limits: DeviceLimits,
) -> None:
    if not 1 <= rule_index <= limits.rule_slots:
        raise OutOfRangeError(
            f"Rule index must be 1-{limits.rule_slots}, got {rule_index}"
        )
    if not 1 <= timer_index <= limits.rule_timers:
        raise OutOfRangeError(
            f"Rule timer index must be 1-{limits.rule_timers}, "
            f"got {timer_index}"
        )
    output = getattr(intent, "output", None)
    if output is not None and not limits.relay_in_range(output):
        raise OutOfRangeError(
            f"Output must be {limits.min_relay}-{limits.max_relay}, "
            f"got {output}"
        )


def compile_rule(
    intent: ScheduleIntent,
    rule_index: int = 1,
    timer_index: int = 1,
    limits: DeviceLimits = DEFAULT_LIMITS,
) -> CompiledRuleScript:
    """Compile a schedule intent into rule scripts.

    Args:
        intent: What to schedule
        rule_index: Rule slot that receives the primary script
        timer_index: ``RuleTimerN`` fired by relative pulses
        limits: Device limits used for validation and delay units

    Returns:
        The primary script and, for one-shots, the auxiliary script with
        the slot it belongs in

    Raises:
        MissingFieldError: If a field required by the variant is absent
        OutOfRangeError: If an index or the output is outside the limits
        InsufficientSlotsError: If a one-shot has no second rule slot
        UnsupportedVariantError: If the intent variant cannot be compiled
    """
    if not isinstance(
        intent, (OneShotAtLocalTime, RelativePulse, SunriseSunset)
    ):
        raise UnsupportedVariantError(
            f"Unknown/unsupported intent: {type(intent).__name__}"
        )
    _validate_indices(intent, rule_index, timer_index, limits)

    if isinstance(intent, OneShotAtLocalTime):
        if intent.when_local is None:
            raise MissingFieldError("when_local is required for one-shots")
        auxiliary_index = auxiliary_rule_index(rule_index, limits)
        if auxiliary_index == rule_index:
            raise InsufficientSlotsError(
                "One-shots need a second rule slot for the status refresh, "
                f"device has {limits.rule_slots}"
            )
        when = intent.when_local
        action = build_backlog(
            intent.output,
            intent.on_when_true,
            _pulse_seconds(intent.pulse),
            intent.auto_disable,
            rule_index,
            limits,
        )
        primary = (
            f"on {LOCAL_TIME_MARKER}{one_shot_date_pattern(when)} "
            f"do {action} endon"
        )
        auxiliary = (
            f"on Time#Minute={minute_of_day(when.time())} "
            f"do {STATUS_REFRESH} endon"
        )
        return CompiledRuleScript(
            rule_index=rule_index,
            primary=primary,
            auxiliary_index=auxiliary_index,
            auxiliary=auxiliary,
        )

    if isinstance(intent, RelativePulse):
        if intent.start_delay_seconds is None or intent.pulse_seconds is None:
            raise MissingFieldError(
                "start_delay_seconds and pulse_seconds are required "
                "for relative pulses"
            )
        if intent.start_delay_seconds < 0:
            raise OutOfRangeError(
                "start_delay_seconds must be >= 0, "
                f"got {intent.start_delay_seconds}"
            )
        action = build_backlog(
            intent.output,
            intent.on_when_true,
            intent.pulse_seconds,
            intent.auto_disable,
            rule_index,
            limits,
        )
        return CompiledRuleScript(
            rule_index=rule_index,
            primary=f"on {RULE_TIMER_MARKER}{timer_index} do {action} endon",
        )

    if intent.use_sunset is None:
        raise MissingFieldError("use_sunset is required for sun rules")
    anchor = "Sunset" if intent.use_sunset else "Sunrise"
    action = build_backlog(
        intent.output,
        intent.on_when_true,
        _pulse_seconds(intent.pulse),
        intent.auto_disable,
        rule_index,
        limits,
    )
    if intent.offset_minutes:
        # The sign is not encoded: negative offsets also delay.
        delay = abs(intent.offset_minutes) * 60 * limits.delay_units_per_second
        primary = f"on {anchor} do Backlog Delay {delay}; {action} endon"
    else:
        primary = f"on {anchor} do {action} endon"
    return CompiledRuleScript(rule_index=rule_index, primary=primary)


def _contains(script: str, marker: str) -> bool:
    return marker.lower() in script.lower()


def _extract_action(
    script: str, limits: DeviceLimits
) -> tuple[int, bool, Optional[int]]:
    """Return output, target state and pulse seconds, with lenient defaults."""
    power = _POWER_RE.search(script)
    output = int(power.group(1)) if power else 1
    on_when_true = power.group(2) == "1" if power else True

    pulse = _PULSE_RE.search(script)
    pulse_seconds = (
        int(pulse.group(1)) // limits.delay_units_per_second if pulse else None
    )
    return output, on_when_true, pulse_seconds


def _parse_one_shot(
    script: str, now: datetime.datetime
) -> Optional[datetime.datetime]:
    match = _DATE_PATTERN_RE.search(script)
    if match is None:
        return None
    month, day, hour, minute = (int(group) for group in match.groups())
    try:
        return datetime.datetime(now.year, month, day, hour, minute)
    except ValueError:
        # e.g. -02-29 in a non leap year
        logger.warning("Ignoring unrepresentable one-shot date in %r", script)
        return None


def decompile_rule(
    script: Optional[str],
    rule_index: int,
    *,
    now: Optional[datetime.datetime] = None,
    limits: DeviceLimits = DEFAULT_LIMITS,
) -> ScheduleIntent:
    """Parse a rule script written by ``compile_rule`` back into an intent.

    Best effort only. The one-shot year is taken from ``now`` (default: the
    current local time) because the script never stores it. Output and
    state default to relay 1 / ON when no power instruction is found.
    """
    if not script:
        return UnknownRule(script=script)

    output, on_when_true, pulse_seconds = _extract_action(script, limits)
    auto_disable = _contains(script, f"Rule{rule_index} 0")

    if _contains(script, LOCAL_TIME_MARKER + "-"):
        when = _parse_one_shot(script, now or datetime.datetime.now())
        if when is not None:
            return OneShotAtLocalTime(
                when_local=when,
                output=output,
                on_when_true=on_when_true,
                pulse=(
                    datetime.timedelta(seconds=pulse_seconds)
                    if pulse_seconds is not None
                    else None
                ),
                auto_disable=auto_disable,
            )

    if _contains(script, RULE_TIMER_MARKER):
        # The armed countdown is not readable back from the device.
        return RelativePulse(
            output=output,
            on_when_true=on_when_true,
            pulse_seconds=pulse_seconds,
            auto_disable=auto_disable,
        )

    if _contains(script, SUNRISE_MARKER) or _contains(script, SUNSET_MARKER):
        return SunriseSunset(
            use_sunset=_contains(script, SUNSET_MARKER),
            output=output,
            on_when_true=on_when_true,
            pulse=(
                datetime.timedelta(seconds=pulse_seconds)
                if pulse_seconds is not None
                else None
            ),
            auto_disable=auto_disable,
        )

    return UnknownRule(script=script)
