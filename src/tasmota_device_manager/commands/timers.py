"""Timer slot allocation for shared on/off schedules across several relays."""

from __future__ import annotations

from typing import Iterable, Sequence

from ..commands_model import MultiScheduleStrategy, TimerSlot
from ..const import DEFAULT_LIMITS, DeviceLimits, TimerAction, Weekday
from ..exception import (
    InsufficientSlotsError,
    MissingFieldError,
    OutOfRangeError,
)
from .encoder import (
    TimeInput,
    encode_day_mask,
    minute_of_day,
    parse_device_time,
    rule_enable_command,
    rule_script_command,
    timer_command,
    timer_payload,
    timers_enable_command,
)


def _validate_outputs(
    outputs: Sequence[int], limits: DeviceLimits
) -> list[int]:
    resolved = list(outputs or [])
    if not resolved:
        raise MissingFieldError("At least one output is required")
    bad = [o for o in resolved if not limits.relay_in_range(o)]
    if bad:
        raise OutOfRangeError(
            f"Outputs must be {limits.min_relay}-{limits.max_relay}, "
            f"got {bad}"
        )
    return resolved


def timer_slot_command(slot: TimerSlot) -> str:
    """Render a ``TimerN {json}`` command for a timer slot."""
    return timer_command(
        slot.index,
        timer_payload(
            slot.at,
            slot.days,
            slot.output,
            slot.action,
            enabled=slot.enabled,
            repeat=slot.repeat,
            window=slot.window,
            mode=slot.mode,
        ),
    )


def allocate_timer_slots(
    days: Iterable[Weekday],
    on_time: TimeInput,
    off_time: TimeInput,
    outputs: Sequence[int],
    start_slot: int = 1,
    limits: DeviceLimits = DEFAULT_LIMITS,
) -> list[TimerSlot]:
    """Fill two consecutive timer slots (ON then OFF) per output.

    Raises:
        MissingFieldError: If no outputs are given
        OutOfRangeError: If an output is outside the relay range
        InvalidFormatError: If a time is not a 24h ``HH:mm`` value
        InsufficientSlotsError: If the slots do not fit the timer pool
    """
    resolved = _validate_outputs(outputs, limits)
    on_at = parse_device_time(on_time)
    off_at = parse_device_time(off_time)

    need = len(resolved) * 2
    if start_slot < 1 or start_slot + need - 1 > limits.timer_slots:
        raise InsufficientSlotsError(
            f"Not enough timer slots: start_slot={start_slot}, "
            f"need={need}, limit={limits.timer_slots}"
        )

    mask = encode_day_mask(days or [])
    slots: list[TimerSlot] = []
    index = start_slot
    for output in resolved:
        slots.append(
            TimerSlot(
                index=index,
                at=on_at,
                days=mask,
                output=output,
                action=TimerAction.ON,
            )
        )
        slots.append(
            TimerSlot(
                index=index + 1,
                at=off_at,
                days=mask,
                output=output,
                action=TimerAction.OFF,
            )
        )
        index += 2
    return slots


def build_multi_rule_script(
    on_minute: int, off_minute: int, outputs: Sequence[int]
) -> str:
    """Build one rule switching all outputs on and off at fixed minutes.

    The ``Time#Minute`` triggers fire every day; weekdays are not applied.
    """
    on_backlog = "; ".join(f"Power{o} ON" for o in outputs)
    off_backlog = "; ".join(f"Power{o} OFF" for o in outputs)
    return (
        f"on Time#Minute={on_minute} do Backlog {on_backlog} endon "
        f"on Time#Minute={off_minute} do Backlog {off_backlog} endon"
    )


def allocate_schedule(
    days: Iterable[Weekday],
    on_time: TimeInput,
    off_time: TimeInput,
    outputs: Sequence[int],
    strategy: MultiScheduleStrategy = MultiScheduleStrategy.timers,
    start_slot: int = 1,
    rule_index: int = 1,
    limits: DeviceLimits = DEFAULT_LIMITS,
) -> list[str]:
    """Return the ordered device commands for a multi-relay schedule.

    With ``timers`` every output takes two timer slots from ``start_slot``
    on and the timer subsystem is switched on last. With ``rule_backlog``
    a single rule slot holds both triggers; ``days`` has no effect there.
    """
    strategy = MultiScheduleStrategy(strategy)
    if strategy is MultiScheduleStrategy.timers:
        slots = allocate_timer_slots(
            days, on_time, off_time, outputs, start_slot, limits
        )
        commands = [timer_slot_command(slot) for slot in slots]
        commands.append(timers_enable_command(True))
        return commands

    resolved = _validate_outputs(outputs, limits)
    on_minute = minute_of_day(parse_device_time(on_time))
    off_minute = minute_of_day(parse_device_time(off_time))
    if not 1 <= rule_index <= limits.rule_slots:
        raise OutOfRangeError(
            f"Rule index must be 1-{limits.rule_slots}, got {rule_index}"
        )
    script = build_multi_rule_script(on_minute, off_minute, resolved)
    return [
        rule_script_command(rule_index, script),
        rule_enable_command(rule_index, True),
    ]
