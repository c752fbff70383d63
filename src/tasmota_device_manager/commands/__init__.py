"""Commands package: rule/timer compilers and command string encoders."""

__all__ = [
    "Weekday",
    "encode_day_mask",
    "decode_day_mask",
    "format_device_time",
    "minute_of_day",
    "one_shot_date_pattern",
    "parse_device_time",
    "build_backlog",
    "compile_rule",
    "decompile_rule",
    "auxiliary_rule_index",
    "allocate_schedule",
    "allocate_timer_slots",
    "build_multi_rule_script",
]
from .encoder import (
    Weekday,
    build_backlog,
    decode_day_mask,
    encode_day_mask,
    format_device_time,
    minute_of_day,
    one_shot_date_pattern,
    parse_device_time,
)
from .rules import auxiliary_rule_index, compile_rule, decompile_rule
from .timers import (
    allocate_schedule,
    allocate_timer_slots,
    build_multi_rule_script,
)
