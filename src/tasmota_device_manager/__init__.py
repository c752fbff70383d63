"""Typed client and schedule compiler for Tasmota devices."""

from .commands_model import (
    CompiledRuleScript,
    MultiScheduleStrategy,
    OneShotAtLocalTime,
    RelativePulse,
    RuleSlot,
    SunriseSunset,
    TimerSlot,
    UnknownRule,
)
from .const import DEFAULT_LIMITS, DeviceLimits, TimerAction, Weekday
from .device import HttpCommandSender, TasmotaClient

__all__ = [
    "CompiledRuleScript",
    "DEFAULT_LIMITS",
    "DeviceLimits",
    "HttpCommandSender",
    "MultiScheduleStrategy",
    "OneShotAtLocalTime",
    "RelativePulse",
    "RuleSlot",
    "SunriseSunset",
    "TasmotaClient",
    "TimerAction",
    "TimerSlot",
    "UnknownRule",
    "Weekday",
]
