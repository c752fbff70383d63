"""Schedule intents, device slot models and command execution records."""

from __future__ import annotations

import datetime
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .const import TimerAction, Weekday

# Command status types
CommandStatus = Literal["pending", "running", "success", "failed", "timed_out"]


class MultiScheduleStrategy(str, Enum):
    """How a shared on/off schedule for several relays is stored."""

    timers = "timers"
    rule_backlog = "rule_backlog"


class _IntentBase(BaseModel):
    """Fields shared by every schedule intent."""

    model_config = ConfigDict(frozen=True)

    output: int = Field(1, description="Relay index the rule switches")
    on_when_true: bool = Field(True, description="Target state when it fires")
    auto_disable: bool = Field(
        False, description="Append RuleN 0 so the rule disables itself"
    )


class OneShotAtLocalTime(_IntentBase):
    """Fire once at an absolute local date and time."""

    kind: Literal["one_shot"] = "one_shot"
    when_local: Optional[datetime.datetime] = None
    pulse: Optional[datetime.timedelta] = None


class RelativePulse(_IntentBase):
    """Switch after a countdown, then revert after the pulse."""

    kind: Literal["relative_pulse"] = "relative_pulse"
    start_delay_seconds: Optional[int] = None
    pulse_seconds: Optional[int] = None


class SunriseSunset(_IntentBase):
    """Switch relative to the device's computed sunrise or sunset."""

    kind: Literal["sun"] = "sun"
    use_sunset: Optional[bool] = None
    offset_minutes: Optional[int] = None
    pulse: Optional[datetime.timedelta] = None


class UnknownRule(BaseModel):
    """A rule script that matched none of the known patterns."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["unknown"] = "unknown"
    script: Optional[str] = None


ScheduleIntent = Annotated[
    Union[OneShotAtLocalTime, RelativePulse, SunriseSunset, UnknownRule],
    Field(discriminator="kind"),
]


@dataclass(frozen=True)
class CompiledRuleScript:
    """Rule scripts produced for one intent.

    ``auxiliary`` is only set for one-shots: it forces a status refresh at
    the target minute so the local time match gets evaluated.
    """

    rule_index: int
    primary: str
    auxiliary_index: Optional[int] = None
    auxiliary: Optional[str] = None


class TimerSlot(BaseModel):
    """One native weekly timer entry."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=1)
    enabled: bool = True
    at: datetime.time
    days: str = Field(..., min_length=7, max_length=7)
    output: int
    action: TimerAction
    repeat: bool = True
    window: int = Field(0, ge=0, le=15, description="Jitter in minutes")
    mode: int = Field(0, ge=0, le=2, description="0 time, 1 sunrise, 2 sunset")


def _on_off(value: Any) -> bool:
    return isinstance(value, str) and value.upper() == "ON"


def _int_or_none(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None


class RuleSlot(BaseModel):
    """State and script of one rule slot as reported by the device."""

    index: int
    enabled: bool = False
    once: bool = False
    stop_on_error: bool = False
    free: Optional[int] = None
    length: Optional[int] = None
    script: Optional[str] = None

    @classmethod
    def from_response(
        cls, index: int, payload: Dict[str, Any]
    ) -> Optional["RuleSlot"]:
        """Parse a ``RuleN`` response.

        Newer firmware nests the details under ``RuleN``; older firmware
        reports ``RuleN: "ON"`` and keeps the other keys at the top level.
        Returns None when the payload does not describe the slot at all.
        """
        rule = payload.get(f"Rule{index}")
        if rule is None:
            return None

        if isinstance(rule, dict):
            source = rule
            enabled = _on_off(rule.get("State"))
        else:
            source = payload
            enabled = _on_off(rule)

        script = source.get("Rules")
        return cls(
            index=index,
            enabled=enabled,
            once=_on_off(source.get("Once")),
            stop_on_error=_on_off(source.get("StopOnError")),
            free=_int_or_none(source.get("Free")),
            length=_int_or_none(source.get("Length")),
            script=script if isinstance(script, str) else None,
        )


class CommandRequest(BaseModel):
    """Incoming command request from client."""

    id: Optional[str] = Field(
        None, description="Optional client idempotency token"
    )
    action: str = Field(..., description="Command action to execute")
    args: Optional[Dict[str, Any]] = Field(
        None, description="Action-specific parameters"
    )
    timeout: Optional[float] = Field(
        None, ge=1.0, le=30.0, description="Command timeout in seconds"
    )


@dataclass
class CommandRecord:
    """Record of a command execution against one device."""

    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    host: str = ""
    action: str = ""
    args: Optional[Dict[str, Any]] = None
    status: CommandStatus = "pending"
    attempts: int = 0
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    completed_at: Optional[float] = None
    timeout: float = 10.0

    def mark_started(self) -> None:
        """Mark command as started."""
        self.status = "running"
        self.started_at = time.time()
        self.attempts += 1

    def mark_success(self, result: Optional[Dict[str, Any]] = None) -> None:
        """Mark command as successful."""
        self.status = "success"
        self.result = result
        self.completed_at = time.time()

    def mark_failed(self, error: str) -> None:
        """Mark command as failed."""
        self.status = "failed"
        self.error = error
        self.completed_at = time.time()

    def mark_timeout(self) -> None:
        """Mark command as timed out."""
        self.status = "timed_out"
        self.error = "Command execution timed out"
        self.completed_at = time.time()

    def is_complete(self) -> bool:
        """Check if command execution is complete."""
        return self.status in {"success", "failed", "timed_out"}


# Supported command actions and their argument schemas
class RelayArgs(BaseModel):
    """Arguments for turn_on, turn_off and toggle."""

    relay: int = Field(1, ge=1, description="Relay index")


class RuleIndexArgs(BaseModel):
    """Arguments for actions addressing a single rule slot."""

    rule_index: int = Field(..., ge=1, description="Rule slot index")


class ApplyRuleArgs(BaseModel):
    """Arguments for apply_rule."""

    rule_index: int = Field(1, ge=1, description="Rule slot index")
    timer_index: int = Field(
        1, ge=1, description="RuleTimer used by relative pulses"
    )
    intent: ScheduleIntent

    @field_validator("intent")
    @classmethod
    def validate_intent_kind(cls, v: Any) -> Any:
        """Reject the decompiler-only unknown variant."""
        if isinstance(v, UnknownRule):
            raise ValueError("Unknown rules cannot be applied")
        return v


class MultiScheduleArgs(BaseModel):
    """Arguments for set_schedule."""

    on_time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    off_time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    outputs: list[int] = Field(..., min_length=1)
    weekdays: list[Weekday] = Field(
        default_factory=list, description="List of weekdays"
    )
    strategy: MultiScheduleStrategy = MultiScheduleStrategy.timers
    start_slot: int = Field(1, description="First timer slot to use")
    rule_index: int = Field(1, description="Rule slot for rule_backlog")

    @field_validator("on_time", "off_time")
    @classmethod
    def validate_time_format(cls, v: str) -> str:
        """Validate that time strings represent valid hours and minutes."""
        hours, minutes = map(int, v.split(":"))
        if not (0 <= hours <= 23):
            raise ValueError(f"Hours must be 0-23, got {hours}")
        if not (0 <= minutes <= 59):
            raise ValueError(f"Minutes must be 0-59, got {minutes}")
        return v

    @field_validator("weekdays")
    @classmethod
    def validate_weekdays(cls, v: list[Weekday]) -> list[Weekday]:
        """Validate weekday selections."""
        if len(v) != len(set(v)):
            raise ValueError("Duplicate weekdays not allowed")
        return v

    @field_validator("outputs")
    @classmethod
    def validate_outputs(cls, v: list[int]) -> list[int]:
        """Validate relay indices."""
        if len(v) != len(set(v)):
            raise ValueError("Duplicate outputs not allowed")
        return v


# Command argument validation mapping
COMMAND_ARG_SCHEMAS = {
    "turn_on": RelayArgs,
    "turn_off": RelayArgs,
    "toggle": RelayArgs,
    "apply_rule": ApplyRuleArgs,
    "read_rule": RuleIndexArgs,
    "clear_rule": RuleIndexArgs,
    "set_schedule": MultiScheduleArgs,
    # Actions without arguments
    "enable_timers": None,
    "disable_timers": None,
}
