"""Tasmota device client built on top of a command sender."""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any, Iterable, Optional, Sequence

from ..commands import encoder as commands
from ..commands.rules import compile_rule, decompile_rule
from ..commands.timers import allocate_schedule, timer_slot_command
from ..commands_model import (
    CompiledRuleScript,
    MultiScheduleStrategy,
    OneShotAtLocalTime,
    RelativePulse,
    RuleSlot,
    ScheduleIntent,
    TimerSlot,
)
from ..config import load_device_limits
from ..const import DeviceLimits, TimerAction, Weekday
from ..exception import (
    DeviceResponseError,
    MissingFieldError,
    OutOfRangeError,
)
from .transport import CommandSender, HttpCommandSender

logger = logging.getLogger(__name__)

FACTORY_RESET_MODES = (1, 2, 5)
LED_STATE_MAX = 8


def _on_off_or_none(value: Any) -> Optional[bool]:
    if isinstance(value, str):
        if value.upper() == "ON":
            return True
        if value.upper() == "OFF":
            return False
    return None


class TasmotaClient:
    """High level operations for one Tasmota device.

    Every schedule is compiled and validated before the first command is
    sent. Commands of one operation are sent strictly in order; a
    ``TransportError`` aborts the remaining ones and is raised unchanged.
    Commands that already reached the device are not rolled back.
    """

    def __init__(
        self,
        sender: CommandSender,
        limits: Optional[DeviceLimits] = None,
    ) -> None:
        """Wrap ``sender``; ``limits`` default to the environment."""
        self._sender = sender
        self._limits = limits if limits is not None else load_device_limits()

    @classmethod
    def from_host(
        cls,
        host: str,
        *,
        timeout: Optional[float] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        limits: Optional[DeviceLimits] = None,
    ) -> "TasmotaClient":
        """Create a client talking HTTP to ``host``."""
        sender = HttpCommandSender(
            host, timeout=timeout, username=username, password=password
        )
        return cls(sender, limits)

    @property
    def limits(self) -> DeviceLimits:
        """Return the device limits used for validation."""
        return self._limits

    async def aclose(self) -> None:
        """Release the sender's resources."""
        close = getattr(self._sender, "aclose", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "TasmotaClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # Core helpers

    async def send(self, command: str) -> str:
        """Send a raw command and return the raw response body."""
        return await self._sender.send(command)

    async def send_json(self, command: str) -> dict[str, Any]:
        """Send a command and decode its JSON response."""
        raw = await self._sender.send(command)
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise DeviceResponseError(
                f"Response to {command!r} is not JSON: {raw!r}"
            ) from exc
        if not isinstance(payload, dict):
            raise DeviceResponseError(
                f"Response to {command!r} is not an object: {raw!r}"
            )
        return payload

    async def _send_sequence(self, sequence: Iterable[str]) -> list[str]:
        responses = []
        for command in sequence:
            responses.append(await self._sender.send(command))
        return responses

    def _check_relay(self, relay: int) -> None:
        if not self._limits.relay_in_range(relay):
            raise OutOfRangeError(
                f"Relay must be {self._limits.min_relay}-"
                f"{self._limits.max_relay}, got {relay}"
            )

    def _check_rule_index(self, rule_index: int) -> None:
        if not 1 <= rule_index <= self._limits.rule_slots:
            raise OutOfRangeError(
                f"Rule index must be 1-{self._limits.rule_slots}, "
                f"got {rule_index}"
            )

    def _check_timer_index(self, index: int) -> None:
        if not 1 <= index <= self._limits.timer_slots:
            raise OutOfRangeError(
                f"Timer index must be 1-{self._limits.timer_slots}, "
                f"got {index}"
            )

    # Relay controls

    @staticmethod
    def _power_state(payload: dict[str, Any], relay: int) -> bool:
        # Single relay devices answer with a bare POWER key
        wanted = {f"POWER{relay}"} | ({"POWER"} if relay == 1 else set())
        for key, value in payload.items():
            if key.upper() in wanted:
                return str(value).upper() == "ON"
        raise DeviceResponseError(
            f"No POWER{relay} state in response: {payload!r}"
        )

    async def set_relay(self, relay: int, state: bool) -> bool:
        """Switch relay ``relay`` and return the state echoed by the device."""
        self._check_relay(relay)
        payload = await self.send_json(
            f"Power{relay} {'ON' if state else 'OFF'}"
        )
        return self._power_state(payload, relay)

    async def toggle_relay(self, relay: int) -> bool:
        """Toggle relay ``relay`` and return its new state."""
        self._check_relay(relay)
        payload = await self.send_json(f"Power{relay} TOGGLE")
        return self._power_state(payload, relay)

    async def get_relay_state(self, relay: int) -> bool:
        """Return True if relay ``relay`` is on."""
        self._check_relay(relay)
        payload = await self.send_json(f"Power{relay}")
        return self._power_state(payload, relay)

    # Time / timezone / geo

    async def get_time(self) -> datetime.datetime:
        """Read the device's local time."""
        payload = await self.send_json("Time")
        try:
            return datetime.datetime.fromisoformat(str(payload["Time"]))
        except (KeyError, ValueError) as exc:
            raise DeviceResponseError(
                f"Unreadable time response: {payload!r}"
            ) from exc

    async def set_time(self, when: datetime.datetime) -> None:
        """Set the device's local time."""
        await self.send(commands.set_time_command(when))

    async def set_timezone(self, offset: int) -> None:
        """Set the timezone offset in hours."""
        if not -13 <= offset <= 14:
            raise OutOfRangeError(f"Timezone must be -13..14, got {offset}")
        await self.send(f"Timezone {offset}")

    async def set_dst(self, enabled: bool) -> None:
        """Enable or disable daylight saving handling (SetOption36)."""
        await self.send(f"SetOption36 {1 if enabled else 0}")

    async def set_geo(self, latitude: float, longitude: float) -> None:
        """Store the coordinates used for sunrise/sunset computation."""
        if not -90.0 <= latitude <= 90.0:
            raise OutOfRangeError(f"Latitude out of range: {latitude}")
        if not -180.0 <= longitude <= 180.0:
            raise OutOfRangeError(f"Longitude out of range: {longitude}")
        await self._send_sequence(
            [f"Latitude {latitude}", f"Longitude {longitude}"]
        )

    # Status / maintenance

    async def get_status(self) -> dict[str, Any]:
        """Return the full ``Status 0`` response as loosely typed JSON."""
        return await self.send_json("Status 0")

    async def restart(self) -> None:
        """Restart the device."""
        await self.send("Restart 1")

    async def factory_reset(self, mode: int) -> None:
        """Reset settings; 1 basic, 2 keeps Wi-Fi/MQTT, 5 full erase."""
        if mode not in FACTORY_RESET_MODES:
            raise OutOfRangeError(
                f"Reset mode must be one of {FACTORY_RESET_MODES}, got {mode}"
            )
        await self.send(f"Reset {mode}")

    async def set_tele_period(self, seconds: int) -> None:
        """Set the telemetry period in seconds."""
        await self.send(f"TelePeriod {seconds}")

    # Network services

    async def enable_mdns(self, enable: bool) -> None:
        """Enable or disable mDNS discovery (SetOption55)."""
        await self.send(f"SetOption55 {1 if enable else 0}")

    async def get_mdns_state(self) -> Optional[bool]:
        """Return the mDNS state, or None if the device does not report it."""
        payload = await self.send_json("SetOption55")
        return _on_off_or_none(payload.get("SetOption55"))

    async def set_mqtt(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        client_id: Optional[str] = None,
        topic: Optional[str] = None,
        full_topic: Optional[str] = None,
        reconnect: bool = True,
    ) -> None:
        """Update MQTT settings; values left as None are not touched."""
        if port is not None and not 1 <= port <= 65535:
            raise OutOfRangeError(f"MQTT port must be 1-65535, got {port}")
        settings = (
            ("MqttHost", host),
            ("MqttPort", port),
            ("MqttUser", user),
            ("MqttPassword", password),
            ("MqttClient", client_id),
            ("Topic", topic),
            ("FullTopic", full_topic),
        )
        sequence = [
            f"{name} {value}"
            for name, value in settings
            if value is not None and str(value).strip()
        ]
        if reconnect:
            sequence.append("MqttReconnect 1")
        await self._send_sequence(sequence)

    async def get_mqtt_status(self) -> Optional[dict[str, Any]]:
        """Return the ``StatusMQT`` block of ``Status 0``."""
        status = await self.get_status()
        block = status.get("StatusMQT")
        return block if isinstance(block, dict) else None

    async def set_wifi_credentials(
        self, ssid: str, password: str, restart_after: bool = True
    ) -> None:
        """Store Wi-Fi credentials for the first access point slot.

        ``WifiConfig 4`` makes the device fall back to its own access point
        if it cannot join the new network.
        """
        if not ssid or not ssid.strip():
            raise MissingFieldError("SSID must not be empty")
        sequence = [f"SSID1 {ssid}", f"Password1 {password}", "WifiConfig 4"]
        if restart_after:
            sequence.append("Restart 1")
        await self._send_sequence(sequence)

    async def get_wifi_info(
        self,
    ) -> tuple[Optional[dict[str, Any]], Optional[dict[str, Any]]]:
        """Return the ``StatusNET`` block and the ``StatusSTS.Wifi`` block."""
        status = await self.get_status()
        net = status.get("StatusNET")
        sts = status.get("StatusSTS")
        wifi = sts.get("Wifi") if isinstance(sts, dict) else None
        return (
            net if isinstance(net, dict) else None,
            wifi if isinstance(wifi, dict) else None,
        )

    # Status LEDs

    async def set_led_state(self, mode: int) -> None:
        """Select how the status LED follows power and network state."""
        if not 0 <= mode <= LED_STATE_MAX:
            raise OutOfRangeError(
                f"LED state must be 0-{LED_STATE_MAX}, got {mode}"
            )
        await self.send(f"LedState {mode}")

    async def set_led_power(self, index: int, on: bool) -> Optional[bool]:
        """Switch ``LedPowerN`` and return the echoed state, if any."""
        if index < 1:
            raise OutOfRangeError(f"LED index must be >= 1, got {index}")
        payload = await self.send_json(
            f"LedPower{index} {'ON' if on else 'OFF'}"
        )
        prefix = f"LEDPOWER{index}"
        for key, value in payload.items():
            if key.upper().startswith(prefix):
                return _on_off_or_none(value)
        return None

    # Timers (weekly schedule)

    async def set_timer(
        self,
        index: int,
        at: datetime.time,
        days: Iterable[Weekday],
        output: int,
        action: TimerAction | int,
        repeat: bool = True,
        mode: int = 0,
        window: int = 0,
    ) -> TimerSlot:
        """Write timer slot ``index`` and make sure timers are enabled."""
        return await self.set_timer_by_mask(
            index,
            commands.encode_day_mask(days),
            at,
            output,
            action,
            repeat=repeat,
            mode=mode,
            window=window,
        )

    async def set_timer_by_mask(
        self,
        index: int,
        days_mask: str,
        at: commands.TimeInput,
        output: int,
        action: TimerAction | int,
        repeat: bool = True,
        mode: int = 0,
        window: int = 0,
    ) -> TimerSlot:
        """Same as ``set_timer`` with a raw mask such as ``"-1-1--1"``."""
        self._check_timer_index(index)
        self._check_relay(output)
        commands.decode_day_mask(days_mask)
        try:
            timer_action = TimerAction(action)
        except ValueError as exc:
            raise OutOfRangeError(
                f"Timer action must be 0-3, got {action!r}"
            ) from exc
        if not 0 <= window <= 15:
            raise OutOfRangeError(f"Window must be 0-15, got {window}")
        if not 0 <= mode <= 2:
            raise OutOfRangeError(f"Mode must be 0-2, got {mode}")
        slot = TimerSlot(
            index=index,
            at=commands.parse_device_time(at),
            days=days_mask,
            output=output,
            action=timer_action,
            repeat=repeat,
            mode=mode,
            window=window,
        )
        await self._send_sequence(
            [timer_slot_command(slot), commands.timers_enable_command(True)]
        )
        return slot

    async def enable_all_timers(self, enable: bool) -> None:
        """Switch the whole timer subsystem on or off."""
        await self.send(commands.timers_enable_command(enable))

    async def disable_timer(self, index: int) -> None:
        """Disable timer slot ``index`` keeping its settings."""
        self._check_timer_index(index)
        await self.send(f"Timer{index} 0")

    async def clear_timer(self, index: int) -> None:
        """Disable and clear timer slot ``index``."""
        self._check_timer_index(index)
        await self._send_sequence(commands.timer_clear_commands(index))

    # Rules

    async def set_rule_script(self, rule_index: int, script: str) -> None:
        """Store ``script`` in a rule slot without enabling it."""
        self._check_rule_index(rule_index)
        await self.send(commands.rule_script_command(rule_index, script))

    async def enable_rule(self, rule_index: int, enable: bool) -> None:
        """Switch a rule slot on or off."""
        self._check_rule_index(rule_index)
        await self.send(commands.rule_enable_command(rule_index, enable))

    async def clear_rule(self, rule_index: int) -> None:
        """Disable a rule slot and empty its script."""
        self._check_rule_index(rule_index)
        await self._send_sequence(commands.rule_clear_commands(rule_index))

    async def delete_rule(self, rule_index: int) -> None:
        """Alias of ``clear_rule``."""
        await self.clear_rule(rule_index)

    async def start_rule_timer(self, timer_index: int, seconds: int) -> None:
        """Arm ``RuleTimerN`` to fire after ``seconds``."""
        if not 1 <= timer_index <= self._limits.rule_timers:
            raise OutOfRangeError(
                f"Rule timer index must be 1-{self._limits.rule_timers}, "
                f"got {timer_index}"
            )
        if seconds < 0:
            raise OutOfRangeError(f"Countdown must be >= 0, got {seconds}")
        await self.send(commands.rule_timer_command(timer_index, seconds))

    async def get_rule_info(self, rule_index: int) -> Optional[RuleSlot]:
        """Read a rule slot's state and script."""
        self._check_rule_index(rule_index)
        payload = await self.send_json(f"Rule{rule_index}")
        info = RuleSlot.from_response(rule_index, payload)
        if info is None:
            logger.warning(
                "Rule%s missing from response: %s", rule_index, payload
            )
        return info

    async def get_all_rules(self) -> list[RuleSlot]:
        """Read every rule slot the device reports."""
        rules = []
        for rule_index in range(1, self._limits.rule_slots + 1):
            info = await self.get_rule_info(rule_index)
            if info is not None:
                rules.append(info)
        return rules

    # Schedules

    async def apply_rule(
        self,
        rule_index: int,
        intent: ScheduleIntent,
        timer_index: int = 1,
    ) -> CompiledRuleScript:
        """Compile an intent and install it on the device.

        Writes and enables the primary script, then the auxiliary script if
        there is one, then arms the countdown of a relative pulse.
        """
        compiled = compile_rule(intent, rule_index, timer_index, self._limits)

        sequence = [
            commands.rule_script_command(rule_index, compiled.primary),
            commands.rule_enable_command(rule_index, True),
        ]
        if compiled.auxiliary is not None:
            aux = compiled.auxiliary_index
            sequence.append(
                commands.rule_script_command(aux, compiled.auxiliary)
            )
            sequence.append(commands.rule_enable_command(aux, True))
        if isinstance(intent, RelativePulse):
            sequence.append(
                commands.rule_timer_command(
                    timer_index, intent.start_delay_seconds
                )
            )

        await self._send_sequence(sequence)
        logger.info("Installed %s rule in Rule%s", intent.kind, rule_index)
        return compiled

    async def read_rule(self, rule_index: int) -> ScheduleIntent:
        """Read a rule slot and decompile its script (best effort)."""
        info = await self.get_rule_info(rule_index)
        return decompile_rule(
            info.script if info else None, rule_index, limits=self._limits
        )

    async def set_multi_schedule(
        self,
        days: Iterable[Weekday],
        on_time: commands.TimeInput,
        off_time: commands.TimeInput,
        outputs: Sequence[int],
        strategy: MultiScheduleStrategy = MultiScheduleStrategy.timers,
        start_slot: int = 1,
        rule_index: int = 1,
    ) -> list[str]:
        """Switch several relays on and off at the same times.

        Returns the commands that were sent.
        """
        sequence = allocate_schedule(
            days,
            on_time,
            off_time,
            outputs,
            strategy,
            start_slot,
            rule_index,
            self._limits,
        )
        await self._send_sequence(sequence)
        logger.info(
            "Scheduled outputs %s with %s (%d commands)",
            list(outputs),
            MultiScheduleStrategy(strategy).value,
            len(sequence),
        )
        return sequence

    async def set_one_shot(
        self,
        rule_index: int,
        when_local: datetime.datetime,
        output: int = 1,
        on_when_true: bool = True,
        pulse: Optional[datetime.timedelta] = None,
    ) -> CompiledRuleScript:
        """Switch ``output`` once at ``when_local``, optionally pulsed."""
        intent = OneShotAtLocalTime(
            when_local=when_local,
            output=output,
            on_when_true=on_when_true,
            pulse=pulse,
        )
        return await self.apply_rule(rule_index, intent)

    async def schedule_one_shot_in(
        self,
        delay: datetime.timedelta,
        output: int = 1,
        on_when_true: bool = True,
        pulse: Optional[datetime.timedelta] = None,
        rule_index: int = 1,
        now: Optional[datetime.datetime] = None,
    ) -> CompiledRuleScript:
        """Schedule a one-shot ``delay`` from now (minute resolution)."""
        when_local = (now or datetime.datetime.now()) + delay
        return await self.set_one_shot(
            rule_index, when_local, output, on_when_true, pulse
        )

    async def pulse_after(
        self,
        start_delay_seconds: int,
        output: int,
        pulse_seconds: int,
        rule_index: int = 1,
        timer_index: int = 1,
    ) -> CompiledRuleScript:
        """Turn ``output`` on after a countdown and off after the pulse."""
        intent = RelativePulse(
            start_delay_seconds=start_delay_seconds,
            output=output,
            pulse_seconds=pulse_seconds,
        )
        return await self.apply_rule(rule_index, intent, timer_index)
