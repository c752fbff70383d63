"""Tasmota relay and schedule control CLI entrypoint."""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional

import typer
from rich import print
from rich.table import Table
from typing_extensions import Annotated

from .commands_model import (
    MultiScheduleStrategy,
    OneShotAtLocalTime,
    RelativePulse,
    RuleSlot,
    SunriseSunset,
    UnknownRule,
)
from .config import configure_logging, get_env
from .const import Weekday
from .device import TasmotaClient
from .exception import TasmotaError

app = typer.Typer()

HostArg = Annotated[
    str,
    typer.Argument(
        envvar="TASMOTA_HOST", help="Device IP, hostname or base URL"
    ),
]
RuleOpt = Annotated[int, typer.Option("--rule", "-r", min=1)]

_WEEKDAY_NAME_MAP = {member.value: member for member in Weekday}
for _key, _member in list(_WEEKDAY_NAME_MAP.items()):
    _WEEKDAY_NAME_MAP[_key[:3]] = _member


def _parse_weekday_options(weekday_names: list[str] | None) -> list[Weekday]:
    """Convert CLI weekday tokens into Weekday members."""
    if not weekday_names:
        return []
    resolved: list[Weekday] = []
    for name in weekday_names:
        member = _WEEKDAY_NAME_MAP.get(name.lower())
        if member is None:
            choices = ", ".join(sorted(_WEEKDAY_NAME_MAP))
            raise typer.BadParameter(
                f"Invalid weekday '{name}'. Use one of: {choices}"
            )
        resolved.append(member)
    return resolved


def _run_client_func(
    host: str, func: Callable[[TasmotaClient], Awaitable[Any]]
) -> Any:
    """Open a client for ``host``, run ``func`` and report device errors."""
    configure_logging()

    async def _async_func() -> Any:
        client = TasmotaClient.from_host(
            host,
            username=get_env("TASMOTA_USER"),
            password=get_env("TASMOTA_PASSWORD"),
        )
        async with client:
            return await func(client)

    try:
        return asyncio.run(_async_func())
    except TasmotaError as exc:
        print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc


def _render_rules(rules: list[RuleSlot]) -> None:
    table = Table("#", "State", "Once", "Length", "Free", "Script")
    for rule in rules:
        table.add_row(
            str(rule.index),
            "ON" if rule.enabled else "OFF",
            "ON" if rule.once else "OFF",
            "--" if rule.length is None else str(rule.length),
            "--" if rule.free is None else str(rule.free),
            rule.script or "",
        )
    print(table)


@app.command()
def power(
    host: HostArg,
    relay: Annotated[int, typer.Argument(min=1)],
    state: Annotated[bool, typer.Option("--on/--off")] = True,
) -> None:
    """Switch a relay on or off."""
    result = _run_client_func(host, lambda c: c.set_relay(relay, state))
    print(f"Power{relay}: {'ON' if result else 'OFF'}")


@app.command()
def toggle(
    host: HostArg, relay: Annotated[int, typer.Argument(min=1)]
) -> None:
    """Toggle a relay."""
    result = _run_client_func(host, lambda c: c.toggle_relay(relay))
    print(f"Power{relay}: {'ON' if result else 'OFF'}")


@app.command()
def rules(host: HostArg) -> None:
    """List the device's rule slots."""
    _render_rules(_run_client_func(host, lambda c: c.get_all_rules()))


@app.command()
def rule_show(host: HostArg, rule: RuleOpt = 1) -> None:
    """Decompile a rule slot back into a schedule (best effort)."""
    intent = _run_client_func(host, lambda c: c.read_rule(rule))
    if isinstance(intent, UnknownRule):
        print(f"Rule{rule} does not hold a recognised schedule.")
        if intent.script:
            print(f"  script: {intent.script}")
        return
    for key, value in intent.model_dump(exclude_none=True).items():
        print(f"  {key}: {value}")


@app.command()
def rule_clear(host: HostArg, rule: RuleOpt = 1) -> None:
    """Disable and empty a rule slot."""
    _run_client_func(host, lambda c: c.clear_rule(rule))
    print(f"Rule{rule} cleared.")


@app.command()
def one_shot(
    host: HostArg,
    when: Annotated[
        datetime, typer.Argument(formats=["%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M"])
    ],
    output: Annotated[int, typer.Option(min=1)] = 1,
    state: Annotated[bool, typer.Option("--on/--off")] = True,
    pulse: Annotated[Optional[int], typer.Option(min=0)] = None,
    auto_disable: Annotated[bool, typer.Option()] = False,
    rule: RuleOpt = 1,
) -> None:
    """Switch a relay once at a local date and time."""
    intent = OneShotAtLocalTime(
        when_local=when,
        output=output,
        on_when_true=state,
        pulse=timedelta(seconds=pulse) if pulse is not None else None,
        auto_disable=auto_disable,
    )
    compiled = _run_client_func(host, lambda c: c.apply_rule(rule, intent))
    print(f"Rule{compiled.rule_index}: {compiled.primary}")
    print(f"Rule{compiled.auxiliary_index}: {compiled.auxiliary}")


@app.command()
def pulse_after(
    host: HostArg,
    delay: Annotated[int, typer.Argument(min=0, help="Seconds from now")],
    pulse: Annotated[int, typer.Argument(min=1, help="Pulse length (s)")],
    output: Annotated[int, typer.Option(min=1)] = 1,
    rule: RuleOpt = 1,
    timer: Annotated[int, typer.Option(min=1)] = 1,
) -> None:
    """Turn a relay on after a countdown and back off after the pulse."""
    intent = RelativePulse(
        start_delay_seconds=delay, pulse_seconds=pulse, output=output
    )
    compiled = _run_client_func(
        host, lambda c: c.apply_rule(rule, intent, timer)
    )
    print(f"Rule{compiled.rule_index}: {compiled.primary}")


@app.command()
def sun(
    host: HostArg,
    sunset: Annotated[bool, typer.Option("--sunset/--sunrise")] = True,
    offset: Annotated[int, typer.Option(help="Minutes after the event")] = 0,
    output: Annotated[int, typer.Option(min=1)] = 1,
    state: Annotated[bool, typer.Option("--on/--off")] = True,
    pulse: Annotated[Optional[int], typer.Option(min=0)] = None,
    auto_disable: Annotated[bool, typer.Option()] = False,
    rule: RuleOpt = 1,
) -> None:
    """Switch a relay relative to sunrise or sunset."""
    intent = SunriseSunset(
        use_sunset=sunset,
        offset_minutes=offset or None,
        output=output,
        on_when_true=state,
        pulse=timedelta(seconds=pulse) if pulse is not None else None,
        auto_disable=auto_disable,
    )
    compiled = _run_client_func(host, lambda c: c.apply_rule(rule, intent))
    print(f"Rule{compiled.rule_index}: {compiled.primary}")


@app.command()
def schedule(
    host: HostArg,
    on_time: Annotated[str, typer.Argument(help="HH:MM (24h)")],
    off_time: Annotated[str, typer.Argument(help="HH:MM (24h)")],
    outputs: Annotated[list[int], typer.Option("--output", "-o")],
    weekdays: Annotated[
        Optional[list[str]], typer.Option("--weekday", "-w")
    ] = None,
    strategy: Annotated[
        MultiScheduleStrategy, typer.Option()
    ] = MultiScheduleStrategy.timers,
    start_slot: Annotated[int, typer.Option(min=1)] = 1,
    rule: RuleOpt = 1,
) -> None:
    """Switch several relays on and off at the same times."""
    resolved_weekdays = _parse_weekday_options(weekdays)
    sent = _run_client_func(
        host,
        lambda c: c.set_multi_schedule(
            resolved_weekdays,
            on_time,
            off_time,
            outputs,
            strategy,
            start_slot,
            rule,
        ),
    )
    print(f"Sent {len(sent)} commands:")
    for command in sent:
        print(f"  {command}")


@app.command()
def geo(
    host: HostArg,
    latitude: Annotated[float, typer.Argument(min=-90.0, max=90.0)],
    longitude: Annotated[float, typer.Argument(min=-180.0, max=180.0)],
) -> None:
    """Store coordinates used for sunrise/sunset rules."""
    _run_client_func(host, lambda c: c.set_geo(latitude, longitude))
    print(f"Location set to {latitude}, {longitude}.")


if __name__ == "__main__":
    app()
