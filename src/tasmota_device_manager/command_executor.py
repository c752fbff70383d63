"""Command execution service for device commands."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from .commands_model import COMMAND_ARG_SCHEMAS, CommandRecord, CommandRequest
from .device.client import TasmotaClient
from .exception import CommandValidationError, TasmotaError

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], TasmotaClient]


class CommandExecutor:
    """Executes named actions on devices through ``TasmotaClient``."""

    def __init__(
        self, client_factory: ClientFactory = TasmotaClient.from_host
    ):
        """Resolve clients per host through ``client_factory``."""
        self._client_factory = client_factory
        self._clients: Dict[str, TasmotaClient] = {}
        self._device_locks: Dict[str, asyncio.Lock] = {}

    def _get_device_lock(self, host: str) -> asyncio.Lock:
        """Get or create a lock for device operations."""
        if host not in self._device_locks:
            self._device_locks[host] = asyncio.Lock()
        return self._device_locks[host]

    def _get_client(self, host: str) -> TasmotaClient:
        if host not in self._clients:
            self._clients[host] = self._client_factory(host)
        return self._clients[host]

    def validate_command_args(
        self, action: str, args: Optional[Dict[str, Any]]
    ) -> Any:
        """Validate command arguments against schema.

        Returns the parsed arguments model, or None for actions that take
        no arguments.
        """
        if action not in COMMAND_ARG_SCHEMAS:
            raise CommandValidationError(f"Unsupported action: {action}")

        schema_class = COMMAND_ARG_SCHEMAS[action]
        if schema_class is None:
            if args:
                raise CommandValidationError(
                    f"Action '{action}' does not accept arguments"
                )
            return None

        try:
            return schema_class(**(args or {}))
        except ValidationError as exc:
            raise CommandValidationError(
                f"Invalid arguments for '{action}': {exc}"
            ) from exc

    async def execute_command(
        self, host: str, request: CommandRequest
    ) -> CommandRecord:
        """Execute a command and return its record."""
        record = CommandRecord(
            host=host,
            action=request.action,
            args=request.args,
            timeout=request.timeout or 10.0,
        )
        if request.id is not None:
            record.id = request.id

        try:
            parsed = self.validate_command_args(request.action, request.args)
        except CommandValidationError as exc:
            record.mark_failed(str(exc))
            return record

        # Writes of one schedule must not interleave with another caller's
        lock = self._get_device_lock(host)
        async with lock:
            record.mark_started()
            try:
                result = await asyncio.wait_for(
                    self._execute_action(host, request.action, parsed),
                    timeout=record.timeout,
                )
                record.mark_success(result)

            except asyncio.TimeoutError:
                record.mark_timeout()
                logger.warning(
                    "Command %s timed out for device %s after %s seconds",
                    request.action,
                    host,
                    record.timeout,
                )

            except TasmotaError as exc:
                record.mark_failed(str(exc))
                logger.error(
                    "Command %s failed for device %s: %s",
                    request.action,
                    host,
                    exc,
                )

        return record

    async def _execute_action(
        self, host: str, action: str, args: Any
    ) -> Optional[Dict[str, Any]]:
        """Execute the specific action on the device."""
        client = self._get_client(host)

        if action in ("turn_on", "turn_off", "toggle"):
            if action == "toggle":
                state = await client.toggle_relay(args.relay)
            else:
                state = await client.set_relay(args.relay, action == "turn_on")
            return {"relay": args.relay, "on": state}

        elif action == "apply_rule":
            compiled = await client.apply_rule(
                args.rule_index, args.intent, args.timer_index
            )
            return {
                "rule_index": compiled.rule_index,
                "primary": compiled.primary,
                "auxiliary_index": compiled.auxiliary_index,
                "auxiliary": compiled.auxiliary,
            }

        elif action == "read_rule":
            intent = await client.read_rule(args.rule_index)
            return intent.model_dump(mode="json")

        elif action == "clear_rule":
            await client.clear_rule(args.rule_index)
            return {"rule_index": args.rule_index, "cleared": True}

        elif action == "set_schedule":
            sent = await client.set_multi_schedule(
                args.weekdays,
                args.on_time,
                args.off_time,
                args.outputs,
                args.strategy,
                args.start_slot,
                args.rule_index,
            )
            return {"commands": sent}

        elif action == "enable_timers":
            await client.enable_all_timers(True)
            return {"timers": True}

        elif action == "disable_timers":
            await client.enable_all_timers(False)
            return {"timers": False}

        else:
            raise CommandValidationError(f"Unsupported action: {action}")
