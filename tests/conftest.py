"""Shared fixtures: an in-memory command sender standing in for a device."""

from __future__ import annotations

import pytest

from tasmota_device_manager.const import DeviceLimits
from tasmota_device_manager.device import TasmotaClient
from tasmota_device_manager.exception import TransportError


class FakeSender:
    """Record commands and answer from a canned response table."""

    def __init__(
        self,
        responses: dict[str, str] | None = None,
        fail_on: str | None = None,
    ) -> None:
        self.sent: list[str] = []
        self.responses = responses or {}
        self.fail_on = fail_on

    async def send(self, command: str) -> str:
        self.sent.append(command)
        if self.fail_on is not None and command == self.fail_on:
            raise TransportError(f"device unreachable while sending {command}")
        return self.responses.get(command, "{}")


@pytest.fixture
def sender() -> FakeSender:
    """Create an empty fake sender."""
    return FakeSender()


@pytest.fixture
def client(sender: FakeSender) -> TasmotaClient:
    """Create a client with default limits on top of the fake sender."""
    return TasmotaClient(sender, DeviceLimits())


@pytest.fixture
def make_client():
    """Build a client and its sender from a canned response table."""

    def _make(
        responses: dict[str, str] | None = None,
        fail_on: str | None = None,
        limits: DeviceLimits | None = None,
    ) -> tuple[TasmotaClient, FakeSender]:
        fake = FakeSender(responses, fail_on)
        return TasmotaClient(fake, limits or DeviceLimits()), fake

    return _make
