"""HTTP transport for the ``/cm?cmnd=`` command endpoint."""

from __future__ import annotations

import logging
from typing import Optional, Protocol, runtime_checkable

import httpx

from ..config import get_http_timeout
from ..const import COMMAND_PATH
from ..exception import TransportError

logger = logging.getLogger(__name__)


@runtime_checkable
class CommandSender(Protocol):
    """Anything that can deliver a command and return the raw response."""

    async def send(self, command: str) -> str:
        ...


class HttpCommandSender:
    """Send commands to one device over its HTTP API.

    The target host is fixed for the lifetime of the sender. Use
    ``with_host`` to talk to another device rather than mutating a sender
    that may have requests in flight.
    """

    def __init__(
        self,
        host: str,
        *,
        timeout: Optional[float] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Create a sender for ``host`` (IP, hostname or base URL)."""
        self._host = host
        self._base_url = (
            host.rstrip("/") if "://" in host else f"http://{host}"
        )
        self._timeout = timeout if timeout is not None else get_http_timeout()
        self._username = username
        self._password = password
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self._timeout)

    @property
    def host(self) -> str:
        """Return the configured host."""
        return self._host

    @property
    def base_url(self) -> str:
        """Return the device base URL."""
        return self._base_url

    def with_host(self, host: str) -> "HttpCommandSender":
        """Return a new sender for ``host`` with the same settings."""
        return HttpCommandSender(
            host,
            timeout=self._timeout,
            username=self._username,
            password=self._password,
        )

    def _params(self, command: str) -> dict[str, str]:
        params = {"cmnd": command}
        if self._username is not None:
            params["user"] = self._username
        if self._password is not None:
            params["password"] = self._password
        return params

    async def send(self, command: str) -> str:
        """Send ``command`` and return the response body.

        Raises:
            TransportError: On connection errors and non 2xx responses
        """
        logger.debug("-> %s: %s", self._host, command)
        try:
            response = await self._client.get(
                f"{self._base_url}{COMMAND_PATH}",
                params=self._params(command),
                timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransportError(
                f"Command {command!r} to {self._host} failed: {exc}"
            ) from exc
        logger.debug("<- %s: %s", self._host, response.text)
        return response.text

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this sender created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpCommandSender":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
