"""Device access: HTTP command transport and the high level client."""

from .client import TasmotaClient
from .transport import CommandSender, HttpCommandSender

__all__ = ["CommandSender", "HttpCommandSender", "TasmotaClient"]
