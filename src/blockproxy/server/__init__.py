"""Server."""

from .gatekeeper import Gatekeeper
from .http import HTTPConnection, Hijacker, TunnelRequest, read_request
from .pipe import DuplexStream, TunnelPair, pipe
from .proxy import ProxyServer

__all__ = [
    "DuplexStream",
    "Gatekeeper",
    "HTTPConnection",
    "Hijacker",
    "ProxyServer",
    "TunnelPair",
    "TunnelRequest",
    "pipe",
    "read_request",
]
