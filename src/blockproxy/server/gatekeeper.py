"""Tunnel gatekeeper.

Decides whether a request may open a tunnel. Only CONNECT to the configured
host:port passes. An accepted request gets exactly one dial attempt and, on
success, a TunnelPair that owns both connections.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from blockproxy.core.addr import same_host_port, split_host_port
from blockproxy.core.config import ProxyConfig
from blockproxy.core.exceptions import (
    AuthorityMismatchError,
    DialError,
    HijackUnsupportedError,
    MethodNotAllowedError,
    ProxyError,
)
from blockproxy.server.http import METHOD_CONNECT, Hijacker, ResponseWriter, TunnelRequest
from blockproxy.server.pipe import DuplexStream, TunnelPair

logger = structlog.get_logger()

Dialer = Callable[[str, str], Awaitable[tuple[asyncio.StreamReader, asyncio.StreamWriter]]]


async def open_tcp(host: str, port: str) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    return await asyncio.open_connection(host, port)


class Gatekeeper:
    """Validates tunnel requests against a ProxyConfig."""

    def __init__(self, config: ProxyConfig, dialer: Dialer | None = None):
        self.config = config
        self._dialer = dialer or open_tcp

    def check_method(self, request: TunnelRequest) -> None:
        if request.method != METHOD_CONNECT:
            raise MethodNotAllowedError()

    def check_authority(self, request: TunnelRequest) -> None:
        if not same_host_port(request.authority, self.config.target_host_port):
            raise AuthorityMismatchError(request.authority, self.config.target_host_port)

    def check(self, request: TunnelRequest) -> None:
        """Raise unless the request is a CONNECT to the configured target."""
        self.check_method(request)
        logger.debug("Received request to connect", requested=request.authority)
        self.check_authority(request)
        logger.debug(
            "Request matches target",
            requested=request.authority,
            target=self.config.target_host_port,
        )

    def dial_target(self, request: TunnelRequest) -> str:
        """Address to dial for an accepted request.

        Without an IP override this is the requested authority as received.
        """
        return self.config.dial_address or request.authority

    async def dial(self, dial_target: str) -> DuplexStream:
        host, port = split_host_port(dial_target)
        logger.debug("Proxying request", dial=dial_target)
        try:
            reader, writer = await self._dialer(host, port)
        except (OSError, ValueError) as e:
            raise DialError(dial_target, e) from e
        return DuplexStream(reader, writer, name="upstream")

    async def open_tunnel(self, request: TunnelRequest, response: ResponseWriter) -> TunnelPair:
        """Validate, dial and take over the client connection.

        Raises:
            ProxyError: For any rejected or failed request. The upstream
                connection, if one was dialed, is already closed.
        """
        self.check(request)
        dial_target = self.dial_target(request)
        upstream = await self.dial(dial_target)

        try:
            if not isinstance(response, Hijacker):
                raise HijackUnsupportedError()
            await response.send_status(200)
            try:
                reader, writer = response.hijack()
            except RuntimeError as e:
                raise ProxyError(str(e)) from e
        except BaseException:
            upstream.close()
            raise

        logger.info(
            "Tunnel accepted",
            requested=request.authority,
            target=self.config.target_host_port,
            dial=dial_target,
        )
        return TunnelPair(
            upstream=upstream,
            client=DuplexStream(reader, writer, name="client"),
        )
