"""CONNECT proxy server.

Accepts connections, reads one request head per connection and hands it to
the Gatekeeper. Accepted tunnels are relayed until either side closes.
"""

from __future__ import annotations

import asyncio

import structlog

from blockproxy.core.config import ProxyConfig, ProxySettings, get_settings
from blockproxy.core.exceptions import ProxyError
from blockproxy.server.gatekeeper import Dialer, Gatekeeper
from blockproxy.server.http import HTTPConnection, read_request

logger = structlog.get_logger()


class ProxyServer:
    """Single-target CONNECT proxy."""

    def __init__(
        self,
        config: ProxyConfig,
        settings: ProxySettings | None = None,
        dialer: Dialer | None = None,
    ):
        self.config = config
        self.settings = settings or get_settings()
        self.gatekeeper = Gatekeeper(config, dialer=dialer)

        self._server: asyncio.Server | None = None
        self._connections: set[asyncio.Task] = set()
        self.active_tunnels = 0

    @property
    def port(self) -> int | None:
        """Port actually bound, None before start()."""
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        self._server = await asyncio.start_server(
            self._handle_connection,
            self.config.listen_host,
            self.config.listen_port,
            limit=self.settings.max_header_bytes,
        )
        logger.info(
            "Starting proxy",
            host=self.config.listen_host,
            port=self.port,
            target=self.config.target_host_port,
            target_ip=self.config.target_ip,
        )

    async def stop(self) -> None:
        logger.info("Stopping proxy...")
        if self._server is not None:
            self._server.close()

        tasks = list(self._connections)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if self._server is not None:
            await self._server.wait_closed()
            self._server = None
        logger.info("Proxy stopped")

    async def _handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        task = asyncio.current_task()
        if task is not None:
            self._connections.add(task)

        conn = HTTPConnection(reader, writer)
        try:
            await self.handle(conn)
        finally:
            if task is not None:
                self._connections.discard(task)
            conn.close()

    async def handle(self, conn: HTTPConnection) -> None:
        """Serve one client connection from request head to tunnel teardown."""
        try:
            request = await read_request(conn.reader, self.settings.max_header_bytes)
            if request is None:
                logger.debug("Client closed before sending a request", peer=conn.peer)
                return
            pair = await self.gatekeeper.open_tunnel(request, conn)
        except ProxyError as e:
            await self._reject(conn, e)
            return
        except OSError as e:
            logger.debug("Client connection failed", peer=conn.peer, error=str(e))
            return

        self.active_tunnels += 1
        logger.info("Tunnel established", peer=conn.peer, target=self.config.target_host_port)
        try:
            await pair.relay(self.settings.copy_buffer_size)
        finally:
            self.active_tunnels -= 1
            logger.info("Tunnel closed", peer=conn.peer, target=self.config.target_host_port)

    async def _reject(self, conn: HTTPConnection, error: ProxyError) -> None:
        logger.error(
            f"Error: {error.message}",
            status=error.status_code,
            peer=conn.peer,
            target=self.config.target_host_port,
        )
        if conn.hijacked or conn.responded:
            # the client already has a status line, drop the connection instead
            return
        try:
            await conn.send_error(error.message, error.status_code)
        except OSError as e:
            logger.debug("Failed to write error response", peer=conn.peer, error=str(e))
