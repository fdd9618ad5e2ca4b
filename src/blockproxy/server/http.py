"""Minimal HTTP/1.1 framing for a CONNECT-only listener.

Only one request is read per connection. After a successful CONNECT the
connection is hijacked and no longer speaks HTTP.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Protocol, runtime_checkable

from blockproxy.core.exceptions import HeaderTooLargeError, MalformedRequestError

METHOD_CONNECT = "CONNECT"


@dataclass
class TunnelRequest:
    """A parsed request head."""

    method: str
    authority: str
    version: str = "HTTP/1.1"
    headers: list[tuple[str, str]] = field(default_factory=list)


def parse_request_head(lines: list[bytes]) -> TunnelRequest:
    """Parse a request line and header lines (without line terminators)."""
    if not lines:
        raise MalformedRequestError("Bad Request: missing request line")

    request_line = lines[0].decode("latin-1")
    parts = request_line.split(" ")
    if len(parts) != 3 or not all(parts):
        raise MalformedRequestError(f"Bad Request: malformed request line {request_line!r}")

    method, authority, version = parts
    if not version.startswith("HTTP/1."):
        raise MalformedRequestError(f"Bad Request: unsupported protocol version {version!r}")

    headers: list[tuple[str, str]] = []
    for raw in lines[1:]:
        line = raw.decode("latin-1")
        name, sep, value = line.partition(":")
        if not sep or not name or name != name.strip():
            raise MalformedRequestError(f"Bad Request: malformed header line {line!r}")
        headers.append((name, value.strip()))

    return TunnelRequest(method=method, authority=authority, version=version, headers=headers)


async def read_request(reader: asyncio.StreamReader, max_header_bytes: int) -> TunnelRequest | None:
    """Read one request head from the stream.

    Returns None when the client goes away before the head is complete.

    Raises:
        HeaderTooLargeError: If the head exceeds max_header_bytes.
        MalformedRequestError: If the head cannot be parsed.
    """
    lines: list[bytes] = []
    total = 0
    while True:
        try:
            line = await reader.readline()
        except ValueError as e:
            # a single line longer than the reader limit
            raise HeaderTooLargeError() from e

        if not line.endswith(b"\n"):
            return None

        total += len(line)
        if total > max_header_bytes:
            raise HeaderTooLargeError()

        line = line.rstrip(b"\r\n")
        if not line:
            if lines:
                break
            # tolerate blank lines ahead of the request line
            continue
        lines.append(line)

    return parse_request_head(lines)


class ResponseWriter(Protocol):
    async def send_status(
        self,
        status: int,
        headers: list[tuple[str, str]] | None = None,
        body: bytes = b"",
    ) -> None: ...

    async def send_error(self, message: str, status: int) -> None: ...


@runtime_checkable
class Hijacker(Protocol):
    """Something that can yield exclusive raw access to its connection."""

    def hijack(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]: ...


class HTTPConnection:
    """Response side of one accepted client connection."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.reader = reader
        self.writer = writer
        self._hijacked = False
        self._responded = False
        peer = writer.get_extra_info("peername")
        self.peer = f"{peer[0]}:{peer[1]}" if peer else "unknown"

    @property
    def hijacked(self) -> bool:
        return self._hijacked

    @property
    def responded(self) -> bool:
        """True once a status line has been written."""
        return self._responded

    async def send_status(
        self,
        status: int,
        headers: list[tuple[str, str]] | None = None,
        body: bytes = b"",
    ) -> None:
        if self._hijacked:
            raise RuntimeError("connection has been hijacked")

        reason = HTTPStatus(status).phrase
        head = [f"HTTP/1.1 {status} {reason}"]
        for name, value in headers or ():
            head.append(f"{name}: {value}")
        payload = ("\r\n".join(head) + "\r\n\r\n").encode("latin-1") + body

        self._responded = True
        self.writer.write(payload)
        await self.writer.drain()

    async def send_error(self, message: str, status: int) -> None:
        """Write a plain-text error response and mark the connection for closing."""
        body = (message + "\n").encode("utf-8")
        await self.send_status(
            status,
            headers=[
                ("Content-Type", "text/plain; charset=utf-8"),
                ("X-Content-Type-Options", "nosniff"),
                ("Content-Length", str(len(body))),
                ("Connection", "close"),
            ],
            body=body,
        )

    def hijack(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        """Hand over the raw streams. The caller now owns closing them."""
        if self._hijacked:
            raise RuntimeError("connection has already been hijacked")
        self._hijacked = True
        return self.reader, self.writer

    def close(self) -> None:
        if not self._hijacked and not self.writer.is_closing():
            self.writer.close()
