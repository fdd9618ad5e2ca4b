"""Bidirectional byte relay between two established connections.

Two copy tasks run per tunnel, one per direction. Whichever finishes first
closes both streams, which makes the other task's pending read or write
return so neither direction is left half-open.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

logger = structlog.get_logger()

COPY_BUFFER_SIZE = 32 * 1024
CLOSE_TIMEOUT = 5.0


@dataclass(eq=False)
class DuplexStream:
    """One side of a tunnel: an asyncio reader/writer pair."""

    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter
    name: str = "stream"

    @property
    def closed(self) -> bool:
        return self.writer.is_closing()

    def close(self) -> None:
        """Close the underlying transport. Safe to call repeatedly."""
        if not self.writer.is_closing():
            self.writer.close()

    def abort(self) -> None:
        """Drop the transport without flushing buffered writes."""
        transport = self.writer.transport
        if transport is not None:
            transport.abort()

    async def wait_closed(self, timeout: float = CLOSE_TIMEOUT) -> None:
        self.close()
        try:
            await asyncio.wait_for(self.writer.wait_closed(), timeout)
        except TimeoutError:
            self.abort()
        except OSError as e:
            logger.debug("Error while closing stream", stream=self.name, error=str(e))


@dataclass(eq=False)
class TunnelPair:
    """The two streams of an accepted tunnel, owned by the relay."""

    upstream: DuplexStream
    client: DuplexStream

    async def relay(self, buffer_size: int = COPY_BUFFER_SIZE) -> None:
        await pipe(self.upstream, self.client, buffer_size=buffer_size)


async def copy(src: DuplexStream, dst: DuplexStream, buffer_size: int = COPY_BUFFER_SIZE) -> int:
    """Copy from src to dst until src reaches EOF. Returns bytes copied."""
    copied = 0
    while True:
        data = await src.reader.read(buffer_size)
        if not data:
            return copied
        dst.writer.write(data)
        await dst.writer.drain()
        copied += len(data)


async def _copy_and_close(
    src: DuplexStream,
    dst: DuplexStream,
    buffer_size: int,
) -> None:
    try:
        copied = await copy(src, dst, buffer_size)
        logger.debug("Copy finished", src=src.name, dst=dst.name, bytes=copied)
    except OSError as e:
        logger.warning("error copying data", src=src.name, dst=dst.name, error=str(e))
    except Exception as e:
        logger.warning(
            "unexpected error copying data",
            src=src.name,
            dst=dst.name,
            error=str(e),
            exc_info=True,
        )
    finally:
        src.close()
        dst.close()


async def pipe(
    stream1: DuplexStream,
    stream2: DuplexStream,
    buffer_size: int = COPY_BUFFER_SIZE,
    close_timeout: float = CLOSE_TIMEOUT,
) -> None:
    """Relay bytes both ways until the tunnel ends.

    Returns only once both copy tasks have finished and both streams are
    closed. Copy errors are logged, never raised.
    """
    tasks = [
        asyncio.create_task(_copy_and_close(stream1, stream2, buffer_size)),
        asyncio.create_task(_copy_and_close(stream2, stream1, buffer_size)),
    ]
    try:
        _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        if pending:
            # the remaining direction sees the closed streams and stops
            await asyncio.wait(pending, timeout=close_timeout)
    finally:
        stream1.close()
        stream2.close()
        if not all(task.done() for task in tasks):
            # a write stuck on a peer that stopped reading
            stream1.abort()
            stream2.abort()
            for task in tasks:
                task.cancel()
            await asyncio.wait(tasks)

    await asyncio.gather(
        stream1.wait_closed(close_timeout),
        stream2.wait_closed(close_timeout),
    )
