"""Transports — newline-framed message streams.

Each transport satisfies the :class:`Transport` protocol, providing
``connect``, ``send``, ``receive``, and ``close``.  A message is one line of
JSON; the JSON encoder escapes embedded newlines, so a frame boundary is
never inside a message.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shlex
import sys
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from tandem.protocol.errors import TransportClosedError

logger = logging.getLogger(__name__)

STREAM_LIMIT = 16 * 1024 * 1024
_CLOSE_GRACE = 5.0


@runtime_checkable
class Transport(Protocol):
    """Duplex, ordered stream of whole text messages."""

    async def connect(self) -> None: ...
    async def send(self, message: str) -> None: ...
    async def receive(self) -> str: ...
    async def close(self) -> None: ...


class StreamTransport:
    """Frames messages over an asyncio reader/writer pair.

    Sends and receives newline-delimited text.  Blank lines are skipped.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader | None = None,
        writer: asyncio.StreamWriter | None = None,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._send_lock = asyncio.Lock()
        self._closed = False

    @classmethod
    def from_stdio(cls) -> StreamTransport:
        """Build a transport over this process's own stdin/stdout.

        The pipes are attached in :meth:`connect`, which must run inside the
        event loop.
        """
        return _ProcessStdioTransport()

    async def connect(self) -> None:
        if self._reader is None or self._writer is None:
            msg = "Transport has no streams attached"
            raise RuntimeError(msg)

    async def send(self, message: str) -> None:
        """Write one framed message and wait for the buffer to drain."""
        if self._closed or self._writer is None:
            raise TransportClosedError()
        async with self._send_lock:
            try:
                self._writer.write(message.encode("utf-8") + b"\n")
                await self._writer.drain()
            except (ConnectionError, BrokenPipeError) as exc:
                raise TransportClosedError(f"Transport closed: {exc}") from exc

    async def receive(self) -> str:
        """Read the next non-blank line.

        Raises:
            TransportClosedError: At end of stream.
        """
        if self._reader is None:
            raise TransportClosedError()
        while True:
            try:
                line = await self._reader.readline()
            except (ConnectionError, ValueError) as exc:
                # ValueError: a single line exceeded the reader limit.
                raise TransportClosedError(f"Transport closed: {exc}") from exc
            if not line:
                raise TransportClosedError()
            text = line.decode("utf-8").strip()
            if text:
                return text

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._writer is not None:
            self._writer.close()
            with contextlib.suppress(ConnectionError, BrokenPipeError):
                await self._writer.wait_closed()


class _ProcessStdioTransport(StreamTransport):
    """StreamTransport bound to ``sys.stdin`` / ``sys.stdout``."""

    async def connect(self) -> None:
        if self._reader is not None:
            return
        loop = asyncio.get_running_loop()

        reader = asyncio.StreamReader(limit=STREAM_LIMIT)
        protocol = asyncio.StreamReaderProtocol(reader)
        await loop.connect_read_pipe(lambda: protocol, sys.stdin)

        transport, write_protocol = await loop.connect_write_pipe(
            asyncio.streams.FlowControlMixin, sys.stdout
        )
        self._reader = reader
        self._writer = asyncio.StreamWriter(transport, write_protocol, reader, loop)


class StdioTransport(StreamTransport):
    """Launches the peer as a child process and talks over its stdin/stdout.

    The child's stderr is discarded; the peer may emit noisy runtime warnings
    there.
    """

    def __init__(
        self,
        command: Sequence[str] | str,
        *,
        env: dict[str, str] | None = None,
        cwd: str | None = None,
    ) -> None:
        super().__init__()
        self._command = shlex.split(command) if isinstance(command, str) else list(command)
        if not self._command:
            msg = "StdioTransport requires a non-empty command"
            raise ValueError(msg)
        self._env = env
        self._cwd = cwd
        self._process: asyncio.subprocess.Process | None = None

    @property
    def command(self) -> list[str]:
        return list(self._command)

    async def connect(self) -> None:
        """Launch the subprocess."""
        env = {**os.environ, **self._env} if self._env else None
        self._process = await asyncio.create_subprocess_exec(
            *self._command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
            env=env,
            cwd=self._cwd,
            limit=STREAM_LIMIT,
        )
        self._reader = self._process.stdout
        self._writer = self._process.stdin
        logger.info("Launched peer: %s (pid=%s)", " ".join(self._command), self._process.pid)

    async def close(self) -> None:
        """Close stdin and terminate the subprocess."""
        if self._closed:
            return
        self._closed = True
        process = self._process
        if process is None:
            return
        if process.stdin is not None:
            process.stdin.close()
        if process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=_CLOSE_GRACE)
            except TimeoutError:
                process.kill()
                await process.wait()
        logger.info("Peer exited (pid=%s, code=%s)", process.pid, process.returncode)
        self._process = None


class MemoryTransport:
    """In-process transport; one half of a pair built by :func:`create_memory_pair`."""

    def __init__(self, inbox: asyncio.Queue[str | None], outbox: asyncio.Queue[str | None]) -> None:
        self._inbox = inbox
        self._outbox = outbox
        self._closed = False

    async def connect(self) -> None:
        if self._closed:
            raise TransportClosedError()

    async def send(self, message: str) -> None:
        if self._closed:
            raise TransportClosedError()
        await self._outbox.put(message)

    async def receive(self) -> str:
        if self._closed:
            raise TransportClosedError()
        message = await self._inbox.get()
        if message is None:
            self._closed = True
            raise TransportClosedError()
        return message

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # End of stream for the other half, and for our own pending receive.
        await self._outbox.put(None)
        await self._inbox.put(None)


def create_memory_pair() -> tuple[MemoryTransport, MemoryTransport]:
    """Return two linked transports: what one sends, the other receives."""
    a_to_b: asyncio.Queue[str | None] = asyncio.Queue()
    b_to_a: asyncio.Queue[str | None] = asyncio.Queue()
    return MemoryTransport(b_to_a, a_to_b), MemoryTransport(a_to_b, b_to_a)
