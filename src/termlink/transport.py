"""
Socket transport for the single client slot.

Owns the listening socket and the asyncio streams of the accepted
connection. Higher layers decide when it is legal to touch the stream;
this module only moves bytes.
"""

import asyncio
import socket
from typing import Optional

import structlog

from .config import EndpointConfig
from .models import ClientIdentity

logger = structlog.get_logger(__name__)

# Failures that mean "the connection is not usable right now"
IO_ERRORS = (
    ConnectionError,
    OSError,
    asyncio.IncompleteReadError,
    asyncio.LimitOverrunError,
    ValueError,
    RuntimeError,
)


class Transport:
    """
    Listener plus the accepted connection's byte stream.

    accept_next() may be called again after close() to take the next
    client; only one connection is held at a time.
    """

    LISTEN_BACKLOG = 1

    def __init__(self, config: EndpointConfig):
        self.config = config
        self._listener: Optional[socket.socket] = None
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None

    @property
    def listening(self) -> bool:
        return self._listener is not None

    @property
    def has_connection(self) -> bool:
        return self._writer is not None

    def open_listener(self) -> None:
        """
        Bind and listen on the configured address.

        Raises:
            OSError: If the address cannot be bound
        """
        if self._listener is not None:
            return

        sock = socket.socket(self.config.address_family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.config.bind_address, self.config.bind_port))
            sock.listen(self.LISTEN_BACKLOG)
            sock.setblocking(False)
        except OSError:
            sock.close()
            raise

        self._listener = sock
        logger.debug(
            "Listener bound",
            host=self.config.bind_address,
            port=self.config.bind_port,
        )

    def close_listener(self) -> None:
        """Release the listening socket. Safe to call repeatedly."""
        listener, self._listener = self._listener, None
        if listener is not None:
            listener.close()

    async def accept_next(self) -> ClientIdentity:
        """
        Wait for the next client and wrap it in streams.

        Raises:
            OSError: If the listener is closed or accept fails
        """
        if self._listener is None:
            raise OSError("Listener is not open")

        loop = asyncio.get_running_loop()
        conn, addr = await loop.sock_accept(self._listener)
        conn.setblocking(False)
        try:
            self._reader, self._writer = await asyncio.open_connection(sock=conn)
        except OSError:
            conn.close()
            raise

        return ClientIdentity(address=addr[0], port=addr[1])

    def poll_liveness(self) -> bool:
        """
        Non-blocking check that the peer is still there.

        Returns False once the peer closed and every buffered byte has been
        consumed, when the stream recorded a connection error, or when the
        writer is gone or closing.
        """
        reader, writer = self._reader, self._writer
        if reader is None or writer is None or writer.is_closing():
            return False
        if reader.exception() is not None:
            return False
        return not reader.at_eof()

    async def read_chunk(self, max_bytes: int) -> bytes:
        """Read up to max_bytes, waiting for at least one. Empty at EOF."""
        if self._reader is None:
            return b""
        return await self._reader.read(max_bytes)

    async def read_chunk_within(self, max_bytes: int, timeout: float) -> Optional[bytes]:
        """Like read_chunk, but returns None if nothing arrived within timeout."""
        if self._reader is None:
            return b""
        try:
            return await asyncio.wait_for(self._reader.read(max_bytes), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    async def write_chunk(self, data: bytes) -> None:
        if self._writer is None:
            return
        self._writer.write(data)
        await self._writer.drain()

    async def read_line(self) -> Optional[str]:
        """Read one line, decoded and without its terminator. None at EOF."""
        if self._reader is None:
            return None
        raw = await self._reader.readline()
        if not raw:
            return None
        if raw.endswith(b"\n"):
            raw = raw[:-1]
            if raw.endswith(b"\r"):
                raw = raw[:-1]
        return self.config.decode(raw)

    async def write(self, text: str) -> None:
        await self.write_chunk(self.config.encode(text))

    async def write_line(self, text: str) -> None:
        await self.write_chunk(self.config.encode(text + self.config.newline))

    async def close(self) -> None:
        """Release the accepted connection. Safe to call repeatedly."""
        writer = self._writer
        self._reader = None
        self._writer = None
        if writer is None:
            return

        writer.close()
        try:
            await writer.wait_closed()
        except (ConnectionError, OSError) as e:
            # Peer already reset the socket
            logger.debug("Connection closed with error", error=str(e))
