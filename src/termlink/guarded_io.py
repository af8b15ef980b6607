"""
Guarded read/write operations.

Every call checks the state machine before touching the transport:
a password-protected client that has not attempted the handshake gets
NotAuthenticated, and a missing or dropped connection turns the call into a
silent no-op. Transport failures never propagate.

A read that hits end of stream or a connection error runs the disconnect
path right away instead of waiting for the next liveness poll.
"""

from typing import Awaitable, Callable, Optional

import structlog

from .exceptions import NotAuthenticated
from .models import ClientStatus
from .state import ConnectionStateMachine
from .transport import IO_ERRORS, Transport

logger = structlog.get_logger(__name__)

EofCallback = Callable[[int], Awaitable[None]]


class GuardedIO:
    """Caller-facing I/O for the current client."""

    DEFAULT_BUFFER_SIZE = 2048

    def __init__(
        self,
        state: ConnectionStateMachine,
        transport: Transport,
        on_eof: Optional[EofCallback] = None,
    ):
        self.state = state
        self.transport = transport
        self._on_eof = on_eof

    def _usable(self) -> bool:
        """
        Apply the access checks.

        Raises:
            NotAuthenticated: If a password is set and the handshake was never run
        """
        state = self.state
        if state.auth_required and state.client_status is ClientStatus.CONNECTED:
            raise NotAuthenticated("The client is not authenticated")
        return state.client_connected and state.is_active

    async def _peer_gone(self, generation: int) -> None:
        """Drop the connection the failed read was made on."""
        if self._on_eof is not None:
            await self._on_eof(generation)

    async def read_chunk(self, max_bytes: int = DEFAULT_BUFFER_SIZE) -> bytes:
        """Read up to max_bytes from the client; b"" when nothing can be read."""
        if not self._usable():
            return b""
        generation = self.state.generation
        try:
            data = await self.transport.read_chunk(max_bytes)
        except (ConnectionError, OSError) as e:
            logger.debug("Read failed", error=str(e))
            await self._peer_gone(generation)
            return b""
        except IO_ERRORS as e:
            logger.debug("Read failed", error=str(e))
            return b""

        if not data and max_bytes != 0:
            await self._peer_gone(generation)
        return data

    async def write_chunk(self, data: bytes) -> None:
        if not self._usable():
            return
        try:
            await self.transport.write_chunk(data)
        except IO_ERRORS as e:
            logger.debug("Write failed", error=str(e))

    async def read_line(self) -> Optional[str]:
        """Read one decoded line; None when nothing can be read."""
        if not self._usable():
            return None
        generation = self.state.generation
        try:
            line = await self.transport.read_line()
        except (ConnectionError, OSError) as e:
            logger.debug("Read line failed", error=str(e))
            await self._peer_gone(generation)
            return None
        except IO_ERRORS as e:
            logger.debug("Read line failed", error=str(e))
            return None

        if line is None:
            await self._peer_gone(generation)
        return line

    async def write(self, text: str) -> None:
        if not self._usable():
            return
        try:
            await self.transport.write(text)
        except IO_ERRORS as e:
            logger.debug("Write failed", error=str(e))

    async def write_line(self, text: str) -> None:
        if not self._usable():
            return
        try:
            await self.transport.write_line(text)
        except IO_ERRORS as e:
            logger.debug("Write line failed", error=str(e))
