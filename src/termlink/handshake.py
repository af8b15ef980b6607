"""
Password handshake.

The server optionally pushes a challenge, then reads whatever the client
sends and compares SHA-256 of it with the configured digest. One timeout
window (the AuthTimer of the connection) bounds every attempt, including
retries after a wrong password.
"""

import asyncio
from typing import Optional, Union

import structlog

from .config import EndpointConfig
from .digest import digest_matches
from .models import ClientStatus
from .state import ConnectionStateMachine
from .transport import IO_ERRORS, Transport

logger = structlog.get_logger(__name__)


class AuthHandshake:
    """Timeout-bounded challenge/response exchange for the current client."""

    RESPONSE_BUFFER_SIZE = 4096

    def __init__(
        self,
        config: EndpointConfig,
        state: ConnectionStateMachine,
        transport: Transport,
    ):
        self.config = config
        self.state = state
        self.transport = transport
        self._lock = asyncio.Lock()

    async def run(self, challenge: Optional[Union[str, bytes]] = None) -> bool:
        """
        Run one handshake attempt.

        Args:
            challenge: Optional message sent to the client before reading

        Returns:
            True if the client sent the configured password
        """
        async with self._lock:
            return await self._run(challenge)

    async def _run(self, challenge: Optional[Union[str, bytes]]) -> bool:
        state = self.state
        if not state.client_connected:
            return False

        generation = state.generation
        timer = state.auth_timer
        timeout = self.config.auth_timeout

        if challenge is not None:
            await self._send_challenge(challenge)

        timer.start()

        while timer.elapsed < timeout:
            response = await self._read_response(generation)
            if response is None or timer.elapsed > timeout:
                # A late response never beats the timeout
                break

            if digest_matches(response, self.config.password_hash):
                await state.resolve_auth(ClientStatus.AUTH_PASSWORD, generation)
                logger.info("Client authenticated", client=str(state.identity))
                return True

            if response:
                await state.resolve_auth(ClientStatus.AUTH_WRONG_PASSWORD, generation)
                logger.warning("Wrong password", client=str(state.identity))
            # Empty means the connection is gone or busy; status is left as is
            return False

        timer.reset()
        if await state.resolve_auth(ClientStatus.AUTH_TIMEOUT, generation):
            logger.warning(
                "Authentication timed out",
                client=str(state.identity),
                timeout=timeout,
            )
        return False

    async def _send_challenge(self, challenge: Union[str, bytes]) -> None:
        if isinstance(challenge, str):
            challenge = self.config.encode(challenge)

        if not (self.state.client_connected and self.state.is_active):
            return
        try:
            await self.transport.write_chunk(challenge)
        except IO_ERRORS as e:
            logger.debug("Failed to send challenge", error=str(e))

    async def _read_response(self, generation: int) -> Optional[bytes]:
        """
        Wait for the client's response.

        Returns None when the window closed first, b"" when the connection
        is gone or cannot be read, otherwise the bytes received.
        """
        state = self.state
        timer = state.auth_timer
        poll_interval = self.config.auth_poll_interval

        while True:
            if (
                generation != state.generation
                or not state.client_connected
                or not state.is_active
            ):
                return b""

            remaining = self.config.auth_timeout - timer.elapsed
            if remaining <= 0:
                return None

            try:
                data = await self.transport.read_chunk_within(
                    self.RESPONSE_BUFFER_SIZE,
                    timeout=min(poll_interval, remaining),
                )
            except IO_ERRORS as e:
                logger.debug("Handshake read failed", error=str(e))
                return b""

            if data is not None:
                return data
