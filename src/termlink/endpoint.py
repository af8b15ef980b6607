"""
Single-client TCP endpoint.

The endpoint listens on one address, holds at most one client at a time
and re-accepts as soon as that client goes away. A background serve task
drives accept -> connect -> liveness polling -> disconnect; callers talk to
the connected peer through the Client handle.
"""

import asyncio
from contextlib import suppress
from typing import Awaitable, Callable, Optional, Union

import structlog

from .config import EndpointConfig
from .exceptions import AuthNotApplicable, StartError, StopError
from .guarded_io import GuardedIO
from .handshake import AuthHandshake
from .models import ClientIdentity, ClientStatus, EndpointInfo, ServerStatus
from .state import ConnectionStateMachine
from .transport import IO_ERRORS, Transport

logger = structlog.get_logger(__name__)

ConnectCallback = Callable[[ClientIdentity], Awaitable[None]]
DisconnectCallback = Callable[[ClientIdentity], Awaitable[None]]


class Client:
    """
    Handle on the endpoint's client slot.

    The handle stays valid across reconnects: it always refers to whoever
    is currently connected.
    """

    def __init__(self, endpoint: "Endpoint"):
        self._endpoint = endpoint
        self._io = endpoint._io

    @property
    def status(self) -> ClientStatus:
        return self._endpoint._state.client_status

    @property
    def identity(self) -> Optional[ClientIdentity]:
        return self._endpoint._state.identity

    @property
    def address(self) -> Optional[str]:
        identity = self.identity
        return identity.address if identity else None

    @property
    def port(self) -> int:
        identity = self.identity
        return identity.port if identity else 0

    @property
    def is_auth(self) -> bool:
        return self.status.is_authenticated

    @property
    def connected(self) -> bool:
        return self.status.is_connected

    async def ask_auth(self, message: Optional[Union[str, bytes]] = None) -> bool:
        """
        Run the password handshake with the current client.

        Args:
            message: Optional challenge sent before reading the response

        Returns:
            True if the client is authenticated afterwards

        Raises:
            AuthNotApplicable: If the endpoint has no password configured
        """
        endpoint = self._endpoint
        if not endpoint.config.auth_required:
            raise AuthNotApplicable(
                "The built-in handshake is disabled; "
                "configure the endpoint with a password to use it"
            )

        status = self.status
        if status is ClientStatus.AUTH_PASSWORD:
            return True
        if status in (
            ClientStatus.CONNECTED,
            ClientStatus.AUTH_WRONG_PASSWORD,
            ClientStatus.AUTH_TIMEOUT,
        ):
            try:
                await endpoint._handshake.run(message)
            except IO_ERRORS as e:
                logger.debug("Handshake aborted", error=str(e))
                return False
        return self.is_auth

    async def disconnect(self) -> None:
        """Drop the current client; the endpoint goes back to accepting."""
        await self._endpoint._handle_disconnected()

    async def read_chunk(self, max_bytes: int = GuardedIO.DEFAULT_BUFFER_SIZE) -> bytes:
        return await self._io.read_chunk(max_bytes)

    async def write_chunk(self, data: bytes) -> None:
        await self._io.write_chunk(data)

    async def read_line(self) -> Optional[str]:
        return await self._io.read_line()

    async def write(self, text: str) -> None:
        await self._io.write(text)

    async def write_line(self, text: str) -> None:
        await self._io.write_line(text)


class Endpoint:
    """
    Single-connection TCP listener with an optional password handshake.

    Features:
    - One client at a time, automatic re-accept after disconnect
    - Disconnect detection by liveness polling
    - Timeout-bounded SHA-256 password handshake
    - Guarded byte and line I/O
    """

    ACCEPT_RETRY_DELAY = 0.5

    def __init__(self, config: EndpointConfig):
        """
        Initialize the endpoint.

        Args:
            config: Validated listener configuration
        """
        self.config = config

        self._state = ConnectionStateMachine(auth_required=config.auth_required)
        self._transport = Transport(config)
        self._handshake = AuthHandshake(config, self._state, self._transport)
        self._io = GuardedIO(self._state, self._transport, on_eof=self._handle_disconnected)
        self.client = Client(self)

        self._serve_task: Optional[asyncio.Task] = None
        self._client_ready = asyncio.Event()

        self._on_connect: Optional[ConnectCallback] = None
        self._on_disconnect: Optional[DisconnectCallback] = None

    @property
    def status(self) -> ServerStatus:
        return self._state.server_status

    @property
    def host(self) -> str:
        return self.config.bind_address

    @property
    def port(self) -> int:
        return self.config.bind_port

    @property
    def auth_required(self) -> bool:
        return self.config.auth_required

    def info(self) -> EndpointInfo:
        """Snapshot of the endpoint and its client slot."""
        return EndpointInfo(
            bind_address=self.host,
            bind_port=self.port,
            auth_required=self.auth_required,
            server_status=self._state.server_status,
            client_status=self._state.client_status,
            client=self._state.identity,
        )

    def set_connect_callback(self, callback: Optional[ConnectCallback]) -> None:
        """Set callback invoked after a client is accepted."""
        self._on_connect = callback

    def set_disconnect_callback(self, callback: Optional[DisconnectCallback]) -> None:
        """Set callback invoked after the client slot is cleared."""
        self._on_disconnect = callback

    async def start(self) -> None:
        """
        Start listening and accepting clients. No-op when already active.

        Raises:
            StartError: If the listener cannot be bound
        """
        if self._state.is_active:
            return

        try:
            self._transport.open_listener()
        except OSError as e:
            raise StartError(
                "Failed to start the endpoint",
                details={"host": self.host, "port": self.port},
            ) from e

        await self._state.activate()
        self._serve_task = asyncio.create_task(
            self._serve(), name=f"termlink-serve-{self.port}"
        )
        logger.info(
            "Endpoint started",
            host=self.host,
            port=self.port,
            auth_required=self.auth_required,
        )

    async def stop(self) -> None:
        """
        Stop the endpoint and drop any client.

        The endpoint is NOT_ACTIVE and the client slot is empty when this
        returns or raises.

        Raises:
            StopError: If releasing the connection or the listener failed
        """
        dropped = await self._state.deactivate()
        self._client_ready.clear()

        task, self._serve_task = self._serve_task, None
        try:
            if task is not None and not task.done() and task is not asyncio.current_task():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
            await self._transport.close()
            self._transport.close_listener()
        except Exception as e:
            raise StopError(
                "Failed to stop the endpoint",
                details={"host": self.host, "port": self.port},
            ) from e
        finally:
            if dropped is not None:
                await self._notify(self._on_disconnect, dropped)

        logger.info("Endpoint stopped", host=self.host, port=self.port)

    async def serve_forever(self) -> None:
        """Run until stop() is called or the task is cancelled."""
        await self.start()
        task = self._serve_task
        if task is not None:
            with suppress(asyncio.CancelledError):
                await task

    async def wait_for_client(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until a client occupies the slot.

        Returns:
            True if a client is connected, False on timeout
        """
        try:
            await asyncio.wait_for(self._client_ready.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return self._state.client_connected

    async def __aenter__(self) -> "Endpoint":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _serve(self) -> None:
        """Accept loop: one client at a time, forever, until stopped."""
        state = self._state
        while state.is_active:
            try:
                identity = await self._transport.accept_next()
            except OSError as e:
                if not state.is_active:
                    break
                logger.error("Accept failed", error=str(e))
                await asyncio.sleep(self.ACCEPT_RETRY_DELAY)
                continue

            await self._handle_connected(identity)

            while state.client_connected and self._transport.poll_liveness():
                await asyncio.sleep(self.config.liveness_interval)

            await self._handle_disconnected()

    async def _handle_connected(self, identity: ClientIdentity) -> None:
        status = await self._state.on_connected(identity)
        self._client_ready.set()
        logger.info("Client connected", client=str(identity), status=status.name)
        await self._notify(self._on_connect, identity)

    async def _handle_disconnected(self, generation: Optional[int] = None) -> None:
        dropped = await self._state.on_disconnected(generation)
        if dropped is None and generation is not None:
            # Already handled, or a newer client holds the slot
            return
        self._client_ready.clear()
        await self._transport.close()
        if dropped is not None:
            logger.info("Client disconnected", client=str(dropped))
            await self._notify(self._on_disconnect, dropped)

    async def _notify(self, callback, identity: ClientIdentity) -> None:
        if callback is None:
            return
        try:
            await callback(identity)
        except Exception:
            logger.exception("Callback failed", client=str(identity))
