"""
Connection lifecycle state machine.

Holds the server status, the client slot status, the client identity and
the handshake timer. Every transition goes through a method that takes the
state lock; nothing outside this module assigns the fields directly.
"""

import asyncio
import time
from typing import Optional

import structlog

from .models import ClientIdentity, ClientStatus, ServerStatus

logger = structlog.get_logger(__name__)


class AuthTimer:
    """Monotonic stopwatch bounding the handshake window of one connection."""

    def __init__(self):
        self._started_at: Optional[float] = None

    @property
    def is_running(self) -> bool:
        return self._started_at is not None

    @property
    def elapsed(self) -> float:
        """Seconds since start(), 0 when stopped."""
        if self._started_at is None:
            return 0.0
        return time.monotonic() - self._started_at

    def start(self) -> None:
        if self._started_at is None:
            self._started_at = time.monotonic()

    def reset(self) -> None:
        self._started_at = None


class ConnectionStateMachine:
    """
    Owner of the endpoint and client-slot state.

    Each accepted connection gets a new generation number; results computed
    for an older generation (a handshake that outlived its client) are
    dropped. A disconnect always wins over an auth result.
    """

    AUTH_RESULTS = frozenset({
        ClientStatus.AUTH_PASSWORD,
        ClientStatus.AUTH_WRONG_PASSWORD,
        ClientStatus.AUTH_TIMEOUT,
    })

    def __init__(self, auth_required: bool):
        self.auth_required = auth_required
        self.auth_timer = AuthTimer()

        self._lock = asyncio.Lock()
        self._server_status = ServerStatus.NOT_ACTIVE
        self._client_status = ClientStatus.UNKNOWN_OR_DISCONNECTED
        self._identity: Optional[ClientIdentity] = None
        self._generation = 0

    @property
    def server_status(self) -> ServerStatus:
        return self._server_status

    @property
    def client_status(self) -> ClientStatus:
        return self._client_status

    @property
    def identity(self) -> Optional[ClientIdentity]:
        return self._identity

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_active(self) -> bool:
        return self._server_status is ServerStatus.ACTIVE

    @property
    def client_connected(self) -> bool:
        return self._client_status.is_connected

    @property
    def client_authenticated(self) -> bool:
        return self._client_status.is_authenticated

    async def activate(self) -> bool:
        """NOT_ACTIVE -> ACTIVE. Returns False if already active."""
        async with self._lock:
            if self._server_status is ServerStatus.ACTIVE:
                return False
            self._server_status = ServerStatus.ACTIVE
            return True

    async def deactivate(self) -> Optional[ClientIdentity]:
        """
        Force the stopped state regardless of the current one.

        Returns the identity of the client that was dropped, if any.
        """
        async with self._lock:
            dropped = self._identity if self._client_status.is_connected else None
            self._server_status = ServerStatus.NOT_ACTIVE
            self._clear_client()
            return dropped

    async def on_connected(self, identity: ClientIdentity) -> ClientStatus:
        """Record a freshly accepted client."""
        async with self._lock:
            self._generation += 1
            self._identity = identity
            self.auth_timer.reset()
            self._client_status = ClientStatus.CONNECTED
            if not self.auth_required:
                self._client_status = ClientStatus.AUTH_NO_PASSWORD
            return self._client_status

    async def on_disconnected(self, generation: Optional[int] = None) -> Optional[ClientIdentity]:
        """
        Run the disconnect transition.

        When generation is given, only that connection is dropped.

        Returns the identity that was cleared, or None if the slot was
        already empty or holds a newer connection.
        """
        async with self._lock:
            if not self._client_status.is_connected:
                return None
            if generation is not None and generation != self._generation:
                return None
            dropped = self._identity
            self._clear_client()
            return dropped

    async def resolve_auth(self, status: ClientStatus, generation: int) -> bool:
        """
        Apply a handshake result to the connection it was computed for.

        Refused when the slot is already disconnected or a newer connection
        replaced the one the handshake started on.
        """
        if status not in self.AUTH_RESULTS:
            raise ValueError(f"Not a handshake result: {status!r}")

        async with self._lock:
            if generation != self._generation or not self._client_status.is_connected:
                logger.debug("Dropped stale auth result", status=status.name)
                return False
            self._client_status = status
            if status is not ClientStatus.AUTH_WRONG_PASSWORD:
                self.auth_timer.reset()
            return True

    def _clear_client(self) -> None:
        self._client_status = ClientStatus.UNKNOWN_OR_DISCONNECTED
        self._identity = None
        self.auth_timer.reset()
