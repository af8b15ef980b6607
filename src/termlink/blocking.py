"""
Blocking facade over the asyncio endpoint.

Runs a private event loop in a daemon thread and forwards every call to
it, so synchronous code gets the same guards, results and errors as the
async API.
"""

import asyncio
import threading
from typing import Any, Coroutine, Optional, Union

import structlog

from .config import EndpointConfig
from .endpoint import Endpoint
from .guarded_io import GuardedIO
from .models import ClientIdentity, ClientStatus, EndpointInfo, ServerStatus

logger = structlog.get_logger(__name__)


class BlockingClient:
    """Synchronous counterpart of endpoint.Client."""

    def __init__(self, owner: "BlockingEndpoint"):
        self._owner = owner
        self._client = owner._endpoint.client

    @property
    def status(self) -> ClientStatus:
        return self._client.status

    @property
    def identity(self) -> Optional[ClientIdentity]:
        return self._client.identity

    @property
    def address(self) -> Optional[str]:
        return self._client.address

    @property
    def port(self) -> int:
        return self._client.port

    @property
    def is_auth(self) -> bool:
        return self._client.is_auth

    @property
    def connected(self) -> bool:
        return self._client.connected

    def ask_auth(self, message: Optional[Union[str, bytes]] = None) -> bool:
        return self._owner._call(self._client.ask_auth(message))

    def disconnect(self) -> None:
        self._owner._call(self._client.disconnect())

    def read_chunk(self, max_bytes: int = GuardedIO.DEFAULT_BUFFER_SIZE) -> bytes:
        return self._owner._call(self._client.read_chunk(max_bytes))

    def write_chunk(self, data: bytes) -> None:
        self._owner._call(self._client.write_chunk(data))

    def read_line(self) -> Optional[str]:
        return self._owner._call(self._client.read_line())

    def write(self, text: str) -> None:
        self._owner._call(self._client.write(text))

    def write_line(self, text: str) -> None:
        self._owner._call(self._client.write_line(text))


class BlockingEndpoint:
    """
    Thread-backed synchronous endpoint.

    Example:
        with BlockingEndpoint(EndpointConfig.create("127.0.0.1", 0, "secret")) as ep:
            ep.wait_for_client()
            if ep.client.ask_auth("password: "):
                ep.client.write_line("welcome")
    """

    def __init__(self, config: EndpointConfig):
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="termlink-loop",
            daemon=True,
        )
        self._thread.start()
        self._endpoint = Endpoint(config)
        self.client = BlockingClient(self)
        self._closed = False

    @property
    def config(self) -> EndpointConfig:
        return self._endpoint.config

    @property
    def status(self) -> ServerStatus:
        return self._endpoint.status

    @property
    def host(self) -> str:
        return self._endpoint.host

    @property
    def port(self) -> int:
        return self._endpoint.port

    def info(self) -> EndpointInfo:
        return self._endpoint.info()

    def start(self) -> None:
        self._call(self._endpoint.start())

    def stop(self) -> None:
        self._call(self._endpoint.stop())

    def wait_for_client(self, timeout: Optional[float] = None) -> bool:
        return self._call(self._endpoint.wait_for_client(timeout))

    def close(self) -> None:
        """Stop the endpoint and shut the background loop down."""
        if self._closed:
            return
        self._closed = True
        try:
            self.stop()
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=5)
            if self._thread.is_alive():
                logger.warning("Event loop thread did not exit", thread=self._thread.name)
            else:
                self._loop.close()

    def __enter__(self) -> "BlockingEndpoint":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def _call(self, coro: Coroutine[Any, Any, Any]) -> Any:
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result()
