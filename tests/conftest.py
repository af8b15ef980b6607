"""Shared fixtures and helpers for termlink tests."""

import asyncio
import time

import pytest_asyncio

from termlink.config import EndpointConfig
from termlink.endpoint import Endpoint


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.005) -> bool:
    """Poll predicate until it is true or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        await asyncio.sleep(interval)
    return predicate()


async def connect(endpoint: Endpoint):
    """Open a client connection to the endpoint and wait until it is accepted."""
    reader, writer = await asyncio.open_connection("127.0.0.1", endpoint.port)
    assert await endpoint.wait_for_client(timeout=2.0)
    return reader, writer


async def close_writer(writer: asyncio.StreamWriter) -> None:
    writer.close()
    try:
        await writer.wait_closed()
    except (ConnectionError, OSError):
        pass


@pytest_asyncio.fixture
async def open_endpoint():
    """Start an endpoint on a free loopback port."""
    endpoint = Endpoint(EndpointConfig.create("127.0.0.1", 0))
    await endpoint.start()
    yield endpoint
    await endpoint.stop()


@pytest_asyncio.fixture
async def secured_endpoint():
    """Start a password-protected endpoint with a short handshake window."""
    config = EndpointConfig.create("127.0.0.1", 0, password="secret", auth_timeout=1.0)
    endpoint = Endpoint(config)
    await endpoint.start()
    yield endpoint
    await endpoint.stop()
