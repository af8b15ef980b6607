"""Tests for the blocking endpoint facade."""

import socket
import time

import pytest

from termlink.blocking import BlockingEndpoint
from termlink.config import EndpointConfig
from termlink.exceptions import NotAuthenticated
from termlink.models import ClientStatus, ServerStatus


def wait_until(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.fixture
def blocking_endpoint():
    config = EndpointConfig.create("127.0.0.1", 0, password="secret", auth_timeout=1.0)
    endpoint = BlockingEndpoint(config)
    endpoint.start()
    yield endpoint
    endpoint.close()


class TestBlockingEndpoint:
    """Tests for BlockingEndpoint."""

    def test_start_stop(self):
        endpoint = BlockingEndpoint(EndpointConfig.create("127.0.0.1", 0))
        try:
            endpoint.start()
            assert endpoint.status is ServerStatus.ACTIVE
            endpoint.stop()
            assert endpoint.status is ServerStatus.NOT_ACTIVE
        finally:
            endpoint.close()

    def test_context_manager(self):
        with BlockingEndpoint(EndpointConfig.create("127.0.0.1", 0)) as endpoint:
            assert endpoint.status is ServerStatus.ACTIVE
            with socket.create_connection(("127.0.0.1", endpoint.port), timeout=2):
                assert endpoint.wait_for_client(timeout=2.0) is True
                assert endpoint.client.status is ClientStatus.AUTH_NO_PASSWORD
        assert endpoint.status is ServerStatus.NOT_ACTIVE

    def test_handshake_and_io(self, blocking_endpoint):
        """Test the same guard and handshake contract as the async API."""
        with socket.create_connection(("127.0.0.1", blocking_endpoint.port), timeout=2) as sock:
            assert blocking_endpoint.wait_for_client(timeout=2.0)
            client = blocking_endpoint.client

            with pytest.raises(NotAuthenticated):
                client.write_line("too early")

            sock.sendall(b"secret")
            assert client.ask_auth() is True
            assert client.status is ClientStatus.AUTH_PASSWORD
            assert client.is_auth is True

            client.write_line("hello")
            assert sock.recv(64) == b"hello\n"

            sock.sendall(b"ping\n")
            assert client.read_line() == "ping"

    def test_timeout(self, blocking_endpoint):
        with socket.create_connection(("127.0.0.1", blocking_endpoint.port), timeout=2):
            assert blocking_endpoint.wait_for_client(timeout=2.0)
            assert blocking_endpoint.client.ask_auth() is False
            assert blocking_endpoint.client.status is ClientStatus.AUTH_TIMEOUT

    def test_disconnect_and_reaccept(self, blocking_endpoint):
        first = socket.create_connection(("127.0.0.1", blocking_endpoint.port), timeout=2)
        assert blocking_endpoint.wait_for_client(timeout=2.0)
        first.close()
        assert wait_until(lambda: not blocking_endpoint.client.connected)

        with socket.create_connection(("127.0.0.1", blocking_endpoint.port), timeout=2) as second:
            assert blocking_endpoint.wait_for_client(timeout=2.0)
            assert blocking_endpoint.client.port == second.getsockname()[1]

    def test_close_is_idempotent(self):
        endpoint = BlockingEndpoint(EndpointConfig.create("127.0.0.1", 0))
        endpoint.start()
        endpoint.close()
        endpoint.close()
        assert endpoint.status is ServerStatus.NOT_ACTIVE
