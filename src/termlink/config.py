"""
Endpoint configuration.

EndpointConfig is the validated, immutable description of a listener:
bind address and port, the password digest, the handshake timeout, the
text encoding and the polling intervals used by the state machine.
"""

import codecs
import socket
from dataclasses import dataclass
from ipaddress import ip_address
from typing import Optional

import structlog

from .digest import DIGEST_SIZE, sha256_digest
from .exceptions import ConfigError

logger = structlog.get_logger(__name__)

ANY_ADDRESS = "0.0.0.0"
DEFAULT_ENCODING = "ascii"
DEFAULT_AUTH_TIMEOUT = 60.0
# Seconds between disconnect polls
DEFAULT_LIVENESS_INTERVAL = 0.001
DEFAULT_AUTH_POLL_INTERVAL = 0.1


@dataclass(frozen=True)
class EndpointConfig:
    """
    Validated listener configuration.

    Use EndpointConfig.create() to build one from user input; it parses the
    address, resolves port 0 to a free port and hashes the password.
    """
    bind_address: str
    bind_port: int
    password_hash: Optional[bytes] = None
    auth_timeout: float = DEFAULT_AUTH_TIMEOUT
    encoding: str = DEFAULT_ENCODING
    newline: str = "\n"
    liveness_interval: float = DEFAULT_LIVENESS_INTERVAL
    auth_poll_interval: float = DEFAULT_AUTH_POLL_INTERVAL

    def __post_init__(self):
        if isinstance(self.bind_port, bool) or not isinstance(self.bind_port, int):
            raise ConfigError(f"Port must be an integer, got {self.bind_port!r}")
        if not 1 <= self.bind_port <= 65535:
            raise ConfigError(
                "Port is less than 1 or greater than 65535",
                details={"port": self.bind_port},
            )
        if self.password_hash is not None and len(self.password_hash) != DIGEST_SIZE:
            raise ConfigError("Password hash must be a 32-byte SHA-256 digest")
        for name in ("auth_timeout", "liveness_interval", "auth_poll_interval"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive", details={name: getattr(self, name)})

    @classmethod
    def create(
        cls,
        bind_address: Optional[str] = None,
        port: int = 0,
        password: Optional[str] = None,
        encoding: str = DEFAULT_ENCODING,
        auth_timeout: float = DEFAULT_AUTH_TIMEOUT,
        newline: str = "\n",
        liveness_interval: float = DEFAULT_LIVENESS_INTERVAL,
        auth_poll_interval: float = DEFAULT_AUTH_POLL_INTERVAL,
    ) -> "EndpointConfig":
        """
        Build a configuration from raw bind parameters.

        Args:
            bind_address: IPv4/IPv6 literal, empty or None to bind every interface
            port: Port to listen on, 0 to let the OS pick a free one
            password: Optional plaintext password; only its digest is kept
            encoding: Codec used for text I/O and for hashing the password
            auth_timeout: Handshake window in seconds
            newline: Terminator appended by write_line
            liveness_interval: Seconds between disconnect polls
            auth_poll_interval: Seconds between handshake data-wait polls

        Raises:
            ConfigError: On any invalid parameter
        """
        address = cls._parse_address(bind_address)
        encoding = cls._resolve_encoding(encoding)

        if isinstance(port, bool) or not isinstance(port, int):
            raise ConfigError(f"Port must be an integer, got {port!r}")
        if not 0 <= port <= 65535:
            raise ConfigError(
                "Port is less than 0 or greater than 65535",
                details={"port": port},
            )
        if port == 0:
            port = find_free_port(address)

        password_hash = None
        if password is not None:
            try:
                password_hash = sha256_digest(password.encode(encoding))
            except UnicodeEncodeError as e:
                raise ConfigError(
                    f"Password cannot be encoded with {encoding}"
                ) from e

        return cls(
            bind_address=address,
            bind_port=port,
            password_hash=password_hash,
            auth_timeout=auth_timeout,
            encoding=encoding,
            newline=newline,
            liveness_interval=liveness_interval,
            auth_poll_interval=auth_poll_interval,
        )

    @property
    def auth_required(self) -> bool:
        """True when clients must pass the password handshake."""
        return self.password_hash is not None

    @property
    def address_family(self) -> socket.AddressFamily:
        return socket.AF_INET6 if ip_address(self.bind_address).version == 6 else socket.AF_INET

    def encode(self, text: str) -> bytes:
        return text.encode(self.encoding, errors="replace")

    def decode(self, data: bytes) -> str:
        return data.decode(self.encoding, errors="replace")

    @staticmethod
    def _parse_address(value: Optional[str]) -> str:
        if not value:
            return ANY_ADDRESS
        try:
            return str(ip_address(value.strip()))
        except ValueError as e:
            raise ConfigError(f"Invalid IP address: {value}") from e

    @staticmethod
    def _resolve_encoding(value: str) -> str:
        try:
            return codecs.lookup(value).name
        except (LookupError, TypeError) as e:
            raise ConfigError(f"Unknown encoding: {value}") from e


def find_free_port(address: str = ANY_ADDRESS) -> int:
    """
    Ask the OS for a free ephemeral port on the given address.

    Raises:
        ConfigError: If no port could be obtained
    """
    family = socket.AF_INET6 if ip_address(address).version == 6 else socket.AF_INET
    try:
        with socket.socket(family, socket.SOCK_STREAM) as probe:
            probe.bind((address, 0))
            port = probe.getsockname()[1]
    except OSError as e:
        raise ConfigError(
            "Unable to find an available free port, set the port manually",
            details={"address": address},
        ) from e

    logger.debug("Resolved free port", address=address, port=port)
    return port
