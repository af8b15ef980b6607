"""
termlink - Single-client TCP endpoint with password handshake

A small listener library with:
- One client at a time, automatic re-accept after disconnect
- Optional SHA-256 password handshake with a timeout window
- Guarded byte and line I/O, async and blocking
"""

__version__ = "1.0.0"
__author__ = "termlink Team"

from .config import EndpointConfig
from .endpoint import Endpoint, Client
from .blocking import BlockingEndpoint, BlockingClient
from .models import ServerStatus, ClientStatus, ClientIdentity, EndpointInfo
from .exceptions import (
    TermlinkError,
    ConfigError,
    StartError,
    StopError,
    AuthNotApplicable,
    NotAuthenticated,
)

__all__ = [
    "EndpointConfig",
    "Endpoint",
    "Client",
    "BlockingEndpoint",
    "BlockingClient",
    "ServerStatus",
    "ClientStatus",
    "ClientIdentity",
    "EndpointInfo",
    "TermlinkError",
    "ConfigError",
    "StartError",
    "StopError",
    "AuthNotApplicable",
    "NotAuthenticated",
]
