"""
Endpoint domain models.

Status enums for the listener and the single client slot, plus the
Pydantic models describing a connected peer and an endpoint snapshot.
"""

from datetime import datetime
from enum import IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ServerStatus(IntEnum):
    """Listener status."""
    NOT_ACTIVE = 0
    ACTIVE = 1


class ClientStatus(IntEnum):
    """Status of the current client slot."""
    UNKNOWN_OR_DISCONNECTED = 0
    CONNECTED = 1
    AUTH_NO_PASSWORD = 2
    AUTH_PASSWORD = 3
    AUTH_WRONG_PASSWORD = 4
    AUTH_TIMEOUT = 5

    @property
    def is_connected(self) -> bool:
        """True for every variant that implies a live socket."""
        return self is not ClientStatus.UNKNOWN_OR_DISCONNECTED

    @property
    def is_authenticated(self) -> bool:
        return self in (ClientStatus.AUTH_NO_PASSWORD, ClientStatus.AUTH_PASSWORD)


class ClientIdentity(BaseModel):
    """Remote end of the accepted connection."""

    model_config = ConfigDict(frozen=True)

    address: str = Field(
        ...,
        description="Client IP address"
    )
    port: int = Field(
        ...,
        ge=0,
        le=65535,
        description="Client port"
    )
    connected_at: datetime = Field(
        default_factory=datetime.now,
        description="When the connection was accepted"
    )

    def __str__(self) -> str:
        return f"{self.address}:{self.port}"


class EndpointInfo(BaseModel):
    """Point-in-time snapshot of an endpoint."""

    model_config = ConfigDict(from_attributes=True)

    bind_address: str = Field(
        ...,
        description="Listener bind address"
    )
    bind_port: int = Field(
        ...,
        ge=1,
        le=65535,
        description="Listener bind port"
    )
    auth_required: bool = Field(
        ...,
        description="Whether clients must complete the password handshake"
    )
    server_status: ServerStatus = Field(
        default=ServerStatus.NOT_ACTIVE,
        description="Listener status"
    )
    client_status: ClientStatus = Field(
        default=ClientStatus.UNKNOWN_OR_DISCONNECTED,
        description="Status of the client slot"
    )
    client: Optional[ClientIdentity] = Field(
        default=None,
        description="Connected client, if any"
    )
