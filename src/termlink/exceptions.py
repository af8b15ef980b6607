"""
Exception hierarchy for termlink.

All errors raised by the endpoint inherit from TermlinkError so callers can
catch every library error with a single except clause. Transport failures
are never raised: guarded I/O reports them as empty results.
"""

from typing import Optional


class TermlinkError(Exception):
    """Base exception for all termlink errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# Configuration

class ConfigError(TermlinkError):
    """
    Invalid endpoint configuration.

    Raised at construction for a bad bind address, an out-of-range port,
    an unknown encoding or when no free port could be found.
    """
    pass


# Listener lifecycle

class StartError(TermlinkError):
    """The listener could not be bound (address in use, permission denied)."""
    pass


class StopError(TermlinkError):
    """
    Releasing the listener or the live connection failed.

    The endpoint status is already NOT_ACTIVE when this is raised.
    """
    pass


# Protocol usage

class AuthNotApplicable(TermlinkError):
    """The handshake was requested but the endpoint has no password configured."""
    pass


class NotAuthenticated(TermlinkError):
    """Guarded I/O was attempted before the client completed the handshake."""
    pass
