"""
termlink Core Module

Settings and logging setup shared by the CLI and embedding applications.
"""

from .config import (
    Settings,
    EndpointSettings,
    LogSettings,
    get_settings,
)
from .logging import setup_logging, get_logger

__all__ = [
    # Settings
    "Settings",
    "EndpointSettings",
    "LogSettings",
    "get_settings",
    # Logging
    "setup_logging",
    "get_logger",
]
