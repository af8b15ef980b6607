"""
termlink Configuration using Pydantic Settings.

Provides strongly typed configuration with environment variable support,
validation, and sensible defaults.

Environment variables use TERMLINK_ prefix:
- TERMLINK_HOST, TERMLINK_PORT, TERMLINK_PASSWORD (endpoint settings)
- TERMLINK_AUTH_TIMEOUT, TERMLINK_ENCODING (endpoint settings)
- TERMLINK_LOG_LEVEL, TERMLINK_LOG_FORMAT (log settings)
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..config import (
    DEFAULT_AUTH_POLL_INTERVAL,
    DEFAULT_AUTH_TIMEOUT,
    DEFAULT_ENCODING,
    DEFAULT_LIVENESS_INTERVAL,
    EndpointConfig,
)


def get_project_root() -> Path:
    """Get the project root directory."""
    # Check for environment override
    if env_home := os.getenv("TERMLINK_HOME"):
        return Path(env_home)

    # Default to current working directory
    return Path.cwd()


class EndpointSettings(BaseSettings):
    """Listener configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="TERMLINK_",
        extra="ignore",
    )

    host: str = Field(
        default="127.0.0.1",
        description="Bind address, empty for every interface"
    )
    port: int = Field(
        default=0,
        ge=0,
        le=65535,
        description="Bind port, 0 to pick a free one"
    )
    password: Optional[str] = Field(
        default=None,
        description="Handshake password, unset to disable the handshake"
    )
    auth_timeout: float = Field(
        default=DEFAULT_AUTH_TIMEOUT,
        gt=0,
        description="Handshake timeout in seconds"
    )
    encoding: str = Field(
        default=DEFAULT_ENCODING,
        description="Text encoding for line I/O and the password"
    )
    newline: str = Field(
        default="\n",
        description="Line terminator written by write_line"
    )
    liveness_interval: float = Field(
        default=DEFAULT_LIVENESS_INTERVAL,
        gt=0,
        description="Seconds between disconnect polls"
    )
    auth_poll_interval: float = Field(
        default=DEFAULT_AUTH_POLL_INTERVAL,
        gt=0,
        description="Seconds between handshake data-wait polls"
    )

    def to_endpoint_config(self) -> EndpointConfig:
        """
        Build the validated endpoint configuration.

        Raises:
            ConfigError: If the address, port or encoding is invalid
        """
        return EndpointConfig.create(
            bind_address=self.host,
            port=self.port,
            password=self.password,
            encoding=self.encoding,
            auth_timeout=self.auth_timeout,
            newline=self.newline,
            liveness_interval=self.liveness_interval,
            auth_poll_interval=self.auth_poll_interval,
        )


class LogSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="TERMLINK_LOG_",
        extra="ignore",
    )

    level: str = Field(
        default="INFO",
        description="Log level"
    )
    format: str = Field(
        default="console",
        description="Log format (json, console)"
    )
    file: Optional[str] = Field(
        default=None,
        description="Log file path"
    )

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator('format')
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        v_lower = v.lower()
        if v_lower not in {"json", "console"}:
            raise ValueError(f"Invalid log format: {v}. Must be 'json' or 'console'")
        return v_lower


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from:
    1. Environment variables (TERMLINK_* prefix)
    2. YAML config file (config/config.yaml)
    3. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="TERMLINK_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    endpoint: EndpointSettings = Field(default_factory=EndpointSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    @classmethod
    def load_from_yaml(cls, config_file: Path) -> "Settings":
        """Load settings from YAML file, falling back to environment and defaults."""
        data = {}

        if config_file.exists():
            with open(config_file, 'r') as f:
                data = yaml.safe_load(f) or {}

        settings_dict = {}

        if 'endpoint' in data:
            settings_dict['endpoint'] = EndpointSettings(**data['endpoint'])
        if 'log' in data:
            settings_dict['log'] = LogSettings(**data['log'])

        return cls(**settings_dict)

    def save_to_yaml(self, config_file: Path) -> None:
        """Save settings to YAML file."""
        config_file.parent.mkdir(parents=True, exist_ok=True)

        data = {
            'endpoint': {
                'host': self.endpoint.host,
                'port': self.endpoint.port,
                'password': self.endpoint.password,
                'auth_timeout': self.endpoint.auth_timeout,
                'encoding': self.endpoint.encoding,
                'newline': self.endpoint.newline,
                'liveness_interval': self.endpoint.liveness_interval,
                'auth_poll_interval': self.endpoint.auth_poll_interval,
            },
            'log': {
                'level': self.log.level,
                'format': self.log.format,
                'file': self.log.file,
            },
        }

        with open(config_file, 'w') as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached singleton).

    Reads config/config.yaml under the project root when present, then
    applies environment variable overrides.
    """
    config_file = get_project_root() / "config" / "config.yaml"

    if config_file.exists():
        return Settings.load_from_yaml(config_file)

    return Settings()
