"""Centralized gateway settings using pydantic-settings.

All environment variable reads are consolidated here. Import `get_settings`
from this module rather than reading os.environ directly.
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Widths a big-endian length header may take on the host side
SUPPORTED_HEADER_LENGTHS = (1, 2, 4, 8)


class Settings(BaseSettings):
    """Gateway settings loaded from environment variables.

    All env vars are prefixed with OPCUA_GATEWAY_ (case-insensitive).
    """

    model_config = SettingsConfigDict(
        env_prefix="OPCUA_GATEWAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging (always written to stderr, stdout carries the port protocol)
    log_format: str = "console"
    log_level: str = "INFO"

    # Framing: byte width of the length header, same for both directions
    header_length: int = 2

    # OPC UA client
    connect_timeout: float = 10.0
    watchdog_interval: float = 5.0
    max_reconnect_delay: int = 30

    # Address space walk
    max_nodes_per_level: int = 1000
    max_browse_depth: int = 10

    @field_validator("header_length")
    @classmethod
    def _check_header_length(cls, value: int) -> int:
        if value not in SUPPORTED_HEADER_LENGTHS:
            raise ValueError(
                f"header_length must be one of {SUPPORTED_HEADER_LENGTHS}, got {value}"
            )
        return value


@lru_cache
def get_settings() -> Settings:
    """Return the cached gateway settings singleton."""
    return Settings()
