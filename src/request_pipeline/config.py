"""Request pipeline configuration from environment variables."""

import os
from dataclasses import dataclass, field
from typing import Dict

from request_pipeline.errors import ConfigurationError


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}", cause=e) from e


def _float_from_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}", cause=e) from e


@dataclass
class PipelineConfig:
    """Request pipeline behavior and transport configuration.

    Load from environment using PipelineConfig.from_env().
    """

    # Fallback for descriptors that do not name a base URL
    base_url: str = ""

    # Test-environment toggles
    simulate_offline: bool = False
    cache_enabled: bool = True

    # Transport (aiohttp session)
    request_timeout_seconds: float = 60.0
    max_connections: int = 100
    max_connections_per_host: int = 10
    chunk_size: int = 64 * 1024

    # Applied before descriptor headers
    default_headers: Dict[str, str] = field(
        default_factory=lambda: {"Accept": "application/json"}
    )

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Load configuration from environment variables.

        Optional environment variables (with defaults):
            REQUEST_BASE_URL: "" (default)
            SIMULATE_NO_NETWORK: unset (any value fails every request as offline)
            IGNORE_REQUEST_CACHE: unset (any value bypasses response caches)
            REQUEST_TIMEOUT_SECONDS: 60 (default)
            REQUEST_MAX_CONNECTIONS: 100 (default)
            REQUEST_MAX_CONNECTIONS_PER_HOST: 10 (default)
            REQUEST_CHUNK_SIZE: 65536 (default, bytes per progress update)

        Raises:
            ConfigurationError: If a numeric variable cannot be parsed
        """
        config = cls(
            base_url=os.getenv("REQUEST_BASE_URL", ""),
            simulate_offline="SIMULATE_NO_NETWORK" in os.environ,
            cache_enabled="IGNORE_REQUEST_CACHE" not in os.environ,
            request_timeout_seconds=_float_from_env("REQUEST_TIMEOUT_SECONDS", 60.0),
            max_connections=_int_from_env("REQUEST_MAX_CONNECTIONS", 100),
            max_connections_per_host=_int_from_env("REQUEST_MAX_CONNECTIONS_PER_HOST", 10),
            chunk_size=_int_from_env("REQUEST_CHUNK_SIZE", 64 * 1024),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigurationError: If a value is out of range
        """
        if self.request_timeout_seconds <= 0:
            raise ConfigurationError("request_timeout_seconds must be positive")
        if self.max_connections < 1 or self.max_connections_per_host < 1:
            raise ConfigurationError("connection limits must be at least 1")
        if self.chunk_size < 1:
            raise ConfigurationError("chunk_size must be at least 1")
