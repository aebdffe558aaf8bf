"""Unified YAML configuration schema for envzip.

Defines Pydantic models for the optional YAML config with dedicated
sections for the remote connection, sync behaviour and logging.  The
``remote`` section feeds ``load_config()`` as fallbacks; the ``sync``
and ``logging`` sections are used directly by the CLI and MCP server.

Usage:
    from envzip.config_schema import build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=unified.remote.fallbacks())
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class RemoteConfig(BaseModel):
    """Remote store connection settings.

    All fields are optional: ``envzip.config``, env vars and CLI args
    can supply them at runtime instead.
    """

    api_key: str | None = Field(default=None, description="API key")
    project_key: str | None = Field(
        default=None, description="Project identifier"
    )
    local_env_path: str | None = Field(
        default=None, description="Path to the local .env file"
    )
    stage: str | None = Field(default=None, description="Environment stage")
    remote_endpoint: str | None = Field(
        default=None, description="Remote API endpoint"
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    max_parallel_requests: int = Field(
        default=2,
        ge=1,
        le=100,
        description="Maximum concurrent requests from the MCP server (1-100)",
    )

    model_config = {"frozen": True}

    def fallbacks(self) -> dict:
        """Values usable as ``load_config(yaml_fallbacks=...)``."""
        return self.model_dump(exclude_none=True)


class SyncSettings(BaseModel):
    """Sync engine behaviour."""

    state_dir: str = Field(
        default=".envzip", description="Directory for sync state and history"
    )
    conflict_strategy: Literal["remote-wins", "local-wins", "newest-wins"] = (
        Field(default="remote-wins", description="Conflict policy")
    )
    poll_interval: float = Field(
        default=1.0,
        gt=0,
        description="Seconds between local file checks in watch mode",
    )
    remote_poll_interval: float = Field(
        default=5.0,
        gt=0,
        description="Seconds between remote polls for the HTTP store",
    )
    history_limit: int = Field(
        default=50, ge=1, description="Default number of history records"
    )
    history_backend: Literal["remote", "local"] = Field(
        default="remote",
        description=(
            "Where version records live: the remote API or a JSON file in state_dir"
        ),
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL),
            case-insensitive.  Unset means the mode default: INFO for
            the CLI, WARNING for the MCP server.
        file: Optional log file path.
    """

    level: LogLevel | None = Field(default=None, description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully; anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
