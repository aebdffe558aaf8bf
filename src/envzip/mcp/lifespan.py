"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from ..context import build_context, load_settings
from ..core.async_utils import init_semaphore, run_sync
from ..errors import ConfigError, EnvZipError

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Resolve configuration: CLI > env vars (.env) > envzip.config > YAML > defaults
    - Build the stores and engines for the configured project stage
    - Check that the remote store answers (fail fast otherwise)

    Args:
        config_overrides: Optional dict with config values from CLI

    Yields:
        Dict with 'ctx' key containing the ``EnvZipContext``

    Raises:
        RuntimeError: If configuration is invalid or the remote is unreachable.
    """
    logger.info("MCP server starting...")
    _stderr_print("EnvZip MCP Server starting...")

    try:
        config, unified = load_settings(config_overrides)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print(
            "  Run 'envzip init' or set ENVZIP_API_KEY, ENVZIP_PROJECT_KEY, "
            "ENVZIP_LOCAL_ENV_PATH, ENVZIP_STAGE."
        )
        raise RuntimeError(f"Configuration error: {e}") from e

    ctx = build_context(config, unified.sync)
    _stderr_print(f"  Project: {config.project_key} ({config.stage})")
    _stderr_print(f"  Local file: {config.local_env_path}")

    logger.info("Checking remote store at %s", config.remote_endpoint)
    _stderr_print(f"  Checking remote store at {config.remote_endpoint}...")
    try:
        entries = await run_sync(
            ctx.remote.list, config.project_key, config.stage
        )
    except EnvZipError as e:
        logger.error("Remote store check failed: %s", e)
        _stderr_print(f"ERROR: Remote store check failed: {e}")
        raise RuntimeError(f"Remote store check failed: {e}") from e

    _stderr_print(f"  Remote variables: {len(entries)}")
    init_semaphore(unified.remote.max_parallel_requests)
    _stderr_print("Server ready. Waiting for MCP client connection...")

    yield {"ctx": ctx}

    logger.info("MCP server shutting down")
    _stderr_print("EnvZip MCP Server shutting down.")
