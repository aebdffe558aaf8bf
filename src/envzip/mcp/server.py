"""MCP Server for envzip using stdio transport.

Exposes sync, status, history and rollback of the configured project
stage as MCP tools.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..context import EnvZipContext, logging_settings
from ..logger import setup_logging
from .lifespan import server_lifespan
from .tools import (
    ALL_SPECS,
    ToolRegistry,
    build_error_response,
    load_permissions_file,
)

logger = logging.getLogger(__name__)

server = Server("envzip")

# Initialized in main()
_ctx: EnvZipContext | None = None
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_context() -> EnvZipContext:
    """Get the global EnvZipContext.

    Raises:
        RuntimeError: If the server lifespan has not started.
    """
    if _ctx is None:
        raise RuntimeError(
            "EnvZipContext not initialized. Server lifespan not started."
        )
    return _ctx


def set_context(ctx: EnvZipContext | None) -> None:
    """Set (or clear with None) the global EnvZipContext."""
    global _ctx
    _ctx = ctx


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    """Set (or clear with None) the global ToolRegistry."""
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """Return all registered (and permitted) tools."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Dispatch a tool call through the ToolRegistry."""
    ctx = get_context()
    try:
        return await get_registry().call_tool(name, arguments, ctx)
    except ValueError as e:
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Logging goes to a file only, since stdout carries the protocol.

    Args:
        config_overrides: Optional dict with config values to override
            (api_key, project_key, local_env_path, stage,
            remote_endpoint, insecure, log_file, permissions_file)
    """
    overrides = config_overrides or {}
    log_cfg = logging_settings()
    setup_logging(
        mode="mcp",
        log_file=overrides.get("log_file") or log_cfg.file,
        level=log_cfg.level,
    )

    permissions_file = overrides.get("permissions_file")
    allowed_permissions = None
    if permissions_file:
        allowed_permissions = load_permissions_file(permissions_file)
        logger.info(
            "Loaded %d permissions from %s",
            len(allowed_permissions),
            permissions_file,
        )

    registry = ToolRegistry(ALL_SPECS, allowed_permissions)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(ALL_SPECS),
    )
    set_registry(registry)

    # set_context() is called here rather than inside the lifespan so that
    # running this file as __main__ updates the same module globals.
    async with server_lifespan(config_overrides=overrides) as state:
        set_context(state["ctx"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="envzip",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_context(None)
            set_registry(None)


def run() -> None:
    """Entry point that parses CLI arguments and handles startup errors."""
    parser = argparse.ArgumentParser(
        description="EnvZip MCP Server - sync and version .env files from an agent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with envzip.config / ENVZIP_* settings from the current directory
  envzip-mcp

  # Read-only agent
  envzip-mcp --permissions-file readonly.txt
        """,
    )
    parser.add_argument("--api-key", help="API key (overrides ENVZIP_API_KEY)")
    parser.add_argument("--project-key", help="Project key")
    parser.add_argument("--env-file", help="Local .env path")
    parser.add_argument("--stage", help="Environment stage")
    parser.add_argument("--endpoint", help="Remote API endpoint URL")
    parser.add_argument(
        "--insecure", action="store_true", help="Skip SSL verification"
    )
    parser.add_argument("--log-file", help="Log file path")
    parser.add_argument(
        "--permissions-file",
        help="File listing allowed permissions (ENV_VIEW, ENV_SYNC, ENV_ROLLBACK)",
    )
    args = parser.parse_args()

    config_overrides: dict = {}
    for name, value in (
        ("api_key", args.api_key),
        ("project_key", args.project_key),
        ("local_env_path", args.env_file),
        ("stage", args.stage),
        ("remote_endpoint", args.endpoint),
        ("log_file", args.log_file),
        ("permissions_file", args.permissions_file),
    ):
        if value:
            config_overrides[name] = value
    if args.insecure:
        config_overrides["insecure"] = True

    if config_overrides:
        shown = [k for k in config_overrides if k != "api_key"]
        print(
            f"Config overrides from CLI: {', '.join(shown)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
