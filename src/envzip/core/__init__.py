"""Async helpers shared between the CLI, the watcher and the MCP server."""

from .async_utils import run_sync

__all__ = ["run_sync"]
