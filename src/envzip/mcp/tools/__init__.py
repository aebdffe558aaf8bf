"""MCP tool handlers for envzip operations.

This package wraps the sync engine, ledger and rollback engine with
async handlers and structured error responses.
"""

from .errors import build_error_response, translate_envzip_error
from .history import HISTORY_SPECS, HISTORY_TOOLS
from .registry import ToolRegistry, ToolSpec, load_permissions_file
from .sync import SYNC_SPECS, SYNC_TOOLS

ALL_SPECS: list[ToolSpec] = SYNC_SPECS + HISTORY_SPECS

__all__ = [
    "build_error_response",
    "translate_envzip_error",
    "ToolSpec",
    "ToolRegistry",
    "load_permissions_file",
    "ALL_SPECS",
    "SYNC_SPECS",
    "SYNC_TOOLS",
    "HISTORY_SPECS",
    "HISTORY_TOOLS",
]
