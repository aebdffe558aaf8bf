"""MCP tool handlers for syncing the configured project stage.

Defines two tools:

- ``env_sync`` -- run one sync pass (with optional dry-run and direction).
- ``env_sync_status`` -- compare local and remote without writing.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...context import EnvZipContext
from ...core.async_utils import run_sync_limited
from ...sync.engine import DIRECTIONS
from ...sync.reporter import (
    format_dry_run_preview,
    format_status,
    format_sync_report,
    report_to_json,
    status_to_json,
)
from .errors import build_error_response
from .registry import ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


ENV_SYNC_TOOL = types.Tool(
    name="env_sync",
    description=(
        "Synchronize the local .env file with the remote project stage. "
        "Keys changed on both sides are reported as conflicts and "
        "resolved by the configured policy (remote wins by default)."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=True,
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "dry_run": {
                "type": "boolean",
                "default": False,
                "description": "Preview changes without applying them",
            },
            "direction": {
                "type": "string",
                "enum": list(DIRECTIONS),
                "default": "bidirectional",
                "description": "Limit the pass to pulling or pushing",
            },
        },
        "required": [],
    },
)

ENV_SYNC_STATUS_TOOL = types.Tool(
    name="env_sync_status",
    description=(
        "Show pending pulls, pushes and conflicts between the local .env "
        "file and the remote project stage, and the last sync time."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=True,
    ),
    inputSchema={"type": "object", "properties": {}, "required": []},
)

SYNC_TOOLS: list[types.Tool] = [ENV_SYNC_TOOL, ENV_SYNC_STATUS_TOOL]


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


async def _handle_env_sync(
    ctx: EnvZipContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``env_sync`` tool."""
    dry_run = bool(args.get("dry_run", False))
    direction = args.get("direction", "bidirectional")
    if direction not in DIRECTIONS:
        return build_error_response(
            "validation_error",
            f"Unknown direction '{direction}'",
            f"Use one of {list(DIRECTIONS)}.",
        )

    report = await run_sync_limited(
        ctx.engine.run, dry_run=dry_run, direction=direction
    )

    if dry_run:
        text = format_dry_run_preview(report)
    else:
        text = format_sync_report(report)

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=report_to_json(report),
        isError=not report.success,
    )


async def _handle_env_sync_status(
    ctx: EnvZipContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``env_sync_status`` tool."""
    status = await run_sync_limited(ctx.engine.status)
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_status(status))],
        structuredContent=status_to_json(status),
    )


SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=ENV_SYNC_TOOL,
        permissions=frozenset({"ENV_SYNC"}),
        handler=_handle_env_sync,
    ),
    ToolSpec(
        tool=ENV_SYNC_STATUS_TOOL,
        permissions=frozenset({"ENV_VIEW"}),
        handler=_handle_env_sync_status,
    ),
]
