"""MCP tool handlers for version history and rollback.

Defines two tools:

- ``env_history`` -- list version records of one key or of the stage.
- ``env_rollback`` -- restore an entry, or one of its fields, to a
  recorded version.  The rollback is itself recorded as a new version.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...context import EnvZipContext
from ...core.async_utils import run_sync_limited
from ...sync.reporter import format_history, history_to_json
from ...versioning.rollback import RESTORABLE_FIELDS
from .errors import build_error_response
from .registry import ToolSpec

logger = logging.getLogger(__name__)


ENV_HISTORY_TOOL = types.Tool(
    name="env_history",
    description=(
        "List version history, newest first. With 'key', the full history "
        "of that variable; otherwise recent changes across the stage "
        "(or the whole project with all_stages=true)."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=True,
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "key": {"type": "string", "description": "Variable name"},
            "limit": {
                "type": "integer",
                "minimum": 1,
                "description": "Maximum number of records",
            },
            "all_stages": {
                "type": "boolean",
                "default": False,
                "description": "Include every stage of the project",
            },
        },
        "required": [],
    },
)

ENV_ROLLBACK_TOOL = types.Tool(
    name="env_rollback",
    description=(
        "Restore a variable to the state recorded by a version. With "
        "'field', only that field is restored to its value before the "
        "version. History is never rewritten: a new version is recorded."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=True,
        idempotentHint=False,
        openWorldHint=True,
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "version_id": {
                "type": "string",
                "description": "Version id from env_history",
            },
            "field": {
                "type": "string",
                "enum": list(RESTORABLE_FIELDS),
                "description": "Restore only this field",
            },
        },
        "required": ["version_id"],
    },
)

HISTORY_TOOLS: list[types.Tool] = [ENV_HISTORY_TOOL, ENV_ROLLBACK_TOOL]


async def _handle_env_history(
    ctx: EnvZipContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``env_history`` tool."""
    limit = int(args.get("limit") or ctx.settings.history_limit)
    key = args.get("key")
    if key:
        records = await run_sync_limited(
            ctx.ledger.history, ctx.entries.entity_id(key)
        )
        records = records[:limit]
    elif args.get("all_stages"):
        records = await run_sync_limited(
            ctx.ledger.history_for_container, ctx.config.project_key, limit
        )
    else:
        records = await run_sync_limited(
            ctx.ledger.history_for_stage,
            ctx.config.project_key,
            ctx.config.stage,
            limit,
        )
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_history(records))],
        structuredContent={"records": history_to_json(records)},
    )


async def _handle_env_rollback(
    ctx: EnvZipContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``env_rollback`` tool."""
    version_id = args.get("version_id")
    if not version_id:
        return build_error_response(
            "validation_error",
            "version_id is required",
            "Use env_history to find the version id to roll back to.",
        )
    field = args.get("field")

    warnings_start = len(ctx.entries.warnings)
    if field:
        entry = await run_sync_limited(
            ctx.rollback.rollback_field, version_id, field
        )
    else:
        entry = await run_sync_limited(
            ctx.rollback.rollback_entity, version_id
        )
    warnings = ctx.entries.warnings[warnings_start:]

    text = f"Rolled back {entry.key} to {entry.value!r}"
    if warnings:
        text += "\n\nWarnings:\n" + "\n".join(f"  {w}" for w in warnings)
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent={
            "entry": entry.model_dump(mode="json"),
            "warnings": warnings,
        },
    )


HISTORY_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=ENV_HISTORY_TOOL,
        permissions=frozenset({"ENV_VIEW"}),
        handler=_handle_env_history,
    ),
    ToolSpec(
        tool=ENV_ROLLBACK_TOOL,
        permissions=frozenset({"ENV_ROLLBACK"}),
        handler=_handle_env_rollback,
    ),
]
