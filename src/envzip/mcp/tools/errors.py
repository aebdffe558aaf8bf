"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so an agent can
recover without human intervention.
"""

import mcp.types as types

from ...errors import (
    ConfigError,
    EnvZipError,
    NotFoundError,
    RemoteUnavailableError,
    VersionRecordError,
)


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, config_error,
            remote_unavailable, history_error, validation_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "Version abc not found", "Use env_history to list versions.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_envzip_error(error: EnvZipError) -> types.CallToolResult:
    """Map an envzip exception to a structured error response."""
    match error:
        case NotFoundError():
            return build_error_response(
                "not_found",
                str(error),
                "Use env_history to list valid version ids and changed fields.",
            )
        case RemoteUnavailableError():
            return build_error_response(
                "remote_unavailable",
                str(error),
                "The local file was not modified. Retry the call later.",
            )
        case ConfigError():
            return build_error_response(
                "config_error",
                str(error),
                "Check envzip.config or the ENVZIP_* environment variables.",
            )
        case VersionRecordError():
            return build_error_response(
                "history_error",
                str(error),
                "Version history is unavailable; retry later.",
            )
        case _:
            return build_error_response(
                "server_error", str(error), "Retry later."
            )
