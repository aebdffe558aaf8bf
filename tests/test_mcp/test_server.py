"""Tests for envzip.mcp.server -- global accessors and tool dispatch."""

from __future__ import annotations

import mcp.types as types
import pytest

from envzip.mcp import server
from envzip.mcp.tools import ALL_SPECS, ToolRegistry


@pytest.fixture(autouse=True)
def reset_globals():
    yield
    server.set_context(None)
    server.set_registry(None)


class TestAccessors:
    def test_context_before_lifespan_raises(self):
        with pytest.raises(RuntimeError, match="not initialized"):
            server.get_context()

    def test_registry_before_main_raises(self):
        with pytest.raises(RuntimeError, match="not initialized"):
            server.get_registry()

    def test_set_and_get(self, env_ctx):
        registry = ToolRegistry(ALL_SPECS)
        server.set_context(env_ctx)
        server.set_registry(registry)
        assert server.get_context() is env_ctx
        assert server.get_registry() is registry


class TestHandlers:
    async def test_list_tools_respects_permissions(self, env_ctx):
        server.set_registry(ToolRegistry(ALL_SPECS, frozenset({"ENV_VIEW"})))

        tools = await server.handle_list_tools()

        assert sorted(t.name for t in tools) == [
            "env_history",
            "env_sync_status",
        ]

    async def test_call_tool_dispatches(self, env_ctx):
        env_ctx.local.path.write_text("A=1\n")
        server.set_context(env_ctx)
        server.set_registry(ToolRegistry(ALL_SPECS))

        result = await server.handle_call_tool("env_sync", None)

        assert not result.isError
        assert [e.key for e in env_ctx.remote.list("proj", "development")] == [
            "A"
        ]

    async def test_unknown_tool_is_structured_error(self, env_ctx):
        server.set_context(env_ctx)
        server.set_registry(ToolRegistry(ALL_SPECS, frozenset({"ENV_VIEW"})))

        result = await server.handle_call_tool("env_rollback", {})

        content = result.content[0]
        assert isinstance(content, types.TextContent)
        assert result.isError
        assert content.text.startswith("Error (unknown_tool)")
