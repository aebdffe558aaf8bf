"""MCP server exposing sync, status, history and rollback as tools."""
