"""MCP server exposing recovered sources."""

from embedsrc.server.mcp_server import create_mcp_server, load_sources

__all__ = ["create_mcp_server", "load_sources"]
