"""FastMCP server exposing drift tracking tools."""

from doch.mcp.server import create_server

__all__ = ["create_server"]
