"""Switchyard Tools: JSON-RPC client for child-process tool servers.

The FastMCP gateway lives in :mod:`switchyard_tools.gateway` and is
imported on demand.
"""
from __future__ import annotations

from switchyard_tools.client import ServerConnection, ToolServerClient
from switchyard_tools.intents import (
    TOOLS_CATEGORY,
    make_tool_intent,
    register_server_tools,
    tool_metadata,
)
from switchyard_tools.protocol import extract_text, parse_message
from switchyard_tools.types import ConnectionState, ToolInfo

__all__ = [
    "TOOLS_CATEGORY",
    "ConnectionState",
    "ServerConnection",
    "ToolInfo",
    "ToolServerClient",
    "extract_text",
    "make_tool_intent",
    "parse_message",
    "register_server_tools",
    "tool_metadata",
]
