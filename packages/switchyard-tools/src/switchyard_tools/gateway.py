from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from switchyard_core.logging import get_logger

if TYPE_CHECKING:
    from switchyard_runtime.registry import Registry

logger = get_logger("tools.gateway")

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]")


def tool_name(intent: str) -> str:
    """MCP-safe tool name for an intent (``skill:deploy`` -> ``skill_deploy``)."""
    return _UNSAFE.sub("_", intent)


def make_gateway_tool(
    registry: Registry, intent: str
) -> Callable[..., Awaitable[str]]:
    """Build the MCP tool function that invokes *intent*."""

    async def invoke(arguments: dict[str, Any] | None = None) -> str:
        result = await registry.invoke(intent, arguments or {}, auto_confirm=True)
        if not result.success:
            raise ToolError(result.error or f"Intent '{intent}' failed")
        return result.output

    return invoke


def create_gateway(registry: Registry) -> FastMCP:
    """Create an MCP server exposing every registered intent as a tool.

    Each tool takes a single ``arguments`` object that becomes the
    intent payload. Confirmation prompts are bypassed; the MCP client
    is responsible for approving calls.
    """
    gateway = FastMCP("switchyard-gateway")

    seen: set[str] = set()
    for intent in registry.names():
        name = tool_name(intent)
        if name in seen:
            logger.warning("Gateway: intent %s collides with tool %s; skipped", intent, name)
            continue
        seen.add(name)
        description = registry.intents[intent].metadata.description or f"Invoke intent '{intent}'"
        gateway.tool(name=name, description=description)(
            make_gateway_tool(registry, intent)
        )

    logger.info("Gateway exposes %d intents", len(seen))
    return gateway
