"""Expose tool-server tools as registry intents."""
from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any

from switchyard_core.logging import get_logger
from switchyard_core.types import Result
from switchyard_runtime.registry import IntentMetadata, ParameterSpec

if TYPE_CHECKING:
    from switchyard_runtime.registry import Registry

    from switchyard_tools.client import ToolServerClient
    from switchyard_tools.types import ToolInfo

logger = get_logger("tools.intents")

TOOLS_CATEGORY = "tools"


def make_tool_intent(
    client: ToolServerClient, server: str, tool: str
) -> Callable[[Mapping[str, Any]], Awaitable[Result]]:
    """Build a handler forwarding its payload to ``server``'s *tool*."""

    async def call(payload: Mapping[str, Any]) -> Result:
        arguments = {k: v for k, v in payload.items() if k != "intent"}
        return await client.call_tool(server, tool, arguments)

    call.__name__ = f"{server}.{tool}"
    return call


def tool_metadata(server: str, tool: ToolInfo) -> IntentMetadata:
    required = set(tool.required)
    parameters = tuple(
        ParameterSpec(
            name=name,
            required=name in required,
            description=str(schema.get("description", "")) if isinstance(schema, dict) else "",
        )
        for name, schema in tool.properties.items()
    )
    return IntentMetadata(
        category=TOOLS_CATEGORY,
        description=tool.description or f"Tool '{tool.name}' on server '{server}'",
        parameters=parameters,
    )


def register_server_tools(
    registry: Registry, client: ToolServerClient, server: str
) -> list[str]:
    """Register ``<server>.<tool>`` intents for *server*'s catalog.

    Names already taken are skipped with a warning.
    """
    added: list[str] = []
    with registry.lock:
        for tool in client.list_tools(server):
            name = f"{server}.{tool.name}"
            result = registry.register(
                name,
                make_tool_intent(client, server, tool.name),
                tool_metadata(server, tool),
                source=f"server:{server}",
            )
            if result.success:
                added.append(name)
            else:
                logger.warning("Tool intent %s skipped: %s", name, result.error)
        registry.rebuild_category_index()
    return added
