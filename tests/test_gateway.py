from __future__ import annotations

import pytest
from fastmcp.exceptions import ToolError
from switchyard_runtime.registry import IntentMetadata
from switchyard_tools.gateway import create_gateway, make_gateway_tool, tool_name


class TestGateway:
    def test_tool_name_sanitised(self):
        assert tool_name("skill:deploy") == "skill_deploy"
        assert tool_name("calc.add") == "calc.add"

    async def test_gateway_exposes_intents(self, registry):
        registry.register("hello", lambda: "hi", IntentMetadata(description="Say hi"))
        registry.register("skill:deploy", lambda: "deployed")

        gateway = create_gateway(registry)
        tools = await gateway.get_tools()

        assert set(tools) == {"hello", "skill_deploy"}
        assert tools["hello"].description == "Say hi"

    async def test_tool_invokes_intent(self, registry):
        registry.register("echo", lambda payload: payload.get("text", ""))
        invoke = make_gateway_tool(registry, "echo")
        assert await invoke({"text": "through the gateway"}) == "through the gateway"

    async def test_failure_raises_tool_error(self, registry):
        registry.register("broken", lambda: {"success": False, "error": "kaput"})
        invoke = make_gateway_tool(registry, "broken")
        with pytest.raises(ToolError, match="kaput"):
            await invoke()
