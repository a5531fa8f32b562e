from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from switchyard_core.logging import get_logger

if TYPE_CHECKING:
    from switchyard_core.config import SwitchyardConfig
    from switchyard_skills.manager import SkillManager
    from switchyard_tools.client import ToolServerClient

    from switchyard_runtime.plugins import PluginLoader
    from switchyard_runtime.registry import Registry
    from switchyard_runtime.workflow import WorkflowOrchestrator

logger = get_logger("runtime.context")


@dataclass(slots=True)
class RuntimeContext:
    """Application root holding the registry and everything that feeds it.

    Created once at startup by the RuntimeBuilder. Call :meth:`aclose`
    (or use ``async with``) so tool-server processes are shut down.
    """
    config: SwitchyardConfig
    registry: Registry
    plugins: PluginLoader
    workflows: WorkflowOrchestrator
    skills: SkillManager | None = None
    tools: ToolServerClient | None = None

    async def __aenter__(self) -> RuntimeContext:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self.tools is not None:
            await self.tools.disconnect_all()
        logger.debug("Runtime closed")
