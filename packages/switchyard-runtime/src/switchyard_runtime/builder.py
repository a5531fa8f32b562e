from __future__ import annotations

from typing import TYPE_CHECKING

from switchyard_core.logging import get_logger

from switchyard_runtime.context import RuntimeContext
from switchyard_runtime.plugins import PluginLoader, PluginStateStore
from switchyard_runtime.registry import Registry
from switchyard_runtime.workflow import WorkflowOrchestrator

if TYPE_CHECKING:
    from switchyard_core.config import SwitchyardConfig
    from switchyard_skills.manager import SkillManager
    from switchyard_tools.client import ToolServerClient

    from switchyard_runtime.registry import ConfirmCallback

logger = get_logger("builder")


class RuntimeBuilder:
    """Build a RuntimeContext from configuration.

    Usage:
        config = SwitchyardConfig.load()
        async with await RuntimeBuilder(config).build() as ctx:
            await ctx.registry.invoke("hello")
    """

    def __init__(
        self,
        config: SwitchyardConfig,
        *,
        confirm: ConfirmCallback | None = None,
    ) -> None:
        self._config = config
        self._confirm = confirm

    async def build(
        self,
        *,
        load_plugins: bool = True,
        load_skills: bool = True,
        connect_servers: bool = True,
        quiet: bool = False,
    ) -> RuntimeContext:
        config = self._config
        registry = Registry(confirm=self._confirm)

        plugins = PluginLoader(
            registry,
            config.resolve(config.plugins.directory),
            state=PluginStateStore(config.resolve(config.plugins.state_file)),
            inactive_prefix=config.plugins.inactive_prefix,
            default_category=config.plugins.default_category,
        )
        ctx = RuntimeContext(
            config=config,
            registry=registry,
            plugins=plugins,
            workflows=WorkflowOrchestrator(registry),
        )

        if load_plugins:
            plugins.load_all(quiet=quiet)
        if load_skills:
            ctx.skills = self._build_skills(registry, quiet=quiet)
        if connect_servers:
            ctx.tools = await self._build_tools(registry)

        logger.info(
            "Runtime ready: %d intents, %d categories, %d workflows",
            len(registry),
            len(registry.categories),
            len(registry.workflows),
        )
        return ctx

    def _build_skills(self, registry: Registry, *, quiet: bool) -> SkillManager:
        from switchyard_skills.commands import ShellCommandRunner
        from switchyard_skills.manager import SkillManager

        skills_cfg = self._config.skills
        manager = SkillManager(
            registry,
            ShellCommandRunner(
                timeout_seconds=skills_cfg.command_timeout_seconds,
                cwd=self._config.root,
            ),
            default_category=skills_cfg.default_category,
        )
        manager.load_file(self._config.resolve(skills_cfg.path), quiet=quiet)
        return manager

    async def _build_tools(self, registry: Registry) -> ToolServerClient:
        from switchyard_tools.client import ToolServerClient
        from switchyard_tools.intents import register_server_tools

        tools_cfg = self._config.tools
        client = ToolServerClient(
            tools_cfg.timeout_seconds,
            protocol_version=tools_cfg.protocol_version,
            client_name=tools_cfg.client_name,
        )
        for server in self._config.servers.values():
            if not server.autostart:
                continue
            result = await client.connect(server)
            if not result.success:
                logger.warning("Server %s not started: %s", server.name, result.error)
                continue
            if server.register_tools:
                added = register_server_tools(registry, client, server.name)
                logger.info("Registered %d tool intent(s) from %s", len(added), server.name)
        return client
