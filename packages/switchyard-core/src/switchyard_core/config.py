from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from switchyard_core.errors import ConfigError
from switchyard_core.logging import get_logger

logger = get_logger("config")


def _load_toml(path: Path) -> dict:
    """Load a TOML file, returning empty dict if missing or unreadable."""
    if not path.exists():
        return {}
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return {}


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge override into base (1 level deep for TOML sections)."""
    merged = dict(base)
    for key, val in override.items():
        if (
            key in merged
            and isinstance(merged[key], dict)
            and isinstance(val, dict)
        ):
            merged[key] = {**merged[key], **val}
        else:
            merged[key] = val
    return merged


def _pick(section: dict, dc: type) -> dict:
    fields = dc.__dataclass_fields__
    return {k: v for k, v in section.items() if k in fields}


@dataclass(frozen=True, slots=True)
class PluginsConfig:
    directory: str = "plugins"
    state_file: str = ".switchyard/plugins.json"
    inactive_prefix: str = "_"
    default_category: str = "general"


@dataclass(frozen=True, slots=True)
class SkillsConfig:
    path: str = "skills.yaml"
    default_category: str = "skills"
    command_timeout_seconds: float = 60.0


@dataclass(frozen=True, slots=True)
class ToolsConfig:
    timeout_seconds: float = 30.0
    protocol_version: str = "2024-11-05"
    client_name: str = "switchyard"


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    level: str = "INFO"
    json: bool = False


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """How to launch one child-process tool server."""
    name: str
    command: str
    args: tuple[str, ...] = ()
    env: dict[str, str] = field(default_factory=dict)
    timeout_seconds: float | None = None
    autostart: bool = False
    register_tools: bool = False

    @classmethod
    def from_mapping(cls, name: str, raw: dict[str, Any]) -> ServerConfig:
        if not isinstance(raw, dict):
            msg = f"Server '{name}' must be a table"
            raise ConfigError(msg)
        command = raw.get("command")
        if not command or not isinstance(command, str):
            msg = f"Server '{name}' is missing a 'command' string"
            raise ConfigError(msg)
        args = raw.get("args", [])
        if not isinstance(args, list):
            msg = f"Server '{name}': 'args' must be a list"
            raise ConfigError(msg)
        env = raw.get("env", {})
        if not isinstance(env, dict):
            msg = f"Server '{name}': 'env' must be a table"
            raise ConfigError(msg)
        timeout = raw.get("timeout_seconds")
        return cls(
            name=name,
            command=command,
            args=tuple(str(a) for a in args),
            env={str(k): str(v) for k, v in env.items()},
            timeout_seconds=float(timeout) if timeout is not None else None,
            autostart=bool(raw.get("autostart", False)),
            register_tools=bool(raw.get("register_tools", False)),
        )


@dataclass(frozen=True, slots=True)
class SwitchyardConfig:
    """Top-level configuration, parsed from switchyard.toml."""
    project_name: str = "switchyard-project"
    plugins: PluginsConfig = field(default_factory=PluginsConfig)
    skills: SkillsConfig = field(default_factory=SkillsConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    servers: dict[str, ServerConfig] = field(default_factory=dict)
    root: Path = field(default_factory=Path.cwd)

    def resolve(self, relative: str) -> Path:
        """Resolve a configured path against the project root."""
        path = Path(relative).expanduser()
        return path if path.is_absolute() else self.root / path

    @classmethod
    def from_toml(
        cls, path: Path | str = "switchyard.toml"
    ) -> SwitchyardConfig:
        path = Path(path)
        raw = _load_toml(path)
        return cls._from_raw(raw, root=path.parent.resolve())

    @classmethod
    def load(
        cls, project_dir: Path | str | None = None
    ) -> SwitchyardConfig:
        """Load config with global → project layering.

        Resolution order (later wins):
        1. Built-in defaults
        2. ~/.switchyard/config.toml (global)
        3. .switchyard/config.toml or switchyard.toml (project)
        """
        global_path = Path.home() / ".switchyard" / "config.toml"

        project_dir = (
            Path.cwd() if project_dir is None else Path(project_dir)
        )

        project_path = project_dir / ".switchyard" / "config.toml"
        if not project_path.exists():
            project_path = project_dir / "switchyard.toml"

        merged = _deep_merge(_load_toml(global_path), _load_toml(project_path))
        return cls._from_raw(merged, root=project_dir.resolve())

    @classmethod
    def _from_raw(cls, raw: dict, root: Path | None = None) -> SwitchyardConfig:
        """Build SwitchyardConfig from a raw TOML dict."""
        servers_raw = raw.get("servers", {})
        if not isinstance(servers_raw, dict):
            msg = "[servers] must be a table of server tables"
            raise ConfigError(msg)

        return cls(
            project_name=raw.get("project", {}).get(
                "name", "switchyard-project"
            ),
            plugins=PluginsConfig(**_pick(raw.get("plugins", {}), PluginsConfig)),
            skills=SkillsConfig(**_pick(raw.get("skills", {}), SkillsConfig)),
            tools=ToolsConfig(**_pick(raw.get("tools", {}), ToolsConfig)),
            logging=LoggingConfig(**_pick(raw.get("logging", {}), LoggingConfig)),
            servers={
                name: ServerConfig.from_mapping(name, section)
                for name, section in servers_raw.items()
            },
            root=root or Path.cwd(),
        )
