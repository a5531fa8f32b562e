from __future__ import annotations

import sys
import textwrap
from pathlib import Path

import pytest
from switchyard_core.config import ServerConfig
from switchyard_runtime.registry import Registry

STUB_SERVER = Path(__file__).parent / "stub_tool_server.py"


@pytest.fixture
def registry() -> Registry:
    return Registry()


@pytest.fixture
def plugin_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "plugins"
    directory.mkdir()
    return directory


@pytest.fixture
def write_plugin(plugin_dir: Path):
    """Write ``<name>.py`` into the plugin directory from dedented source."""

    def _write(name: str, source: str) -> Path:
        path = plugin_dir / f"{name}.py"
        path.write_text(textwrap.dedent(source), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def stub_config():
    """Build a ServerConfig that launches the stub tool server."""

    def _make(
        name: str = "stub",
        *,
        timeout: float | None = 5.0,
        env: dict[str, str] | None = None,
        **kwargs,
    ) -> ServerConfig:
        return ServerConfig(
            name=name,
            command=sys.executable,
            args=(str(STUB_SERVER),),
            env=env or {},
            timeout_seconds=timeout,
            **kwargs,
        )

    return _make
