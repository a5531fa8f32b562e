from __future__ import annotations

import logging
from io import StringIO
from pathlib import Path

import pytest
from switchyard_core.config import ServerConfig, SwitchyardConfig
from switchyard_core.errors import ConfigError
from switchyard_core.logging import get_logger, setup_logging


class TestConfig:
    def test_default_config(self):
        config = SwitchyardConfig()
        assert config.plugins.directory == "plugins"
        assert config.plugins.inactive_prefix == "_"
        assert config.skills.path == "skills.yaml"
        assert config.tools.timeout_seconds == 30.0
        assert config.servers == {}

    def test_from_toml_missing_file(self):
        config = SwitchyardConfig.from_toml("/nonexistent/path/switchyard.toml")
        assert config.tools.timeout_seconds == 30.0  # Returns defaults

    def test_from_toml(self, tmp_path):
        path = tmp_path / "switchyard.toml"
        path.write_text('''
[project]
name = "test-project"

[plugins]
directory = "ext"
default_category = "misc"
unknown_key = "ignored"

[tools]
timeout_seconds = 5

[servers.calc]
command = "calc-server"
args = ["--stdio"]
env = { CALC_MODE = "fast" }
autostart = true
register_tools = true
''')
        config = SwitchyardConfig.from_toml(path)

        assert config.project_name == "test-project"
        assert config.plugins.directory == "ext"
        assert config.plugins.default_category == "misc"
        assert config.tools.timeout_seconds == 5
        assert config.root == tmp_path.resolve()
        assert config.resolve("ext") == tmp_path.resolve() / "ext"

        calc = config.servers["calc"]
        assert calc.command == "calc-server"
        assert calc.args == ("--stdio",)
        assert calc.env == {"CALC_MODE": "fast"}
        assert calc.autostart and calc.register_tools
        assert calc.timeout_seconds is None

    def test_server_without_command(self, tmp_path):
        path = tmp_path / "switchyard.toml"
        path.write_text("[servers.broken]\nargs = []\n")
        with pytest.raises(ConfigError, match="command"):
            SwitchyardConfig.from_toml(path)

    def test_server_args_must_be_list(self):
        with pytest.raises(ConfigError, match="args"):
            ServerConfig.from_mapping("s", {"command": "x", "args": "--flag"})

    def test_unreadable_toml_is_ignored(self, tmp_path):
        path = tmp_path / "switchyard.toml"
        path.write_text("this is = = not toml")
        config = SwitchyardConfig.from_toml(path)
        assert config.project_name == "switchyard-project"

    def test_layering(self, tmp_path, monkeypatch):
        home = tmp_path / "home"
        (home / ".switchyard").mkdir(parents=True)
        (home / ".switchyard" / "config.toml").write_text(
            '[tools]\ntimeout_seconds = 12\nclient_name = "global"\n'
        )
        project = tmp_path / "project"
        project.mkdir()
        (project / "switchyard.toml").write_text('[tools]\nclient_name = "local"\n')
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: home))

        config = SwitchyardConfig.load(project)

        assert config.tools.timeout_seconds == 12
        assert config.tools.client_name == "local"
        assert config.root == project.resolve()

    def test_project_dir_config_preferred(self, tmp_path, monkeypatch):
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path / "nohome"))
        (tmp_path / ".switchyard").mkdir()
        (tmp_path / ".switchyard" / "config.toml").write_text('[project]\nname = "hidden"\n')
        (tmp_path / "switchyard.toml").write_text('[project]\nname = "visible"\n')

        assert SwitchyardConfig.load(tmp_path).project_name == "hidden"


class TestLogging:
    def test_child_logger_namespace(self):
        assert get_logger("runtime.registry").name == "switchyard.runtime.registry"

    def test_setup_json_output(self, monkeypatch):
        from switchyard_core.config import LoggingConfig

        root = logging.getLogger("switchyard")
        saved = root.handlers[:]
        root.handlers.clear()
        monkeypatch.delenv("SWITCHYARD_LOG_LEVEL", raising=False)
        stream = StringIO()
        try:
            setup_logging(LoggingConfig(level="DEBUG", json=True), stream=stream)
            get_logger("test").debug("hello %s", "world")
            assert '"msg": "hello world"' in stream.getvalue()
            assert root.level == logging.DEBUG

            # A second call keeps the first handler.
            setup_logging(LoggingConfig(level="ERROR"))
            assert len(root.handlers) == 1
        finally:
            root.handlers[:] = saved
            root.setLevel(logging.NOTSET)
