from __future__ import annotations

import json
import logging
import textwrap
from pathlib import Path

import pytest
from switchyard_cli.main import app
from typer.testing import CliRunner

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """Keep the user's global config and earlier log handlers out of the way."""
    monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path / "home"))
    monkeypatch.setenv("SWITCHYARD_LOG_LEVEL", "ERROR")
    root = logging.getLogger("switchyard")
    saved = root.handlers[:]
    root.handlers.clear()
    yield
    root.handlers[:] = saved
    root.setLevel(logging.NOTSET)


@pytest.fixture
def project(tmp_path) -> Path:
    plugins = tmp_path / "plugins"
    plugins.mkdir()
    (plugins / "greeter.py").write_text(textwrap.dedent('''
        """Says hello."""
        INTENTS = {
            "hello": lambda payload: "hello " + payload.get("who", "world"),
            "fail": lambda: {"success": False, "error": "nope"},
        }
        METADATA = {"hello": {"category": "social", "description": "Greet someone"}}
        CATEGORIES = {"social": "Social"}
    '''))
    (tmp_path / "skills.yaml").write_text(textwrap.dedent('''
        skills:
          shout:
            parameters: [who]
            steps:
              - intent: hello
                params: {who: "{who}!"}
    '''))
    return tmp_path


def _run(project: Path, *args: str):
    return runner.invoke(app, ["--project", str(project), *args])


class TestCli:
    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "switchyard" in result.output

    def test_intents_listing(self, project):
        result = _run(project, "intents")
        assert result.exit_code == 0, result.output
        assert "hello" in result.output
        assert "shout" in result.output

    def test_invoke_named_param(self, project):
        result = _run(project, "invoke", "hello", "who=Ada")
        assert result.exit_code == 0, result.output
        assert "hello Ada" in result.output

    def test_invoke_skill_positional(self, project):
        result = _run(project, "invoke", "shout", "Lin")
        assert result.exit_code == 0, result.output
        assert "hello Lin!" in result.output

    def test_invoke_failure_json(self, project):
        result = _run(project, "invoke", "fail", "--json")
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["success"] is False
        assert data["error"] == "nope"

    def test_invoke_unknown(self, project):
        result = _run(project, "invoke", "missing")
        assert result.exit_code == 1
        assert "not_found" in result.output

    def test_skills_validate(self, project):
        result = _run(project, "skills", "validate")
        assert result.exit_code == 0, result.output
        assert "1 skill(s) valid" in result.output

    def test_skills_validate_rejects_bad_document(self, project, tmp_path):
        bad = tmp_path / "bad.yaml"
        bad.write_text("skills:\n  empty:\n    description: no steps\n")
        result = _run(project, "skills", "validate", "--file", str(bad))
        assert result.exit_code == 1
        assert "has no steps" in result.output

    def test_plugins_disable_then_enable(self, project):
        disabled = _run(project, "plugins", "disable", "greeter")
        assert disabled.exit_code == 0, disabled.output
        state = json.loads((project / ".switchyard" / "plugins.json").read_text())
        assert state == {"greeter": {"enabled": False}}

        listing = _run(project, "intents")
        assert "Greet someone" not in listing.output
        assert "shout" in listing.output

        enabled = _run(project, "plugins", "enable", "greeter")
        assert enabled.exit_code == 0, enabled.output
        assert "Loaded plugin 'greeter'" in enabled.output

    def test_bad_config_exits_2(self, project):
        (project / "switchyard.toml").write_text("[servers.x]\nargs = []\n")
        result = _run(project, "intents")
        assert result.exit_code == 2
        assert "Configuration error" in result.output
