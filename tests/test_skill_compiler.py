"""Tests for skill compilation, argument binding, and execution."""
from __future__ import annotations

import pytest
from switchyard_core.errors import SkillValidationError
from switchyard_core.types import ErrorKind
from switchyard_runtime.registry import IntentMetadata, Registry, Safety
from switchyard_skills.commands import CommandOutput, ShellCommandRunner
from switchyard_skills.compiler import (
    SkillHandler,
    bind_arguments,
    compile_skill,
    run_skill,
    substitute,
)
from switchyard_skills.parser import parse_skill


class FakeRunner:
    """Records commands instead of running them."""

    def __init__(self, exit_code: int = 0, stdout: str = "ran") -> None:
        self.commands: list[str] = []
        self._exit_code = exit_code
        self._stdout = stdout

    async def run(self, command: str) -> CommandOutput:
        self.commands.append(command)
        return CommandOutput(
            stdout=self._stdout,
            stderr="failure detail" if self._exit_code else "",
            exit_code=self._exit_code,
            duration_ms=0.1,
        )


def _skill(raw: dict, name: str = "demo"):
    return compile_skill(parse_skill(name, raw))


def _capture(registry: Registry, name: str, calls: list[dict], output: str | None = None):
    def handler(payload):
        calls.append(dict(payload))
        return output if output is not None else f"{name} done"

    registry.register(name, handler)


class TestSubstitute:
    def test_replaces_every_occurrence(self):
        assert substitute("{a}-{a}-{b}", {"a": "x", "b": "y"}) == "x-x-y"

    def test_leaves_unbound_braces(self):
        template = "awk '{print $1}' ${HOME}/{file}"
        assert substitute(template, {"file": "log"}) == "awk '{print $1}' ${HOME}/log"

    def test_bound_values_are_not_reexpanded(self):
        assert substitute("{a}", {"a": "{b}", "b": "SECRET"}) == "{b}"
        assert substitute("{a} {b}", {"a": "{b}", "b": "{a}"}) == "{b} {a}"


class TestBinding:
    def test_positional_then_named_then_defaults(self):
        skill = _skill({
            "parameters": [
                {"name": "src", "required": True},
                {"name": "dest", "default": "/tmp"},
                {"name": "mode"},
            ],
            "steps": [{"command": "cp {src} {dest}"}],
        })
        assert skill.param_names == ("src", "dest", "mode")
        assert bind_arguments(skill, ["a.txt"]) == {"src": "a.txt", "dest": "/tmp", "mode": ""}
        assert bind_arguments(skill, ["a.txt", "b"], {"mode": "fast"}) == {
            "src": "a.txt",
            "dest": "b",
            "mode": "fast",
        }
        assert bind_arguments(skill, [], {"src": "z"})["src"] == "z"

    def test_named_overrides_positional(self):
        skill = _skill({"parameters": ["who"], "steps": [{"command": "echo {who}"}]})
        assert bind_arguments(skill, ["first"], {"who": "second"}) == {"who": "second"}

    def test_missing_required(self):
        skill = _skill({
            "parameters": [{"name": "target", "required": True}],
            "steps": [{"command": "rm {target}"}],
        })
        with pytest.raises(SkillValidationError, match="target"):
            bind_arguments(skill, [])

    def test_extra_positional_ignored(self):
        skill = _skill({"parameters": ["one"], "steps": [{"command": "echo {one}"}]})
        assert bind_arguments(skill, ["a", "b", "c"]) == {"one": "a"}

    def test_no_steps_cannot_compile(self):
        from switchyard_skills.types import SkillDefinition

        with pytest.raises(SkillValidationError, match="no steps"):
            compile_skill(SkillDefinition(name="empty"))


class TestRunSkill:
    async def test_placeholder_substitution_in_intent_params(self, registry):
        calls: list[dict] = []
        _capture(registry, "say", calls)
        skill = _skill({
            "parameters": ["name"],
            "steps": [{"intent": "say", "params": {"message": "{name} says hi"}}],
        })

        result = await run_skill(skill, registry, {"args": ["Ada"]}, FakeRunner())

        assert result.success
        assert calls[0]["message"] == "Ada says hi"
        assert calls[0]["intent"] == "say"

    async def test_named_payload_binding(self, registry):
        calls: list[dict] = []
        _capture(registry, "say", calls)
        skill = _skill({
            "parameters": ["name"],
            "steps": [{"intent": "say", "params": {"message": "{name} says hi"}}],
        })
        await run_skill(skill, registry, {"name": "Grace"}, FakeRunner())
        assert calls[0]["message"] == "Grace says hi"

    async def test_argument_text_is_not_substituted_again(self, registry):
        calls: list[dict] = []
        _capture(registry, "say", calls)
        skill = _skill({
            "parameters": ["a", "b"],
            "steps": [{"intent": "say", "params": {"v": "{a}"}}],
        })
        await run_skill(skill, registry, {"args": ["{b}", "SECRET"]}, FakeRunner())
        assert calls[0]["v"] == "{b}"

    async def test_short_circuit_on_failed_step(self, registry):
        calls: list[dict] = []
        _capture(registry, "first", calls)
        registry.register("second", lambda: {"success": False, "error": "exploded"})
        _capture(registry, "third", calls)
        skill = _skill({
            "steps": [{"intent": "first"}, {"intent": "second"}, {"intent": "third"}],
        })

        result = await run_skill(skill, registry, {}, FakeRunner())

        assert not result.success
        assert result.kind is ErrorKind.STEP_FAILED
        assert "step 2" in result.error
        assert "second" in result.error
        assert "exploded" in result.error
        assert [c["intent"] for c in calls] == ["first"]
        assert len(result.steps) == 2

    async def test_outputs_concatenated(self, registry):
        _capture(registry, "one", [], output="alpha")
        _capture(registry, "two", [], output="beta")
        runner = FakeRunner(stdout="gamma\n")
        skill = _skill({
            "steps": [{"intent": "one"}, {"intent": "two"}, {"command": "true"}],
        })

        result = await run_skill(skill, registry, {}, runner)
        assert result.output == "alpha\nbeta\ngamma"

    async def test_generic_message_without_output(self, registry):
        _capture(registry, "quiet", [], output="")
        skill = _skill({"steps": [{"intent": "quiet"}]}, name="hush")
        result = await run_skill(skill, registry, {}, FakeRunner())
        assert result.success
        assert result.output == "Skill 'hush' completed."

    async def test_command_template_substituted(self, registry):
        runner = FakeRunner()
        skill = _skill({
            "parameters": ["branch"],
            "steps": [{"command": "git checkout {branch} && echo ${HOME}"}],
        })
        await run_skill(skill, registry, {"args": ["main"]}, runner)
        assert runner.commands == ["git checkout main && echo ${HOME}"]

    async def test_failing_command_aborts(self, registry):
        calls: list[dict] = []
        _capture(registry, "after", calls)
        skill = _skill({"steps": [{"command": "make"}, {"intent": "after"}]})

        result = await run_skill(skill, registry, {}, FakeRunner(exit_code=2))

        assert result.kind is ErrorKind.STEP_FAILED
        assert "step 1 (command: make)" in result.error
        assert "failure detail" in result.error
        assert result.steps[0].error_code == 2
        assert calls == []

    async def test_missing_required_runs_nothing(self, registry):
        runner = FakeRunner()
        skill = _skill({
            "parameters": [{"name": "target", "required": True}],
            "steps": [{"command": "rm {target}"}],
        })
        result = await run_skill(skill, registry, {}, runner)
        assert result.kind is ErrorKind.VALIDATION
        assert runner.commands == []

    async def test_intent_steps_are_auto_confirmed(self):
        registry = Registry(confirm=lambda intent, payload: False)
        registry.register(
            "guarded",
            lambda: "went through",
            IntentMetadata(safety=Safety.REQUIRES_CONFIRMATION),
        )
        skill = _skill({"steps": [{"intent": "guarded"}]})
        result = await run_skill(skill, registry, {}, FakeRunner())
        assert result.output == "went through"

    async def test_handler_is_registry_callable(self, registry):
        calls: list[dict] = []
        _capture(registry, "say", calls)
        skill = _skill({
            "parameters": ["name"],
            "steps": [{"intent": "say", "params": {"message": "hello {name}"}}],
        }, name="greet")
        registry.register("greet", SkillHandler(skill, registry, FakeRunner()))

        result = await registry.invoke("greet", {"args": ["Lin"]})

        assert result.success
        assert calls[0]["message"] == "hello Lin"


class TestShellCommandRunner:
    async def test_captures_stdout(self):
        out = await ShellCommandRunner(timeout_seconds=10).run("echo hello")
        assert out.ok
        assert out.stdout.strip() == "hello"

    async def test_non_zero_exit(self):
        out = await ShellCommandRunner(timeout_seconds=10).run("echo oops >&2; exit 3")
        assert out.exit_code == 3
        assert "oops" in out.stderr
        assert not out.ok

    async def test_timeout(self):
        out = await ShellCommandRunner(timeout_seconds=0.3).run("sleep 5")
        assert out.timed_out
        assert out.exit_code == -1

    async def test_env_overlay(self):
        runner = ShellCommandRunner(timeout_seconds=10, env={"SWITCHYARD_TEST_VAR": "42"})
        out = await runner.run("echo $SWITCHYARD_TEST_VAR")
        assert out.stdout.strip() == "42"

    async def test_real_command_step(self, registry):
        skill = _skill({
            "parameters": ["word"],
            "steps": [{"command": "echo {word}-{word}"}],
        })
        result = await run_skill(
            skill, registry, {"args": ["ping"]}, ShellCommandRunner(timeout_seconds=10)
        )
        assert result.output == "ping-ping"

    async def test_timed_out_step_reports_timeout(self, registry):
        skill = _skill({"steps": [{"command": "sleep 5"}]})
        result = await run_skill(
            skill, registry, {}, ShellCommandRunner(timeout_seconds=0.3)
        )
        assert result.kind is ErrorKind.STEP_FAILED
        assert result.steps[0].kind is ErrorKind.TIMEOUT
