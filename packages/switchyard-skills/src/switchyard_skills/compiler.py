"""Skill compiler: binds a SkillDefinition into an executable value.

A :class:`CompiledSkill` carries everything invocation needs (parameter
order, defaults, steps). :func:`run_skill` is the invocation logic, a
coroutine over that value plus the incoming payload. The registry holds
a :class:`SkillHandler`, which only pairs the two.
"""
from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from switchyard_core.errors import SkillValidationError
from switchyard_core.logging import get_logger
from switchyard_core.types import ErrorKind, Result
from switchyard_runtime.registry import IntentMetadata, Safety

from switchyard_skills.types import CommandStep, IntentStep

if TYPE_CHECKING:
    from switchyard_runtime.registry import Registry

    from switchyard_skills.commands import CommandRunner
    from switchyard_skills.types import SkillDefinition, Step

logger = get_logger("skills.compiler")

_PLACEHOLDER = re.compile(r"\{([^{}]+)\}")


@dataclass(frozen=True, slots=True)
class CompiledSkill:
    name: str
    description: str
    category: str
    param_names: tuple[str, ...]
    defaults: Mapping[str, str] = field(default_factory=dict)
    required: frozenset[str] = frozenset()
    steps: tuple[Step, ...] = ()
    triggers: tuple[str, ...] = ()
    confirm: bool = False
    definition: SkillDefinition | None = None

    @property
    def metadata(self) -> IntentMetadata:
        return IntentMetadata(
            category=self.category,
            description=self.description,
            parameters=self.definition.parameters if self.definition else (),
            safety=Safety.REQUIRES_CONFIRMATION if self.confirm else Safety.NONE,
        )


def compile_skill(
    definition: SkillDefinition, default_category: str = "skills"
) -> CompiledSkill:
    """Bind a definition's parameter order and defaults.

    Raises:
        SkillValidationError: If the definition has no steps.
    """
    if not definition.steps:
        msg = f"Skill '{definition.name}' has no steps"
        raise SkillValidationError(msg)
    return CompiledSkill(
        name=definition.name,
        description=definition.description,
        category=definition.category or default_category,
        param_names=tuple(p.name for p in definition.parameters),
        defaults={
            p.name: p.default
            for p in definition.parameters
            if p.default is not None
        },
        required=frozenset(p.name for p in definition.parameters if p.required),
        steps=definition.steps,
        triggers=definition.triggers,
        confirm=definition.confirm,
        definition=definition,
    )


def bind_arguments(
    skill: CompiledSkill,
    args: Sequence[Any] = (),
    named: Mapping[str, Any] | None = None,
) -> dict[str, str]:
    """Map positional *args* onto parameter names, then apply *named*.

    Unfilled parameters take their declared default, or the empty
    string when they are optional without one.

    Raises:
        SkillValidationError: If a required parameter stays unbound.
    """
    bound: dict[str, str] = {}
    for name, value in zip(skill.param_names, args, strict=False):
        bound[name] = str(value)
    for name, value in (named or {}).items():
        if name in skill.param_names and value is not None:
            bound[name] = str(value)

    missing: list[str] = []
    for name in skill.param_names:
        if name in bound:
            continue
        if name in skill.defaults:
            bound[name] = skill.defaults[name]
        elif name in skill.required:
            missing.append(name)
        else:
            bound[name] = ""
    if missing:
        msg = (
            f"Skill '{skill.name}' is missing required parameter(s): "
            f"{', '.join(missing)}"
        )
        raise SkillValidationError(msg)
    return bound


def substitute(template: str, values: Mapping[str, str]) -> str:
    """Replace every ``{name}`` for each bound *name*; other braces stay.

    Substitution is a single pass, so bound values are never re-expanded.
    """
    return _PLACEHOLDER.sub(lambda m: values.get(m[1], m[0]), template)


def _split_payload(payload: Mapping[str, Any]) -> tuple[list[Any], dict[str, Any]]:
    raw_args = payload.get("args", ())
    if isinstance(raw_args, str):
        args: list[Any] = raw_args.split()
    elif isinstance(raw_args, Sequence):
        args = list(raw_args)
    else:
        args = [raw_args]
    named = {k: v for k, v in payload.items() if k not in ("args", "intent")}
    return args, named


async def run_skill(
    skill: CompiledSkill,
    registry: Registry,
    payload: Mapping[str, Any],
    runner: CommandRunner,
) -> Result:
    """Execute *skill* step by step, stopping at the first failure."""
    args, named = _split_payload(payload)
    try:
        values = bind_arguments(skill, args, named)
    except SkillValidationError as exc:
        return Result.from_error(exc)

    results: list[Result] = []
    for idx, step in enumerate(skill.steps, start=1):
        if isinstance(step, IntentStep):
            step_payload = {
                target: substitute(template, values)
                for target, template in step.params.items()
            }
            result = await registry.invoke(
                step.intent, step_payload, auto_confirm=True
            )
        elif isinstance(step, CommandStep):
            result = await _run_command(runner, substitute(step.template, values))
        else:
            result = Result.fail(
                f"Unsupported step type {type(step).__name__}",
                ErrorKind.VALIDATION,
            )
        results.append(result)

        if not result.success:
            logger.warning(
                "Skill %s aborted at step %d (%s): %s",
                skill.name,
                idx,
                step.describe(),
                result.error,
            )
            return Result.fail(
                f"Skill '{skill.name}' failed at step {idx} "
                f"({step.describe()}): {result.error}",
                ErrorKind.STEP_FAILED,
                output=_join_outputs(results),
                steps=tuple(results),
            )

    output = _join_outputs(results) or f"Skill '{skill.name}' completed."
    return Result.ok(output, steps=tuple(results))


async def _run_command(runner: CommandRunner, command: str) -> Result:
    try:
        out = await runner.run(command)
    except OSError as exc:
        return Result.fail(
            f"Could not run command: {exc}", ErrorKind.EXECUTION_ERROR
        )
    if out.timed_out:
        return Result.fail(out.stderr.strip(), ErrorKind.TIMEOUT)
    if out.exit_code != 0:
        detail = out.stderr.strip() or out.stdout.strip()
        return Result.fail(
            f"exit code {out.exit_code}" + (f": {detail}" if detail else ""),
            ErrorKind.EXECUTION_ERROR,
            output=out.stdout.strip(),
            error_code=out.exit_code,
        )
    return Result.ok(out.stdout.strip())


def _join_outputs(results: list[Result]) -> str:
    return "\n".join(r.output for r in results if r.output)


@dataclass(frozen=True, slots=True)
class SkillHandler:
    """Registry-facing callable pairing a compiled skill with its runtime."""

    skill: CompiledSkill
    registry: Registry
    runner: CommandRunner

    async def __call__(self, payload: Mapping[str, Any]) -> Result:
        return await run_skill(self.skill, self.registry, payload, self.runner)
